#!/usr/bin/env python3
import argparse
import logging
import sys
from pathlib import Path

from rag_kit.app import ChatService, IndexCallbacks, IndexResult, IndexService, QueryService
from rag_kit.config import AppConfig, load_config
from rag_kit.errors import RagKitError
from rag_kit.logging_utils import level_from_flags, setup_logging

logger = logging.getLogger(__name__)

DEFAULT_CONFIG = "config.yaml"


def _load(path: str | None) -> AppConfig:
    """Explicit --config must exist; the implicit config.yaml is optional."""
    if path:
        return load_config(path)
    if Path(DEFAULT_CONFIG).exists():
        return load_config(DEFAULT_CONFIG)
    logger.debug("no %s found; using built-in defaults", DEFAULT_CONFIG)
    return AppConfig()


def _print_index_result(label: str, res: IndexResult) -> None:
    print(
        f"{label}: {res.items_indexed}/{res.items_seen} indexed, "
        f"{res.chunks_indexed} chunks, {res.elapsed_ms} ms"
    )
    if res.errors:
        print(f"\n=== FAILURES ({len(res.errors)}) ===")
        for err in res.errors:
            print(f"- {err['path']}: {err['error']}")


def _progress(done: int, total: int) -> None:
    logger.info("progress %d/%d", done, total)


def _print_contexts(contexts) -> None:
    for i, ctx in enumerate(contexts, start=1):
        loc = f":{ctx.start_line}" if ctx.start_line else ""
        print(f"[{i}] {ctx.service_name} | {ctx.file_path}{loc} | {ctx.file_type} | {ctx.score:.3f}")
        print(ctx.content)
        print("---")


def _chat_loop(chat: ChatService, limit, title: str) -> int:
    print(title)
    print('Type a question. "clear" resets the conversation; "exit" or an empty line ends it.')
    while True:
        try:
            question = input("\n> ").strip()
        except (EOFError, KeyboardInterrupt):
            print()
            break
        if not question or question.lower() in ("exit", "quit"):
            break
        if question.lower() == "clear":
            chat.clear_history()
            print("Conversation cleared.")
            continue
        try:
            turn = chat.ask(question, limit)
            if turn.result_count:
                print(f"({turn.result_count} sources)")
            for piece in turn.stream:
                sys.stdout.write(piece)
                sys.stdout.flush()
            print()
        except RagKitError as e:
            # one failed turn does not end the session
            logger.debug("chat turn failed", exc_info=True)
            print(f"Error: {e}", file=sys.stderr)
    print("Session ended.")
    return 0


def build_parser() -> argparse.ArgumentParser:
    parser = argparse.ArgumentParser(
        prog="rag-kit",
        description="Index code and documents, then retrieve ranked context (and optional answers) for questions.",
    )
    # Global logging flags
    parser.add_argument("--verbose", "-v", action="store_true", help="Enable DEBUG logs (to stderr).")
    parser.add_argument("--quiet", "-q", action="store_true", help="Reduce logs to WARN and above.")
    parser.add_argument("--log-json", action="store_true", help="Emit logs as JSON lines (stderr).")
    parser.add_argument("--config", type=str, default=None, help=f"YAML config (default: {DEFAULT_CONFIG} if present)")

    sub = parser.add_subparsers(dest="cmd", required=True)

    # -----------------------
    # index / index-docs
    # -----------------------
    p_idx = sub.add_parser("index", help="Index source code of all (or one) configured services")
    p_idx.add_argument("--service", type=str, default=None, help="Only index this service")

    p_docs = sub.add_parser("index-docs", help="Index documents (pdf, xlsx, csv, tsv, md, txt)")
    p_docs.add_argument("path", type=str, help="File or folder with documents")

    # -----------------------
    # search / ask
    # -----------------------
    p_s = sub.add_parser("search", help="Retrieve ranked context without calling an LLM")
    p_s.add_argument("question", type=str)
    p_s.add_argument("--k", type=int, default=None, help="Number of results (default from config)")

    p_a = sub.add_parser("ask", help="Retrieve context and generate an answer")
    p_a.add_argument("question", type=str)
    p_a.add_argument("--k", type=int, default=None, help="Number of results (default from config)")
    p_a.add_argument("--cloud", action="store_true", help="Use the `cloud.llm` provider")
    p_a.add_argument("--no-stream", action="store_true", help="Print the answer in one piece")
    p_a.add_argument("--show-contexts", action="store_true", help="Print the contexts sent to the LLM")

    p_c = sub.add_parser("chat", help="Interactive multi-turn questions (keeps recent history)")
    p_c.add_argument("--k", type=int, default=None, help="Number of results per turn (default from config)")
    p_c.add_argument("--cloud", action="store_true", help="Use the `cloud.llm` provider")

    # -----------------------
    # admin
    # -----------------------
    sub.add_parser("stats", help="Show chunk counts per collection")
    sub.add_parser("clear", help="Drop all indexed data")
    return parser


def main(argv=None) -> int:
    parser = build_parser()
    args = parser.parse_args(argv)

    # ----- logging setup -----
    try:
        level = level_from_flags(args.verbose, args.quiet)
    except ValueError as e:
        print(str(e), file=sys.stderr)
        return 2
    setup_logging(level=level, json_logs=args.log_json)
    logger.debug("CLI args parsed: %s", vars(args))

    try:
        cfg = _load(args.config)

        if args.cmd == "index":
            svc = IndexService(cfg)
            res = svc.index_code(args.service, IndexCallbacks(on_progress=_progress))
            _print_index_result("Code", res)
            return 1 if res.errors and not res.items_indexed else 0

        if args.cmd == "index-docs":
            svc = IndexService(cfg)
            res = svc.index_documents(args.path, IndexCallbacks(on_progress=_progress))
            _print_index_result("Documents", res)
            return 1 if res.errors and not res.items_indexed else 0

        if args.cmd == "stats":
            st = IndexService(cfg).stats()
            print(f"code_chunks: {st.code_chunks}")
            print(f"documents:   {st.documents}")
            return 0

        if args.cmd == "clear":
            IndexService(cfg).clear_index()
            print("Index cleared.")
            return 0

        if args.cmd == "search":
            out = QueryService(cfg).retrieve(args.question, args.k)
            print(f"=== RESULTS ({len(out.results)}) ===")
            for i, r in enumerate(out.results, start=1):
                where = r.metadata.get("relative_path") or r.file_path or "?"
                print(f"[{i}] {r.score:.3f} {where} ({r.file_type or '?'}, {r.metadata.get('level', '?')})")
            print(f"\n=== CONTEXTS ({len(out.contexts)}) ===")
            _print_contexts(out.contexts)
            return 0

        if args.cmd == "ask":
            qs = QueryService(cfg, use_cloud=args.cloud)
            qs.validate_llm()
            retrieval = qs.retrieve(args.question, args.k)
            if args.show_contexts:
                print("=== CONTEXTS ===")
                _print_contexts(retrieval.contexts)
            print("\n=== ANSWER ===")
            if args.no_stream:
                print(qs.generate(args.question, retrieval=retrieval).strip())
            else:
                for piece in qs.generate_stream(args.question, retrieval=retrieval):
                    sys.stdout.write(piece)
                    sys.stdout.flush()
                print()
            return 0

        if args.cmd == "chat":
            qs = QueryService(cfg, use_cloud=args.cloud)
            qs.validate_llm()
            title = f"{cfg.project.name} RAG chat" if cfg.project.name else "RAG chat"
            return _chat_loop(ChatService(qs), args.k, title)

    except RagKitError as e:
        logger.debug("command failed", exc_info=True)
        print(f"Error: {e}", file=sys.stderr)
        return 1

    parser.print_help()
    return 2


if __name__ == "__main__":
    sys.exit(main())
