from __future__ import annotations

from typing import List

from ..config import AppConfig
from ..index.schema import SearchContext

INSTRUCTIONS = (
    "Answer the question based on the provided context above.",
    "Cite the relevant file paths (e.g., [1] src/users/service.py) when referencing code.",
    "If the context does not contain enough information, clearly state the limitation.",
)


def build_system_prompt(cfg: AppConfig) -> str:
    parts: List[str] = []
    if cfg.project.name:
        parts.append(f"You are an expert assistant for {cfg.project.name}.")
    else:
        parts.append("You are an expert code and document assistant.")
    if cfg.project.description:
        parts.append(cfg.project.description)
    if cfg.prompts.system_context:
        parts.append(cfg.prompts.system_context)
    text = "\n".join(parts)

    if cfg.index.services:
        listing = "\n".join(f"- {s.name}: {s.framework} ({s.role})" for s in cfg.index.services)
        text += f"\n\nProject services:\n{listing}"
    if cfg.prompts.answer_guidelines:
        text += "\n\nGuidelines:\n" + "\n".join(f"- {g}" for g in cfg.prompts.answer_guidelines)
    return text


def context_header(ctx: SearchContext, index: int) -> str:
    pct = f"{ctx.score * 100:.1f}%"
    if ctx.chunk_type == "document":
        page = f", page {ctx.start_line}" if ctx.start_line and ctx.start_line > 0 else ""
        return f"[{index}] {ctx.file_path} ({ctx.file_type}{page}, {pct})"
    path = f"{ctx.service_name}/{ctx.file_path}" if ctx.service_name else ctx.file_path
    return f"[{index}] {path} ({ctx.file_type}, {pct})"


def build_rag_prompt(query: str, contexts: List[SearchContext], cfg: AppConfig) -> str:
    label = cfg.project.name or "knowledge base"
    lines = [
        "## Context",
        "",
        f"The following code snippets and documents are retrieved from the {label}:",
        "",
    ]
    for i, ctx in enumerate(contexts, start=1):
        lines.extend([f"{context_header(ctx, i)}\n{ctx.content}", ""])
    lines.extend(["## Question", "", query, "", "## Instructions", "", *INSTRUCTIONS])
    return "\n".join(lines)
