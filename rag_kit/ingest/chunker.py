from __future__ import annotations

import logging
import re
from typing import List, Optional, Sequence

from ..index.schema import Chunk, make_chunk_id
from .frameworks import FrameworkAnalyzer, analyze_file
from .scanner import ScannedFile
from .symbols import get_parser

logger = logging.getLogger(__name__)

MAX_SUMMARY_IMPORTS = 10
MAX_SUMMARY_EXPORTS = 10
CHARS_PER_LINE = 80

PY_IMPORT = re.compile(r"^(?:from\s+([\w.]+)\s+import\b|import\s+([\w.]+))")
PY_EXPORT = re.compile(r"^(?:async\s+def|def|class)\s+([A-Za-z]\w*)")
JS_IMPORT_FROM = re.compile(r"import\s+.*?\s+from\s+['\"](.+?)['\"]")
JS_EXPORT = re.compile(r"export\s+(?:default\s+)?(?:abstract\s+)?(?:class|function|const|interface|type|enum)\s+(\w+)")
JS_DECORATOR = re.compile(r"@(\w+)\(")


def _is_python(language: str) -> bool:
    return language == "python"


def import_lines(lines: Sequence[str], language: str) -> List[str]:
    if _is_python(language):
        return [ln for ln in lines if ln.startswith(("import ", "from "))]
    return [ln for ln in lines if ln.startswith("import ")]


def export_lines(lines: Sequence[str], language: str) -> List[str]:
    if _is_python(language):
        return [ln for ln in lines if PY_EXPORT.match(ln)]
    return [ln for ln in lines if "export " in ln]


def extract_imports(content: str, language: str) -> List[str]:
    if _is_python(language):
        out = []
        for ln in content.split("\n"):
            m = PY_IMPORT.match(ln)
            if m:
                out.append(m.group(1) or m.group(2))
        return out
    return JS_IMPORT_FROM.findall(content)


def extract_exports(content: str, language: str) -> List[str]:
    if _is_python(language):
        matches = (PY_EXPORT.match(ln) for ln in content.split("\n"))
        return [m.group(1) for m in matches if m]
    return JS_EXPORT.findall(content)


class CodeChunker:
    """
    Multi-level chunking of one source file.

    Always one `file-summary` chunk, then either symbol chunks (`class` /
    `method`, when a parser exists for the language and the file parses)
    or line windows (`text`).
    """

    def __init__(self, chunk_size: int = 1500, chunk_overlap: int = 200,
                 analyzers: Optional[Sequence[FrameworkAnalyzer]] = None):
        self.chunk_size = chunk_size
        self.chunk_overlap = chunk_overlap
        self.analyzers = analyzers

    # ---- level 1 ----
    def summary_text(self, file: ScannedFile) -> str:
        lines = file.content.split("\n")
        mark = "#" if _is_python(file.language) else "//"
        parts = [
            f"{mark} File: {file.relative_path}",
            f"{mark} Service: {file.service_name}",
            f"{mark} Type: {file.file_type}",
            f"{mark} Lines: {len(lines)}",
        ]
        info = analyze_file(file, self.analyzers)
        if info is not None:
            role = f" ({info.role})" if info.role else ""
            parts.append(f"{mark} Framework: {info.framework}{role}")
            parts.append(f"{mark} Summary: {info.summary}")
            for key, values in info.details.items():
                if values:
                    parts.append(f"{mark} {key.replace('_', ' ').capitalize()}: {', '.join(values)}")
        parts.append("")
        imports = import_lines(lines, file.language)[:MAX_SUMMARY_IMPORTS]
        if imports:
            parts.extend([f"{mark} Imports:", *imports, ""])
        exports = export_lines(lines, file.language)[:MAX_SUMMARY_EXPORTS]
        if exports:
            parts.extend([f"{mark} Exports:", *exports])
        return "\n".join(parts).rstrip("\n")

    def _summary(self, file: ScannedFile) -> Chunk:
        decorators = [] if _is_python(file.language) else list(dict.fromkeys(JS_DECORATOR.findall(file.content)))
        return Chunk(
            chunk_id=make_chunk_id(file.file_path, "file-summary", 0, 0, 0),
            content=self.summary_text(file),
            level="file-summary",
            file_path=file.file_path,
            relative_path=file.relative_path,
            service_name=file.service_name,
            file_type=file.file_type,
            language=file.language,
            imports=extract_imports(file.content, file.language),
            exports=extract_exports(file.content, file.language),
            decorators=decorators,
        )

    def _chunk(self, file: ScannedFile, level: str, content: str, start: int, end: int,
               seq: int, **extra) -> Chunk:
        return Chunk(
            chunk_id=make_chunk_id(file.file_path, level, start, end, seq),
            content=content,
            level=level,
            file_path=file.file_path,
            relative_path=file.relative_path,
            service_name=file.service_name,
            file_type=file.file_type,
            language=file.language,
            start_line=start,
            end_line=end,
            **extra,
        )

    # ---- level 2/3 ----
    def split_by_symbols(self, file: ScannedFile) -> Optional[List[Chunk]]:
        parser = get_parser(file.language)
        if parser is None:
            return None
        try:
            symbols = parser.parse(file.content)
        except (SyntaxError, ValueError) as e:
            logger.debug("symbol parse failed for %s: %s", file.relative_path, e)
            return None
        if not symbols:
            return None
        lines = file.content.split("\n")
        chunks = []
        for seq, sym in enumerate(symbols):
            body = "\n".join(lines[sym.start_line - 1 : sym.end_line])
            if not body.strip():
                continue
            chunks.append(
                self._chunk(
                    file, sym.kind, body, sym.start_line, sym.end_line, seq,
                    symbol_name=sym.name,
                    parent_symbol=sym.parent,
                    decorators=list(sym.decorators),
                )
            )
        return chunks or None

    def split_by_size(self, file: ScannedFile) -> List[Chunk]:
        lines = file.content.split("\n")
        per_chunk = max(1, self.chunk_size // CHARS_PER_LINE)
        overlap = max(0, self.chunk_overlap // CHARS_PER_LINE)
        chunks: List[Chunk] = []
        start = 0
        while start < len(lines):
            end = min(start + per_chunk, len(lines))
            body = "\n".join(lines[start:end])
            if body.strip():
                decorators = list(dict.fromkeys(JS_DECORATOR.findall(body)))
                chunks.append(self._chunk(file, "text", body, start + 1, end, len(chunks),
                                          decorators=decorators))
            if end >= len(lines):
                break
            nxt = end - overlap
            if nxt <= start:
                break
            start = nxt
        return chunks

    def chunk_file(self, file: ScannedFile) -> List[Chunk]:
        chunks = [self._summary(file)]
        content = self.split_by_symbols(file)
        if content is None:
            content = self.split_by_size(file)
        chunks.extend(content)
        return chunks
