from __future__ import annotations

import logging
from pathlib import Path
from typing import Dict, List

from ..index.schema import Chunk, make_chunk_id
from .md_txt import parse_md_or_txt
from .pdf import parse_pdf
from .scanner import ScannedDocument
from .sheets import parse_spreadsheet

logger = logging.getLogger(__name__)


def split_text(text: str, chunk_size: int, chunk_overlap: int) -> List[str]:
    """
    Character windows of `chunk_size` with `chunk_overlap` overlap.

    A text that fits is returned whole. Blank windows are dropped, and the
    loop stops as soon as the next window would not start further along.
    """
    if len(text) <= chunk_size:
        return [text]
    pieces: List[str] = []
    start = 0
    while start < len(text):
        end = min(start + chunk_size, len(text))
        piece = text[start:end]
        if piece.strip():
            pieces.append(piece)
        if end >= len(text):
            break
        nxt = end - chunk_overlap
        if nxt <= start:
            break
        start = nxt
    return pieces


def _section_text(section: Dict) -> str:
    title = section.get("title") or ""
    depth = int(section.get("heading_depth") or 0)
    if section["level"] == "markdown-section" and title:
        return f"{'#' * max(depth, 1)} {title}\n\n{section['text']}"
    return section["text"]


def chunk_section(section: Dict, doc: ScannedDocument, section_index: int,
                  chunk_size: int, chunk_overlap: int) -> List[Chunk]:
    page = int(section.get("page_no") or 0)
    title = section.get("title") or ""
    chunks = []
    for seq, piece in enumerate(split_text(_section_text(section), chunk_size, chunk_overlap)):
        chunks.append(
            Chunk(
                chunk_id=make_chunk_id(doc.file_path, section["level"], f"{section_index}:{title}", page, seq),
                content=piece,
                level=section["level"],
                chunk_type="document",
                file_path=doc.file_path,
                relative_path=doc.relative_path,
                file_type=doc.document_type,
                start_line=page,
                end_line=page,
                symbol_name=title or None,
            )
        )
    return chunks


PARSERS = {
    "pdf": parse_pdf,
    "excel": parse_spreadsheet,
    "markdown": parse_md_or_txt,
    "text": parse_md_or_txt,
}


def load_sections(doc: ScannedDocument) -> List[Dict]:
    parser = PARSERS.get(doc.document_type)
    if parser is None:
        raise ValueError(f"Unsupported document type: {doc.document_type}")
    return parser(Path(doc.file_path))


def chunk_document(doc: ScannedDocument, chunk_size: int, chunk_overlap: int) -> List[Chunk]:
    sections = load_sections(doc)
    chunks: List[Chunk] = []
    for i, section in enumerate(sections):
        chunks.extend(chunk_section(section, doc, i, chunk_size, chunk_overlap))
    logger.debug("%s: %d sections -> %d chunks", doc.relative_path, len(sections), len(chunks))
    return chunks
