import logging
from pathlib import Path
from typing import Dict, List

from pypdf import PdfReader
from pypdf.errors import PdfReadError

from .clean import normalize_text

logger = logging.getLogger(__name__)


def parse_pdf(path: Path) -> List[Dict]:
    """One section per non-empty page; the page number travels in `page_no`."""
    try:
        reader = PdfReader(str(path))
    except PdfReadError as e:
        raise ValueError(f"Unreadable PDF {path.name}: {e}") from e
    sections = []
    for i, page in enumerate(reader.pages, start=1):
        try:
            txt = page.extract_text() or ""
        except (PdfReadError, KeyError, ValueError) as e:
            logger.warning("text extraction failed on %s page %d: %s", path.name, i, e)
            txt = ""
        txt = normalize_text(txt)
        if not txt:
            continue
        sections.append(
            {
                "level": "pdf-page",
                "title": f"Page {i}",
                "heading_depth": 0,
                "page_no": i,
                "text": txt,
            }
        )
    return sections
