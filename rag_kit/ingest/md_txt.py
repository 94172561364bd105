import re
from pathlib import Path
from typing import Dict, List

HEADING = re.compile(r"^(#{1,6})\s+(.+)$")


def _section(title: str, depth: int, text: str) -> Dict:
    return {
        "level": "markdown-section",
        "title": title,
        "heading_depth": depth,
        "page_no": None,
        "text": text,
    }


def parse_markdown(text: str) -> List[Dict]:
    """Split on ATX headings; text before the first heading is an untitled section."""
    sections: List[Dict] = []
    title, depth, buf = "", 0, []

    def push():
        body = "\n".join(buf).strip()
        if body:
            sections.append(_section(title, depth, body))

    for ln in text.replace("\r\n", "\n").split("\n"):
        m = HEADING.match(ln)
        if m:
            push()
            title, depth, buf = m.group(2).strip(), len(m.group(1)), []
        else:
            buf.append(ln)
    push()

    if not sections and text.strip():
        sections.append(_section("", 0, text.strip()))
    return sections


def parse_md_or_txt(path: Path) -> List[Dict]:
    text = path.read_text(encoding="utf-8", errors="ignore")
    if path.suffix.lower() == ".md":
        return parse_markdown(text)
    if not text.strip():
        return []
    return [
        {
            "level": "text",
            "title": "",
            "heading_depth": 0,
            "page_no": None,
            "text": text.strip(),
        }
    ]
