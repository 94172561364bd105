import re

BULLETS = ("•", "◦", "‣", "▪", "▸", "►", "●", "○", "■", "□", "·")


def normalize_text(s: str) -> str:
    """Tidy extracted document text: line endings, bullets, nbsp, soft hyphens, blank runs."""
    if not s:
        return ""
    s = s.replace("\r\n", "\n").replace("\r", "\n")
    s = s.replace("\u00a0", " ").replace("\u00ad", "")
    for b in BULLETS:
        s = s.replace(b + " ", "- ").replace(b, "- ")
    # "configu-\nration" -> "configuration"
    s = re.sub(r"(\w)-\n(\w)", r"\1\2", s)
    s = re.sub(r"[ \t]{2,}", " ", s)
    s = re.sub(r"[ \t]+\n", "\n", s)
    s = re.sub(r"\n{3,}", "\n\n", s)
    return s.strip()


def clean_cell(value) -> str:
    if value is None:
        return ""
    text = str(value).replace("\r", " ").replace("\n", " ")
    return re.sub(r"\s{2,}", " ", text).strip()
