import csv
import io
from pathlib import Path
from typing import Dict, Iterable, List

from openpyxl import load_workbook

from .clean import clean_cell

MAX_ROWS_PER_SHEET = 10_000


def _render(rows: Iterable[Iterable], sep: str = ",") -> tuple[str, int]:
    """Rows -> CSV text, trailing empty cells and empty rows dropped."""
    buf = io.StringIO()
    writer = csv.writer(buf, delimiter=sep, lineterminator="\n")
    count = 0
    for row in rows:
        if count >= MAX_ROWS_PER_SHEET:
            break
        cells = [clean_cell(c) for c in row]
        while cells and not cells[-1]:
            cells.pop()
        if not cells:
            continue
        writer.writerow(cells)
        count += 1
    return buf.getvalue().strip(), count


def _sheet(name: str, text: str, rows: int) -> Dict:
    return {
        "level": "excel-sheet",
        "title": name,
        "heading_depth": 0,
        "page_no": None,
        "text": text,
        "rows": rows,
    }


def parse_xlsx(path: Path) -> List[Dict]:
    wb = load_workbook(str(path), read_only=True, data_only=True)
    try:
        sections = []
        for ws in wb.worksheets:
            text, rows = _render(ws.iter_rows(values_only=True))
            if text:
                sections.append(_sheet(ws.title, text, rows))
        return sections
    finally:
        wb.close()


def parse_csv_tsv(path: Path) -> List[Dict]:
    sep = "\t" if path.suffix.lower() == ".tsv" else ","
    with open(path, "r", encoding="utf-8", errors="ignore", newline="") as f:
        text, rows = _render(csv.reader(f, delimiter=sep), sep=sep)
    return [_sheet(path.stem, text, rows)] if text else []


def parse_spreadsheet(path: Path) -> List[Dict]:
    if path.suffix.lower() == ".xlsx":
        return parse_xlsx(path)
    return parse_csv_tsv(path)
