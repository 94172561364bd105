from rag_kit.ingest.documents import chunk_document, chunk_section, split_text
from rag_kit.ingest.md_txt import parse_markdown
from rag_kit.ingest.scanner import DocumentScanner, ScannedDocument
from rag_kit.ingest.sheets import parse_csv_tsv


def test_split_text_short_text_is_whole():
    assert split_text("hello", 100, 10) == ["hello"]


def test_split_text_windows_overlap():
    text = "".join(chr(ord("a") + i % 26) for i in range(250))
    pieces = split_text(text, 100, 20)
    assert [len(p) for p in pieces] == [100, 100, 90]
    assert pieces[0][-20:] == pieces[1][:20]


def test_split_text_terminates_without_progress():
    assert len(split_text("x" * 500, 50, 50)) == 1
    assert len(split_text("x" * 500, 50, 80)) == 1


def test_parse_markdown_sections():
    sections = parse_markdown("intro line\n# Title\nbody\n## Sub\nmore\n## Empty\n")
    assert [(s["title"], s["heading_depth"], s["text"]) for s in sections] == [
        ("", 0, "intro line"),
        ("Title", 1, "body"),
        ("Sub", 2, "more"),
    ]


def test_markdown_chunks_carry_heading(tmp_path):
    p = tmp_path / "guide.md"
    p.write_text("# Setup\n\nRun the installer.\n", encoding="utf-8")
    doc = ScannedDocument(str(p), "guide.md", "markdown", "guide.md", p.stat().st_size)
    chunks = chunk_document(doc, chunk_size=1500, chunk_overlap=200)
    assert len(chunks) == 1
    c = chunks[0]
    assert c.chunk_type == "document"
    assert c.level == "markdown-section"
    assert c.content.startswith("# Setup\n\nRun the installer.")
    assert c.symbol_name == "Setup"
    assert c.start_line == 0 and c.end_line == 0


def test_pdf_page_number_lands_in_start_line():
    doc = ScannedDocument("/abs/manual.pdf", "manual.pdf", "pdf", "manual.pdf", 10)
    section = {"level": "pdf-page", "title": "Page 3", "heading_depth": 0, "page_no": 3, "text": "x" * 30}
    chunks = chunk_section(section, doc, 2, chunk_size=10, chunk_overlap=0)
    assert len(chunks) == 3
    assert all(c.start_line == 3 and c.end_line == 3 for c in chunks)
    assert len({c.chunk_id for c in chunks}) == 3


def test_csv_becomes_one_sheet(tmp_path):
    p = tmp_path / "rates.csv"
    p.write_text("plan,price\nbasic,10\npro,25\n,\n", encoding="utf-8")
    sheets = parse_csv_tsv(p)
    assert len(sheets) == 1
    assert sheets[0]["level"] == "excel-sheet"
    assert sheets[0]["title"] == "rates"
    assert sheets[0]["rows"] == 3
    assert sheets[0]["text"] == "plan,price\nbasic,10\npro,25"


def test_document_scanner_filters(tmp_path):
    (tmp_path / "a.md").write_text("# A\n", encoding="utf-8")
    (tmp_path / "b.txt").write_text("", encoding="utf-8")
    (tmp_path / "c.py").write_text("x = 1\n", encoding="utf-8")
    nm = tmp_path / "node_modules"
    nm.mkdir()
    (nm / "d.md").write_text("# D\n", encoding="utf-8")
    found = DocumentScanner().scan(tmp_path)
    assert [(d.relative_path, d.document_type) for d in found] == [("a.md", "markdown")]
