from rag_kit.index.schema import make_chunk_id
from rag_kit.ingest.chunker import CodeChunker
from rag_kit.ingest.scanner import ScannedFile


def _file(content, name="svc/thing.py", language="python", file_type="unknown"):
    return ScannedFile(
        file_path=f"/abs/{name}",
        relative_path=name,
        service_name="svc",
        file_type=file_type,
        language=language,
        content=content,
    )


def test_chunk_ids_are_deterministic():
    assert make_chunk_id("/a.py", "text", 1, 5, 0) == make_chunk_id("/a.py", "text", 1, 5, 0)
    assert make_chunk_id("/a.py", "text", 1, 5, 0) != make_chunk_id("/a.py", "text", 1, 5, 1)
    assert len(make_chunk_id("/a.py", "text", 1, 5, 0)) == 16

    f = _file("const a = 1\nconst b = 2\n", name="svc/a.ts", language="typescript")
    first = [c.chunk_id for c in CodeChunker().chunk_file(f)]
    second = [c.chunk_id for c in CodeChunker().chunk_file(f)]
    assert first == second


def test_one_line_file_gives_one_content_chunk():
    f = _file("export const x = 1", name="svc/x.ts", language="typescript")
    chunks = CodeChunker().chunk_file(f)
    assert [c.level for c in chunks] == ["file-summary", "text"]
    assert chunks[1].start_line == 1 and chunks[1].end_line == 1


def test_size_windows_overlap_and_terminate():
    lines = "\n".join(f"let v{i} = {i}" for i in range(1, 101))
    f = _file(lines, name="svc/big.js", language="javascript")
    # 800 // 80 = 10 lines per chunk, 160 // 80 = 2 lines overlap
    chunks = CodeChunker(chunk_size=800, chunk_overlap=160).split_by_size(f)
    assert chunks[0].start_line == 1 and chunks[0].end_line == 10
    assert chunks[1].start_line == 9
    assert chunks[-1].end_line == 100

    # overlap >= window must not loop forever
    stuck = CodeChunker(chunk_size=160, chunk_overlap=160).split_by_size(f)
    assert len(stuck) == 1


def test_blank_windows_are_skipped():
    f = _file("a = 1\n\n\n\n\n\nb = 2", name="svc/gaps.txt", language="unknown")
    chunks = CodeChunker(chunk_size=160, chunk_overlap=0).split_by_size(f)
    assert all(c.content.strip() for c in chunks)
    assert len(chunks) == 2


def test_python_symbols():
    src = (
        "import os\n"
        "from typing import List\n"
        "\n"
        "\n"
        "@dataclass\n"
        "class Order:\n"
        "    def total(self):\n"
        "        return 1\n"
        "\n"
        "    @property\n"
        "    def empty(self):\n"
        "        return False\n"
        "\n"
        "\n"
        "def _helper():\n"
        "    pass\n"
    )
    chunks = CodeChunker().chunk_file(_file(src))
    summary, rest = chunks[0], chunks[1:]
    assert summary.level == "file-summary"
    assert summary.start_line == 0 and summary.end_line == 0
    assert "# File: svc/thing.py" in summary.content
    assert "# Lines: 17" in summary.content
    assert "class Order:" in summary.content
    assert "def _helper" not in summary.content
    assert summary.imports == ["os", "typing"]
    assert summary.exports == ["Order"]

    by_name = {c.symbol_name: c for c in rest}
    order = by_name["Order"]
    assert order.level == "class"
    assert order.start_line == 5 and order.end_line == 12
    assert order.decorators == ["dataclass"]
    empty = by_name["empty"]
    assert empty.level == "method"
    assert empty.parent_symbol == "Order"
    assert empty.start_line == 10
    assert by_name["_helper"].parent_symbol is None


def test_unparsable_python_falls_back_to_size():
    chunks = CodeChunker().chunk_file(_file("def broken(:\n    pass\n"))
    assert [c.level for c in chunks] == ["file-summary", "text"]


def test_python_without_symbols_falls_back_to_size():
    chunks = CodeChunker().chunk_file(_file("X = 1\nY = 2\n"))
    assert [c.level for c in chunks] == ["file-summary", "text"]


def test_ts_summary_lists_imports_and_exports():
    src = (
        "import { Injectable } from '@nestjs/common';\n"
        "import { Repo } from './repo';\n"
        "\n"
        "@Injectable()\n"
        "export class UserService {\n"
        "  constructor(private readonly repo: Repo) {}\n"
        "}\n"
    )
    f = _file(src, name="users/user.service.ts", language="typescript", file_type="service")
    summary = CodeChunker().chunk_file(f)[0]
    assert summary.content.startswith("// File: users/user.service.ts")
    assert "// Type: service" in summary.content
    assert "// Framework: nestjs (service)" in summary.content
    assert "// Dependencies: Repo" in summary.content
    assert "// Routes:" not in summary.content
    assert "Dependencies: Repo" in summary.content
    assert summary.imports == ["@nestjs/common", "./repo"]
    assert summary.exports == ["UserService"]
    assert summary.decorators == ["Injectable"]


NEST_CONTROLLER = (
    "import { Controller, Get, Param } from '@nestjs/common';\n"
    "import { OrdersService } from './orders.service';\n"
    "\n"
    "@Controller('orders')\n"
    "export class OrdersController {\n"
    "  constructor(private readonly orders: OrdersService) {}\n"
    "\n"
    "  @Get(':id')\n"
    "  findOne(@Param('id') id: string) {\n"
    "    return this.orders.find(id);\n"
    "  }\n"
    "}\n"
    "\n"
    "export function toDto(order: unknown): string {\n"
    "  return String(order);\n"
    "}\n"
)


def test_typescript_symbols():
    f = _file(NEST_CONTROLLER, name="orders/orders.controller.ts", language="typescript",
              file_type="controller")
    chunks = CodeChunker().chunk_file(f)
    assert [c.level for c in chunks] == ["file-summary", "class", "method", "method", "method"]

    by_name = {c.symbol_name: c for c in chunks[1:]}
    ctrl = by_name["OrdersController"]
    assert ctrl.start_line == 4 and ctrl.end_line == 12
    assert ctrl.decorators == ["Controller"]
    assert ctrl.content.startswith("@Controller('orders')")

    find_one = by_name["findOne"]
    assert find_one.parent_symbol == "OrdersController"
    assert find_one.decorators == ["Get"]
    assert find_one.start_line == 8 and find_one.end_line == 11

    assert by_name["constructor"].parent_symbol == "OrdersController"
    assert by_name["constructor"].decorators == []

    to_dto = by_name["toDto"]
    assert to_dto.parent_symbol is None
    assert to_dto.start_line == 14 and to_dto.end_line == 16


def test_javascript_symbols():
    src = (
        "class Cart {\n"
        "  total() {\n"
        "    return 0;\n"
        "  }\n"
        "}\n"
        "\n"
        "function checkout(cart) {\n"
        "  return cart.total();\n"
        "}\n"
    )
    chunks = CodeChunker().chunk_file(_file(src, name="svc/cart.js", language="javascript"))
    assert [(c.level, c.symbol_name, c.parent_symbol) for c in chunks[1:]] == [
        ("class", "Cart", None),
        ("method", "total", "Cart"),
        ("method", "checkout", None),
    ]


def test_unparsable_typescript_falls_back_to_size():
    f = _file("export class {{{ (\n", name="svc/bad.ts", language="typescript")
    chunks = CodeChunker().chunk_file(f)
    assert [c.level for c in chunks] == ["file-summary", "text"]
