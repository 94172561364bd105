from __future__ import annotations

import ast
from abc import ABC, abstractmethod
from typing import Callable, Dict, List, NamedTuple, Optional

import tree_sitter_javascript
import tree_sitter_typescript
from tree_sitter import Language, Parser


class Symbol(NamedTuple):
    kind: str  # "class" | "method"
    name: str
    start_line: int
    end_line: int
    parent: Optional[str] = None
    decorators: tuple = ()


class SymbolParser(ABC):
    language: str

    @abstractmethod
    def parse(self, source: str) -> List[Symbol]:
        """Top-level symbols in source order. Raises SyntaxError on unparsable input."""


def _decorator_name(node: ast.expr) -> str:
    if isinstance(node, ast.Call):
        return _decorator_name(node.func)
    if isinstance(node, ast.Attribute):
        return f"{_decorator_name(node.value)}.{node.attr}"
    if isinstance(node, ast.Name):
        return node.id
    return ast.unparse(node)


def _span(node) -> tuple[int, int]:
    start = node.lineno
    decos = getattr(node, "decorator_list", None) or []
    if decos:
        start = min(start, min(d.lineno for d in decos))
    return start, node.end_lineno or node.lineno


def _decorators(node) -> tuple:
    return tuple(_decorator_name(d) for d in getattr(node, "decorator_list", None) or [])


_TYPE_ALIAS = getattr(ast, "TypeAlias", None)
_FUNCS = (ast.FunctionDef, ast.AsyncFunctionDef)


class PythonSymbolParser(SymbolParser):
    """Classes (and `type` aliases), their methods, and module-level functions."""

    language = "python"

    def parse(self, source: str) -> List[Symbol]:
        tree = ast.parse(source)
        out: List[Symbol] = []
        for node in tree.body:
            if isinstance(node, ast.ClassDef):
                start, end = _span(node)
                out.append(Symbol("class", node.name, start, end, None, _decorators(node)))
                for item in node.body:
                    if isinstance(item, _FUNCS):
                        s, e = _span(item)
                        out.append(Symbol("method", item.name, s, e, node.name, _decorators(item)))
            elif isinstance(node, _FUNCS):
                start, end = _span(node)
                out.append(Symbol("method", node.name, start, end, None, _decorators(node)))
            elif _TYPE_ALIAS is not None and isinstance(node, _TYPE_ALIAS):
                out.append(Symbol("class", node.name.id, node.lineno, node.end_lineno or node.lineno))
        return out


# ---------------- TypeScript / JavaScript (tree-sitter) ----------------

TS_CLASS_NODES = ("class_declaration", "abstract_class_declaration")
TS_TYPE_NODES = ("interface_declaration", "enum_declaration", "type_alias_declaration")
TS_FUNC_NODES = ("function_declaration", "generator_function_declaration")
TS_SYMBOL_NODES = TS_CLASS_NODES + TS_TYPE_NODES + TS_FUNC_NODES


def _row(point) -> int:
    return point[0] + 1


def _text(node) -> str:
    if node is None or node.text is None:
        return ""
    return node.text.decode("utf-8")


def _ts_decorator_name(node) -> str:
    expr = node.named_children[0] if node.named_children else None
    if expr is not None and expr.type == "call_expression":
        expr = expr.child_by_field_name("function")
    return _text(expr)


def _ts_decorators(nodes) -> tuple:
    return tuple(n for n in (_ts_decorator_name(d) for d in nodes) if n)


def _own_decorators(node) -> list:
    return [c for c in node.children if c.type == "decorator"]


def _first_row(node, decos) -> int:
    return min([_row(node.start_point)] + [_row(d.start_point) for d in decos])


class TreeSitterSymbolParser(SymbolParser):
    """
    Classes (plus interfaces, enums and type aliases), class methods and
    top-level functions of TypeScript / JavaScript sources, optionally
    wrapped in `export` statements.

    Decorators may sit on the export statement, on the declaration, or
    precede a method as class-body siblings. All of them are collected and
    the symbol span starts at the first one.
    """

    def __init__(self, language: str, grammar: Callable[[], object]):
        self.language = language
        self._grammar = grammar
        self._parser: Optional[Parser] = None

    def _get_parser(self) -> Parser:
        if self._parser is None:
            self._parser = Parser(Language(self._grammar()))
        return self._parser

    def _methods(self, body, parent: str) -> List[Symbol]:
        out: List[Symbol] = []
        pending: list = []
        for member in body.children:
            if member.type == "decorator":
                pending.append(member)
                continue
            if member.type == "method_definition":
                decos = pending + _own_decorators(member)
                name = _text(member.child_by_field_name("name"))
                if name:
                    out.append(Symbol("method", name, _first_row(member, decos), _row(member.end_point),
                                      parent, _ts_decorators(decos)))
            pending = []
        return out

    def _declaration(self, node, outer) -> List[Symbol]:
        name = _text(node.child_by_field_name("name"))
        if not name:
            return []
        decos = _own_decorators(outer) + (_own_decorators(node) if node is not outer else [])
        start, end = _first_row(outer, decos), _row(node.end_point)
        if node.type in TS_CLASS_NODES:
            out = [Symbol("class", name, start, end, None, _ts_decorators(decos))]
            body = node.child_by_field_name("body")
            if body is not None:
                out.extend(self._methods(body, name))
            return out
        if node.type in TS_TYPE_NODES:
            return [Symbol("class", name, start, end)]
        return [Symbol("method", name, start, end, None, _ts_decorators(decos))]

    def parse(self, source: str) -> List[Symbol]:
        root = self._get_parser().parse(source.encode("utf-8")).root_node
        if root.has_error:
            raise SyntaxError(f"unparsable {self.language} source")
        out: List[Symbol] = []
        for stmt in root.named_children:
            decl = stmt
            if stmt.type == "export_statement":
                decl = stmt.child_by_field_name("declaration")
                if decl is None:
                    # `export default class ...` carries no declaration field
                    decl = next((c for c in stmt.named_children if c.type in TS_SYMBOL_NODES), None)
                if decl is None:
                    continue
            if decl.type in TS_SYMBOL_NODES:
                out.extend(self._declaration(decl, stmt))
        return out


PARSERS: Dict[str, SymbolParser] = {
    "python": PythonSymbolParser(),
    "typescript": TreeSitterSymbolParser("typescript", tree_sitter_typescript.language_typescript),
    "typescript-react": TreeSitterSymbolParser("typescript-react", tree_sitter_typescript.language_tsx),
    "javascript": TreeSitterSymbolParser("javascript", tree_sitter_javascript.language),
    "javascript-react": TreeSitterSymbolParser("javascript-react", tree_sitter_javascript.language),
}


def get_parser(language: str) -> Optional[SymbolParser]:
    """Capability lookup: a parser for `language`, or None when only size-based chunking applies."""
    return PARSERS.get(language)
