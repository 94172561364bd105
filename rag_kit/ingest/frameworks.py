from __future__ import annotations

import re
from abc import ABC, abstractmethod
from dataclasses import dataclass, field
from typing import Dict, List, Optional, Sequence

from .scanner import ScannedFile


@dataclass
class FrameworkInfo:
    framework: str
    role: Optional[str]
    summary: str
    details: Dict[str, list] = field(default_factory=dict)


class FrameworkAnalyzer(ABC):
    name: str

    @abstractmethod
    def can_analyze(self, content: str) -> bool:
        ...

    @abstractmethod
    def analyze(self, file: ScannedFile) -> FrameworkInfo:
        ...


def _generic_summary(file: ScannedFile) -> str:
    return f"{file.file_type} file ({file.service_name}). {file.language}, {file.line_count} lines"


def _bracket_body(text: str, start: int) -> str:
    """Contents of the first [...] at or after `start`, honouring nesting."""
    depth, open_at = 0, -1
    for i in range(start, len(text)):
        ch = text[i]
        if ch == "[":
            if depth == 0:
                open_at = i + 1
            depth += 1
        elif ch == "]" and depth:
            depth -= 1
            if depth == 0:
                return text[open_at:i]
    return ""


# ---------------- NestJS ----------------

HTTP_METHODS = ("Get", "Post", "Put", "Delete", "Patch")
RELATION_TYPES = ("OneToOne", "OneToMany", "ManyToOne", "ManyToMany")
NEST_MARKERS = re.compile(r"@(?:Module|Controller|Injectable|Entity)\s*\(")


class NestJsAnalyzer(FrameworkAnalyzer):
    name = "nestjs"

    def can_analyze(self, content: str) -> bool:
        return bool(NEST_MARKERS.search(content))

    @staticmethod
    def module_imports(content: str) -> List[str]:
        m = re.search(r"@Module\s*\(\s*\{", content)
        if not m:
            return []
        im = re.compile(r"imports\s*:\s*\[").search(content, m.start())
        if not im:
            return []
        out = []
        for item in _bracket_body(content, im.start()).split(","):
            item = item.strip()
            if not item:
                continue
            dyn = re.match(r"^(\w+)\.(forRoot|forRootAsync|forFeature|register|registerAsync)\s*\(", item)
            name = f"{dyn.group(1)}.{dyn.group(2)}" if dyn else re.sub(r"\(.*\)", "", item, flags=re.S).strip()
            if name:
                out.append(name)
        return out

    @staticmethod
    def controller_routes(content: str) -> List[str]:
        m = re.search(r"@Controller\s*\(\s*['\"]([^'\"]*)['\"]\s*\)", content)
        base = "/" + m.group(1).lstrip("/") if m else "/"
        routes = []
        pattern = re.compile(r"@(%s)\s*\(\s*(?:['\"]([^'\"]*)['\"])?\s*\)" % "|".join(HTTP_METHODS))
        for rm in pattern.finditer(content):
            sub = rm.group(2) or ""
            path = re.sub(r"/+", "/", f"{base}/{sub}") if sub else base
            routes.append(f"{rm.group(1).upper()} {path}")
        return routes

    @staticmethod
    def entity_relations(content: str) -> List[str]:
        pattern = re.compile(r"@(%s)\s*\(\s*\(\)\s*=>\s*(\w+)" % "|".join(RELATION_TYPES))
        return [f"{m.group(1)} -> {m.group(2)}" for m in pattern.finditer(content)]

    @staticmethod
    def injectable_deps(content: str) -> List[str]:
        m = re.search(r"constructor\s*\(([\s\S]*?)\)\s*\{", content)
        if not m:
            return []
        params = m.group(1)
        deps = re.findall(r"@Inject\s*\(\s*['\"]?(\w+)['\"]?\s*\)", params)
        for t in re.findall(r"(?:private|protected|public|readonly)\s+(?:readonly\s+)?\w+\s*:\s*(\w+)", params):
            if t not in deps:
                deps.append(t)
        return deps

    def analyze(self, file: ScannedFile) -> FrameworkInfo:
        c = file.content
        details = {
            "module_imports": self.module_imports(c),
            "routes": self.controller_routes(c),
            "relations": self.entity_relations(c),
            "dependencies": self.injectable_deps(c),
        }
        svc = file.service_name
        if re.search(r"@Module\s*\(", c):
            role = "module"
            summary = f"Module ({svc}). Imports: {', '.join(details['module_imports']) or 'none'}"
        elif re.search(r"@Controller\s*\(", c):
            role = "controller"
            summary = f"REST controller ({svc}). Routes: {', '.join(details['routes']) or 'none'}"
        elif re.search(r"@Entity\s*\(", c):
            role = "entity"
            summary = f"Entity ({svc}). Relations: {', '.join(details['relations']) or 'none'}"
        elif re.search(r"@Injectable\s*\(", c):
            role = "service"
            summary = f"Service ({svc}). Dependencies: {', '.join(details['dependencies']) or 'none'}"
        else:
            role, summary = None, _generic_summary(file)
        return FrameworkInfo(self.name, role, summary, details)


# ---------------- FastAPI ----------------

FASTAPI_IMPORT = re.compile(r"\bfrom\s+fastapi\b|\bimport\s+fastapi\b")
FASTAPI_ROUTE = re.compile(
    r"@(\w+)\.(get|post|put|delete|patch|head|options|websocket)\s*\(\s*(?:path\s*=\s*)?['\"]([^'\"]*)['\"]"
)


class FastApiAnalyzer(FrameworkAnalyzer):
    name = "fastapi"

    def can_analyze(self, content: str) -> bool:
        return bool(FASTAPI_IMPORT.search(content))

    def analyze(self, file: ScannedFile) -> FrameworkInfo:
        c = file.content
        prefixes = dict(re.findall(r"(\w+)\s*=\s*APIRouter\s*\([^)]*?prefix\s*=\s*['\"]([^'\"]*)['\"]", c))
        routes = []
        for obj, method, path in FASTAPI_ROUTE.findall(c):
            full = re.sub(r"/+", "/", f"{prefixes.get(obj, '')}/{path}") if path else prefixes.get(obj, "/") or "/"
            routes.append(f"{method.upper()} {full}")
        deps = []
        for d in re.findall(r"Depends\s*\(\s*(\w+)", c):
            if d not in deps:
                deps.append(d)
        details = {"routes": routes, "dependencies": deps}
        if routes:
            summary = f"API router ({file.service_name}). Routes: {', '.join(routes)}"
            if deps:
                summary += f". Dependencies: {', '.join(deps)}"
            return FrameworkInfo(self.name, "controller", summary, details)
        return FrameworkInfo(self.name, None, _generic_summary(file), details)


DEFAULT_ANALYZERS: Sequence[FrameworkAnalyzer] = (NestJsAnalyzer(), FastApiAnalyzer())


def analyze_file(file: ScannedFile,
                 analyzers: Optional[Sequence[FrameworkAnalyzer]] = None) -> Optional[FrameworkInfo]:
    """First analyzer that accepts the content wins; None when nothing applies."""
    for analyzer in analyzers if analyzers is not None else DEFAULT_ANALYZERS:
        if analyzer.can_analyze(file.content):
            return analyzer.analyze(file)
    return None
