from __future__ import annotations

import logging
import re
from dataclasses import dataclass
from fnmatch import fnmatch
from pathlib import Path
from typing import List, Optional

from ..config import IndexConfig, ServiceConfig
from ..errors import ConfigError

logger = logging.getLogger(__name__)

MAX_DOCUMENT_SIZE = 10 * 1024 * 1024

LANGUAGES = {
    ".py": "python",
    ".ts": "typescript",
    ".tsx": "typescript-react",
    ".js": "javascript",
    ".jsx": "javascript-react",
    ".go": "go",
    ".java": "java",
    ".rs": "rust",
    ".rb": "ruby",
    ".php": "php",
    ".kt": "kotlin",
    ".cs": "csharp",
    ".cpp": "cpp",
    ".c": "c",
}

# Last dotted/underscored token of the file stem -> file type
# (user.controller.ts, payment_service.py, order-entity.ts)
STEM_TYPES = {
    "controller": "controller",
    "service": "service",
    "services": "service",
    "module": "module",
    "entity": "entity",
    "dto": "dto",
    "guard": "guard",
    "interceptor": "interceptor",
    "pipe": "pipe",
    "middleware": "middleware",
    "resolver": "resolver",
    "gateway": "gateway",
    "strategy": "strategy",
    "repository": "repository",
    "interface": "interface",
    "enum": "enum",
    "config": "config",
    "configuration": "config",
    "settings": "config",
    "spec": "test",
    "test": "test",
    "models": "model",
    "schemas": "model",
    "routes": "route",
    "router": "route",
    "views": "route",
}

# Directory (or extension) hints, checked in order when the stem says nothing
PATH_TYPES = [
    ("/tests/", "test"),
    ("/components/", "component"),
    (".tsx", "component"),
    (".jsx", "component"),
    ("/pages/", "page"),
    ("/app/", "page"),
    ("/hooks/", "hook"),
    ("/utils/", "util"),
    ("/util/", "util"),
    ("/helpers/", "util"),
    ("/models/", "model"),
    ("/schemas/", "model"),
    ("/routes/", "route"),
    ("/router", "route"),
]


def detect_file_type(path: str) -> str:
    p = Path(path)
    name = p.name.lower()
    if name.startswith("test_"):
        return "test"
    tokens = [t for t in re.split(r"[._-]", p.stem.lower()) if t]
    if len(tokens) > 1 or (tokens and tokens[-1] in {"models", "schemas", "routes", "views", "settings"}):
        hit = STEM_TYPES.get(tokens[-1])
        if hit:
            return hit
    low = "/" + p.as_posix().lower()
    for needle, ftype in PATH_TYPES:
        if needle in low:
            return ftype
    return "unknown"


def detect_language(path: str) -> str:
    return LANGUAGES.get(Path(path).suffix.lower(), "unknown")


@dataclass(frozen=True)
class FilePath:
    file_path: str
    relative_path: str
    service_name: str


@dataclass(frozen=True)
class ScannedFile:
    file_path: str
    relative_path: str
    service_name: str
    file_type: str
    language: str
    content: str

    @property
    def line_count(self) -> int:
        return len(self.content.split("\n"))


def _excluded(rel: str, patterns: List[str]) -> bool:
    rel = rel.replace("\\", "/")
    return any(fnmatch(rel, pat) or fnmatch("/" + rel, pat) for pat in patterns)


class FileScanner:
    def __init__(self, cfg: IndexConfig):
        self.cfg = cfg
        self.root = Path(cfg.target_path).resolve()

    def _list_service(self, svc: ServiceConfig) -> List[FilePath]:
        svc_dir = (self.root / svc.path).resolve()
        seen = set()
        out: List[FilePath] = []
        for pattern in self.cfg.include_patterns:
            for f in sorted(svc_dir.glob(pattern)):
                if not f.is_file() or f in seen:
                    continue
                if _excluded(f.relative_to(svc_dir).as_posix(), self.cfg.exclude_patterns):
                    continue
                seen.add(f)
                out.append(FilePath(str(f), f.relative_to(self.root).as_posix(), svc.name))
        return out

    def list_files(self) -> List[FilePath]:
        if not self.cfg.services:
            root_svc = ServiceConfig(name=self.root.name or "root", path=".", role="root")
            return self._list_service(root_svc)
        out: List[FilePath] = []
        for svc in self.cfg.services:
            out.extend(self._list_service(svc))
        return out

    def list_service_files(self, service_name: str) -> List[FilePath]:
        for svc in self.cfg.services:
            if svc.name == service_name:
                return self._list_service(svc)
        known = ", ".join(s.name for s in self.cfg.services) or "(none configured)"
        raise ConfigError(f"Unknown service: {service_name}. Available: {known}")

    def read_file(self, fp: FilePath) -> Optional[ScannedFile]:
        path = Path(fp.file_path)
        size = path.stat().st_size
        if size == 0 or size > self.cfg.max_file_size:
            logger.debug("skipping %s (%d bytes)", fp.relative_path, size)
            return None
        content = path.read_text(encoding="utf-8", errors="ignore")
        return ScannedFile(
            file_path=fp.file_path,
            relative_path=fp.relative_path,
            service_name=fp.service_name,
            file_type=detect_file_type(fp.file_path),
            language=detect_language(fp.file_path),
            content=content,
        )


DOCUMENT_TYPES = {
    ".pdf": "pdf",
    ".xlsx": "excel",
    ".csv": "excel",
    ".tsv": "excel",
    ".md": "markdown",
    ".txt": "text",
}
DOCUMENT_IGNORE = ("node_modules", "dist", ".git", "build")


@dataclass(frozen=True)
class ScannedDocument:
    file_path: str
    relative_path: str
    document_type: str
    file_name: str
    size_bytes: int


class DocumentScanner:
    def scan(self, dir_path: str | Path) -> List[ScannedDocument]:
        root = Path(dir_path).resolve()
        if root.is_file():
            candidates, base = [root], root.parent
        else:
            candidates, base = sorted(root.rglob("*")), root
        docs: List[ScannedDocument] = []
        for f in candidates:
            if not f.is_file():
                continue
            dtype = DOCUMENT_TYPES.get(f.suffix.lower())
            if dtype is None:
                continue
            rel = f.relative_to(base)
            if any(part in DOCUMENT_IGNORE for part in rel.parts[:-1]):
                continue
            size = f.stat().st_size
            if size == 0 or size > MAX_DOCUMENT_SIZE:
                continue
            docs.append(ScannedDocument(str(f), rel.as_posix(), dtype, f.name, size))
        return docs
