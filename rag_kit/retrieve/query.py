from __future__ import annotations

import re
from typing import List, Optional, Sequence, Tuple

from ..config import ServiceConfig
from ..index.schema import QueryAnalysis

# Checked in this order; first substring hit wins
FILE_TYPE_KEYWORDS = (
    "controller",
    "service",
    "entity",
    "module",
    "dto",
    "guard",
    "interceptor",
    "pipe",
    "middleware",
    "resolver",
    "gateway",
    "strategy",
    "repository",
    "component",
    "page",
    "hook",
    "util",
    "model",
    "route",
)

STOP_WORDS = frozenset(
    [
        # Korean particles / endings
        "의", "에서", "를", "이", "가", "은", "는", "에", "로", "으로",
        "와", "과", "도", "만", "부터", "까지", "한", "할", "하는", "된",
        # English
        "the", "is", "a", "an", "in", "on", "at", "to", "for", "of",
        "how", "what", "where", "when", "why", "which", "who",
        "and", "or", "but", "not", "this", "that", "it", "be",
        "are", "was", "were", "been", "has", "have", "had", "do", "does",
    ]
)

ARCHITECTURAL_KEYWORDS = (
    "구조", "아키텍처", "architecture", "structure", "설계",
    "design", "흐름", "flow", "전체", "overview", "diagram",
    "패턴", "pattern", "의존성", "dependency",
)

ENTITY_NAME = re.compile(r"\b([A-Z][a-z]+(?:[A-Z][a-z]+)*)\b")
KEYWORD_SPLIT = re.compile(r"[\s,;.!?]+")


def _unique(items) -> List[str]:
    return list(dict.fromkeys(items))


class QueryAnalyzer:
    """Pure, per-query extraction of search hints. Service patterns are compiled once."""

    def __init__(self, services: Sequence[ServiceConfig] = ()):
        self.service_patterns: List[Tuple[re.Pattern, str]] = []
        for svc in services:
            # re.escape turns "-" into "\-"; hyphens become optional separators
            full = re.escape(svc.name).replace(r"\-", r"[-\s]?")
            self.service_patterns.append((re.compile(full, re.I), svc.name))
        for svc in services:
            short = svc.name.rsplit("-", 1)[-1]
            if short and short != svc.name:
                self.service_patterns.append((re.compile(rf"\b{re.escape(short)}\b", re.I), svc.name))

    def service_filter(self, query: str) -> Optional[str]:
        for pattern, name in self.service_patterns:
            if pattern.search(query):
                return name
        return None

    @staticmethod
    def file_type_filter(query: str) -> Optional[str]:
        low = query.lower()
        for kw in FILE_TYPE_KEYWORDS:
            if kw in low:
                return kw
        return None

    @staticmethod
    def entity_names(query: str) -> List[str]:
        names = [m for m in ENTITY_NAME.findall(query) if len(m) > 2 and m.lower() not in STOP_WORDS]
        return _unique(names)

    @staticmethod
    def keywords(query: str) -> List[str]:
        words = (w.strip().lower() for w in KEYWORD_SPLIT.split(query))
        return _unique(w for w in words if len(w) > 1 and w not in STOP_WORDS)

    @staticmethod
    def is_architectural(query: str) -> bool:
        low = query.lower()
        return any(kw in low for kw in ARCHITECTURAL_KEYWORDS)

    def analyze(self, query: str) -> QueryAnalysis:
        return QueryAnalysis(
            original_query=query,
            keywords=self.keywords(query),
            service_filter=self.service_filter(query),
            file_type_filter=self.file_type_filter(query),
            entity_names=self.entity_names(query),
            is_architectural=self.is_architectural(query),
        )
