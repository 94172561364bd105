from __future__ import annotations

import json
import logging
from typing import Any, Dict, Iterator

import requests

logger = logging.getLogger(__name__)


def iter_sse_json(response: requests.Response) -> Iterator[Dict[str, Any]]:
    """Decode `data: {...}` server-sent events; stops at `data: [DONE]`."""
    for line in response.iter_lines(decode_unicode=True):
        if not line or not line.startswith("data:"):
            continue
        body = line[len("data:"):].strip()
        if body == "[DONE]":
            return
        try:
            yield json.loads(body)
        except json.JSONDecodeError:
            logger.debug("skipping malformed SSE payload: %r", body[:80])
