from __future__ import annotations

import json
from typing import Any

from loguru import logger


class MemoryKeyValueStore:
    """In-process document store. Documents are kept as JSON text so callers never share references."""

    def __init__(self, initial: dict[str, Any] | None = None) -> None:
        self._data: dict[str, str] = {}
        for key, document in (initial or {}).items():
            self._data[key] = json.dumps(document, ensure_ascii=False)

    def get(self, key: str) -> Any | None:
        raw = self._data.get(key)
        if raw is None:
            return None
        return json.loads(raw)

    def set(self, key: str, document: Any) -> bool:
        try:
            self._data[key] = json.dumps(document, ensure_ascii=False)
        except (TypeError, ValueError) as exc:
            logger.error("kv_set_encode_failed key={} err={}", key, type(exc).__name__)
            return False
        return True
