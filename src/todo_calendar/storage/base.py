from __future__ import annotations

from typing import Any, Protocol


class StorageError(RuntimeError):
    """Stored document exists but cannot be decoded."""

    def __init__(self, key: str, message: str) -> None:
        super().__init__(f"{message} (key={key})")
        self.key = key


class KeyValueStore(Protocol):
    """
    Minimal document store contract.

    - get returns the decoded document or None when the key is absent
    - set replaces the whole document and reports success as a bool
    """

    def get(self, key: str) -> Any | None: ...

    def set(self, key: str, document: Any) -> bool: ...
