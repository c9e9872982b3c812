from __future__ import annotations

import json
from datetime import datetime, timezone
from typing import Any

from loguru import logger
from sqlalchemy.exc import SQLAlchemyError
from sqlalchemy.orm import Session, sessionmaker

from todo_calendar.db.models import KvDocument
from todo_calendar.db.session import get_session
from todo_calendar.storage.base import StorageError


class SqlKeyValueStore:
    """
    SQLite-backed document store.

    Every document lives in a single kv_documents row as JSON text;
    set() rewrites the row in one transaction.
    """

    def __init__(self, session_factory: sessionmaker[Session] | None = None) -> None:
        self._session_factory = session_factory

    def get(self, key: str) -> Any | None:
        try:
            with get_session(self._session_factory) as session:
                row = session.get(KvDocument, key)
                raw = row.value_json if row is not None else None
        except SQLAlchemyError as exc:
            raise StorageError(key, "Document read failed") from exc
        if raw is None:
            return None
        try:
            return json.loads(raw)
        except ValueError as exc:
            raise StorageError(key, "Stored document is not valid JSON") from exc

    def set(self, key: str, document: Any) -> bool:
        try:
            payload = json.dumps(document, ensure_ascii=False)
        except (TypeError, ValueError) as exc:
            logger.error("kv_set_encode_failed key={} err={}", key, type(exc).__name__)
            return False

        try:
            with get_session(self._session_factory) as session:
                row = session.get(KvDocument, key)
                if row is None:
                    session.add(KvDocument(key=key, value_json=payload))
                else:
                    row.value_json = payload
                    row.updated_at = datetime.now(timezone.utc)
        except SQLAlchemyError as exc:
            logger.error("kv_set_failed key={} err={}", key, type(exc).__name__)
            return False
        logger.debug("kv_set key={} bytes={}", key, len(payload))
        return True
