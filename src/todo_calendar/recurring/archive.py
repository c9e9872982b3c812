from __future__ import annotations

import uuid
from datetime import datetime
from typing import Any, Callable, Mapping, Protocol

from loguru import logger

from todo_calendar.config import settings
from todo_calendar.recurring import dates
from todo_calendar.recurring.errors import PersistenceFailure
from todo_calendar.recurring.models import TaskInstance
from todo_calendar.storage.base import KeyValueStore, StorageError

MODULE_TYPE = "calendar-recurring"

_REQUIRED_FIELDS = ("text", "moduleType")


class ArchivePort(Protocol):
    def archive(self, record: Mapping[str, Any]) -> Any: ...


def build_archive_record(instance: TaskInstance) -> dict[str, Any]:
    return {
        "id": instance.id,
        "text": instance.name,
        "moduleType": MODULE_TYPE,
        "projectId": instance.project,
        "date": dates.iso_day(instance.date),
        "createdAt": instance.completed_at,
    }


class KeyValueArchive:
    """Shared task archive kept as one list document next to the other modules' data."""

    def __init__(
        self,
        kv: KeyValueStore,
        *,
        key: str | None = None,
        now: Callable[[], datetime] = dates.utc_now,
    ) -> None:
        self._kv = kv
        self.key = key or settings.archive_key
        self._now = now

    def list_records(self) -> list[dict[str, Any]]:
        try:
            raw = self._kv.get(self.key)
        except StorageError as exc:
            raise PersistenceFailure(self.key, str(exc)) from exc
        if raw is None:
            return []
        if not isinstance(raw, list):
            raise PersistenceFailure(self.key, "archive document is not a list")
        return list(raw)

    def archive(self, record: Mapping[str, Any]) -> dict[str, Any]:
        for name in _REQUIRED_FIELDS:
            if not record.get(name):
                raise ValueError(f"{name} is required for archiving")

        now_iso = dates.to_iso_timestamp(self._now())
        entry = {
            "id": f"arch_{uuid.uuid4().hex}",
            "originalId": record.get("id") or None,
            "text": record["text"],
            "projectId": record.get("projectId") or None,
            "moduleType": record["moduleType"],
            "createdAt": record.get("createdAt") or now_iso,
            "completedAt": now_iso,
            "originalDate": record.get("date") or None,
            "priority": record.get("priority") or None,
            "tags": list(record.get("tags") or []),
            "notes": record.get("notes") or "",
            "isArchived": True,
            "archivedFrom": record["moduleType"],
        }
        records = self.list_records()
        records.append(entry)
        if not self._kv.set(self.key, records):
            raise PersistenceFailure(self.key)
        logger.info("archived original_id={} module={}", entry["originalId"], entry["moduleType"])
        return entry
