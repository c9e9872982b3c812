from __future__ import annotations

from loguru import logger

from todo_calendar.config import settings
from todo_calendar.recurring.errors import NotFound, PersistenceFailure
from todo_calendar.recurring.models import TaskInstance
from todo_calendar.storage.base import KeyValueStore, StorageError


class InstanceStore:
    """
    The generated-instances document.

    The collection is one serialized resource: load() returns a fresh copy,
    save() replaces the stored document as a whole. Nothing is updated in place,
    so a failed save leaves the stored state untouched and the caller's copy
    is simply dropped.
    """

    def __init__(self, kv: KeyValueStore, *, key: str | None = None) -> None:
        self._kv = kv
        self.key = key or settings.instances_key

    def load(self) -> list[TaskInstance]:
        try:
            raw = self._kv.get(self.key)
        except StorageError as exc:
            raise PersistenceFailure(self.key, str(exc)) from exc
        if raw is None:
            return []
        if not isinstance(raw, list):
            raise PersistenceFailure(self.key, "instances document is not a list")
        try:
            return [TaskInstance.from_dict(payload) for payload in raw]
        except (TypeError, ValueError, AttributeError) as exc:
            raise PersistenceFailure(self.key, f"corrupt instance: {exc}") from exc

    def save(self, instances: list[TaskInstance]) -> None:
        if not self._kv.set(self.key, [inst.to_dict() for inst in instances]):
            logger.error("instances_save_failed key={} count={}", self.key, len(instances))
            raise PersistenceFailure(self.key)
        logger.debug("instances_saved key={} count={}", self.key, len(instances))


def find_instance(instances: list[TaskInstance], instance_id: str) -> TaskInstance:
    for inst in instances:
        if inst.id == instance_id:
            return inst
    raise NotFound(instance_id)
