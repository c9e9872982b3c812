from __future__ import annotations

from loguru import logger

from todo_calendar.config import settings
from todo_calendar.recurring.errors import PersistenceFailure
from todo_calendar.recurring.models import RecurrenceRule
from todo_calendar.storage.base import KeyValueStore, StorageError


class RuleStore:
    """Recurrence rules document. The rules module owns it; the engine only reads."""

    def __init__(self, kv: KeyValueStore, *, key: str | None = None) -> None:
        self._kv = kv
        self.key = key or settings.rules_key

    def list_rules(self) -> list[RecurrenceRule]:
        try:
            raw = self._kv.get(self.key)
        except StorageError as exc:
            raise PersistenceFailure(self.key, str(exc)) from exc
        if raw is None:
            return []
        if not isinstance(raw, list):
            raise PersistenceFailure(self.key, "rules document is not a list")

        rules: list[RecurrenceRule] = []
        for idx, payload in enumerate(raw):
            if not isinstance(payload, dict):
                logger.warning("rule_ignored index={} reason=not_a_mapping", idx)
                continue
            try:
                rules.append(RecurrenceRule.from_dict(payload))
            except ValueError as exc:
                logger.warning("rule_ignored index={} reason={}", idx, exc)
        return rules

    def save_rules(self, rules: list[RecurrenceRule]) -> None:
        if not self._kv.set(self.key, [rule.to_dict() for rule in rules]):
            raise PersistenceFailure(self.key)
