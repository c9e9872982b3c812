from __future__ import annotations

from datetime import date, datetime
from typing import Any, Callable

from loguru import logger

from todo_calendar.recurring import dates, retention
from todo_calendar.recurring.archive import ArchivePort, KeyValueArchive
from todo_calendar.recurring.errors import (
    CalendarError,
    InvalidTransition,
    NotFound,
    PersistenceFailure,
    RescheduleConflict,
)
from todo_calendar.recurring.generator import InstanceGenerator, ProjectLookup
from todo_calendar.recurring.instances_repo import InstanceStore
from todo_calendar.recurring.lifecycle import LifecycleController
from todo_calendar.recurring.queries import QueryService
from todo_calendar.recurring.rules_repo import RuleStore
from todo_calendar.storage.base import KeyValueStore


class CalendarManager:
    """
    Entry point for the calendar module.

    Writes report plain success signals (bool / count) and log the reason for
    a failure; reads return dictionaries in the stored document shape.
    """

    def __init__(
        self,
        kv: KeyValueStore,
        *,
        archive: ArchivePort | None = None,
        project_lookup: ProjectLookup | None = None,
        today: Callable[[], date] | None = None,
        now: Callable[[], datetime] = dates.utc_now,
    ) -> None:
        self._today = today or dates.today
        self.rules = RuleStore(kv)
        self.instances = InstanceStore(kv)
        self.generator = InstanceGenerator(
            self.instances,
            project_lookup=project_lookup,
            today=self._today,
            now=now,
        )
        self.lifecycle = LifecycleController(
            self.instances,
            archive=archive if archive is not None else KeyValueArchive(kv, now=now),
            now=now,
        )
        self.queries = QueryService(self.instances, today=self._today)

    # ---- generation ----

    def generate_instances(
        self,
        days_ahead: int | None = None,
        *,
        start_date: date | str | None = None,
    ) -> int | None:
        """Returns the collection size after generation, or None when persistence failed."""
        try:
            rules = self.rules.list_rules()
            merged = self.generator.generate(rules, start_date=start_date, days_ahead=days_ahead)
        except PersistenceFailure as exc:
            logger.error("generate_instances_failed err={}", exc)
            return None
        return len(merged)

    # ---- lifecycle ----

    def complete_task(self, instance_id: str) -> bool:
        return self._run_transition("complete", self.lifecycle.complete, instance_id)

    def reschedule_task(self, instance_id: str, new_date: date | str) -> bool:
        try:
            dates.parse_day(new_date)
        except ValueError:
            logger.warning("reschedule_rejected id={} bad_date={!r}", instance_id, new_date)
            return False
        return self._run_transition("reschedule", self.lifecycle.reschedule, instance_id, new_date)

    def skip_task(self, instance_id: str) -> bool:
        return self._run_transition("skip", self.lifecycle.skip, instance_id)

    def _run_transition(self, action: str, fn: Callable[..., Any], instance_id: str, *args: Any) -> bool:
        try:
            fn(instance_id, *args)
        except NotFound:
            logger.warning("{}_failed id={} reason=not_found", action, instance_id)
            return False
        except InvalidTransition as exc:
            logger.warning("{}_failed id={} reason=status status={}", action, instance_id, exc.status)
            return False
        except RescheduleConflict as exc:
            logger.warning("{}_failed id={} reason=conflict existing={}", action, instance_id, exc.existing_id)
            return False
        except CalendarError as exc:
            logger.error("{}_failed id={} err={}", action, instance_id, exc)
            return False
        return True

    # ---- reads ----

    def get_tasks_for_date(self, day: date | str) -> list[dict[str, Any]]:
        return [inst.to_dict() for inst in self.queries.by_date(day)]

    def get_overdue_tasks(self, before: date | str | None = None) -> list[dict[str, Any]]:
        return [row.to_dict() for row in self.queries.overdue(before)]

    def get_tasks_in_range(self, start: date | str, end: date | str) -> list[dict[str, Any]]:
        return [inst.to_dict() for inst in self.queries.in_range(start, end)]

    def get_all_tasks(self) -> list[dict[str, Any]]:
        return [inst.to_dict() for inst in self.queries.all()]

    def get_stats(self) -> dict[str, int]:
        return self.queries.stats().to_dict()

    # ---- maintenance ----

    def cleanup_old_tasks(self, days_old: int | None = None) -> int:
        try:
            return retention.cleanup(self.instances, days_old, reference_date=self._today())
        except PersistenceFailure as exc:
            logger.error("cleanup_failed err={}", exc)
            return 0
