from __future__ import annotations

from dataclasses import dataclass
from datetime import date
from typing import Any, Callable

from todo_calendar.recurring import dates
from todo_calendar.recurring.instances_repo import InstanceStore
from todo_calendar.recurring.models import STATUS_COMPLETED, STATUS_PENDING, STATUS_SKIPPED, TaskInstance


@dataclass(slots=True)
class OverdueInstance:
    instance: TaskInstance
    overdue_days: int

    def to_dict(self) -> dict[str, Any]:
        out = self.instance.to_dict()
        out["overdueDays"] = self.overdue_days
        return out


@dataclass(slots=True)
class InstanceStats:
    total: int = 0
    pending: int = 0
    completed: int = 0
    skipped: int = 0
    overdue: int = 0
    due_today: int = 0

    def to_dict(self) -> dict[str, int]:
        return {
            "total": self.total,
            "pending": self.pending,
            "completed": self.completed,
            "skipped": self.skipped,
            "overdue": self.overdue,
            "dueToday": self.due_today,
        }


class QueryService:
    """Read-only views over the instance collection."""

    def __init__(self, instances: InstanceStore, *, today: Callable[[], date] = dates.today) -> None:
        self._instances = instances
        self._today = today

    def all(self) -> list[TaskInstance]:
        return self._instances.load()

    def by_date(self, day: date | str) -> list[TaskInstance]:
        target = dates.parse_day(day)
        return [inst for inst in self._instances.load() if inst.is_pending and inst.date == target]

    def overdue(self, reference_date: date | str | None = None) -> list[OverdueInstance]:
        reference = dates.parse_day(reference_date) if reference_date is not None else self._today()
        return [
            OverdueInstance(instance=inst, overdue_days=dates.days_between(inst.date, reference))
            for inst in self._instances.load()
            if inst.is_pending and inst.date < reference
        ]

    def in_range(self, start: date | str, end: date | str) -> list[TaskInstance]:
        lo = dates.parse_day(start)
        hi = dates.parse_day(end)
        return [inst for inst in self._instances.load() if lo <= inst.date <= hi]

    def stats(self) -> InstanceStats:
        reference = self._today()
        stats = InstanceStats()
        for inst in self._instances.load():
            stats.total += 1
            if inst.status == STATUS_COMPLETED:
                stats.completed += 1
            elif inst.status == STATUS_SKIPPED:
                stats.skipped += 1
            elif inst.status == STATUS_PENDING:
                stats.pending += 1
                if inst.date < reference:
                    stats.overdue += 1
                elif inst.date == reference:
                    stats.due_today += 1
        return stats
