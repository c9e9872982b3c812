from __future__ import annotations

from datetime import date, datetime, timezone
from pathlib import Path
from typing import Any

from todo_calendar.db.models import Base
from todo_calendar.db.session import build_database_url, create_db_engine, create_session_factory
from todo_calendar.recurring.manager import CalendarManager
from todo_calendar.storage.memory_store import MemoryKeyValueStore
from todo_calendar.storage.sql_store import SqlKeyValueStore

_TODAY = date(2024, 3, 4)
_NOW = datetime(2024, 3, 4, 7, 0, tzinfo=timezone.utc)

_RULES = [
    {"id": "r1", "name": "Планёрка", "active": True, "recurrence": {"type": "weekly", "dayOfWeek": 1}},
    {"id": "r2", "name": "Rent", "active": True, "project": "home", "recurrence": {"type": "monthly_date", "date": 5}},
    {"id": "r3", "name": "Paused", "active": False, "recurrence": {"type": "weekly", "dayOfWeek": 2}},
]


class _BrokenArchive:
    def archive(self, record: dict[str, Any]) -> None:
        raise ConnectionError("archive down")


class _ToggleStore(MemoryKeyValueStore):
    def __init__(self, initial: dict[str, Any] | None = None) -> None:
        super().__init__(initial)
        self.fail_writes = False

    def set(self, key: str, document: Any) -> bool:
        if self.fail_writes:
            return False
        return super().set(key, document)


def _manager(kv: Any, **kwargs: Any) -> CalendarManager:
    return CalendarManager(kv, today=lambda: _TODAY, now=lambda: _NOW, **kwargs)


def _seed(kv: Any, manager: CalendarManager) -> None:
    assert kv.set(manager.rules.key, _RULES)


def test_generate_reports_total() -> None:
    kv = MemoryKeyValueStore()
    manager = _manager(kv)
    _seed(kv, manager)

    assert manager.generate_instances(14) == 4
    assert manager.generate_instances(14) == 4
    ids = [row["id"] for row in manager.get_all_tasks()]
    assert ids == ["r1_2024-03-04", "r1_2024-03-11", "r1_2024-03-18", "r2_2024-03-05"]


def test_generate_without_rules_reports_empty_collection() -> None:
    manager = _manager(MemoryKeyValueStore())
    assert manager.generate_instances() == 0


def test_generate_persistence_failure_reports_none() -> None:
    kv = _ToggleStore()
    manager = _manager(kv)
    _seed(kv, manager)
    kv.fail_writes = True
    assert manager.generate_instances(14) is None


def test_lifecycle_signals() -> None:
    kv = MemoryKeyValueStore()
    manager = _manager(kv)
    _seed(kv, manager)
    manager.generate_instances(14)

    assert manager.complete_task("r1_2024-03-04") is True
    assert manager.complete_task("r1_2024-03-04") is False
    assert manager.complete_task("missing") is False
    assert manager.skip_task("r2_2024-03-05") is True
    assert manager.reschedule_task("r1_2024-03-11", "2024-03-12") is True
    assert manager.reschedule_task("r1_2024-03-11", "2024-03-13") is False
    assert manager.reschedule_task("missing", "2024-03-12") is False
    assert manager.reschedule_task("r1_2024-03-18", "next tuesday") is False

    moved = manager.get_tasks_for_date("2024-03-12")
    assert len(moved) == 1
    assert moved[0]["originalDate"] == "2024-03-11"

    archived = kv.get("taskManager_archive")
    assert [row["originalId"] for row in archived] == ["r1_2024-03-04"]
    assert archived[0]["text"] == "Планёрка"


def test_complete_with_broken_archive_still_succeeds() -> None:
    kv = MemoryKeyValueStore()
    manager = _manager(kv, archive=_BrokenArchive())
    _seed(kv, manager)
    manager.generate_instances(0)

    assert manager.complete_task("r1_2024-03-04") is True
    assert manager.get_stats()["completed"] == 1


def test_persistence_failure_reports_false() -> None:
    kv = _ToggleStore()
    manager = _manager(kv)
    _seed(kv, manager)
    manager.generate_instances(0)
    kv.fail_writes = True

    assert manager.complete_task("r1_2024-03-04") is False
    assert manager.skip_task("r1_2024-03-04") is False
    kv.fail_writes = False
    assert manager.get_stats()["pending"] == 1


def test_reads_and_cleanup() -> None:
    kv = MemoryKeyValueStore(
        {
            "calendarInstances": [
                {"id": "a_2023-01-02", "ruleId": "a", "date": "2023-01-02", "status": "completed"},
                {"id": "a_2024-02-26", "ruleId": "a", "date": "2024-02-26", "status": "pending"},
                {"id": "a_2024-03-04", "ruleId": "a", "date": "2024-03-04", "status": "pending"},
            ]
        }
    )
    manager = _manager(kv)

    overdue = manager.get_overdue_tasks()
    assert [(row["id"], row["overdueDays"]) for row in overdue] == [("a_2024-02-26", 7)]
    assert [row["id"] for row in manager.get_tasks_in_range("2023-01-01", "2024-02-29")] == [
        "a_2023-01-02",
        "a_2024-02-26",
    ]
    assert manager.get_stats() == {
        "total": 3,
        "pending": 2,
        "completed": 1,
        "skipped": 0,
        "overdue": 1,
        "dueToday": 1,
    }
    assert manager.cleanup_old_tasks() == 1
    assert manager.cleanup_old_tasks() == 0
    assert len(manager.get_all_tasks()) == 2


def test_end_to_end_on_sqlite(tmp_path: Path) -> None:
    engine = create_db_engine(build_database_url(tmp_path / "calendar.db"))
    Base.metadata.create_all(engine)
    kv = SqlKeyValueStore(create_session_factory(engine))
    manager = _manager(kv)
    _seed(kv, manager)

    assert manager.generate_instances(14) == 4
    assert manager.reschedule_task("r1_2024-03-04", "2024-03-06") is True
    assert manager.complete_task("r2_2024-03-05") is True

    # A fresh manager over the same database sees the persisted state.
    again = _manager(SqlKeyValueStore(create_session_factory(engine)))
    statuses = {row["id"]: row["status"] for row in again.get_all_tasks()}
    assert statuses["r1_2024-03-04"] == "skipped"
    assert statuses["r2_2024-03-05"] == "completed"
    assert [row["name"] for row in again.get_tasks_for_date("2024-03-06")] == ["Планёрка"]
    assert again.get_stats()["pending"] == 3


def test_reschedule_onto_occupied_date_reports_false() -> None:
    kv = MemoryKeyValueStore()
    manager = _manager(kv)
    _seed(kv, manager)
    manager.generate_instances(14)
    before = manager.get_all_tasks()

    assert manager.reschedule_task("r1_2024-03-04", "2024-03-11") is False
    assert manager.reschedule_task("r1_2024-03-04", "2024-03-11T09:00") is False
    assert manager.reschedule_task("r1_2024-03-04", "2024-03-11junk") is False
    assert manager.get_all_tasks() == before
