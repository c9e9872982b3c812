from __future__ import annotations

from datetime import date, datetime, timezone
from typing import Any

import pytest

from todo_calendar.recurring.errors import InvalidTransition, NotFound, PersistenceFailure, RescheduleConflict
from todo_calendar.recurring.instances_repo import InstanceStore
from todo_calendar.recurring.lifecycle import LifecycleController
from todo_calendar.recurring.models import TaskInstance
from todo_calendar.storage.memory_store import MemoryKeyValueStore

_NOW = datetime(2024, 3, 5, 12, 30, tzinfo=timezone.utc)
_NOW_ISO = "2024-03-05T12:30:00.000Z"


class _FakeArchive:
    def __init__(self, fail: bool = False) -> None:
        self.fail = fail
        self.records: list[dict[str, Any]] = []

    def archive(self, record: dict[str, Any]) -> dict[str, Any]:
        if self.fail:
            raise RuntimeError("archive unavailable")
        self.records.append(dict(record))
        return record


class _FlakyStore(MemoryKeyValueStore):
    def __init__(self) -> None:
        super().__init__()
        self.reject_writes = False

    def set(self, key: str, document: Any) -> bool:
        if self.reject_writes:
            return False
        return super().set(key, document)


def _instance(instance_id: str = "r1_2024-03-04", **fields: Any) -> TaskInstance:
    base: dict[str, Any] = {
        "id": instance_id,
        "rule_id": "r1",
        "date": date(2024, 3, 4),
        "name": "Pay rent",
        "project": "home",
        "recurrence": {"type": "monthly_date", "date": 4},
        "created_at": "2024-03-01T00:00:00.000Z",
    }
    base.update(fields)
    return TaskInstance(**base)


def _controller(*instances: TaskInstance, archive: Any = None, kv: MemoryKeyValueStore | None = None):
    kv = kv if kv is not None else MemoryKeyValueStore()
    store = InstanceStore(kv)
    store.save(list(instances))
    return LifecycleController(store, archive=archive, now=lambda: _NOW), store


def test_complete_marks_and_archives() -> None:
    archive = _FakeArchive()
    controller, store = _controller(_instance(), archive=archive)

    controller.complete("r1_2024-03-04")

    (saved,) = store.load()
    assert saved.status == "completed"
    assert saved.completed_at == _NOW_ISO
    assert archive.records == [
        {
            "id": "r1_2024-03-04",
            "text": "Pay rent",
            "moduleType": "calendar-recurring",
            "projectId": "home",
            "date": "2024-03-04",
            "createdAt": _NOW_ISO,
        }
    ]


def test_complete_survives_archive_failure() -> None:
    controller, store = _controller(_instance(), archive=_FakeArchive(fail=True))
    controller.complete("r1_2024-03-04")
    assert store.load()[0].status == "completed"


def test_complete_without_archive() -> None:
    controller, store = _controller(_instance())
    controller.complete("r1_2024-03-04")
    assert store.load()[0].status == "completed"


def test_unknown_id_raises_not_found_without_writing() -> None:
    kv = MemoryKeyValueStore()
    controller, store = _controller(_instance(), kv=kv)
    before = kv.get(store.key)
    for op in (controller.complete, controller.skip):
        with pytest.raises(NotFound):
            op("nope")
    with pytest.raises(NotFound):
        controller.reschedule("nope", "2024-03-10")
    assert kv.get(store.key) == before


def test_skip_sets_timestamp_without_archiving() -> None:
    archive = _FakeArchive()
    controller, store = _controller(_instance(), archive=archive)
    controller.skip("r1_2024-03-04")
    (saved,) = store.load()
    assert saved.status == "skipped"
    assert saved.skipped_at == _NOW_ISO
    assert saved.skipped_reason is None
    assert archive.records == []


def test_reschedule_creates_pending_copy_and_skips_source() -> None:
    controller, store = _controller(_instance())

    moved = controller.reschedule("r1_2024-03-04", "2024-03-08")

    assert moved.id == f"r1_2024-03-08_rescheduled_{int(_NOW.timestamp() * 1000)}"
    source, copy = store.load()
    assert source.id == "r1_2024-03-04"
    assert source.date == date(2024, 3, 4)
    assert source.status == "skipped"
    assert source.skipped_reason == "rescheduled"

    assert copy.id == moved.id
    assert copy.date == date(2024, 3, 8)
    assert copy.status == "pending"
    assert copy.original_date == date(2024, 3, 4)
    assert copy.rescheduled is True
    assert copy.rescheduled_at == _NOW_ISO
    assert copy.name == "Pay rent"
    assert copy.project == "home"
    assert copy.recurrence == {"type": "monthly_date", "date": 4}

    payload = copy.to_dict()
    assert payload["originalDate"] == "2024-03-04"
    assert payload["rescheduled"] is True


def test_repeated_reschedule_keeps_ids_unique() -> None:
    controller, store = _controller(_instance())
    first = controller.reschedule("r1_2024-03-04", "2024-03-08")
    second = controller.reschedule(first.id, "2024-03-08")

    ids = [inst.id for inst in store.load()]
    assert len(ids) == len(set(ids)) == 3
    assert second.original_date == date(2024, 3, 8)
    pending = [inst for inst in store.load() if inst.status == "pending"]
    assert [inst.id for inst in pending] == [second.id]


def test_reschedule_onto_live_instance_of_same_rule_is_rejected() -> None:
    kv = MemoryKeyValueStore()
    controller, store = _controller(
        _instance(),
        _instance("r1_2024-03-11", date=date(2024, 3, 11)),
        kv=kv,
    )
    before = kv.get(store.key)

    with pytest.raises(RescheduleConflict) as exc_info:
        controller.reschedule("r1_2024-03-04", "2024-03-11")

    assert exc_info.value.existing_id == "r1_2024-03-11"
    assert kv.get(store.key) == before


def test_reschedule_onto_skipped_or_other_rule_date_is_allowed() -> None:
    controller, store = _controller(
        _instance(),
        _instance("r1_2024-03-11", date=date(2024, 3, 11), status="skipped"),
        _instance("r2_2024-03-12", rule_id="r2", date=date(2024, 3, 12)),
    )
    controller.reschedule("r1_2024-03-04", "2024-03-11")
    moved = controller.reschedule("r2_2024-03-12", "2024-03-11")

    live = [(inst.rule_id, inst.date) for inst in store.load() if not inst.is_skipped]
    assert sorted(live) == [("r1", date(2024, 3, 11)), ("r2", date(2024, 3, 11))]
    assert moved.rule_id == "r2"


def test_reschedule_rejects_trailing_garbage_date() -> None:
    controller, store = _controller(_instance())
    with pytest.raises(ValueError):
        controller.reschedule("r1_2024-03-04", "2024-03-08junk")
    assert [inst.status for inst in store.load()] == ["pending"]


@pytest.mark.parametrize("status", ["completed", "skipped"])
def test_finished_instance_never_returns_to_pending(status: str) -> None:
    controller, store = _controller(_instance(status=status))
    with pytest.raises(InvalidTransition):
        controller.complete("r1_2024-03-04")
    with pytest.raises(InvalidTransition):
        controller.skip("r1_2024-03-04")
    with pytest.raises(InvalidTransition):
        controller.reschedule("r1_2024-03-04", "2024-03-09")
    assert [inst.status for inst in store.load()] == [status]


def test_failed_write_discards_mutation() -> None:
    kv = _FlakyStore()
    archive = _FakeArchive()
    controller, store = _controller(_instance(), archive=archive, kv=kv)
    kv.reject_writes = True

    with pytest.raises(PersistenceFailure):
        controller.complete("r1_2024-03-04")
    with pytest.raises(PersistenceFailure):
        controller.reschedule("r1_2024-03-04", "2024-03-08")

    kv.reject_writes = False
    assert [(inst.id, inst.status) for inst in store.load()] == [("r1_2024-03-04", "pending")]
    assert archive.records == []


def test_unknown_document_keys_survive_transition() -> None:
    kv = MemoryKeyValueStore()
    store = InstanceStore(kv)
    kv.set(
        store.key,
        [{"id": "x_2024-03-04", "ruleId": "x", "date": "2024-03-04", "status": "pending", "color": "red"}],
    )
    LifecycleController(store, now=lambda: _NOW).skip("x_2024-03-04")
    assert kv.get(store.key)[0]["color"] == "red"
