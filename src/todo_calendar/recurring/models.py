from __future__ import annotations

from dataclasses import dataclass, field, replace
from datetime import date
from typing import Any, ClassVar, Mapping, Union

from todo_calendar.recurring.dates import iso_day, parse_day
from todo_calendar.recurring.errors import MalformedRecurrence

STATUS_PENDING = "pending"
STATUS_COMPLETED = "completed"
STATUS_SKIPPED = "skipped"
STATUSES = frozenset({STATUS_PENDING, STATUS_COMPLETED, STATUS_SKIPPED})

SKIP_REASON_RESCHEDULED = "rescheduled"
QUARTER_MONTHS = frozenset({1, 4, 7, 10})


@dataclass(frozen=True, slots=True)
class MonthlyDate:
    kind: ClassVar[str] = "monthly_date"

    date: int
    time: str | None = None

    def to_dict(self) -> dict[str, Any]:
        return _with_time({"type": self.kind, "date": self.date}, self.time)


@dataclass(frozen=True, slots=True)
class Weekly:
    kind: ClassVar[str] = "weekly"

    day_of_week: int
    time: str | None = None

    def to_dict(self) -> dict[str, Any]:
        return _with_time({"type": self.kind, "dayOfWeek": self.day_of_week}, self.time)


@dataclass(frozen=True, slots=True)
class IntervalDays:
    kind: ClassVar[str] = "interval_days"

    start_date: date
    interval: int
    time: str | None = None

    def to_dict(self) -> dict[str, Any]:
        return _with_time(
            {"type": self.kind, "startDate": iso_day(self.start_date), "interval": self.interval},
            self.time,
        )


@dataclass(frozen=True, slots=True)
class Quarterly:
    kind: ClassVar[str] = "quarterly"

    date: int
    time: str | None = None

    def to_dict(self) -> dict[str, Any]:
        return _with_time({"type": self.kind, "date": self.date}, self.time)


@dataclass(frozen=True, slots=True)
class Yearly:
    kind: ClassVar[str] = "yearly"

    month: int
    day: int
    reference: date
    time: str | None = None

    def to_dict(self) -> dict[str, Any]:
        return _with_time({"type": self.kind, "date": iso_day(self.reference)}, self.time)


Recurrence = Union[MonthlyDate, Weekly, IntervalDays, Quarterly, Yearly]
RECURRENCE_TYPES = (MonthlyDate, Weekly, IntervalDays, Quarterly, Yearly)


def _with_time(payload: dict[str, Any], time: str | None) -> dict[str, Any]:
    if time:
        payload["time"] = time
    return payload


def _int_field(raw: Mapping[str, Any], name: str, low: int, high: int | None = None) -> int:
    value = raw.get(name)
    # bool is an int subclass; a stray true/false must not read as 1/0.
    if isinstance(value, bool) or not isinstance(value, int):
        raise MalformedRecurrence(f"{name} must be an integer, got {value!r}")
    if value < low or (high is not None and value > high):
        bounds = f"{low}..{high}" if high is not None else f">= {low}"
        raise MalformedRecurrence(f"{name} must be {bounds}, got {value}")
    return value


def _date_field(raw: Mapping[str, Any], name: str) -> date:
    value = raw.get(name)
    if value is None:
        raise MalformedRecurrence(f"{name} is required")
    try:
        return parse_day(value)
    except ValueError as exc:
        raise MalformedRecurrence(f"{name} is not a date: {value!r}") from exc


def _time_field(raw: Mapping[str, Any]) -> str | None:
    value = raw.get("time")
    if value is None or value == "":
        return None
    return str(value)


def parse_recurrence(raw: Any) -> Recurrence:
    """Strict parse of a stored recurrence mapping. Raises MalformedRecurrence."""
    if isinstance(raw, RECURRENCE_TYPES):
        return raw
    if not isinstance(raw, Mapping):
        raise MalformedRecurrence(f"recurrence must be a mapping, got {type(raw).__name__}")

    kind = raw.get("type")
    time = _time_field(raw)
    if kind == MonthlyDate.kind:
        return MonthlyDate(date=_int_field(raw, "date", 1, 31), time=time)
    if kind == Weekly.kind:
        return Weekly(day_of_week=_int_field(raw, "dayOfWeek", 0, 6), time=time)
    if kind == IntervalDays.kind:
        return IntervalDays(
            start_date=_date_field(raw, "startDate"),
            interval=_int_field(raw, "interval", 1),
            time=time,
        )
    if kind == Quarterly.kind:
        return Quarterly(date=_int_field(raw, "date", 1, 31), time=time)
    if kind == Yearly.kind:
        reference = _date_field(raw, "date")
        return Yearly(month=reference.month, day=reference.day, reference=reference, time=time)
    raise MalformedRecurrence(f"Unknown recurrence type: {kind!r}")


@dataclass(slots=True)
class RecurrenceRule:
    id: str
    name: str
    active: bool
    recurrence: dict[str, Any]
    project: str | None = None
    description: str | None = None
    time: str | None = None

    @classmethod
    def from_dict(cls, payload: Mapping[str, Any]) -> RecurrenceRule:
        rule_id = str(payload.get("id") or "").strip()
        if not rule_id:
            raise ValueError("rule.id is required")
        name = str(payload.get("name") or "").strip()
        if not name:
            raise ValueError("rule.name is required")
        recurrence = payload.get("recurrence")
        return cls(
            id=rule_id,
            name=name,
            active=bool(payload.get("active")),
            recurrence=dict(recurrence) if isinstance(recurrence, Mapping) else {},
            project=payload.get("project") or None,
            description=payload.get("description") or None,
            time=payload.get("time") or None,
        )

    def to_dict(self) -> dict[str, Any]:
        out: dict[str, Any] = {
            "id": self.id,
            "name": self.name,
            "active": self.active,
            "recurrence": dict(self.recurrence),
        }
        for key in ("project", "description", "time"):
            value = getattr(self, key)
            if value is not None:
                out[key] = value
        return out


# camelCase document key -> attribute name
_INSTANCE_FIELDS = {
    "id": "id",
    "ruleId": "rule_id",
    "name": "name",
    "date": "date",
    "time": "time",
    "project": "project",
    "description": "description",
    "recurrence": "recurrence",
    "status": "status",
    "createdAt": "created_at",
    "originalDate": "original_date",
    "rescheduled": "rescheduled",
    "rescheduledAt": "rescheduled_at",
    "completedAt": "completed_at",
    "skippedAt": "skipped_at",
    "skippedReason": "skipped_reason",
}

# Written only when set, so generated instances keep the compact shape.
_OPTIONAL_KEYS = ("originalDate", "rescheduled", "rescheduledAt", "completedAt", "skippedAt", "skippedReason")


@dataclass(slots=True)
class TaskInstance:
    id: str
    rule_id: str
    date: date
    status: str = STATUS_PENDING
    name: str | None = None
    time: str | None = None
    project: str | None = None
    description: str | None = None
    recurrence: dict[str, Any] | None = None
    created_at: str | None = None
    original_date: date | None = None
    rescheduled: bool = False
    rescheduled_at: str | None = None
    completed_at: str | None = None
    skipped_at: str | None = None
    skipped_reason: str | None = None
    extra: dict[str, Any] = field(default_factory=dict)

    @property
    def key(self) -> tuple[str, date]:
        return self.rule_id, self.date

    @property
    def is_pending(self) -> bool:
        return self.status == STATUS_PENDING

    @property
    def is_skipped(self) -> bool:
        return self.status == STATUS_SKIPPED

    def copy(self, **changes: Any) -> TaskInstance:
        dup = replace(self, **changes)
        dup.extra = dict(self.extra)
        return dup

    @classmethod
    def from_dict(cls, payload: Mapping[str, Any]) -> TaskInstance:
        instance_id = str(payload.get("id") or "").strip()
        if not instance_id:
            raise ValueError("instance.id is required")
        rule_id = str(payload.get("ruleId") or "").strip()
        if not rule_id:
            raise ValueError(f"instance.ruleId is required (id={instance_id})")
        status = str(payload.get("status") or STATUS_PENDING)
        if status not in STATUSES:
            raise ValueError(f"instance.status is invalid (id={instance_id}, status={status})")

        original_raw = payload.get("originalDate")
        recurrence = payload.get("recurrence")
        return cls(
            id=instance_id,
            rule_id=rule_id,
            date=parse_day(payload.get("date") or ""),
            status=status,
            name=payload.get("name"),
            time=payload.get("time"),
            project=payload.get("project"),
            description=payload.get("description"),
            recurrence=dict(recurrence) if isinstance(recurrence, Mapping) else None,
            created_at=payload.get("createdAt"),
            original_date=parse_day(original_raw) if original_raw else None,
            rescheduled=bool(payload.get("rescheduled")),
            rescheduled_at=payload.get("rescheduledAt"),
            completed_at=payload.get("completedAt"),
            skipped_at=payload.get("skippedAt"),
            skipped_reason=payload.get("skippedReason"),
            extra={k: v for k, v in payload.items() if k not in _INSTANCE_FIELDS},
        )

    def to_dict(self) -> dict[str, Any]:
        out: dict[str, Any] = dict(self.extra)
        for key, attr in _INSTANCE_FIELDS.items():
            value = getattr(self, attr)
            if key in _OPTIONAL_KEYS and not value:
                continue
            if isinstance(value, date):
                value = iso_day(value)
            out[key] = value
        return out
