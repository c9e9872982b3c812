from __future__ import annotations

from datetime import date, datetime
from typing import Any, Callable, Iterable, Mapping, Protocol

from loguru import logger

from todo_calendar.config import settings
from todo_calendar.recurring import dates
from todo_calendar.recurring.errors import MalformedRecurrence
from todo_calendar.recurring.instances_repo import InstanceStore
from todo_calendar.recurring.matcher import matches
from todo_calendar.recurring.models import STATUS_PENDING, RecurrenceRule, TaskInstance, parse_recurrence


class ProjectLookup(Protocol):
    def get(self, project_id: str) -> Mapping[str, Any] | None: ...


def instance_id_for(rule_id: str, day: date) -> str:
    return f"{rule_id}_{dates.iso_day(day)}"


def build_candidates(
    rule: RecurrenceRule,
    start_date: date,
    days_ahead: int,
    *,
    created_at: str,
) -> list[TaskInstance]:
    """Instances the rule would produce in [start_date, start_date + days_ahead]."""
    try:
        recurrence = parse_recurrence(rule.recurrence)
    except MalformedRecurrence as exc:
        logger.warning("rule_skipped rule_id={} name={} reason={}", rule.id, rule.name, exc)
        return []

    out: list[TaskInstance] = []
    for day in dates.iter_days(start_date, days_ahead):
        if not matches(day, recurrence):
            continue
        out.append(
            TaskInstance(
                id=instance_id_for(rule.id, day),
                rule_id=rule.id,
                date=day,
                status=STATUS_PENDING,
                name=rule.name,
                time=recurrence.time or rule.time,
                project=rule.project,
                description=rule.description,
                recurrence=dict(rule.recurrence),
                created_at=created_at,
            )
        )
    logger.debug("rule_expanded rule_id={} name={} candidates={}", rule.id, rule.name, len(out))
    return out


def merge_instances(
    existing: list[TaskInstance],
    candidates: Iterable[TaskInstance],
) -> tuple[list[TaskInstance], list[TaskInstance]]:
    """
    Append candidates that do not collide with a live instance.

    Skipped instances never block a (rule_id, date) pair, so a skipped or
    rescheduled-away date can be generated again.
    """
    live = {inst.key for inst in existing if not inst.is_skipped}
    merged = list(existing)
    added: list[TaskInstance] = []
    for candidate in candidates:
        if candidate.key in live:
            continue
        live.add(candidate.key)
        merged.append(candidate)
        added.append(candidate)
    return merged, added


class InstanceGenerator:
    def __init__(
        self,
        instances: InstanceStore,
        *,
        project_lookup: ProjectLookup | None = None,
        today: Callable[[], date] = dates.today,
        now: Callable[[], datetime] = dates.utc_now,
    ) -> None:
        self._instances = instances
        self._project_lookup = project_lookup
        self._today = today
        self._now = now

    def generate(
        self,
        rules: Iterable[RecurrenceRule],
        *,
        start_date: date | str | None = None,
        days_ahead: int | None = None,
    ) -> list[TaskInstance]:
        """
        Expand active rules over the window and persist the merged collection.

        Returns the whole collection after the merge.
        """
        if days_ahead is None:
            days_ahead = settings.generation_days_ahead
        if days_ahead < 0:
            raise ValueError("days_ahead must be >= 0")
        start = dates.parse_day(start_date) if start_date is not None else self._today()

        active = [rule for rule in rules if rule.active]
        logger.info(
            "generate_instances start={} days_ahead={} active_rules={}",
            dates.iso_day(start),
            days_ahead,
            len(active),
        )
        existing = self._instances.load()
        if not active:
            logger.info("generate_instances no active rules")
            return existing

        created_at = dates.to_iso_timestamp(self._now())
        candidates: list[TaskInstance] = []
        for rule in active:
            self._check_project(rule)
            candidates.extend(build_candidates(rule, start, days_ahead, created_at=created_at))

        merged, added = merge_instances(existing, candidates)
        self._instances.save(merged)
        logger.info("generate_instances added={} total={}", len(added), len(merged))
        return merged

    def _check_project(self, rule: RecurrenceRule) -> None:
        if self._project_lookup is None or not rule.project:
            return
        if self._project_lookup.get(rule.project) is None:
            logger.warning("rule_unknown_project rule_id={} project={}", rule.id, rule.project)
