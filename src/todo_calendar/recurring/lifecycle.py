from __future__ import annotations

from datetime import date, datetime
from typing import Callable

from loguru import logger

from todo_calendar.recurring import dates
from todo_calendar.recurring.archive import ArchivePort, build_archive_record
from todo_calendar.recurring.errors import InvalidTransition, RescheduleConflict
from todo_calendar.recurring.instances_repo import InstanceStore, find_instance
from todo_calendar.recurring.models import (
    SKIP_REASON_RESCHEDULED,
    STATUS_COMPLETED,
    STATUS_PENDING,
    STATUS_SKIPPED,
    TaskInstance,
)


def _require_pending(instance: TaskInstance, action: str) -> None:
    if not instance.is_pending:
        raise InvalidTransition(instance.id, instance.status, action)


class LifecycleController:
    """
    Instance state transitions: pending -> completed, pending -> skipped.

    Every operation is one load/mutate/save cycle over the whole collection.
    """

    def __init__(
        self,
        instances: InstanceStore,
        *,
        archive: ArchivePort | None = None,
        now: Callable[[], datetime] = dates.utc_now,
    ) -> None:
        self._instances = instances
        self._archive = archive
        self._now = now

    def complete(self, instance_id: str) -> TaskInstance:
        instances = self._instances.load()
        instance = find_instance(instances, instance_id)
        _require_pending(instance, "complete")

        instance.status = STATUS_COMPLETED
        instance.completed_at = dates.to_iso_timestamp(self._now())
        self._instances.save(instances)
        logger.info("instance_completed id={} name={}", instance.id, instance.name)

        self._archive_completed(instance)
        return instance

    def reschedule(self, instance_id: str, new_date: date | str) -> TaskInstance:
        target = dates.parse_day(new_date)
        instances = self._instances.load()
        instance = find_instance(instances, instance_id)
        _require_pending(instance, "reschedule")
        # The source turns skipped below, so only other live instances can clash.
        for other in instances:
            if other is instance or other.is_skipped:
                continue
            if other.rule_id == instance.rule_id and other.date == target:
                raise RescheduleConflict(instance.id, dates.iso_day(target), other.id)

        now = self._now()
        now_iso = dates.to_iso_timestamp(now)
        taken = {inst.id for inst in instances}
        stamp = dates.epoch_millis(now)
        new_id = f"{instance.rule_id}_{dates.iso_day(target)}_rescheduled_{stamp}"
        while new_id in taken:
            stamp += 1
            new_id = f"{instance.rule_id}_{dates.iso_day(target)}_rescheduled_{stamp}"

        moved = instance.copy(
            id=new_id,
            date=target,
            status=STATUS_PENDING,
            original_date=instance.date,
            rescheduled=True,
            rescheduled_at=now_iso,
            completed_at=None,
            skipped_at=None,
            skipped_reason=None,
        )
        instance.status = STATUS_SKIPPED
        instance.skipped_at = now_iso
        instance.skipped_reason = SKIP_REASON_RESCHEDULED
        instances.append(moved)

        self._instances.save(instances)
        logger.info(
            "instance_rescheduled id={} from={} to={} new_id={}",
            instance.id,
            dates.iso_day(instance.date),
            dates.iso_day(target),
            moved.id,
        )
        return moved

    def skip(self, instance_id: str) -> TaskInstance:
        instances = self._instances.load()
        instance = find_instance(instances, instance_id)
        _require_pending(instance, "skip")

        instance.status = STATUS_SKIPPED
        instance.skipped_at = dates.to_iso_timestamp(self._now())
        self._instances.save(instances)
        logger.info("instance_skipped id={} name={}", instance.id, instance.name)
        return instance

    def _archive_completed(self, instance: TaskInstance) -> None:
        if self._archive is None:
            return
        try:
            self._archive.archive(build_archive_record(instance))
        except Exception:
            # History is secondary; the completion is already persisted.
            logger.exception("instance_archive_failed id={}", instance.id)
