from __future__ import annotations

from datetime import date, timedelta

from loguru import logger

from todo_calendar.config import settings
from todo_calendar.recurring import dates
from todo_calendar.recurring.instances_repo import InstanceStore
from todo_calendar.recurring.models import STATUS_COMPLETED, STATUS_SKIPPED

_REMOVABLE = frozenset({STATUS_COMPLETED, STATUS_SKIPPED})


def cleanup(
    instances: InstanceStore,
    max_age_days: int | None = None,
    *,
    reference_date: date | None = None,
) -> int:
    """
    Drop completed/skipped instances dated before reference_date - max_age_days.

    Pending instances are kept whatever their age. The document is only
    rewritten when something was removed.
    """
    if max_age_days is None:
        max_age_days = settings.cleanup_max_age_days
    if max_age_days < 0:
        raise ValueError("max_age_days must be >= 0")

    cutoff = (reference_date or dates.today()) - timedelta(days=max_age_days)
    current = instances.load()
    kept = [inst for inst in current if not (inst.status in _REMOVABLE and inst.date < cutoff)]
    removed = len(current) - len(kept)
    if removed > 0:
        instances.save(kept)
        logger.info("instances_cleanup removed={} cutoff={}", removed, dates.iso_day(cutoff))
    return removed
