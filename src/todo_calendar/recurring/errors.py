from __future__ import annotations


class CalendarError(Exception):
    pass


class NotFound(CalendarError, LookupError):
    def __init__(self, instance_id: str) -> None:
        super().__init__(f"Instance not found: {instance_id}")
        self.instance_id = instance_id


class PersistenceFailure(CalendarError):
    def __init__(self, key: str, reason: str = "write rejected") -> None:
        super().__init__(f"Persistence failure for {key}: {reason}")
        self.key = key
        self.reason = reason


class MalformedRecurrence(CalendarError, ValueError):
    pass


class InvalidTransition(CalendarError):
    def __init__(self, instance_id: str, status: str, action: str) -> None:
        super().__init__(f"Cannot {action} instance {instance_id} with status {status}")
        self.instance_id = instance_id
        self.status = status
        self.action = action


class RescheduleConflict(CalendarError):
    def __init__(self, instance_id: str, day: str, existing_id: str) -> None:
        super().__init__(f"Cannot move instance {instance_id} to {day}: {existing_id} is already scheduled there")
        self.instance_id = instance_id
        self.day = day
        self.existing_id = existing_id
