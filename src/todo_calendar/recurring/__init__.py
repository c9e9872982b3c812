from .archive import ArchivePort, KeyValueArchive, build_archive_record  # noqa: F401
from .errors import (  # noqa: F401
    CalendarError,
    InvalidTransition,
    MalformedRecurrence,
    NotFound,
    PersistenceFailure,
    RescheduleConflict,
)
from .generator import InstanceGenerator, build_candidates, merge_instances  # noqa: F401
from .instances_repo import InstanceStore  # noqa: F401
from .lifecycle import LifecycleController  # noqa: F401
from .manager import CalendarManager  # noqa: F401
from .matcher import matches  # noqa: F401
from .models import (  # noqa: F401
    IntervalDays,
    MonthlyDate,
    Quarterly,
    RecurrenceRule,
    TaskInstance,
    Weekly,
    Yearly,
    parse_recurrence,
)
from .queries import InstanceStats, OverdueInstance, QueryService  # noqa: F401
from .rules_repo import RuleStore  # noqa: F401
