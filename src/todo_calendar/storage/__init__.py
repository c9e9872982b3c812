from .base import KeyValueStore, StorageError  # noqa: F401
from .memory_store import MemoryKeyValueStore  # noqa: F401
from .sql_store import SqlKeyValueStore  # noqa: F401
