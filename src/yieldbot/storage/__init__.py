"""Decision persistence layer -- pluggable key-value backends and the typed strategy store."""

from yieldbot.storage.backend import KeyValueBackend
from yieldbot.storage.database import SqliteKeyValueBackend
from yieldbot.storage.file_backend import FileKeyValueBackend
from yieldbot.storage.store import StrategyStore, build_backend

__all__ = [
    "FileKeyValueBackend",
    "KeyValueBackend",
    "SqliteKeyValueBackend",
    "StrategyStore",
    "build_backend",
]
