# Storage module - 存储模块
# 包含键值存储后端和 StorageService

from .stores import KeyValueStore, MemoryStore, JsonFileStore
from .storage_service import StorageService, RecordNotFoundError

__all__ = [
    "KeyValueStore",
    "MemoryStore",
    "JsonFileStore",
    "StorageService",
    "RecordNotFoundError",
]
