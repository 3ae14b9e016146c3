"""
键值存储后端
Key-Value Store Backends

提供 get/set/remove/clear 四个操作的本地键值存储：
- MemoryStore: 内存存储，用于测试和临时运行
- JsonFileStore: 单个 JSON 文件存储，每次写入先写独立的临时文件再替换，保证单次写入原子性；
  同一实例内的读写由锁串行化
"""

import copy
import json
import logging
import os
import tempfile
import threading
from abc import ABC, abstractmethod
from pathlib import Path
from typing import Any

logger = logging.getLogger(__name__)


class KeyValueStore(ABC):
    """键值存储接口"""

    @abstractmethod
    def get(self, key: str) -> Any:
        """读取键值，不存在时返回 None"""

    @abstractmethod
    def set(self, key: str, value: Any) -> None:
        """写入键值"""

    @abstractmethod
    def remove(self, key: str) -> None:
        """删除键，不存在时忽略"""

    @abstractmethod
    def clear(self) -> None:
        """清空所有数据"""


class MemoryStore(KeyValueStore):
    """内存键值存储，读写时深拷贝，避免调用方修改已存储的数据"""

    def __init__(self):
        self._data: dict[str, Any] = {}

    def get(self, key: str) -> Any:
        return copy.deepcopy(self._data.get(key))

    def set(self, key: str, value: Any) -> None:
        self._data[key] = copy.deepcopy(value)

    def remove(self, key: str) -> None:
        self._data.pop(key, None)

    def clear(self) -> None:
        self._data.clear()


class JsonFileStore(KeyValueStore):
    """
    JSON 文件键值存储

    整个存储是一个 JSON 对象，每次操作读取整个文件，写入时先写入
    同目录下的唯一临时文件，再用 os.replace 替换原文件。所有操作持有同一把锁。

    Attributes:
        path: JSON 文件路径
    """

    def __init__(self, path: str | Path = "data/storage.json"):
        self.path = Path(path)
        self.path.parent.mkdir(parents=True, exist_ok=True)
        self._lock = threading.RLock()

    def _read_all(self) -> dict[str, Any]:
        if not self.path.exists():
            return {}
        with open(self.path, 'r', encoding='utf-8') as f:
            content = f.read()
        if not content.strip():
            return {}
        data = json.loads(content)
        if not isinstance(data, dict):
            raise ValueError(f"存储文件格式错误: {self.path}")
        return data

    def _write_all(self, data: dict[str, Any]) -> None:
        with tempfile.NamedTemporaryFile(
            'w',
            encoding='utf-8',
            dir=self.path.parent,
            prefix=self.path.name + '.',
            suffix='.tmp',
            delete=False,
        ) as f:
            tmp_path = f.name
            json.dump(data, f, ensure_ascii=False, indent=2)
        try:
            os.replace(tmp_path, self.path)
        except OSError:
            os.unlink(tmp_path)
            raise

    def get(self, key: str) -> Any:
        with self._lock:
            return self._read_all().get(key)

    def set(self, key: str, value: Any) -> None:
        with self._lock:
            data = self._read_all()
            data[key] = value
            self._write_all(data)

    def remove(self, key: str) -> None:
        with self._lock:
            data = self._read_all()
            if key in data:
                del data[key]
                self._write_all(data)

    def clear(self) -> None:
        with self._lock:
            self._write_all({})
        logger.info(f"已清空存储: {self.path}")
