"""
存储服务模块
Storage Service Module

在键值存储之上提供数据的增删改查，以及两个按名称管理的集合：
模型配置和改写记录。

每个集合操作都是对整个集合的一次读取-修改-写入，在同一把锁内完成，没有部分更新。
同名写入会原位替换，而不是追加。读取时无法解析的集合返回空列表，写入时则直接报错，
避免把残缺的集合写回存储。
"""

import logging
import threading
from typing import Any, Callable, TypeVar

from ..models import ModelConfig, RewriteRecord, now_iso
from .stores import KeyValueStore, MemoryStore

logger = logging.getLogger(__name__)

MODEL_CONFIGS_KEY = "model_configs"
REWRITE_RECORDS_KEY = "rewrite_records"

T = TypeVar('T', ModelConfig, RewriteRecord)


class RecordNotFoundError(LookupError):
    """按名称找不到记录"""


class StorageService:
    """
    存储服务

    Attributes:
        store: 底层键值存储
    """

    def __init__(self, store: KeyValueStore | None = None):
        self.store = store if store is not None else MemoryStore()
        # 消息服务是多线程的，集合的读取-修改-写入必须串行
        self._lock = threading.RLock()

    # ------------------------------------------------------------------
    # 基础键值操作
    # ------------------------------------------------------------------

    def save_data(self, key: str, value: Any) -> None:
        self.store.set(key, value)

    def load_data(self, key: str) -> Any:
        return self.store.get(key)

    def delete_data(self, key: str) -> None:
        self.store.remove(key)

    def edit_data(self, key: str, value: Any) -> None:
        # set 既可以创建也可以更新
        self.save_data(key, value)

    def clear_all_data(self) -> None:
        self.store.clear()

    # ------------------------------------------------------------------
    # 按名称管理的集合
    # ------------------------------------------------------------------

    def _read_collection(self, key: str, factory: Callable[[dict], T]) -> list[T]:
        """读取集合，任何一条无法解析都会抛出异常，写入路径必须使用它"""
        items = self.load_data(key) or []
        if not isinstance(items, list):
            raise ValueError(f"{key} 不是列表: {type(items).__name__}")
        for item in items:
            if not isinstance(item, dict):
                raise ValueError(f"{key} 中存在无法解析的条目: {item!r}")
        return [factory(item) for item in items]

    def _load_collection(self, key: str, factory: Callable[[dict], T]) -> list[T]:
        try:
            with self._lock:
                return self._read_collection(key, factory)
        except Exception as e:
            logger.error(f"加载 {key} 失败: {e}")
            return []

    def _save_collection(self, key: str, items: list[T]) -> None:
        self.save_data(key, [item.to_dict() for item in items])

    def _upsert(self, key: str, factory: Callable[[dict], T], new_items: list[T]) -> None:
        with self._lock:
            items = self._read_collection(key, factory)
            for new_item in new_items:
                for index, item in enumerate(items):
                    if item.name == new_item.name:
                        items[index] = new_item
                        break
                else:
                    items.append(new_item)
            self._save_collection(key, items)

    def _delete(self, key: str, factory: Callable[[dict], T], names: list[str]) -> None:
        names = set(names)
        with self._lock:
            items = self._read_collection(key, factory)
            self._save_collection(key, [item for item in items if item.name not in names])

    def _find(self, key: str, factory: Callable[[dict], T], name: str) -> T | None:
        for item in self._load_collection(key, factory):
            if item.name == name:
                return item
        return None

    # ------------------------------------------------------------------
    # 模型配置
    # ------------------------------------------------------------------

    def save_model_config(self, config: ModelConfig) -> None:
        """保存模型配置，同名配置原位替换"""
        try:
            self._upsert(MODEL_CONFIGS_KEY, ModelConfig.from_dict, [config])
        except Exception as e:
            logger.error(f"保存模型配置失败: {e}")
            raise

    def save_model_configs(self, configs: list[ModelConfig]) -> None:
        try:
            self._upsert(MODEL_CONFIGS_KEY, ModelConfig.from_dict, configs)
        except Exception as e:
            logger.error(f"批量保存模型配置失败: {e}")
            raise

    def load_model_configs(self) -> list[ModelConfig]:
        return self._load_collection(MODEL_CONFIGS_KEY, ModelConfig.from_dict)

    def get_model_config(self, name: str) -> ModelConfig | None:
        return self._find(MODEL_CONFIGS_KEY, ModelConfig.from_dict, name)

    def delete_model_config(self, name: str) -> None:
        self.delete_model_configs([name])

    def delete_model_configs(self, names: list[str]) -> None:
        """批量删除模型配置，只删除名称在 names 中的配置"""
        try:
            self._delete(MODEL_CONFIGS_KEY, ModelConfig.from_dict, names)
        except Exception as e:
            logger.error(f"删除模型配置失败: {e}")
            raise

    # ------------------------------------------------------------------
    # 改写记录
    # ------------------------------------------------------------------

    def save_rewrite_record(self, record: RewriteRecord) -> None:
        try:
            self._upsert(REWRITE_RECORDS_KEY, RewriteRecord.from_dict, [record])
        except Exception as e:
            logger.error(f"保存改写记录失败: {e}")
            raise

    def save_rewrite_records(self, records: list[RewriteRecord]) -> None:
        try:
            self._upsert(REWRITE_RECORDS_KEY, RewriteRecord.from_dict, records)
        except Exception as e:
            logger.error(f"批量保存改写记录失败: {e}")
            raise

    def load_rewrite_records(self) -> list[RewriteRecord]:
        return self._load_collection(REWRITE_RECORDS_KEY, RewriteRecord.from_dict)

    def get_rewrite_record(self, name: str) -> RewriteRecord | None:
        return self._find(REWRITE_RECORDS_KEY, RewriteRecord.from_dict, name)

    def delete_rewrite_record(self, name: str) -> None:
        self.delete_rewrite_records([name])

    def delete_rewrite_records(self, names: list[str]) -> None:
        try:
            self._delete(REWRITE_RECORDS_KEY, RewriteRecord.from_dict, names)
        except Exception as e:
            logger.error(f"删除改写记录失败: {e}")
            raise

    def edit_rewrite_record(self, name: str, updates: dict[str, Any]) -> RewriteRecord:
        """
        编辑改写记录

        合并 updates 中的字段并刷新 updated_at。

        Args:
            name: 记录名称
            updates: 需要更新的字段

        Returns:
            更新后的记录

        Raises:
            RecordNotFoundError: 找不到该名称的记录
            ValueError: 改名后与另一条记录重名
        """
        with self._lock:
            records = self._read_collection(REWRITE_RECORDS_KEY, RewriteRecord.from_dict)
            for index, record in enumerate(records):
                if record.name != name:
                    continue

                new_name = updates.get('name', name)
                if new_name != name and any(r.name == new_name for r in records):
                    logger.error(f"编辑改写记录失败: 名称 {new_name} 已存在")
                    raise ValueError(f'Rewrite record "{new_name}" already exists')

                merged = {**record.to_dict(), **updates, 'updated_at': now_iso()}
                records[index] = RewriteRecord.from_dict(merged)
                self._save_collection(REWRITE_RECORDS_KEY, records)
                return records[index]

        logger.error(f"编辑改写记录失败: 未找到 {name}")
        raise RecordNotFoundError(f'Rewrite record "{name}" not found')
