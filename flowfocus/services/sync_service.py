"""
数据同步服务模块
Sync Service Module

将本地保存的改写记录同步到智能表格平台，并把每条记录的同步状态写回存储。

同步规则：
- 记录 metadata 中保存了该平台的远端记录 ID 时更新，否则新增
- 多条新增记录使用适配器的批量接口
- 单条失败不影响其他记录
"""

import logging
from typing import Any

from ..adapters import adapter_factory
from ..adapters.base_adapter import BaseAdapter
from ..models import RewriteRecord
from ..storage import StorageService

logger = logging.getLogger(__name__)


def remote_id_key(platform: str) -> str:
    """metadata 中保存远端记录 ID 的键名"""
    return f"{platform}_record_id"


class SyncService:
    """
    同步服务

    Attributes:
        storage: 存储服务
    """

    def __init__(self, storage: StorageService):
        self.storage = storage

    def _select_records(self, names: list[str] | None) -> tuple[list[RewriteRecord], list[str]]:
        records = self.storage.load_rewrite_records()
        if names is None:
            return records, []

        by_name = {r.name: r for r in records}
        selected = [by_name[n] for n in names if n in by_name]
        missing = [n for n in names if n not in by_name]
        return selected, missing

    def _push(self, adapter: BaseAdapter, records: list[RewriteRecord]) -> dict[str, str]:
        """
        推送记录到平台

        Returns:
            {记录名称: 错误信息}，成功的记录不在其中
        """
        key = remote_id_key(adapter.PLATFORM)
        errors: dict[str, str] = {}

        to_update = [r for r in records if r.metadata.get(key)]
        to_create = [r for r in records if not r.metadata.get(key)]

        for record in to_update:
            try:
                adapter.update_record(record.metadata[key], record)
            except Exception as e:
                logger.error(f"更新远端记录失败 {record.name}: {e}")
                errors[record.name] = str(e)

        if len(to_create) > 1:
            try:
                created = adapter.batch_create_records(to_create)
                for record, remote in zip(to_create, created):
                    record.metadata[key] = remote.get('id')
                for record in to_create[len(created):]:
                    errors[record.name] = "record was not created by the platform"
            except Exception as e:
                logger.error(f"批量创建远端记录失败: {e}")
                for record in to_create:
                    errors[record.name] = str(e)
        elif to_create:
            record = to_create[0]
            try:
                record.metadata[key] = adapter.create_record(record).get('id')
            except Exception as e:
                logger.error(f"创建远端记录失败 {record.name}: {e}")
                errors[record.name] = str(e)

        return errors

    def sync_records(
        self,
        platform: str,
        config: dict,
        names: list[str] | None = None,
    ) -> dict[str, Any]:
        """
        同步改写记录到平台

        Args:
            platform: 平台标识
            config: 平台配置
            names: 需要同步的记录名称，None 表示全部

        Returns:
            {'success', 'total', 'synced', 'failed', 'errors'} 或 {'success': False, 'error': ...}
        """
        try:
            records, missing = self._select_records(names)
            errors: dict[str, str] = {name: "record not found" for name in missing}

            if records:
                adapter = adapter_factory.create_adapter(platform, config)
                push_errors = self._push(adapter, records)
                errors.update(push_errors)

                for record in records:
                    if record.name in push_errors:
                        record.mark_sync_failed(push_errors[record.name])
                    else:
                        record.mark_synced()
                self.storage.save_rewrite_records(records)

            total = len(records) + len(missing)
            failed = len(errors)
            logger.info(f"同步到 {platform} 完成: 总计 {total}, 成功 {total - failed}, 失败 {failed}")

            return {
                'success': failed == 0,
                'total': total,
                'synced': total - failed,
                'failed': failed,
                'errors': errors,
            }

        except Exception as e:
            logger.error(f"同步到 {platform} 失败: {e}")
            return {'success': False, 'error': str(e)}
