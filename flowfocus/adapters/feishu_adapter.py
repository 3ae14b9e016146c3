"""
飞书多维表格适配器
Feishu Bitable Adapter

将改写记录同步到飞书多维表格。
Syncs rewrite records to a Feishu (Lark) Bitable.

功能：
- 获取 tenant_access_token
- 新增/更新/删除记录
- 批量操作
- 未配置 table_id 时自动使用多维表格中的第一个数据表
"""

import logging
from typing import Any, Optional

from .base_adapter import BaseAdapter

logger = logging.getLogger(__name__)


class FeishuAdapter(BaseAdapter):
    """
    飞书多维表格适配器
    Feishu Bitable Adapter

    Attributes:
        app_id: 飞书应用 ID
        app_secret: 飞书应用密钥
        table_token: 多维表格 app_token
        table_id: 数据表 ID（可选，不提供则使用第一个数据表）
    """

    PLATFORM = "feishu"
    DEFAULT_BASE_URL = "https://open.feishu.cn/open-apis"
    REQUIRED_FIELDS = ('app_id', 'app_secret', 'table_token')
    # API 限制单次批量最多 500 条
    MAX_BATCH_SIZE = 500

    ERROR_MESSAGES = {
        40001: '无效的访问令牌',
        40002: '访问令牌已过期',
        40003: '应用权限不足',
        40004: '请求参数错误',
        40005: '资源不存在',
        40006: '操作被限制',
        50001: '服务器内部错误',
        50002: '服务暂时不可用',
    }

    def __init__(self, config: dict):
        """
        初始化飞书多维表格适配器

        Args:
            config: 配置字典，包含：
                - app_id: 飞书应用 ID（必需）
                - app_secret: 飞书应用密钥（必需）
                - table_token: 多维表格 token（必需）
                - table_id: 数据表 ID（可选）
                - base_url: 开放平台地址（可选）
        """
        super().__init__(config)
        self.app_id = config['app_id']
        self.app_secret = config['app_secret']
        self.table_token = config['table_token']
        self.table_id: Optional[str] = config.get('table_id') or None

        logger.info(f"FeishuAdapter initialized with app_id={self.app_id[:10]}...")

    def _check_response(self, data: dict) -> dict:
        if data.get('code') != 0:
            self._raise_api_error(data.get('code'), data.get('msg'))
        return data

    def get_access_token(self) -> str:
        """
        获取 tenant_access_token

        Returns:
            有效的 access_token
        """
        if self._token_valid():
            return self._access_token

        data = self._send(
            "POST",
            f"{self.base_url}/auth/v3/tenant_access_token/internal",
            json={"app_id": self.app_id, "app_secret": self.app_secret},
        )
        # token 有效期通常是 2 小时
        return self._store_token(data.get('tenant_access_token'), data.get('expire', 7200))

    def _request(self, method: str, endpoint: str, **kwargs) -> dict:
        """
        发送带认证的 Bitable API 请求

        Args:
            method: HTTP 方法
            endpoint: API 端点（不含 base_url）
            **kwargs: 传递给 requests 的参数
        """
        headers = kwargs.pop('headers', {})
        headers['Authorization'] = f'Bearer {self.get_access_token()}'
        headers['Content-Type'] = 'application/json'
        return self._send(method, f"{self.base_url}{endpoint}", headers=headers, **kwargs)

    def list_tables(self) -> list[dict]:
        """列出多维表格中的数据表"""
        data = self._request("GET", f"/bitable/v1/apps/{self.table_token}/tables")
        return data.get('data', {}).get('items', [])

    def _get_table_id(self) -> str:
        if not self.table_id:
            tables = self.list_tables()
            if not tables:
                raise ValueError(f"多维表格 {self.table_token} 中没有数据表")
            self.table_id = tables[0].get('table_id')
            logger.info(f"未配置 table_id，使用第一个数据表: {self.table_id}")
        return self.table_id

    def _records_endpoint(self) -> str:
        return f"/bitable/v1/apps/{self.table_token}/tables/{self._get_table_id()}/records"

    @staticmethod
    def _format_response_record(record: dict) -> dict:
        return {
            'id': record.get('record_id'),
            'fields': record.get('fields', {}),
            'created_time': record.get('created_time'),
            'last_modified_time': record.get('last_modified_time'),
        }

    def create_record(self, record: Any) -> dict:
        """
        添加单条记录

        Args:
            record: RewriteRecord 或字典

        Returns:
            {'id': record_id, 'fields': ...}
        """
        data = self._request(
            "POST", self._records_endpoint(), json={"fields": self.format_record(record)}
        )
        created = self._format_response_record(data.get('data', {}).get('record', {}))
        logger.debug(f"添加记录成功: {created['id']}")
        return created

    def batch_create_records(self, records: list[Any]) -> list[dict]:
        """
        批量添加记录，超过 500 条时分批提交

        Returns:
            创建成功的记录列表
        """
        endpoint = f"{self._records_endpoint()}/batch_create"
        created: list[dict] = []

        for i in range(0, len(records), self.MAX_BATCH_SIZE):
            batch = records[i:i + self.MAX_BATCH_SIZE]
            payload = {"records": [{"fields": self.format_record(r)} for r in batch]}
            data = self._request("POST", endpoint, json=payload)
            added = data.get('data', {}).get('records', [])
            created.extend(self._format_response_record(r) for r in added)
            logger.info(f"批量添加记录: {i+1}-{i+len(batch)}/{len(records)}, 成功 {len(added)}")

        return created

    def update_record(self, record_id: str, record: Any) -> dict:
        data = self._request(
            "PUT",
            f"{self._records_endpoint()}/{record_id}",
            json={"fields": self.format_record(record)},
        )
        logger.debug(f"更新记录成功: {record_id}")
        return self._format_response_record(data.get('data', {}).get('record', {}))

    def batch_update_records(self, updates: list[tuple[str, Any]]) -> list[dict]:
        endpoint = f"{self._records_endpoint()}/batch_update"
        updated: list[dict] = []

        for i in range(0, len(updates), self.MAX_BATCH_SIZE):
            batch = updates[i:i + self.MAX_BATCH_SIZE]
            payload = {
                "records": [
                    {"record_id": record_id, "fields": self.format_record(r)}
                    for record_id, r in batch
                ]
            }
            data = self._request("POST", endpoint, json=payload)
            updated.extend(
                self._format_response_record(r)
                for r in data.get('data', {}).get('records', [])
            )

        return updated

    def delete_record(self, record_id: str) -> dict:
        self._request("DELETE", f"{self._records_endpoint()}/{record_id}")
        return {'success': True, 'id': record_id}

    def batch_delete_records(self, record_ids: list[str]) -> dict:
        endpoint = f"{self._records_endpoint()}/batch_delete"
        for i in range(0, len(record_ids), self.MAX_BATCH_SIZE):
            self._request("POST", endpoint, json={"records": record_ids[i:i + self.MAX_BATCH_SIZE]})
        return {'success': True, 'deleted_count': len(record_ids)}

    def get_records(self, page_size: int = 100, page_token: str | None = None) -> tuple[list[dict], Optional[str]]:
        """
        列出记录

        Args:
            page_size: 每页数量（最大 500）
            page_token: 分页 token

        Returns:
            (记录列表, 下一页 token) 元组
        """
        params: dict[str, Any] = {"page_size": min(page_size, self.MAX_BATCH_SIZE)}
        if page_token:
            params["page_token"] = page_token

        data = self._request("GET", self._records_endpoint(), params=params)
        body = data.get('data', {})
        items = [self._format_response_record(r) for r in body.get('items') or []]
        next_token = body.get('page_token') if body.get('has_more') else None
        return items, next_token

    def get_table_info(self) -> dict:
        data = self._request("GET", f"/bitable/v1/apps/{self.table_token}")
        return {
            'name': data.get('data', {}).get('app', {}).get('name') or '未知表格',
            'table_token': self.table_token,
            'platform': self.PLATFORM,
            'is_connected': True,
        }
