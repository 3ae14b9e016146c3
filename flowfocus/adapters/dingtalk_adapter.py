"""
钉钉智能表格适配器
DingTalk Notable Adapter

访问令牌通过旧版 oapi 接口获取，记录读写使用 v1.0 Notable 接口，
令牌放在 x-acs-dingtalk-access-token 头中，操作人通过 operatorId 指定。
"""

import logging
from typing import Any, Optional

from .base_adapter import BaseAdapter

logger = logging.getLogger(__name__)


class DingtalkAdapter(BaseAdapter):
    """
    钉钉智能表格适配器

    Attributes:
        app_key: 钉钉应用 AppKey
        app_secret: 钉钉应用 AppSecret
        workbook_id: 智能表格（base）ID
        sheet_id: 数据表 ID
        operator_id: 操作人 unionId
    """

    PLATFORM = "dingtalk"
    DEFAULT_BASE_URL = "https://api.dingtalk.com"
    TOKEN_URL = "https://oapi.dingtalk.com/gettoken"
    REQUIRED_FIELDS = ('app_key', 'app_secret', 'workbook_id', 'sheet_id')
    MAX_BATCH_SIZE = 100

    ERROR_MESSAGES = {
        40001: '无效的访问令牌',
        40002: '访问令牌已过期',
        40003: '应用权限不足',
        40004: '请求参数错误',
        40005: '资源不存在',
        40006: '操作被限制',
        40007: '应用未授权',
        50001: '服务器内部错误',
        50002: '服务暂时不可用',
        'InvalidAuthentication': '无效的访问令牌',
        'Forbidden.AccessDenied': '应用权限不足',
    }

    def __init__(self, config: dict):
        super().__init__(config)
        self.app_key = config['app_key']
        self.app_secret = config['app_secret']
        self.workbook_id = config['workbook_id']
        self.sheet_id = config['sheet_id']
        self.operator_id = config.get('operator_id') or ''

        logger.info(f"DingtalkAdapter initialized with app_key={self.app_key[:10]}...")

    def _check_response(self, data: dict) -> dict:
        errcode = data.get('errcode')
        if errcode not in (None, 0):
            self._raise_api_error(errcode, data.get('errmsg'))
        # v1.0 接口出错时返回 {"code": "...", "message": "..."}
        if data.get('code') and data.get('message'):
            self._raise_api_error(data.get('code'), data.get('message'))
        return data

    def get_access_token(self) -> str:
        if self._token_valid():
            return self._access_token

        data = self._send(
            "GET",
            self.TOKEN_URL,
            params={"appkey": self.app_key, "appsecret": self.app_secret},
        )
        return self._store_token(data.get('access_token'), data.get('expires_in', 7200))

    def _request(self, method: str, endpoint: str, **kwargs) -> dict:
        headers = kwargs.pop('headers', {})
        headers['x-acs-dingtalk-access-token'] = self.get_access_token()
        headers['Content-Type'] = 'application/json'
        params = kwargs.pop('params', {})
        params['operatorId'] = self.operator_id
        return self._send(
            method, f"{self.base_url}{endpoint}", headers=headers, params=params, **kwargs
        )

    def _sheet_endpoint(self) -> str:
        return f"/v1.0/notable/bases/{self.workbook_id}/sheets/{self.sheet_id}"

    @staticmethod
    def _format_response_record(record: dict) -> dict:
        return {
            'id': record.get('id'),
            'fields': record.get('fields', {}),
        }

    def create_record(self, record: Any) -> dict:
        return self._single_result(self.batch_create_records([record]))

    def batch_create_records(self, records: list[Any]) -> list[dict]:
        endpoint = f"{self._sheet_endpoint()}/records"
        created: list[dict] = []

        for i in range(0, len(records), self.MAX_BATCH_SIZE):
            batch = records[i:i + self.MAX_BATCH_SIZE]
            payload = {"records": [{"fields": self.format_record(r)} for r in batch]}
            data = self._request("POST", endpoint, json=payload)
            created.extend(self._format_response_record(r) for r in data.get('value', []))

        return created

    def update_record(self, record_id: str, record: Any) -> dict:
        return self._single_result(self.batch_update_records([(record_id, record)]))

    def batch_update_records(self, updates: list[tuple[str, Any]]) -> list[dict]:
        endpoint = f"{self._sheet_endpoint()}/records"
        updated: list[dict] = []

        for i in range(0, len(updates), self.MAX_BATCH_SIZE):
            batch = updates[i:i + self.MAX_BATCH_SIZE]
            payload = {
                "records": [
                    {"id": record_id, "fields": self.format_record(r)}
                    for record_id, r in batch
                ]
            }
            data = self._request("PUT", endpoint, json=payload)
            updated.extend(self._format_response_record(r) for r in data.get('value', []))

        return updated

    def delete_record(self, record_id: str) -> dict:
        self.batch_delete_records([record_id])
        return {'success': True, 'id': record_id}

    def batch_delete_records(self, record_ids: list[str]) -> dict:
        endpoint = f"{self._sheet_endpoint()}/records/delete"
        for i in range(0, len(record_ids), self.MAX_BATCH_SIZE):
            self._request("POST", endpoint, json={"recordIds": record_ids[i:i + self.MAX_BATCH_SIZE]})
        return {'success': True, 'deleted_count': len(record_ids)}

    def get_records(self, page_size: int = 100, page_token: str | None = None) -> tuple[list[dict], Optional[str]]:
        payload: dict[str, Any] = {"maxResults": min(page_size, self.MAX_BATCH_SIZE)}
        if page_token:
            payload["nextToken"] = page_token

        data = self._request("POST", f"{self._sheet_endpoint()}/records/list", json=payload)
        items = [self._format_response_record(r) for r in data.get('records', [])]
        next_token = data.get('nextToken') if data.get('hasMore') else None
        return items, next_token

    def get_table_info(self) -> dict:
        data = self._request("GET", self._sheet_endpoint())
        return {
            'name': data.get('name') or '钉钉智能表格',
            'workbook_id': self.workbook_id,
            'sheet_id': self.sheet_id,
            'platform': self.PLATFORM,
            'is_connected': True,
        }
