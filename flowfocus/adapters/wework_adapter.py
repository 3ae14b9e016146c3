"""
企业微信智能表格适配器
WeCom Smartsheet Adapter

使用 wedoc/smartsheet 接口读写记录，access_token 通过查询参数传递。
记录值按字段标题（CELL_VALUE_KEY_TYPE_FIELD_TITLE）写入，单次最多 100 条。
"""

import logging
from typing import Any, Optional

from .base_adapter import BaseAdapter

logger = logging.getLogger(__name__)


class WeworkAdapter(BaseAdapter):
    """
    企业微信智能表格适配器

    Attributes:
        corp_id: 企业 ID
        corp_secret: 应用 Secret
        agent_id: 应用 AgentId
        doc_id: 智能表格文档 ID
        sheet_id: 子表 ID
    """

    PLATFORM = "wework"
    DEFAULT_BASE_URL = "https://qyapi.weixin.qq.com"
    REQUIRED_FIELDS = ('corp_id', 'corp_secret', 'agent_id', 'doc_id', 'sheet_id')
    MAX_BATCH_SIZE = 100
    KEY_TYPE = "CELL_VALUE_KEY_TYPE_FIELD_TITLE"

    ERROR_MESSAGES = {
        40001: '无效的访问令牌',
        40013: '企业号不存在',
        40014: '不合法的access_token',
        41001: '缺少access_token参数',
        42001: 'access_token超时',
        45009: '接口调用超过限制',
        48002: 'API接口无权限调用',
        60011: '无权限操作',
    }

    def __init__(self, config: dict):
        super().__init__(config)
        self.corp_id = config['corp_id']
        self.corp_secret = config['corp_secret']
        self.agent_id = str(config['agent_id'])
        self.doc_id = config['doc_id']
        self.sheet_id = config['sheet_id']

        logger.info(f"WeworkAdapter initialized with corp_id={self.corp_id[:10]}...")

    def _check_response(self, data: dict) -> dict:
        errcode = data.get('errcode', 0)
        if errcode != 0:
            self._raise_api_error(errcode, data.get('errmsg'))
        return data

    def get_access_token(self) -> str:
        if self._token_valid():
            return self._access_token

        data = self._send(
            "GET",
            f"{self.base_url}/cgi-bin/gettoken",
            params={"corpid": self.corp_id, "corpsecret": self.corp_secret},
        )
        return self._store_token(data.get('access_token'), data.get('expires_in', 7200))

    def _post(self, api: str, payload: dict) -> dict:
        body = {"docid": self.doc_id, "sheet_id": self.sheet_id, **payload}
        return self._send(
            "POST",
            f"{self.base_url}/cgi-bin/wedoc/smartsheet/{api}",
            params={"access_token": self.get_access_token()},
            json=body,
        )

    def format_record(self, record: Any) -> dict[str, list[dict]]:
        """文本单元格格式：{标题: [{"type": "text", "text": ...}]}"""
        return {
            column: [{"type": "text", "text": text}]
            for column, text in super().format_record(record).items()
        }

    @staticmethod
    def _format_response_record(record: dict) -> dict:
        return {
            'id': record.get('record_id'),
            'values': record.get('values', {}),
            'create_time': record.get('create_time'),
            'update_time': record.get('update_time'),
        }

    def create_record(self, record: Any) -> dict:
        return self._single_result(self.batch_create_records([record]))

    def batch_create_records(self, records: list[Any]) -> list[dict]:
        created: list[dict] = []
        for i in range(0, len(records), self.MAX_BATCH_SIZE):
            batch = records[i:i + self.MAX_BATCH_SIZE]
            data = self._post("add_records", {
                "key_type": self.KEY_TYPE,
                "records": [{"values": self.format_record(r)} for r in batch],
            })
            created.extend(self._format_response_record(r) for r in data.get('records', []))
        return created

    def update_record(self, record_id: str, record: Any) -> dict:
        return self._single_result(self.batch_update_records([(record_id, record)]))

    def batch_update_records(self, updates: list[tuple[str, Any]]) -> list[dict]:
        updated: list[dict] = []
        for i in range(0, len(updates), self.MAX_BATCH_SIZE):
            batch = updates[i:i + self.MAX_BATCH_SIZE]
            data = self._post("update_records", {
                "key_type": self.KEY_TYPE,
                "records": [
                    {"record_id": record_id, "values": self.format_record(r)}
                    for record_id, r in batch
                ],
            })
            updated.extend(self._format_response_record(r) for r in data.get('records', []))
        return updated

    def delete_record(self, record_id: str) -> dict:
        self.batch_delete_records([record_id])
        return {'success': True, 'id': record_id}

    def batch_delete_records(self, record_ids: list[str]) -> dict:
        for i in range(0, len(record_ids), self.MAX_BATCH_SIZE):
            self._post("delete_records", {"record_ids": record_ids[i:i + self.MAX_BATCH_SIZE]})
        return {'success': True, 'deleted_count': len(record_ids)}

    def get_records(self, page_size: int = 100, page_token: str | None = None) -> tuple[list[dict], Optional[str]]:
        """
        列出记录

        企业微信使用 offset 分页，这里把 offset 作为 page_token 传递。
        """
        offset = int(page_token) if page_token else 0
        data = self._post("get_records", {
            "key_type": self.KEY_TYPE,
            "offset": offset,
            "limit": min(page_size, self.MAX_BATCH_SIZE),
        })
        items = [self._format_response_record(r) for r in data.get('records', [])]
        next_token = str(data.get('next')) if data.get('has_more') else None
        return items, next_token

    def get_table_info(self) -> dict:
        data = self._post("get_sheet", {})
        sheets = data.get('sheet_list') or []
        name = sheets[0].get('title') if sheets else None
        return {
            'name': name or '企业微信智能表格',
            'doc_id': self.doc_id,
            'sheet_id': self.sheet_id,
            'platform': self.PLATFORM,
            'is_connected': True,
        }
