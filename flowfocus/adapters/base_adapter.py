"""
BaseAdapter - 智能表格适配器基类
BaseAdapter - Base Class for Smart Table Adapters

定义所有平台适配器（飞书、钉钉、企业微信）的统一接口：获取访问令牌、
写入/更新/删除/查询记录、获取表格信息和连接测试。

Defines the unified interface every platform adapter (Feishu, DingTalk, WeCom)
implements: token exchange, record create/update/delete/list, table info and a
connection test.
"""

import json
import logging
import time
from abc import ABC, abstractmethod
from dataclasses import is_dataclass, asdict
from typing import Any, Optional

import requests

from ..utils.retry import retry

logger = logging.getLogger(__name__)


class PlatformAPIError(Exception):
    """
    平台 API 业务错误
    Business error returned by a vendor API (non-zero code / errcode).

    Attributes:
        platform: 平台标识
        code: 平台返回的错误码
        message: 可读的错误信息
    """

    def __init__(self, platform: str, code: Any, message: str):
        self.platform = platform
        self.code = code
        self.message = message
        super().__init__(f"{platform} API error ({code}): {message}")


# 改写记录字段 -> 表格列标题
DEFAULT_FIELD_MAPPING: dict[str, str] = {
    'name': '名称',
    'original_text': '原文',
    'rewritten_text': '改写结果',
    'model_type': '模型',
    'prompt': '提示词',
    'category': '分类',
    'tags': '标签',
    'source_url': '来源链接',
    'created_at': '创建时间',
    'updated_at': '更新时间',
}


def stringify_value(value: Any) -> str:
    """
    将任意字段值转换为表格文本

    Examples:
        >>> stringify_value(['a', 'b'])
        'a, b'
        >>> stringify_value(True)
        '是'
    """
    if isinstance(value, bool):
        return '是' if value else '否'
    if isinstance(value, dict):
        return json.dumps(value, ensure_ascii=False)
    if isinstance(value, (list, tuple)):
        return ', '.join(str(v) for v in value)
    return str(value)


class BaseAdapter(ABC):
    """
    平台适配器抽象基类
    Abstract Base Class for platform adapters

    子类需要声明 PLATFORM 和 REQUIRED_FIELDS，并实现抽象方法。
    所有 HTTP 调用都通过 _send 发出：网络层错误按指数退避重试，
    平台业务错误以 PlatformAPIError 抛出。

    Attributes:
        config: 原始配置字典
        platform: 平台标识
        base_url: API 基础地址
        timeout: 单次请求超时（秒）
        retry_count: 网络错误最大重试次数
        retry_delay: 重试基础延迟（秒）
    """

    PLATFORM = ""
    DEFAULT_BASE_URL = ""
    REQUIRED_FIELDS: tuple[str, ...] = ()
    # 令牌提前 5 分钟视为过期
    TOKEN_REFRESH_MARGIN = 300
    ERROR_MESSAGES: dict[Any, str] = {}
    FIELD_MAPPING: dict[str, str] = DEFAULT_FIELD_MAPPING

    def __init__(self, config: dict):
        self.config = config
        self.platform = config.get('platform', self.PLATFORM)

        missing = [f for f in self.required_fields() if not str(config.get(f) or '').strip()]
        if missing:
            raise ValueError(f"{', '.join(missing)} required for {self.PLATFORM}")

        self.base_url = (config.get('base_url') or self.DEFAULT_BASE_URL).rstrip('/')
        self.timeout = float(config.get('timeout', 30))
        self.retry_count = int(config.get('retry_count', 3))
        self.retry_delay = float(config.get('retry_delay', 1.0))

        self._access_token: Optional[str] = None
        self._token_expires_at: float = 0

    @classmethod
    def required_fields(cls) -> tuple[str, ...]:
        return cls.REQUIRED_FIELDS

    # ------------------------------------------------------------------
    # Token handling
    # ------------------------------------------------------------------

    def _token_valid(self) -> bool:
        return bool(self._access_token) and time.time() < self._token_expires_at

    def _store_token(self, token: str, expires_in: float) -> str:
        self._access_token = token
        self._token_expires_at = time.time() + float(expires_in) - self.TOKEN_REFRESH_MARGIN
        logger.info(f"Obtained {self.PLATFORM} access token")
        return token

    @abstractmethod
    def get_access_token(self) -> str:
        """获取（或复用缓存的）访问令牌"""

    # ------------------------------------------------------------------
    # HTTP
    # ------------------------------------------------------------------

    def _send(self, method: str, url: str, **kwargs) -> dict:
        """
        发送请求并解析 JSON，网络错误自动重试

        Args:
            method: HTTP 方法
            url: 完整 URL
            **kwargs: 传递给 requests 的参数

        Returns:
            经 _check_response 检查后的响应数据
        """
        def do_request() -> dict:
            response = requests.request(method, url, timeout=self.timeout, **kwargs)
            try:
                data = response.json()
            except ValueError:
                data = None
            if data is None or (response.status_code >= 400 and not self._carries_error(data)):
                response.raise_for_status()
            return data or {}

        try:
            data = retry(
                do_request,
                max_retries=self.retry_count,
                delay=self.retry_delay,
                retry_on=(requests.exceptions.RequestException,),
            )
        except requests.exceptions.RequestException as e:
            logger.error(f"请求失败 {method} {url.split('?')[0]}: {e}")
            raise

        return self._check_response(data)

    def _carries_error(self, data: Any) -> bool:
        """响应体中是否带有平台错误信息（4xx/5xx 时优先使用平台错误）"""
        return isinstance(data, dict) and ('code' in data or 'errcode' in data)

    def _raise_api_error(self, code: Any, msg: str | None) -> None:
        message = self.ERROR_MESSAGES.get(code) or msg or '未知错误'
        logger.error(f"{self.PLATFORM} API 错误: code={code}, msg={msg}")
        raise PlatformAPIError(self.PLATFORM, code, message)

    def _single_result(self, results: list[dict]) -> dict:
        # 单条写入走批量接口，平台没有返回记录时按业务错误处理
        if not results:
            logger.error(f"{self.PLATFORM} 未返回写入的记录")
            raise PlatformAPIError(self.PLATFORM, None, "no record returned")
        return results[0]

    @abstractmethod
    def _check_response(self, data: dict) -> dict:
        """检查平台业务错误码，出错时抛出 PlatformAPIError"""

    # ------------------------------------------------------------------
    # Records
    # ------------------------------------------------------------------

    def format_record(self, record: Any) -> dict[str, str]:
        """
        将改写记录转换为 {列标题: 文本} 字典

        Args:
            record: RewriteRecord 或字典

        Returns:
            列标题到文本值的映射，空值字段被跳过
        """
        if is_dataclass(record):
            record = asdict(record)
        formatted = {}
        for key, column in self.FIELD_MAPPING.items():
            value = record.get(key)
            if value is None or value == '' or value == []:
                continue
            formatted[column] = stringify_value(value)
        return formatted

    @abstractmethod
    def create_record(self, record: Any) -> dict:
        """创建单条记录，返回 {'id': ..., ...}"""

    @abstractmethod
    def update_record(self, record_id: str, record: Any) -> dict:
        """更新单条记录"""

    @abstractmethod
    def delete_record(self, record_id: str) -> dict:
        """删除单条记录"""

    @abstractmethod
    def get_records(self, page_size: int = 100, page_token: str | None = None) -> tuple[list[dict], Optional[str]]:
        """列出记录，返回 (记录列表, 下一页 token)"""

    @abstractmethod
    def get_table_info(self) -> dict:
        """获取表格信息"""

    def batch_create_records(self, records: list[Any]) -> list[dict]:
        return [self.create_record(r) for r in records]

    def batch_update_records(self, updates: list[tuple[str, Any]]) -> list[dict]:
        return [self.update_record(record_id, r) for record_id, r in updates]

    def batch_delete_records(self, record_ids: list[str]) -> dict:
        for record_id in record_ids:
            self.delete_record(record_id)
        return {'success': True, 'deleted_count': len(record_ids)}

    def test_connection(self) -> bool:
        """
        测试连接：获取令牌并读取表格信息

        Returns:
            是否连接成功，不抛出异常
        """
        try:
            self.get_access_token()
            self.get_table_info()
            logger.info(f"{self.PLATFORM} 连接测试成功")
            return True
        except Exception as e:
            logger.error(f"{self.PLATFORM} 连接测试失败: {e}")
            return False
