"""
数据模型模块

定义系统中使用的数据模型类：模型配置和改写记录。
两者都以 name 作为唯一键，按名称增删改查。
"""

from dataclasses import dataclass, field, asdict, fields
from datetime import datetime
from typing import Any


# 旧版（浏览器扩展）数据使用 camelCase 字段名
LEGACY_KEY_ALIASES: dict[str, str] = {
    'modelType': 'model_type',
    'apiKey': 'api_key',
    'baseUrl': 'base_url',
    'modelEndpoint': 'model_endpoint',
    'originalText': 'original_text',
    'rewrittenText': 'rewritten_text',
    'modelName': 'model_name',
    'sourceUrl': 'source_url',
    'sourceTitle': 'source_title',
    'syncStatus': 'sync_status',
    'lastSyncAt': 'last_sync_at',
    'syncErrors': 'sync_errors',
    'createdAt': 'created_at',
    'updatedAt': 'updated_at',
}


def now_iso() -> str:
    """当前时间的 ISO 格式字符串"""
    return datetime.now().isoformat()


def _normalize_keys(data: dict[str, Any], valid_fields: set[str]) -> dict[str, Any]:
    """
    将 camelCase 别名转换为字段名，并丢弃未知字段

    Args:
        data: 原始字典
        valid_fields: 数据类定义的字段名集合

    Returns:
        只包含有效字段的字典
    """
    normalized = {}
    for key, value in data.items():
        key = LEGACY_KEY_ALIASES.get(key, key)
        if key in valid_fields:
            normalized[key] = value
    return normalized


@dataclass
class ModelConfig:
    """
    模型配置

    Attributes:
        name: 配置名称（唯一键）
        model_type: 模型类型：qwen/deepseek/volces/kimi/hunyuan
        api_key: API 密钥
        base_url: API 地址，为空时使用模型类型的默认地址
        model_endpoint: 模型名称或推理接入点，为空时使用默认模型
    """
    name: str = ""
    model_type: str = ""
    api_key: str = ""
    base_url: str | None = None
    model_endpoint: str | None = None

    def to_dict(self) -> dict[str, Any]:
        return asdict(self)

    @classmethod
    def from_dict(cls, data: dict[str, Any]) -> "ModelConfig":
        valid_fields = {f.name for f in fields(cls)}
        return cls(**_normalize_keys(data, valid_fields))

    def validate(self) -> list[str]:
        """
        验证配置

        Returns:
            错误信息列表，为空表示有效
        """
        errors = []
        if not self.name or not self.name.strip():
            errors.append("name is required")
        if not self.model_type:
            errors.append("model_type is required")
        if not self.api_key:
            errors.append("api_key is required")
        return errors


@dataclass
class RewriteRecord:
    """
    改写记录

    用于保存一次改写的原文、结果和同步状态。

    Attributes:
        name: 记录名称（唯一键）
        original_text: 原始文本
        rewritten_text: 改写后的文本
        model_type: 使用的模型类型
        model_name: 使用的模型名称
        prompt: 改写提示词
        category: 分类
        tags: 标签列表
        source_url: 原文所在页面 URL
        source_title: 原文所在页面标题
        sync_status: 同步状态：pending/synced/failed
        last_sync_at: 最近同步时间（ISO格式字符串）
        sync_errors: 最近一次同步的错误信息
        metadata: 附加信息
        created_at: 创建时间（ISO格式字符串）
        updated_at: 更新时间（ISO格式字符串）
    """
    name: str = ""
    original_text: str = ""
    rewritten_text: str = ""
    model_type: str = ""
    model_name: str = ""
    prompt: str = ""
    category: str = "通用"
    tags: list[str] = field(default_factory=list)
    source_url: str = ""
    source_title: str = ""
    sync_status: str = "pending"
    last_sync_at: str | None = None
    sync_errors: list[str] = field(default_factory=list)
    metadata: dict[str, Any] = field(default_factory=dict)
    created_at: str = field(default_factory=now_iso)
    updated_at: str = field(default_factory=now_iso)

    def to_dict(self) -> dict[str, Any]:
        return asdict(self)

    @classmethod
    def from_dict(cls, data: dict[str, Any]) -> "RewriteRecord":
        """
        从字典创建RewriteRecord对象

        Note:
            字典中不存在的字段将使用默认值，未知字段被忽略
        """
        valid_fields = {f.name for f in fields(cls)}
        return cls(**_normalize_keys(data, valid_fields))

    def mark_synced(self) -> None:
        self.sync_status = "synced"
        self.last_sync_at = now_iso()
        self.sync_errors = []

    def mark_sync_failed(self, error: str) -> None:
        self.sync_status = "failed"
        self.last_sync_at = now_iso()
        self.sync_errors = [error]
