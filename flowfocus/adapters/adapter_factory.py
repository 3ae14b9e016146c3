"""
适配器工厂模块
Adapter Factory Module

统一管理和创建不同平台的适配器实例，提供平台元数据、配置校验、
配置模板、字段格式提示以及连接测试。

Creates platform adapters by key and exposes platform metadata, config
validation, config templates, field-format hints and connection testing.
"""

import logging
import time
from dataclasses import dataclass, field
from typing import Any

from .base_adapter import BaseAdapter
from .dingtalk_adapter import DingtalkAdapter
from .feishu_adapter import FeishuAdapter
from .wework_adapter import WeworkAdapter

logger = logging.getLogger(__name__)


class UnsupportedPlatformError(ValueError):
    """不支持的平台类型"""

    def __init__(self, platform: Any):
        self.platform = platform
        super().__init__(f"Unsupported platform: {platform}")


class AdapterCreationError(Exception):
    """适配器创建失败（通常是缺少必需配置）"""


@dataclass(frozen=True)
class PlatformDescriptor:
    """
    平台描述（静态，不可变）

    Attributes:
        key: 平台标识
        name: 显示名称
        description: 描述
        required_fields: 必需配置字段
        optional_fields: 可选配置字段
    """
    key: str
    name: str
    description: str
    required_fields: tuple[str, ...]
    optional_fields: tuple[str, ...]

    def to_dict(self) -> dict[str, Any]:
        return {
            "key": self.key,
            "name": self.name,
            "description": self.description,
            "required_fields": list(self.required_fields),
            "optional_fields": list(self.optional_fields),
        }


@dataclass
class ValidationResult:
    """
    配置校验结果

    缺少必需字段记为 errors（is_valid=False），格式问题和缺少可选字段只记为 warnings。
    """
    is_valid: bool = True
    errors: list[str] = field(default_factory=list)
    warnings: list[str] = field(default_factory=list)

    def add_error(self, message: str) -> None:
        self.is_valid = False
        self.errors.append(message)

    def to_dict(self) -> dict[str, Any]:
        return {
            "is_valid": self.is_valid,
            "errors": list(self.errors),
            "warnings": list(self.warnings),
        }


PLATFORMS: tuple[PlatformDescriptor, ...] = (
    PlatformDescriptor(
        key="feishu",
        name="飞书多维表格",
        description="飞书(Lark)多维表格集成",
        required_fields=FeishuAdapter.REQUIRED_FIELDS,
        optional_fields=("table_id", "base_url"),
    ),
    PlatformDescriptor(
        key="dingtalk",
        name="钉钉智能表格",
        description="钉钉智能表格集成",
        required_fields=DingtalkAdapter.REQUIRED_FIELDS,
        optional_fields=("base_url", "operator_id"),
    ),
    PlatformDescriptor(
        key="wework",
        name="企业微信智能表格",
        description="企业微信智能表格集成",
        required_fields=WeworkAdapter.REQUIRED_FIELDS,
        optional_fields=("base_url",),
    ),
)

ADAPTER_CLASSES: dict[str, type[BaseAdapter]] = {
    "feishu": FeishuAdapter,
    "dingtalk": DingtalkAdapter,
    "wework": WeworkAdapter,
}

FIELD_FORMAT_HINTS: dict[str, dict[str, str]] = {
    "feishu": {
        "app_id": '以 "cli_" 开头，例如 cli_a1b2c3d4e5f6',
        "app_secret": "32 位字符串，在应用凭证页面获取",
        "table_token": '多维表格 URL 中的 app token，通常以 "bascn" 开头',
        "table_id": '数据表 ID，以 "tbl" 开头；留空则使用第一个数据表',
        "base_url": "默认 https://open.feishu.cn/open-apis，Lark 国际版使用 https://open.larksuite.com/open-apis",
    },
    "dingtalk": {
        "app_key": "企业内部应用的 AppKey，通常以 ding 开头",
        "app_secret": "企业内部应用的 AppSecret",
        "workbook_id": "智能表格 URL 中的 base ID",
        "sheet_id": "数据表 ID 或名称",
        "operator_id": "操作人的 unionId",
        "base_url": "默认 https://api.dingtalk.com",
    },
    "wework": {
        "corp_id": '企业 ID，18 位，以 "ww" 开头',
        "corp_secret": "自建应用的 Secret",
        "agent_id": "自建应用的 AgentId（纯数字）",
        "doc_id": "智能表格文档的 docid",
        "sheet_id": "子表 ID",
        "base_url": "默认 https://qyapi.weixin.qq.com",
    },
}

PLATFORM_HELP: dict[str, dict[str, Any]] = {
    "feishu": {
        "title": "飞书多维表格配置帮助",
        "steps": [
            "1. 登录飞书开放平台 (https://open.feishu.cn)",
            "2. 创建企业自建应用",
            "3. 获取App ID和App Secret",
            '4. 开通"多维表格"权限',
            "5. 获取多维表格的Table Token",
        ],
        "links": [
            {"name": "飞书开放平台", "url": "https://open.feishu.cn"},
            {"name": "多维表格API文档", "url": "https://open.feishu.cn/document/server-docs/docs/bitable-v1/bitable-overview"},
        ],
    },
    "dingtalk": {
        "title": "钉钉智能表格配置帮助",
        "steps": [
            "1. 登录钉钉开放平台 (https://open.dingtalk.com)",
            "2. 创建企业内部应用",
            "3. 获取AppKey和AppSecret",
            '4. 开通"智能表格"权限',
            "5. 获取表格ID和数据表ID",
        ],
        "links": [
            {"name": "钉钉开放平台", "url": "https://open.dingtalk.com"},
        ],
    },
    "wework": {
        "title": "企业微信智能表格配置帮助",
        "steps": [
            "1. 登录企业微信管理后台",
            "2. 创建企业应用",
            "3. 获取CorpID、CorpSecret和AgentID",
            '4. 开通"智能表格"权限',
            "5. 获取文档ID和表格ID",
        ],
        "links": [
            {"name": "企业微信开发文档", "url": "https://developer.work.weixin.qq.com"},
            {"name": "智能表格API文档", "url": "https://developer.work.weixin.qq.com/document/path/97465"},
        ],
    },
}


def _normalize_platform(platform: Any) -> str:
    return platform.strip().lower() if isinstance(platform, str) else ""


def _is_blank(value: Any) -> bool:
    return value is None or not str(value).strip()


def get_supported_platforms() -> list[PlatformDescriptor]:
    """获取支持的平台列表"""
    return list(PLATFORMS)


def get_platform(platform: Any) -> PlatformDescriptor | None:
    """按平台标识查找平台描述，大小写不敏感"""
    key = _normalize_platform(platform)
    for descriptor in PLATFORMS:
        if descriptor.key == key:
            return descriptor
    return None


def is_supported_platform(platform: Any) -> bool:
    """
    检查是否支持指定平台

    Examples:
        >>> is_supported_platform("Feishu")
        True
        >>> is_supported_platform("notion")
        False
    """
    return get_platform(platform) is not None


def create_adapter(platform: str, config: dict) -> BaseAdapter:
    """
    创建适配器实例

    Args:
        platform: 平台标识 feishu/dingtalk/wework
        config: 平台配置

    Returns:
        对应平台的适配器

    Raises:
        UnsupportedPlatformError: 平台不受支持
        AdapterCreationError: 适配器构造失败（如缺少必需字段）
    """
    if not is_supported_platform(platform):
        raise UnsupportedPlatformError(platform)

    key = _normalize_platform(platform)
    adapter_config = {**config, "platform": key}

    try:
        return ADAPTER_CLASSES[key](adapter_config)
    except Exception as e:
        logger.error(f"创建{key}适配器失败: {e}")
        raise AdapterCreationError(f"Failed to create {key} adapter: {e}") from e


def _validate_field_formats(platform: str, config: dict, result: ValidationResult) -> None:
    """平台相关的格式检查，只产生警告"""
    if platform == "feishu":
        app_id = config.get("app_id")
        if app_id and not str(app_id).startswith("cli_"):
            result.warnings.append('飞书 app_id 通常以 "cli_" 开头')
        table_token = config.get("table_token")
        if table_token and not str(table_token).startswith("bascn"):
            result.warnings.append('飞书 table_token 通常以 "bascn" 开头')
    elif platform == "dingtalk":
        app_key = config.get("app_key")
        if app_key and len(str(app_key)) < 10:
            result.warnings.append("钉钉 app_key 长度可能不正确")
    elif platform == "wework":
        corp_id = config.get("corp_id")
        if corp_id and len(str(corp_id)) != 18:
            result.warnings.append("企业微信 corp_id 长度通常为18位")


def validate_config(platform: str, config: dict) -> ValidationResult:
    """
    验证配置信息

    缺少必需字段时 is_valid 为 False 并逐个列出；格式问题和缺少的可选字段只产生警告。

    Args:
        platform: 平台标识
        config: 平台配置

    Returns:
        ValidationResult
    """
    result = ValidationResult()
    descriptor = get_platform(platform)

    if descriptor is None:
        result.add_error(f"Unsupported platform: {platform}")
        return result

    config = config or {}
    for name in descriptor.required_fields:
        if _is_blank(config.get(name)):
            result.add_error(f"Missing required field: {name}")

    _validate_field_formats(descriptor.key, config, result)

    for name in descriptor.optional_fields:
        if _is_blank(config.get(name)):
            result.warnings.append(f"Optional field not set: {name}")

    return result


def get_config_template(platform: str) -> dict[str, str]:
    """
    获取平台配置模板

    Raises:
        UnsupportedPlatformError: 平台不受支持
    """
    descriptor = get_platform(platform)
    if descriptor is None:
        raise UnsupportedPlatformError(platform)

    template = {"platform": descriptor.key, "name": "", "description": ""}
    for name in descriptor.required_fields + descriptor.optional_fields:
        template[name] = ""
    return template


def get_field_format_hints(platform: str) -> dict[str, str]:
    """获取平台各配置字段的格式提示，未知平台返回空字典"""
    return dict(FIELD_FORMAT_HINTS.get(_normalize_platform(platform), {}))


def get_platform_help(platform: str) -> dict[str, Any]:
    """获取平台配置帮助"""
    return PLATFORM_HELP.get(
        _normalize_platform(platform),
        {"title": "未知平台", "steps": [], "links": []},
    )


def create_batch_adapters(configs: list[dict]) -> dict[str, Any]:
    """
    批量创建适配器

    Args:
        configs: 配置列表，每项需包含 platform

    Returns:
        {'results': [...], 'errors': [...], 'summary': {...}}
    """
    results = []
    errors = []

    for index, config in enumerate(configs):
        platform = config.get("platform")
        try:
            adapter = create_adapter(platform, config)
            results.append({"index": index, "platform": platform, "adapter": adapter, "success": True})
        except (UnsupportedPlatformError, AdapterCreationError) as e:
            errors.append({"index": index, "platform": platform, "error": str(e), "success": False})

    return {
        "results": results,
        "errors": errors,
        "summary": {"total": len(configs), "success": len(results), "failed": len(errors)},
    }


def test_adapter_connection(platform: str, config: dict) -> dict[str, Any]:
    """
    测试适配器连接

    依次执行配置校验、适配器创建和适配器自身的连接测试。不抛出异常。

    Returns:
        {'success', 'platform', 'duration'(毫秒), 'warnings' 或 'error'}
    """
    start_time = time.monotonic()

    def elapsed_ms() -> int:
        return int((time.monotonic() - start_time) * 1000)

    try:
        validation = validate_config(platform, config)
        if not validation.is_valid:
            return {
                "success": False,
                "platform": platform,
                "error": ", ".join(validation.errors),
                "duration": elapsed_ms(),
            }

        adapter = create_adapter(platform, config)
        connected = adapter.test_connection()

        result = {
            "success": connected,
            "platform": platform,
            "duration": elapsed_ms(),
            "warnings": validation.warnings,
        }
        if not connected:
            result["error"] = f"{platform} connection test failed"
        return result

    except Exception as e:
        logger.error(f"测试{platform}连接失败: {e}")
        return {
            "success": False,
            "platform": platform,
            "error": str(e),
            "duration": elapsed_ms(),
        }


# pytest 不应把 test_adapter_connection 当作测试用例收集
test_adapter_connection.__test__ = False
