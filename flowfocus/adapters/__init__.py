# Adapters module - 智能表格适配器模块
# 包含 FeishuAdapter, DingtalkAdapter, WeworkAdapter 以及适配器工厂

from .base_adapter import BaseAdapter, PlatformAPIError
from .feishu_adapter import FeishuAdapter
from .dingtalk_adapter import DingtalkAdapter
from .wework_adapter import WeworkAdapter
from .adapter_factory import (
    AdapterCreationError,
    PlatformDescriptor,
    UnsupportedPlatformError,
    ValidationResult,
    create_adapter,
    create_batch_adapters,
    get_config_template,
    get_field_format_hints,
    get_platform,
    get_platform_help,
    get_supported_platforms,
    is_supported_platform,
    validate_config,
)

__all__ = [
    "BaseAdapter",
    "PlatformAPIError",
    "FeishuAdapter",
    "DingtalkAdapter",
    "WeworkAdapter",
    "AdapterCreationError",
    "PlatformDescriptor",
    "UnsupportedPlatformError",
    "ValidationResult",
    "create_adapter",
    "create_batch_adapters",
    "get_config_template",
    "get_field_format_hints",
    "get_platform",
    "get_platform_help",
    "get_supported_platforms",
    "is_supported_platform",
    "validate_config",
]
