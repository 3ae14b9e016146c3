"""
配置加载模块
Config Loading Module

实现YAML配置文件加载、.env 环境变量加载和 ${VAR} 占位符替换，
并为存储、重试、模型、服务器和平台配置提供默认值。
Implements YAML config loading, .env loading and ${VAR} substitution, with
defaults for the storage, retry, model, server and platform sections.

敏感配置（API 密钥、应用密钥）应通过环境变量提供。
"""

import os
import re
from pathlib import Path
from typing import Any

import yaml
from dotenv import load_dotenv


def load_env_file(env_path: str | None = None) -> bool:
    """
    加载.env文件中的环境变量。
    Load environment variables from .env file.

    Args:
        env_path: .env文件路径，默认为None（自动查找）

    Returns:
        是否成功加载了.env文件
    """
    if env_path:
        env_file = Path(env_path)
        if env_file.exists():
            load_dotenv(env_file)
            return True
        return False

    return load_dotenv()


def replace_env_vars(value: Any) -> Any:
    """
    递归替换配置值中的环境变量占位符。
    Recursively substitute environment variable placeholders in config values.

    支持 ${VAR_NAME} 和 ${VAR_NAME:default} 两种格式，变量不存在且没有默认值时替换为空字符串。

    Examples:
        >>> os.environ['TEST_VAR'] = 'test_value'
        >>> replace_env_vars('${TEST_VAR}')
        'test_value'
        >>> replace_env_vars({'key': '${MISSING_VAR:fallback}'})
        {'key': 'fallback'}
    """
    if isinstance(value, str):
        pattern = r'\$\{([^}:]+)(?::([^}]*))?\}'

        def replacer(match: re.Match) -> str:
            var_name = match.group(1)
            default_value = match.group(2) if match.group(2) is not None else ''
            return os.environ.get(var_name, default_value)

        return re.sub(pattern, replacer, value)

    elif isinstance(value, dict):
        return {k: replace_env_vars(v) for k, v in value.items()}

    elif isinstance(value, list):
        return [replace_env_vars(item) for item in value]

    return value


def load_config(config_path: str = "config.yaml", env_path: str | None = None) -> dict:
    """
    加载YAML配置文件并替换环境变量。
    Load YAML config file and substitute environment variables.

    Args:
        config_path: 配置文件路径，默认为 "config.yaml"
        env_path: .env文件路径，默认为None（自动查找）

    Returns:
        解析并替换环境变量后的配置字典

    Raises:
        FileNotFoundError: 配置文件不存在
        yaml.YAMLError: YAML解析错误
    """
    load_env_file(env_path)

    config_file = Path(config_path)

    if not config_file.exists():
        raise FileNotFoundError(f"配置文件不存在: {config_path}")

    with open(config_file, 'r', encoding='utf-8') as f:
        config = yaml.safe_load(f)

    if config is None:
        return {}

    return replace_env_vars(config)


def get_config_value(config: dict, key_path: str, default: Any = None) -> Any:
    """
    通过点分隔的路径获取配置值。
    Get config value by dot-separated path.

    Examples:
        >>> config = {'server': {'port': 8765}}
        >>> get_config_value(config, 'server.port')
        8765
        >>> get_config_value(config, 'server.missing', 'default')
        'default'
    """
    keys = key_path.split('.')
    value = config

    for key in keys:
        if isinstance(value, dict) and key in value:
            value = value[key]
        else:
            return default

    return value


# 默认配置值
# Default Configuration Values
DEFAULT_CONFIG: dict[str, Any] = {
    'storage': {
        'backend': 'json',
        'path': 'data/storage.json',
    },
    # 重试：次数和基础延迟（秒），延迟逐次翻倍
    'retry': {
        'max_retries': 3,
        'retry_delay': 1.0,
    },
    'model': {
        'timeout': 60,
        'temperature': 0.7,
        'default_prompt': '请改写以下文本，使其表达更清晰、通顺：',
    },
    'server': {
        'host': '127.0.0.1',
        'port': 8765,
    },
    # 平台配置，键为 feishu/dingtalk/wework
    'platforms': {},
}


def _deep_merge(base: dict, override: dict) -> dict:
    """
    深度合并两个字典，override中的值覆盖base中的值。
    Deep merge two dictionaries, values in override take precedence over base.

    Examples:
        >>> base = {'a': {'b': 1, 'c': 2}}
        >>> override = {'a': {'b': 10}}
        >>> _deep_merge(base, override)
        {'a': {'b': 10, 'c': 2}}
    """
    result = base.copy()

    for key, value in override.items():
        if key in result and isinstance(result[key], dict) and isinstance(value, dict):
            result[key] = _deep_merge(result[key], value)
        else:
            result[key] = value

    return result


def apply_defaults(config: dict) -> dict:
    """将默认配置应用到用户配置中，缺失的配置项使用默认值。"""
    return _deep_merge(DEFAULT_CONFIG, config)


def _get_section(config: dict, section: str) -> dict:
    user_config = config.get(section) or {}
    default_config = DEFAULT_CONFIG.get(section, {})
    return _deep_merge(default_config, user_config)


def get_storage_config(config: dict) -> dict:
    return _get_section(config, 'storage')


def get_retry_config(config: dict) -> dict:
    return _get_section(config, 'retry')


def get_model_config(config: dict) -> dict:
    """
    获取模型服务配置，合并重试配置。

    Examples:
        >>> get_model_config({'retry': {'max_retries': 5}})['max_retries']
        5
    """
    return {**get_retry_config(config), **_get_section(config, 'model')}


def get_server_config(config: dict) -> dict:
    return _get_section(config, 'server')


def get_platform_config(config: dict, platform: str) -> dict:
    """
    获取指定平台的配置，合并重试配置。

    Args:
        config: 完整配置字典
        platform: 平台标识

    Returns:
        平台配置字典；未配置的平台返回只包含重试参数的字典
    """
    retry_config = get_retry_config(config)
    platform_config = get_config_value(config, f'platforms.{platform}') or {}
    return {
        'retry_count': retry_config['max_retries'],
        'retry_delay': retry_config['retry_delay'],
        **platform_config,
    }


def load_config_with_defaults(config_path: str = "config.yaml", env_path: str | None = None) -> dict:
    """
    加载配置文件并应用默认值。
    Load configuration file and apply defaults.
    """
    config = load_config(config_path, env_path)
    return apply_defaults(config)
