"""
大模型服务模块
Model Service Module

使用OpenAI兼容API调用大模型进行文本改写和连接测试。
Uses OpenAI-compatible chat-completion APIs to rewrite text and test model
connections.

支持的模型类型：
- qwen: 通义千问（DashScope 兼容模式）
- deepseek: DeepSeek
- kimi: 月之暗面 Kimi
- volces: 火山方舟，没有默认模型，必须在 model_endpoint 中填写推理接入点 ID
- hunyuan: 腾讯混元
"""

import logging
from typing import Any

from openai import OpenAI, APIError

from ..models import ModelConfig
from ..utils.retry import retry

# 配置日志
logger = logging.getLogger(__name__)


MODEL_TYPES = {
    'QWEN': 'qwen',
    'DEEPSEEK': 'deepseek',
    'VOLCES': 'volces',
    'KIMI': 'kimi',
    'HUNYUAN': 'hunyuan',
}

DEFAULT_CONFIGS: dict[str, dict[str, str | None]] = {
    'qwen': {
        'base_url': 'https://dashscope.aliyuncs.com/compatible-mode/v1',
        'model_name': 'qwen-max',
    },
    'deepseek': {
        'base_url': 'https://api.deepseek.com/v1',
        'model_name': 'deepseek-chat',
    },
    'volces': {
        'base_url': 'https://ark.cn-beijing.volces.com/api/v3',
        'model_name': None,
    },
    'kimi': {
        'base_url': 'https://api.moonshot.cn/v1',
        'model_name': 'moonshot-v1-8k',
    },
    'hunyuan': {
        'base_url': 'https://api.hunyuan.cloud.tencent.com/v1',
        'model_name': 'hunyuan-turbos-latest',
    },
}

CONNECTION_TEST_PROMPT = "Hello, this is a connection test."


class UnsupportedModelTypeError(ValueError):
    """不支持的模型类型"""


class ModelService:
    """
    大模型服务：文本改写、连接测试

    所有公开方法返回 {'success': True, 'data': ...} 或 {'success': False, 'error': ...}，
    不向调用方抛出异常。

    Attributes:
        max_retries: 失败后的最大重试次数
        retry_delay: 重试基础延迟（秒），每次翻倍
        timeout: 单次 API 调用超时（秒）
        temperature: 改写温度参数
    """

    def __init__(self, config: dict | None = None):
        """
        初始化模型服务

        Args:
            config: 可选配置字典：
                   - max_retries: 最大重试次数（默认3）
                   - retry_delay: 重试基础延迟秒数（默认1.0）
                   - timeout: 超时时间秒数（默认60）
                   - temperature: 温度参数（默认0.7）
        """
        config = config or {}
        self.max_retries = int(config.get('max_retries', 3))
        self.retry_delay = float(config.get('retry_delay', 1.0))
        self.timeout = float(config.get('timeout', 60))
        self.temperature = float(config.get('temperature', 0.7))

    def _resolve(self, config: ModelConfig) -> tuple[str, str]:
        """
        根据模型类型解析 API 地址和模型名称

        Returns:
            (base_url, model) 元组

        Raises:
            UnsupportedModelTypeError: 模型类型不受支持
            ValueError: 该类型没有默认模型且未填写 model_endpoint
        """
        defaults = DEFAULT_CONFIGS.get(config.model_type)
        if defaults is None:
            raise UnsupportedModelTypeError(f"Unsupported model type: {config.model_type}")

        base_url = (config.base_url or defaults['base_url']).rstrip('/')
        model = config.model_endpoint or defaults['model_name']
        if not model:
            raise ValueError(f"model_endpoint is required for {config.model_type}")
        return base_url, model

    def _create_client(self, config: ModelConfig, base_url: str) -> OpenAI:
        # 重试由 retry 负责，关闭 SDK 自带的重试
        return OpenAI(
            base_url=base_url,
            api_key=config.api_key,
            timeout=self.timeout,
            max_retries=0,
        )

    def _chat(self, config: ModelConfig, content: str, **options: Any):
        base_url, model = self._resolve(config)
        client = self._create_client(config, base_url)

        def call():
            return client.chat.completions.create(
                model=model,
                messages=[{"role": "user", "content": content}],
                **options,
            )

        return retry(
            call,
            max_retries=self.max_retries,
            delay=self.retry_delay,
            retry_on=(APIError,),
        )

    def test_connection(self, config: ModelConfig) -> dict[str, Any]:
        """
        测试模型连接

        Args:
            config: 模型配置

        Returns:
            {'success': True, 'data': {'model': ..., 'reply': ...}} 或 {'success': False, 'error': ...}
        """
        try:
            response = self._chat(config, CONNECTION_TEST_PROMPT, max_tokens=10)
            reply = None
            if response.choices:
                reply = response.choices[0].message.content
            return {
                'success': True,
                'data': {'model': response.model, 'reply': reply},
            }
        except Exception as e:
            logger.error(f"模型连接测试失败: {e}")
            return {'success': False, 'error': str(e)}

    def rewrite_text(self, config: ModelConfig, text: str, prompt: str) -> dict[str, Any]:
        """
        调用大模型改写文本

        Args:
            config: 模型配置
            text: 待改写的文本
            prompt: 改写提示词

        Returns:
            {'success': True, 'data': 改写结果} 或 {'success': False, 'error': ...}

        Examples:
            >>> service = ModelService()
            >>> result = service.rewrite_text(config, "原文", "请改写为正式语气")
            >>> result['success']
            True
        """
        try:
            response = self._chat(
                config,
                f"{prompt}\n\n{text}",
                temperature=self.temperature,
            )

            if response.choices and response.choices[0].message.content:
                return {'success': True, 'data': response.choices[0].message.content.strip()}

            logger.warning("API response has no choices")
            return {'success': False, 'error': 'No valid response from model'}

        except Exception as e:
            logger.error(f"文本改写失败: {e}")
            return {'success': False, 'error': str(e)}

    def get_default_base_url(self, model_type: str) -> str | None:
        defaults = DEFAULT_CONFIGS.get(model_type)
        return defaults['base_url'] if defaults else None

    def get_default_model_name(self, model_type: str) -> str | None:
        defaults = DEFAULT_CONFIGS.get(model_type)
        return defaults['model_name'] if defaults else None

    def get_supported_model_types(self) -> list[str]:
        return list(MODEL_TYPES.values())
