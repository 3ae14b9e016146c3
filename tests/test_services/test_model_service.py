"""
模型服务单元测试

使用 mock 替换 OpenAI 客户端，测试文本改写、连接测试、默认配置解析和重试。
"""

from unittest.mock import MagicMock, patch

import httpx
import pytest
from openai import APIConnectionError

from flowfocus.models import ModelConfig
from flowfocus.services import DEFAULT_CONFIGS, MODEL_TYPES, ModelService


OPENAI_PATH = "flowfocus.services.model_service.OpenAI"


def make_completion(content="改写后的文本", model="qwen-max"):
    message = MagicMock()
    message.content = content
    choice = MagicMock()
    choice.message = message
    response = MagicMock()
    response.choices = [choice]
    response.model = model
    return response


def connection_error():
    return APIConnectionError(request=httpx.Request("POST", "https://example.com/v1/chat/completions"))


@pytest.fixture
def service():
    return ModelService({"max_retries": 2, "retry_delay": 0, "temperature": 0.3})


@pytest.fixture
def qwen_config():
    return ModelConfig(name="my-qwen", model_type="qwen", api_key="sk-test")


class TestModelServiceInit:
    def test_defaults(self):
        service = ModelService()
        assert service.max_retries == 3
        assert service.retry_delay == 1.0
        assert service.timeout == 60
        assert service.temperature == 0.7

    def test_supported_model_types(self):
        assert ModelService().get_supported_model_types() == ["qwen", "deepseek", "volces", "kimi", "hunyuan"]
        assert set(MODEL_TYPES.values()) == set(DEFAULT_CONFIGS)

    def test_default_lookup(self):
        service = ModelService()
        assert service.get_default_base_url("deepseek") == "https://api.deepseek.com/v1"
        assert service.get_default_model_name("kimi") == "moonshot-v1-8k"
        assert service.get_default_base_url("gpt") is None
        assert service.get_default_model_name("volces") is None


class TestRewriteText:
    def test_rewrite_uses_defaults_for_type(self, service, qwen_config):
        with patch(OPENAI_PATH) as mock_openai:
            client = mock_openai.return_value
            client.chat.completions.create.return_value = make_completion("  改写后的文本 \n")

            result = service.rewrite_text(qwen_config, "原文", "请改写：")

        assert result == {"success": True, "data": "改写后的文本"}
        mock_openai.assert_called_once_with(
            base_url="https://dashscope.aliyuncs.com/compatible-mode/v1",
            api_key="sk-test",
            timeout=60.0,
            max_retries=0,
        )
        kwargs = client.chat.completions.create.call_args.kwargs
        assert kwargs["model"] == "qwen-max"
        assert kwargs["temperature"] == 0.3
        assert kwargs["messages"] == [{"role": "user", "content": "请改写：\n\n原文"}]

    def test_custom_endpoint_and_base_url(self, service):
        config = ModelConfig(
            name="custom",
            model_type="deepseek",
            api_key="sk",
            base_url="https://proxy.example.com/v1/",
            model_endpoint="deepseek-reasoner",
        )
        with patch(OPENAI_PATH) as mock_openai:
            mock_openai.return_value.chat.completions.create.return_value = make_completion()
            service.rewrite_text(config, "t", "p")

        assert mock_openai.call_args.kwargs["base_url"] == "https://proxy.example.com/v1"
        assert mock_openai.return_value.chat.completions.create.call_args.kwargs["model"] == "deepseek-reasoner"

    def test_no_choices_is_failure(self, service, qwen_config):
        response = MagicMock()
        response.choices = []
        with patch(OPENAI_PATH) as mock_openai:
            mock_openai.return_value.chat.completions.create.return_value = response
            result = service.rewrite_text(qwen_config, "t", "p")

        assert result == {"success": False, "error": "No valid response from model"}

    def test_unsupported_model_type(self, service):
        config = ModelConfig(name="x", model_type="gpt", api_key="sk")
        with patch(OPENAI_PATH) as mock_openai:
            result = service.rewrite_text(config, "t", "p")

        assert result == {"success": False, "error": "Unsupported model type: gpt"}
        mock_openai.assert_not_called()

    def test_hunyuan_defaults(self, service):
        config = ModelConfig(name="hy", model_type="hunyuan", api_key="sk")
        with patch(OPENAI_PATH) as mock_openai:
            mock_openai.return_value.chat.completions.create.return_value = make_completion()
            result = service.rewrite_text(config, "t", "p")

        assert result["success"]
        assert mock_openai.call_args.kwargs["base_url"] == "https://api.hunyuan.cloud.tencent.com/v1"
        assert mock_openai.return_value.chat.completions.create.call_args.kwargs["model"] == "hunyuan-turbos-latest"

    def test_volces_uses_endpoint_id_as_model(self, service):
        config = ModelConfig(name="ark", model_type="volces", api_key="sk", model_endpoint="ep-20240101-abcde")
        with patch(OPENAI_PATH) as mock_openai:
            mock_openai.return_value.chat.completions.create.return_value = make_completion()
            service.rewrite_text(config, "t", "p")

        assert mock_openai.call_args.kwargs["base_url"] == "https://ark.cn-beijing.volces.com/api/v3"
        assert mock_openai.return_value.chat.completions.create.call_args.kwargs["model"] == "ep-20240101-abcde"

    def test_volces_without_endpoint_fails(self, service):
        config = ModelConfig(name="ark", model_type="volces", api_key="sk")
        with patch(OPENAI_PATH) as mock_openai:
            result = service.rewrite_text(config, "t", "p")

        assert result == {"success": False, "error": "model_endpoint is required for volces"}
        mock_openai.assert_not_called()

    def test_api_error_retried_then_succeeds(self, service, qwen_config):
        with patch(OPENAI_PATH) as mock_openai:
            create = mock_openai.return_value.chat.completions.create
            create.side_effect = [connection_error(), make_completion("ok")]
            result = service.rewrite_text(qwen_config, "t", "p")

        assert result == {"success": True, "data": "ok"}
        assert create.call_count == 2

    def test_api_error_exhausts_retries(self, service, qwen_config):
        with patch(OPENAI_PATH) as mock_openai:
            create = mock_openai.return_value.chat.completions.create
            create.side_effect = connection_error()
            result = service.rewrite_text(qwen_config, "t", "p")

        assert result["success"] is False
        assert result["error"] == "Connection error."
        assert create.call_count == 3

    def test_non_api_error_not_retried(self, service, qwen_config):
        with patch(OPENAI_PATH) as mock_openai:
            create = mock_openai.return_value.chat.completions.create
            create.side_effect = TypeError("bad argument")
            result = service.rewrite_text(qwen_config, "t", "p")

        assert result == {"success": False, "error": "bad argument"}
        assert create.call_count == 1


class TestConnection:
    def test_connection_success(self, service, qwen_config):
        with patch(OPENAI_PATH) as mock_openai:
            create = mock_openai.return_value.chat.completions.create
            create.return_value = make_completion("Hi", model="qwen-max")
            result = service.test_connection(qwen_config)

        assert result == {"success": True, "data": {"model": "qwen-max", "reply": "Hi"}}
        assert create.call_args.kwargs["max_tokens"] == 10

    def test_connection_failure(self, service, qwen_config):
        with patch(OPENAI_PATH) as mock_openai:
            mock_openai.return_value.chat.completions.create.side_effect = connection_error()
            result = service.test_connection(qwen_config)

        assert result["success"] is False
        assert "error" in result
