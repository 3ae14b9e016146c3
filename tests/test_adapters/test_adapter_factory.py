"""
适配器工厂测试

测试平台查询、适配器创建、配置校验、配置模板和连接测试。

Properties:
    - 任意不支持的平台标识：create_adapter 失败，is_supported_platform 返回 False
    - 任意缺少必需字段的配置：validate_config 标记无效并逐个列出缺失字段
    - 格式警告不会改变 is_valid
    - test_adapter_connection 从不抛出异常
"""

from unittest.mock import MagicMock, patch

import pytest
import requests
from hypothesis import given, strategies as st, settings, assume

from flowfocus.adapters import (
    AdapterCreationError,
    DingtalkAdapter,
    FeishuAdapter,
    UnsupportedPlatformError,
    WeworkAdapter,
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
from flowfocus.adapters import adapter_factory


VALID_CONFIGS = {
    "feishu": {
        "app_id": "cli_a1b2c3d4e5f6",
        "app_secret": "s" * 32,
        "table_token": "bascnAbCdEfGhIjKlMnOp",
        "table_id": "tblXYZ",
        "base_url": "https://open.feishu.cn/open-apis",
    },
    "dingtalk": {
        "app_key": "dingabcdefghijk",
        "app_secret": "secret",
        "workbook_id": "wb123",
        "sheet_id": "sheet1",
        "base_url": "https://api.dingtalk.com",
        "operator_id": "union123",
    },
    "wework": {
        "corp_id": "ww1234567890abcdef",
        "corp_secret": "secret",
        "agent_id": "1000002",
        "doc_id": "doc123",
        "sheet_id": "sheet1",
        "base_url": "https://qyapi.weixin.qq.com",
    },
}

SUPPORTED = {"feishu", "dingtalk", "wework"}

platform_strategy = st.sampled_from(sorted(SUPPORTED))

unsupported_platform_strategy = st.one_of(
    st.text(max_size=20).filter(lambda s: s.strip().lower() not in SUPPORTED),
    st.none(),
    st.integers(),
)


class TestPlatformLookup:
    def test_supported_platforms_in_order(self):
        keys = [p.key for p in get_supported_platforms()]
        assert keys == ["feishu", "dingtalk", "wework"]

    def test_descriptor_fields(self):
        feishu = get_platform("feishu")
        assert feishu.required_fields == ("app_id", "app_secret", "table_token")
        assert feishu.optional_fields == ("table_id", "base_url")

        wework = get_platform("wework")
        assert wework.required_fields == ("corp_id", "corp_secret", "agent_id", "doc_id", "sheet_id")

    def test_descriptor_to_dict(self):
        data = get_platform("dingtalk").to_dict()
        assert data["key"] == "dingtalk"
        assert data["required_fields"] == ["app_key", "app_secret", "workbook_id", "sheet_id"]

    def test_lookup_is_case_insensitive(self):
        assert is_supported_platform("Feishu")
        assert is_supported_platform("WEWORK")
        assert get_platform("DingTalk").key == "dingtalk"

    def test_empty_and_none_are_not_supported(self):
        assert not is_supported_platform(None)
        assert not is_supported_platform("")

    @given(platform=unsupported_platform_strategy)
    @settings(max_examples=50)
    def test_unsupported_platform_property(self, platform):
        assert not is_supported_platform(platform)
        with pytest.raises(UnsupportedPlatformError) as exc_info:
            create_adapter(platform, {})
        assert str(exc_info.value) == f"Unsupported platform: {platform}"


class TestCreateAdapter:
    @pytest.mark.parametrize("platform,cls", [
        ("feishu", FeishuAdapter),
        ("dingtalk", DingtalkAdapter),
        ("wework", WeworkAdapter),
    ])
    def test_creates_adapter_for_platform(self, platform, cls):
        adapter = create_adapter(platform, VALID_CONFIGS[platform])
        assert isinstance(adapter, cls)
        assert adapter.platform == platform

    def test_mixed_case_key_is_normalized(self):
        adapter = create_adapter("FEISHU", VALID_CONFIGS["feishu"])
        assert isinstance(adapter, FeishuAdapter)

    def test_missing_field_wrapped_as_creation_error(self):
        config = dict(VALID_CONFIGS["feishu"])
        del config["app_secret"]

        with pytest.raises(AdapterCreationError) as exc_info:
            create_adapter("feishu", config)

        assert "Failed to create feishu adapter" in str(exc_info.value)
        assert "app_secret" in str(exc_info.value)

    def test_unsupported_checked_before_config(self):
        with pytest.raises(UnsupportedPlatformError):
            create_adapter("notion", VALID_CONFIGS["feishu"])

    def test_create_batch_adapters(self):
        result = create_batch_adapters([
            {"platform": "feishu", **VALID_CONFIGS["feishu"]},
            {"platform": "notion"},
            {"platform": "wework", "corp_id": "ww"},
        ])

        assert result["summary"] == {"total": 3, "success": 1, "failed": 2}
        assert result["results"][0]["index"] == 0
        assert [e["index"] for e in result["errors"]] == [1, 2]


class TestValidateConfig:
    @given(platform=platform_strategy, data=st.data())
    @settings(max_examples=50)
    def test_missing_required_fields_property(self, platform, data):
        required = get_platform(platform).required_fields
        removed = data.draw(
            st.lists(st.sampled_from(required), min_size=1, unique=True)
        )
        config = {k: v for k, v in VALID_CONFIGS[platform].items() if k not in removed}

        result = validate_config(platform, config)

        assert not result.is_valid
        for name in removed:
            assert f"Missing required field: {name}" in result.errors
        assert len(result.errors) == len(removed)

    @given(platform=platform_strategy)
    def test_complete_config_is_valid(self, platform):
        result = validate_config(platform, VALID_CONFIGS[platform])
        assert result.is_valid
        assert result.errors == []
        assert result.warnings == []

    def test_blank_value_counts_as_missing(self):
        config = {**VALID_CONFIGS["dingtalk"], "sheet_id": "   "}
        result = validate_config("dingtalk", config)
        assert result.errors == ["Missing required field: sheet_id"]

    def test_format_warnings_do_not_block(self):
        config = {
            "app_id": "app_123",
            "app_secret": "secret",
            "table_token": "tokenXYZ",
        }
        result = validate_config("feishu", config)

        assert result.is_valid
        assert '飞书 app_id 通常以 "cli_" 开头' in result.warnings
        assert '飞书 table_token 通常以 "bascn" 开头' in result.warnings
        assert "Optional field not set: table_id" in result.warnings
        assert "Optional field not set: base_url" in result.warnings

    def test_dingtalk_short_app_key_warning(self):
        config = {**VALID_CONFIGS["dingtalk"], "app_key": "short"}
        result = validate_config("dingtalk", config)
        assert result.is_valid
        assert "钉钉 app_key 长度可能不正确" in result.warnings

    def test_wework_corp_id_length_warning(self):
        config = {**VALID_CONFIGS["wework"], "corp_id": "ww123"}
        result = validate_config("wework", config)
        assert result.is_valid
        assert "企业微信 corp_id 长度通常为18位" in result.warnings

    def test_unsupported_platform_is_invalid(self):
        result = validate_config("notion", {})
        assert not result.is_valid
        assert result.errors == ["Unsupported platform: notion"]

    def test_to_dict(self):
        result = validate_config("wework", {}).to_dict()
        assert result["is_valid"] is False
        assert len(result["errors"]) == 5


class TestTemplatesAndHelp:
    def test_config_template_lists_all_fields(self):
        template = get_config_template("feishu")
        assert template == {
            "platform": "feishu",
            "name": "",
            "description": "",
            "app_id": "",
            "app_secret": "",
            "table_token": "",
            "table_id": "",
            "base_url": "",
        }

    def test_config_template_unknown_platform(self):
        with pytest.raises(UnsupportedPlatformError):
            get_config_template("notion")

    def test_field_format_hints(self):
        hints = get_field_format_hints("Feishu")
        assert "cli_" in hints["app_id"]
        assert get_field_format_hints("notion") == {}

    def test_platform_help(self):
        assert get_platform_help("wework")["title"] == "企业微信智能表格配置帮助"
        assert get_platform_help("notion") == {"title": "未知平台", "steps": [], "links": []}


class TestAdapterConnection:
    def test_invalid_config_reports_missing_fields(self):
        result = adapter_factory.test_adapter_connection("feishu", {})

        assert result["success"] is False
        assert "Missing required field: app_id" in result["error"]
        assert result["duration"] >= 0

    def test_successful_connection(self):
        with patch.object(FeishuAdapter, "test_connection", return_value=True):
            result = adapter_factory.test_adapter_connection("feishu", VALID_CONFIGS["feishu"])

        assert result["success"] is True
        assert result["platform"] == "feishu"
        assert isinstance(result["duration"], int)

    def test_failed_connection(self):
        with patch.object(WeworkAdapter, "test_connection", return_value=False):
            result = adapter_factory.test_adapter_connection("wework", VALID_CONFIGS["wework"])

        assert result["success"] is False
        assert result["error"] == "wework connection test failed"

    def test_network_error_is_reported_not_raised(self):
        config = {**VALID_CONFIGS["dingtalk"], "retry_count": 0}
        with patch(
            "flowfocus.adapters.base_adapter.requests.request",
            side_effect=requests.exceptions.ConnectionError("unreachable"),
        ):
            result = adapter_factory.test_adapter_connection("dingtalk", config)

        assert result["success"] is False

    @given(
        platform=st.one_of(platform_strategy, unsupported_platform_strategy),
        config=st.dictionaries(
            st.sampled_from(["app_id", "app_secret", "table_token", "corp_id", "app_key"]),
            st.text(max_size=10),
        ),
    )
    @settings(max_examples=50)
    def test_never_raises(self, platform, config):
        assume(platform not in SUPPORTED or not validate_config(platform, config).is_valid)
        result = adapter_factory.test_adapter_connection(platform, config)
        assert result["success"] is False
        assert "error" in result
