"""
数据模型测试

测试 ModelConfig 和 RewriteRecord 的序列化、旧版 camelCase 字段兼容和同步状态。
"""

from flowfocus.models import ModelConfig, RewriteRecord


class TestModelConfig:
    def test_from_dict_accepts_legacy_keys(self):
        config = ModelConfig.from_dict({
            "name": "my-deepseek",
            "modelType": "deepseek",
            "apiKey": "sk",
            "modelEndpoint": "deepseek-chat",
            "extra": "ignored",
        })
        assert config.model_type == "deepseek"
        assert config.model_endpoint == "deepseek-chat"
        assert config.base_url is None

    def test_to_dict(self):
        config = ModelConfig(name="a", model_type="qwen", api_key="sk")
        assert config.to_dict() == {
            "name": "a",
            "model_type": "qwen",
            "api_key": "sk",
            "base_url": None,
            "model_endpoint": None,
        }

    def test_validate(self):
        assert ModelConfig(name="a", model_type="qwen", api_key="sk").validate() == []
        assert ModelConfig(name="  ").validate() == [
            "name is required",
            "model_type is required",
            "api_key is required",
        ]


class TestRewriteRecord:
    def test_defaults(self):
        record = RewriteRecord(name="r1")
        assert record.category == "通用"
        assert record.sync_status == "pending"
        assert record.tags == []
        assert record.created_at
        assert record.last_sync_at is None

    def test_from_dict_roundtrip_keeps_timestamps(self):
        record = RewriteRecord(name="r1", created_at="2024-01-01T00:00:00")
        restored = RewriteRecord.from_dict(record.to_dict())
        assert restored == record

    def test_from_dict_legacy_keys(self):
        record = RewriteRecord.from_dict({"name": "r1", "originalText": "原文", "syncStatus": "synced"})
        assert record.original_text == "原文"
        assert record.sync_status == "synced"

    def test_mark_synced_clears_errors(self):
        record = RewriteRecord(name="r1", sync_errors=["old"])
        record.mark_synced()
        assert record.sync_status == "synced"
        assert record.sync_errors == []
        assert record.last_sync_at is not None

    def test_mark_sync_failed(self):
        record = RewriteRecord(name="r1")
        record.mark_sync_failed("timeout")
        assert record.sync_status == "failed"
        assert record.sync_errors == ["timeout"]
