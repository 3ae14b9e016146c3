"""
后台消息服务模块

使用 Flask 实现本地 HTTP 服务，处理界面发来的 {action, data} 消息，
返回 {success, data} 或 {success: false, error}。

消息处理器负责把动作分发给模型服务、存储服务、适配器工厂和同步服务，
所有异常都在这里转换为失败响应，不会传播到调用方。
"""

import logging
import threading
from dataclasses import dataclass
from typing import Any, Callable

from flask import Flask, request, jsonify

from ..adapters import adapter_factory
from ..config import apply_defaults, get_model_config, get_platform_config, get_server_config
from ..models import ModelConfig, RewriteRecord
from ..services.model_service import ModelService
from ..services.sync_service import SyncService
from ..storage import StorageService

# 配置日志
logger = logging.getLogger(__name__)


@dataclass
class MessageServerConfig:
    """
    消息服务配置

    Attributes:
        host: 监听地址
        port: 监听端口
        default_prompt: 未指定提示词时使用的改写提示词
    """
    host: str = "127.0.0.1"
    port: int = 8765
    default_prompt: str = "请改写以下文本，使其表达更清晰、通顺："

    @classmethod
    def from_dict(cls, data: dict[str, Any]) -> "MessageServerConfig":
        """从字典创建配置"""
        return cls(
            host=data.get("host", "127.0.0.1"),
            port=int(data.get("port", 8765)),
            default_prompt=data.get("default_prompt", cls.default_prompt),
        )


class MessageServer:
    """
    后台消息服务

    Attributes:
        app: Flask 应用实例
        storage: 存储服务
        model_service: 模型服务
        sync_service: 同步服务
    """

    def __init__(
        self,
        storage: StorageService | None = None,
        model_service: ModelService | None = None,
        config: MessageServerConfig | dict[str, Any] | None = None,
        platforms: dict[str, dict] | None = None,
    ):
        """
        初始化消息服务

        Args:
            storage: 存储服务，默认使用内存存储
            model_service: 模型服务
            config: 服务配置，可以是 MessageServerConfig 对象或字典
            platforms: 预先配置的平台配置，消息中未携带 config 时使用
        """
        if config is None:
            self._config = MessageServerConfig()
        elif isinstance(config, MessageServerConfig):
            self._config = config
        else:
            self._config = MessageServerConfig.from_dict(config)

        self.host = self._config.host
        self.port = self._config.port

        self.storage = storage or StorageService()
        self.model_service = model_service or ModelService()
        self.sync_service = SyncService(self.storage)
        self.platforms = platforms or {}

        self._handlers: dict[str, Callable[[dict], Any]] = {
            "rewriteText": self._rewrite_text,
            "testModelConnection": self._test_model_connection,
            "getModelTypes": lambda data: self.model_service.get_supported_model_types(),
            "getModelConfigs": lambda data: [c.to_dict() for c in self.storage.load_model_configs()],
            "getModelConfig": self._get_model_config,
            "saveModelConfig": self._save_model_config,
            "deleteModelConfig": lambda data: self.storage.delete_model_config(data["name"]),
            "deleteModelConfigs": lambda data: self.storage.delete_model_configs(data["names"]),
            "getRewriteRecords": lambda data: [r.to_dict() for r in self.storage.load_rewrite_records()],
            "getRewriteRecord": self._get_rewrite_record,
            "saveRewriteRecord": self._save_rewrite_record,
            "editRewriteRecord": lambda data: self.storage.edit_rewrite_record(
                data["name"], data.get("updates", {})
            ).to_dict(),
            "deleteRewriteRecord": lambda data: self.storage.delete_rewrite_record(data["name"]),
            "deleteRewriteRecords": lambda data: self.storage.delete_rewrite_records(data["names"]),
            "getSupportedPlatforms": lambda data: [
                p.to_dict() for p in adapter_factory.get_supported_platforms()
            ],
            "getConfigTemplate": self._get_config_template,
            "validatePlatformConfig": self._validate_platform_config,
            "testPlatformConnection": self._test_platform_connection,
            "syncRecords": self._sync_records,
        }

        self.app = Flask(__name__)
        self._setup_routes()

        self._server_thread: threading.Thread | None = None
        self._is_running = False

        logger.info(f"MessageServer initialized: host={self.host}, port={self.port}")

    @property
    def config(self) -> MessageServerConfig:
        return self._config

    @property
    def is_running(self) -> bool:
        return self._is_running

    @property
    def actions(self) -> list[str]:
        return list(self._handlers)

    def _setup_routes(self) -> None:
        """设置 Flask 路由"""
        @self.app.route("/message", methods=["POST"])
        def handle_message_request():
            data = request.get_json(silent=True)
            if not isinstance(data, dict):
                logger.warning("Received empty or invalid JSON request body")
                return jsonify({"success": False, "error": "Empty or invalid JSON request body"}), 400
            return jsonify(self.handle_message(data))

        @self.app.route("/health", methods=["GET"])
        def health_check():
            return jsonify({"status": "ok", "service": "flowfocus-background"})

        @self.app.route("/", methods=["GET"])
        def index():
            return jsonify({
                "service": "flowfocus-background",
                "endpoints": {
                    "message": "/message",
                    "health": "/health",
                },
                "actions": self.actions,
            })

    def handle_message(self, message: dict) -> dict[str, Any]:
        """
        处理一条消息

        Args:
            message: {'action': 动作名, 'data': 参数字典}

        Returns:
            {'success': True, 'data': ...} 或 {'success': False, 'error': ...}
        """
        action = message.get("action")
        data = message.get("data") or {}
        logger.info(f"Received message: action={action}")

        handler = self._handlers.get(action) if isinstance(action, str) else None
        if handler is None:
            return {"success": False, "error": f"Unknown action: {action}"}

        try:
            result = handler(data)
        except KeyError as e:
            logger.error(f"{action} 缺少参数: {e}")
            return {"success": False, "error": f"Missing parameter: {e.args[0]}"}
        except Exception as e:
            logger.error(f"{action} 处理失败: {e}", exc_info=True)
            return {"success": False, "error": str(e)}

        # 服务层已经返回了 {success, ...} 格式的结果
        if isinstance(result, dict) and "success" in result:
            return result
        return {"success": True, "data": result}

    # ------------------------------------------------------------------
    # 模型相关
    # ------------------------------------------------------------------

    def _resolve_model_config(self, data: dict) -> ModelConfig:
        if data.get("config"):
            return ModelConfig.from_dict(data["config"])

        name = data.get("config_name")
        if not name:
            raise ValueError("config or config_name is required")
        config = self.storage.get_model_config(name)
        if config is None:
            raise ValueError(f'Model config "{name}" not found')
        return config

    def _rewrite_text(self, data: dict) -> dict[str, Any]:
        config = self._resolve_model_config(data)
        text = data["text"]
        prompt = data.get("prompt") or self._config.default_prompt

        result = self.model_service.rewrite_text(config, text, prompt)

        record_name = data.get("record_name")
        if result["success"] and record_name:
            self.storage.save_rewrite_record(RewriteRecord(
                name=record_name,
                original_text=text,
                rewritten_text=result["data"],
                model_type=config.model_type,
                model_name=config.model_endpoint
                or self.model_service.get_default_model_name(config.model_type) or "",
                prompt=prompt,
                source_url=data.get("source_url", ""),
                source_title=data.get("source_title", ""),
            ))
            logger.info(f"改写结果已保存: {record_name}")

        return result

    def _test_model_connection(self, data: dict) -> dict[str, Any]:
        return self.model_service.test_connection(self._resolve_model_config(data))

    def _get_model_config(self, data: dict) -> dict | None:
        config = self.storage.get_model_config(data["name"])
        return config.to_dict() if config else None

    def _save_model_config(self, data: dict) -> dict:
        config = ModelConfig.from_dict(data)
        errors = config.validate()
        if errors:
            raise ValueError(", ".join(errors))
        self.storage.save_model_config(config)
        return config.to_dict()

    # ------------------------------------------------------------------
    # 改写记录
    # ------------------------------------------------------------------

    def _get_rewrite_record(self, data: dict) -> dict | None:
        record = self.storage.get_rewrite_record(data["name"])
        return record.to_dict() if record else None

    def _save_rewrite_record(self, data: dict) -> dict:
        record = RewriteRecord.from_dict(data)
        if not record.name:
            raise ValueError("name is required")
        self.storage.save_rewrite_record(record)
        return record.to_dict()

    # ------------------------------------------------------------------
    # 平台相关
    # ------------------------------------------------------------------

    def _platform_config(self, data: dict) -> tuple[str, dict]:
        platform = data["platform"]
        config = data.get("config") or self.platforms.get(str(platform).lower(), {})
        return platform, config

    def _get_config_template(self, data: dict) -> dict:
        platform = data["platform"]
        return {
            "template": adapter_factory.get_config_template(platform),
            "hints": adapter_factory.get_field_format_hints(platform),
            "help": adapter_factory.get_platform_help(platform),
        }

    def _validate_platform_config(self, data: dict) -> dict:
        platform, config = self._platform_config(data)
        return adapter_factory.validate_config(platform, config).to_dict()

    def _test_platform_connection(self, data: dict) -> dict:
        platform, config = self._platform_config(data)
        return adapter_factory.test_adapter_connection(platform, config)

    def _sync_records(self, data: dict) -> dict:
        platform, config = self._platform_config(data)
        return self.sync_service.sync_records(platform, config, data.get("names"))

    # ------------------------------------------------------------------
    # 运行
    # ------------------------------------------------------------------

    def start(self, threaded: bool = True, debug: bool = False) -> None:
        """
        启动消息服务

        Args:
            threaded: 是否在新线程中启动（默认 True）
            debug: 是否启用 Flask 调试模式
        """
        if self._is_running:
            logger.warning("Server is already running")
            return

        logger.info(f"Starting MessageServer on {self.host}:{self.port}")

        if threaded:
            self._server_thread = threading.Thread(
                target=self._run_server,
                args=(debug,),
                daemon=True
            )
            self._server_thread.start()
            self._is_running = True
        else:
            self._is_running = True
            self._run_server(debug)

    def _run_server(self, debug: bool = False) -> None:
        try:
            logging.getLogger("werkzeug").setLevel(logging.WARNING)
            self.app.run(
                host=self.host,
                port=self.port,
                debug=debug,
                use_reloader=False,
            )
        except Exception as e:
            logger.error(f"Server error: {e}", exc_info=True)
            self._is_running = False

    def run(self, debug: bool = False) -> None:
        """以阻塞模式运行消息服务"""
        self.start(threaded=False, debug=debug)


def create_message_server(
    config: dict[str, Any] | None = None,
    storage: StorageService | None = None,
) -> MessageServer:
    """
    根据完整配置创建消息服务的工厂函数

    Args:
        config: 完整配置字典（已应用默认值）
        storage: 存储服务

    Returns:
        MessageServer 实例
    """
    config = apply_defaults(config or {})
    server_config = {
        **get_server_config(config),
        "default_prompt": get_model_config(config)["default_prompt"],
    }
    platforms = {
        name: get_platform_config(config, name)
        for name in (config.get("platforms") or {})
    }
    return MessageServer(
        storage=storage,
        model_service=ModelService(get_model_config(config)),
        config=server_config,
        platforms=platforms,
    )
