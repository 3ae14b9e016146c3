# Server module - 后台消息服务
# 处理界面发来的 {action, data} 消息

from .message_server import MessageServer, MessageServerConfig, create_message_server

__all__ = [
    "MessageServer",
    "MessageServerConfig",
    "create_message_server",
]
