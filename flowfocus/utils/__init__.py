# Utils module - 工具模块
# 包含指数退避重试等工具函数

from .retry import retry, with_retry

__all__ = [
    "retry",
    "with_retry",
]
