# Services module - 服务模块
# 包含 ModelService（文本改写）和 SyncService（记录同步）

from .model_service import ModelService, DEFAULT_CONFIGS, MODEL_TYPES
from .sync_service import SyncService

__all__ = [
    "ModelService",
    "DEFAULT_CONFIGS",
    "MODEL_TYPES",
    "SyncService",
]
