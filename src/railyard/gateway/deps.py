"""依赖注入模块 -- 通过 FastAPI Depends 注入 Store 实例与引擎配置

二者通过 app.state 管理，在 lifespan 中初始化/清理。
"""

from fastapi import Request
from railyard.core.config import EngineConfig
from railyard.core.store import StoreGroup


def get_store_group(request: Request) -> StoreGroup:
    """从 app.state 获取 StoreGroup 实例"""
    return request.app.state.store_group


def get_engine_config(request: Request) -> EngineConfig:
    """从 app.state 获取 EngineConfig 实例"""
    return request.app.state.engine_config
