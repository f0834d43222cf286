"""gateway 测试配置 -- 绕过 lifespan，直接注入示例车场"""

import os
from collections.abc import AsyncGenerator
from pathlib import Path

import pytest_asyncio
from httpx import ASGITransport, AsyncClient
from railyard.core.config import EngineConfig
from railyard.core.store import StoreGroup

_ENV_KEYS = ["RAILYARD_DB_PATH", "LOGFIRE_SEND_TO_LOGFIRE"]


@pytest_asyncio.fixture
async def test_app(tmp_path: Path, yard: StoreGroup):
    os.environ["RAILYARD_DB_PATH"] = str(tmp_path / "test.db")
    os.environ["LOGFIRE_SEND_TO_LOGFIRE"] = "false"

    from railyard.gateway.main import create_app

    app = create_app()

    # 手动初始化（绕过 lifespan）
    app.state.store_group = yard
    app.state.engine_config = EngineConfig()

    yield app

    for key in _ENV_KEYS:
        os.environ.pop(key, None)


@pytest_asyncio.fixture
async def client(test_app) -> AsyncGenerator[AsyncClient, None]:
    async with AsyncClient(
        transport=ASGITransport(app=test_app),
        base_url="http://test",
    ) as ac:
        yield ac
