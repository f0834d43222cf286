"""集成测试共享 fixture"""

import os
from collections.abc import AsyncGenerator
from pathlib import Path

import pytest_asyncio
from httpx import ASGITransport, AsyncClient
from railyard.core.config import EngineConfig
from railyard.core.store import StoreGroup


@pytest_asyncio.fixture
async def integration_app(tmp_db_path: Path, yard: StoreGroup):
    """集成测试用 FastAPI app（示例车场，Europe/Zurich 运营时区）"""
    os.environ["RAILYARD_DB_PATH"] = str(tmp_db_path)
    os.environ["LOGFIRE_SEND_TO_LOGFIRE"] = "false"

    from railyard.gateway.main import create_app

    app = create_app()
    app.state.store_group = yard
    app.state.engine_config = EngineConfig(timezone="Europe/Zurich")

    yield app

    os.environ.pop("RAILYARD_DB_PATH", None)
    os.environ.pop("LOGFIRE_SEND_TO_LOGFIRE", None)


@pytest_asyncio.fixture
async def client(integration_app) -> AsyncGenerator[AsyncClient, None]:
    async with AsyncClient(
        transport=ASGITransport(app=integration_app),
        base_url="http://test",
    ) as ac:
        yield ac
