"""健康检查测试

测试内容：
1. GET /health 返回 200 + ok
2. GET /ready 正常时返回 200 + checks 结构
3. GET /ready SQLite 不可用时返回 503
"""

from httpx import ASGITransport, AsyncClient


class TestHealthCheck:
    async def test_health_returns_200(self, client: AsyncClient):
        """GET /health 永远返回 200"""
        resp = await client.get("/health")
        assert resp.status_code == 200
        assert resp.json() == {"status": "ok"}

    async def test_ready_returns_200(self, client: AsyncClient):
        """GET /ready 正常时返回 200 + checks 结构"""
        resp = await client.get("/ready")
        assert resp.status_code == 200
        data = resp.json()
        assert data["status"] == "ready"
        checks = data["checks"]
        assert checks["sqlite"] == "ok"
        assert checks["schema"] == "ok"
        assert checks["wal_mode"] == "ok"
        assert isinstance(checks["disk_space_mb"], int)
        assert checks["timezone"] == "UTC"

    async def test_ready_sqlite_failure(self, test_app):
        """GET /ready SQLite 不可用时返回 503"""
        # 关闭数据库连接模拟不可用
        await test_app.state.store_group.conn.close()

        async with AsyncClient(
            transport=ASGITransport(app=test_app),
            base_url="http://test",
        ) as ac:
            resp = await ac.get("/ready")
        assert resp.status_code == 503
        data = resp.json()
        assert data["status"] == "not_ready"
        assert data["checks"]["sqlite"].startswith("error")

    async def test_ready_missing_table(self, client: AsyncClient, test_app):
        """表缺失时返回 503 并列出缺失的表"""
        conn = test_app.state.store_group.conn
        await conn.execute("DROP TABLE daily_restriction_windows")
        await conn.commit()

        resp = await client.get("/ready")
        assert resp.status_code == 503
        assert resp.json()["checks"]["schema"] == "missing: daily_restriction_windows"
