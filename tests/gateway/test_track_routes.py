"""轨道查询路由测试

测试内容：
1. GET /api/tracks/{id}/occupancy 返回占用与累计位置
2. GET /api/tracks/{id}/capacity 返回可用长度与检查模式
3. 未知轨道 404，naive 时刻 422
"""

from datetime import UTC, datetime, timedelta

import pytest_asyncio
from httpx import AsyncClient
from railyard.core.models import MoveKind

T0 = datetime(2025, 6, 23, 8, 0, tzinfo=UTC)


@pytest_asyncio.fixture
async def occupied_yard(yard, make_event):
    """W1 (20m) 与 W2 (30m) 在 T0 进入 T1"""
    await yard.append_trip(
        [
            make_event("W1", MoveKind.DELIVERY, T0, dest="T1", trip_id="t1"),
            make_event("W2", MoveKind.DELIVERY, T0, dest="T1", length_m=30, trip_id="t1"),
        ]
    )
    return yard


class TestOccupancyRoute:
    async def test_occupancy(self, client: AsyncClient, occupied_yard):
        resp = await client.get(
            "/api/tracks/T1/occupancy",
            params={"at": (T0 + timedelta(hours=1)).isoformat()},
        )
        assert resp.status_code == 200
        data = resp.json()
        assert data["track_id"] == "T1"
        assert data["total_length_m"] == 50
        assert data["resource_count"] == 2
        assert data["usage_percent"] == 50
        assert [(o["resource_id"], o["position_m"]) for o in data["occupants"]] == [
            ("W1", 0),
            ("W2", 20),
        ]

    async def test_before_any_event(self, client: AsyncClient, occupied_yard):
        resp = await client.get(
            "/api/tracks/T1/occupancy",
            params={"at": (T0 - timedelta(hours=1)).isoformat()},
        )
        assert resp.status_code == 200
        assert resp.json()["occupants"] == []

    async def test_unknown_track_returns_404(self, client: AsyncClient):
        resp = await client.get("/api/tracks/T9/occupancy", params={"at": T0.isoformat()})
        assert resp.status_code == 404
        assert resp.json()["error"]["code"] == "TRACK_NOT_FOUND"

    async def test_naive_instant_returns_422(self, client: AsyncClient):
        resp = await client.get("/api/tracks/T1/occupancy", params={"at": "2025-06-23T08:00:00"})
        assert resp.status_code == 422
        assert resp.json()["error"]["code"] == "VALIDATION_FAILED"

    async def test_history_unavailable_returns_422(self, client: AsyncClient):
        resp = await client.get(
            "/api/tracks/T3/occupancy", params={"at": "2024-06-01T00:00:00+00:00"}
        )
        assert resp.status_code == 422
        assert resp.json()["error"]["code"] == "HISTORY_UNAVAILABLE"


class TestCapacityRoute:
    async def test_capacity(self, client: AsyncClient, occupied_yard):
        resp = await client.get(
            "/api/tracks/T1/capacity",
            params={"at": (T0 + timedelta(hours=1)).isoformat(), "additional_length": 40},
        )
        assert resp.status_code == 200
        data = resp.json()
        assert data["has_capacity"] is True
        assert data["available_length_m"] == 50
        assert data["time_based_check"] is True
        assert data["static_check"] is False
        assert data["future_conflicts"] == []

    async def test_exclude_resources(self, client: AsyncClient, occupied_yard):
        resp = await client.get(
            "/api/tracks/T1/capacity",
            params=[
                ("at", (T0 + timedelta(hours=1)).isoformat()),
                ("additional_length", "90"),
                ("exclude", "W1"),
                ("exclude", "W2"),
            ],
        )
        data = resp.json()
        assert data["has_capacity"] is True
        assert data["current_usage_m"] == 0

    async def test_static_fallback(self, client: AsyncClient):
        resp = await client.get(
            "/api/tracks/T3/capacity",
            params={"at": "2024-06-01T00:00:00+00:00", "additional_length": 10},
        )
        data = resp.json()
        assert data["mode"] == "static"
        assert data["static_check"] is True
        assert data["available_length_m"] == 10

    async def test_unconstrained_track(self, client: AsyncClient):
        resp = await client.get(
            "/api/tracks/T2/capacity",
            params={"at": T0.isoformat(), "additional_length": 5000},
        )
        data = resp.json()
        assert data["has_capacity"] is True
        assert data["available_length_m"] == 999_999

    async def test_negative_length_rejected(self, client: AsyncClient):
        resp = await client.get(
            "/api/tracks/T1/capacity",
            params={"at": T0.isoformat(), "additional_length": -1},
        )
        assert resp.status_code == 422
