"""车场端到端流程集成测试

运营时区 Europe/Zurich：
限制 -> 提交移动 -> 占用/容量查询 -> 冲突 -> placement 重建 -> CLI 重新展开
"""

from httpx import AsyncClient
from railyard.core.__main__ import regenerate_restrictions
from railyard.core.projection import rebuild_placements

RESTRICTION = {
    "project_id": "P1",
    # Europe/Zurich 下为 06-25 00:00 至 06-26 00:30
    "start": "2025-06-24T22:00:00+00:00",
    "end": "2025-06-25T22:30:00+00:00",
    "pattern": "once",
    "kinds": ["no_entry"],
    "track_ids": ["T1"],
    "comment": "Fahrleitungsarbeiten",
}


async def _placements(stores) -> dict[str, str | None]:
    return {r.resource_id: r.current_track_id for r in await stores.track_store.list_resources()}


def _move(kind: str, resource_ids: list[str], ts: str, **tracks) -> dict:
    return {"kind": kind, "resource_ids": resource_ids, "ts": ts, **tracks}


class TestYardFlow:
    async def test_full_day(self, client: AsyncClient, integration_app):
        # 1. 限制在运营时区下展开，最后一天不丢失
        resp = await client.post("/api/restrictions", json=RESTRICTION)
        assert resp.status_code == 201
        restriction_id = resp.json()["restriction"]["restriction_id"]
        windows = (await client.get(f"/api/restrictions/{restriction_id}/windows")).json()
        assert [(w["date"], w["time_from"], w["time_to"]) for w in windows["windows"]] == [
            ("2025-06-25", "00:00:00", "23:59:59"),
            ("2025-06-26", "00:00:00", "00:30:00"),
        ]

        # 2. 已执行的到达
        resp = await client.post(
            "/api/moves",
            json=_move(
                "delivery",
                ["W1", "W2"],
                "2025-06-23T08:00:00+00:00",
                dest_track_id="T1",
                planned=False,
            ),
        )
        assert resp.status_code == 201

        occupancy = await client.get(
            "/api/tracks/T1/occupancy", params={"at": "2025-06-23T09:00:00+00:00"}
        )
        assert occupancy.json()["total_length_m"] == 40

        # 3. 限制生效期间的到达只给出警告
        validation = await client.post(
            "/api/moves/validate",
            json=_move(
                "delivery", ["W3", "W4"], "2025-06-25T10:00:00+00:00", dest_track_id="T1"
            ),
        )
        data = validation.json()
        assert data["is_valid"] is True
        assert [w["code"] for w in data["warnings"]] == ["RESTRICTION_ACTIVE"]

        # 4. 计划中的到达
        resp = await client.post(
            "/api/moves",
            json=_move(
                "delivery", ["W3", "W4"], "2025-06-26T10:00:00+00:00", dest_track_id="T1"
            ),
        )
        assert resp.status_code == 201
        planned_trip = resp.json()["trip_id"]

        # 5. 当前有容量，但计划到达后不足
        capacity = await client.get(
            "/api/tracks/T1/capacity",
            params={"at": "2025-06-24T00:00:00+00:00", "additional_length": 40},
        )
        data = capacity.json()
        assert data["has_capacity"] is True
        assert data["available_length_m"] == 60
        assert [c["trip_id"] for c in data["future_conflicts"]] == [planned_trip]
        assert data["future_conflicts"][0]["available_length_m"] == 20

        # 6. 同一车辆间隔 30 分钟的移动被拒绝
        resp = await client.post(
            "/api/moves",
            json=_move(
                "internal",
                ["W1"],
                "2025-06-23T08:30:00+00:00",
                source_track_id="T1",
                dest_track_id="T2",
                planned=False,
            ),
        )
        assert resp.status_code == 422

        resp = await client.post(
            "/api/moves",
            json=_move(
                "internal",
                ["W1"],
                "2025-06-23T12:00:00+00:00",
                source_track_id="T1",
                dest_track_id="T2",
                planned=False,
            ),
        )
        assert resp.status_code == 201

        occupancy = await client.get(
            "/api/tracks/T1/occupancy", params={"at": "2025-06-23T13:00:00+00:00"}
        )
        assert [o["resource_id"] for o in occupancy.json()["occupants"]] == ["W2"]

        # 7. placement 重建与增量更新结果一致
        stores = integration_app.state.store_group
        before = await _placements(stores)
        await rebuild_placements(stores.conn, stores.movement_store, stores.track_store)
        after = await _placements(stores)
        assert after == before
        assert after["W1"] == "T2"
        assert after["W3"] is None

    async def test_cli_regenerates_windows(self, client: AsyncClient, monkeypatch):
        monkeypatch.setenv("RAILYARD_TIMEZONE", "Europe/Zurich")
        resp = await client.post("/api/restrictions", json=RESTRICTION)
        restriction_id = resp.json()["restriction"]["restriction_id"]

        failed = await regenerate_restrictions()

        assert failed == 0
        windows = (await client.get(f"/api/restrictions/{restriction_id}/windows")).json()
        assert len(windows["windows"]) == 2
