"""访问限制路由测试

测试内容：
1. POST /api/restrictions 创建并展开
2. PUT 更新后窗口重新生成；未知限制 404
3. GET 列表 / windows / applies
4. end <= start、重复窗口跨越午夜返回 422
"""

from httpx import AsyncClient

ONCE_BODY = {
    "project_id": "P1",
    "start": "2025-06-23T08:00:00+00:00",
    "end": "2025-06-26T16:00:00+00:00",
    "pattern": "once",
    "kinds": ["no_entry"],
    "track_ids": ["T1", "T2"],
    "comment": "Weichenrevision",
}


async def _create(client: AsyncClient, body: dict | None = None) -> dict:
    resp = await client.post("/api/restrictions", json=body or ONCE_BODY)
    assert resp.status_code == 201
    return resp.json()


class TestCreateRestriction:
    async def test_create_expands_windows(self, client: AsyncClient):
        data = await _create(client)

        restriction = data["restriction"]
        assert len(restriction["restriction_id"]) == 26
        assert restriction["kinds"] == ["no_entry"]
        assert restriction["track_ids"] == ["T1", "T2"]

        expansion = data["expansion"]
        assert expansion["success"] is True
        assert expansion["inserted_count"] == 4
        assert expansion["error"] is None

    async def test_end_before_start_rejected(self, client: AsyncClient):
        body = {**ONCE_BODY, "end": "2025-06-22T08:00:00+00:00"}
        resp = await client.post("/api/restrictions", json=body)
        assert resp.status_code == 422
        assert resp.json()["error"]["code"] == "VALIDATION_FAILED"

    async def test_recurring_window_across_midnight_rejected(self, client: AsyncClient):
        body = {
            **ONCE_BODY,
            "pattern": "daily",
            "start": "2025-06-23T22:00:00+00:00",
            "end": "2025-06-26T02:00:00+00:00",
        }
        resp = await client.post("/api/restrictions", json=body)
        assert resp.status_code == 422

        listing = await client.get("/api/restrictions")
        assert listing.json()["restrictions"] == []

    async def test_empty_kinds_rejected(self, client: AsyncClient):
        resp = await client.post("/api/restrictions", json={**ONCE_BODY, "kinds": []})
        assert resp.status_code == 422


class TestUpdateRestriction:
    async def test_update_regenerates_windows(self, client: AsyncClient):
        created = await _create(client)
        restriction_id = created["restriction"]["restriction_id"]

        body = {**ONCE_BODY, "end": "2025-06-24T12:00:00+00:00"}
        resp = await client.put(f"/api/restrictions/{restriction_id}", json=body)
        assert resp.status_code == 200
        assert resp.json()["expansion"]["inserted_count"] == 2

        windows = await client.get(f"/api/restrictions/{restriction_id}/windows")
        assert [(w["date"], w["time_to"]) for w in windows.json()["windows"]] == [
            ("2025-06-23", "23:59:59"),
            ("2025-06-24", "12:00:00"),
        ]

    async def test_update_unknown_returns_404(self, client: AsyncClient):
        resp = await client.put("/api/restrictions/R404", json=ONCE_BODY)
        assert resp.status_code == 404
        assert resp.json()["error"]["code"] == "RESTRICTION_NOT_FOUND"


class TestQueryRestrictions:
    async def test_list_filtered_by_project(self, client: AsyncClient):
        await _create(client)
        await _create(client, {**ONCE_BODY, "project_id": "P2"})

        resp = await client.get("/api/restrictions", params={"project_id": "P2"})
        restrictions = resp.json()["restrictions"]
        assert [r["project_id"] for r in restrictions] == ["P2"]

        everything = await client.get("/api/restrictions")
        assert len(everything.json()["restrictions"]) == 2

    async def test_windows(self, client: AsyncClient):
        created = await _create(client)
        restriction_id = created["restriction"]["restriction_id"]

        resp = await client.get(f"/api/restrictions/{restriction_id}/windows")
        assert resp.status_code == 200
        windows = resp.json()["windows"]
        assert [(w["date"], w["time_from"], w["time_to"]) for w in windows] == [
            ("2025-06-23", "08:00:00", "23:59:59"),
            ("2025-06-24", "00:00:00", "23:59:59"),
            ("2025-06-25", "00:00:00", "23:59:59"),
            ("2025-06-26", "00:00:00", "16:00:00"),
        ]
        assert windows[0]["comment"] == "Weichenrevision"

    async def test_windows_unknown_returns_404(self, client: AsyncClient):
        resp = await client.get("/api/restrictions/R404/windows")
        assert resp.status_code == 404

    async def test_expand_is_idempotent(self, client: AsyncClient):
        created = await _create(client)
        restriction_id = created["restriction"]["restriction_id"]

        resp = await client.post(f"/api/restrictions/{restriction_id}/expand")
        assert resp.status_code == 200
        assert resp.json()["inserted_count"] == 4

        windows = await client.get(f"/api/restrictions/{restriction_id}/windows")
        assert len(windows.json()["windows"]) == 4

    async def test_applies(self, client: AsyncClient):
        created = await _create(
            client,
            {
                **ONCE_BODY,
                "pattern": "daily",
                "start": "2023-07-15T10:00:00+00:00",
                "end": "2023-07-20T14:00:00+00:00",
            },
        )
        restriction_id = created["restriction"]["restriction_id"]

        inside = await client.get(
            f"/api/restrictions/{restriction_id}/applies",
            params={"at": "2023-07-17T11:00:00+00:00"},
        )
        assert inside.json()["applies"] is True

        outside = await client.get(
            f"/api/restrictions/{restriction_id}/applies",
            params={"at": "2023-07-17T15:00:00+00:00"},
        )
        assert outside.json()["applies"] is False

    async def test_applies_naive_instant_rejected(self, client: AsyncClient):
        created = await _create(client)
        restriction_id = created["restriction"]["restriction_id"]
        resp = await client.get(
            f"/api/restrictions/{restriction_id}/applies",
            params={"at": "2025-06-24T12:00:00"},
        )
        assert resp.status_code == 422
