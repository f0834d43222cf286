"""Placement Projection 重建测试"""

from datetime import UTC, datetime, timedelta

from railyard.core.models import MoveKind
from railyard.core.projection import apply_event, rebuild_placements

T0 = datetime(2025, 6, 23, 8, 0, tzinfo=UTC)


class TestApplyEvent:
    def test_arrival_and_departure(self, make_event):
        placements: dict[str, str | None] = {}
        apply_event(placements, make_event("W1", MoveKind.DELIVERY, T0, dest="T1"))
        assert placements == {"W1": "T1"}

        apply_event(placements, make_event("W1", MoveKind.DEPARTURE, T0, source="T1"))
        assert placements == {"W1": None}


class TestRebuildPlacements:
    async def test_rebuild_matches_executed_events(self, yard, make_event):
        store = yard.movement_store
        await store.insert_event(make_event("W1", MoveKind.DELIVERY, T0, dest="T1"))
        await store.insert_event(
            make_event("W1", MoveKind.INTERNAL, T0 + timedelta(hours=2), source="T1", dest="T2")
        )
        await store.insert_event(make_event("W2", MoveKind.DELIVERY, T0, dest="T1"))
        await store.insert_event(
            make_event("W3", MoveKind.DELIVERY, T0, dest="T1", planned=True)
        )
        await yard.conn.commit()

        count = await rebuild_placements(yard.conn, store, yard.track_store)

        assert count == 3
        resources = await yard.track_store.list_resources()
        placements = {r.resource_id: r.current_track_id for r in resources}
        assert placements == {
            "W1": "T2",
            "W2": "T1",
            "W3": None,
            "W4": None,
            "W5": "T3",
        }

    async def test_rebuild_repairs_drift(self, yard, make_event):
        await yard.append_trip([make_event("W1", MoveKind.DELIVERY, T0, dest="T1")])
        await yard.track_store.update_resource_track("W1", "T3")
        await yard.conn.commit()

        await rebuild_placements(yard.conn, yard.movement_store, yard.track_store)

        w1 = await yard.track_store.get_resource("W1")
        assert w1.current_track_id == "T1"

    async def test_superseded_trip_not_applied(self, yard, make_event):
        await yard.append_trip(
            [make_event("W1", MoveKind.DELIVERY, T0, dest="T1", trip_id="old")]
        )
        await yard.append_trip(
            [
                make_event(
                    "W1", MoveKind.DELIVERY, T0 + timedelta(hours=2), dest="T2", trip_id="new"
                )
            ],
            supersedes_trip_id="old",
        )

        count = await rebuild_placements(yard.conn, yard.movement_store, yard.track_store)
        assert count == 1
        w1 = await yard.track_store.get_resource("W1")
        assert w1.current_track_id == "T2"
