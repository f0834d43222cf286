"""RestrictionService 测试 -- 保存前校验、并发展开串行化"""

import asyncio
from datetime import UTC, datetime

import pytest
from railyard.core.config import EngineConfig
from railyard.core.exceptions import NotFoundError, ValidationFailedError
from railyard.core.models import RepetitionPattern, Restriction, RestrictionKind
from railyard.gateway.services.restriction_service import RestrictionService
from ulid import ULID


def _restriction(**kw) -> Restriction:
    return Restriction(
        restriction_id=kw.pop("restriction_id", str(ULID())),
        start=kw.pop("start", datetime(2025, 6, 23, 8, 0, tzinfo=UTC)),
        end=kw.pop("end", datetime(2025, 6, 26, 16, 0, tzinfo=UTC)),
        kinds={RestrictionKind.NO_ENTRY},
        track_ids=["T1"],
        **kw,
    )


class TestRestrictionService:
    async def test_save_and_expand(self, yard):
        service = RestrictionService(yard, EngineConfig())
        saved, result = await service.save_and_expand(_restriction())

        assert result.inserted_count == 4
        assert saved.track_ids == ["T1"]

    async def test_invalid_restriction_not_saved(self, yard):
        service = RestrictionService(yard, EngineConfig())
        broken = _restriction(
            start=datetime(2025, 6, 23, 22, 0, tzinfo=UTC),
            end=datetime(2025, 6, 26, 2, 0, tzinfo=UTC),
            pattern=RepetitionPattern.DAILY,
        )
        with pytest.raises(ValidationFailedError):
            await service.save_and_expand(broken)
        assert await service.list_restrictions() == []

    async def test_unknown_restriction(self, yard):
        service = RestrictionService(yard, EngineConfig())
        with pytest.raises(NotFoundError):
            await service.expand("R404")
        with pytest.raises(NotFoundError):
            await service.update_restriction(_restriction(restriction_id="R404"))

    async def test_concurrent_expansions_converge(self, yard):
        service = RestrictionService(yard, EngineConfig(expansion_batch_size=1))
        saved, _ = await service.save_and_expand(_restriction())

        results = await asyncio.gather(
            *(service.expand(saved.restriction_id) for _ in range(3))
        )

        assert all(r.success for r in results)
        windows = await service.list_windows(saved.restriction_id)
        assert [w.date.day for w in windows] == [23, 24, 25, 26]

    async def test_expansion_locks_released_after_use(self, yard):
        service = RestrictionService(yard, EngineConfig(expansion_batch_size=1))
        saved, _ = await service.save_and_expand(_restriction())
        await asyncio.gather(*(service.expand(saved.restriction_id) for _ in range(3)))
        with pytest.raises(NotFoundError):
            await service.expand("R404")

        for restriction_id in (saved.restriction_id, "R404"):
            assert restriction_id not in RestrictionService._restriction_locks
            assert restriction_id not in RestrictionService._restriction_lock_users
