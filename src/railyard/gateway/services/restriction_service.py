"""RestrictionService -- 限制的保存、展开与查询

同一限制的展开必须串行：删除与分批写入之间不能穿插另一次展开。
服务持有 restriction 级别的 asyncio.Lock。
"""

import asyncio
from datetime import datetime

import structlog
from railyard.core.config import EngineConfig
from railyard.core.engine.calendar import ensure_aware
from railyard.core.engine.restrictions import (
    applies_at,
    build_daily_windows,
    expand_restriction,
)
from railyard.core.exceptions import NotFoundError
from railyard.core.models import (
    DailyRestrictionWindow,
    ExpansionResult,
    Restriction,
)
from railyard.core.store import StoreGroup

log = structlog.get_logger()


class RestrictionService:
    """限制业务服务"""

    _restriction_locks: dict[str, asyncio.Lock] = {}
    # 正在使用（持有或等待）各锁的协程数，归零时移除该锁
    _restriction_lock_users: dict[str, int] = {}
    _restriction_locks_guard = asyncio.Lock()

    def __init__(self, store_group: StoreGroup, config: EngineConfig) -> None:
        self._stores = store_group
        self._config = config

    async def save_and_expand(
        self,
        restriction: Restriction,
    ) -> tuple[Restriction, ExpansionResult]:
        """保存限制并重新生成按日窗口

        Raises:
            ValidationFailedError: 限制无法展开（在写入前检查）
        """
        # 写入前先确认可以展开
        build_daily_windows(restriction, self._config.tz)
        await self._stores.restriction_store.save_restriction(restriction)
        log.info(
            "restriction_saved",
            restriction_id=restriction.restriction_id,
            pattern=restriction.pattern.value,
            track_count=len(restriction.track_ids),
        )
        result = await self.expand(restriction.restriction_id)
        saved = await self.get_restriction(restriction.restriction_id)
        return saved, result

    async def update_restriction(
        self,
        restriction: Restriction,
    ) -> tuple[Restriction, ExpansionResult]:
        """更新已有限制；限制不存在时抛出 NotFoundError"""
        await self.get_restriction(restriction.restriction_id)
        return await self.save_and_expand(restriction)

    async def expand(self, restriction_id: str) -> ExpansionResult:
        """重新展开限制（同一限制串行执行）"""
        lock = await self._get_restriction_lock(restriction_id)
        try:
            async with lock:
                restriction = await self.get_restriction(restriction_id)
                return await expand_restriction(self._stores, restriction, config=self._config)
        finally:
            await self._release_restriction_lock(restriction_id)

    async def get_restriction(self, restriction_id: str) -> Restriction:
        restriction = await self._stores.restriction_store.get_restriction(restriction_id)
        if restriction is None:
            raise NotFoundError("restriction", restriction_id)
        return restriction

    async def list_restrictions(self, project_id: str | None = None) -> list[Restriction]:
        return await self._stores.restriction_store.list_restrictions(project_id)

    async def list_windows(self, restriction_id: str) -> list[DailyRestrictionWindow]:
        await self.get_restriction(restriction_id)
        return await self._stores.restriction_store.list_daily_windows(restriction_id)

    async def applies(self, restriction_id: str, at: datetime) -> bool:
        ensure_aware(at)
        restriction = await self.get_restriction(restriction_id)
        return applies_at(restriction, at, self._config.tz)

    @classmethod
    async def _get_restriction_lock(cls, restriction_id: str) -> asyncio.Lock:
        """获取 restriction 级别锁，序列化同一限制的展开。"""
        async with cls._restriction_locks_guard:
            lock = cls._restriction_locks.get(restriction_id)
            if lock is None:
                lock = asyncio.Lock()
                cls._restriction_locks[restriction_id] = lock
            cls._restriction_lock_users[restriction_id] = (
                cls._restriction_lock_users.get(restriction_id, 0) + 1
            )
            return lock

    @classmethod
    async def _release_restriction_lock(cls, restriction_id: str) -> None:
        """展开结束后释放引用，最后一个使用者移除 lock，避免全局字典无限增长。"""
        async with cls._restriction_locks_guard:
            users = cls._restriction_lock_users.get(restriction_id, 0) - 1
            if users > 0:
                cls._restriction_lock_users[restriction_id] = users
            else:
                cls._restriction_lock_users.pop(restriction_id, None)
                cls._restriction_locks.pop(restriction_id, None)
