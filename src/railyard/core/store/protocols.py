"""Store Protocol 接口定义

定义 TrackStore、MovementStore、RestrictionStore 的抽象接口，
使用 Python Protocol 实现结构化子类型（duck typing）。
引擎只依赖这些接口，调用方可注入任意实现。
"""

from datetime import datetime
from typing import Protocol

from ..models.movement import MovementEvent
from ..models.restriction import DailyRestrictionWindow, Restriction
from ..models.track import Resource, Track


class TrackStore(Protocol):
    """轨道与车辆存储接口"""

    async def get_track(self, track_id: str) -> Track | None:
        """根据 track_id 查询轨道"""
        ...

    async def get_resource(self, resource_id: str) -> Resource | None:
        """根据 resource_id 查询车辆"""
        ...

    async def list_resources_on_track(self, track_id: str) -> list[Resource]:
        """查询静态 placement 位于该轨道的车辆"""
        ...


class MovementStore(Protocol):
    """移动事件存储接口

    事件表 append-only：只允许插入，不允许更新或删除。
    所有查询结果按 (ts, seq) 正序返回。
    """

    async def insert_event(self, event: MovementEvent) -> MovementEvent:
        """追加事件，返回带 seq 的事件"""
        ...

    async def list_events(self, resource_id: str) -> list[MovementEvent]:
        """查询指定车辆的所有事件"""
        ...

    async def list_events_for_track(
        self,
        track_id: str,
        at_or_before: datetime,
        include_planned: bool = True,
    ) -> list[MovementEvent]:
        """查询进入或离开指定轨道、且不晚于 at_or_before 的事件"""
        ...

    async def list_planned_arrivals(
        self,
        track_id: str,
        after: datetime,
        until: datetime,
    ) -> list[MovementEvent]:
        """查询 (after, until] 内计划进入指定轨道的事件"""
        ...

    async def list_trip_events(self, trip_id: str) -> list[MovementEvent]:
        """查询同一 trip 的事件（包括已被取代的）"""
        ...


class RestrictionStore(Protocol):
    """限制与按日窗口存储接口"""

    async def get_restriction(self, restriction_id: str) -> Restriction | None:
        """根据 restriction_id 查询限制"""
        ...

    async def list_restrictions(self, project_id: str | None = None) -> list[Restriction]:
        """查询限制列表"""
        ...

    async def list_restrictions_for_track(self, track_id: str) -> list[Restriction]:
        """查询影响指定轨道的限制"""
        ...

    async def list_affected_tracks(self, restriction_id: str) -> list[str]:
        """查询限制影响的轨道"""
        ...

    async def delete_daily_windows(self, restriction_id: str) -> int:
        """删除限制的所有按日窗口"""
        ...

    async def insert_daily_windows(self, windows: list[DailyRestrictionWindow]) -> int:
        """插入一批按日窗口（整批成功或整批失败）"""
        ...


class EventLogStore(Protocol):
    """引擎所需的存储组合"""

    track_store: TrackStore
    movement_store: MovementStore
    restriction_store: RestrictionStore

    async def append_trip(
        self,
        events: list[MovementEvent],
        supersedes_trip_id: str | None = None,
    ) -> list[MovementEvent]:
        """原子提交一次 trip 的事件"""
        ...
