"""MovementEvent Domain Model

movement_events 表 append-only，不允许更新或删除；修正通过新的补偿事件完成。
event_id 使用 ULID 格式，时间有序。
seq 由存储层在插入时分配，作为同一时间戳下的排序依据。
"""

from pydantic import AwareDatetime, BaseModel, Field, model_validator

from .enums import ARRIVING_KINDS, LEAVING_KINDS, MoveKind


class MovementEvent(BaseModel):
    """MovementEvent 数据模型 -- 按 kind 区分必填字段

    - initial / delivery: 必须有 dest_track_id，不能有 source_track_id
    - departure: 必须有 source_track_id，不能有 dest_track_id
    - internal: source 与 dest 都必填且不同
    - manual: 至少一个轨道；两者都有时必须不同
    """

    event_id: str = Field(description="唯一标识，ULID 格式")
    resource_id: str = Field(description="关联的车辆 ID")
    kind: MoveKind = Field(description="移动类型")
    source_track_id: str | None = Field(default=None, description="来源轨道")
    dest_track_id: str | None = Field(default=None, description="目标轨道")
    ts: AwareDatetime = Field(description="移动时间")
    planned: bool = Field(default=False, description="是否为计划中（尚未执行）的移动")
    length_m: float = Field(ge=0, description="移动时车辆长度（米）")
    trip_id: str | None = Field(default=None, description="同一次提交的事件共享 trip_id")
    seq: int | None = Field(default=None, description="创建序号，由存储层分配")

    @model_validator(mode="after")
    def _check_kind_fields(self) -> "MovementEvent":
        source, dest = self.source_track_id, self.dest_track_id
        if self.kind == MoveKind.MANUAL:
            if source is None and dest is None:
                raise ValueError("manual 事件至少需要一个轨道")
        else:
            if (dest is not None) != (self.kind in ARRIVING_KINDS):
                verb = "需要" if self.kind in ARRIVING_KINDS else "不能有"
                raise ValueError(f"{self.kind} 事件{verb} dest_track_id")
            if (source is not None) != (self.kind in LEAVING_KINDS):
                verb = "需要" if self.kind in LEAVING_KINDS else "不能有"
                raise ValueError(f"{self.kind} 事件{verb} source_track_id")
        if source is not None and source == dest:
            raise ValueError(f"{self.kind} 事件的来源与目标轨道不能相同")
        return self

    def arrives_on(self, track_id: str) -> bool:
        """该事件是否把车辆移入指定轨道"""
        return self.dest_track_id == track_id

    def leaves(self, track_id: str) -> bool:
        """该事件是否把车辆移出指定轨道"""
        return self.source_track_id == track_id


class MoveProposal(BaseModel):
    """待校验的移动提案 -- 一次移动可包含多辆车"""

    kind: MoveKind
    resource_ids: list[str] = Field(min_length=1, description="参与移动的车辆")
    source_track_id: str | None = None
    dest_track_id: str | None = None
    ts: AwareDatetime
    planned: bool = True
    exclude_trip_id: str | None = Field(
        default=None,
        description="编辑已有 trip 时排除其自身事件",
    )

    @model_validator(mode="after")
    def _check_tracks(self) -> "MoveProposal":
        # 复用事件模型的字段约束
        MovementEvent(
            event_id="proposal",
            resource_id=self.resource_ids[0],
            kind=self.kind,
            source_track_id=self.source_track_id,
            dest_track_id=self.dest_track_id,
            ts=self.ts,
            length_m=0,
        )
        return self
