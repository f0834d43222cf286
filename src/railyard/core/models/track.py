"""Track / Resource Domain Model

resources.current_track_id 是已执行移动事件的物化视图（placement projection），
只用于无法按时间重建时的静态容量检查。
"""

from pydantic import AwareDatetime, BaseModel, Field


class Track(BaseModel):
    """轨道 -- usable_length_m 为 0 表示不限长度"""

    track_id: str = Field(description="唯一标识")
    node_id: str = Field(description="所属节点")
    name: str = Field(default="", description="轨道名称")
    usable_length_m: float = Field(default=0, ge=0, description="可用长度（米），0 表示不限")
    history_since: AwareDatetime | None = Field(
        default=None,
        description="事件日志从该时刻起完整；更早的时刻无法按时间重建",
    )

    @property
    def is_unconstrained(self) -> bool:
        return self.usable_length_m == 0


class Resource(BaseModel):
    """车辆（wagon）"""

    resource_id: str = Field(description="唯一标识")
    number: str = Field(default="", description="车辆编号")
    length_m: float = Field(ge=0, description="车辆长度（米）")
    current_track_id: str | None = Field(default=None, description="当前所在轨道（静态）")
