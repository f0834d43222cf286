"""Restriction / DailyRestrictionWindow Domain Model

daily_restriction_windows 是 restrictions 的派生表，
主键 (restriction_id, date, kind)，每次限制变更时删除后重建。
"""

import datetime as dt

from pydantic import AwareDatetime, BaseModel, Field, model_validator

from .enums import RepetitionPattern, RestrictionKind


class Restriction(BaseModel):
    """访问限制 -- 有时间范围，可按模式重复"""

    restriction_id: str = Field(description="唯一标识，ULID 格式")
    project_id: str = Field(default="", description="所属项目")
    start: AwareDatetime = Field(description="开始时刻")
    end: AwareDatetime = Field(description="结束时刻，必须晚于开始时刻")
    pattern: RepetitionPattern = Field(default=RepetitionPattern.ONCE, description="重复模式")
    kinds: set[RestrictionKind] = Field(min_length=1, description="限制类型集合")
    track_ids: list[str] = Field(default_factory=list, description="受影响的轨道")
    comment: str | None = Field(default=None, description="备注")

    @model_validator(mode="after")
    def _check_range(self) -> "Restriction":
        if self.end <= self.start:
            raise ValueError("end 必须晚于 start")
        return self


class DailyRestrictionWindow(BaseModel):
    """按日物化的限制窗口"""

    restriction_id: str
    project_id: str = ""
    date: dt.date
    time_from: dt.time
    time_to: dt.time
    kind: RestrictionKind
    track_ids: list[str] = Field(default_factory=list)
    comment: str | None = None

    @property
    def key(self) -> tuple[str, dt.date, RestrictionKind]:
        return (self.restriction_id, self.date, self.kind)
