"""引擎结果模型

占用重建、容量检查、移动校验、限制展开的返回结构。
"""

import datetime as dt
from typing import Any

from pydantic import AwareDatetime, BaseModel, Field

from .enums import CapacityCheckMode


class Occupant(BaseModel):
    """某时刻位于轨道上的车辆"""

    resource_id: str
    length_m: float
    arrived_at: AwareDatetime = Field(description="最近一次进入该轨道的时间")
    position_m: float = Field(default=0, description="距轨道起点的累计位置（米）")


class Occupancy(BaseModel):
    """轨道在某时刻的占用情况"""

    track_id: str
    at: AwareDatetime
    usable_length_m: float = 0
    occupants: list[Occupant] = Field(default_factory=list)

    @property
    def resource_ids(self) -> list[str]:
        return [o.resource_id for o in self.occupants]

    @property
    def total_length_m(self) -> float:
        return sum(o.length_m for o in self.occupants)

    @property
    def resource_count(self) -> int:
        return len(self.occupants)

    @property
    def usage_percent(self) -> float:
        if self.usable_length_m == 0:
            return 0.0
        return self.total_length_m / self.usable_length_m * 100


class FutureConflict(BaseModel):
    """计划中的到达使可用长度不足"""

    trip_id: str | None
    ts: AwareDatetime
    available_length_m: float
    required_length_m: float


class CapacityResult(BaseModel):
    """容量检查结果"""

    track_id: str
    at: AwareDatetime
    track_length_m: float
    current_usage_m: float
    additional_length_m: float
    available_length_m: float
    has_capacity: bool
    mode: CapacityCheckMode = CapacityCheckMode.TIME_BASED
    future_conflicts: list[FutureConflict] = Field(default_factory=list)

    @property
    def time_based_check(self) -> bool:
        return self.mode == CapacityCheckMode.TIME_BASED

    @property
    def static_check(self) -> bool:
        return self.mode == CapacityCheckMode.STATIC


class ValidationIssue(BaseModel):
    """校验错误或警告"""

    code: str
    message: str
    field: str | None = None
    details: dict[str, Any] = Field(default_factory=dict)


class MoveValidationResult(BaseModel):
    """移动校验结果 -- errors 为硬冲突，warnings 为提示"""

    errors: list[ValidationIssue] = Field(default_factory=list)
    warnings: list[ValidationIssue] = Field(default_factory=list)
    capacity: CapacityResult | None = None

    @property
    def is_valid(self) -> bool:
        return not self.errors


class BatchOutcome(BaseModel):
    """单个插入批次的结果"""

    batch_index: int
    first_date: dt.date
    last_date: dt.date
    row_count: int
    error: str | None = None

    @property
    def ok(self) -> bool:
        return self.error is None


class ExpansionResult(BaseModel):
    """限制展开结果 -- 累积每个批次的成败，不因单批失败而中断"""

    restriction_id: str
    batches: list[BatchOutcome] = Field(default_factory=list)

    @property
    def inserted_count(self) -> int:
        return sum(b.row_count for b in self.batches if b.ok)

    @property
    def failed_batches(self) -> list[BatchOutcome]:
        return [b for b in self.batches if not b.ok]

    @property
    def success(self) -> bool:
        return not self.failed_batches

    @property
    def error(self) -> str | None:
        failed = self.failed_batches
        if not failed:
            return None
        ranges = "; ".join(
            f"{b.first_date.isoformat()}..{b.last_date.isoformat()}: {b.error}" for b in failed
        )
        return f"{len(failed)} 个批次写入失败 ({ranges})"
