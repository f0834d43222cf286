"""Railyard Core Domain Models -- 公共类型导出

所有公共模型类型从此入口导入。
"""

from .enums import (
    ARRIVING_KINDS,
    LEAVING_KINDS,
    CapacityCheckMode,
    MoveKind,
    RepetitionPattern,
    RestrictionKind,
)
from .movement import MovementEvent, MoveProposal
from .restriction import DailyRestrictionWindow, Restriction
from .results import (
    BatchOutcome,
    CapacityResult,
    ExpansionResult,
    FutureConflict,
    MoveValidationResult,
    Occupancy,
    Occupant,
    ValidationIssue,
)
from .track import Resource, Track

__all__ = [
    # 枚举
    "MoveKind",
    "RepetitionPattern",
    "RestrictionKind",
    "CapacityCheckMode",
    "ARRIVING_KINDS",
    "LEAVING_KINDS",
    # 轨道与车辆
    "Track",
    "Resource",
    # 移动
    "MovementEvent",
    "MoveProposal",
    # 限制
    "Restriction",
    "DailyRestrictionWindow",
    # 结果
    "Occupant",
    "Occupancy",
    "FutureConflict",
    "CapacityResult",
    "ValidationIssue",
    "MoveValidationResult",
    "BatchOutcome",
    "ExpansionResult",
]
