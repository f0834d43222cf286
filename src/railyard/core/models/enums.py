"""枚举定义

包含移动事件类型 MoveKind、限制重复模式 RepetitionPattern、
限制类型 RestrictionKind，以及容量检查模式 CapacityCheckMode。
"""

from enum import StrEnum


class MoveKind(StrEnum):
    """移动事件类型（tagged variant 的标签）"""

    INITIAL = "initial"
    DELIVERY = "delivery"
    DEPARTURE = "departure"
    INTERNAL = "internal"
    MANUAL = "manual"


# 需要目标轨道的事件类型
ARRIVING_KINDS: set[MoveKind] = {
    MoveKind.INITIAL,
    MoveKind.DELIVERY,
    MoveKind.INTERNAL,
}

# 需要来源轨道的事件类型
LEAVING_KINDS: set[MoveKind] = {
    MoveKind.DEPARTURE,
    MoveKind.INTERNAL,
}


class RepetitionPattern(StrEnum):
    """限制重复模式"""

    ONCE = "once"
    DAILY = "daily"
    WEEKLY = "weekly"
    MONTHLY = "monthly"


class RestrictionKind(StrEnum):
    """限制类型"""

    NO_ENTRY = "no_entry"
    NO_EXIT = "no_exit"


class CapacityCheckMode(StrEnum):
    """容量检查模式 -- 标识结果的可信程度"""

    TIME_BASED = "time_based"
    STATIC = "static"
