"""Railyard 时间推理引擎

无状态：每次调用都从注入的存储组重新读取数据。
"""

from .capacity import check_capacity
from .conflicts import detect_conflicts
from .moves import commit_move, validate_move
from .occupancy import reconstruct_occupancy, replay
from .restrictions import (
    applies_at,
    build_daily_windows,
    expand_restriction,
    find_blocking_restrictions,
)

__all__ = [
    "reconstruct_occupancy",
    "replay",
    "check_capacity",
    "detect_conflicts",
    "validate_move",
    "commit_move",
    "build_daily_windows",
    "expand_restriction",
    "applies_at",
    "find_blocking_restrictions",
]
