"""Railyard 异常体系

NotFound / ValidationFailed / StorageUnavailable 三类错误直接抛给调用方；
HistoryUnavailable 仅在容量检查内部触发静态降级；
批次写入失败不抛异常，而是累积在 ExpansionResult 中。
"""

from typing import Any


class RailyardError(Exception):
    """Railyard 基础异常"""

    code = "RAILYARD_ERROR"

    def __init__(self, message: str, recoverable: bool = False) -> None:
        """
        Args:
            message: 错误描述
            recoverable: 是否可通过重试恢复
        """
        super().__init__(message)
        self.message = message
        self.recoverable = recoverable


class NotFoundError(RailyardError):
    """轨道、车辆或限制不存在"""

    code = "NOT_FOUND"

    def __init__(self, entity: str, entity_id: str) -> None:
        super().__init__(f"{entity} {entity_id} 不存在")
        self.entity = entity
        self.entity_id = entity_id
        self.code = f"{entity.upper()}_NOT_FOUND"


class ValidationFailedError(RailyardError):
    """输入或提案未通过校验

    移动校验失败时 result 携带完整的 MoveValidationResult。
    """

    code = "VALIDATION_FAILED"

    def __init__(self, message: str, result: Any = None) -> None:
        super().__init__(message)
        self.result = result


class MovementConflictError(ValidationFailedError):
    """同一车辆在同一时间桶内已有移动（存储层唯一约束）"""

    code = "MOVEMENT_CONFLICT"


class HistoryUnavailableError(RailyardError):
    """轨道在该时刻之前没有完整的事件历史"""

    code = "HISTORY_UNAVAILABLE"

    def __init__(self, track_id: str, history_since: Any) -> None:
        super().__init__(f"轨道 {track_id} 的事件历史从 {history_since} 开始")
        self.track_id = track_id
        self.history_since = history_since


class StorageUnavailableError(RailyardError):
    """存储暂时不可用（I/O 故障、数据库锁定等）

    引擎内部不重试，由调用方决定重试策略。
    """

    code = "STORAGE_UNAVAILABLE"

    def __init__(self, operation: str, original_error: Exception) -> None:
        super().__init__(f"存储操作失败: {operation} -- {original_error}", recoverable=True)
        self.operation = operation
        self.original_error = original_error
