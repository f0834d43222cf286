"""车辆时间冲突检测

同一车辆的两次移动之间至少相隔 collision window（默认 60 分钟）：
- 同一日历日内间隔小于 collision window：硬冲突（错误）
- 跨日但间隔小于 collision window：警告
- 同一日历日内间隔小于 tight window（默认 120 分钟）：警告
"""

from collections import Counter

import structlog

from ..config import EngineConfig
from ..models.movement import MoveProposal
from ..models.results import ValidationIssue
from ..store.protocols import EventLogStore
from .calendar import ensure_aware, local_date

log = structlog.get_logger()

RESOURCE_SCHEDULE_CONFLICT = "RESOURCE_SCHEDULE_CONFLICT"
TIGHT_SCHEDULE = "TIGHT_SCHEDULE"
DUPLICATE_RESOURCE = "DUPLICATE_RESOURCE"


async def detect_conflicts(
    stores: EventLogStore,
    proposal: MoveProposal,
    *,
    config: EngineConfig | None = None,
) -> tuple[list[ValidationIssue], list[ValidationIssue]]:
    """检测提案中各车辆与其已有移动的时间冲突

    proposal.exclude_trip_id 所属的事件不参与比较（编辑已有 trip）。

    Returns:
        (errors, warnings)
    """
    config = config or EngineConfig()
    ensure_aware(proposal.ts, "ts")
    tz = config.tz
    collision_seconds = config.collision_window_seconds
    tight_seconds = config.tight_window_minutes * 60
    proposal_date = local_date(proposal.ts, tz)

    errors: list[ValidationIssue] = []
    warnings: list[ValidationIssue] = []

    for resource_id, count in Counter(proposal.resource_ids).items():
        if count > 1:
            errors.append(
                ValidationIssue(
                    code=DUPLICATE_RESOURCE,
                    message=f"车辆 {resource_id} 在同一次移动中出现 {count} 次",
                    field="resource_ids",
                    details={"resource_id": resource_id},
                )
            )

    for resource_id in dict.fromkeys(proposal.resource_ids):
        events = await stores.movement_store.list_events(resource_id)
        for event in events:
            if proposal.exclude_trip_id is not None and event.trip_id == proposal.exclude_trip_id:
                continue
            gap_seconds = abs((event.ts - proposal.ts).total_seconds())
            same_day = local_date(event.ts, tz) == proposal_date
            details = {
                "resource_id": resource_id,
                "event_id": event.event_id,
                "trip_id": event.trip_id,
                "ts": event.ts.isoformat(),
                "gap_minutes": round(gap_seconds / 60, 1),
            }

            if gap_seconds < collision_seconds and same_day:
                errors.append(
                    ValidationIssue(
                        code=RESOURCE_SCHEDULE_CONFLICT,
                        message=(
                            f"车辆 {resource_id} 在 {event.ts.isoformat()} 已有移动，"
                            f"间隔小于 {config.collision_window_minutes} 分钟"
                        ),
                        field="ts",
                        details=details,
                    )
                )
            elif gap_seconds < collision_seconds:
                warnings.append(
                    ValidationIssue(
                        code=TIGHT_SCHEDULE,
                        message=f"车辆 {resource_id} 在相邻日期 {event.ts.isoformat()} 有移动，间隔较短",
                        field="ts",
                        details=details,
                    )
                )
            elif gap_seconds < tight_seconds and same_day:
                warnings.append(
                    ValidationIssue(
                        code=TIGHT_SCHEDULE,
                        message=(
                            f"车辆 {resource_id} 在 {event.ts.isoformat()} 有移动，"
                            f"间隔小于 {config.tight_window_minutes} 分钟"
                        ),
                        field="ts",
                        details=details,
                    )
                )

    if errors:
        log.info(
            "movement_conflicts_detected",
            resource_ids=proposal.resource_ids,
            ts=proposal.ts.isoformat(),
            error_count=len(errors),
            warning_count=len(warnings),
        )
    return errors, warnings
