"""移动校验与提交

validate_move 依次执行：
1. 解析车辆与轨道
2. 离开轨道的移动：车辆在提案时刻必须位于来源轨道
3. 车辆时间冲突检测
4. 目标轨道容量检查（排除正在移动的车辆）
5. 生效中的访问限制（仅警告）

commit_move 在校验通过后，以单个事务写入每辆车一条事件。
"""

import structlog
from ulid import ULID

from ..config import EngineConfig
from ..exceptions import HistoryUnavailableError, NotFoundError, ValidationFailedError
from ..models.movement import MovementEvent, MoveProposal
from ..models.results import MoveValidationResult, ValidationIssue
from ..models.track import Resource
from ..store.protocols import EventLogStore
from .calendar import ensure_aware
from .capacity import check_capacity
from .conflicts import detect_conflicts
from .occupancy import reconstruct_occupancy
from .restrictions import find_blocking_restrictions

log = structlog.get_logger()


async def _resolve_resources(
    stores: EventLogStore,
    resource_ids: list[str],
    result: MoveValidationResult,
) -> dict[str, Resource]:
    resources: dict[str, Resource] = {}
    for resource_id in dict.fromkeys(resource_ids):
        resource = await stores.track_store.get_resource(resource_id)
        if resource is None:
            result.errors.append(
                ValidationIssue(
                    code="RESOURCE_NOT_FOUND",
                    message=f"车辆 {resource_id} 不存在",
                    field="resource_ids",
                    details={"resource_id": resource_id},
                )
            )
        else:
            resources[resource_id] = resource
    return resources


async def _check_tracks_exist(
    stores: EventLogStore,
    proposal: MoveProposal,
    result: MoveValidationResult,
) -> None:
    for field, track_id in (
        ("source_track_id", proposal.source_track_id),
        ("dest_track_id", proposal.dest_track_id),
    ):
        if track_id is None:
            continue
        if await stores.track_store.get_track(track_id) is None:
            result.errors.append(
                ValidationIssue(
                    code="TRACK_NOT_FOUND",
                    message=f"轨道 {track_id} 不存在",
                    field=field,
                    details={"track_id": track_id},
                )
            )


async def _check_on_source_track(
    stores: EventLogStore,
    proposal: MoveProposal,
    resources: dict[str, Resource],
    result: MoveValidationResult,
) -> None:
    source = proposal.source_track_id
    if source is None:
        return
    try:
        occupancy = await reconstruct_occupancy(
            stores,
            source,
            proposal.ts,
            exclude_trip_id=proposal.exclude_trip_id,
        )
        present = set(occupancy.resource_ids)
    except HistoryUnavailableError:
        present = {r.resource_id for r in resources.values() if r.current_track_id == source}

    for resource_id in resources:
        if resource_id not in present:
            result.errors.append(
                ValidationIssue(
                    code="RESOURCE_NOT_ON_SOURCE_TRACK",
                    message=f"车辆 {resource_id} 在 {proposal.ts.isoformat()} 不在轨道 {source} 上",
                    field="source_track_id",
                    details={"resource_id": resource_id, "track_id": source},
                )
            )


async def validate_move(
    stores: EventLogStore,
    proposal: MoveProposal,
    *,
    config: EngineConfig | None = None,
) -> MoveValidationResult:
    """校验移动提案

    Returns:
        MoveValidationResult：errors 非空表示提案不可提交
    """
    config = config or EngineConfig()
    ensure_aware(proposal.ts, "ts")
    result = MoveValidationResult()

    resources = await _resolve_resources(stores, proposal.resource_ids, result)
    await _check_tracks_exist(stores, proposal, result)
    if result.errors:
        return result

    await _check_on_source_track(stores, proposal, resources, result)

    errors, warnings = await detect_conflicts(stores, proposal, config=config)
    result.errors.extend(errors)
    result.warnings.extend(warnings)

    if proposal.dest_track_id is not None:
        additional = sum(r.length_m for r in resources.values())
        capacity = await check_capacity(
            stores,
            proposal.dest_track_id,
            proposal.ts,
            additional,
            exclude_resource_ids=resources.keys(),
            config=config,
        )
        result.capacity = capacity
        if not capacity.has_capacity:
            result.errors.append(
                ValidationIssue(
                    code="INSUFFICIENT_CAPACITY",
                    message=(
                        f"轨道 {proposal.dest_track_id} 可用长度 {capacity.available_length_m:.1f} 米，"
                        f"需要 {additional:.1f} 米"
                    ),
                    field="dest_track_id",
                    details={
                        "available_length_m": capacity.available_length_m,
                        "required_length_m": additional,
                    },
                )
            )
        for conflict in capacity.future_conflicts:
            result.warnings.append(
                ValidationIssue(
                    code="FUTURE_CAPACITY_CONFLICT",
                    message=(
                        f"计划于 {conflict.ts.isoformat()} 到达的移动将使可用长度降至 "
                        f"{conflict.available_length_m:.1f} 米"
                    ),
                    field="dest_track_id",
                    details=conflict.model_dump(mode="json"),
                )
            )
        if capacity.static_check:
            result.warnings.append(
                ValidationIssue(
                    code="STATIC_CAPACITY_CHECK",
                    message="该时刻没有完整的事件历史，容量按当前静态位置计算",
                    field="ts",
                )
            )

    for restriction, kind, track_id in await find_blocking_restrictions(
        stores, proposal, config.tz
    ):
        result.warnings.append(
            ValidationIssue(
                code="RESTRICTION_ACTIVE",
                message=f"轨道 {track_id} 在该时刻有生效的 {kind} 限制",
                field="dest_track_id" if kind == "no_entry" else "source_track_id",
                details={
                    "restriction_id": restriction.restriction_id,
                    "kind": kind.value,
                    "track_id": track_id,
                    "comment": restriction.comment,
                },
            )
        )

    log.debug(
        "move_validated",
        kind=proposal.kind.value,
        resource_ids=proposal.resource_ids,
        ts=proposal.ts.isoformat(),
        is_valid=result.is_valid,
        error_count=len(result.errors),
        warning_count=len(result.warnings),
    )
    return result


def build_trip_events(
    proposal: MoveProposal,
    resources: list[Resource],
    trip_id: str,
) -> list[MovementEvent]:
    """为提案中的每辆车生成一条事件"""
    return [
        MovementEvent(
            event_id=str(ULID()),
            resource_id=resource.resource_id,
            kind=proposal.kind,
            source_track_id=proposal.source_track_id,
            dest_track_id=proposal.dest_track_id,
            ts=proposal.ts,
            planned=proposal.planned,
            length_m=resource.length_m,
            trip_id=trip_id,
        )
        for resource in resources
    ]


async def commit_move(
    stores: EventLogStore,
    proposal: MoveProposal,
    *,
    config: EngineConfig | None = None,
) -> list[MovementEvent]:
    """校验并提交移动

    Returns:
        已写入的事件（带 seq）

    Raises:
        NotFoundError: 编辑的 trip（exclude_trip_id）不存在
        ValidationFailedError: 校验未通过，result 携带校验结果
        MovementConflictError: 并发提交在存储层发生时间桶冲突
    """
    config = config or EngineConfig()
    if proposal.exclude_trip_id is not None:
        if not await stores.movement_store.list_trip_events(proposal.exclude_trip_id):
            raise NotFoundError("trip", proposal.exclude_trip_id)

    result = await validate_move(stores, proposal, config=config)
    if not result.is_valid:
        raise ValidationFailedError(
            "; ".join(issue.message for issue in result.errors),
            result=result,
        )

    resources = []
    for resource_id in dict.fromkeys(proposal.resource_ids):
        resource = await stores.track_store.get_resource(resource_id)
        if resource is not None:
            resources.append(resource)

    trip_id = str(ULID())
    events = build_trip_events(proposal, resources, trip_id)
    inserted = await stores.append_trip(events, supersedes_trip_id=proposal.exclude_trip_id)

    log.info(
        "move_committed",
        trip_id=trip_id,
        kind=proposal.kind.value,
        resource_ids=[e.resource_id for e in inserted],
        ts=proposal.ts.isoformat(),
        planned=proposal.planned,
        supersedes_trip_id=proposal.exclude_trip_id,
        warning_count=len(result.warnings),
    )
    return inserted

