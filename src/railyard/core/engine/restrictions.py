"""访问限制展开与适用性判断

build_daily_windows 把一条限制展开为按日窗口（纯函数）；
expand_restriction 删除旧窗口后分批写入新窗口，单批失败不影响其他批次；
applies_at 判断限制在某一时刻是否生效。

日历日期与一天内时刻均在运营时区下计算。
"""

import datetime as dt
from zoneinfo import ZoneInfo

import structlog

from ..config import END_OF_DAY_SECONDS, EngineConfig
from ..exceptions import NotFoundError, ValidationFailedError
from ..models.enums import RepetitionPattern, RestrictionKind
from ..models.movement import MoveProposal
from ..models.restriction import DailyRestrictionWindow, Restriction
from ..models.results import BatchOutcome, ExpansionResult
from ..store.protocols import EventLogStore
from .calendar import ensure_aware, iter_dates, local_date, time_of_day

log = structlog.get_logger()

START_OF_DAY = dt.time(0, 0, 0)
END_OF_DAY = dt.time(
    END_OF_DAY_SECONDS // 3600,
    END_OF_DAY_SECONDS % 3600 // 60,
    END_OF_DAY_SECONDS % 60,
)


def _matches_pattern(restriction: Restriction, day: dt.date, start_day: dt.date) -> bool:
    if restriction.pattern == RepetitionPattern.WEEKLY:
        return day.weekday() == start_day.weekday()
    if restriction.pattern == RepetitionPattern.MONTHLY:
        return day.day == start_day.day
    return True


def _once_times(
    day: dt.date,
    first: dt.date,
    last: dt.date,
    start_time: dt.time,
    end_time: dt.time,
) -> tuple[dt.time, dt.time]:
    """once 模式：首日从开始时刻起，末日到结束时刻止，中间日为整天"""
    time_from = start_time if day == first else START_OF_DAY
    time_to = end_time if day == last else END_OF_DAY
    return time_from, time_to


def build_daily_windows(restriction: Restriction, tz: ZoneInfo) -> list[DailyRestrictionWindow]:
    """将限制展开为按日窗口，按 (date, kind) 排序

    Raises:
        ValidationFailedError: 重复模式下结束时刻早于开始时刻（窗口跨越午夜）
    """
    first = local_date(restriction.start, tz)
    last = local_date(restriction.end, tz)
    start_time = time_of_day(restriction.start, tz)
    end_time = time_of_day(restriction.end, tz)

    recurring = restriction.pattern != RepetitionPattern.ONCE
    if recurring and end_time < start_time:
        raise ValidationFailedError(
            f"{restriction.pattern} 限制的结束时刻 {end_time.isoformat()} "
            f"早于开始时刻 {start_time.isoformat()}"
        )

    kinds = sorted(restriction.kinds)
    windows: list[DailyRestrictionWindow] = []
    for day in iter_dates(first, last):
        if recurring:
            if not _matches_pattern(restriction, day, first):
                continue
            time_from, time_to = start_time, end_time
        else:
            time_from, time_to = _once_times(day, first, last, start_time, end_time)

        for kind in kinds:
            windows.append(
                DailyRestrictionWindow(
                    restriction_id=restriction.restriction_id,
                    project_id=restriction.project_id,
                    date=day,
                    time_from=time_from,
                    time_to=time_to,
                    kind=kind,
                    track_ids=list(restriction.track_ids),
                    comment=restriction.comment,
                )
            )
    return windows


async def expand_restriction(
    stores: EventLogStore,
    restriction: Restriction,
    *,
    config: EngineConfig | None = None,
) -> ExpansionResult:
    """重新生成限制的按日窗口

    先删除该限制的全部窗口，再按 config.expansion_batch_size 分批写入。
    每批独立提交；失败的批次记录在结果中，不中断后续批次。
    重复执行结果相同。

    Raises:
        NotFoundError: 限制尚未保存（此时不删除任何窗口）
        ValidationFailedError: 限制无法展开
        StorageUnavailableError: 删除旧窗口失败
    """
    config = config or EngineConfig()
    store = stores.restriction_store

    if await store.get_restriction(restriction.restriction_id) is None:
        raise NotFoundError("restriction", restriction.restriction_id)

    track_ids = await store.list_affected_tracks(restriction.restriction_id)
    if track_ids != restriction.track_ids:
        restriction = restriction.model_copy(update={"track_ids": track_ids})

    windows = build_daily_windows(restriction, config.tz)
    deleted = await store.delete_daily_windows(restriction.restriction_id)

    result = ExpansionResult(restriction_id=restriction.restriction_id)
    size = config.expansion_batch_size
    for index, offset in enumerate(range(0, len(windows), size)):
        batch = windows[offset : offset + size]
        outcome = BatchOutcome(
            batch_index=index,
            first_date=batch[0].date,
            last_date=batch[-1].date,
            row_count=len(batch),
        )
        try:
            await store.insert_daily_windows(batch)
        except Exception as e:
            outcome.error = str(e) or type(e).__name__
            log.warning(
                "expansion_batch_failed",
                restriction_id=restriction.restriction_id,
                batch_index=index,
                first_date=outcome.first_date.isoformat(),
                last_date=outcome.last_date.isoformat(),
                row_count=outcome.row_count,
                error=outcome.error,
            )
        result.batches.append(outcome)

    log.info(
        "restriction_expanded",
        restriction_id=restriction.restriction_id,
        pattern=restriction.pattern.value,
        deleted_count=deleted,
        window_count=len(windows),
        inserted_count=result.inserted_count,
        failed_batch_count=len(result.failed_batches),
    )
    return result


def applies_at(restriction: Restriction, at: dt.datetime, tz: ZoneInfo) -> bool:
    """判断限制在 at 时刻是否生效

    - at 早于 start 或晚于 end：不生效
    - once：[start, end] 内始终生效
    - daily：at 的一天内时刻位于 [开始时刻, 结束时刻]（含端点，精确到秒，与按日窗口一致）
    - weekly：另需星期几与 start 相同
    - monthly：另需日期（几号）与 start 相同
    """
    ensure_aware(at)
    if at < restriction.start or at > restriction.end:
        return False
    if restriction.pattern == RepetitionPattern.ONCE:
        return True

    start_day = local_date(restriction.start, tz)
    if not _matches_pattern(restriction, local_date(at, tz), start_day):
        return False

    window_from = time_of_day(restriction.start, tz)
    window_to = time_of_day(restriction.end, tz)
    return window_from <= time_of_day(at, tz) <= window_to


async def find_blocking_restrictions(
    stores: EventLogStore,
    proposal: MoveProposal,
    tz: ZoneInfo,
) -> list[tuple[Restriction, RestrictionKind, str]]:
    """查找在提案时刻生效、且约束该移动的限制

    进入轨道的移动受目标轨道的 no_entry 限制，
    离开轨道的移动受来源轨道的 no_exit 限制。

    Returns:
        (限制, 限制类型, 轨道 ID) 列表
    """
    checks: list[tuple[str, RestrictionKind]] = []
    if proposal.dest_track_id is not None:
        checks.append((proposal.dest_track_id, RestrictionKind.NO_ENTRY))
    if proposal.source_track_id is not None:
        checks.append((proposal.source_track_id, RestrictionKind.NO_EXIT))

    blocking: list[tuple[Restriction, RestrictionKind, str]] = []
    for track_id, kind in checks:
        for restriction in await stores.restriction_store.list_restrictions_for_track(track_id):
            if kind in restriction.kinds and applies_at(restriction, proposal.ts, tz):
                blocking.append((restriction, kind, track_id))
    return blocking
