"""运营时区下的日历辅助函数

所有日历日期与一天内时刻都在运营时区下计算；
存储与比较始终使用 aware datetime。
"""

import datetime as dt
from zoneinfo import ZoneInfo

from ..exceptions import ValidationFailedError


def ensure_aware(value: dt.datetime, field: str = "at") -> dt.datetime:
    """拒绝 naive datetime"""
    if value.tzinfo is None or value.utcoffset() is None:
        raise ValidationFailedError(f"{field} 必须带时区信息")
    return value


def local_date(value: dt.datetime, tz: ZoneInfo) -> dt.date:
    return value.astimezone(tz).date()


def local_time(value: dt.datetime, tz: ZoneInfo) -> dt.time:
    """运营时区下的一天内时刻（去掉 tzinfo）"""
    return value.astimezone(tz).time().replace(tzinfo=None)


def iter_dates(first: dt.date, last: dt.date):
    """[first, last] 内的每个日历日期"""
    current = first
    while current <= last:
        yield current
        current += dt.timedelta(days=1)


def time_of_day(value: dt.datetime, tz: ZoneInfo) -> dt.time:
    """按日窗口使用的一天内时刻：运营时区下、精确到秒"""
    return local_time(value, tz).replace(microsecond=0)
