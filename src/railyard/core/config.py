"""配置模块 -- 可通过环境变量覆盖

包含数据库路径，以及引擎使用的时间窗口、批次大小、运营时区等参数。
引擎不持有全局配置：调用方显式传入 EngineConfig，缺省时使用默认值。
"""

import os
from pathlib import Path
from zoneinfo import ZoneInfo, ZoneInfoNotFoundError

import structlog
from pydantic import BaseModel, Field, field_validator

log = structlog.get_logger()


def _get_base_dir() -> Path:
    """获取项目 data 基础目录"""
    return Path(os.environ.get("RAILYARD_DATA_DIR", "data"))


def get_db_path() -> str:
    """获取 SQLite 数据库路径"""
    return os.environ.get(
        "RAILYARD_DB_PATH",
        str(_get_base_dir() / "sqlite" / "railyard.db"),
    )


# 不限长度轨道报告的可用长度
UNCONSTRAINED_AVAILABLE_LENGTH_M: float = 999_999.0

# 按日窗口的一天结束时刻
END_OF_DAY_SECONDS: int = 23 * 3600 + 59 * 60 + 59


class EngineConfig(BaseModel):
    """引擎配置

    环境变量:
        RAILYARD_TIMEZONE: 运营时区，日历日期与一天内时刻在该时区下计算
        RAILYARD_COLLISION_WINDOW_MINUTES: 同一车辆两次移动的最小间隔
        RAILYARD_TIGHT_WINDOW_MINUTES: 超过最小间隔但仍给出警告的间隔
        RAILYARD_EXPANSION_BATCH_SIZE: 限制展开时每批写入的行数
        RAILYARD_FUTURE_HORIZON_DAYS: 检查未来容量冲突的天数
        RAILYARD_FUTURE_CONFLICT_LIMIT: 最多报告的未来冲突数
    """

    timezone: str = Field(default="UTC", description="运营时区（IANA 名称）")
    collision_window_minutes: int = Field(default=60, ge=1)
    tight_window_minutes: int = Field(default=120, ge=1)
    expansion_batch_size: int = Field(default=100, ge=1)
    future_horizon_days: int = Field(default=30, ge=0)
    future_conflict_limit: int = Field(default=5, ge=0)
    unconstrained_available_length_m: float = UNCONSTRAINED_AVAILABLE_LENGTH_M

    @field_validator("timezone")
    @classmethod
    def _known_timezone(cls, value: str) -> str:
        try:
            ZoneInfo(value)
        except (ZoneInfoNotFoundError, ValueError) as e:
            raise ValueError(f"未知时区: {value}") from e
        return value

    @property
    def tz(self) -> ZoneInfo:
        return ZoneInfo(self.timezone)

    @property
    def collision_window_seconds(self) -> int:
        return self.collision_window_minutes * 60


_INT_ENV_VARS: dict[str, str] = {
    "RAILYARD_COLLISION_WINDOW_MINUTES": "collision_window_minutes",
    "RAILYARD_TIGHT_WINDOW_MINUTES": "tight_window_minutes",
    "RAILYARD_EXPANSION_BATCH_SIZE": "expansion_batch_size",
    "RAILYARD_FUTURE_HORIZON_DAYS": "future_horizon_days",
    "RAILYARD_FUTURE_CONFLICT_LIMIT": "future_conflict_limit",
}


def load_engine_config() -> EngineConfig:
    """从环境变量加载引擎配置

    非法取值记录警告并使用默认值，不阻塞启动。
    """
    kwargs: dict = {}
    defaults = EngineConfig()

    if val := os.environ.get("RAILYARD_TIMEZONE"):
        try:
            ZoneInfo(val)
            kwargs["timezone"] = val
        except (ZoneInfoNotFoundError, ValueError):
            log.warning(
                "invalid_timezone_config",
                env_var="RAILYARD_TIMEZONE",
                value=val,
                fallback=defaults.timezone,
            )

    for env_var, field_name in _INT_ENV_VARS.items():
        val = os.environ.get(env_var)
        if not val:
            continue
        try:
            parsed = int(val)
        except ValueError:
            parsed = None
        min_value = 0 if field_name.startswith("future_") else 1
        if parsed is None or parsed < min_value:
            log.warning(
                "invalid_engine_config",
                env_var=env_var,
                value=val,
                fallback=getattr(defaults, field_name),
            )
            continue
        kwargs[field_name] = parsed

    return EngineConfig(**kwargs)
