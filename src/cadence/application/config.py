from collections.abc import Mapping
from datetime import tzinfo
from pathlib import Path
from typing import Any
from zoneinfo import ZoneInfo, ZoneInfoNotFoundError

from pydantic import BaseModel, Field, field_validator
from pydantic_settings import (
    BaseSettings,
    PydanticBaseSettingsSource,
    SettingsConfigDict,
)

from cadence.application.scheduling.normalizer import normalize_settings
from cadence.domain import constants as c
from cadence.domain.scheduling.models import SchedulerSettings


def config_files() -> list[Path]:
    """Candidate TOML config locations, first match wins."""
    return [
        Path.home() / ".config/cadence/config.toml",
        Path.home() / ".cadence.toml",
    ]


class Stage1Config(BaseModel):
    again_mins: float = c.STAGE1_AGAIN_MINS
    hard_mins: float = c.STAGE1_HARD_MINS
    good_days: float = c.STAGE1_GOOD_DAYS
    easy_days: float = c.STAGE1_EASY_DAYS


class Stage2Config(BaseModel):
    again_mins: float = c.STAGE2_AGAIN_MINS
    hard_mins: float = c.STAGE2_HARD_MINS
    good_days: float = c.STAGE2_GOOD_DAYS
    easy_days: float = c.STAGE2_EASY_DAYS


class IntervalsConfig(BaseModel):
    easy: float = c.INTERVAL_EASY
    good: float = c.INTERVAL_GOOD
    hard: float = c.INTERVAL_HARD


class TimingConfig(BaseModel):
    fast_ms: float = c.TIMING_FAST_MS
    slow_ms: float = c.TIMING_SLOW_MS
    clamp_min: float = c.TIMING_CLAMP_MIN
    clamp_max: float = c.TIMING_CLAMP_MAX


class FirstPenaltyConfig(BaseModel):
    hard: float = c.PENALTY_L1_HARD
    good: float = c.PENALTY_L1_GOOD
    easy: float = c.PENALTY_L1_EASY


class RepeatPenaltyConfig(BaseModel):
    hard: float = c.PENALTY_L2PLUS_HARD
    good: float = c.PENALTY_L2PLUS_GOOD
    easy: float = c.PENALTY_L2PLUS_EASY


class PenaltiesConfig(BaseModel):
    day3_again_mins: float = c.PENALTY_DAY3_AGAIN_MINS
    l1: FirstPenaltyConfig = Field(default_factory=FirstPenaltyConfig)
    l2plus: RepeatPenaltyConfig = Field(default_factory=RepeatPenaltyConfig)
    max_level: int = Field(default=c.PENALTY_MAX_LEVEL, ge=0)
    compound_after_l1: bool = c.PENALTY_COMPOUND_AFTER_L1


class SchedulerConfig(BaseModel):
    """Scheduler knobs as they appear in config files and CADENCE_SCHEDULER__* variables."""

    stage1: Stage1Config = Field(default_factory=Stage1Config)
    stage2: Stage2Config = Field(default_factory=Stage2Config)
    intervals: IntervalsConfig = Field(default_factory=IntervalsConfig)
    timing: TimingConfig = Field(default_factory=TimingConfig)
    penalties: PenaltiesConfig = Field(default_factory=PenaltiesConfig)


class AppConfig(BaseSettings):
    """
    Configuration model for cadence.
    Supports loading from:
    1. Environment variables (CADENCE_*, nested sections with __)
    2. Config file (~/.config/cadence/config.toml)
    3. Manual overrides (CLI)
    """

    model_config = SettingsConfigDict(
        env_prefix="CADENCE_",
        env_nested_delimiter="__",
        extra="ignore",
    )

    scheduler: SchedulerConfig = Field(default_factory=SchedulerConfig)

    # Learner
    timezone: str | None = None
    daily_new: int = Field(default=c.DEFAULT_DAILY_NEW, ge=0)

    # Paths
    log_dir: Path = Field(default_factory=lambda: Path.home() / ".config/cadence/logs")

    verbose: int = 1

    @classmethod
    def settings_customise_sources(
        cls,
        settings_cls: type[BaseSettings],
        init_settings: PydanticBaseSettingsSource,
        env_settings: PydanticBaseSettingsSource,
        dotenv_settings: PydanticBaseSettingsSource,
        file_secret_settings: PydanticBaseSettingsSource,
    ) -> tuple[PydanticBaseSettingsSource, ...]:
        from pydantic_settings import TomlConfigSettingsSource

        # Find the first existing file
        toml_file = None
        for f in config_files():
            if f.exists():
                toml_file = f
                break

        # Later sources are lower priority: overrides, then env, then the file.
        if toml_file:
            return (
                init_settings,
                env_settings,
                TomlConfigSettingsSource(settings_cls, toml_file=toml_file),
            )
        return (
            init_settings,
            env_settings,
        )

    @field_validator("timezone", mode="before")
    @classmethod
    def validate_timezone(cls, v: Any) -> str | None:
        if v is None or v == "":
            return None
        try:
            ZoneInfo(str(v))
        except (ZoneInfoNotFoundError, ValueError) as e:
            raise ValueError(f"Unknown timezone: {v}") from e
        return str(v)

    def zone_info(self) -> tzinfo | None:
        """Learner's timezone, or None for the system local zone."""
        return ZoneInfo(self.timezone) if self.timezone else None

    def scheduler_settings(self, overrides: Mapping | None = None) -> SchedulerSettings:
        """
        Immutable scheduler settings, optionally with a partial mapping
        (e.g. a settings file) layered on top.
        """
        base = normalize_settings(self.scheduler.model_dump())
        return normalize_settings(overrides, base=base)


def resolve_config(cli_overrides: dict[str, Any] | None = None) -> AppConfig:
    """
    Multi-layered configuration resolution.
    1. Defaults in AppConfig
    2. ~/.config/cadence/config.toml (if exists)
    3. Environment variables (CADENCE_*)
    4. cli_overrides (passed from Typer)
    """
    overrides = {k: v for k, v in (cli_overrides or {}).items() if v is not None}
    return AppConfig(**overrides)
