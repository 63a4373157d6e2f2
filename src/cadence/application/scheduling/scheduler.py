"""
Scheduling engine: next due time and updated statistics for a graded item.

This is a pure computation module with no I/O. Every function takes the
reference instant explicitly (``now``) or reads the wall clock once, so a
pinned ``now`` makes every result reproducible.

Stages:
    1. first-ever grade, fixed knobs from ``settings.stage1``
    2. second grade, fixed knobs from ``settings.stage2``
    3. every later grade, multiplicative on the current interval, scaled by
       answer latency and by the same-day penalty level
"""

import logging
import math
from collections.abc import Mapping
from dataclasses import replace
from datetime import datetime, tzinfo

from cadence.domain import constants as c
from cadence.domain.scheduling.clock import date_key, to_ms
from cadence.domain.scheduling.models import (
    Grade,
    PenaltySettings,
    Progress,
    SchedulerSettings,
    TimingSettings,
)

from .normalizer import normalize_progress, normalize_settings

logger = logging.getLogger(__name__)

ProgressLike = Progress | Mapping | None
SettingsLike = SchedulerSettings | Mapping | None
Instant = datetime | int | None


def _round_half_up(value: float) -> int:
    return int(math.floor(value + 0.5))


def _minutes(n: float) -> int:
    return _round_half_up(n * c.MS_PER_MINUTE)


def _days(n: float) -> int:
    return _round_half_up(n * c.MS_PER_DAY)


# Days below MAX_INTERVAL_DAYS at which each grade tops out.
_CEILING_OFFSET_DAYS = {Grade.EASY: 0, Grade.GOOD: 1, Grade.HARD: 2, Grade.AGAIN: 2}


def _ceiling_days(grade: Grade) -> int:
    return c.MAX_INTERVAL_DAYS - _CEILING_OFFSET_DAYS[grade]


def _capped_minutes(n: float, grade: Grade) -> int:
    return _minutes(min(n, _ceiling_days(grade) * c.MS_PER_DAY / c.MS_PER_MINUTE))


def _capped_days(n: float, grade: Grade) -> int:
    return _days(min(n, _ceiling_days(grade)))


def humanize_ms(ms: float) -> str:
    """Short label for a duration: ``"10m"``, ``"3h"``, ``"4d"``."""
    if ms < c.MS_PER_HOUR:
        return f"{max(1, _round_half_up(ms / c.MS_PER_MINUTE))}m"
    if ms < c.MS_PER_DAY:
        return f"{max(1, _round_half_up(ms / c.MS_PER_HOUR))}h"
    return f"{max(1, _round_half_up(ms / c.MS_PER_DAY))}d"


def stage_for(progress: ProgressLike) -> int:
    """Grading stage (1, 2 or 3) from the number of prior reviews."""
    reviews = normalize_progress(progress).review_count
    if reviews <= 0:
        return 1
    if reviews == 1:
        return 2
    return 3


def timing_factor(latency_ms: float | None, timing: TimingSettings) -> float:
    """
    Interval multiplier from answer latency.

    Quick answers (<= fast_ms) earn clamp_max, slow ones (>= slow_ms) get
    clamp_min, and anything between is blended linearly. No measurement
    means a neutral 1.0.
    """
    if latency_ms is None:
        return 1.0
    if latency_ms <= timing.fast_ms:
        return timing.clamp_max
    if latency_ms >= timing.slow_ms:
        return timing.clamp_min
    t = (latency_ms - timing.fast_ms) / max(1.0, timing.slow_ms - timing.fast_ms)
    t = min(1.0, max(0.0, t))
    return timing.clamp_max + (timing.clamp_min - timing.clamp_max) * t


def penalty_factor(level: int, penalties: PenaltySettings, grade: Grade) -> float:
    """
    Attenuation applied after same-day failures.

    Level 1 uses the ``l1`` table, level 2 and above the ``l2plus`` table.
    With compounding enabled the multiplier is raised to ``level - 1``.
    """
    if not level or level <= 0:
        return 1.0
    table = penalties.l1 if level == 1 else penalties.l2plus
    base = table.for_grade(grade)
    if not penalties.compound_after_l1 or level <= 1:
        return base
    return base ** max(1, level - 1)


def next_ease(ease: float, grade: Grade) -> float:
    """SM-2 ease update on the grade's quality, bounded to [1.3, 2.8]."""
    q = grade.quality
    value = ease + 0.1 - (5 - q) * (0.08 + (5 - q) * 0.02)
    return min(c.MAX_EASE, max(c.MIN_EASE, value))


def _penalty_level_for_day(progress: Progress, today: str) -> int:
    # The counter belongs to a single calendar day.
    return progress.penalty_level if progress.penalty_date_key == today else 0


def compute_next_interval(
    progress: ProgressLike,
    grade: Grade | str,
    settings: SettingsLike = None,
    latency_ms: float | None = None,
    *,
    penalty_level: int | None = None,
) -> int:
    """
    Duration in milliseconds until the item should be seen again.

    Read-only; shared by the preview and by ``apply_grade``.

    Args:
        progress: Current record (partial input is completed with defaults).
        grade: One of again/hard/good/easy.
        settings: Scheduler settings; missing knobs take built-in defaults.
        latency_ms: Answer latency used for the timing factor, if measured.
        penalty_level: Level to use instead of the record's stored one.

    Returns:
        Milliseconds, never less than one minute nor more than
        ``MAX_INTERVAL_DAYS`` (good stops one day short, hard two).

    Raises:
        InvalidGrade: If ``grade`` is not a recognised token.
    """
    g = Grade.parse(grade)
    prog = normalize_progress(progress)
    s = normalize_settings(settings)
    stage = stage_for(prog)

    if stage in (1, 2):
        knobs = s.knobs_for_stage(stage)
        if g is Grade.AGAIN:
            return _capped_minutes(max(1.0, knobs.again_mins), g)
        if g is Grade.HARD:
            return _capped_minutes(max(1.0, knobs.hard_mins), g)
        good_days = max(1.0, knobs.good_days)
        if g is Grade.GOOD:
            return _capped_days(good_days, g)
        return _capped_days(max(c.MIN_EARLY_EASY_DAYS, knobs.easy_days, good_days + 1), g)

    if g is Grade.AGAIN:
        return _capped_minutes(max(1.0, s.penalties.day3_again_mins), g)

    level = prog.penalty_level if penalty_level is None else penalty_level
    base_days = min(max(1.0, prog.interval_days), c.MAX_INTERVAL_DAYS)
    timing = timing_factor(latency_ms, s.timing)

    days = (
        base_days
        * (s.intervals.for_grade(g) or 1.0)
        * timing
        * penalty_factor(level, s.penalties, g)
    )

    if g is Grade.EASY:
        good_candidate = min(
            base_days
            * (s.intervals.good or 1.0)
            * timing
            * penalty_factor(level, s.penalties, Grade.GOOD),
            _ceiling_days(Grade.GOOD),
        )
        days = max(days, math.ceil(good_candidate + 1))

    return max(c.MS_PER_MINUTE, _capped_days(days, g))


def apply_grade(
    progress: ProgressLike,
    grade: Grade | str,
    settings: SettingsLike = None,
    latency_ms: float | None = None,
    *,
    now: Instant = None,
    tz: tzinfo | None = None,
) -> Progress:
    """
    Apply one grading event and return the updated record.

    The penalty counter is reset when the stored day differs from today,
    and the interval is computed with that reset level. A stage 3+ "again"
    then raises the level for the *next* call. Latency statistics only take
    samples whose resulting interval is at least one day.

    Raises:
        InvalidGrade: If ``grade`` is not a recognised token.
    """
    g = Grade.parse(grade)
    s = normalize_settings(settings)
    current_ms = to_ms(now)
    prev = normalize_progress(progress, current_ms, tz)
    today = date_key(current_ms, tz)
    stage = stage_for(prev)

    measured = None if latency_ms is None else max(0, _round_half_up(latency_ms))

    level = _penalty_level_for_day(prev, today)
    next_ms = compute_next_interval(prev, g, s, measured, penalty_level=level)
    due_at = current_ms + next_ms

    if stage >= 3 and g is Grade.AGAIN:
        level = min(s.penalties.max_level, level + 1)
        logger.debug(f"Penalty level raised to {level} for {today}")

    last_latency = prev.last_latency_ms
    avg_latency = prev.avg_latency_ms
    latency_count = prev.latency_count
    history = prev.latency_history

    if measured is not None and next_ms >= c.MS_PER_DAY:
        last_latency = measured
        avg_latency = _round_half_up(
            ((avg_latency or 0) * latency_count + measured) / (latency_count + 1)
        )
        latency_count += 1
        history = (history + (measured,))[-c.LATENCY_HISTORY_LIMIT :]

    logger.debug(f"Stage {stage} grade {g.value}: next review in {humanize_ms(next_ms)}")

    return replace(
        prev,
        ease=next_ease(prev.ease, g),
        interval_days=next_ms / c.MS_PER_DAY if next_ms >= c.MS_PER_DAY else 0.0,
        repetitions=prev.repetitions + 1,
        review_count=prev.review_count + 1,
        correct_count=prev.correct_count + (1 if g.is_correct else 0),
        wrong_count=prev.wrong_count + (1 if g is Grade.AGAIN else 0),
        due_at=due_at,
        due_date_key=date_key(due_at, tz),
        last_latency_ms=last_latency,
        avg_latency_ms=avg_latency,
        latency_count=latency_count,
        latency_history=history,
        penalty_level=level,
        penalty_date_key=today,
    )


def preview_label(
    progress: ProgressLike,
    grade: Grade | str,
    settings: SettingsLike = None,
    *,
    now: Instant = None,
    tz: tzinfo | None = None,
) -> str:
    """
    Label for a grade button, e.g. ``"10m"`` or ``"6d"``.

    Uses the record's last latency, or the fast threshold as a neutral
    stand-in, and the same day-rollover view of the penalty level as
    ``apply_grade``.
    """
    s = normalize_settings(settings)
    current_ms = to_ms(now)
    prog = normalize_progress(progress, current_ms, tz)
    latency = prog.last_latency_ms if prog.last_latency_ms is not None else s.timing.fast_ms
    level = _penalty_level_for_day(prog, date_key(current_ms, tz))
    return humanize_ms(compute_next_interval(prog, grade, s, latency, penalty_level=level))


def preview_all(
    progress: ProgressLike,
    settings: SettingsLike = None,
    *,
    now: Instant = None,
    tz: tzinfo | None = None,
) -> dict[Grade, str]:
    return {g: preview_label(progress, g, settings, now=now, tz=tz) for g in Grade}


class Scheduler:
    """
    Scheduling service bound to one settings value and timezone.

    Stateless and side-effect free; holds only immutable configuration.
    """

    def __init__(self, settings: SettingsLike = None, tz: tzinfo | None = None):
        self._settings = normalize_settings(settings)
        self._tz = tz

    @property
    def settings(self) -> SchedulerSettings:
        return self._settings

    @property
    def tz(self) -> tzinfo | None:
        return self._tz

    def stage_for(self, progress: ProgressLike) -> int:
        return stage_for(progress)

    def next_interval(
        self, progress: ProgressLike, grade: Grade | str, latency_ms: float | None = None
    ) -> int:
        return compute_next_interval(progress, grade, self._settings, latency_ms)

    def apply(
        self,
        progress: ProgressLike,
        grade: Grade | str,
        latency_ms: float | None = None,
        now: Instant = None,
    ) -> Progress:
        return apply_grade(progress, grade, self._settings, latency_ms, now=now, tz=self._tz)

    def preview(self, progress: ProgressLike, grade: Grade | str, now: Instant = None) -> str:
        return preview_label(progress, grade, self._settings, now=now, tz=self._tz)

    def preview_all(self, progress: ProgressLike, now: Instant = None) -> dict[Grade, str]:
        return preview_all(progress, self._settings, now=now, tz=self._tz)
