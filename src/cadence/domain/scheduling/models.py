"""
Domain models for the scheduler.

These are pure data structures with no I/O or external dependencies.
Every value here is fully populated; partial input is completed by the
application-layer normalizer before it reaches the engine.
"""

from dataclasses import dataclass, field
from enum import Enum

from cadence.domain import constants as c

from .errors import InvalidGrade


class Grade(str, Enum):
    """The four answer buttons, from worst to best recall."""

    AGAIN = "again"
    HARD = "hard"
    GOOD = "good"
    EASY = "easy"

    @property
    def quality(self) -> int:
        """SM-2 style quality score used by the ease update."""
        return _QUALITY[self]

    @property
    def is_correct(self) -> bool:
        return self in (Grade.GOOD, Grade.EASY)

    @classmethod
    def parse(cls, token: "Grade | str") -> "Grade":
        """
        Resolve a grade token, rejecting anything outside the four variants.

        Raises:
            InvalidGrade: If the token is not a recognised grade.
        """
        if isinstance(token, Grade):
            return token
        if isinstance(token, str):
            try:
                return cls(token.strip().lower())
            except ValueError:
                pass
        raise InvalidGrade(token)


_QUALITY = {Grade.EASY: 5, Grade.GOOD: 4, Grade.HARD: 3, Grade.AGAIN: 1}


@dataclass(frozen=True)
class StageKnobs:
    """
    Fixed durations for an early grading stage.

    Attributes:
        again_mins: Minutes until the next attempt after "again".
        hard_mins: Minutes until the next attempt after "hard".
        good_days: Whole days after "good".
        easy_days: Whole days after "easy" (never below good_days + 1).
    """

    again_mins: float
    hard_mins: float
    good_days: float
    easy_days: float


@dataclass(frozen=True)
class IntervalMultipliers:
    """Per-grade multipliers applied to the current interval from stage 3 on."""

    easy: float = c.INTERVAL_EASY
    good: float = c.INTERVAL_GOOD
    hard: float = c.INTERVAL_HARD

    def for_grade(self, grade: Grade) -> float:
        return {Grade.EASY: self.easy, Grade.GOOD: self.good, Grade.HARD: self.hard}.get(
            grade, 1.0
        )


@dataclass(frozen=True)
class TimingSettings:
    """
    Latency sensitivity.

    Answers at or under fast_ms earn clamp_max; at or over slow_ms they get
    clamp_min; in between the factor is blended linearly.
    """

    fast_ms: float = c.TIMING_FAST_MS
    slow_ms: float = c.TIMING_SLOW_MS
    clamp_min: float = c.TIMING_CLAMP_MIN
    clamp_max: float = c.TIMING_CLAMP_MAX


@dataclass(frozen=True)
class GradeMultipliers:
    """Penalty multipliers for the three passing grades."""

    hard: float
    good: float
    easy: float

    def for_grade(self, grade: Grade) -> float:
        return {Grade.HARD: self.hard, Grade.GOOD: self.good, Grade.EASY: self.easy}.get(
            grade, 1.0
        )


@dataclass(frozen=True)
class PenaltySettings:
    """Same-day penalty knobs for stage 3+ failures."""

    day3_again_mins: float = c.PENALTY_DAY3_AGAIN_MINS
    l1: GradeMultipliers = field(
        default_factory=lambda: GradeMultipliers(
            hard=c.PENALTY_L1_HARD, good=c.PENALTY_L1_GOOD, easy=c.PENALTY_L1_EASY
        )
    )
    l2plus: GradeMultipliers = field(
        default_factory=lambda: GradeMultipliers(
            hard=c.PENALTY_L2PLUS_HARD, good=c.PENALTY_L2PLUS_GOOD, easy=c.PENALTY_L2PLUS_EASY
        )
    )
    max_level: int = c.PENALTY_MAX_LEVEL
    compound_after_l1: bool = c.PENALTY_COMPOUND_AFTER_L1


@dataclass(frozen=True)
class SchedulerSettings:
    """Complete configuration for one scheduling call."""

    stage1: StageKnobs = field(
        default_factory=lambda: StageKnobs(
            again_mins=c.STAGE1_AGAIN_MINS,
            hard_mins=c.STAGE1_HARD_MINS,
            good_days=c.STAGE1_GOOD_DAYS,
            easy_days=c.STAGE1_EASY_DAYS,
        )
    )
    stage2: StageKnobs = field(
        default_factory=lambda: StageKnobs(
            again_mins=c.STAGE2_AGAIN_MINS,
            hard_mins=c.STAGE2_HARD_MINS,
            good_days=c.STAGE2_GOOD_DAYS,
            easy_days=c.STAGE2_EASY_DAYS,
        )
    )
    intervals: IntervalMultipliers = field(default_factory=IntervalMultipliers)
    timing: TimingSettings = field(default_factory=TimingSettings)
    penalties: PenaltySettings = field(default_factory=PenaltySettings)

    def knobs_for_stage(self, stage: int) -> StageKnobs:
        return self.stage1 if stage == 1 else self.stage2


@dataclass(frozen=True)
class Progress:
    """
    Scheduling state for one learning item.

    Attributes:
        ease: Growth factor, always within [1.3, 2.8].
        interval_days: Last spacing in days; 0 while on a minutes schedule.
        repetitions: Grades applied since the record was (re)introduced.
        review_count: Total grading events; selects the stage.
        correct_count: "good"/"easy" outcomes.
        wrong_count: "again" outcomes.
        due_at: Epoch milliseconds at which the item is next due.
        due_date_key: Local calendar day (YYYY-MM-DD) containing due_at.
        introduced: Whether the item is in the review pool.
        introduced_on_date_key: Day the item entered the pool.
        penalty_level: Same-day failure counter (stage 3+).
        penalty_date_key: Day penalty_level belongs to.
    """

    due_at: int
    due_date_key: str
    ease: float = c.DEFAULT_EASE
    interval_days: float = 0.0
    repetitions: int = 0
    review_count: int = 0
    correct_count: int = 0
    wrong_count: int = 0
    introduced: bool = True
    introduced_on_date_key: str | None = None

    # Latency
    last_latency_ms: int | None = None
    avg_latency_ms: int | None = None
    latency_count: int = 0
    latency_history: tuple[int, ...] = ()

    # Same-day penalties
    penalty_level: int = 0
    penalty_date_key: str | None = None

    def to_dict(self) -> dict:
        """Plain, JSON-friendly representation for callers that persist records."""
        return {
            "ease": self.ease,
            "interval_days": self.interval_days,
            "repetitions": self.repetitions,
            "review_count": self.review_count,
            "correct_count": self.correct_count,
            "wrong_count": self.wrong_count,
            "due_at": self.due_at,
            "due_date_key": self.due_date_key,
            "introduced": self.introduced,
            "introduced_on_date_key": self.introduced_on_date_key,
            "last_latency_ms": self.last_latency_ms,
            "avg_latency_ms": self.avg_latency_ms,
            "latency_count": self.latency_count,
            "latency_history": list(self.latency_history),
            "penalty_level": self.penalty_level,
            "penalty_date_key": self.penalty_date_key,
        }
