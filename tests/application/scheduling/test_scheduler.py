import pytest

from cadence.application.scheduling.scheduler import (
    Scheduler,
    apply_grade,
    compute_next_interval,
    humanize_ms,
    next_ease,
    penalty_factor,
    preview_all,
    preview_label,
    stage_for,
    timing_factor,
)
from cadence.domain import constants as c
from cadence.domain.scheduling import (
    Grade,
    InvalidGrade,
    PenaltySettings,
    SchedulerSettings,
    TimingSettings,
)

MIN = c.MS_PER_MINUTE
DAY = c.MS_PER_DAY


@pytest.fixture
def same_day(mature):
    """Builds a mature record carrying a penalty level for 2024-03-10."""

    def build(level):
        return {**mature, "penalty_level": level, "penalty_date_key": "2024-03-10"}

    return build


# --- Stage ---


@pytest.mark.parametrize("reviews,stage", [(0, 1), (1, 2), (2, 3), (40, 3)])
def test_stage_for(reviews, stage):
    assert stage_for({"review_count": reviews}) == stage


def test_stage_for_missing_record_is_stage_one():
    assert stage_for(None) == 1


# --- Early stages ---


def test_first_good_is_one_day(now, now_ms, tz):
    updated = apply_grade({}, "good", now=now, tz=tz)
    assert updated.due_at == now_ms + DAY
    assert updated.due_date_key == "2024-03-11"
    assert updated.review_count == 1
    assert updated.interval_days == 1.0


def test_second_again_is_five_minutes(now, now_ms, tz):
    updated = apply_grade({"review_count": 1}, "again", now=now, tz=tz)
    assert updated.due_at == now_ms + 5 * MIN
    assert updated.interval_days == 0
    assert updated.due_date_key == "2024-03-10"


@pytest.mark.parametrize(
    "reviews,grade,expected",
    [
        (0, "again", 10 * MIN),
        (0, "hard", 60 * MIN),
        (0, "good", DAY),
        (0, "easy", 2 * DAY),
        (1, "again", 5 * MIN),
        (1, "hard", 15 * MIN),
        (1, "good", DAY),
        (1, "easy", 2 * DAY),
    ],
)
def test_early_stage_defaults(reviews, grade, expected):
    assert compute_next_interval({"review_count": reviews}, grade) == expected


def test_early_easy_is_at_least_good_plus_one():
    settings = {"stage1": {"good_days": 3, "easy_days": 2}}
    assert compute_next_interval({}, "good", settings) == 3 * DAY
    assert compute_next_interval({}, "easy", settings) == 4 * DAY


def test_early_knobs_are_floored():
    settings = {"stage2": {"again_mins": 0, "hard_mins": -4, "good_days": 0, "easy_days": 0}}
    record = {"review_count": 1}
    assert compute_next_interval(record, "again", settings) == MIN
    assert compute_next_interval(record, "hard", settings) == MIN
    assert compute_next_interval(record, "good", settings) == DAY
    assert compute_next_interval(record, "easy", settings) == 2 * DAY


# --- Mature stage ---


def test_mature_good_doubles_interval(mature):
    assert compute_next_interval(mature, "good") == 20 * DAY


def test_mature_good_applies_grade_multipliers(mature):
    assert compute_next_interval(mature, "hard") == 10 * DAY
    assert compute_next_interval(mature, "easy") == 30 * DAY


def test_mature_again_uses_fixed_relearn_minutes(mature, now, now_ms, tz):
    updated = apply_grade(mature, "again", now=now, tz=tz)
    assert updated.due_at == now_ms + 15 * MIN
    assert updated.interval_days == 0
    assert updated.penalty_level == 1
    assert updated.penalty_date_key == "2024-03-10"


def test_mature_again_ignores_ease_and_interval():
    record = {"review_count": 9, "interval_days": 300, "ease": 1.3}
    assert compute_next_interval(record, "again", {"penalties": {"day3AgainMins": 30}}) == 30 * MIN


def test_zero_interval_uses_one_day_base():
    record = {"review_count": 3, "interval_days": 0}
    assert compute_next_interval(record, "good") == 2 * DAY


def test_zero_multiplier_counts_as_one(mature):
    assert compute_next_interval(mature, "good", {"intervals": {"good": 0}}) == 10 * DAY


def test_easy_floor_keeps_easy_a_day_past_good(mature):
    settings = {"intervals": {"easy": 1.5, "good": 2}}
    # good = 20 days; easy would be 15 but must reach ceil(20 + 1).
    assert compute_next_interval(mature, "easy", settings) == 21 * DAY


def test_easy_floor_uses_same_timing_and_penalty(same_day):
    settings = {"intervals": {"easy": 2, "good": 2}}
    # good = 10 * 2 * 0.75 * 0.6 = 9 days -> easy floor is 10 days.
    assert compute_next_interval(same_day(1), "good", settings, 30000) == 9 * DAY
    assert compute_next_interval(same_day(1), "easy", settings, 30000) == 10 * DAY


def test_invalid_grade_is_rejected(mature):
    with pytest.raises(InvalidGrade):
        compute_next_interval(mature, "excellent")
    with pytest.raises(InvalidGrade):
        apply_grade(mature, "")
    with pytest.raises(InvalidGrade):
        preview_label(mature, "meh")


def test_repeated_easy_stops_at_interval_ceiling(now, now_ms, tz):
    progress = {"review_count": 5, "interval_days": 1}
    for _ in range(40):
        progress = apply_grade(progress, "easy", latency_ms=1000, now=now, tz=tz)

    assert progress.interval_days == c.MAX_INTERVAL_DAYS
    assert progress.due_at == now_ms + c.MAX_INTERVAL_DAYS * DAY
    assert preview_label(progress, "easy", now=now, tz=tz) == f"{c.MAX_INTERVAL_DAYS}d"


def test_grades_keep_their_order_at_the_ceiling():
    record = {"review_count": 5, "interval_days": 10 * c.MAX_INTERVAL_DAYS}
    assert compute_next_interval(record, "hard") == (c.MAX_INTERVAL_DAYS - 2) * DAY
    assert compute_next_interval(record, "good") == (c.MAX_INTERVAL_DAYS - 1) * DAY
    assert compute_next_interval(record, "easy") == c.MAX_INTERVAL_DAYS * DAY


def test_huge_early_knobs_are_capped():
    settings = {"stage1": {"againMins": 1e12, "goodDays": 1e9, "easyDays": 1e9}}
    record = {"review_count": 0}
    assert compute_next_interval(record, "again", settings) == (c.MAX_INTERVAL_DAYS - 2) * DAY
    assert compute_next_interval(record, "good", settings) == (c.MAX_INTERVAL_DAYS - 1) * DAY
    assert compute_next_interval(record, "easy", settings) == c.MAX_INTERVAL_DAYS * DAY


# --- Timing factor ---


@pytest.mark.parametrize(
    "latency,expected",
    [(None, 1.0), (0, 1.25), (-50, 1.25), (5000, 1.25), (15000, 1.0), (25000, 0.75), (90000, 0.75)],
)
def test_timing_factor(latency, expected):
    assert timing_factor(latency, TimingSettings()) == pytest.approx(expected)


def test_timing_factor_scales_mature_intervals(mature):
    assert compute_next_interval(mature, "good", None, 1000) == 25 * DAY
    assert compute_next_interval(mature, "good", None, 60000) == 15 * DAY


# --- Penalty factor ---


def test_penalty_factor_levels():
    p = PenaltySettings()
    assert penalty_factor(0, p, Grade.GOOD) == 1.0
    assert penalty_factor(1, p, Grade.GOOD) == 0.60
    assert penalty_factor(1, p, Grade.HARD) == 0.40
    assert penalty_factor(2, p, Grade.EASY) == 0.50
    # Without compounding every level past one shares the l2plus multiplier.
    assert penalty_factor(7, p, Grade.HARD) == 0.25


def test_penalty_factor_compounds_after_first_level():
    p = PenaltySettings(compound_after_l1=True)
    assert penalty_factor(1, p, Grade.GOOD) == 0.60
    assert penalty_factor(2, p, Grade.GOOD) == 0.50
    assert penalty_factor(3, p, Grade.GOOD) == pytest.approx(0.25)
    assert penalty_factor(4, p, Grade.HARD) == pytest.approx(0.25**3)


def test_same_day_penalty_attenuates_following_grades(mature, now, tz):
    failed = apply_grade(mature, "again", now=now, tz=tz)
    assert failed.penalty_level == 1

    # Stored interval is 0 after the relearn step, so the base is one day.
    passed = apply_grade(failed, "good", now=now, tz=tz)
    assert passed.interval_days == pytest.approx(2 * 0.60)
    assert passed.penalty_level == 1


def test_second_same_day_again_raises_level(mature, now, tz):
    once = apply_grade(mature, "again", now=now, tz=tz)
    twice = apply_grade(once, "again", now=now, tz=tz)
    assert twice.penalty_level == 2


def test_penalty_level_is_capped(same_day, now, tz):
    updated = apply_grade(
        same_day(3), "again", {"penalties": {"maxLevel": 3}}, now=now, tz=tz
    )
    assert updated.penalty_level == 3


def test_current_grade_uses_level_before_increment(same_day, now, now_ms, tz):
    # The increment from this "again" only affects the next call.
    updated = apply_grade(same_day(0), "again", now=now, tz=tz)
    assert updated.due_at == now_ms + 15 * MIN
    assert updated.penalty_level == 1


def test_penalty_resets_on_new_day(mature, now, tz):
    record = {**mature, "penalty_level": 3, "penalty_date_key": "2024-03-09"}
    updated = apply_grade(record, "good", now=now, tz=tz)
    assert updated.interval_days == 20
    assert updated.penalty_level == 0
    assert updated.penalty_date_key == "2024-03-10"


def test_penalty_applies_within_same_day(same_day, now, tz):
    updated = apply_grade(same_day(2), "good", now=now, tz=tz)
    assert updated.interval_days == 10
    assert updated.penalty_level == 2


def test_early_stage_again_does_not_raise_penalty(now, tz):
    updated = apply_grade({"review_count": 1}, "again", now=now, tz=tz)
    assert updated.penalty_level == 0


# --- Ease and counters ---


@pytest.mark.parametrize(
    "grade,expected",
    [(Grade.EASY, 2.6), (Grade.GOOD, 2.5), (Grade.HARD, 2.36), (Grade.AGAIN, 1.96)],
)
def test_next_ease(grade, expected):
    assert next_ease(2.5, grade) == pytest.approx(expected)


def test_next_ease_is_bounded():
    assert next_ease(2.8, Grade.EASY) == 2.8
    assert next_ease(1.3, Grade.AGAIN) == 1.3


def test_counters(mature, now, tz):
    good = apply_grade(mature, "good", now=now, tz=tz)
    assert (good.review_count, good.repetitions) == (6, 1)
    assert (good.correct_count, good.wrong_count) == (1, 0)

    hard = apply_grade(good, "hard", now=now, tz=tz)
    assert (hard.correct_count, hard.wrong_count) == (1, 0)
    assert hard.repetitions == 2

    again = apply_grade(hard, "again", now=now, tz=tz)
    assert (again.correct_count, again.wrong_count) == (1, 1)
    assert again.repetitions == 3
    assert again.review_count == 8


def test_apply_grade_does_not_mutate_input(mature, now, tz):
    snapshot = dict(mature)
    apply_grade(mature, "good", latency_ms=3000, now=now, tz=tz)
    assert mature == snapshot


# --- Latency bookkeeping ---


def test_latency_recorded_for_day_intervals(mature, now, tz):
    updated = apply_grade(mature, "good", latency_ms=4000, now=now, tz=tz)
    assert updated.last_latency_ms == 4000
    assert updated.avg_latency_ms == 4000
    assert updated.latency_count == 1
    assert updated.latency_history == (4000,)


def test_latency_average_rounds_half_up(mature, now, tz):
    record = {**mature, "avg_latency_ms": 5000, "latency_count": 1, "latency_history": [5000]}
    updated = apply_grade(record, "good", latency_ms=6001, now=now, tz=tz)
    assert updated.avg_latency_ms == 5501
    assert updated.latency_count == 2
    assert updated.latency_history == (5000, 6001)


def test_latency_ignored_for_sub_day_intervals(now, tz):
    record = {
        "review_count": 1,
        "last_latency_ms": 7000,
        "avg_latency_ms": 7000,
        "latency_count": 1,
    }
    updated = apply_grade(record, "again", latency_ms=2000, now=now, tz=tz)
    assert updated.last_latency_ms == 7000
    assert updated.avg_latency_ms == 7000
    assert updated.latency_count == 1
    assert updated.latency_history == ()


def test_latency_history_is_capped(mature, now, tz):
    record = {**mature, "latency_history": list(range(30)), "latency_count": 30}
    updated = apply_grade(record, "good", latency_ms=100, now=now, tz=tz)
    assert len(updated.latency_history) == 30
    assert updated.latency_history[0] == 1
    assert updated.latency_history[-1] == 100


def test_negative_latency_is_treated_as_zero(mature, now, tz):
    updated = apply_grade(mature, "good", latency_ms=-300, now=now, tz=tz)
    assert updated.last_latency_ms == 0
    assert updated.interval_days == 25


# --- Preview ---


def test_preview_labels_for_new_record(now, tz):
    labels = preview_all({}, now=now, tz=tz)
    assert labels == {Grade.AGAIN: "10m", Grade.HARD: "1h", Grade.GOOD: "1d", Grade.EASY: "2d"}


def test_preview_uses_fast_threshold_without_latency(mature, now, tz):
    # Neutral preview latency is fast_ms, so the timing factor is 1.25.
    assert preview_label(mature, "hard", now=now, tz=tz) == "13d"
    assert preview_label(mature, "good", now=now, tz=tz) == "25d"
    assert preview_label(mature, "easy", now=now, tz=tz) == "38d"
    assert preview_label(mature, "again", now=now, tz=tz) == "15m"


def test_preview_uses_last_latency(mature, now, tz):
    record = {**mature, "last_latency_ms": 25000}
    assert preview_label(record, "good", now=now, tz=tz) == "15d"


def test_preview_matches_commit_across_day_rollover(mature, now, tz):
    record = {
        **mature,
        "penalty_level": 2,
        "penalty_date_key": "2024-03-09",
        "last_latency_ms": 15000,
    }
    assert preview_label(record, "good", now=now, tz=tz) == "20d"
    committed = apply_grade(record, "good", latency_ms=15000, now=now, tz=tz)
    assert committed.interval_days == 20


def test_preview_is_read_only(mature, now, tz):
    snapshot = dict(mature)
    preview_all(mature, now=now, tz=tz)
    assert mature == snapshot


@pytest.mark.parametrize(
    "ms,label",
    [
        (0, "1m"),
        (29_000, "1m"),
        (59 * MIN, "59m"),
        (60 * MIN, "1h"),
        (90 * MIN, "2h"),
        (DAY - 1, "24h"),
        (DAY, "1d"),
        (36 * 60 * MIN, "2d"),
        (10 * DAY, "10d"),
    ],
)
def test_humanize_ms(ms, label):
    assert humanize_ms(ms) == label


# --- Service object ---


def test_scheduler_service_binds_settings(mature, now, tz):
    scheduler = Scheduler({"intervals": {"good": 3}}, tz=tz)
    assert isinstance(scheduler.settings, SchedulerSettings)
    assert scheduler.tz is tz
    assert scheduler.stage_for(mature) == 3
    assert scheduler.next_interval(mature, "good") == 30 * DAY
    assert scheduler.preview(mature, "good", now=now) == "38d"
    assert scheduler.apply(mature, Grade.GOOD, now=now).interval_days == 30
    assert scheduler.preview_all(mature, now=now)[Grade.AGAIN] == "15m"


def test_apply_grade_is_deterministic(mature, now, tz):
    a = apply_grade(mature, "easy", latency_ms=12000, now=now, tz=tz)
    b = apply_grade(mature, "easy", latency_ms=12000, now=now, tz=tz)
    assert a == b
