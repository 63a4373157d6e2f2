"""
Normalization of caller-supplied records and settings.

Callers own storage, so records arrive in whatever shape was persisted:
partial mappings, legacy camelCase keys, stray strings. Everything is
completed here into immutable domain values so the engine can assume a
fully populated record. Nothing in this module raises on bad input.
"""

import logging
import math
import re
from collections.abc import Mapping
from dataclasses import fields, is_dataclass, replace
from datetime import datetime, tzinfo
from typing import Any

from cadence.domain import constants as c
from cadence.domain.scheduling.clock import date_key, start_of_day_ms, to_ms
from cadence.domain.scheduling.models import Progress, SchedulerSettings

logger = logging.getLogger(__name__)

# Keys persisted by older decks, mapped onto Progress fields.
_PROGRESS_ALIASES = {
    "ef": "ease",
    "interval": "interval_days",
    "reps": "repetitions",
    "reviews": "review_count",
    "correct": "correct_count",
    "wrong": "wrong_count",
    "due": "due_date_key",
    "introduced_on": "introduced_on_date_key",
    "penalty_level_today": "penalty_level",
}

_SETTINGS_ALIASES = {
    "day1": "stage1",
    "day2": "stage2",
}

_CAMEL = re.compile(r"(?<!^)(?=[A-Z])")
_DAY_KEY = re.compile(r"^\d{4}-\d{2}-\d{2}$")


def _snake(key: str) -> str:
    return _CAMEL.sub("_", key).lower()


def _number(value: Any, default: float | None) -> float | None:
    if isinstance(value, bool) or value is None:
        return default
    try:
        n = float(value)
    except (TypeError, ValueError):
        return default
    if not math.isfinite(n):
        return default
    return n


def _count(value: Any) -> int:
    n = _number(value, 0.0)
    return int(n) if n > 0 else 0


def _optional_ms(value: Any) -> int | None:
    if isinstance(value, datetime):
        return to_ms(value)
    n = _number(value, None)
    if n is None or n < 0:
        return None
    return int(round(n))


def _day_key(value: Any) -> str | None:
    if isinstance(value, str) and _DAY_KEY.match(value.strip()):
        return value.strip()
    return None


def _canonical_progress_keys(raw: Mapping) -> dict[str, Any]:
    data: dict[str, Any] = {}
    aliased: dict[str, Any] = {}
    for key, value in raw.items():
        if not isinstance(key, str):
            continue
        name = _snake(key)
        if name in _PROGRESS_ALIASES:
            aliased[_PROGRESS_ALIASES[name]] = value
        else:
            data[name] = value
    # Current field names win over legacy ones.
    return {**aliased, **data}


def normalize_progress(
    raw: Progress | Mapping | None,
    now: datetime | int | None = None,
    tz: tzinfo | None = None,
) -> Progress:
    """
    Complete a possibly partial progress record.

    Args:
        raw: A Progress, a mapping using field names or legacy keys, or None.
        now: Reference instant used when the record carries no due time.
        tz: Learner's timezone for day keys (None = system local).

    Returns:
        A fully populated Progress. Existing Progress values pass through.
    """
    if isinstance(raw, Progress):
        return raw

    data = _canonical_progress_keys(raw) if isinstance(raw, Mapping) else {}
    if raw is not None and not isinstance(raw, Mapping):
        logger.debug(f"Ignoring non-mapping progress record of type {type(raw).__name__}")

    ease = _number(data.get("ease"), c.DEFAULT_EASE)
    ease = min(c.MAX_EASE, max(c.MIN_EASE, ease))

    interval_days = _number(data.get("interval_days"), 0.0)
    if interval_days < 0:
        interval_days = 0.0

    due_at = _optional_ms(data.get("due_at"))
    if due_at is None:
        stored_key = _day_key(data.get("due_date_key"))
        due_at = start_of_day_ms(stored_key, tz) if stored_key else to_ms(now)

    introduced = data.get("introduced")

    history = data.get("latency_history")
    samples = []
    if isinstance(history, (list, tuple)):
        samples = [int(n) for n in (_number(v, None) for v in history) if n is not None and n >= 0]

    return Progress(
        ease=ease,
        interval_days=interval_days,
        repetitions=_count(data.get("repetitions")),
        review_count=_count(data.get("review_count")),
        correct_count=_count(data.get("correct_count")),
        wrong_count=_count(data.get("wrong_count")),
        due_at=due_at,
        due_date_key=date_key(due_at, tz),
        introduced=introduced if isinstance(introduced, bool) else True,
        introduced_on_date_key=_day_key(data.get("introduced_on_date_key")),
        last_latency_ms=_optional_ms(data.get("last_latency_ms")),
        avg_latency_ms=_optional_ms(data.get("avg_latency_ms")),
        latency_count=_count(data.get("latency_count")),
        latency_history=tuple(samples[-c.LATENCY_HISTORY_LIMIT :]),
        penalty_level=_count(data.get("penalty_level")),
        penalty_date_key=_day_key(data.get("penalty_date_key")),
    )


def _merge(base: Any, overrides: Any) -> Any:
    """Overlay a partial mapping onto a settings dataclass, field by field."""
    if not isinstance(overrides, Mapping):
        return base

    values = {}
    for key, value in overrides.items():
        if isinstance(key, str):
            name = _snake(key)
            values[_SETTINGS_ALIASES.get(name, name)] = value

    changes = {}
    for f in fields(base):
        if f.name not in values:
            continue
        raw = values[f.name]
        current = getattr(base, f.name)
        if is_dataclass(current):
            changes[f.name] = _merge(current, raw)
        elif f.type is bool:
            if isinstance(raw, bool):
                changes[f.name] = raw
        elif f.type is int:
            n = _number(raw, None)
            if n is not None:
                changes[f.name] = max(0, int(n))
        else:
            n = _number(raw, None)
            if n is not None:
                changes[f.name] = n
    return replace(base, **changes)


def normalize_settings(
    raw: SchedulerSettings | Mapping | None,
    base: SchedulerSettings | None = None,
) -> SchedulerSettings:
    """
    Build complete scheduler settings from a partial mapping.

    Accepts snake_case or camelCase keys and the ``day1``/``day2`` section
    names. Every missing or unusable knob keeps its value from ``base``
    (the built-in defaults when no base is given).
    """
    if isinstance(raw, SchedulerSettings):
        return raw
    return _merge(base or SchedulerSettings(), raw)
