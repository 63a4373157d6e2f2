"""
Review pool helpers.

Decide which records are due, in what order, and which new items enter
the pool today. Like the scheduler these are pure functions over the
records the caller passes in.
"""

import logging
from collections.abc import Iterable, Mapping
from dataclasses import replace
from datetime import datetime, tzinfo

from cadence.domain.scheduling.clock import date_key, to_ms
from cadence.domain.scheduling.models import Progress

from .normalizer import normalize_progress
from .scheduler import ProgressLike, humanize_ms

logger = logging.getLogger(__name__)


def is_due(
    progress: ProgressLike,
    now: datetime | int | None = None,
    tz: tzinfo | None = None,
) -> bool:
    """True when the item is in the review pool and its due time has passed."""
    current_ms = to_ms(now)
    prog = normalize_progress(progress, current_ms, tz)
    return prog.introduced and prog.due_at <= current_ms


def select_due(
    records: Mapping[str, ProgressLike],
    now: datetime | int | None = None,
    limit: int | None = None,
    tz: tzinfo | None = None,
) -> list[str]:
    """
    IDs of due records, earliest due first (ties broken by id).

    Args:
        records: Item id -> progress record.
        now: Reference instant.
        limit: Maximum number of ids to return.
        tz: Learner's timezone, used to place records that only carry a
            due day key.
    """
    current_ms = to_ms(now)
    due = []
    for item_id, raw in records.items():
        prog = normalize_progress(raw, current_ms, tz)
        if prog.introduced and prog.due_at <= current_ms:
            due.append((prog.due_at, item_id))
    due.sort()
    ids = [item_id for _, item_id in due]
    return ids if limit is None else ids[: max(0, limit)]


def introduce(
    progress: ProgressLike,
    now: datetime | int | None = None,
    tz: tzinfo | None = None,
) -> Progress:
    """Put an item into the review pool, due immediately, at stage 1."""
    current_ms = to_ms(now)
    today = date_key(current_ms, tz)
    prog = normalize_progress(progress, current_ms, tz)
    return replace(
        prog,
        introduced=True,
        introduced_on_date_key=today,
        due_at=current_ms,
        due_date_key=today,
        interval_days=0.0,
        repetitions=0,
        review_count=0,
    )


def plan_introductions(
    records: Mapping[str, ProgressLike],
    candidate_ids: Iterable[str],
    daily_new: int,
    now: datetime | int | None = None,
    tz: tzinfo | None = None,
) -> list[str]:
    """
    Pick which new items to introduce today.

    Items already introduced today count against ``daily_new``; candidates
    that are already in the pool are skipped. Candidate order is kept.
    """
    current_ms = to_ms(now)
    today = date_key(current_ms, tz)

    introduced_today = 0
    for raw in records.values():
        prog = normalize_progress(raw, current_ms, tz)
        if prog.introduced and prog.introduced_on_date_key == today:
            introduced_today += 1

    need = max(0, daily_new - introduced_today)
    if need == 0:
        return []

    picked: list[str] = []
    for item_id in candidate_ids:
        if len(picked) >= need:
            break
        raw = records.get(item_id)
        # Records that were never stored have not entered the pool.
        if raw is not None and normalize_progress(raw, current_ms, tz).introduced:
            continue
        picked.append(item_id)

    logger.debug(f"Introducing {len(picked)} of {need} new items for {today}")
    return picked


def due_in_label(
    progress: ProgressLike,
    now: datetime | int | None = None,
    tz: tzinfo | None = None,
) -> str:
    """Remaining time until the item is due, ``"0m"`` once it is due."""
    current_ms = to_ms(now)
    remaining = normalize_progress(progress, current_ms, tz).due_at - current_ms
    return humanize_ms(remaining) if remaining > 0 else "0m"
