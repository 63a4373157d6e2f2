"""
Time helpers: epoch milliseconds and local calendar-day keys.

A day key is the ``YYYY-MM-DD`` date that contains an instant in the
learner's timezone. ``tz=None`` means the system local timezone.
"""

from datetime import date, datetime, time, tzinfo


def now_ms() -> int:
    return int(datetime.now().timestamp() * 1000)


def to_ms(moment: datetime | int | float | None) -> int:
    """Coerce a datetime or epoch-ms value to epoch milliseconds (None = now)."""
    if moment is None:
        return now_ms()
    if isinstance(moment, datetime):
        return int(moment.timestamp() * 1000)
    return int(moment)


def date_key(moment: datetime | int | float | None = None, tz: tzinfo | None = None) -> str:
    ms = to_ms(moment)
    local = datetime.fromtimestamp(ms / 1000, tz=tz) if tz else datetime.fromtimestamp(ms / 1000)
    return local.date().isoformat()


def start_of_day_ms(key: str, tz: tzinfo | None = None) -> int:
    """Epoch milliseconds of local midnight for a day key."""
    midnight = datetime.combine(date.fromisoformat(key), time.min)
    if tz:
        midnight = midnight.replace(tzinfo=tz)
    return int(midnight.timestamp() * 1000)
