"""cadence: latency-aware spaced-repetition scheduling."""

from cadence.consts import VERSION

__version__ = VERSION
