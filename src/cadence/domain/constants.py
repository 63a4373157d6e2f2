"""Centralized constants for the cadence scheduler.

All magic numbers and configuration defaults live here so every layer
imports from a single source of truth.
"""

# ---------- Time units (milliseconds) ----------
MS_PER_MINUTE = 60_000
MS_PER_HOUR = 3_600_000
MS_PER_DAY = 86_400_000

# ---------- Ease ----------
DEFAULT_EASE = 2.5
MIN_EASE = 1.3
MAX_EASE = 2.8

# ---------- Latency ----------
LATENCY_HISTORY_LIMIT = 30

# ---------- Stage 1 (first-ever grade) ----------
STAGE1_AGAIN_MINS = 10
STAGE1_HARD_MINS = 60
STAGE1_GOOD_DAYS = 1
STAGE1_EASY_DAYS = 2

# ---------- Stage 2 (second grade) ----------
STAGE2_AGAIN_MINS = 5
STAGE2_HARD_MINS = 15
STAGE2_GOOD_DAYS = 1
STAGE2_EASY_DAYS = 2

# Early-stage easy never drops below this many days.
MIN_EARLY_EASY_DAYS = 2

# ---------- Interval ceiling ----------
# Hard, good and easy top out one day apart so their order survives the cap.
MAX_INTERVAL_DAYS = 36_500

# ---------- Stage 3+ multipliers ----------
INTERVAL_EASY = 3.0
INTERVAL_GOOD = 2.0
INTERVAL_HARD = 1.0

# ---------- Timing ----------
TIMING_FAST_MS = 5000
TIMING_SLOW_MS = 25000
TIMING_CLAMP_MIN = 0.75
TIMING_CLAMP_MAX = 1.25

# ---------- Same-day penalties ----------
PENALTY_DAY3_AGAIN_MINS = 15
PENALTY_L1_HARD = 0.40
PENALTY_L1_GOOD = 0.60
PENALTY_L1_EASY = 0.60
PENALTY_L2PLUS_HARD = 0.25
PENALTY_L2PLUS_GOOD = 0.50
PENALTY_L2PLUS_EASY = 0.50
PENALTY_MAX_LEVEL = 10
PENALTY_COMPOUND_AFTER_L1 = False

# ---------- Review pool ----------
DEFAULT_DAILY_NEW = 10
