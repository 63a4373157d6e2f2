# Application Scheduling Package
from .normalizer import normalize_progress, normalize_settings
from .queue import due_in_label, introduce, is_due, plan_introductions, select_due
from .scheduler import (
    Scheduler,
    apply_grade,
    compute_next_interval,
    humanize_ms,
    preview_all,
    preview_label,
    stage_for,
)

__all__ = [
    "Scheduler",
    "apply_grade",
    "compute_next_interval",
    "due_in_label",
    "humanize_ms",
    "introduce",
    "is_due",
    "normalize_progress",
    "normalize_settings",
    "plan_introductions",
    "preview_all",
    "preview_label",
    "select_due",
    "stage_for",
]
