# Domain Scheduling Package
from .errors import InvalidGrade, SchedulingError
from .models import (
    Grade,
    GradeMultipliers,
    IntervalMultipliers,
    PenaltySettings,
    Progress,
    SchedulerSettings,
    StageKnobs,
    TimingSettings,
)
from .ports import RecordStore

__all__ = [
    "Grade",
    "GradeMultipliers",
    "IntervalMultipliers",
    "InvalidGrade",
    "PenaltySettings",
    "Progress",
    "RecordStore",
    "SchedulerSettings",
    "SchedulingError",
    "StageKnobs",
    "TimingSettings",
]
