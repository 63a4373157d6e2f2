"""Errors raised by the scheduling domain."""


class SchedulingError(Exception):
    """Base class for scheduler contract violations."""


class InvalidGrade(SchedulingError, ValueError):
    """Raised when a grade token is not one of again/hard/good/easy."""

    def __init__(self, token: object):
        self.token = token
        super().__init__(f"Invalid grade {token!r}: expected one of again, hard, good, easy")
