"""Exceptions raised for misuse of the exam state core."""


class ExamStateError(Exception):
    """Base class for exam state errors."""


class SessionInvariantError(ExamStateError, ValueError):
    """A session was set with a missing token or expiry."""


class NoActiveAttemptError(ExamStateError):
    """An attempt operation was requested while no attempt is held."""


class SubmissionInProgressError(ExamStateError):
    """A second submission was requested while one is still in flight."""
