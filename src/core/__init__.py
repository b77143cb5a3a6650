"""
Core Module - Shared domain models and interfaces.

Components:
- models: wire models (profiles, attempts, answers)
- failures: remote-call failure taxonomy and message derivation
- api_client: exam backend HTTP client
- mock_backend: in-process backend for mock mode
- clock: UTC time helpers
- exceptions: errors raised for misuse of the state core

Design Principle:
Store sections (src/store/) and workflows (src/exam/) import from
src/core/ rather than reimplementing shared concepts.
"""

from src.core.api_client import ApiResult, ExamApiClient, parse_attempt_bundle
from src.core.exceptions import (
    ExamStateError,
    NoActiveAttemptError,
    SessionInvariantError,
    SubmissionInProgressError,
)
from src.core.failures import (
    Failure,
    HttpFailure,
    ParseFailure,
    TransportFailure,
    UnknownFailure,
    classify_failure,
    describe_failure,
)
from src.core.mock_backend import MockBackend
from src.core.models import (
    AnswerInput,
    AttemptBundle,
    AttemptStatus,
    LoginResponse,
    NotificationKind,
    StudentQuestion,
    StudentTestSummary,
    Theme,
    UserProfile,
)

__all__ = [
    # Client
    "ApiResult",
    "ExamApiClient",
    "MockBackend",
    "parse_attempt_bundle",
    # Errors
    "ExamStateError",
    "NoActiveAttemptError",
    "SessionInvariantError",
    "SubmissionInProgressError",
    # Failures
    "Failure",
    "HttpFailure",
    "ParseFailure",
    "TransportFailure",
    "UnknownFailure",
    "classify_failure",
    "describe_failure",
    # Models
    "AnswerInput",
    "AttemptBundle",
    "AttemptStatus",
    "LoginResponse",
    "NotificationKind",
    "StudentQuestion",
    "StudentTestSummary",
    "Theme",
    "UserProfile",
]
