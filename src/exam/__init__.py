"""
Exam Module - session and attempt workflows.

Components:
- exam_service: login, logout, profile hydration, attempt start/submit
- access_guard: on-demand protected-view decisions
"""

from src.exam.access_guard import AccessDecision, AccessGuard, AccessOutcome
from src.exam.exam_service import SESSION_EXPIRED_MESSAGE, ExamService

__all__ = [
    "AccessDecision",
    "AccessGuard",
    "AccessOutcome",
    "ExamService",
    "SESSION_EXPIRED_MESSAGE",
]
