"""
In-process mock backend.

Serves the exam API from memory through ``httpx.MockTransport`` so the client
can run without a server (``TMA_USE_MOCK_DATA=true``). Knows two demo users,
a couple of tests, issues expiring tokens and scores submissions.
"""

from __future__ import annotations

import asyncio
import itertools
import json
import re
import uuid
from dataclasses import dataclass, field
from datetime import datetime, timedelta
from typing import Any, Callable

import httpx
from loguru import logger

from src.core.clock import utc_now
from src.core.models import AttemptStatus, Role

TOKEN_LIFETIME = timedelta(hours=8)


@dataclass
class MockUser:
    id: int
    username: str
    first_name: str
    last_name: str
    role: Role
    telegram_id: int | None = None
    telegram_username: str | None = None

    def to_wire(self) -> dict[str, Any]:
        return {
            "id": self.id,
            "username": self.username,
            "firstName": self.first_name,
            "lastName": self.last_name,
            "role": self.role,
            "telegramId": self.telegram_id,
            "telegramUsername": self.telegram_username,
        }


@dataclass
class MockQuestion:
    id: int
    prompt: str
    type: str
    points: float = 1
    options: list[dict[str, Any]] = field(default_factory=list)
    correct_option_ids: list[int] = field(default_factory=list)
    correct_text: str | None = None
    correct_number: float | None = None
    tolerance: float = 0.0

    def to_student_wire(self) -> dict[str, Any]:
        return {
            "id": self.id,
            "prompt": self.prompt,
            "type": self.type,
            "points": self.points,
            "options": self.options,
        }

    def score(self, answer: dict[str, Any]) -> float:
        if self.type in ("single", "multiple"):
            selected = sorted(answer.get("selectedOptionIds") or [])
            return self.points if selected == sorted(self.correct_option_ids) else 0
        if self.type == "short":
            text = (answer.get("textAnswer") or "").strip().lower()
            return self.points if text and text == (self.correct_text or "").strip().lower() else 0
        value = answer.get("numericAnswer")
        if value is None or self.correct_number is None:
            return 0
        return self.points if abs(float(value) - self.correct_number) <= self.tolerance else 0


@dataclass
class MockTest:
    id: int
    title: str
    description: str
    time_limit_sec: int
    passing_percent: float
    questions: list[MockQuestion]


@dataclass
class MockAttempt:
    id: int
    test_id: int
    student_id: int
    started_at: datetime
    expires_at: datetime
    status: AttemptStatus = AttemptStatus.IN_PROGRESS
    submitted_at: datetime | None = None
    result: dict[str, Any] | None = None

    def to_wire(self) -> dict[str, Any]:
        return {
            "id": self.id,
            "testId": self.test_id,
            "status": self.status.value,
            "startedAt": self.started_at.isoformat(),
            "expiresAt": self.expires_at.isoformat(),
            "submittedAt": self.submitted_at.isoformat() if self.submitted_at else None,
        }


def _demo_users() -> list[MockUser]:
    return [
        MockUser(101, "teacher.demo", "Nargiza", "Karimova", "teacher", 77223311, "teacher_demo"),
        MockUser(201, "student.demo", "Aziz", "Tursunov", "student", 88112233, "student_demo"),
    ]


def _demo_tests() -> list[MockTest]:
    return [
        MockTest(
            id=1,
            title="Algebra Basics",
            description="Linear equations and arithmetic.",
            time_limit_sec=900,
            passing_percent=60,
            questions=[
                MockQuestion(
                    id=11,
                    prompt="Solve 2x + 3 = 11",
                    type="single",
                    options=[{"id": 111, "text": "3"}, {"id": 112, "text": "4"}, {"id": 113, "text": "5"}],
                    correct_option_ids=[112],
                ),
                MockQuestion(
                    id=12,
                    prompt="Select the prime numbers",
                    type="multiple",
                    options=[{"id": 121, "text": "2"}, {"id": 122, "text": "4"}, {"id": 123, "text": "7"}],
                    correct_option_ids=[121, 123],
                ),
                MockQuestion(id=13, prompt="What is 7 * 6?", type="numeric", correct_number=42),
            ],
        ),
        MockTest(
            id=2,
            title="World Capitals",
            description="Short answer geography.",
            time_limit_sec=600,
            passing_percent=50,
            questions=[
                MockQuestion(id=21, prompt="Capital of Uzbekistan", type="short", correct_text="Tashkent"),
                MockQuestion(id=22, prompt="Capital of Japan", type="short", correct_text="Tokyo"),
            ],
        ),
    ]


class MockApiError(Exception):
    def __init__(self, status: int, detail: str):
        super().__init__(detail)
        self.status = status
        self.detail = detail


Route = tuple[str, "re.Pattern[str]", Callable[..., Any]]


class MockBackend:
    """Routes httpx requests to in-memory handlers."""

    def __init__(self, latency_seconds: float = 0.0, clock: Callable[[], datetime] = utc_now):
        self.latency_seconds = latency_seconds
        self.clock = clock
        self.users = {user.id: user for user in _demo_users()}
        self.tests = {test.id: test for test in _demo_tests()}
        self.sessions: dict[str, tuple[int, datetime]] = {}
        self.attempts: dict[int, MockAttempt] = {}
        self._attempt_ids = itertools.count(1001)
        self._routes: list[Route] = [
            ("POST", re.compile(r"^/school/login/$"), self._login),
            ("POST", re.compile(r"^/api-token-auth/$"), self._login),
            ("POST", re.compile(r"^/school/logout/$"), self._logout),
            ("GET", re.compile(r"^/school/profile/$"), self._profile),
            ("GET", re.compile(r"^/testapp/api/v1/student/tests/$"), self._list_tests),
            ("POST", re.compile(r"^/testapp/api/v1/student/tests/(\d+)/start/$"), self._start),
            ("POST", re.compile(r"^/testapp/api/v1/student/attempts/(\d+)/submit/$"), self._submit),
        ]

    def transport(self) -> httpx.MockTransport:
        return httpx.MockTransport(self.handle)

    async def handle(self, request: httpx.Request) -> httpx.Response:
        if self.latency_seconds:
            await asyncio.sleep(self.latency_seconds)

        for method, pattern, handler in self._routes:
            match = pattern.match(request.url.path)
            if match and request.method == method:
                try:
                    body = json.loads(request.content) if request.content else {}
                    data = handler(request, body, *match.groups())
                    return httpx.Response(200, json=data)
                except MockApiError as e:
                    logger.debug(f"Mock {request.method} {request.url.path} -> {e.status}")
                    return httpx.Response(e.status, json={"detail": e.detail})

        return httpx.Response(404, json={"detail": "Requested resource was not found."})

    # =========================================================================
    # Auth
    # =========================================================================

    def issue_token(self, user_id: int) -> tuple[str, datetime]:
        token = uuid.uuid4().hex
        expires_at = self.clock() + TOKEN_LIFETIME
        self.sessions[token] = (user_id, expires_at)
        return token, expires_at

    def _current_user(self, request: httpx.Request) -> MockUser:
        header = request.headers.get("Authorization", "")
        token = header.removeprefix("Token ").strip()
        session = self.sessions.get(token)
        if session is None or self.clock() >= session[1]:
            raise MockApiError(401, "Authentication required.")
        return self.users[session[0]]

    def _login(self, request: httpx.Request, body: dict[str, Any]) -> dict[str, Any]:
        role = body.get("roleHint") or "student"
        username = body.get("username")
        candidates = [
            user for user in self.users.values()
            if (username and user.username == username) or (not username and user.role == role)
        ]
        if not candidates:
            raise MockApiError(401, "Invalid credentials.")
        token, expires_at = self.issue_token(candidates[0].id)
        return {"token": token, "expiresAt": expires_at.isoformat()}

    def _logout(self, request: httpx.Request, body: dict[str, Any]) -> dict[str, Any]:
        token = request.headers.get("Authorization", "").removeprefix("Token ").strip()
        self.sessions.pop(token, None)
        return {"success": True}

    def _profile(self, request: httpx.Request, body: dict[str, Any]) -> dict[str, Any]:
        return self._current_user(request).to_wire()

    # =========================================================================
    # Student tests
    # =========================================================================

    def _list_tests(self, request: httpx.Request, body: dict[str, Any]) -> list[dict[str, Any]]:
        user = self._current_user(request)
        rows = []
        for test in self.tests.values():
            completed = any(
                a.test_id == test.id and a.student_id == user.id and a.status == AttemptStatus.SUBMITTED
                for a in self.attempts.values()
            )
            rows.append({
                "id": test.id,
                "title": test.title,
                "description": test.description,
                "questionCount": len(test.questions),
                "timeLimitSec": test.time_limit_sec,
                "status": "completed" if completed else "open",
            })
        return rows

    def _start(self, request: httpx.Request, body: dict[str, Any], test_id: str) -> dict[str, Any]:
        user = self._current_user(request)
        test = self.tests.get(int(test_id))
        if test is None:
            raise MockApiError(404, "Requested resource was not found.")

        now = self.clock()
        attempt = None
        for existing in self.attempts.values():
            if existing.test_id != test.id or existing.student_id != user.id:
                continue
            if existing.status == AttemptStatus.SUBMITTED:
                raise MockApiError(409, "You already submitted this test.")
            if existing.status == AttemptStatus.IN_PROGRESS and now < existing.expires_at:
                attempt = existing

        if attempt is None:
            attempt = MockAttempt(
                id=next(self._attempt_ids),
                test_id=test.id,
                student_id=user.id,
                started_at=now,
                expires_at=now + timedelta(seconds=test.time_limit_sec),
            )
            self.attempts[attempt.id] = attempt

        return {
            "attempt": attempt.to_wire(),
            "test": {
                "id": test.id,
                "title": test.title,
                "description": test.description,
                "timeLimitSec": test.time_limit_sec,
                "questions": [q.to_student_wire() for q in test.questions],
            },
        }

    def _submit(self, request: httpx.Request, body: dict[str, Any], attempt_id: str) -> dict[str, Any]:
        user = self._current_user(request)
        attempt = self.attempts.get(int(attempt_id))
        if attempt is None or attempt.student_id != user.id:
            raise MockApiError(404, "Requested resource was not found.")
        if attempt.status == AttemptStatus.SUBMITTED:
            raise MockApiError(409, "Attempt was already submitted.")

        now = self.clock()
        if attempt.status == AttemptStatus.EXPIRED or now >= attempt.expires_at:
            attempt.status = AttemptStatus.EXPIRED
            raise MockApiError(409, "Attempt timed out.")

        test = self.tests[attempt.test_id]
        answers = {a.get("questionId"): a for a in body.get("answers", [])}
        score = sum(q.score(answers.get(q.id, {})) for q in test.questions)
        max_score = sum(q.points for q in test.questions)
        percentage = round(score * 100 / max_score, 2) if max_score else 0.0

        attempt.status = AttemptStatus.SUBMITTED
        attempt.submitted_at = now
        attempt.result = {
            "attemptId": attempt.id,
            "testId": test.id,
            "testTitle": test.title,
            "score": score,
            "maxScore": max_score,
            "percentage": percentage,
            "passed": percentage >= test.passing_percent,
            "submittedAt": now.isoformat(),
        }
        return attempt.result
