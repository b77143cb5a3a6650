"""
Exam backend HTTP client.

Thin async client over httpx. Remote-call failures never raise out of this
module: every call returns an ``ApiResult`` carrying either data or a
``Failure``. Failed results are handed to the registered failure hooks
before the call returns, so the interception policy always runs before the
caller sees the outcome.

Usage:
    client = ExamApiClient(settings, token_provider=lambda: store.session.state.token)
    client.add_failure_hook(store.failure_policy)
    result = await client.start_attempt(test_id)
"""

from __future__ import annotations

from dataclasses import dataclass
from datetime import timedelta
from typing import Any, Callable, Generic, Optional, TypeVar

import httpx
from loguru import logger
from pydantic import ValidationError

from config import Settings
from src.core.clock import parse_timestamp, utc_now
from src.core.failures import Failure, ParseFailure, TransportFailure, classify_failure
from src.core.mock_backend import MockBackend
from src.core.models import (
    AnswerInput,
    AttemptBundle,
    LoginResponse,
    Role,
    StudentTestSummary,
    UserProfile,
)

T = TypeVar("T")

FailureHook = Callable[..., Any]
TokenProvider = Callable[[], Optional[str]]

RAW_BODY_LIMIT = 500
SHAPE_ERROR = "SHAPE_ERROR"


@dataclass(frozen=True)
class ApiResult(Generic[T]):
    """Outcome of one remote call."""

    data: T | None = None
    failure: Failure | None = None

    @property
    def ok(self) -> bool:
        return self.failure is None


def _no_token() -> str | None:
    return None


class ExamApiClient:
    """
    HTTP client for the exam backend.

    Supports:
    - Token authentication (``Authorization: Token <token>``)
    - Telegram init-data and credential login
    - Profile lookup
    - Student test listing, attempt start and submission
    """

    def __init__(
        self,
        settings: Settings,
        token_provider: TokenProvider = _no_token,
        transport: httpx.AsyncBaseTransport | None = None,
    ):
        self.settings = settings
        self.token_provider = token_provider
        self._transport = transport
        self._client: httpx.AsyncClient | None = None
        self._failure_hooks: list[FailureHook] = []
        self.mock_backend: MockBackend | None = None

        if transport is None and settings.use_mock_data:
            self.mock_backend = MockBackend(latency_seconds=settings.mock_latency_seconds)
            self._transport = self.mock_backend.transport()

    async def __aenter__(self) -> "ExamApiClient":
        self._ensure_client()
        return self

    async def __aexit__(self, *args: Any) -> None:
        await self.close()

    def _ensure_client(self) -> httpx.AsyncClient:
        if self._client is None:
            self._client = httpx.AsyncClient(
                base_url=self.settings.api_base_url,
                headers={"Accept": "application/json"},
                timeout=self.settings.request_timeout_seconds,
                transport=self._transport,
            )
        return self._client

    async def close(self) -> None:
        if self._client:
            await self._client.aclose()
            self._client = None

    def add_failure_hook(self, hook: FailureHook) -> None:
        """
        Register a callback run once for every failed call.

        Hooks are called as ``hook(failure, cascade=...)``; ``cascade`` is
        False for login calls, whose failures must not invalidate held state.
        """
        self._failure_hooks.append(hook)

    # =========================================================================
    # Request pipeline
    # =========================================================================

    def _headers(self) -> dict[str, str]:
        token = self.token_provider()
        return {"Authorization": f"Token {token}"} if token else {}

    async def request(
        self,
        method: str,
        path: str,
        json: Any = None,
        intercept: bool = True,
        cascade: bool = True,
    ) -> ApiResult[Any]:
        """
        Issue one call and normalize its outcome.

        Args:
            method: HTTP method
            path: Path relative to the API base URL
            json: Optional JSON body
            intercept: Run failure hooks on failure (False for fire-and-forget calls)
            cascade: Let a 401 invalidate the session (False for login calls)
        """
        client = self._ensure_client()
        try:
            response = await client.request(method, path, json=json, headers=self._headers())
        except httpx.RequestError as e:
            logger.error(f"Connection error on {method} {path}: {e}")
            return self._fail(TransportFailure(reason=str(e)), intercept, cascade)

        failure, data = self._decode(response)
        if failure is not None:
            return self._fail(failure, intercept, cascade)

        logger.debug(f"{method} {path} -> {response.status_code}")
        return ApiResult(data=data)

    @staticmethod
    def _decode(response: httpx.Response) -> tuple[Failure | None, Any]:
        text = response.text
        body: Any = None
        parsed = True
        if text.strip():
            try:
                body = response.json()
            except ValueError:
                parsed = False

        if response.is_success:
            if not parsed:
                return ParseFailure(
                    original_status=response.status_code,
                    raw_body=text[:RAW_BODY_LIMIT],
                    reason="invalid JSON in success response",
                ), None
            return None, body

        if not parsed:
            return ParseFailure(
                original_status=response.status_code,
                raw_body=text[:RAW_BODY_LIMIT],
                reason="invalid JSON in error response",
            ), None

        return classify_failure({"status": response.status_code, "data": body}), None

    def _fail(self, failure: Failure, intercept: bool, cascade: bool = True) -> ApiResult[Any]:
        if intercept:
            for hook in self._failure_hooks:
                hook(failure, cascade=cascade)
        return ApiResult(failure=failure)

    def _invalid(self, reason: str, cascade: bool = True) -> ApiResult[Any]:
        """A 2xx response whose content did not match the expected shape."""
        logger.warning(f"Unexpected response shape: {reason}")
        failure = classify_failure({"status": SHAPE_ERROR, "error": reason})
        return self._fail(failure, intercept=True, cascade=cascade)

    # =========================================================================
    # Authentication
    # =========================================================================

    def _login_result(self, data: Any) -> ApiResult[LoginResponse]:
        if isinstance(data, dict) and "token" not in data and "key" in data:
            data = {**data, "token": data["key"]}
        try:
            login = LoginResponse.model_validate(data)
        except ValidationError:
            return self._invalid("Login response does not include token.", cascade=False)
        if login.expires_at is None:
            fallback = utc_now() + timedelta(hours=self.settings.default_session_hours)
            login = login.model_copy(update={"expires_at": fallback})
        return ApiResult(data=login)

    async def login_with_telegram(
        self, init_data: str, role_hint: Role | None = None
    ) -> ApiResult[LoginResponse]:
        path = "/school/login/" if self.mock_backend else "/school/telegram/login/"
        payload: dict[str, Any] = {"initData": init_data}
        if role_hint:
            payload["roleHint"] = role_hint

        result = await self.request("POST", path, json=payload, cascade=False)
        if not result.ok:
            return result
        return self._login_result(result.data)

    async def login_with_credentials(
        self, username: str, password: str, role_hint: Role | None = None
    ) -> ApiResult[LoginResponse]:
        payload: dict[str, Any] = {"username": username, "password": password}
        if role_hint and self.mock_backend:
            payload["roleHint"] = role_hint

        result = await self.request("POST", "/api-token-auth/", json=payload, cascade=False)
        if not result.ok:
            return result
        return self._login_result(result.data)

    async def logout(self) -> ApiResult[Any]:
        """Best-effort logout. Failures are not intercepted."""
        return await self.request("POST", "/school/logout/", intercept=False)

    async def get_profile(self) -> ApiResult[UserProfile]:
        result = await self.request("GET", "/school/profile/")
        if not result.ok:
            return result
        try:
            return ApiResult(data=UserProfile.model_validate(result.data))
        except ValidationError:
            return self._invalid("Unable to resolve user profile.")

    # =========================================================================
    # Student tests and attempts
    # =========================================================================

    async def list_tests(self) -> ApiResult[list[StudentTestSummary]]:
        result = await self.request("GET", "/testapp/api/v1/student/tests/")
        if not result.ok:
            return result
        rows = result.data if isinstance(result.data, list) else []
        try:
            return ApiResult(data=[StudentTestSummary.model_validate(row) for row in rows])
        except ValidationError:
            return self._invalid("Unexpected test list format.")

    async def start_attempt(self, test_id: int) -> ApiResult[AttemptBundle]:
        result = await self.request("POST", f"/testapp/api/v1/student/tests/{test_id}/start/")
        if not result.ok:
            return result
        try:
            return ApiResult(data=parse_attempt_bundle(result.data, test_id))
        except (ValidationError, ValueError, TypeError):
            return self._invalid("Unexpected attempt format.")

    async def submit_attempt(
        self, attempt_id: int, answers: list[AnswerInput]
    ) -> ApiResult[dict[str, Any]]:
        """Submit drafts. The result is opaque: scoring happens server-side."""
        payload = {"answers": [answer.to_wire() for answer in answers]}
        result = await self.request(
            "POST", f"/testapp/api/v1/student/attempts/{attempt_id}/submit/", json=payload
        )
        if not result.ok:
            return result
        return ApiResult(data=result.data if isinstance(result.data, dict) else {})


# =============================================================================
# Backend shape mapping
# =============================================================================

BACKEND_QUESTION_TYPES = {"OC": "single", "MC": "multiple"}
DEFAULT_TIME_LIMIT_SEC = 1800


def _backend_question(raw: dict[str, Any]) -> dict[str, Any]:
    code = raw.get("question_type")
    if code in BACKEND_QUESTION_TYPES:
        qtype = BACKEND_QUESTION_TYPES[code]
    elif code == "WR" and raw.get("input_kind") == "numeric":
        qtype = "numeric"
    else:
        qtype = "short"

    options = (raw.get("answer_options") or []) if qtype in ("single", "multiple") else []
    return {
        "id": raw["id"],
        "prompt": raw.get("text", ""),
        "type": qtype,
        "points": raw.get("mark", 1),
        "options": [{"id": o["id"], "text": o.get("text", "")} for o in options],
    }


def parse_attempt_bundle(data: Any, test_id: int) -> AttemptBundle:
    """
    Accept either the client shape (``attempt`` + ``test``) or the backend's
    flat start payload (``attempt_id``, ``started_at``, ``test.questions``).
    """
    if isinstance(data, dict) and "attempt" in data:
        return AttemptBundle.model_validate(data)

    if not isinstance(data, dict) or "attempt_id" not in data:
        raise ValueError("start response has no attempt")

    started_raw = data.get("started_at")
    started_at = parse_timestamp(started_raw) if started_raw else utc_now()
    test = data.get("test") or {}
    return AttemptBundle.model_validate({
        "attempt": {
            "id": data["attempt_id"],
            "testId": data.get("test_id", test_id),
            "status": "in_progress",
            "startedAt": started_at,
            "expiresAt": started_at + timedelta(seconds=DEFAULT_TIME_LIMIT_SEC),
        },
        "test": {
            "id": test.get("id", test_id),
            "title": test.get("title") or f"Test {test_id}",
            "timeLimitSec": DEFAULT_TIME_LIMIT_SEC,
            "questions": [_backend_question(q) for q in test.get("questions") or []],
        },
    })
