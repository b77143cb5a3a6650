"""
Integration tests: full session and attempt workflows against the
in-process mock backend.
"""

import asyncio
import json
from datetime import timedelta

import pytest
import pytest_asyncio

from src.core.api_client import ExamApiClient
from src.core.exceptions import NoActiveAttemptError, SubmissionInProgressError
from src.core.models import AnswerInput, NotificationKind
from src.exam.access_guard import AccessGuard, AccessOutcome
from src.exam.exam_service import SESSION_EXPIRED_MESSAGE, ExamService
from src.store.attempt import AttemptState
from src.store.persistence import STORAGE_KEYS


@pytest_asyncio.fixture
async def service(settings, store):
    """Service wired to a mock-mode client."""
    client = ExamApiClient(settings)
    service = ExamService.connect(store, client)
    yield service
    await client.close()


class TestLoginFlow:
    """Tests for login, profile hydration and logout."""

    @pytest.mark.asyncio
    async def test_login_loads_profile_and_persists(self, service, storage):
        ok = await service.login_with_telegram("mock", "student")

        state = service.store.state
        assert ok is True
        assert state.session.token is not None
        assert state.session.expires_at is not None
        assert state.profile.profile.username == "student.demo"
        assert json.loads(storage.get(STORAGE_KEYS["auth"]))["token"] == state.session.token

    @pytest.mark.asyncio
    async def test_missing_init_data(self, service):
        ok = await service.login_with_telegram("", "student")

        assert ok is False
        assert "init data is missing" in service.store.session.state.error

    @pytest.mark.asyncio
    async def test_bad_credentials(self, service):
        ok = await service.login_with_credentials("nobody", "secret")

        session = service.store.session.state
        assert ok is False
        assert session.token is None
        assert session.error == "Invalid credentials."

    @pytest.mark.asyncio
    async def test_failed_login_keeps_held_state(self, service):
        await service.login_with_telegram("mock", "student")
        bundle = await service.start_attempt(1)
        service.store.attempt.set_answer(AnswerInput(question_id=13, numeric_answer=42))
        profile = service.store.profile.state.profile

        ok = await service.login_with_credentials("nobody", "secret")

        state = service.store.state
        assert ok is False
        assert state.session.error == "Invalid credentials."
        assert state.session.token is not None
        assert state.profile.profile == profile
        assert state.attempt.current == bundle
        assert state.attempt.answers_by_question_id[13].numeric_answer == 42
        assert state.ui.global_error == "Invalid credentials."
        assert state.ui.notifications[-1].kind == NotificationKind.WARNING

    @pytest.mark.asyncio
    async def test_logout_clears_everything(self, service, storage):
        await service.login_with_telegram("mock", "student")
        token = service.store.session.state.token

        await service.logout()

        assert service.store.session.state.token is None
        assert service.store.profile.state.profile is None
        assert storage.get(STORAGE_KEYS["auth"]) is None
        assert token not in service.client.mock_backend.sessions

    @pytest.mark.asyncio
    async def test_teacher_is_sent_home(self, service):
        await service.login_with_telegram("mock", "teacher")

        decision = AccessGuard(service.store).evaluate(["student"])

        assert decision.outcome == AccessOutcome.REDIRECT_HOME
        assert decision.home_role == "teacher"

    @pytest.mark.asyncio
    async def test_stale_session_is_expired(self, service):
        await service.login_with_telegram("mock", "student")
        later = service.store.session.state.expires_at + timedelta(seconds=1)

        assert service.expire_stale_session(now=later) is True

        ui = service.store.notifications.state
        assert service.store.session.state.token is None
        assert ui.notifications[-1].kind == NotificationKind.WARNING
        assert ui.notifications[-1].message == SESSION_EXPIRED_MESSAGE


class TestAttemptFlow:
    """Tests for starting, answering and submitting."""

    @pytest.mark.asyncio
    async def test_take_test_end_to_end(self, service):
        await service.login_with_telegram("mock", "student")

        bundle = await service.start_attempt(1)
        assert bundle.test.title == "Algebra Basics"
        assert set(service.store.attempt.state.answers_by_question_id) == {11, 12, 13}

        attempt = service.store.attempt
        attempt.set_answer(AnswerInput(question_id=11, selected_option_ids=[112]))
        attempt.set_answer(AnswerInput(question_id=12, selected_option_ids=[121, 123]))
        attempt.set_answer(AnswerInput(question_id=13, numeric_answer=42))

        result = await service.submit_attempt()

        assert result["score"] == 3
        assert result["passed"] is True
        assert attempt.state.current is None
        assert attempt.state.submit_in_flight is False

    @pytest.mark.asyncio
    async def test_start_same_test_reuses_held_attempt(self, service):
        await service.login_with_telegram("mock", "student")
        first = await service.start_attempt(1)
        service.store.attempt.set_answer(AnswerInput(question_id=13, numeric_answer=41))

        second = await service.start_attempt(1)

        assert second == first
        assert service.store.attempt.state.answers_by_question_id[13].numeric_answer == 41

    @pytest.mark.asyncio
    async def test_resubmitting_a_test_fails(self, service):
        await service.login_with_telegram("mock", "student")
        await service.start_attempt(2)
        await service.submit_attempt()

        bundle = await service.start_attempt(2)

        assert bundle is None
        assert service.store.attempt.state.error == "You already submitted this test."
        assert service.store.notifications.state.global_error == "You already submitted this test."

    @pytest.mark.asyncio
    async def test_submit_without_attempt_raises(self, service):
        with pytest.raises(NoActiveAttemptError):
            await service.submit_attempt()


class TestUnauthorizedDuringAttempt:
    """Tests for the 401 cascade triggered by a real call."""

    @pytest.mark.asyncio
    async def test_revoked_token_cascades(self, service, storage):
        await service.login_with_telegram("mock", "student")
        await service.start_attempt(1)
        service.client.mock_backend.sessions.clear()

        result = await service.submit_attempt()

        state = service.store.state
        assert result is None
        assert state.session.token is None
        assert state.session.expires_at is None
        assert state.profile.profile is None
        assert state.attempt == AttemptState()
        assert state.ui.global_error == "Authentication required."
        warnings = [n for n in state.ui.notifications if n.kind == NotificationKind.WARNING]
        assert len(warnings) == 1
        assert storage.get(STORAGE_KEYS["auth"]) is None

    @pytest.mark.asyncio
    async def test_revoked_token_on_start_leaves_attempt_empty(self, service):
        await service.login_with_telegram("mock", "student")
        service.client.mock_backend.sessions.clear()

        bundle = await service.start_attempt(1)

        assert bundle is None
        assert service.store.attempt.state == AttemptState()
        assert service.store.session.state.token is None


class TestSubmissionInFlight:
    """Tests for the in-flight flag around submission."""

    @pytest.mark.asyncio
    async def test_concurrent_submit_is_refused(self, service):
        await service.login_with_telegram("mock", "student")
        await service.start_attempt(1)
        service.client.mock_backend.latency_seconds = 0.05

        results = await asyncio.gather(
            service.submit_attempt(),
            service.submit_attempt(),
            return_exceptions=True,
        )

        assert isinstance(results[0], dict)
        assert isinstance(results[1], SubmissionInProgressError)
        assert service.store.attempt.state.submit_in_flight is False

    @pytest.mark.asyncio
    async def test_failed_submit_resets_flag_and_keeps_drafts(self, service):
        await service.login_with_telegram("mock", "student")
        bundle = await service.start_attempt(1)
        service.store.attempt.set_answer(AnswerInput(question_id=13, numeric_answer=42))
        later = bundle.attempt.expires_at + timedelta(seconds=1)
        service.client.mock_backend.clock = lambda: later

        result = await service.submit_attempt()

        attempt = service.store.attempt.state
        assert result is None
        assert attempt.submit_in_flight is False
        assert attempt.error == "Attempt timed out."
        assert attempt.current == bundle
        assert attempt.answers_by_question_id[13].numeric_answer == 42
        assert service.store.session.state.token is not None
