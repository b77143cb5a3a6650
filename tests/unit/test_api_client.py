"""
Unit tests for the exam backend client.
"""

import httpx
import pytest
import pytest_asyncio

from src.core.api_client import ExamApiClient, parse_attempt_bundle
from src.core.failures import (
    HttpFailure,
    ParseFailure,
    TransportFailure,
    UnknownFailure,
    describe_failure,
)
from src.core.models import AnswerInput


class HookRecorder:
    """Failure hook that records every call."""

    def __init__(self):
        self.calls = []

    def __call__(self, failure, cascade=True):
        self.calls.append((failure, cascade))

    @property
    def failures(self):
        return [failure for failure, _ in self.calls]


def make_client(settings, handler, token="abc"):
    return ExamApiClient(
        settings,
        token_provider=lambda: token,
        transport=httpx.MockTransport(handler),
    )


@pytest_asyncio.fixture
async def recorded(settings):
    """Client whose transport records requests and replies from a queue."""
    requests = []
    replies = []

    def handler(request):
        requests.append(request)
        return replies.pop(0)

    client = make_client(settings, handler)
    yield client, requests, replies
    await client.close()


class TestRequestPipeline:
    """Tests for outcome normalization and failure hooks."""

    @pytest.mark.asyncio
    async def test_success_returns_data(self, recorded):
        client, requests, replies = recorded
        replies.append(httpx.Response(200, json=[{"id": 1, "title": "Algebra"}]))

        result = await client.list_tests()

        assert result.ok
        assert result.data[0].title == "Algebra"
        assert requests[0].headers["Authorization"] == "Token abc"

    @pytest.mark.asyncio
    async def test_no_token_no_header(self, settings):
        seen = []

        def handler(request):
            seen.append(request)
            return httpx.Response(200, json=[])

        async with make_client(settings, handler, token=None) as client:
            await client.list_tests()

        assert "Authorization" not in seen[0].headers

    @pytest.mark.asyncio
    async def test_http_failure_runs_hooks(self, recorded):
        client, _, replies = recorded
        seen = HookRecorder()
        client.add_failure_hook(seen)
        replies.append(httpx.Response(403, json={"detail": "Forbidden."}))

        result = await client.list_tests()

        assert not result.ok
        assert result.failure == HttpFailure(status=403, detail="Forbidden.")
        assert seen.failures == [result.failure]
        assert seen.calls[0][1] is True

    @pytest.mark.asyncio
    async def test_html_body_is_parse_failure(self, recorded):
        client, _, replies = recorded
        replies.append(httpx.Response(502, text="<html>Bad Gateway</html>"))

        result = await client.get_profile()

        assert isinstance(result.failure, ParseFailure)
        assert result.failure.original_status == 502
        assert result.failure.returned_html

    @pytest.mark.asyncio
    async def test_connection_error_is_transport_failure(self, settings):
        def handler(request):
            raise httpx.ConnectError("connection refused", request=request)

        seen = HookRecorder()
        async with make_client(settings, handler) as client:
            client.add_failure_hook(seen)
            result = await client.get_profile()

        assert isinstance(result.failure, TransportFailure)
        assert len(seen.calls) == 1

    @pytest.mark.asyncio
    async def test_logout_failure_is_not_intercepted(self, recorded):
        client, _, replies = recorded
        seen = HookRecorder()
        client.add_failure_hook(seen)
        replies.append(httpx.Response(500, json={"detail": "boom"}))

        result = await client.logout()

        assert not result.ok
        assert seen.calls == []


class TestEndpoints:
    """Tests for endpoint-specific decoding."""

    @pytest.mark.asyncio
    async def test_login_accepts_key_and_defaults_expiry(self, recorded):
        client, requests, replies = recorded
        replies.append(httpx.Response(200, json={"key": "tok"}))

        result = await client.login_with_credentials("student.demo", "pw")

        assert result.data.token == "tok"
        assert result.data.expires_at is not None
        assert requests[0].url.path == "/api-token-auth/"

    @pytest.mark.asyncio
    async def test_login_without_token_is_failure(self, recorded):
        client, _, replies = recorded
        seen = HookRecorder()
        client.add_failure_hook(seen)
        replies.append(httpx.Response(200, json={"ok": True}))

        result = await client.login_with_credentials("student.demo", "pw")

        assert isinstance(result.failure, UnknownFailure)
        assert describe_failure(result.failure) == "Login response does not include token."
        assert seen.calls == [(result.failure, False)]

    @pytest.mark.asyncio
    async def test_rejected_login_does_not_cascade(self, recorded):
        client, _, replies = recorded
        seen = HookRecorder()
        client.add_failure_hook(seen)
        replies.append(httpx.Response(401, json={"detail": "Invalid credentials."}))

        result = await client.login_with_credentials("nobody", "secret")

        assert result.failure == HttpFailure(status=401, detail="Invalid credentials.")
        assert seen.calls == [(result.failure, False)]

    @pytest.mark.asyncio
    async def test_unexpected_attempt_shape_is_unknown_failure(self, recorded):
        client, _, replies = recorded
        seen = HookRecorder()
        client.add_failure_hook(seen)
        replies.append(httpx.Response(200, json={"unexpected": True}))

        result = await client.start_attempt(1)

        assert isinstance(result.failure, UnknownFailure)
        assert describe_failure(result.failure) == "Unexpected attempt format."
        assert seen.calls == [(result.failure, True)]

    @pytest.mark.asyncio
    async def test_submit_sends_camel_case_answers(self, recorded):
        client, requests, replies = recorded
        replies.append(httpx.Response(200, json={"score": 1}))

        result = await client.submit_attempt(1001, [AnswerInput(question_id=11, selected_option_ids=[112])])

        assert result.data == {"score": 1}
        assert requests[0].url.path == "/testapp/api/v1/student/attempts/1001/submit/"
        assert b'"questionId":11' in requests[0].content.replace(b" ", b"")


class TestParseAttemptBundle:
    """Tests for the backend start payload mapping."""

    def test_flat_backend_shape(self):
        bundle = parse_attempt_bundle({
            "attempt_id": 7,
            "started_at": "2030-01-01T12:00:00Z",
            "test": {
                "id": 3,
                "title": "Physics",
                "questions": [
                    {"id": 1, "text": "Pick one", "question_type": "OC",
                     "answer_options": [{"id": 10, "text": "A"}]},
                    {"id": 2, "text": "Pick many", "question_type": "MC", "answer_options": []},
                    {"id": 3, "text": "g?", "question_type": "WR", "input_kind": "numeric"},
                    {"id": 4, "text": "Explain", "question_type": "WR"},
                ],
            },
        }, test_id=3)

        assert bundle.attempt.id == 7
        assert [q.type for q in bundle.test.questions] == ["single", "multiple", "numeric", "short"]
        assert bundle.test.questions[0].options[0].text == "A"
        assert (bundle.attempt.expires_at - bundle.attempt.started_at).total_seconds() == 1800

    def test_missing_attempt_raises(self):
        with pytest.raises(ValueError):
            parse_attempt_bundle({"foo": 1}, test_id=1)
