"""
Tests for BackendClient and envelope parsing.
"""

import httpx
import pytest

from ai_builder.backend.envelope import parse_envelope
from ai_builder.exceptions import (
    ApplicationError,
    HttpStatusError,
    MalformedResponseError,
    StageTimeoutError,
    TransportError,
)
from backend_fakes import completion_data, envelope

PATH = "/api/ai-builder/writer"


class TestParseEnvelope:
    """Test parse_envelope()."""

    def test_success_returns_data(self):
        data = parse_envelope(envelope(completion_data("Hello")))

        assert data.response == "Hello"
        assert data.token_usage.total_tokens == 200
        assert data.token_usage.pricing.total_cost == pytest.approx(0.0036)
        assert data.timing.response_time == 850

    @pytest.mark.parametrize("payload", [None, [], "text", {"data": {}}])
    def test_missing_success_flag(self, payload):
        with pytest.raises(MalformedResponseError, match="missing success flag"):
            parse_envelope(payload)

    def test_application_error(self):
        with pytest.raises(ApplicationError, match="Agent not found"):
            parse_envelope({"success": False, "error": "Agent not found"})

    def test_application_error_without_message(self):
        with pytest.raises(ApplicationError, match="Request failed"):
            parse_envelope({"success": False})

    def test_success_without_data(self):
        with pytest.raises(MalformedResponseError):
            parse_envelope({"success": True})

    def test_invalid_field_types(self):
        with pytest.raises(MalformedResponseError):
            parse_envelope({"success": True, "data": {"tokenUsage": "lots"}})


class TestBackendClient:
    """Test BackendClient.post_envelope()."""

    @pytest.mark.asyncio
    async def test_posts_json_with_bearer_token(self, backend, client):
        captured = {}

        async def handler(request, body):
            captured["auth"] = request.headers.get("Authorization")
            return httpx.Response(200, json=envelope(completion_data("Done")))

        backend.handle(PATH, handler)

        data = await client.post_envelope(PATH, {"userPrompt": "Hi"})

        assert data.response == "Done"
        assert captured["auth"] == "Bearer test-key"
        assert backend.calls_to(PATH) == [{"userPrompt": "Hi"}]

    @pytest.mark.asyncio
    async def test_gateway_timeout(self, backend, client):
        backend.reply(PATH, {"error": "upstream timed out"}, status=504)

        with pytest.raises(HttpStatusError) as exc_info:
            await client.post_envelope(PATH, {})

        assert exc_info.value.status_code == 504
        assert exc_info.value.message == "upstream timed out"

    @pytest.mark.asyncio
    async def test_error_status_with_text_body(self, backend, client):
        backend.reply_text(PATH, "Internal failure", status=500)

        with pytest.raises(HttpStatusError) as exc_info:
            await client.post_envelope(PATH, {})

        assert exc_info.value.status_code == 500
        assert exc_info.value.message == "Internal failure"

    @pytest.mark.asyncio
    async def test_invalid_json_body(self, backend, client):
        backend.reply_text(PATH, "<html>oops</html>")

        with pytest.raises(MalformedResponseError):
            await client.post_envelope(PATH, {})

    @pytest.mark.asyncio
    async def test_success_false(self, backend, client):
        backend.reply(PATH, {"success": False, "error": "Quota exceeded"})

        with pytest.raises(ApplicationError, match="Quota exceeded"):
            await client.post_envelope(PATH, {})

    @pytest.mark.asyncio
    async def test_connection_failure(self, backend, client):
        backend.fail(PATH, lambda request: httpx.ConnectError("connection refused", request=request))

        with pytest.raises(TransportError) as exc_info:
            await client.post_envelope(PATH, {})

        assert not isinstance(exc_info.value, StageTimeoutError)
        assert "connection refused" in exc_info.value.message

    @pytest.mark.asyncio
    async def test_client_timeout(self, backend, client):
        backend.fail(PATH, lambda request: httpx.ReadTimeout("timed out", request=request))

        with pytest.raises(StageTimeoutError) as exc_info:
            await client.post_envelope(PATH, {}, timeout=2)

        assert exc_info.value.timeout == 2
