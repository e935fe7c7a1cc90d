"""
HTTP client for the completion service.

Wraps httpx.AsyncClient and maps every transport and protocol failure into
the generation error taxonomy.
"""

import json
import logging
from typing import Any, Dict, Optional

import httpx

from ..config import settings
from ..exceptions import (
    HttpStatusError,
    MalformedResponseError,
    StageTimeoutError,
    TransportError,
)
from .envelope import CompletionData, parse_envelope

logger = logging.getLogger(__name__)


def _error_message(response: httpx.Response) -> str:
    """Best-effort error text from a failed response."""
    try:
        body = response.json()
    except (json.JSONDecodeError, ValueError):
        text = response.text.strip()
        return text[:500] if text else (response.reason_phrase or "Request failed")
    if isinstance(body, dict):
        for key in ("error", "message", "detail"):
            if body.get(key):
                return str(body[key])
    return response.reason_phrase or "Request failed"


class BackendClient:
    """
    Async client for the completion service.

    Usage:
        async with BackendClient() as client:
            data = await client.post_envelope("/api/ai-builder/writer", payload)
    """

    def __init__(
        self,
        base_url: Optional[str] = None,
        api_key: Optional[str] = None,
        timeout: Optional[float] = None,
        transport: Optional[httpx.AsyncBaseTransport] = None,
    ):
        """
        Initialize the client.

        Args:
            base_url: Service root URL (defaults to BACKEND_BASE_URL)
            api_key: Bearer token (defaults to LLM_API_KEY)
            timeout: Default request timeout in seconds (defaults to HTTP_TIMEOUT)
            transport: Optional httpx transport, used by tests
        """
        self.base_url = (base_url or settings.BACKEND_BASE_URL).rstrip("/")
        self.timeout = timeout if timeout is not None else settings.HTTP_TIMEOUT

        headers = {"Content-Type": "application/json"}
        key = api_key if api_key is not None else settings.LLM_API_KEY
        if key:
            headers["Authorization"] = f"Bearer {key}"

        self._client = httpx.AsyncClient(
            base_url=self.base_url,
            headers=headers,
            timeout=self.timeout,
            transport=transport,
        )

    async def __aenter__(self) -> "BackendClient":
        return self

    async def __aexit__(self, exc_type, exc, tb) -> None:
        await self.aclose()

    async def aclose(self) -> None:
        await self._client.aclose()

    async def post_envelope(
        self,
        path: str,
        payload: Dict[str, Any],
        timeout: Optional[float] = None,
    ) -> CompletionData:
        """
        POST a JSON payload and unwrap the response envelope.

        Args:
            path: Endpoint path relative to the base URL
            payload: JSON body
            timeout: Per-request timeout override in seconds

        Returns:
            The envelope's data member

        Raises:
            StageTimeoutError: On client-side timeout
            TransportError: On connection failures
            HttpStatusError: On non-2xx responses
            MalformedResponseError: On undecodable or invalid bodies
            ApplicationError: When the envelope reports success: false
        """
        request_timeout = timeout if timeout is not None else self.timeout
        logger.debug(f"POST {path} (timeout={request_timeout}s)")

        try:
            response = await self._client.post(path, json=payload, timeout=request_timeout)
        except httpx.TimeoutException as e:
            raise StageTimeoutError(
                f"Request to {path} timed out after {request_timeout:g}s",
                timeout=request_timeout,
            ) from e
        except httpx.RequestError as e:
            raise TransportError(f"{type(e).__name__}: {e}") from e

        if response.status_code >= 400:
            message = _error_message(response)
            logger.warning(f"POST {path} failed with HTTP {response.status_code}: {message}")
            raise HttpStatusError(response.status_code, message)

        try:
            body = response.json()
        except (json.JSONDecodeError, ValueError) as e:
            raise MalformedResponseError(f"Response body is not valid JSON: {e}") from e

        return parse_envelope(body)
