"""
Main completion stage: run the selected agent on the final prompt.
"""

import json
import logging
from dataclasses import dataclass, field
from typing import Any, Dict, List, Optional

from ..backend.client import BackendClient
from ..backend.envelope import Timing, TokenUsage
from ..config import settings
from ..exceptions import MalformedResponseError
from .base import Stage
from .search import SearchHit, coerce_search_results

logger = logging.getLogger(__name__)

SEARCH_FORMATS = frozenset({"search-results", "search-card"})


@dataclass
class CompletionRequest:
    """Input of the main completion stage."""

    agent_id: str
    user_prompt: str
    previous_response: Optional[str] = None
    previous_prompt: Optional[str] = None
    annotations: List[Dict[str, Any]] = field(default_factory=list)
    body: Dict[str, Any] = field(default_factory=dict)
    extra_body: Dict[str, Any] = field(default_factory=dict)

    def to_payload(self) -> Dict[str, Any]:
        payload: Dict[str, Any] = {
            "userPrompt": self.user_prompt,
            "body": self.body,
            "extra_body": self.extra_body,
        }
        if self.previous_response:
            payload["previousAiResponse"] = self.previous_response
        if self.previous_prompt:
            payload["previousUserPrompt"] = self.previous_prompt
        if self.annotations:
            payload["annotations"] = self.annotations
        return payload


@dataclass
class CompletionResponse:
    """Output of the main completion stage."""

    text: str
    format: Optional[str] = None
    usage: Optional[TokenUsage] = None
    timing: Optional[Timing] = None
    warnings: List[str] = field(default_factory=list)
    search_hits: Optional[List[SearchHit]] = None


def response_text(response: Any) -> str:
    """Render a completion payload as text; structured payloads become indented JSON."""
    if response is None:
        return ""
    if isinstance(response, str):
        return response
    return json.dumps(response, indent=2, ensure_ascii=False)


class CompletionStage(Stage[CompletionRequest, CompletionResponse]):
    """Call the agent endpoint and unwrap its response."""

    name = "main"

    def __init__(self, client: BackendClient, timeout: Optional[float] = None):
        super().__init__(client, timeout=timeout)

    async def _execute(self, request: CompletionRequest) -> CompletionResponse:
        data = await self.client.post_envelope(
            settings.agent_path(request.agent_id), request.to_payload()
        )

        text = response_text(data.response)
        if not text.strip():
            raise MalformedResponseError("Invalid response format: empty response")

        search_hits = None
        if data.format in SEARCH_FORMATS:
            if data.search_results is not None:
                records = [item.model_dump(exclude_none=True) for item in data.search_results]
            else:
                records = coerce_search_results(data.response)
            search_hits = [SearchHit.from_raw(record) for record in records]

        if data.warnings:
            logger.info(f"Agent {request.agent_id} returned {len(data.warnings)} warning(s)")

        return CompletionResponse(
            text=text,
            format=data.format,
            usage=data.token_usage,
            timing=data.timing,
            warnings=list(data.warnings or []),
            search_hits=search_hits,
        )
