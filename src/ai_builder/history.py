"""
Prompt history recording.

After a successful main completion the orchestrator writes one history
record. Writes run detached from the generation and their failures are
only logged.
"""

import logging
from abc import ABC, abstractmethod
from dataclasses import asdict, dataclass, field
from typing import Any, Dict, List, Optional
from uuid import uuid4

from .backend.client import BackendClient
from .backend.envelope import TokenUsage
from .config import settings
from .exceptions import MalformedResponseError

logger = logging.getLogger(__name__)


@dataclass
class HistoryRecord:
    """One completed generation, as stored in prompt history."""

    username: str
    ai_agent: str
    user_prompt: str
    agent_response: str
    input_tokens: int = 0
    input_price: float = 0.0
    output_tokens: int = 0
    output_price: float = 0.0
    total_tokens: int = 0
    total_price: float = 0.0
    response_time: Optional[float] = None
    duration: Optional[float] = None
    reference_id: Optional[str] = None
    annotations: List[Dict[str, Any]] = field(default_factory=list)

    @classmethod
    def build(
        cls,
        agent_id: str,
        prompt: str,
        response: str,
        usage: Optional[TokenUsage] = None,
        response_time: Optional[float] = None,
        duration: Optional[float] = None,
        reference_id: Optional[str] = None,
        annotations: Optional[List[Dict[str, Any]]] = None,
        username: Optional[str] = None,
    ) -> "HistoryRecord":
        """Build a record from a completion's usage report."""
        pricing = usage.pricing if usage else None
        return cls(
            username=username or settings.HISTORY_USERNAME,
            ai_agent=agent_id,
            user_prompt=prompt,
            agent_response=response,
            input_tokens=usage.prompt_tokens if usage else 0,
            input_price=pricing.input_cost if pricing else 0.0,
            output_tokens=usage.completion_tokens if usage else 0,
            output_price=pricing.output_cost if pricing else 0.0,
            total_tokens=usage.total_tokens if usage else 0,
            total_price=pricing.total_cost if pricing else 0.0,
            response_time=response_time,
            duration=duration,
            reference_id=reference_id,
            annotations=list(annotations or []),
        )

    def to_payload(self) -> Dict[str, Any]:
        """Wire form with camelCase keys."""
        data = asdict(self)
        return {
            "username": data["username"],
            "aiAgent": data["ai_agent"],
            "userPrompt": data["user_prompt"],
            "agentResponse": data["agent_response"],
            "inputTokens": data["input_tokens"],
            "inputPrice": data["input_price"],
            "outputTokens": data["output_tokens"],
            "outputPrice": data["output_price"],
            "totalTokens": data["total_tokens"],
            "totalPrice": data["total_price"],
            "responseTime": data["response_time"],
            "duration": data["duration"],
            "referenceId": data["reference_id"],
            "annotations": data["annotations"],
        }


class HistoryRecorder(ABC):
    """Write-only sink for history records."""

    @abstractmethod
    async def write(self, record: HistoryRecord) -> str:
        """
        Persist a record.

        Returns:
            The stored record's id
        """
        pass


class HttpHistoryRecorder(HistoryRecorder):
    """Posts records to the prompt history endpoint."""

    def __init__(self, client: BackendClient, path: Optional[str] = None):
        self.client = client
        self.path = path or settings.HISTORY_PATH

    async def write(self, record: HistoryRecord) -> str:
        data = await self.client.post_envelope(self.path, record.to_payload())
        record_id = data.id
        if record_id is None and isinstance(data.response, dict):
            record_id = data.response.get("id")
        if not record_id:
            raise MalformedResponseError("History write returned no record id")
        logger.debug(f"History record {record_id} written for agent {record.ai_agent}")
        return str(record_id)


class InMemoryHistoryRecorder(HistoryRecorder):
    """Keeps records in memory, keyed by generated id."""

    def __init__(self):
        self.records: Dict[str, HistoryRecord] = {}

    async def write(self, record: HistoryRecord) -> str:
        record_id = uuid4().hex
        self.records[record_id] = record
        return record_id
