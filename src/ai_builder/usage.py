"""
Token usage and cost tracking across generations.
"""
import logging
from dataclasses import dataclass
from datetime import datetime
from typing import Any, Dict, List, Optional

from .backend.envelope import TokenUsage

logger = logging.getLogger(__name__)


@dataclass
class UsageRecord:
    """Usage of a single generation."""

    timestamp: datetime
    agent_id: str
    input_tokens: int
    output_tokens: int
    cost: float
    search_cost: float = 0.0
    search_tool: Optional[str] = None

    @property
    def total_tokens(self) -> int:
        """Total tokens (input + output)."""
        return self.input_tokens + self.output_tokens

    @property
    def total_cost(self) -> float:
        return self.cost + self.search_cost


class UsageTracker:
    """
    Tracks token usage and costs across generations of one session.

    Usage:
        tracker = UsageTracker()
        tracker.record("writer", usage, search_cost=0.004)
        print(tracker.get_summary())
    """

    def __init__(self):
        """Initialize the usage tracker."""
        self.records: List[UsageRecord] = []
        self._totals_by_agent: Dict[str, Dict[str, float]] = {}

    def record(
        self,
        agent_id: str,
        usage: Optional[TokenUsage],
        search_cost: float = 0.0,
        search_tool: Optional[str] = None,
    ) -> UsageRecord:
        """
        Record the usage of one generation.

        Args:
            agent_id: Agent that produced the completion
            usage: Token usage reported by the backend, if any
            search_cost: Cost of the search stage in USD
            search_tool: Search tool used, if any

        Returns:
            UsageRecord for this generation
        """
        cost = usage.pricing.total_cost if usage and usage.pricing else 0.0
        record = UsageRecord(
            timestamp=datetime.now(),
            agent_id=agent_id,
            input_tokens=usage.prompt_tokens if usage else 0,
            output_tokens=usage.completion_tokens if usage else 0,
            cost=cost,
            search_cost=search_cost,
            search_tool=search_tool,
        )
        self.records.append(record)

        totals = self._totals_by_agent.setdefault(agent_id, {
            "input_tokens": 0,
            "output_tokens": 0,
            "cost": 0.0,
            "generations": 0,
        })
        totals["input_tokens"] += record.input_tokens
        totals["output_tokens"] += record.output_tokens
        totals["cost"] += record.total_cost
        totals["generations"] += 1

        logger.debug(
            f"Usage recorded: {agent_id} - in={record.input_tokens}, "
            f"out={record.output_tokens}, cost=${record.total_cost:.4f}"
        )
        return record

    def get_summary(self) -> Dict[str, Any]:
        """
        Get a summary of all usage.

        Returns:
            Dictionary with usage statistics
        """
        total_input = sum(r.input_tokens for r in self.records)
        total_output = sum(r.output_tokens for r in self.records)
        return {
            "total_generations": len(self.records),
            "total_input_tokens": total_input,
            "total_output_tokens": total_output,
            "total_tokens": total_input + total_output,
            "total_cost": sum(r.total_cost for r in self.records),
            "search_cost": sum(r.search_cost for r in self.records),
            "by_agent": {agent: dict(totals) for agent, totals in self._totals_by_agent.items()},
        }

    def reset(self) -> None:
        self.records.clear()
        self._totals_by_agent.clear()
