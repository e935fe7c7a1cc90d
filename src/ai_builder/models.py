"""
Generation request, outcome and state machine.
"""

from dataclasses import dataclass, field
from enum import Enum
from typing import Any, Dict, FrozenSet, List, Mapping, Optional

from .backend.envelope import Timing, TokenUsage
from .exceptions import GenerationError, describe_error
from .stages.image import ImageArtifact
from .stages.search import NO_SEARCH, SearchHit


class GenerationState(str, Enum):
    """Lifecycle of one generation."""

    IDLE = "idle"
    SUMMARIZING = "summarizing"
    SEARCHING = "searching"
    DISPATCHING = "dispatching"
    RECONCILING = "reconciling"
    DONE = "done"
    CANCELLED = "cancelled"

    @property
    def terminal(self) -> bool:
        return self in (GenerationState.DONE, GenerationState.CANCELLED)


TRANSITIONS: Dict[GenerationState, FrozenSet[GenerationState]] = {
    GenerationState.IDLE: frozenset({
        GenerationState.SUMMARIZING,
        GenerationState.SEARCHING,
        GenerationState.DISPATCHING,
        GenerationState.CANCELLED,
    }),
    GenerationState.SUMMARIZING: frozenset({
        GenerationState.SEARCHING,
        GenerationState.DISPATCHING,
        GenerationState.CANCELLED,
    }),
    GenerationState.SEARCHING: frozenset({
        GenerationState.DISPATCHING,
        GenerationState.CANCELLED,
    }),
    GenerationState.DISPATCHING: frozenset({
        GenerationState.RECONCILING,
        GenerationState.CANCELLED,
    }),
    GenerationState.RECONCILING: frozenset({
        GenerationState.DONE,
        GenerationState.CANCELLED,
    }),
    GenerationState.DONE: frozenset(),
    GenerationState.CANCELLED: frozenset(),
}


class InvalidTransitionError(RuntimeError):
    """A state change not allowed by TRANSITIONS was attempted."""

    def __init__(self, current: GenerationState, target: GenerationState):
        super().__init__(f"Invalid generation transition: {current.value} -> {target.value}")
        self.current = current
        self.target = target


@dataclass(frozen=True)
class GenerationRequest:
    """
    One request to generate a response from an agent.

    body and extra_body are forwarded to the agent. body["searchType"]
    selects the search mode and body["max_results"] the number of hits.
    """

    agent_id: str
    user_prompt: str
    body: Mapping[str, Any] = field(default_factory=dict)
    extra_body: Mapping[str, Any] = field(default_factory=dict)
    image_type: Optional[str] = None
    previous_response: Optional[str] = None
    previous_prompt: Optional[str] = None
    annotations: List[Dict[str, Any]] = field(default_factory=list)
    reference_id: Optional[str] = None
    summarize_before_search_image: bool = True

    @property
    def search_type(self) -> str:
        return self.body.get("searchType") or NO_SEARCH

    @property
    def search_enabled(self) -> bool:
        return self.search_type != NO_SEARCH

    @property
    def max_results(self) -> Any:
        return self.body.get("max_results")

    @property
    def effective_image_type(self) -> Optional[str]:
        return self.image_type or self.body.get("imageType")


@dataclass
class GenerationOutcome:
    """
    Reconciled result of one generation.

    The main and image channels are independent: each writes only its own
    slots, and an error in one never clears the other.
    """

    main_text: Optional[str] = None
    main_error: Optional[GenerationError] = None
    image_artifact: Optional[ImageArtifact] = None
    image_error: Optional[GenerationError] = None
    search_results: Optional[List[SearchHit]] = None
    search_error: Optional[GenerationError] = None
    search_usage: Optional[Dict[str, Any]] = None
    search_duration: Optional[float] = None
    summarized_prompt: Optional[str] = None
    prompt_used: Optional[str] = None
    usage: Optional[TokenUsage] = None
    timing: Optional[Timing] = None
    warnings: List[str] = field(default_factory=list)
    response_format: Optional[str] = None
    duration: Optional[float] = None
    state: GenerationState = GenerationState.IDLE

    @property
    def cancelled(self) -> bool:
        return self.state == GenerationState.CANCELLED

    @property
    def primary_error(self) -> Optional[GenerationError]:
        """Error to show as the generation's error; suppressed when an image was produced."""
        if self.image_artifact is not None:
            return None
        return self.main_error

    def clear(self) -> None:
        """Reset every result slot."""
        self.main_text = None
        self.main_error = None
        self.image_artifact = None
        self.image_error = None
        self.search_results = None
        self.search_error = None
        self.search_usage = None
        self.search_duration = None
        self.summarized_prompt = None
        self.prompt_used = None
        self.usage = None
        self.timing = None
        self.warnings = []
        self.response_format = None
        self.duration = None

    def transition(self, target: GenerationState) -> bool:
        """
        Move to a new state.

        Returns:
            False if already in target, True after a change

        Raises:
            InvalidTransitionError: If the change is not allowed
        """
        if self.state == target:
            return False
        if target not in TRANSITIONS[self.state]:
            raise InvalidTransitionError(self.state, target)
        self.state = target
        return True

    def to_dict(self) -> Dict[str, Any]:
        def _error(error: Optional[GenerationError]) -> Optional[Dict[str, Any]]:
            if error is None:
                return None
            data = error.to_dict()
            data["display"] = describe_error(error)
            return data

        primary = self.primary_error
        return {
            "state": self.state.value,
            "main_text": self.main_text,
            "main_error": _error(self.main_error),
            "image": self.image_artifact.to_dict() if self.image_artifact else None,
            "image_error": _error(self.image_error),
            "error": describe_error(primary) if primary else None,
            "search_results": [hit.to_dict() for hit in self.search_results] if self.search_results else None,
            "search_error": _error(self.search_error),
            "search_usage": self.search_usage,
            "search_duration": self.search_duration,
            "summarized_prompt": self.summarized_prompt,
            "prompt_used": self.prompt_used,
            "usage": self.usage.model_dump() if self.usage else None,
            "timing": self.timing.model_dump(by_alias=True) if self.timing else None,
            "warnings": list(self.warnings),
            "format": self.response_format,
            "duration": self.duration,
        }
