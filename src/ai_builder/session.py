"""
Generation session.

Holds what one user sees: the visible outcome, the previous
response/prompt pair used for follow-ups, the pending annotations and the
id of the last history record. At most one generation is active per
session; starting a new one cancels the one in flight.
"""

import logging
from typing import Iterable, Optional
from uuid import uuid4

from .annotations import Annotation, AnnotationSet, build_regeneration_request
from .cancellation import CancellationScope
from .exceptions import PreconditionError
from .models import GenerationOutcome, GenerationRequest, GenerationState
from .orchestrator import GenerationOrchestrator
from .usage import UsageTracker

logger = logging.getLogger(__name__)


class GenerationSession:
    """
    Stateful front end over the orchestrator for one user.

    Usage:
        session = GenerationSession(orchestrator)
        outcome = await session.start(request)
        session.annotations.set(annotation)
        outcome = await session.regenerate()
    """

    def __init__(
        self,
        orchestrator: GenerationOrchestrator,
        session_id: Optional[str] = None,
    ):
        self.orchestrator = orchestrator
        self.session_id = session_id or uuid4().hex[:12]
        self.outcome = GenerationOutcome()
        self.annotations = AnnotationSet()
        self.usage = UsageTracker()
        self.previous_response: Optional[str] = None
        self.previous_prompt: Optional[str] = None
        self.last_request: Optional[GenerationRequest] = None
        self.last_prompt_id: Optional[str] = None
        self._scope: Optional[CancellationScope] = None
        self._active_request: Optional[GenerationRequest] = None
        self._generation = 0

    @property
    def busy(self) -> bool:
        """Whether a generation is in flight."""
        scope = self._scope
        return scope is not None and not scope.closed and not scope.cancelled

    @property
    def is_applying_annotations(self) -> bool:
        return self.busy and self._active_request is not None and bool(self._active_request.annotations)

    async def start(self, request: GenerationRequest) -> GenerationOutcome:
        """
        Start a generation, superseding any generation in flight.

        Args:
            request: What to generate

        Returns:
            The generation's outcome. A superseded generation returns its own
            cancelled outcome and leaves the session untouched.

        Raises:
            PreconditionError: If the request has no prompt
        """
        if not request.user_prompt or not request.user_prompt.strip():
            raise PreconditionError("Prompt is required")

        self._cancel_in_flight()

        self._generation += 1
        scope = CancellationScope(f"{self.session_id}-{self._generation}")
        outcome = GenerationOutcome()
        self._scope = scope
        self._active_request = request
        self.outcome = outcome

        await self.orchestrator.generate(
            request,
            scope,
            outcome,
            on_history_written=lambda record_id: self._history_written(scope, record_id),
        )

        if self._scope is not scope:
            logger.info(f"Discarding result of superseded generation {scope.name}")
            return outcome

        self._active_request = None
        if outcome.state == GenerationState.DONE:
            self._publish(request, outcome)
        return outcome

    def stop(self) -> bool:
        """
        Cancel the generation in flight and clear the visible outcome.

        Returns:
            True if a generation was cancelled
        """
        if not self.busy:
            return False

        self._scope.cancel()
        self._active_request = None
        self.outcome.clear()
        if not self.outcome.state.terminal:
            self.outcome.transition(GenerationState.CANCELLED)
        logger.info(f"Session {self.session_id}: generation stopped")
        return True

    async def regenerate(
        self,
        annotations: Optional[Iterable[Annotation]] = None,
        agent_id: Optional[str] = None,
    ) -> GenerationOutcome:
        """
        Regenerate the previous response with the session's annotations applied.

        Args:
            annotations: Replaces the session's annotations when given
            agent_id: Agent to use; defaults to the previous request's agent

        Raises:
            PreconditionError: If there is nothing to regenerate or no changes
                were requested. No backend call is made in that case.
        """
        if annotations is not None:
            self.annotations.replace_all(annotations)

        template = self.last_request
        agent = agent_id or (template.agent_id if template else None)
        if not agent:
            raise PreconditionError("Cannot apply annotations: no agent selected")

        request = build_regeneration_request(
            self.previous_response,
            self.previous_prompt,
            self.annotations,
            agent_id=agent,
            template=template,
        )
        return await self.start(request)

    async def flush(self) -> None:
        """Wait for the detached tasks of the latest generation, e.g. its history write."""
        if self._scope is not None:
            await self._scope.drain()

    async def aclose(self) -> None:
        """Cancel everything the session started, detached tasks included."""
        if self._scope is not None:
            self._scope.cancel()
            await self._scope.drain()

    def _cancel_in_flight(self) -> None:
        if self.busy:
            logger.info(f"Session {self.session_id}: superseding generation {self._scope.name}")
            self._scope.cancel()

    def _publish(self, request: GenerationRequest, outcome: GenerationOutcome) -> None:
        self.last_request = request
        if outcome.main_text is None:
            return

        applied_annotations = bool(request.annotations)
        if not applied_annotations:
            self.annotations.clear()
        self.previous_response = outcome.main_text
        self.previous_prompt = (
            request.previous_prompt if applied_annotations and request.previous_prompt else request.user_prompt
        )
        search_usage = outcome.search_usage or {}
        self.usage.record(
            request.agent_id,
            outcome.usage,
            search_cost=search_usage.get("cost", 0.0),
            search_tool=search_usage.get("tool"),
        )

    def _history_written(self, scope: CancellationScope, record_id: str) -> None:
        # Only the latest generation may set the id; older writes can finish late
        if scope is self._scope and not scope.cancelled:
            self.last_prompt_id = record_id
