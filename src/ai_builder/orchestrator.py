"""
Generation orchestrator.

Runs one generation through its stages:

    IDLE -> SUMMARIZING? -> SEARCHING? -> DISPATCHING -> RECONCILING -> DONE

with CANCELLED reachable from every non-terminal state. Main completion and
image generation run concurrently and write disjoint outcome slots. A
successful main completion is recorded in history by a detached task.
"""

import asyncio
import logging
import time
from typing import Any, Awaitable, Callable, Optional

from .backend.client import BackendClient
from .cancellation import CancellationScope
from .exceptions import CancelledError, GenerationError, PreconditionError
from .history import HistoryRecord, HistoryRecorder
from .models import GenerationOutcome, GenerationRequest, GenerationState
from .stages.completion import CompletionRequest, CompletionStage
from .stages.image import ImageRequest, ImageStage, image_requested
from .stages.search import SearchQuery, SearchStage
from .stages.summarizer import SummarizerStage

logger = logging.getLogger(__name__)
history_logger = logging.getLogger("ai_builder.history")

SEARCH_DIVIDER = "\n\n---\n\n"

ContextPrefetcher = Callable[[GenerationRequest], Awaitable[Any]]
HistoryCallback = Callable[[str], None]


class GenerationOrchestrator:
    """
    Coordinates the stages of a generation under one cancellation scope.

    Usage:
        orchestrator = GenerationOrchestrator(client, history=recorder)
        scope = CancellationScope()
        outcome = await orchestrator.generate(request, scope)
    """

    def __init__(
        self,
        client: BackendClient,
        history: Optional[HistoryRecorder] = None,
        summarizer: Optional[SummarizerStage] = None,
        search: Optional[SearchStage] = None,
        completion: Optional[CompletionStage] = None,
        image: Optional[ImageStage] = None,
        context_prefetcher: Optional[ContextPrefetcher] = None,
    ):
        """
        Initialize the orchestrator.

        Args:
            client: Backend client shared by the default stages
            history: Recorder for successful generations; None disables history
            summarizer: Summarizer stage override
            search: Search stage override
            completion: Main completion stage override
            image: Image stage override
            context_prefetcher: Optional coroutine function started as a
                detached task at the beginning of each generation
        """
        self.client = client
        self.history = history
        self.summarizer = summarizer or SummarizerStage(client)
        self.search = search or SearchStage(client)
        self.completion = completion or CompletionStage(client)
        self.image = image or ImageStage(client)
        self.context_prefetcher = context_prefetcher

    async def generate(
        self,
        request: GenerationRequest,
        scope: CancellationScope,
        outcome: Optional[GenerationOutcome] = None,
        on_history_written: Optional[HistoryCallback] = None,
    ) -> GenerationOutcome:
        """
        Run a generation to completion or cancellation.

        Args:
            request: What to generate
            scope: Scope owning every task of this generation
            outcome: Outcome to fill; a new one is created when omitted
            on_history_written: Called with the history record id once the
                detached history write succeeds

        Returns:
            The reconciled outcome; on cancellation, a cleared outcome in
            state CANCELLED

        Raises:
            PreconditionError: If the request has no prompt
        """
        if not request.user_prompt or not request.user_prompt.strip():
            raise PreconditionError("Prompt is required")

        outcome = outcome if outcome is not None else GenerationOutcome()
        start = time.monotonic()
        logger.info(f"Generation started for agent {request.agent_id} in {scope.name}")

        try:
            if self.context_prefetcher is not None:
                scope.spawn(self.context_prefetcher(request), name=f"{scope.name}-prefetch", detached=True)

            image_type = request.effective_image_type
            image_enabled = image_requested(image_type, request.agent_id, self.image.agent_id)

            summary = None
            if request.summarize_before_search_image and (request.search_enabled or image_enabled):
                summary = await self._summarize(request, scope, outcome)

            downstream = request.user_prompt
            if request.search_enabled:
                downstream = await self._search(request, summary, scope, outcome)
            outcome.prompt_used = downstream

            self._advance(outcome, scope, GenerationState.DISPATCHING)
            if image_enabled:
                await asyncio.gather(
                    self._run_main(request, downstream, scope, outcome),
                    self._run_image(request, image_type, summary, scope, outcome),
                )
            else:
                await self._run_main(request, downstream, scope, outcome)

            self._advance(outcome, scope, GenerationState.RECONCILING)
            outcome.duration = time.monotonic() - start
            if outcome.main_text is not None and self.history is not None:
                self._spawn_history_write(request, outcome, scope, on_history_written)

            outcome.transition(GenerationState.DONE)
            scope.close()
        except CancelledError:
            logger.info(f"Generation in {scope.name} cancelled")
            self._mark_cancelled(outcome)
        except asyncio.CancelledError:
            scope.cancel()
            self._mark_cancelled(outcome)
            raise

        if outcome.state == GenerationState.DONE:
            logger.info(
                f"Generation finished in {outcome.duration:.2f}s "
                f"(main={'ok' if outcome.main_text is not None else 'failed'}, "
                f"image={'ok' if outcome.image_artifact else 'none'})"
            )
        return outcome

    @staticmethod
    def _advance(outcome: GenerationOutcome, scope: CancellationScope, state: GenerationState) -> None:
        if scope.cancelled:
            raise CancelledError()
        if outcome.transition(state):
            logger.debug(f"{scope.name}: {state.value}")

    @staticmethod
    def _mark_cancelled(outcome: GenerationOutcome) -> None:
        outcome.clear()
        if not outcome.state.terminal:
            outcome.transition(GenerationState.CANCELLED)

    async def _summarize(
        self,
        request: GenerationRequest,
        scope: CancellationScope,
        outcome: GenerationOutcome,
    ) -> Optional[str]:
        self._advance(outcome, scope, GenerationState.SUMMARIZING)
        result = await self.summarizer.call(request.user_prompt, scope)
        if scope.cancelled:
            raise CancelledError()
        if not result.success or not result.value:
            logger.info("Summarization unavailable, continuing with the original prompt")
            return None
        outcome.summarized_prompt = result.value
        return result.value

    async def _search(
        self,
        request: GenerationRequest,
        summary: Optional[str],
        scope: CancellationScope,
        outcome: GenerationOutcome,
    ) -> str:
        self._advance(outcome, scope, GenerationState.SEARCHING)
        query = SearchQuery(
            prompt=summary or request.user_prompt,
            search_type=request.search_type,
            max_results=request.max_results,
        )
        result = await self.search.call(query, scope)
        if scope.cancelled:
            raise CancelledError()

        if not result.success:
            outcome.search_error = result.error
            return request.user_prompt

        output = result.value
        logger.info(f"Search returned {len(output.hits)} result(s) after {output.attempts} attempt(s)")
        outcome.search_results = output.hits
        outcome.search_usage = output.usage
        outcome.search_duration = output.duration
        return f"{request.user_prompt}{SEARCH_DIVIDER}{output.rendering}"

    async def _run_main(
        self,
        request: GenerationRequest,
        prompt: str,
        scope: CancellationScope,
        outcome: GenerationOutcome,
    ) -> None:
        completion_request = CompletionRequest(
            agent_id=request.agent_id,
            user_prompt=prompt,
            previous_response=request.previous_response,
            previous_prompt=request.previous_prompt,
            annotations=list(request.annotations),
            body=dict(request.body),
            extra_body=dict(request.extra_body),
        )
        result = await self.completion.call(completion_request, scope)
        if scope.cancelled or result.cancelled:
            return

        if not result.success:
            outcome.main_error = result.error
            return

        response = result.value
        outcome.main_text = response.text
        outcome.usage = response.usage
        outcome.timing = response.timing
        outcome.warnings = response.warnings
        outcome.response_format = response.format
        if response.search_hits:
            outcome.search_results = response.search_hits

    async def _run_image(
        self,
        request: GenerationRequest,
        image_type: str,
        summary: Optional[str],
        scope: CancellationScope,
        outcome: GenerationOutcome,
    ) -> None:
        image_request = ImageRequest(
            prompt=summary or request.user_prompt,
            image_type=image_type,
            body=dict(request.body),
            extra_body=dict(request.extra_body),
        )
        result = await self.image.call(image_request, scope)
        if scope.cancelled or result.cancelled:
            return

        if result.success:
            outcome.image_artifact = result.value
        else:
            outcome.image_error = result.error

    def _spawn_history_write(
        self,
        request: GenerationRequest,
        outcome: GenerationOutcome,
        scope: CancellationScope,
        callback: Optional[HistoryCallback],
    ) -> None:
        timing = outcome.timing
        record = HistoryRecord.build(
            agent_id=request.agent_id,
            prompt=outcome.prompt_used or request.user_prompt,
            response=outcome.main_text,
            usage=outcome.usage,
            response_time=timing.response_time if timing else None,
            duration=timing.duration if timing and timing.duration is not None else outcome.duration,
            reference_id=request.reference_id,
            annotations=list(request.annotations),
        )
        scope.spawn(self._write_history(record, callback), name=f"{scope.name}-history", detached=True)

    async def _write_history(self, record: HistoryRecord, callback: Optional[HistoryCallback]) -> None:
        try:
            record_id = await self.history.write(record)
        except GenerationError as e:
            history_logger.warning(f"Failed to save prompt to history: {e.message}")
            return
        except Exception as e:
            history_logger.exception(f"Failed to save prompt to history: {e}")
            return

        history_logger.debug(f"Saved prompt {record_id} for agent {record.ai_agent}")
        if callback is not None:
            callback(record_id)
