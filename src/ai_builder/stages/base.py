"""
Base class for generation stages.

A stage wraps one backend operation. Calls always return a StageResult:
failures, timeouts and scope cancellation are reported as values, never
raised. Only cancellation of the caller's own task propagates.
"""

import logging
import time
from abc import ABC, abstractmethod
from typing import Generic, Optional, TypeVar

from ..backend.client import BackendClient
from ..cancellation import CancellationScope
from ..exceptions import ApplicationError, CancelledError, GenerationError
from ..result import StageResult

logger = logging.getLogger(__name__)

P = TypeVar("P")
T = TypeVar("T")


class Stage(ABC, Generic[P, T]):
    """
    Abstract base class for stages.

    Subclasses implement _execute(); call() adds scope registration,
    the stage timeout, timing and error capture.
    """

    name: str = "stage"

    def __init__(self, client: BackendClient, timeout: Optional[float] = None):
        """
        Initialize the stage.

        Args:
            client: Backend client used for the stage's requests
            timeout: Overall deadline for one call, or None for no stage deadline
        """
        self.client = client
        self.timeout = timeout

    async def call(self, payload: P, scope: CancellationScope) -> StageResult[T]:
        """
        Run the stage inside a cancellation scope.

        Args:
            payload: Stage input
            scope: Scope of the generation the call belongs to

        Returns:
            StageResult with the stage output or the failure
        """
        start = time.monotonic()
        try:
            value = await scope.run(self._execute(payload), timeout=self.timeout)
        except CancelledError as e:
            logger.debug(f"{self.name} stage cancelled")
            return StageResult.failure(e, elapsed=time.monotonic() - start)
        except GenerationError as e:
            logger.warning(f"{self.name} stage failed ({e.kind.value}): {e.message}")
            return StageResult.failure(e, elapsed=time.monotonic() - start)
        except Exception as e:
            logger.exception(f"Unexpected error in {self.name} stage: {e}")
            return StageResult.failure(
                ApplicationError(f"Unexpected {self.name} error: {e}"),
                elapsed=time.monotonic() - start,
            )

        elapsed = time.monotonic() - start
        logger.debug(f"{self.name} stage completed in {elapsed:.3f}s")
        return StageResult.ok(value, elapsed=elapsed)

    @abstractmethod
    async def _execute(self, payload: P) -> T:
        """
        Perform the backend operation.

        Raises:
            GenerationError: On any failure
        """
        pass
