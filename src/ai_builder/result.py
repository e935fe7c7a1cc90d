"""
Stage execution result.

This module defines the StageResult dataclass that represents
the outcome of one stage call.
"""

from dataclasses import dataclass, field
from typing import Any, Dict, Generic, Optional, TypeVar

from .exceptions import CancelledError, GenerationError

T = TypeVar("T")


@dataclass
class StageResult(Generic[T]):
    """
    Result of a stage call.

    Carries either a value or a GenerationError, never both, plus the
    elapsed wall-clock time of the call.
    """

    success: bool
    """Whether the stage succeeded."""

    value: Optional[T] = None
    """Stage output on success."""

    error: Optional[GenerationError] = None
    """Failure on error."""

    elapsed: float = 0.0
    """Elapsed time in seconds."""

    metadata: Dict[str, Any] = field(default_factory=dict)
    """Stage-specific extras (usage, tool name, warnings)."""

    def __post_init__(self):
        """Validate result after initialization."""
        if self.success and self.error is not None:
            raise ValueError("Successful result should not have an error")
        if not self.success and self.error is None:
            raise ValueError("Failed result must have an error")

    @classmethod
    def ok(cls, value: T, elapsed: float = 0.0, **metadata) -> "StageResult[T]":
        """Create a successful result."""
        return cls(success=True, value=value, elapsed=elapsed, metadata=metadata)

    @classmethod
    def failure(
        cls,
        error: GenerationError,
        elapsed: float = 0.0,
        **metadata
    ) -> "StageResult[T]":
        """Create an error result."""
        return cls(success=False, error=error, elapsed=elapsed, metadata=metadata)

    @property
    def cancelled(self) -> bool:
        return isinstance(self.error, CancelledError)

    def __repr__(self) -> str:
        status = "SUCCESS" if self.success else f"ERROR({self.error.kind.value})"
        return f"StageResult({status}, elapsed={self.elapsed:.3f}s)"
