"""
Process-wide registry of generation sessions.
"""

import asyncio
import logging
from typing import Callable, Dict, List, Optional

from ..backend.client import BackendClient
from ..history import HttpHistoryRecorder
from ..orchestrator import GenerationOrchestrator
from ..session import GenerationSession

logger = logging.getLogger(__name__)


class SessionLimitError(Exception):
    """The registry is full."""


class SessionRegistry:
    """
    Sessions keyed by id, sharing one backend client and orchestrator.

    Sessions are created on first use.
    """

    def __init__(
        self,
        orchestrator_factory: Optional[Callable[[], GenerationOrchestrator]] = None,
        max_sessions: int = 1000,
    ):
        """
        Initialize the registry.

        Args:
            orchestrator_factory: Builds the shared orchestrator on first use;
                defaults to one backed by BackendClient with HTTP history
            max_sessions: Maximum concurrent sessions
        """
        self.max_sessions = max_sessions
        self._orchestrator_factory = orchestrator_factory
        self._orchestrator: Optional[GenerationOrchestrator] = None
        self._client: Optional[BackendClient] = None
        self._sessions: Dict[str, GenerationSession] = {}
        self._lock = asyncio.Lock()

    @property
    def orchestrator(self) -> GenerationOrchestrator:
        if self._orchestrator is None:
            if self._orchestrator_factory is not None:
                self._orchestrator = self._orchestrator_factory()
            else:
                self._client = BackendClient()
                self._orchestrator = GenerationOrchestrator(
                    self._client, history=HttpHistoryRecorder(self._client)
                )
        return self._orchestrator

    async def get_or_create(self, session_id: str) -> GenerationSession:
        """Get a session, creating it if needed."""
        async with self._lock:
            session = self._sessions.get(session_id)
            if session is None:
                if len(self._sessions) >= self.max_sessions:
                    raise SessionLimitError(f"Maximum sessions ({self.max_sessions}) reached")
                session = GenerationSession(self.orchestrator, session_id=session_id)
                self._sessions[session_id] = session
                logger.info(f"Session {session_id} created")
            return session

    async def remove(self, session_id: str) -> Optional[GenerationSession]:
        """Remove a session and cancel its work."""
        async with self._lock:
            session = self._sessions.pop(session_id, None)
        if session is not None:
            await session.aclose()
        return session

    async def close_all(self) -> None:
        """Cancel every session and close the backend client."""
        async with self._lock:
            sessions = list(self._sessions.values())
            self._sessions.clear()
        for session in sessions:
            await session.aclose()
        if self._client is not None:
            await self._client.aclose()
            self._client = None
        self._orchestrator = None

    def list_active(self) -> List[str]:
        """List session ids with a generation in flight."""
        return [sid for sid, session in self._sessions.items() if session.busy]

    def count(self) -> int:
        return len(self._sessions)


# Global registry instance
_registry: Optional[SessionRegistry] = None


def get_registry() -> SessionRegistry:
    """Get the global session registry."""
    global _registry
    if _registry is None:
        _registry = SessionRegistry()
    return _registry
