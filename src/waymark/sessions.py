"""Explicitly owned registry of orchestrators keyed by caller session id."""

from __future__ import annotations

import logging
from typing import TYPE_CHECKING, Callable

from waymark.exceptions import SessionError
from waymark.orchestrator import Orchestrator

if TYPE_CHECKING:
    from waymark.browser.driver import BrowserDriver

logger = logging.getLogger(__name__)


class SessionStore:
    """Map session ids to live orchestrators.

    The store is an ordinary object: create one where cross-call continuity
    is needed and pass it to whatever layer needs it.

    Args:
        factory: Builds an orchestrator for a driver. Defaults to
            ``Orchestrator`` with global settings.
    """

    def __init__(self, factory: Callable[[BrowserDriver], Orchestrator] = Orchestrator) -> None:
        self._factory = factory
        self._sessions: dict[str, Orchestrator] = {}

    def create(self, session_id: str, driver: BrowserDriver) -> Orchestrator:
        """Create and register an orchestrator for *driver*.

        Raises:
            SessionError: If *session_id* is empty or already registered.
        """
        if not session_id:
            raise SessionError("Session id must not be empty")
        if session_id in self._sessions:
            raise SessionError(f"Session already exists: {session_id}")
        orchestrator = self._factory(driver)
        self._sessions[session_id] = orchestrator
        logger.debug("Created session %s", session_id)
        return orchestrator

    def get(self, session_id: str) -> Orchestrator:
        """Return the orchestrator for *session_id*.

        Raises:
            SessionError: If the session is unknown.
        """
        try:
            return self._sessions[session_id]
        except KeyError:
            raise SessionError(f"Unknown session: {session_id}") from None

    def remove(self, session_id: str) -> None:
        """Close and forget the orchestrator for *session_id*.

        Raises:
            SessionError: If the session is unknown.
        """
        orchestrator = self._sessions.pop(session_id, None)
        if orchestrator is None:
            raise SessionError(f"Unknown session: {session_id}")
        orchestrator.close()
        logger.debug("Removed session %s", session_id)

    def session_ids(self) -> list[str]:
        return list(self._sessions)

    def __contains__(self, session_id: object) -> bool:
        return session_id in self._sessions

    def __len__(self) -> int:
        return len(self._sessions)
