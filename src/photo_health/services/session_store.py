"""Storage for capture sessions keyed by session id."""

from dataclasses import dataclass
from typing import Protocol
from uuid import UUID

from photo_health.domain.sessions import CaptureSession


class SessionStore(Protocol):
    """Storage interface for capture sessions."""

    def add(self, session: CaptureSession) -> None:
        """Store a new session."""

    def get(self, session_id: UUID) -> CaptureSession | None:
        """Return a session by id, if present."""

    def save(self, session: CaptureSession) -> None:
        """Replace the stored state of an existing session."""

    def dispose(self, session_id: UUID) -> bool:
        """Remove a session; return True if it existed."""

    def list_sessions(self) -> list[CaptureSession]:
        """Return stored sessions, oldest first."""


@dataclass
class InMemorySessionStore(SessionStore):
    """In-process session store."""

    _sessions: dict[UUID, CaptureSession]

    def __init__(self) -> None:
        self._sessions = {}

    def add(self, session: CaptureSession) -> None:
        """Store a new session."""
        if session.id in self._sessions:
            raise ValueError(f"Session already exists: {session.id}")
        self._sessions[session.id] = session

    def get(self, session_id: UUID) -> CaptureSession | None:
        """Return a session by id, if present."""
        return self._sessions.get(session_id)

    def save(self, session: CaptureSession) -> None:
        """Replace the stored state of an existing session."""
        if session.id not in self._sessions:
            raise KeyError(session.id)
        self._sessions[session.id] = session

    def dispose(self, session_id: UUID) -> bool:
        """Remove a session; return True if it existed."""
        return self._sessions.pop(session_id, None) is not None

    def list_sessions(self) -> list[CaptureSession]:
        """Return stored sessions, oldest first."""
        return sorted(self._sessions.values(), key=lambda session: session.created_at)
