"""
Session storage.

The engine loads and saves sessions through a SessionRepository. Persistence
is the caller's concern; the in-memory repository backs the CLI and tests.
"""
from __future__ import annotations

import threading
from typing import Optional, Protocol

from .aggregate import AssessmentSession


class SessionRepository(Protocol):
    """Protocol for session stores."""

    def get(self, session_id: str) -> Optional[AssessmentSession]:
        ...

    def save(self, session: AssessmentSession) -> None:
        ...

    def list_by_student(self, student_id: str) -> list[AssessmentSession]:
        ...

    def all(self) -> list[AssessmentSession]:
        ...


class InMemorySessionRepository:
    """Thread-safe dict of sessions keyed by id."""

    def __init__(self):
        self._sessions: dict[str, AssessmentSession] = {}
        self._lock = threading.Lock()

    def __len__(self) -> int:
        return len(self._sessions)

    def get(self, session_id: str) -> Optional[AssessmentSession]:
        with self._lock:
            return self._sessions.get(session_id)

    def save(self, session: AssessmentSession) -> None:
        with self._lock:
            self._sessions[session.session_id] = session

    def list_by_student(self, student_id: str) -> list[AssessmentSession]:
        with self._lock:
            sessions = [s for s in self._sessions.values() if s.student_id == student_id]
        return sorted(sessions, key=lambda s: s.created_at)

    def all(self) -> list[AssessmentSession]:
        with self._lock:
            return list(self._sessions.values())
