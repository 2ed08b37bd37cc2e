"""
Assessment sessions: the session aggregate, its storage and the orchestrator.
"""

from .aggregate import TRANSITIONS, AssessmentSession
from .engine import AssessmentEngine
from .history import AssessmentHistory
from .repository import InMemorySessionRepository, SessionRepository

__all__ = [
    "TRANSITIONS",
    "AssessmentEngine",
    "AssessmentHistory",
    "AssessmentSession",
    "InMemorySessionRepository",
    "SessionRepository",
]
