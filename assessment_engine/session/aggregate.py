"""
Assessment session aggregate.

One session owns its status, its issued questions and its response history.
Status only moves along the transition table below; every other move raises
InvalidStateError and leaves the session untouched.

    created -> active -> completed
    created -> abandoned
    active  -> abandoned
"""
from __future__ import annotations

from dataclasses import dataclass, field
from datetime import datetime, timedelta
from typing import Any, Optional

from assessment_engine.adaptive.difficulty_controller import ControllerConfig, DifficultyController
from assessment_engine.errors import InvalidStateError
from assessment_engine.models import (
    AccessibilityProfile,
    AdaptiveSettings,
    AssessmentType,
    CulturalContext,
    ResponseRecord,
    SessionStatus,
    StudentProfile,
    Tier,
    utcnow,
)

TRANSITIONS: dict[SessionStatus, frozenset[SessionStatus]] = {
    SessionStatus.CREATED: frozenset({SessionStatus.ACTIVE, SessionStatus.ABANDONED}),
    SessionStatus.ACTIVE: frozenset({SessionStatus.COMPLETED, SessionStatus.ABANDONED}),
    SessionStatus.COMPLETED: frozenset(),
    SessionStatus.ABANDONED: frozenset(),
}


@dataclass
class AssessmentSession:
    """Mutable session state. Only the engine mutates it, under the session lock."""

    session_id: str
    student_id: str
    subject: str
    assessment_type: AssessmentType = AssessmentType.DIAGNOSTIC
    initial_difficulty: Tier = Tier.MEDIUM
    current_difficulty: Tier = Tier.MEDIUM
    cultural_context: Optional[CulturalContext] = None
    accessibility_profile: Optional[AccessibilityProfile] = None
    adaptive_settings: AdaptiveSettings = field(default_factory=AdaptiveSettings)
    student_profile: Optional[StudentProfile] = None
    question_budget: int = 10
    status: SessionStatus = SessionStatus.CREATED
    created_at: datetime = field(default_factory=utcnow)
    completed_at: Optional[datetime] = None
    abandoned_reason: Optional[str] = None
    last_activity_at: datetime = field(default_factory=utcnow)
    issued_question_ids: list[str] = field(default_factory=list)
    records: list[ResponseRecord] = field(default_factory=list)
    results: Optional[dict[str, Any]] = None
    controller: Optional[DifficultyController] = field(default=None, repr=False, compare=False)

    def transition(self, target: SessionStatus, operation: str) -> None:
        if target not in TRANSITIONS[self.status]:
            raise InvalidStateError(self.session_id, self.status.value, operation)
        self.status = target

    def require(self, status: SessionStatus, operation: str) -> None:
        if self.status is not status:
            raise InvalidStateError(self.session_id, self.status.value, operation)

    def ensure_controller(self, config: ControllerConfig) -> DifficultyController:
        """Controller for this session, rebuilt from history when missing."""
        if self.controller is None:
            self.controller = DifficultyController.replay(
                self.initial_difficulty,
                (record.evaluation for record in self.records),
                config,
                enabled=self.adaptive_settings.difficulty_adjustment,
            )
        return self.controller

    def snapshot(self) -> tuple[ResponseRecord, ...]:
        """Immutable view of the history for pure computations."""
        return tuple(self.records)

    @property
    def budget_exhausted(self) -> bool:
        return len(self.records) >= self.question_budget

    @property
    def budget_remaining(self) -> int:
        return max(0, self.question_budget - len(self.records))

    def is_expired(self, now: datetime, expiry_minutes: int) -> bool:
        if self.status.is_terminal:
            return False
        return now - self.last_activity_at > timedelta(minutes=expiry_minutes)

    def to_dict(self) -> dict:
        return {
            "assessment_id": self.session_id,
            "student_id": self.student_id,
            "subject": self.subject,
            "assessment_type": self.assessment_type.value,
            "status": self.status.value,
            "current_difficulty": self.current_difficulty.value,
            "cultural_context": self.cultural_context.to_dict() if self.cultural_context else None,
            "accessibility_profile": (
                self.accessibility_profile.to_dict() if self.accessibility_profile else None
            ),
            "adaptive_settings": self.adaptive_settings.to_dict(),
            "responses": len(self.records),
            "question_budget": self.question_budget,
            "created_at": self.created_at.isoformat(),
            "completed_at": self.completed_at.isoformat() if self.completed_at else None,
            "abandoned_reason": self.abandoned_reason,
        }
