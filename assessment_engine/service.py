"""
Assessment service: the engine's external interface.

Validates request payloads with pydantic (camelCase or snake_case keys) and
maps them onto the engine:

- create_session          -> {assessment_id, questions, student_profile, adaptive_settings}
- submit_response         -> {feedback, next_question, difficulty_adjustment,
                              learning_insights, recommendations}
- complete_session        -> {results: {...}}
- recommendations_by_subject / difficulties_by_student: read paths over the
  student's completed sessions

Output keys are snake_case. Invalid payloads raise InvalidInputError.
"""
from __future__ import annotations

from typing import Any, Optional, TypeVar

from loguru import logger
from pydantic import AliasChoices, BaseModel, ConfigDict, Field, ValidationError
from pydantic.alias_generators import to_camel

from assessment_engine.errors import InvalidInputError
from assessment_engine.models import (
    AccessibilityProfile,
    AdaptiveSettings,
    AssessmentType,
    CulturalContext,
    EmotionalState,
    StudentProfile,
    Tier,
)
from assessment_engine.session import AssessmentEngine, AssessmentHistory


# ========================================
# Request Models
# ========================================


class RequestModel(BaseModel):
    """Base for request payloads: camelCase aliases, field names also accepted."""

    model_config = ConfigDict(
        alias_generator=to_camel,
        populate_by_name=True,
        extra="ignore",
        str_strip_whitespace=True,
    )


class CulturalContextModel(RequestModel):
    culture: Optional[str] = None
    language: Optional[str] = None
    region: Optional[str] = None


class AccessibilityProfileModel(RequestModel):
    visual: bool = False
    hearing: bool = False
    motor: bool = False
    cognitive: bool = False


class AdaptiveSettingsModel(RequestModel):
    difficulty_adjustment: bool = True
    cultural_adaptation: bool = True
    accessibility_features: bool = True
    real_time_analysis: bool = True
    personalized_feedback: bool = True
    learning_path_optimization: bool = True


class StudentProfileModel(RequestModel):
    age: Optional[int] = Field(None, ge=3, le=120)
    grade_level: Optional[int] = Field(None, ge=0, le=20)
    native_language: Optional[str] = None
    learning_preferences: list[str] = Field(default_factory=list)


class CreateSessionRequest(RequestModel):
    """Request model for creating an assessment session."""

    student_id: str = Field(..., min_length=1, description="Student identifier")
    subject: str = Field(..., min_length=1, description="Subject to assess")
    assessment_type: AssessmentType = Field(AssessmentType.DIAGNOSTIC)
    difficulty: Tier = Field(Tier.MEDIUM, description="Starting difficulty tier")
    cultural_context: Optional[CulturalContextModel] = None
    accessibility_profile: Optional[AccessibilityProfileModel] = None
    adaptive_settings: Optional[AdaptiveSettingsModel] = None
    student_profile: Optional[StudentProfileModel] = None


class SubmitResponseRequest(RequestModel):
    """Request model for submitting an answer."""

    assessment_id: str = Field(..., min_length=1)
    question_id: str = Field(..., min_length=1)
    answer: Any = None
    time_spent_ms: int = Field(
        0,
        validation_alias=AliasChoices("time_spent_ms", "timeSpentMs", "time_spent", "timeSpent"),
        description="Time spent on the question in milliseconds",
    )
    # Out-of-range values are clamped by the engine, not rejected
    confidence: Optional[float] = Field(0.5, allow_inf_nan=False)
    hints_used: int = 0
    attempts: int = 1
    emotional_state: Optional[EmotionalState] = None


class SessionRequest(RequestModel):
    """Request model for operations addressed to one session."""

    assessment_id: str = Field(..., min_length=1)
    reason: str = "cancelled"


ModelT = TypeVar("ModelT", bound=BaseModel)


def parse_request(model: type[ModelT], payload: dict[str, Any] | ModelT) -> ModelT:
    """Validate a payload, translating validation failures to InvalidInputError."""
    if isinstance(payload, model):
        return payload
    try:
        return model.model_validate(payload)
    except ValidationError as e:
        problems = "; ".join(
            f"{'.'.join(str(p) for p in err['loc']) or 'payload'}: {err['msg']}"
            for err in e.errors()
        )
        logger.warning(f"Rejected {model.__name__}: {problems}")
        raise InvalidInputError(f"Invalid {model.__name__}: {problems}") from e


# ========================================
# Service
# ========================================


class AssessmentService:
    """Request-level facade over the engine and the history read paths."""

    def __init__(self, engine: AssessmentEngine):
        self.engine = engine
        self.history = AssessmentHistory(engine.repository)

    def create_session(self, payload: dict[str, Any] | CreateSessionRequest) -> dict[str, Any]:
        request = parse_request(CreateSessionRequest, payload)
        return self.engine.create_session(
            student_id=request.student_id,
            subject=request.subject,
            assessment_type=request.assessment_type,
            difficulty=request.difficulty,
            cultural_context=(
                CulturalContext(**request.cultural_context.model_dump())
                if request.cultural_context else None
            ),
            accessibility_profile=(
                AccessibilityProfile(**request.accessibility_profile.model_dump())
                if request.accessibility_profile else None
            ),
            adaptive_settings=(
                AdaptiveSettings(**request.adaptive_settings.model_dump())
                if request.adaptive_settings else None
            ),
            student_profile=(
                StudentProfile.from_dict(request.student_id, request.student_profile.model_dump())
                if request.student_profile else None
            ),
        )

    def submit_response(self, payload: dict[str, Any] | SubmitResponseRequest) -> dict[str, Any]:
        request = parse_request(SubmitResponseRequest, payload)
        return self.engine.submit_response(
            session_id=request.assessment_id,
            question_id=request.question_id,
            answer=request.answer,
            time_spent_ms=request.time_spent_ms,
            confidence=request.confidence,
            hints_used=request.hints_used,
            attempts=request.attempts,
            emotional_state=request.emotional_state,
        )

    def complete_session(self, payload: dict[str, Any] | SessionRequest) -> dict[str, Any]:
        request = parse_request(SessionRequest, payload)
        return {"results": self.engine.complete(request.assessment_id)}

    def abandon_session(self, payload: dict[str, Any] | SessionRequest) -> dict[str, Any]:
        request = parse_request(SessionRequest, payload)
        return self.engine.abandon(request.assessment_id, request.reason)

    def recommendations_by_subject(self, student_id: str, subject: str) -> dict[str, Any]:
        if not student_id or not subject:
            raise InvalidInputError("student_id and subject are required")
        return {
            "student_id": student_id,
            "subject": subject,
            "recommendations": self.history.recommendations_by_subject(student_id, subject),
        }

    def difficulties_by_student(self, student_id: str) -> dict[str, Any]:
        if not student_id:
            raise InvalidInputError("student_id is required")
        return {
            "student_id": student_id,
            "difficulties": self.history.difficulties_by_student(student_id),
        }
