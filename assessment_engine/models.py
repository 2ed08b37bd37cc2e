"""
Data models for the adaptive assessment engine.

Sessions, questions and responses are the only records with identity.
Everything else (evaluations, adjustments, findings, recommendations) is a
pure derivation that can be recomputed from them.
"""
from __future__ import annotations

from dataclasses import dataclass, field, replace
from datetime import datetime, timezone
from enum import Enum
from typing import Any, Optional


def utcnow() -> datetime:
    return datetime.now(timezone.utc)


# ========================================
# Enums
# ========================================


class Tier(str, Enum):
    """Difficulty tier of a question and of a session."""

    EASY = "easy"
    MEDIUM = "medium"
    HARD = "hard"

    @property
    def rank(self) -> int:
        return TIER_ORDER.index(self)

    @property
    def is_top(self) -> bool:
        return self is TIER_ORDER[-1]

    @property
    def is_bottom(self) -> bool:
        return self is TIER_ORDER[0]

    def step_up(self) -> Tier:
        """Next tier up, or the same tier at the top."""
        return TIER_ORDER[min(self.rank + 1, len(TIER_ORDER) - 1)]

    def step_down(self) -> Tier:
        """Next tier down, or the same tier at the bottom."""
        return TIER_ORDER[max(self.rank - 1, 0)]


TIER_ORDER = (Tier.EASY, Tier.MEDIUM, Tier.HARD)


class AssessmentType(str, Enum):
    DIAGNOSTIC = "diagnostic"
    PROGRESS = "progress"
    MASTERY = "mastery"
    REMEDIAL = "remedial"


class SessionStatus(str, Enum):
    """
    Lifecycle of an assessment session.

    created -> active -> completed, and abandoned from created or active.
    """

    CREATED = "created"
    ACTIVE = "active"
    COMPLETED = "completed"
    ABANDONED = "abandoned"

    @property
    def is_terminal(self) -> bool:
        return self in (SessionStatus.COMPLETED, SessionStatus.ABANDONED)


class AnswerKind(str, Enum):
    """Shape of an expected answer."""

    TEXT = "text"
    NUMBER = "number"
    LIST = "list"
    BOOLEAN = "boolean"

    @classmethod
    def of(cls, value: Any) -> AnswerKind:
        """Infer the kind from a Python value (bool is checked before int)."""
        if isinstance(value, bool):
            return cls.BOOLEAN
        if isinstance(value, (int, float)):
            return cls.NUMBER
        if isinstance(value, (list, tuple)):
            return cls.LIST
        return cls.TEXT


class QuestionDomain(str, Enum):
    """Broad skill family of a question, used by the difficulty detector."""

    READING = "reading"
    MATH = "math"
    GENERAL = "general"

    @classmethod
    def for_subject(cls, subject: str) -> QuestionDomain:
        key = (subject or "").strip().lower()
        if key in READING_SUBJECTS:
            return cls.READING
        if key in MATH_SUBJECTS:
            return cls.MATH
        return cls.GENERAL


READING_SUBJECTS = {
    "reading", "literacy", "language", "language_arts", "english", "spanish", "phonics", "spelling",
}
MATH_SUBJECTS = {
    "math", "mathematics", "arithmetic", "algebra", "geometry", "numeracy",
}


class ErrorClass(str, Enum):
    """Normalized classification of a wrong answer."""

    NONE = "none"
    SUBSTITUTION = "substitution"
    OMISSION = "omission"
    INSERTION = "insertion"
    REVERSAL = "reversal"
    TRANSPOSITION = "transposition"
    CONCEPTUAL = "conceptual"
    PROCEDURAL = "procedural"
    CALCULATION = "calculation"
    TIMEOUT = "timeout"


LETTER_LEVEL_ERRORS = frozenset({
    ErrorClass.REVERSAL,
    ErrorClass.SUBSTITUTION,
    ErrorClass.TRANSPOSITION,
})


class EmotionalState(str, Enum):
    FRUSTRATED = "frustrated"
    CONFIDENT = "confident"
    CONFUSED = "confused"
    ENGAGED = "engaged"


class Direction(str, Enum):
    INCREASE = "increase"
    DECREASE = "decrease"
    HOLD = "hold"


class DifficultyType(str, Enum):
    """Learning-difficulty categories the detector can signal."""

    DYSLEXIA = "DYSLEXIA"
    DYSCALCULIA = "DYSCALCULIA"
    ATTENTION = "ATTENTION"
    PROCESSING_SPEED = "PROCESSING_SPEED"


class Severity(str, Enum):
    MILD = "mild"
    MODERATE = "moderate"
    SEVERE = "severe"


class Priority(str, Enum):
    LOW = "low"
    NORMAL = "normal"
    HIGH = "high"

    @property
    def rank(self) -> int:
        return {"low": 0, "normal": 1, "high": 2}[self.value]


# ========================================
# Context
# ========================================


@dataclass(frozen=True)
class CulturalContext:
    """Pre-resolved cultural context of a student."""

    culture: Optional[str] = None
    language: Optional[str] = None
    region: Optional[str] = None

    @classmethod
    def from_dict(cls, data: dict | None) -> Optional[CulturalContext]:
        if not data:
            return None
        return cls(
            culture=data.get("culture"),
            language=data.get("language"),
            region=data.get("region"),
        )

    def to_dict(self) -> dict:
        return {"culture": self.culture, "language": self.language, "region": self.region}


@dataclass(frozen=True)
class AccessibilityProfile:
    """Declared accessibility needs. Each flag is a hard constraint."""

    visual: bool = False
    hearing: bool = False
    motor: bool = False
    cognitive: bool = False

    @property
    def flags(self) -> set[str]:
        return {name for name in ("visual", "hearing", "motor", "cognitive") if getattr(self, name)}

    @classmethod
    def from_dict(cls, data: dict | None) -> Optional[AccessibilityProfile]:
        if not data:
            return None
        return cls(
            visual=bool(data.get("visual", False)),
            hearing=bool(data.get("hearing", False)),
            motor=bool(data.get("motor", False)),
            cognitive=bool(data.get("cognitive", False)),
        )

    def to_dict(self) -> dict:
        return {
            "visual": self.visual,
            "hearing": self.hearing,
            "motor": self.motor,
            "cognitive": self.cognitive,
        }


@dataclass(frozen=True)
class StudentProfile:
    """What the engine knows about the student. Supplied by the caller."""

    student_id: str
    age: Optional[int] = None
    grade_level: Optional[int] = None
    native_language: Optional[str] = None
    learning_preferences: tuple[str, ...] = ()

    @classmethod
    def from_dict(cls, student_id: str, data: dict | None) -> StudentProfile:
        data = data or {}
        return cls(
            student_id=student_id,
            age=data.get("age"),
            grade_level=data.get("grade_level"),
            native_language=data.get("native_language"),
            learning_preferences=tuple(data.get("learning_preferences") or ()),
        )

    def to_dict(self) -> dict:
        return {
            "student_id": self.student_id,
            "age": self.age,
            "grade_level": self.grade_level,
            "native_language": self.native_language,
            "learning_preferences": list(self.learning_preferences),
        }


@dataclass(frozen=True)
class AdaptiveSettings:
    """Per-session switches for the adaptive features."""

    difficulty_adjustment: bool = True
    cultural_adaptation: bool = True
    accessibility_features: bool = True
    real_time_analysis: bool = True
    personalized_feedback: bool = True
    learning_path_optimization: bool = True

    def to_dict(self) -> dict:
        return {
            "difficulty_adjustment": self.difficulty_adjustment,
            "cultural_adaptation": self.cultural_adaptation,
            "accessibility_features": self.accessibility_features,
            "real_time_analysis": self.real_time_analysis,
            "personalized_feedback": self.personalized_feedback,
            "learning_path_optimization": self.learning_path_optimization,
        }


# ========================================
# Questions
# ========================================


@dataclass(frozen=True)
class CulturalVariant:
    """Culture-specific overlay of a question's wording and examples."""

    prompt: Optional[str] = None
    examples: tuple[str, ...] = ()


@dataclass(frozen=True)
class AccessibilityVariant:
    """Rendering hints and media facts for accessible delivery."""

    large_font: bool = False
    audio_first: bool = False
    has_audio: bool = False
    has_visual_aids: bool = False
    # None until resolved against the question prompt
    has_text_alternative: Optional[bool] = None
    screen_reader_compatible: bool = True
    requires_fine_motor: bool = False

    def conflicts_with(self, profile: Optional[AccessibilityProfile]) -> bool:
        """True when the item cannot be delivered under the declared profile."""
        if profile is None:
            return False
        if profile.hearing and self.has_audio and not self.has_text_alternative:
            return True
        if profile.visual and self.has_visual_aids and not (
            self.screen_reader_compatible or self.has_audio
        ):
            return True
        if profile.motor and self.requires_fine_motor:
            return True
        return False


@dataclass(frozen=True)
class Question:
    """An assessment item. Immutable once issued to a session."""

    id: str
    subject: str
    difficulty: Tier
    expected_answer: Any = field(hash=False)
    prompt: str = ""
    skill: str = "general"
    domain: Optional[QuestionDomain] = None
    answer_kind: Optional[AnswerKind] = None
    expected_time_ms: Optional[int] = None
    language: Optional[str] = None
    options: tuple[str, ...] = ()
    hints: tuple[str, ...] = ()
    explanation: Optional[str] = None
    cultural_variants: dict[str, CulturalVariant] = field(default_factory=dict, hash=False, compare=False)
    accessibility_variant: Optional[AccessibilityVariant] = None
    metadata: dict[str, Any] = field(default_factory=dict, hash=False, compare=False)

    def __post_init__(self) -> None:
        if self.domain is None:
            object.__setattr__(self, "domain", QuestionDomain.for_subject(self.subject))
        if self.answer_kind is None:
            object.__setattr__(self, "answer_kind", AnswerKind.of(self.expected_answer))
        access = self.accessibility_variant
        if access is not None and access.has_text_alternative is None:
            # A written prompt is the text alternative to the audio
            resolved = replace(access, has_text_alternative=bool(self.prompt.strip()))
            object.__setattr__(self, "accessibility_variant", resolved)

    @classmethod
    def from_dict(cls, data: dict) -> Question:
        """
        Create a Question from a dictionary (JSON).

        Accepts both the flat shape and the nested ``content``/``metadata``
        shape used by the platform's question authoring tools.
        """
        content = data.get("content") or {}
        metadata = dict(data.get("metadata") or {})
        if "steps" in metadata:
            metadata["steps"] = int(metadata["steps"])
        expected = data.get("expected_answer", content.get("correct_answer"))
        if expected is None:
            raise ValueError(f"Question {data.get('id')!r} has no expected answer")

        variants = {
            culture: CulturalVariant(
                prompt=variant.get("prompt"),
                examples=tuple(variant.get("examples", [])),
            )
            for culture, variant in (data.get("cultural_variants") or {}).items()
        }
        access = data.get("accessibility_variant") or metadata.pop("accessibility", None)
        kind = data.get("answer_kind")
        domain = data.get("domain")

        return cls(
            id=str(data["id"]),
            subject=data.get("subject") or metadata.get("subject", "general"),
            difficulty=Tier(data.get("difficulty", "medium")),
            expected_answer=tuple(expected) if isinstance(expected, list) else expected,
            prompt=data.get("prompt") or content.get("question", ""),
            skill=data.get("skill") or metadata.get("skill", "general"),
            domain=QuestionDomain(domain) if domain else None,
            answer_kind=AnswerKind(kind) if kind else None,
            expected_time_ms=data.get("expected_time_ms") or metadata.get("estimated_time_ms"),
            language=data.get("language"),
            options=tuple(data.get("options") or content.get("options") or ()),
            hints=tuple(data.get("hints") or content.get("hints") or ()),
            explanation=data.get("explanation") or content.get("explanation"),
            cultural_variants=variants,
            accessibility_variant=AccessibilityVariant(**access) if access else None,
            metadata=metadata,
        )

    def render(
        self,
        cultural_context: Optional[CulturalContext] = None,
        accessibility_profile: Optional[AccessibilityProfile] = None,
        settings: Optional[AdaptiveSettings] = None,
    ) -> dict:
        """Student-facing payload with overlays applied. Never exposes the answer."""
        settings = settings or AdaptiveSettings()
        prompt = self.prompt
        examples: tuple[str, ...] = ()
        if settings.cultural_adaptation and cultural_context and cultural_context.culture:
            variant = self.cultural_variants.get(cultural_context.culture)
            if variant:
                prompt = variant.prompt or prompt
                examples = variant.examples

        presentation: dict[str, Any] = {}
        if settings.accessibility_features and accessibility_profile:
            access = self.accessibility_variant or AccessibilityVariant()
            presentation = {
                "large_font": access.large_font or accessibility_profile.visual,
                "audio_first": access.audio_first or (
                    accessibility_profile.visual and access.has_audio
                ),
                "captions": accessibility_profile.hearing,
                "extended_time": accessibility_profile.cognitive or accessibility_profile.motor,
            }

        return {
            "id": self.id,
            "subject": self.subject,
            "skill": self.skill,
            "difficulty": self.difficulty.value,
            "answer_kind": self.answer_kind.value,
            "prompt": prompt,
            "options": list(self.options),
            "examples": list(examples),
            "hint_count": len(self.hints),
            "presentation": presentation,
        }


# ========================================
# Responses & derived records
# ========================================


@dataclass(frozen=True)
class Response:
    """A submitted answer. Never mutated; corrections are new responses."""

    session_id: str
    question_id: str
    raw_answer: Any = field(hash=False)
    time_spent_ms: int = 0
    confidence: float = 0.5
    hints_used: int = 0
    attempts: int = 1
    emotional_state: Optional[EmotionalState] = None
    evaluated_at: datetime = field(default_factory=utcnow)

    def to_dict(self) -> dict:
        return {
            "session_id": self.session_id,
            "question_id": self.question_id,
            "raw_answer": self.raw_answer,
            "time_spent_ms": self.time_spent_ms,
            "confidence": self.confidence,
            "hints_used": self.hints_used,
            "attempts": self.attempts,
            "emotional_state": self.emotional_state.value if self.emotional_state else None,
            "evaluated_at": self.evaluated_at.isoformat(),
        }


@dataclass(frozen=True)
class EvaluationResult:
    """Score of a single response against its question."""

    question_id: str
    correct: bool
    error_class: ErrorClass
    quality_score: float
    time_spent_ms: int = 0
    speed_ratio: float = 0.0  # expected / actual, unclamped
    confidence: float = 0.5
    edit_distance: Optional[int] = None

    @property
    def is_consistent(self) -> bool:
        """False for entries that must not feed aggregate statistics."""
        return self.time_spent_ms >= 0 and 0.0 <= self.quality_score <= 1.0

    def to_dict(self) -> dict:
        return {
            "question_id": self.question_id,
            "correct": self.correct,
            "error_class": self.error_class.value,
            "quality_score": round(self.quality_score, 4),
            "time_spent_ms": self.time_spent_ms,
            "edit_distance": self.edit_distance,
        }


@dataclass(frozen=True)
class DifficultyAdjustment:
    """Decision of the difficulty controller after one evaluation."""

    direction: Direction
    previous_tier: Tier
    new_tier: Tier
    rationale: tuple[str, ...] = ()
    window_mean: Optional[float] = None

    def to_dict(self) -> dict:
        return {
            "direction": self.direction.value,
            "previous_tier": self.previous_tier.value,
            "new_tier": self.new_tier.value,
            "rationale": list(self.rationale),
            "window_mean": round(self.window_mean, 4) if self.window_mean is not None else None,
        }


@dataclass(frozen=True)
class ResponseRecord:
    """A response together with everything derived from it."""

    question: Question
    response: Response
    evaluation: EvaluationResult
    adjustment: Optional[DifficultyAdjustment] = None


@dataclass
class LearningDifficulty:
    """
    A heuristic learning-difficulty signal, never a diagnosis.

    Attributes:
        type: Difficulty category
        severity: Band derived from the confidence score
        confidence: Normalized score (0-1)
        supporting_indicators: Observed signals that raised the score
        recommended_accommodations: Accommodation tags for downstream matching
        subject: Subject the evidence came from (None when cross-subject)
    """

    type: DifficultyType
    severity: Severity
    confidence: float
    supporting_indicators: list[str] = field(default_factory=list)
    recommended_accommodations: list[str] = field(default_factory=list)
    subject: Optional[str] = None
    metrics: dict[str, float] = field(default_factory=dict)

    def to_dict(self) -> dict:
        return {
            "type": self.type.value,
            "severity": self.severity.value,
            "confidence": round(self.confidence, 4),
            "supporting_indicators": list(self.supporting_indicators),
            "recommended_accommodations": list(self.recommended_accommodations),
            "subject": self.subject,
            "metrics": {k: round(v, 4) for k, v in self.metrics.items()},
        }


@dataclass
class LearningRecommendation:
    """A ranked lesson or intervention."""

    lesson_id: str
    priority: Priority
    rationale: str
    estimated_time_minutes: int
    cultural_fit: float
    accessibility_fit: float
    kind: str = "lesson"
    title: str = ""
    score: float = 0.0
    is_safe: bool = False

    def to_dict(self) -> dict:
        return {
            "lesson_id": self.lesson_id,
            "priority": self.priority.value,
            "rationale": self.rationale,
            "estimated_time_minutes": self.estimated_time_minutes,
            "cultural_fit": round(self.cultural_fit, 4),
            "accessibility_fit": round(self.accessibility_fit, 4),
            "kind": self.kind,
            "title": self.title,
        }
