"""
Learning-Difficulty Detector.

Heuristic pattern detection over a session's response history. Each category
has its own scoring function over error-class frequencies and timing
statistics:

1. DYSLEXIA: letter-level errors (reversal, substitution, transposition) on
   reading items combined with reading speed below the adjusted baseline
2. DYSCALCULIA: calculation, procedural and digit-reversal errors on math
   items combined with slow math work
3. ATTENTION: high variability of time spent, elevated hint usage, lapses
   (omissions, timeouts) and frustrated or confused states
4. PROCESSING_SPEED: acceptable correctness but persistently slow answers

Findings are signals, not diagnoses: each carries its confidence and the
indicators that raised it. Categories are not exclusive.

The baseline is adjusted for the student's age and for sessions delivered in
a language other than the student's native language, so that expected
slowness is not reported as a difficulty.
"""
from __future__ import annotations

from collections import defaultdict
from collections.abc import Sequence
from dataclasses import dataclass
from statistics import fmean, median, pstdev
from typing import TYPE_CHECKING, Optional

from loguru import logger

from assessment_engine.models import (
    LETTER_LEVEL_ERRORS,
    AnswerKind,
    DifficultyType,
    EmotionalState,
    ErrorClass,
    LearningDifficulty,
    QuestionDomain,
    ResponseRecord,
    Severity,
)

if TYPE_CHECKING:
    from assessment_engine.session.aggregate import AssessmentSession
    from config import Settings


MATH_ERRORS = frozenset({ErrorClass.CALCULATION, ErrorClass.PROCEDURAL})
LAPSE_ERRORS = frozenset({ErrorClass.OMISSION, ErrorClass.TIMEOUT})
LAPSE_STATES = frozenset({EmotionalState.FRUSTRATED, EmotionalState.CONFUSED})

# (max age, time allowance); younger students get more time
AGE_ALLOWANCES = ((8, 1.3), (11, 1.15))

ACCOMMODATIONS: dict[DifficultyType, list[str]] = {
    DifficultyType.DYSLEXIA: [
        "extra_time",
        "audio_support",
        "dyslexia_friendly_font",
        "text_to_speech",
    ],
    DifficultyType.DYSCALCULIA: [
        "calculator_allowed",
        "visual_manipulatives",
        "step_by_step_problems",
        "untimed_assessment",
    ],
    DifficultyType.ATTENTION: [
        "scheduled_breaks",
        "micro_lessons",
        "chunked_instructions",
        "visual_progress",
    ],
    DifficultyType.PROCESSING_SPEED: [
        "extra_time",
        "reduced_item_count",
        "untimed_assessment",
    ],
}


def _clamp(value: float) -> float:
    return max(0.0, min(1.0, value))


@dataclass
class DetectorConfig:
    """Configuration for difficulty detection."""

    min_sample_size: int = 5
    confidence_threshold: float = 0.6
    moderate_threshold: float = 0.72
    severe_threshold: float = 0.85
    second_language_allowance: float = 1.25
    slow_factor: float = 1.5

    @classmethod
    def from_settings(cls, settings: Settings) -> DetectorConfig:
        return cls(
            min_sample_size=settings.detector_min_sample_size,
            confidence_threshold=settings.detector_confidence_threshold,
            moderate_threshold=settings.severity_moderate_threshold,
            severe_threshold=settings.severity_severe_threshold,
        )

    def severity_for(self, confidence: float) -> Severity:
        if confidence > self.severe_threshold:
            return Severity.SEVERE
        if confidence > self.moderate_threshold:
            return Severity.MODERATE
        return Severity.MILD


@dataclass
class _Score:
    type: DifficultyType
    confidence: float
    indicators: list[str]
    metrics: dict[str, float]


class DifficultyDetector:
    """
    Score each difficulty category per subject and report those above threshold.

    Pure: the same session context and records always produce the same findings.
    """

    def __init__(self, config: DetectorConfig | None = None):
        self.config = config or DetectorConfig()

    def baseline_allowance(self, session: Optional[AssessmentSession]) -> float:
        """Multiplier applied to expected time for this student."""
        if session is None:
            return 1.0
        allowance = 1.0
        profile = session.student_profile
        if profile and profile.age is not None:
            for max_age, factor in AGE_ALLOWANCES:
                if profile.age <= max_age:
                    allowance *= factor
                    break
        language = session.cultural_context.language if session.cultural_context else None
        if profile and profile.native_language and language:
            if profile.native_language.lower() != language.lower():
                allowance *= self.config.second_language_allowance
        return allowance

    def detect(
        self,
        session: Optional[AssessmentSession],
        records: Sequence[ResponseRecord],
    ) -> list[LearningDifficulty]:
        """
        Detect learning-difficulty signals in a response history.

        Args:
            session: Session context (cultural context and student profile)
            records: Snapshot of the evaluated responses

        Returns:
            Findings sorted by confidence, empty when no subject has enough responses
        """
        by_subject: dict[str, list[ResponseRecord]] = defaultdict(list)
        for record in records:
            by_subject[record.question.subject.strip().lower()].append(record)

        allowance = self.baseline_allowance(session)
        hint_subjects = {
            subject for subject, items in by_subject.items()
            if any(r.response.hints_used > 0 for r in items)
        }

        findings: list[LearningDifficulty] = []
        for subject, items in sorted(by_subject.items()):
            if len(items) < self.config.min_sample_size:
                logger.debug(
                    f"Skipping detection for {subject}: {len(items)} responses "
                    f"< {self.config.min_sample_size}"
                )
                continue

            scores = [
                self._score_dyslexia(items, allowance),
                self._score_dyscalculia(items, allowance),
                self._score_attention(items, len(hint_subjects) > 1),
                self._score_processing_speed(items, allowance),
            ]
            for score in scores:
                if score is None or score.confidence <= self.config.confidence_threshold:
                    continue
                findings.append(
                    LearningDifficulty(
                        type=score.type,
                        severity=self.config.severity_for(score.confidence),
                        confidence=score.confidence,
                        supporting_indicators=score.indicators,
                        recommended_accommodations=list(ACCOMMODATIONS[score.type]),
                        subject=subject,
                        metrics=score.metrics,
                    )
                )

        findings.sort(key=lambda d: (-d.confidence, d.type.value, d.subject or ""))
        if findings:
            logger.info(
                "Detected difficulty signals: "
                + ", ".join(f"{d.type.value}({d.confidence:.2f})" for d in findings)
            )
        return findings

    # ----------------------------------------------------------------
    # Category scores
    # ----------------------------------------------------------------

    @staticmethod
    def _adjusted_ratios(items: Sequence[ResponseRecord], allowance: float) -> list[float]:
        return [
            r.evaluation.speed_ratio * allowance
            for r in items
            if r.evaluation.is_consistent and r.evaluation.time_spent_ms > 0
        ]

    def _score_dyslexia(self, items: Sequence[ResponseRecord], allowance: float) -> Optional[_Score]:
        reading = [r for r in items if r.question.domain is QuestionDomain.READING]
        if not reading:
            return None

        letter_errors = sum(1 for r in reading if r.evaluation.error_class in LETTER_LEVEL_ERRORS)
        if letter_errors < 2:
            return None

        error_rate = letter_errors / len(reading)
        ratios = self._adjusted_ratios(reading, allowance)
        speed = median(ratios) if ratios else 1.0
        slowdown = max(0.0, 1.0 - speed)

        confidence = _clamp(0.6 * min(1.0, error_rate / 0.6) + 0.4 * min(1.0, slowdown / 0.5))
        indicators = [f"letter_level_errors={letter_errors}/{len(reading)}"]
        reversals = sum(1 for r in reading if r.evaluation.error_class is ErrorClass.REVERSAL)
        if reversals:
            indicators.append(f"reversals={reversals}")
        if slowdown > 0:
            indicators.append(f"reading_speed={speed:.2f}x_baseline")
        if allowance != 1.0:
            indicators.append(f"baseline_allowance={allowance:.2f}")

        return _Score(
            type=DifficultyType.DYSLEXIA,
            confidence=confidence,
            indicators=indicators,
            metrics={"letter_error_rate": error_rate, "reading_speed_ratio": speed},
        )

    def _score_dyscalculia(self, items: Sequence[ResponseRecord], allowance: float) -> Optional[_Score]:
        math = [r for r in items if r.question.domain is QuestionDomain.MATH]
        if not math:
            return None

        def is_math_error(record: ResponseRecord) -> bool:
            error = record.evaluation.error_class
            if error in MATH_ERRORS:
                return True
            return error is ErrorClass.REVERSAL and record.question.answer_kind is AnswerKind.NUMBER

        math_errors = sum(1 for r in math if is_math_error(r))
        if math_errors < 2:
            return None

        error_rate = math_errors / len(math)
        ratios = self._adjusted_ratios(math, allowance)
        speed = median(ratios) if ratios else 1.0
        slowdown = max(0.0, 1.0 - speed)

        confidence = _clamp(0.7 * min(1.0, error_rate / 0.5) + 0.3 * min(1.0, slowdown / 0.5))
        indicators = [f"math_errors={math_errors}/{len(math)}"]
        digit_reversals = sum(1 for r in math if r.evaluation.error_class is ErrorClass.REVERSAL)
        if digit_reversals:
            indicators.append(f"digit_reversals={digit_reversals}")
        if slowdown > 0:
            indicators.append(f"math_speed={speed:.2f}x_baseline")

        return _Score(
            type=DifficultyType.DYSCALCULIA,
            confidence=confidence,
            indicators=indicators,
            metrics={"math_error_rate": error_rate, "math_speed_ratio": speed},
        )

    def _score_attention(
        self,
        items: Sequence[ResponseRecord],
        hints_across_subjects: bool,
    ) -> Optional[_Score]:
        times = [
            r.evaluation.time_spent_ms for r in items
            if r.evaluation.is_consistent and r.evaluation.time_spent_ms > 0
        ]
        if len(times) < 2:
            return None

        mean_time = fmean(times)
        variation = pstdev(times) / mean_time if mean_time > 0 else 0.0
        variance_component = _clamp((variation - 0.35) / 0.65)

        hint_rate = sum(1 for r in items if r.response.hints_used > 0) / len(items)
        hint_component = _clamp(hint_rate / 0.5)
        if hints_across_subjects:
            hint_component = _clamp(hint_component * 1.25)

        lapses = sum(
            1 for r in items
            if r.evaluation.error_class in LAPSE_ERRORS or r.response.emotional_state in LAPSE_STATES
        )
        lapse_rate = lapses / len(items)
        lapse_component = _clamp(lapse_rate / 0.4)

        confidence = _clamp(0.45 * variance_component + 0.35 * hint_component + 0.2 * lapse_component)
        indicators = [f"time_variation={variation:.2f}"]
        if hint_rate:
            indicators.append(f"hint_rate={hint_rate:.2f}")
        if hints_across_subjects:
            indicators.append("hints_across_subjects")
        if lapses:
            indicators.append(f"lapses={lapses}/{len(items)}")

        return _Score(
            type=DifficultyType.ATTENTION,
            confidence=confidence,
            indicators=indicators,
            metrics={"time_variation": variation, "hint_rate": hint_rate, "lapse_rate": lapse_rate},
        )

    def _score_processing_speed(
        self,
        items: Sequence[ResponseRecord],
        allowance: float,
    ) -> Optional[_Score]:
        accepted = [r for r in items if r.evaluation.correct]
        if len(accepted) < 3:
            return None

        ratios = self._adjusted_ratios(accepted, allowance)
        if not ratios:
            return None

        slow = sum(1 for ratio in ratios if ratio < 1.0 / self.config.slow_factor)
        persistence = slow / len(ratios)
        accuracy = len(accepted) / len(items)

        confidence = _clamp(persistence / 0.8) * (0.6 + 0.4 * _clamp(accuracy / 0.7))
        indicators = [
            f"slow_correct_answers={slow}/{len(ratios)}",
            f"accuracy={accuracy:.2f}",
        ]
        if allowance != 1.0:
            indicators.append(f"baseline_allowance={allowance:.2f}")

        return _Score(
            type=DifficultyType.PROCESSING_SPEED,
            confidence=confidence,
            indicators=indicators,
            metrics={"slow_persistence": persistence, "accuracy": accuracy},
        )
