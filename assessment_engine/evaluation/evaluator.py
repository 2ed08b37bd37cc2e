"""
Response Evaluator.

Scores one submitted answer against its question:
1. Blank answers are a TIMEOUT or an OMISSION depending on time spent
2. The answer kind handler decodes the raw answer; a shape mismatch is a
   CONCEPTUAL error and never an exception
3. Wrong answers are classified by priority: reversal, spelling-level near
   miss (substitution/omission/insertion), then the subject rule table
4. quality = 0.6 * correct + 0.2 * confidence + 0.2 * clamp(expected / actual, 0, 1)

The evaluator is a pure function of (question, response).
"""
from __future__ import annotations

from typing import TYPE_CHECKING

from loguru import logger

from assessment_engine.models import (
    AnswerKind,
    ErrorClass,
    EvaluationResult,
    Question,
    Response,
)

from . import get_handler
from .base import AnswerTypeMismatch, Comparison, is_blank
from .error_rules import classify

if TYPE_CHECKING:
    from config import Settings


CORRECTNESS_WEIGHT = 0.6
CONFIDENCE_WEIGHT = 0.2
SPEED_WEIGHT = 0.2


def _clamp(value: float, low: float = 0.0, high: float = 1.0) -> float:
    return max(low, min(high, value))


class ResponseEvaluator:
    """
    Evaluate responses into EvaluationResults.

    Args:
        edit_distance_tolerance: Max edit distance for a near miss
        timeout_ms: Blank answers at or beyond this time are timeouts
        default_expected_time_ms: Used when a question declares no expected time
        calculation_tolerance: Relative error under which a number is a slip
    """

    def __init__(
        self,
        edit_distance_tolerance: int = 2,
        timeout_ms: int = 120_000,
        default_expected_time_ms: int = 60_000,
        calculation_tolerance: float = 0.25,
    ):
        self.edit_distance_tolerance = edit_distance_tolerance
        self.timeout_ms = timeout_ms
        self.default_expected_time_ms = default_expected_time_ms
        self.calculation_tolerance = calculation_tolerance

    @classmethod
    def from_settings(cls, settings: Settings) -> ResponseEvaluator:
        return cls(
            edit_distance_tolerance=settings.edit_distance_tolerance,
            timeout_ms=settings.timeout_ms,
            default_expected_time_ms=settings.default_expected_time_ms,
            calculation_tolerance=settings.numeric_calculation_tolerance,
        )

    def expected_time_ms(self, question: Question) -> int:
        return question.expected_time_ms or self.default_expected_time_ms

    def evaluate(self, question: Question, response: Response) -> EvaluationResult:
        """Score a single response. Never raises for malformed answers."""
        confidence = _clamp(float(response.confidence))
        time_spent = response.time_spent_ms
        expected_ms = self.expected_time_ms(question)

        if time_spent > 0:
            speed_ratio = expected_ms / time_spent
            speed_term = _clamp(speed_ratio)
        else:
            # Zero is an instant answer; negative times are inconsistent data
            speed_ratio = 0.0
            speed_term = 1.0 if time_spent == 0 else 0.0

        correct = False
        edit_distance = None
        if is_blank(response.raw_answer):
            error_class = ErrorClass.TIMEOUT if time_spent > self.timeout_ms else ErrorClass.OMISSION
        else:
            handler = get_handler(question.answer_kind)
            try:
                answer = handler.decode(response.raw_answer)
            except AnswerTypeMismatch as e:
                logger.debug(f"Answer type mismatch on {question.id}: {e}")
                error_class = ErrorClass.CONCEPTUAL
            else:
                comparison = handler.compare(question, answer)
                correct = comparison.correct
                edit_distance = comparison.edit_distance
                error_class = ErrorClass.NONE if correct else self._classify(question, comparison)

        quality = (
            CORRECTNESS_WEIGHT * (1.0 if correct else 0.0)
            + CONFIDENCE_WEIGHT * confidence
            + SPEED_WEIGHT * speed_term
        )

        result = EvaluationResult(
            question_id=question.id,
            correct=correct,
            error_class=error_class,
            quality_score=quality,
            time_spent_ms=time_spent,
            speed_ratio=speed_ratio,
            confidence=confidence,
            edit_distance=edit_distance,
        )

        logger.debug(
            f"Evaluated {question.id}: correct={correct} error={error_class.value} "
            f"quality={quality:.2f}"
        )
        return result

    def _classify(self, question: Question, comparison: Comparison) -> ErrorClass:
        distance = comparison.edit_distance
        near_miss = distance is not None and 0 < distance <= self.edit_distance_tolerance

        if near_miss and comparison.reversal:
            return ErrorClass.REVERSAL

        if near_miss and question.answer_kind is AnswerKind.TEXT and not comparison.transposition:
            expected_len = len(str(question.expected_answer))
            # A near miss on a very short word is a different word
            if distance < expected_len:
                if comparison.length_delta < 0:
                    return ErrorClass.OMISSION
                if comparison.length_delta > 0:
                    return ErrorClass.INSERTION
                return ErrorClass.SUBSTITUTION

        return classify(question, comparison, self.calculation_tolerance)
