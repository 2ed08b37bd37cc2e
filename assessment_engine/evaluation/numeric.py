"""
Numeric answer handler.

Handles numeric answers including:
- Python ints and floats
- Numeric strings ("12", " 3.5 ", "1,5" with a decimal comma, "1_000")

Supports a relative tolerance via ``metadata["tolerance"]``.
Digit reversals ("21" for "12") are flagged for the evaluator.
"""

import math
from typing import Any

from rapidfuzz.distance import Levenshtein

from assessment_engine.models import AnswerKind, Question

from . import register
from .base import AnswerTypeMismatch, Comparison, NumberAnswer
from .text_utils import is_character_reversal


def _digits(value: float) -> str:
    """Canonical digit string: integers without a trailing .0."""
    if value.is_integer():
        return str(int(value))
    return repr(value)


@register(AnswerKind.NUMBER)
class NumericHandler:
    """Handler for numeric answers."""

    def decode(self, raw: Any) -> NumberAnswer:
        if isinstance(raw, bool):
            raise AnswerTypeMismatch(f"Expected a number, got boolean {raw!r}")

        if isinstance(raw, (int, float)):
            try:
                value = float(raw)
            except OverflowError:
                raise AnswerTypeMismatch("Expected a number within float range") from None
        elif isinstance(raw, str):
            value = self._parse(raw)
        else:
            raise AnswerTypeMismatch(f"Expected a number, got {type(raw).__name__}")

        if math.isnan(value) or math.isinf(value):
            raise AnswerTypeMismatch(f"Expected a finite number, got {raw!r}")
        return NumberAnswer(value=value, digits=_digits(value))

    def compare(self, question: Question, answer: NumberAnswer) -> Comparison:
        expected = float(question.expected_answer)
        tolerance = float(question.metadata.get("tolerance", 0) or 0)

        if tolerance > 0 and expected != 0:
            correct = abs(answer.value - expected) <= abs(expected * tolerance)
        else:
            correct = math.isclose(answer.value, expected, abs_tol=1e-9)

        if correct:
            return Comparison(correct=True, edit_distance=0, relative_error=0.0)

        expected_digits = _digits(expected)
        given = answer.digits.lstrip("-")
        target = expected_digits.lstrip("-")
        return Comparison(
            correct=False,
            edit_distance=Levenshtein.distance(given, target),
            reversal=is_character_reversal(given, target),
            length_delta=len(given) - len(target),
            relative_error=abs(answer.value - expected) / max(abs(expected), 1.0),
        )

    def _parse(self, raw: str) -> float:
        value = raw.strip().replace("_", "").replace(" ", "")
        # A single comma with no dot is a decimal comma
        if value.count(",") == 1 and "." not in value:
            value = value.replace(",", ".")
        else:
            value = value.replace(",", "")
        try:
            return float(value)
        except ValueError:
            raise AnswerTypeMismatch(f"Expected a number, got {raw!r}") from None
