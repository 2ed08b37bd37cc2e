"""
True/false answer handler.

Accepts booleans, 0/1 and common spellings in English and Spanish.
"""

from typing import Any

from assessment_engine.models import AnswerKind, Question

from . import register
from .base import AnswerTypeMismatch, BooleanAnswer, Comparison
from .text_utils import normalize_text

TRUE_WORDS = {"true", "t", "yes", "y", "si", "verdadero", "v", "cierto", "1"}
FALSE_WORDS = {"false", "f", "no", "n", "falso", "0"}


@register(AnswerKind.BOOLEAN)
class BooleanHandler:
    """Handler for true/false answers."""

    def decode(self, raw: Any) -> BooleanAnswer:
        if isinstance(raw, bool):
            return BooleanAnswer(raw)
        if isinstance(raw, int) and raw in (0, 1):
            return BooleanAnswer(bool(raw))
        if isinstance(raw, str):
            word = normalize_text(raw)
            if word in TRUE_WORDS:
                return BooleanAnswer(True)
            if word in FALSE_WORDS:
                return BooleanAnswer(False)
        raise AnswerTypeMismatch(f"Expected true/false, got {raw!r}")

    def compare(self, question: Question, answer: BooleanAnswer) -> Comparison:
        expected = self.decode(question.expected_answer).value
        return Comparison(correct=answer.value is expected)
