"""
Free-text answer handler.

Grades by normalized exact match against the expected answer and any
alternatives listed under ``metadata["accepted_answers"]``. Near misses are
not credited; the edit distance is reported so the evaluator can tell
spelling-level errors from conceptual ones.
"""

from typing import Any

from rapidfuzz.distance import Levenshtein

from assessment_engine.models import AnswerKind, Question

from . import register
from .base import AnswerTypeMismatch, Comparison, TextAnswer
from .text_utils import is_character_reversal, is_word_transposition, normalize_text


@register(AnswerKind.TEXT)
class TextHandler:
    """Handler for free-text answers."""

    def decode(self, raw: Any) -> TextAnswer:
        if isinstance(raw, bool):
            raise AnswerTypeMismatch(f"Expected text, got boolean {raw!r}")
        if isinstance(raw, (int, float)):
            try:
                return TextAnswer(str(raw))
            except ValueError:
                # int too long to convert to a string
                raise AnswerTypeMismatch("Expected text, got an oversized number") from None
        if not isinstance(raw, str):
            raise AnswerTypeMismatch(f"Expected text, got {type(raw).__name__}")
        return TextAnswer(raw)

    def compare(self, question: Question, answer: TextAnswer) -> Comparison:
        expected = normalize_text(str(question.expected_answer))
        given = normalize_text(answer.value)

        accepted = {expected}
        accepted.update(normalize_text(str(alt)) for alt in question.metadata.get("accepted_answers", []))

        if given in accepted:
            return Comparison(correct=True, edit_distance=0)

        return Comparison(
            correct=False,
            edit_distance=Levenshtein.distance(given, expected),
            reversal=is_character_reversal(given, expected),
            transposition=is_word_transposition(given, expected),
            length_delta=len(given) - len(expected),
        )
