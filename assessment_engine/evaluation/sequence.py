"""
List answer handler.

Grades list answers (ordering, multi-select, list recall). Order matters
unless ``metadata["ordered"]`` is false. The right items in the wrong order
are flagged as a transposition.
"""

from typing import Any

from rapidfuzz.distance import Levenshtein

from assessment_engine.models import AnswerKind, Question

from . import register
from .base import AnswerTypeMismatch, Comparison, ListAnswer
from .text_utils import normalize_text


@register(AnswerKind.LIST)
class SequenceHandler:
    """Handler for list answers."""

    def decode(self, raw: Any) -> ListAnswer:
        if not isinstance(raw, (list, tuple)):
            raise AnswerTypeMismatch(f"Expected a list, got {type(raw).__name__}")
        if any(isinstance(item, (list, tuple, dict)) for item in raw):
            raise AnswerTypeMismatch("Expected a flat list of items")
        try:
            return ListAnswer(items=tuple(normalize_text(str(item)) for item in raw))
        except ValueError:
            raise AnswerTypeMismatch("List item could not be read as text") from None

    def compare(self, question: Question, answer: ListAnswer) -> Comparison:
        expected = tuple(normalize_text(str(item)) for item in question.expected_answer)
        ordered = question.metadata.get("ordered", True)

        same_items = sorted(answer.items) == sorted(expected)
        correct = answer.items == expected if ordered else same_items

        if correct:
            return Comparison(correct=True, edit_distance=0)

        return Comparison(
            correct=False,
            edit_distance=Levenshtein.distance(answer.items, expected),
            transposition=ordered and same_items,
            length_delta=len(answer.items) - len(expected),
        )
