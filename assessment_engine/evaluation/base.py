"""
Base protocol and types for answer handlers.

A raw answer arrives loosely typed (string, number, list or boolean). Each
handler decodes it into one member of the Answer union and compares it with
the question's expected answer.
"""

from dataclasses import dataclass
from typing import Any, Optional, Protocol, Union

from assessment_engine.models import Question


class AnswerTypeMismatch(ValueError):
    """Raw answer does not have the shape the question expects."""


@dataclass(frozen=True)
class TextAnswer:
    value: str


@dataclass(frozen=True)
class NumberAnswer:
    value: float
    digits: str  # canonical digit string, used for reversal checks


@dataclass(frozen=True)
class ListAnswer:
    items: tuple[str, ...]


@dataclass(frozen=True)
class BooleanAnswer:
    value: bool


Answer = Union[TextAnswer, NumberAnswer, ListAnswer, BooleanAnswer]


@dataclass(frozen=True)
class Comparison:
    """Outcome of comparing a decoded answer with the expected one."""
    correct: bool
    edit_distance: Optional[int] = None
    reversal: bool = False
    transposition: bool = False
    length_delta: int = 0  # len(answer) - len(expected)
    relative_error: Optional[float] = None  # numbers only


def is_blank(raw: Any) -> bool:
    """Check if a raw answer is missing or empty."""
    if raw is None:
        return True
    if isinstance(raw, str):
        return not raw.strip()
    if isinstance(raw, (list, tuple)):
        return len(raw) == 0
    return False


class AnswerHandler(Protocol):
    """Protocol for answer kind handlers."""

    def decode(self, raw: Any) -> Answer:
        """Decode the raw answer. Raises AnswerTypeMismatch."""
        ...

    def compare(self, question: Question, answer: Answer) -> Comparison:
        """Compare a decoded answer with the question's expected answer."""
        ...
