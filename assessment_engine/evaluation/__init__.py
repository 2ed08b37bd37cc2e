"""
Response evaluation for assessment sessions.

Each answer kind (text, number, list, boolean) has its own handler module with:
- decode(): Turn the raw answer into a typed Answer (or raise AnswerTypeMismatch)
- compare(): Check the typed answer against the expected answer

ResponseEvaluator combines a handler with the error-class rule table and the
quality score formula.
"""

from typing import TYPE_CHECKING

from assessment_engine.models import AnswerKind

if TYPE_CHECKING:
    from .base import AnswerHandler


# Handler registry - populated by @register decorator
HANDLERS: dict[AnswerKind, "AnswerHandler"] = {}


def register(kind: AnswerKind):
    """Decorator to register an answer handler."""
    def decorator(cls):
        HANDLERS[kind] = cls()
        return cls
    return decorator


def get_handler(kind: str | AnswerKind) -> "AnswerHandler | None":
    """Get the handler for an answer kind."""
    if isinstance(kind, str) and not isinstance(kind, AnswerKind):
        try:
            kind = AnswerKind(kind.lower())
        except ValueError:
            return None
    return HANDLERS.get(kind)


# Import handlers to trigger registration
from . import text
from . import numeric
from . import sequence
from . import boolean

from .base import AnswerTypeMismatch, Comparison
from .evaluator import ResponseEvaluator

__all__ = [
    "HANDLERS",
    "AnswerTypeMismatch",
    "Comparison",
    "ResponseEvaluator",
    "get_handler",
    "register",
]
