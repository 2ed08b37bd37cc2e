"""
Per-subject error classification rules.

When a wrong answer is neither a reversal, a blank nor a spelling-level near
miss, the rule table for the question's subject decides between calculation,
procedural, transposition and conceptual errors. Rules run in order and the
first match wins; anything unmatched is conceptual.

A question can pin its class with ``metadata["error_type"]`` (for example
"procedural" for multi-step items).
"""
from __future__ import annotations

from collections.abc import Callable
from dataclasses import dataclass

from assessment_engine.models import ErrorClass, Question, QuestionDomain

from .base import Comparison


@dataclass(frozen=True)
class ErrorRule:
    """A named predicate mapping a comparison to an error class."""
    name: str
    error_class: ErrorClass
    applies: Callable[[Question, Comparison, float], bool]


def _declared(error_class: ErrorClass) -> ErrorRule:
    return ErrorRule(
        name=f"declared_{error_class.value}",
        error_class=error_class,
        applies=lambda q, c, tol: q.metadata.get("error_type") == error_class.value,
    )


DECLARED_RULES = tuple(
    _declared(ec) for ec in (ErrorClass.CALCULATION, ErrorClass.PROCEDURAL, ErrorClass.CONCEPTUAL)
)

MATH_RULES = (
    # Steps or operands in the wrong order
    ErrorRule("step_order", ErrorClass.PROCEDURAL, lambda q, c, tol: c.transposition),
    ErrorRule(
        "multi_step_item",
        ErrorClass.PROCEDURAL,
        lambda q, c, tol: q.metadata.get("steps", 1) > 1 and c.relative_error is not None
        and c.relative_error > tol,
    ),
    # Close to the right value
    ErrorRule(
        "near_value",
        ErrorClass.CALCULATION,
        lambda q, c, tol: c.relative_error is not None and c.relative_error <= tol,
    ),
)

READING_RULES = (
    ErrorRule("word_order", ErrorClass.TRANSPOSITION, lambda q, c, tol: c.transposition),
)

GENERAL_RULES = (
    ErrorRule("item_order", ErrorClass.TRANSPOSITION, lambda q, c, tol: c.transposition),
    ErrorRule(
        "near_value",
        ErrorClass.CALCULATION,
        lambda q, c, tol: c.relative_error is not None and c.relative_error <= tol,
    ),
)

DOMAIN_RULES: dict[QuestionDomain, tuple[ErrorRule, ...]] = {
    QuestionDomain.MATH: MATH_RULES,
    QuestionDomain.READING: READING_RULES,
    QuestionDomain.GENERAL: GENERAL_RULES,
}

# Subject-specific overrides, keyed by lower-cased subject
SUBJECT_RULES: dict[str, tuple[ErrorRule, ...]] = {
    "science": (
        ErrorRule("procedure_order", ErrorClass.PROCEDURAL, lambda q, c, tol: c.transposition),
    ),
}


def rules_for(question: Question) -> tuple[ErrorRule, ...]:
    """Rule table for a question: declared overrides, then subject or domain rules."""
    subject_rules = SUBJECT_RULES.get(question.subject.strip().lower())
    if subject_rules is None:
        subject_rules = DOMAIN_RULES.get(question.domain, GENERAL_RULES)
    return DECLARED_RULES + subject_rules


def classify(question: Question, comparison: Comparison, calculation_tolerance: float) -> ErrorClass:
    """Apply the rule table; unmatched wrong answers are conceptual."""
    for rule in rules_for(question):
        if rule.applies(question, comparison, calculation_tolerance):
            return rule.error_class
    return ErrorClass.CONCEPTUAL
