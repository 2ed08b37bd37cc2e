"""
Unit tests for the ResponseEvaluator.

Covers the quality score formula, the error-class priority (reversal,
blank answers, near misses, the subject rule table), answer-type mismatches
and purity.

Run: pytest tests/unit/test_response_evaluator.py -v
"""

import pytest

from assessment_engine.evaluation import ResponseEvaluator
from assessment_engine.evaluation.error_rules import rules_for
from assessment_engine.models import AnswerKind, ErrorClass, Question, Response, Tier

from conftest import make_question


def respond(question, answer, time_spent_ms=30_000, confidence=0.5, **kwargs):
    return Response(
        session_id="s1",
        question_id=question.id,
        raw_answer=answer,
        time_spent_ms=time_spent_ms,
        confidence=confidence,
        **kwargs,
    )


@pytest.fixture
def evaluator():
    return ResponseEvaluator()


class TestQualityScore:
    """quality = 0.6 * correct + 0.2 * confidence + 0.2 * clamp(expected / actual)"""

    def test_correct_confident_on_time(self, evaluator):
        question = make_question(expected_answer=7, expected_time_ms=30_000)
        result = evaluator.evaluate(question, respond(question, 7, 30_000, confidence=1.0))
        assert result.correct
        assert result.error_class is ErrorClass.NONE
        assert result.quality_score == pytest.approx(1.0)

    def test_slow_answer_loses_speed_credit(self, evaluator):
        question = make_question(expected_answer=7, expected_time_ms=30_000)
        result = evaluator.evaluate(question, respond(question, 7, 60_000, confidence=0.5))
        assert result.quality_score == pytest.approx(0.6 + 0.1 + 0.1)
        assert result.speed_ratio == pytest.approx(0.5)

    def test_fast_answer_is_capped(self, evaluator):
        question = make_question(expected_answer=7, expected_time_ms=30_000)
        result = evaluator.evaluate(question, respond(question, 7, 10_000, confidence=0.5))
        assert result.quality_score == pytest.approx(0.6 + 0.1 + 0.2)
        assert result.speed_ratio == pytest.approx(3.0)

    def test_wrong_answer(self, evaluator):
        question = make_question(expected_answer=7)
        result = evaluator.evaluate(question, respond(question, 100, 30_000, confidence=0.0))
        assert not result.correct
        assert result.quality_score == pytest.approx(0.2)

    def test_default_expected_time(self):
        evaluator = ResponseEvaluator(default_expected_time_ms=20_000)
        question = make_question(expected_answer=7, expected_time_ms=None)
        result = evaluator.evaluate(question, respond(question, 7, 40_000, confidence=0.5))
        assert result.speed_ratio == pytest.approx(0.5)

    def test_out_of_range_confidence_is_clamped(self, evaluator):
        question = make_question(expected_answer=7)
        result = evaluator.evaluate(question, respond(question, 7, 30_000, confidence=3.0))
        assert result.confidence == 1.0
        assert 0.0 <= result.quality_score <= 1.0

    def test_negative_time_is_inconsistent(self, evaluator):
        question = make_question(expected_answer=7)
        result = evaluator.evaluate(question, respond(question, 7, -5, confidence=0.5))
        assert result.correct
        assert not result.is_consistent


class TestErrorClasses:
    """Error classification priority."""

    def test_type_mismatch_is_conceptual(self, evaluator):
        question = make_question(subject="math", expected_answer=12)
        result = evaluator.evaluate(question, respond(question, "abc"))
        assert result.correct is False
        assert result.error_class is ErrorClass.CONCEPTUAL

    @pytest.mark.parametrize("answer", [{"a": 1}, [1, 2], object(), 10**400])
    def test_unusual_shapes_never_raise(self, evaluator, answer):
        question = make_question(subject="math", expected_answer=12)
        result = evaluator.evaluate(question, respond(question, answer))
        assert result.error_class is ErrorClass.CONCEPTUAL

    @pytest.mark.parametrize("answer_kind,expected,answer", [
        (AnswerKind.TEXT, "dog", 10**5000),
        (AnswerKind.LIST, ["a", "b"], ["a", 10**5000]),
    ], ids=["text-oversized-int", "list-oversized-int"])
    def test_oversized_numbers_never_raise(self, evaluator, answer_kind, expected, answer):
        question = make_question(subject="reading", answer_kind=answer_kind, expected_answer=expected)
        result = evaluator.evaluate(question, respond(question, answer))
        assert result.correct is False

    def test_reading_reversal(self, evaluator):
        question = make_question(subject="reading", expected_answer="was")
        result = evaluator.evaluate(question, respond(question, "saw"))
        assert result.error_class is ErrorClass.REVERSAL

    def test_mirror_letter_reversal(self, evaluator):
        question = make_question(subject="reading", expected_answer="dog")
        result = evaluator.evaluate(question, respond(question, "bog"))
        assert result.error_class is ErrorClass.REVERSAL

    def test_digit_reversal(self, evaluator):
        question = make_question(subject="math", expected_answer=42)
        result = evaluator.evaluate(question, respond(question, "24"))
        assert result.error_class is ErrorClass.REVERSAL

    def test_blank_answer_is_omission(self, evaluator):
        question = make_question(expected_answer=7)
        result = evaluator.evaluate(question, respond(question, "  ", time_spent_ms=5_000))
        assert result.error_class is ErrorClass.OMISSION

    @pytest.mark.parametrize("time_spent_ms,expected", [
        (60_001, ErrorClass.TIMEOUT),
        (60_000, ErrorClass.OMISSION),
    ])
    def test_blank_answer_after_timeout(self, time_spent_ms, expected):
        evaluator = ResponseEvaluator(timeout_ms=60_000)
        question = make_question(expected_answer=7)
        result = evaluator.evaluate(question, respond(question, None, time_spent_ms=time_spent_ms))
        assert result.error_class is expected

    def test_spelling_substitution(self, evaluator):
        question = make_question(subject="reading", expected_answer="bread")
        result = evaluator.evaluate(question, respond(question, "brekd"))
        assert result.error_class is ErrorClass.SUBSTITUTION

    def test_spelling_omission(self, evaluator):
        question = make_question(subject="reading", expected_answer="bread")
        result = evaluator.evaluate(question, respond(question, "bred"))
        assert result.error_class is ErrorClass.OMISSION

    def test_spelling_insertion(self, evaluator):
        question = make_question(subject="reading", expected_answer="bread")
        result = evaluator.evaluate(question, respond(question, "breaad"))
        assert result.error_class is ErrorClass.INSERTION

    def test_distant_text_is_conceptual(self, evaluator):
        question = make_question(subject="reading", expected_answer="bread")
        result = evaluator.evaluate(question, respond(question, "apple"))
        assert result.error_class is ErrorClass.CONCEPTUAL

    def test_tolerance_is_configurable(self):
        strict = ResponseEvaluator(edit_distance_tolerance=0)
        question = make_question(subject="reading", expected_answer="bread")
        result = strict.evaluate(question, respond(question, "bred"))
        assert result.error_class is ErrorClass.CONCEPTUAL

    def test_word_transposition_in_reading(self, evaluator):
        question = make_question(subject="reading", expected_answer="the big cat")
        result = evaluator.evaluate(question, respond(question, "the cat big"))
        assert result.error_class is ErrorClass.TRANSPOSITION

    def test_close_number_is_calculation(self, evaluator):
        question = make_question(subject="math", expected_answer=72)
        result = evaluator.evaluate(question, respond(question, 71))
        assert result.error_class is ErrorClass.CALCULATION

    def test_far_number_is_conceptual(self, evaluator):
        question = make_question(subject="math", expected_answer=72)
        result = evaluator.evaluate(question, respond(question, 7))
        assert result.error_class is ErrorClass.CONCEPTUAL

    def test_multi_step_item_is_procedural(self, evaluator):
        question = make_question(subject="math", expected_answer=0.75, metadata={"steps": 2})
        result = evaluator.evaluate(question, respond(question, 2))
        assert result.error_class is ErrorClass.PROCEDURAL

    def test_multi_step_item_loaded_from_json(self, evaluator):
        question = Question.from_dict({
            "id": "frac", "subject": "math", "expected_answer": 0.75, "metadata": {"steps": "2"},
        })
        result = evaluator.evaluate(question, respond(question, 2))
        assert result.error_class is ErrorClass.PROCEDURAL

    def test_math_steps_out_of_order_is_procedural(self, evaluator):
        question = make_question(subject="math", expected_answer=("multiply", "add"))
        result = evaluator.evaluate(question, respond(question, ["add", "multiply"]))
        assert result.error_class is ErrorClass.PROCEDURAL

    def test_declared_error_type_wins(self, evaluator):
        question = make_question(subject="math", expected_answer=72,
                                 metadata={"error_type": "procedural"})
        result = evaluator.evaluate(question, respond(question, 71))
        assert result.error_class is ErrorClass.PROCEDURAL

    def test_subject_override_table(self):
        question = make_question(subject="Science", expected_answer=("heat", "boil"))
        assert rules_for(question)[-1].name == "procedure_order"


class TestPurity:
    def test_reevaluation_is_identical(self, evaluator):
        question = make_question(subject="reading", difficulty=Tier.HARD, expected_answer="beautiful")
        response = respond(question, "beatiful", 45_000, confidence=0.7)
        assert evaluator.evaluate(question, response) == evaluator.evaluate(question, response)

    def test_from_settings(self):
        from config import Settings

        settings = Settings(edit_distance_tolerance=1, timeout_ms=1_000)
        evaluator = ResponseEvaluator.from_settings(settings)
        assert evaluator.edit_distance_tolerance == 1
        assert evaluator.timeout_ms == 1_000
