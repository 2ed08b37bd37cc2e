"""
Unit tests for answer decoding and comparison.

Tests the per-kind handlers and the shared text helpers:
- Text normalization (case, whitespace, diacritics)
- Edit distances and reversal / transposition patterns
- Numeric strings, decimal commas and tolerances
- List ordering and boolean spellings

Run: pytest tests/unit/test_answer_handlers.py -v
"""

import pytest

from assessment_engine.evaluation import AnswerTypeMismatch, get_handler
from assessment_engine.evaluation.base import is_blank
from assessment_engine.evaluation.text_utils import (
    is_character_reversal,
    is_word_transposition,
    normalize_text,
)
from assessment_engine.models import AnswerKind, Tier

from conftest import make_question


class TestTextUtils:
    """Test the shared string helpers."""

    def test_normalize_is_case_and_whitespace_insensitive(self):
        assert normalize_text("  The   Cat ") == "the cat"

    def test_normalize_strips_diacritics(self):
        assert normalize_text("Árbol") == "arbol"
        assert normalize_text("canción") == "cancion"

    def test_normalize_strips_edge_punctuation(self):
        assert normalize_text("¿Sí?") == "si"

    @pytest.mark.parametrize("answer,expected", [
        ("saw", "was"),    # whole word backwards
        ("form", "from"),  # adjacent swap
        ("bog", "dog"),    # mirrored letter
        ("qig", "pig"),
        ("21", "12"),      # digits backwards
    ])
    def test_character_reversals(self, answer, expected):
        assert is_character_reversal(answer, expected)

    @pytest.mark.parametrize("answer,expected", [
        ("cat", "dog"),
        ("dog", "dog"),
        ("dot", "dog"),
    ])
    def test_not_reversals(self, answer, expected):
        assert not is_character_reversal(answer, expected)

    def test_reversal_inside_multi_word_answer(self):
        assert is_character_reversal("the bog runs", "the dog runs")

    def test_word_transposition(self):
        assert is_word_transposition("cat the", "the cat")
        assert not is_word_transposition("the cat", "the cat")
        assert not is_word_transposition("the dog", "the cat")

    def test_is_blank(self):
        assert is_blank(None)
        assert is_blank("   ")
        assert is_blank([])
        assert not is_blank(0)
        assert not is_blank(False)


class TestHandlerRegistry:
    """Every answer kind has a registered handler."""

    @pytest.mark.parametrize("kind", list(AnswerKind))
    def test_handler_registered(self, kind):
        assert get_handler(kind) is not None

    def test_lookup_by_string(self):
        assert get_handler("number") is get_handler(AnswerKind.NUMBER)

    def test_unknown_kind(self):
        assert get_handler("essay") is None


class TestTextHandler:
    handler = get_handler(AnswerKind.TEXT)

    def test_accent_insensitive_match(self):
        question = make_question(subject="spanish", expected_answer="árbol")
        answer = self.handler.decode("Arbol")
        assert self.handler.compare(question, answer).correct

    def test_accepted_alternatives(self):
        question = make_question(subject="reading", expected_answer="modern",
                                 metadata={"accepted_answers": ["new"]})
        assert self.handler.compare(question, self.handler.decode("NEW")).correct

    def test_near_miss_is_not_credited(self):
        question = make_question(subject="reading", expected_answer="bread")
        comparison = self.handler.compare(question, self.handler.decode("bred"))
        assert not comparison.correct
        assert comparison.edit_distance == 1
        assert comparison.length_delta == -1

    def test_edit_distance_between_words(self):
        question = make_question(subject="reading", expected_answer="sitting")
        assert self.handler.compare(question, self.handler.decode("kitten")).edit_distance == 3

    def test_numbers_are_accepted_as_text(self):
        assert self.handler.decode(12).value == "12"

    def test_boolean_is_a_mismatch(self):
        with pytest.raises(AnswerTypeMismatch):
            self.handler.decode(True)

    def test_dict_is_a_mismatch(self):
        with pytest.raises(AnswerTypeMismatch):
            self.handler.decode({"a": 1})


class TestNumericHandler:
    handler = get_handler(AnswerKind.NUMBER)

    @pytest.mark.parametrize("raw,value", [
        (12, 12.0),
        ("12", 12.0),
        (" 3.5 ", 3.5),
        ("1,5", 1.5),
        ("1,000.5", 1000.5),
        ("1_000", 1000.0),
    ])
    def test_decode(self, raw, value):
        assert self.handler.decode(raw).value == value

    @pytest.mark.parametrize("raw", ["abc", "", True, [1], "nan", "inf"])
    def test_decode_mismatch(self, raw):
        with pytest.raises(AnswerTypeMismatch):
            self.handler.decode(raw)

    def test_out_of_float_range_is_a_mismatch(self):
        with pytest.raises(AnswerTypeMismatch):
            self.handler.decode(10**400)

    def test_exact_match(self):
        question = make_question(expected_answer=42)
        assert self.handler.compare(question, self.handler.decode("42")).correct

    def test_relative_tolerance(self):
        question = make_question(expected_answer=100, metadata={"tolerance": 0.05})
        assert self.handler.compare(question, self.handler.decode(104)).correct
        assert not self.handler.compare(question, self.handler.decode(106)).correct

    def test_digit_reversal_flagged(self):
        question = make_question(expected_answer=42)
        comparison = self.handler.compare(question, self.handler.decode(24))
        assert comparison.reversal
        assert comparison.relative_error == pytest.approx(18 / 42)

    def test_relative_error_for_small_expected(self):
        question = make_question(expected_answer=0.5)
        comparison = self.handler.compare(question, self.handler.decode(0.7))
        assert comparison.relative_error == pytest.approx(0.2)


class TestSequenceHandler:
    handler = get_handler(AnswerKind.LIST)

    def test_ordered_match(self):
        question = make_question(expected_answer=("multiply", "add"))
        assert self.handler.compare(question, self.handler.decode(["Multiply", "add"])).correct

    def test_wrong_order_is_transposition(self):
        question = make_question(expected_answer=("multiply", "add"))
        comparison = self.handler.compare(question, self.handler.decode(["add", "multiply"]))
        assert not comparison.correct
        assert comparison.transposition

    def test_unordered_question(self):
        question = make_question(expected_answer=("red", "blue"), metadata={"ordered": False})
        assert self.handler.compare(question, self.handler.decode(["blue", "red"])).correct

    def test_edit_distance_counts_items(self):
        question = make_question(expected_answer=("a", "b", "c"))
        comparison = self.handler.compare(question, self.handler.decode(["a", "c"]))
        assert comparison.edit_distance == 1
        assert comparison.length_delta == -1

    def test_string_is_a_mismatch(self):
        with pytest.raises(AnswerTypeMismatch):
            self.handler.decode("multiply, add")

    def test_nested_list_is_a_mismatch(self):
        with pytest.raises(AnswerTypeMismatch):
            self.handler.decode([["a"], "b"])


class TestBooleanHandler:
    handler = get_handler(AnswerKind.BOOLEAN)

    @pytest.mark.parametrize("raw,value", [
        (True, True),
        ("yes", True),
        ("Sí", True),
        ("verdadero", True),
        (0, False),
        ("false", False),
        ("No", False),
    ])
    def test_decode(self, raw, value):
        assert self.handler.decode(raw).value is value

    @pytest.mark.parametrize("raw", ["maybe", 2, [True]])
    def test_decode_mismatch(self, raw):
        with pytest.raises(AnswerTypeMismatch):
            self.handler.decode(raw)

    def test_compare(self):
        question = make_question(subject="science", difficulty=Tier.EASY, expected_answer=False)
        assert self.handler.compare(question, self.handler.decode("falso")).correct
        assert not self.handler.compare(question, self.handler.decode("true")).correct
