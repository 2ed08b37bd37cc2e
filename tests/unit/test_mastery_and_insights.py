"""
Unit tests for mastery estimation, running insights and feedback.

Run: pytest tests/unit/test_mastery_and_insights.py -v
"""

import pytest

from assessment_engine.adaptive.insights import (
    build_feedback,
    cognitive_load,
    error_streak,
    learning_insights,
    response_tips,
    timing_label,
    trend,
)
from assessment_engine.adaptive.mastery import (
    MasteryEstimate,
    MasteryLevel,
    estimate_mastery,
    strengths_and_weaknesses,
)
from assessment_engine.models import Tier

from conftest import make_question, make_record


def right(tier=Tier.MEDIUM, skill="general", **kwargs):
    kwargs.setdefault("confidence", 1.0)
    question = make_question(f"q-{tier.value}", "math", tier, expected_answer=5, skill=skill)
    return make_record(question, 5, **kwargs)


def wrong(tier=Tier.MEDIUM, skill="general", **kwargs):
    kwargs.setdefault("confidence", 0.0)
    question = make_question(f"q-{tier.value}", "math", tier, expected_answer=5, skill=skill)
    return make_record(question, 500, **kwargs)


class TestMastery:
    def test_empty_history(self):
        mastery = estimate_mastery([])
        assert mastery.overall == 0.0
        assert mastery.level is MasteryLevel.BEGINNER
        assert mastery.tier is Tier.EASY

    def test_harder_items_weigh_more(self):
        mastery = estimate_mastery([right(Tier.EASY), wrong(Tier.HARD)])
        assert mastery.overall == pytest.approx((1.0 * 1.0 + 2.0 * 0.2) / 3.0)

        flipped = estimate_mastery([wrong(Tier.EASY), right(Tier.HARD)])
        assert flipped.overall > mastery.overall

    def test_inconsistent_records_ignored(self):
        mastery = estimate_mastery([right(), wrong(time_spent_ms=-1)])
        assert mastery.overall == pytest.approx(1.0)
        assert mastery.responses_by_skill == {"general": 1}

    def test_per_skill(self):
        records = [right(skill="fractions"), right(skill="fractions"), wrong(skill="decimals")]
        mastery = estimate_mastery(records)
        assert mastery.by_skill["fractions"] == pytest.approx(1.0)
        assert mastery.by_skill["decimals"] == pytest.approx(0.2)
        assert mastery.for_skill("decimals") == pytest.approx(0.2)
        assert mastery.for_skill("unknown") == mastery.overall

    @pytest.mark.parametrize("correct,level", [
        (10, MasteryLevel.EXPERT),
        (8, MasteryLevel.ADVANCED),
        (6, MasteryLevel.INTERMEDIATE),
        (3, MasteryLevel.BEGINNER),
    ])
    def test_level_from_accuracy(self, correct, level):
        records = [right() for _ in range(correct)] + [wrong() for _ in range(10 - correct)]
        assert estimate_mastery(records).level is level

    @pytest.mark.parametrize("overall,tier", [
        (0.2, Tier.EASY),
        (0.5, Tier.MEDIUM),
        (0.74, Tier.MEDIUM),
        (0.75, Tier.HARD),
    ])
    def test_tier_bands(self, overall, tier):
        assert MasteryEstimate(overall=overall).tier is tier

    def test_to_dict(self):
        payload = estimate_mastery([right(skill="b"), right(skill="a")]).to_dict()
        assert list(payload["by_skill"]) == ["a", "b"]
        assert payload["level"] == "expert"
        assert payload["tier"] == "hard"


class TestStrengthsAndWeaknesses:
    def test_strong_session(self):
        records = [right(confidence=0.9) for _ in range(5)]
        strengths, weaknesses = strengths_and_weaknesses(records, estimate_mastery(records))
        assert strengths == ["skill:general", "high_accuracy", "confident_answers", "good_response_speed"]
        assert weaknesses == []

    def test_struggling_session(self):
        records = [wrong(confidence=0.2, time_spent_ms=90_000) for _ in range(5)]
        strengths, weaknesses = strengths_and_weaknesses(records, estimate_mastery(records))
        assert strengths == []
        assert weaknesses == [
            "skill:general",
            "needs_reinforcement_in_basics",
            "low_confidence",
            "response_time",
        ]

    def test_empty(self):
        assert strengths_and_weaknesses([], estimate_mastery([])) == ([], [])


class TestInsights:
    @pytest.mark.parametrize("ratio,time_spent,label", [
        (2.0, 15_000, "fast"),
        (1.25, 24_000, "fast"),
        (1.0, 30_000, "normal"),
        (0.5, 60_000, "slow"),
        (0.0, 0, "normal"),
    ])
    def test_timing_label(self, ratio, time_spent, label):
        assert timing_label(ratio, time_spent) == label

    def test_error_streak_counts_trailing_errors(self):
        assert error_streak([wrong(), right(), wrong(), wrong()]) == 2
        assert error_streak([wrong(), right()]) == 0
        assert error_streak([]) == 0

    def test_trend(self):
        assert trend([wrong()] * 3 + [right()] * 3) == "improving"
        assert trend([right()] * 3 + [wrong()] * 3) == "declining"
        assert trend([right()] * 6) == "stable"
        # Too few responses to tell
        assert trend([wrong(), right()]) == "stable"

    def test_cognitive_load_empty(self):
        assert cognitive_load([])["load_level"] == "low"

    def test_cognitive_load_when_struggling(self):
        records = [wrong(time_spent_ms=90_000) for _ in range(10)]
        load = cognitive_load(records)
        assert load["load_level"] == "critical"
        assert load["factors"]["error_rate"] == 25.0
        assert load["factors"]["error_streak"] == 25.0

    def test_cognitive_load_when_fluent(self):
        load = cognitive_load([right(time_spent_ms=20_000) for _ in range(3)])
        assert load["load_level"] == "low"

    def test_learning_insights(self):
        insights = learning_insights([right(), wrong(time_spent_ms=90_000)])
        assert insights["responses"] == 2
        assert insights["running_accuracy"] == 0.5
        assert insights["error_streak"] == 1
        assert insights["timing"] == "slow"
        assert "cognitive_load" in insights

    def test_learning_insights_empty(self):
        assert learning_insights([])["responses"] == 0


class TestFeedback:
    def reversal(self, hints_used=0):
        question = make_question(
            "read-1", "reading", expected_answer="was",
            hints=("Look at the first letter", "Say it slowly"),
            explanation="'was' starts with w",
        )
        return make_record(question, "saw", hints_used=hints_used)

    def test_positive_feedback(self):
        feedback = build_feedback(right(confidence=0.9))
        assert feedback["type"] == "positive"
        assert "mastered" in feedback["message"]

    def test_constructive_feedback(self):
        feedback = build_feedback(self.reversal(hints_used=1))
        assert feedback["type"] == "constructive"
        assert feedback["error_class"] == "reversal"
        assert "Hint: Say it slowly" in feedback["suggestions"]
        assert feedback["explanation"] == "'was' starts with w"

    def test_no_hint_left(self):
        feedback = build_feedback(self.reversal(hints_used=2))
        assert not any(s.startswith("Hint:") for s in feedback["suggestions"])

    def test_personalization_off_gives_verdict_only(self):
        feedback = build_feedback(self.reversal(), personalized=False)
        assert feedback["suggestions"] == []
        assert "error_class" not in feedback
        assert "explanation" not in feedback

    def test_response_tips(self):
        tips = response_tips(wrong(confidence=0.9, time_spent_ms=90_000, hints_used=1))
        assert tips == [
            "Consider practicing to improve your speed",
            "Use hints whenever you need help",
            "Double-check answers you feel sure about",
        ]
        assert response_tips(right()) == []
