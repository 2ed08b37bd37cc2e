"""
Mastery Estimation.

Per-skill mastery from a session's evaluations. Harder items weigh more, so a
student who holds their quality on hard items is rated above one who only
answers easy items well.
"""
from __future__ import annotations

from collections import defaultdict
from collections.abc import Sequence
from dataclasses import dataclass, field
from enum import Enum

from assessment_engine.models import ResponseRecord, Tier

TIER_WEIGHTS = {Tier.EASY: 1.0, Tier.MEDIUM: 1.5, Tier.HARD: 2.0}

STRENGTH_THRESHOLD = 0.75
WEAKNESS_THRESHOLD = 0.5


class MasteryLevel(str, Enum):
    BEGINNER = "beginner"
    INTERMEDIATE = "intermediate"
    ADVANCED = "advanced"
    EXPERT = "expert"

    @classmethod
    def from_score(cls, score: float) -> MasteryLevel:
        """Level from a 0-100 score."""
        if score < 60:
            return cls.BEGINNER
        if score < 75:
            return cls.INTERMEDIATE
        if score < 90:
            return cls.ADVANCED
        return cls.EXPERT


@dataclass
class MasteryEstimate:
    """Mastery snapshot for one session."""

    overall: float = 0.0
    by_skill: dict[str, float] = field(default_factory=dict)
    responses_by_skill: dict[str, int] = field(default_factory=dict)
    level: MasteryLevel = MasteryLevel.BEGINNER

    @property
    def tier(self) -> Tier:
        """Tier a student at this mastery can work on without support."""
        if self.overall < WEAKNESS_THRESHOLD:
            return Tier.EASY
        if self.overall < STRENGTH_THRESHOLD:
            return Tier.MEDIUM
        return Tier.HARD

    def for_skill(self, skill: str | None) -> float:
        if skill and skill in self.by_skill:
            return self.by_skill[skill]
        return self.overall

    def to_dict(self) -> dict:
        return {
            "overall": round(self.overall, 4),
            "level": self.level.value,
            "tier": self.tier.value,
            "by_skill": {k: round(v, 4) for k, v in sorted(self.by_skill.items())},
        }


def _weighted_quality(records: Sequence[ResponseRecord]) -> float:
    total_weight = sum(TIER_WEIGHTS[r.question.difficulty] for r in records)
    if not total_weight:
        return 0.0
    return sum(TIER_WEIGHTS[r.question.difficulty] * r.evaluation.quality_score for r in records) / total_weight


def estimate_mastery(records: Sequence[ResponseRecord]) -> MasteryEstimate:
    """
    Estimate mastery from evaluated responses.

    Inconsistent evaluations are ignored. An empty history is a beginner with
    zero mastery.
    """
    usable = [r for r in records if r.evaluation.is_consistent]
    if not usable:
        return MasteryEstimate()

    by_skill: dict[str, list[ResponseRecord]] = defaultdict(list)
    for record in usable:
        by_skill[record.question.skill].append(record)

    accuracy = sum(1 for r in usable if r.evaluation.correct) / len(usable)
    return MasteryEstimate(
        overall=_weighted_quality(usable),
        by_skill={skill: _weighted_quality(items) for skill, items in by_skill.items()},
        responses_by_skill={skill: len(items) for skill, items in by_skill.items()},
        level=MasteryLevel.from_score(accuracy * 100),
    )


def strengths_and_weaknesses(
    records: Sequence[ResponseRecord],
    mastery: MasteryEstimate,
) -> tuple[list[str], list[str]]:
    """Named strengths and weaknesses for the results payload."""
    strengths: list[str] = []
    weaknesses: list[str] = []
    if not records:
        return strengths, weaknesses

    for skill, value in sorted(mastery.by_skill.items()):
        if value >= STRENGTH_THRESHOLD:
            strengths.append(f"skill:{skill}")
        elif value < WEAKNESS_THRESHOLD:
            weaknesses.append(f"skill:{skill}")

    total = len(records)
    correct = sum(1 for r in records if r.evaluation.correct)
    if correct > total * 0.8:
        strengths.append("high_accuracy")
    if total - correct > total * 0.3:
        weaknesses.append("needs_reinforcement_in_basics")

    confident = sum(1 for r in records if r.evaluation.confidence >= 0.8)
    unsure = sum(1 for r in records if r.evaluation.confidence <= 0.4)
    if confident > total * 0.6:
        strengths.append("confident_answers")
    if unsure > total * 0.4:
        weaknesses.append("low_confidence")

    timed = [r for r in records if r.evaluation.time_spent_ms > 0]
    if timed and all(r.evaluation.speed_ratio >= 1.0 for r in timed):
        strengths.append("good_response_speed")
    if any(r.evaluation.speed_ratio < 0.5 for r in timed):
        weaknesses.append("response_time")

    return strengths, weaknesses
