"""
Recommendation Generator.

Turns detected difficulties and a mastery estimate into a short, ranked list
of lessons:

1. Hard filters: subject, language, declared accessibility constraints
2. Ranking: inverse mastery of the lesson's skill, alignment with the
   accommodations of detected difficulties, cultural fit
3. Ties go to the shorter lesson, then to the lesson id
4. The list is capped and always holds one safe recommendation at the
   student's current mastery tier; a generic review is synthesized when the
   catalog has nothing compatible at that tier
"""
from __future__ import annotations

from collections.abc import Sequence
from dataclasses import dataclass
from typing import TYPE_CHECKING, Optional

from loguru import logger

from assessment_engine.lesson_catalog import LessonCandidate, LessonCatalog
from assessment_engine.models import (
    AccessibilityProfile,
    CulturalContext,
    LearningDifficulty,
    LearningRecommendation,
    Priority,
    Severity,
    Tier,
)

from .mastery import MasteryEstimate

if TYPE_CHECKING:
    from assessment_engine.session.aggregate import AssessmentSession
    from config import Settings


MASTERY_WEIGHT = 0.45
ACCOMMODATION_WEIGHT = 0.35
CULTURE_WEIGHT = 0.2

CULTURE_MATCH = 1.0
CULTURE_NEUTRAL = 0.7
CULTURE_OTHER = 0.4

PROFILE_ACCOMMODATIONS = {
    "visual": ["screen_reader", "large_font", "audio_descriptions"],
    "hearing": ["captions", "text_alternatives", "visual_cues"],
    "motor": ["keyboard_navigation", "extended_time"],
    "cognitive": ["simplified_instructions", "extended_time", "chunked_instructions"],
}

PATH_ORDER = ("remediation", "review", "lesson", "practice", "enrichment")

# Generic path by mastery band when path optimization is off
GENERIC_PATHS = {
    Tier.EASY: ["Core concepts", "Guided practice", "Reinforcement check"],
    Tier.MEDIUM: ["Intermediate concepts", "Applied practice", "Advanced check"],
    Tier.HARD: ["Advanced concepts", "Practical projects", "Enrichment"],
}


@dataclass
class RecommendationConfig:
    max_recommendations: int = 5

    @classmethod
    def from_settings(cls, settings: Settings) -> RecommendationConfig:
        return cls(max_recommendations=settings.max_recommendations)


@dataclass
class _Ranked:
    lesson: LessonCandidate
    score: float
    inverse_mastery: float
    alignment: float
    cultural_fit: float
    accessibility_fit: float
    supported: list[str]


def cultural_fit(lesson: LessonCandidate, context: Optional[CulturalContext], enabled: bool = True) -> float:
    if not enabled or context is None or not context.culture or not lesson.cultures:
        return CULTURE_NEUTRAL
    return CULTURE_MATCH if context.culture in lesson.cultures else CULTURE_OTHER


def accessibility_fit(lesson: LessonCandidate, profile: Optional[AccessibilityProfile]) -> float:
    """1.0 when every declared need is actively supported, 0.5 when merely not violated."""
    if profile is None or not profile.flags:
        return 1.0
    modalities = {m.lower() for m in lesson.modalities}
    supported = {
        "hearing": lesson.has_captions or not (modalities & {"audio", "video"}),
        "visual": lesson.screen_reader_compatible or "audio" in modalities,
        "motor": not lesson.requires_fine_motor,
        "cognitive": lesson.cognitive_load == "low",
    }
    hits = sum(1 for flag in profile.flags if supported[flag])
    return 0.5 + 0.5 * hits / len(profile.flags)


def accommodation_alignment(
    lesson: LessonCandidate,
    difficulties: Sequence[LearningDifficulty],
) -> tuple[float, list[str]]:
    """Best confidence-weighted overlap with any difficulty's accommodations."""
    best = 0.0
    supported: set[str] = set()
    offered = set(lesson.accommodations)
    for difficulty in difficulties:
        wanted = set(difficulty.recommended_accommodations)
        if not wanted:
            continue
        overlap = offered & wanted
        if overlap:
            supported |= overlap
            best = max(best, difficulty.confidence * len(overlap) / len(wanted))
    return min(1.0, best), sorted(supported)


def accessibility_recommendations(
    profile: Optional[AccessibilityProfile],
    difficulties: Sequence[LearningDifficulty],
) -> list[str]:
    """Accommodations to apply in future sessions, without duplicates."""
    result: list[str] = []
    if profile is not None:
        for flag in sorted(profile.flags):
            result.extend(PROFILE_ACCOMMODATIONS[flag])
    for difficulty in difficulties:
        result.extend(difficulty.recommended_accommodations)
    return list(dict.fromkeys(result))


class RecommendationGenerator:
    """
    Rank catalog lessons for a session.

    Pure: the same session, findings and mastery always yield the same list.
    """

    def __init__(self, catalog: LessonCatalog, config: RecommendationConfig | None = None):
        self.catalog = catalog
        self.config = config or RecommendationConfig()

    def eligible(self, session: AssessmentSession) -> list[LessonCandidate]:
        """Candidates that pass every hard filter for the session."""
        language = session.cultural_context.language if session.cultural_context else None
        eligible = []
        for lesson in self.catalog.candidates(session.subject):
            if language and lesson.languages and language.lower() not in {
                lang.lower() for lang in lesson.languages
            }:
                continue
            conflicts = lesson.accessibility_conflicts(session.accessibility_profile)
            if conflicts:
                logger.debug(f"Filtered lesson {lesson.id}: conflicts with {', '.join(conflicts)}")
                continue
            eligible.append(lesson)
        return eligible

    def recommend(
        self,
        session: AssessmentSession,
        difficulties: Sequence[LearningDifficulty],
        mastery: MasteryEstimate,
    ) -> list[LearningRecommendation]:
        """
        Produce ranked recommendations.

        Args:
            session: Session context (subject, cultural context, accessibility)
            difficulties: Detected difficulty signals (may be empty)
            mastery: Mastery estimate for the session

        Returns:
            At most max_recommendations items, never empty
        """
        cultural_enabled = session.adaptive_settings.cultural_adaptation
        ranked = [
            self._rank(lesson, session, difficulties, mastery, cultural_enabled)
            for lesson in self.eligible(session)
        ]
        ranked.sort(key=lambda r: (-r.score, r.lesson.estimated_minutes, r.lesson.id))

        cap = max(1, self.config.max_recommendations)
        chosen = ranked[:cap]
        safe_tier = mastery.tier

        if not any(r.lesson.tier is safe_tier for r in chosen):
            safe = next((r for r in ranked[cap:] if r.lesson.tier is safe_tier), None)
            if len(chosen) == cap:
                chosen = chosen[:-1]
            if safe is not None:
                chosen.append(safe)

        recommendations = [
            self._to_recommendation(r, mastery, safe_tier, difficulties) for r in chosen
        ]
        if not any(rec.is_safe for rec in recommendations):
            recommendations.append(self._synthesized_review(session, safe_tier))

        logger.info(
            f"Generated {len(recommendations)} recommendations for {session.subject} "
            f"({len(ranked)} eligible, mastery tier {safe_tier.value})"
        )
        return recommendations

    def _rank(
        self,
        lesson: LessonCandidate,
        session: AssessmentSession,
        difficulties: Sequence[LearningDifficulty],
        mastery: MasteryEstimate,
        cultural_enabled: bool,
    ) -> _Ranked:
        inverse = 1.0 - mastery.for_skill(lesson.skill)
        alignment, supported = accommodation_alignment(lesson, difficulties)
        culture = cultural_fit(lesson, session.cultural_context, cultural_enabled)
        score = MASTERY_WEIGHT * inverse + ACCOMMODATION_WEIGHT * alignment + CULTURE_WEIGHT * culture
        return _Ranked(
            lesson=lesson,
            score=score,
            inverse_mastery=inverse,
            alignment=alignment,
            cultural_fit=culture,
            accessibility_fit=accessibility_fit(lesson, session.accessibility_profile),
            supported=supported,
        )

    @staticmethod
    def _priority(ranked: _Ranked, difficulties: Sequence[LearningDifficulty]) -> Priority:
        serious = any(d.severity is not Severity.MILD for d in difficulties)
        if ranked.alignment >= 0.3 and serious:
            return Priority.HIGH
        if ranked.inverse_mastery >= 0.6:
            return Priority.HIGH
        if ranked.alignment > 0 or ranked.inverse_mastery >= 0.3:
            return Priority.NORMAL
        return Priority.LOW

    def _to_recommendation(
        self,
        ranked: _Ranked,
        mastery: MasteryEstimate,
        safe_tier: Tier,
        difficulties: Sequence[LearningDifficulty] = (),
    ) -> LearningRecommendation:
        lesson = ranked.lesson
        reasons = [f"skill {lesson.skill} at mastery {mastery.for_skill(lesson.skill):.2f}"]
        if ranked.supported:
            reasons.append(f"supports {', '.join(ranked.supported)}")
        if ranked.cultural_fit == CULTURE_MATCH:
            reasons.append("matches cultural context")
        is_safe = lesson.tier is safe_tier
        if is_safe:
            reasons.append(f"at current mastery tier ({safe_tier.value})")

        return LearningRecommendation(
            lesson_id=lesson.id,
            priority=self._priority(ranked, difficulties),
            rationale="; ".join(reasons),
            estimated_time_minutes=lesson.estimated_minutes,
            cultural_fit=ranked.cultural_fit,
            accessibility_fit=ranked.accessibility_fit,
            kind=lesson.kind,
            title=lesson.title,
            score=ranked.score,
            is_safe=is_safe,
        )

    @staticmethod
    def _synthesized_review(session: AssessmentSession, tier: Tier) -> LearningRecommendation:
        subject = session.subject.strip().lower()
        return LearningRecommendation(
            lesson_id=f"review-{subject}-{tier.value}",
            priority=Priority.NORMAL,
            rationale=f"general {tier.value} review of {subject}; no compatible catalog lesson at this tier",
            estimated_time_minutes=10,
            cultural_fit=CULTURE_NEUTRAL,
            accessibility_fit=1.0,
            kind="review",
            title=f"{session.subject.title()} review ({tier.value})",
            is_safe=True,
        )


def learning_path(
    recommendations: Sequence[LearningRecommendation],
    mastery: MasteryEstimate,
    optimize: bool = True,
) -> list[str]:
    """Ordered steps for the student: remediation first, enrichment last."""
    if not optimize:
        return list(GENERIC_PATHS[mastery.tier])

    def step_order(rec: LearningRecommendation) -> tuple[int, int]:
        kind = PATH_ORDER.index(rec.kind) if rec.kind in PATH_ORDER else len(PATH_ORDER)
        return kind, -rec.priority.rank

    return [rec.title or rec.lesson_id for rec in sorted(recommendations, key=step_order)]
