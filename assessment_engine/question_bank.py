"""
Question Bank: Assessment Item Provider.

Read-only source of questions for assessment sessions. Loads items from:
- Python objects (via add / constructor)
- JSON files (via load_file), either a list or {"questions": [...]}

Selection is deterministic: for the same bank, filters and exclusions the
same question is returned, so a session can be replayed exactly.
"""

from __future__ import annotations

import json
from collections.abc import Iterable
from pathlib import Path
from typing import Optional, Protocol

from loguru import logger

from assessment_engine.models import (
    AccessibilityProfile,
    CulturalContext,
    Question,
    Tier,
)


class QuestionBank(Protocol):
    """Protocol for question providers."""

    def get(self, question_id: str) -> Optional[Question]:
        """Look up a question by id."""
        ...

    def select(
        self,
        subject: str,
        tier: Tier,
        exclude: Iterable[str] = (),
        cultural_context: Optional[CulturalContext] = None,
        accessibility_profile: Optional[AccessibilityProfile] = None,
    ) -> Optional[Question]:
        """Pick the next question for a subject and tier, or None."""
        ...


class InMemoryQuestionBank:
    """
    Question bank held in memory.

    Features:
    - Indexing by subject and tier
    - Accessibility hard filter (items that conflict with the profile are never issued)
    - Cultural preference (items with a variant for the student's culture first)
    - Nearest-tier fallback when a tier is exhausted
    """

    def __init__(self, questions: Iterable[Question] = ()):
        self._questions: dict[str, Question] = {}
        self._by_subject: dict[str, list[str]] = {}
        for question in questions:
            self.add(question)

    @property
    def total_questions(self) -> int:
        return len(self._questions)

    @property
    def subjects(self) -> list[str]:
        return sorted(self._by_subject.keys())

    def add(self, question: Question) -> None:
        if question.id in self._questions:
            logger.warning(f"Duplicate question id {question.id}, keeping the first")
            return
        self._questions[question.id] = question
        self._by_subject.setdefault(question.subject.lower(), []).append(question.id)

    @classmethod
    def from_file(cls, path: Path) -> InMemoryQuestionBank:
        bank = cls()
        bank.load_file(path)
        return bank

    def load_file(self, path: Path) -> int:
        """
        Load questions from a JSON file.

        Args:
            path: Path to JSON file

        Returns:
            Number of questions loaded from this file
        """
        with open(path, encoding="utf-8") as f:
            data = json.load(f)

        items = data.get("questions", []) if isinstance(data, dict) else data
        loaded = 0
        skipped = 0
        for item in items:
            try:
                question = Question.from_dict(item)
            except (KeyError, ValueError, TypeError) as e:
                logger.warning(f"Skipping invalid question in {path.name}: {e}")
                skipped += 1
                continue
            self.add(question)
            loaded += 1

        logger.info(f"QuestionBank loaded {loaded} questions from {path.name} ({skipped} skipped)")
        return loaded

    def get(self, question_id: str) -> Optional[Question]:
        return self._questions.get(question_id)

    def questions_for(self, subject: str) -> list[Question]:
        return [self._questions[qid] for qid in self._by_subject.get(subject.lower(), [])]

    def count_by_tier(self, subject: str) -> dict[str, int]:
        counts = {tier.value: 0 for tier in Tier}
        for question in self.questions_for(subject):
            counts[question.difficulty.value] += 1
        return counts

    def select(
        self,
        subject: str,
        tier: Tier,
        exclude: Iterable[str] = (),
        cultural_context: Optional[CulturalContext] = None,
        accessibility_profile: Optional[AccessibilityProfile] = None,
    ) -> Optional[Question]:
        excluded = set(exclude)
        eligible = [
            q for q in self.questions_for(subject)
            if q.id not in excluded
            and not (q.accessibility_variant and q.accessibility_variant.conflicts_with(accessibility_profile))
            and self._language_ok(q, cultural_context)
        ]
        if not eligible:
            return None

        # Exact tier first, then the nearest tiers (lower before higher)
        for distance in range(len(Tier)):
            for candidate_tier in self._tiers_at(tier, distance):
                at_tier = [q for q in eligible if q.difficulty is candidate_tier]
                if at_tier:
                    if distance:
                        logger.debug(
                            f"No {tier.value} questions left for {subject}, "
                            f"falling back to {candidate_tier.value}"
                        )
                    return self._prefer_culture(at_tier, cultural_context)
        return None

    def _language_ok(self, question: Question, context: Optional[CulturalContext]) -> bool:
        if not question.language or not context or not context.language:
            return True
        return question.language.lower() == context.language.lower()

    def _prefer_culture(self, questions: list[Question], context: Optional[CulturalContext]) -> Question:
        if context and context.culture:
            for question in questions:
                if context.culture in question.cultural_variants:
                    return question
        return questions[0]

    @staticmethod
    def _tiers_at(tier: Tier, distance: int) -> list[Tier]:
        if distance == 0:
            return [tier]
        return [t for t in Tier if abs(t.rank - tier.rank) == distance]
