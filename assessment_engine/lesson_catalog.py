"""
Lesson Catalog: Recommendation Candidate Provider.

Read-only source of lessons, practice sets and interventions that the
recommendation generator ranks. Loads candidates from Python objects or JSON
files (a list or {"lessons": [...]}).
"""

from __future__ import annotations

import json
from collections.abc import Iterable
from dataclasses import dataclass
from pathlib import Path
from typing import Optional, Protocol

from loguru import logger

from assessment_engine.models import AccessibilityProfile, Tier

AUDIO_MODALITIES = frozenset({"audio", "video"})
VISUAL_MODALITIES = frozenset({"visual", "video", "image"})

LESSON_KINDS = ("lesson", "practice", "review", "enrichment", "remediation")


def _optional_bool(value) -> Optional[bool]:
    return None if value is None else bool(value)


@dataclass(frozen=True)
class LessonCandidate:
    """A recommendable unit of content with its delivery facts."""

    id: str
    subject: str
    title: str = ""
    skill: str = "general"
    tier: Tier = Tier.MEDIUM
    kind: str = "lesson"
    modalities: tuple[str, ...] = ("text",)
    has_captions: bool = False
    # None: inferred from whether "text" is among the modalities
    has_text_alternative: Optional[bool] = None
    screen_reader_compatible: bool = True
    requires_fine_motor: bool = False
    cognitive_load: str = "medium"
    accommodations: tuple[str, ...] = ()
    cultures: tuple[str, ...] = ()
    languages: tuple[str, ...] = ()
    estimated_minutes: int = 15

    def __post_init__(self) -> None:
        if self.has_text_alternative is None:
            modalities = {m.lower() for m in self.modalities}
            object.__setattr__(self, "has_text_alternative", "text" in modalities)

    @classmethod
    def from_dict(cls, data: dict) -> LessonCandidate:
        kind = data.get("kind", "lesson")
        if kind not in LESSON_KINDS:
            raise ValueError(f"Unknown lesson kind {kind!r} for {data.get('id')!r}")
        return cls(
            id=str(data["id"]),
            subject=data["subject"],
            title=data.get("title", ""),
            skill=data.get("skill", "general"),
            tier=Tier(data.get("tier", "medium")),
            kind=kind,
            modalities=tuple(data.get("modalities") or ("text",)),
            has_captions=bool(data.get("has_captions", False)),
            has_text_alternative=_optional_bool(data.get("has_text_alternative")),
            screen_reader_compatible=bool(data.get("screen_reader_compatible", True)),
            requires_fine_motor=bool(data.get("requires_fine_motor", False)),
            cognitive_load=data.get("cognitive_load", "medium"),
            accommodations=tuple(data.get("accommodations") or ()),
            cultures=tuple(data.get("cultures") or ()),
            languages=tuple(data.get("languages") or ()),
            estimated_minutes=int(data.get("estimated_minutes", 15)),
        )

    def accessibility_conflicts(self, profile: Optional[AccessibilityProfile]) -> list[str]:
        """Declared constraints this candidate would violate (empty when deliverable)."""
        if profile is None:
            return []
        modalities = {m.lower() for m in self.modalities}
        conflicts = []
        if profile.hearing and modalities & AUDIO_MODALITIES and not (
            self.has_captions or self.has_text_alternative
        ):
            conflicts.append("hearing")
        if profile.visual and modalities & VISUAL_MODALITIES and not (
            "audio" in modalities or self.screen_reader_compatible
        ):
            conflicts.append("visual")
        if profile.motor and self.requires_fine_motor:
            conflicts.append("motor")
        if profile.cognitive and self.cognitive_load == "high":
            conflicts.append("cognitive")
        return conflicts


class LessonCatalog(Protocol):
    """Protocol for lesson providers."""

    def candidates(self, subject: str) -> list[LessonCandidate]:
        """All candidates for a subject."""
        ...


class InMemoryLessonCatalog:
    """Lesson catalog held in memory, indexed by subject."""

    def __init__(self, lessons: Iterable[LessonCandidate] = ()):
        self._lessons: dict[str, LessonCandidate] = {}
        for lesson in lessons:
            self.add(lesson)

    def __len__(self) -> int:
        return len(self._lessons)

    def add(self, lesson: LessonCandidate) -> None:
        if lesson.id in self._lessons:
            logger.warning(f"Duplicate lesson id {lesson.id}, keeping the first")
            return
        self._lessons[lesson.id] = lesson

    @classmethod
    def from_file(cls, path: Path) -> InMemoryLessonCatalog:
        catalog = cls()
        with open(path, encoding="utf-8") as f:
            data = json.load(f)

        items = data.get("lessons", []) if isinstance(data, dict) else data
        for item in items:
            try:
                catalog.add(LessonCandidate.from_dict(item))
            except (KeyError, ValueError, TypeError) as e:
                logger.warning(f"Skipping invalid lesson in {path.name}: {e}")
        logger.info(f"LessonCatalog loaded {len(catalog)} lessons from {path.name}")
        return catalog

    def get(self, lesson_id: str) -> Optional[LessonCandidate]:
        return self._lessons.get(lesson_id)

    def candidates(self, subject: str) -> list[LessonCandidate]:
        key = subject.strip().lower()
        return [lesson for lesson in self._lessons.values() if lesson.subject.strip().lower() == key]
