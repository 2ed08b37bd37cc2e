"""
Pytest Configuration and Fixtures.

This file configures pytest and provides shared fixtures for all tests.
"""
import sys
from datetime import datetime, timedelta, timezone
from pathlib import Path

import pytest

# Add project root to path
PROJECT_ROOT = Path(__file__).parent.parent
sys.path.insert(0, str(PROJECT_ROOT))

from assessment_engine.evaluation import ResponseEvaluator  # noqa: E402
from assessment_engine.lesson_catalog import InMemoryLessonCatalog, LessonCandidate  # noqa: E402
from assessment_engine.models import (  # noqa: E402
    Question,
    Response,
    ResponseRecord,
    Tier,
)
from assessment_engine.question_bank import InMemoryQuestionBank  # noqa: E402
from assessment_engine.session import AssessmentEngine  # noqa: E402


def pytest_configure(config):
    """Configure pytest markers."""
    config.addinivalue_line("markers", "unit: Unit tests")
    config.addinivalue_line("markers", "integration: Integration tests (engine + in-memory stores)")
    config.addinivalue_line("markers", "smoke: Smoke tests for CLI commands")
    config.addinivalue_line("markers", "slow: Slow tests")


def pytest_collection_modifyitems(config, items):
    """Automatically mark tests based on their location."""
    for item in items:
        path = str(item.fspath)
        if "unit" in path:
            item.add_marker(pytest.mark.unit)
        elif "integration" in path:
            item.add_marker(pytest.mark.integration)
        elif "smoke" in path:
            item.add_marker(pytest.mark.smoke)


@pytest.fixture(scope="session")
def project_root():
    """Return the project root directory."""
    return PROJECT_ROOT


# ========================================
# Builders
# ========================================


def make_question(
    qid: str = "q1",
    subject: str = "math",
    difficulty: Tier = Tier.MEDIUM,
    expected_answer=7,
    **kwargs,
) -> Question:
    """Build a question with sensible defaults."""
    kwargs.setdefault("expected_time_ms", 30_000)
    return Question(id=qid, subject=subject, difficulty=difficulty, expected_answer=expected_answer, **kwargs)


def make_record(
    question: Question,
    answer,
    time_spent_ms: int = 30_000,
    confidence: float = 0.5,
    hints_used: int = 0,
    emotional_state=None,
    evaluator: ResponseEvaluator | None = None,
) -> ResponseRecord:
    """Evaluate an answer and wrap it as a response record."""
    response = Response(
        session_id="s1",
        question_id=question.id,
        raw_answer=answer,
        time_spent_ms=time_spent_ms,
        confidence=confidence,
        hints_used=hints_used,
        emotional_state=emotional_state,
    )
    evaluation = (evaluator or ResponseEvaluator()).evaluate(question, response)
    return ResponseRecord(question=question, response=response, evaluation=evaluation)


class FakeClock:
    """Manually advanced clock for lifecycle tests."""

    def __init__(self, start: datetime | None = None):
        self.now = start or datetime(2026, 3, 2, 9, 0, tzinfo=timezone.utc)

    def __call__(self) -> datetime:
        return self.now

    def advance(self, **kwargs) -> None:
        self.now += timedelta(**kwargs)


# ========================================
# Fixtures
# ========================================


@pytest.fixture
def math_questions() -> list[Question]:
    questions = []
    for tier in Tier:
        for n in range(1, 5):
            questions.append(
                make_question(f"math-{tier.value}-{n}", "math", tier, expected_answer=10 * n + tier.rank)
            )
    return questions


@pytest.fixture
def reading_questions() -> list[Question]:
    words = ["dog", "bed", "was", "pot", "bat", "dig", "bud", "top"]
    return [
        make_question(f"read-{tier.value}-{i}", "reading", tier, expected_answer=word)
        for tier in Tier
        for i, word in enumerate(words)
    ]


@pytest.fixture
def bank(math_questions, reading_questions) -> InMemoryQuestionBank:
    return InMemoryQuestionBank(math_questions + reading_questions)


@pytest.fixture
def catalog() -> InMemoryLessonCatalog:
    return InMemoryLessonCatalog([
        LessonCandidate(
            id="math-blocks", subject="math", title="Counting with blocks", tier=Tier.EASY,
            kind="remediation", modalities=("visual", "interactive"),
            accommodations=("visual_manipulatives", "step_by_step_problems"), estimated_minutes=12,
        ),
        LessonCandidate(
            id="math-drill", subject="math", title="Times tables drill", tier=Tier.MEDIUM,
            kind="practice", accommodations=("calculator_allowed",), estimated_minutes=15,
        ),
        LessonCandidate(
            id="math-podcast", subject="math", title="Math stories podcast", tier=Tier.MEDIUM,
            modalities=("audio",), has_captions=False, has_text_alternative=False, estimated_minutes=10,
        ),
        LessonCandidate(
            id="math-puzzles", subject="math", title="Number puzzles", tier=Tier.HARD,
            kind="enrichment", estimated_minutes=25,
        ),
        LessonCandidate(
            id="read-audio", subject="reading", title="Letter sounds", tier=Tier.EASY,
            kind="remediation", modalities=("audio", "text"), has_captions=True,
            accommodations=("audio_support", "text_to_speech", "dyslexia_friendly_font"),
            estimated_minutes=10,
        ),
    ])


@pytest.fixture
def clock() -> FakeClock:
    return FakeClock()


@pytest.fixture
def engine(bank, catalog, clock) -> AssessmentEngine:
    return AssessmentEngine(bank, catalog, question_budget=10, clock=clock)
