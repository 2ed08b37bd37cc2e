"""
Assessment Engine: Session Orchestrator.

Drives one assessment session through its lifecycle:

    create_session()   created -> active, issue the first question
    submit_response()  evaluate -> adjust difficulty -> issue the next question
    complete()         detect difficulties, recommend lessons, freeze results
    abandon()          cancel a created or active session
    expire_stale()     abandon sessions idle past the expiry window

Each session is single-writer: mutations take the session's own lock, so one
submission per session is in flight at a time while unrelated sessions run
in parallel. Evaluation, difficulty control and detection are pure and run
on snapshots of the response history.
"""
from __future__ import annotations

import copy
import threading
import uuid
from collections.abc import Callable, Iterator
from contextlib import contextmanager
from datetime import datetime
from typing import TYPE_CHECKING, Any, Optional

from loguru import logger

from assessment_engine.adaptive.difficulty_controller import ControllerConfig
from assessment_engine.adaptive.difficulty_detector import DetectorConfig, DifficultyDetector
from assessment_engine.adaptive.insights import build_feedback, learning_insights, response_tips
from assessment_engine.adaptive.mastery import estimate_mastery, strengths_and_weaknesses
from assessment_engine.adaptive.recommendation_generator import (
    RecommendationConfig,
    RecommendationGenerator,
    accessibility_recommendations,
    learning_path,
)
from assessment_engine.errors import AssessmentError, InvalidInputError, NotFoundError
from assessment_engine.evaluation import ResponseEvaluator
from assessment_engine.lesson_catalog import InMemoryLessonCatalog, LessonCatalog
from assessment_engine.models import (
    AccessibilityProfile,
    AdaptiveSettings,
    AssessmentType,
    CulturalContext,
    EmotionalState,
    Question,
    Response,
    ResponseRecord,
    SessionStatus,
    StudentProfile,
    Tier,
    utcnow,
)
from assessment_engine.question_bank import QuestionBank

from .aggregate import AssessmentSession
from .repository import InMemorySessionRepository, SessionRepository

if TYPE_CHECKING:
    from config import Settings


class AssessmentEngine:
    """
    Orchestrates assessment sessions over a question bank and a lesson catalog.

    Args:
        bank: Question provider
        catalog: Lesson provider for recommendations
        repository: Session store (in-memory by default)
        evaluator: Response evaluator
        detector: Learning-difficulty detector
        recommender: Recommendation generator over the catalog
        controller_config: Difficulty controller configuration
        question_budget: Maximum questions per session
        session_expiry_minutes: Idle time after which a session is abandoned
        clock: Source of timestamps
    """

    def __init__(
        self,
        bank: QuestionBank,
        catalog: Optional[LessonCatalog] = None,
        repository: Optional[SessionRepository] = None,
        evaluator: Optional[ResponseEvaluator] = None,
        detector: Optional[DifficultyDetector] = None,
        recommender: Optional[RecommendationGenerator] = None,
        controller_config: Optional[ControllerConfig] = None,
        question_budget: int = 10,
        session_expiry_minutes: int = 120,
        clock: Callable[[], datetime] = utcnow,
    ):
        self.bank = bank
        self.repository = repository if repository is not None else InMemorySessionRepository()
        self.evaluator = evaluator or ResponseEvaluator()
        self.detector = detector or DifficultyDetector()
        self.recommender = recommender or RecommendationGenerator(catalog or InMemoryLessonCatalog())
        self.controller_config = controller_config or ControllerConfig()
        self.question_budget = question_budget
        self.session_expiry_minutes = session_expiry_minutes
        self.clock = clock

        self._locks: dict[str, threading.Lock] = {}
        self._locks_guard = threading.Lock()

    @classmethod
    def from_settings(
        cls,
        settings: Settings,
        bank: QuestionBank,
        catalog: Optional[LessonCatalog] = None,
        repository: Optional[SessionRepository] = None,
    ) -> AssessmentEngine:
        return cls(
            bank=bank,
            repository=repository,
            evaluator=ResponseEvaluator.from_settings(settings),
            detector=DifficultyDetector(DetectorConfig.from_settings(settings)),
            recommender=RecommendationGenerator(
                catalog or InMemoryLessonCatalog(),
                RecommendationConfig.from_settings(settings),
            ),
            controller_config=ControllerConfig.from_settings(settings),
            question_budget=settings.question_budget,
            session_expiry_minutes=settings.session_expiry_minutes,
        )

    # ----------------------------------------------------------------
    # Locking
    # ----------------------------------------------------------------

    def _lock_for(self, session_id: str, create: bool = False) -> Optional[threading.Lock]:
        """Lock for a stored session; None when the session does not exist."""
        with self._locks_guard:
            lock = self._locks.get(session_id)
            if lock is None:
                if not create and self.repository.get(session_id) is None:
                    return None
                lock = self._locks[session_id] = threading.Lock()
            return lock

    def _forget_lock(self, session_id: str, lock: threading.Lock) -> None:
        with self._locks_guard:
            if self._locks.get(session_id) is lock:
                del self._locks[session_id]

    @contextmanager
    def _locked(self, session_id: str) -> Iterator[AssessmentSession]:
        """
        Hold the session's lock and yield the loaded session.

        The lock entry is dropped once the session is terminal, after the
        lock is released.
        """
        if not session_id:
            raise InvalidInputError("assessment_id is required")
        lock = self._lock_for(session_id)
        if lock is None:
            raise NotFoundError("session", session_id)

        session = None
        try:
            with lock:
                session = self.repository.get(session_id)
                if session is None:
                    raise NotFoundError("session", session_id)
                yield session
        finally:
            if session is None or session.status.is_terminal:
                self._forget_lock(session_id, lock)

    def get_session(self, session_id: str) -> AssessmentSession:
        session = self.repository.get(session_id)
        if session is None:
            raise NotFoundError("session", session_id)
        return session

    # ----------------------------------------------------------------
    # Lifecycle
    # ----------------------------------------------------------------

    def create_session(
        self,
        student_id: str,
        subject: str,
        assessment_type: AssessmentType = AssessmentType.DIAGNOSTIC,
        difficulty: Tier = Tier.MEDIUM,
        cultural_context: Optional[CulturalContext] = None,
        accessibility_profile: Optional[AccessibilityProfile] = None,
        adaptive_settings: Optional[AdaptiveSettings] = None,
        student_profile: Optional[StudentProfile] = None,
        session_id: Optional[str] = None,
    ) -> dict[str, Any]:
        """
        Create a session and issue its first question.

        Raises:
            InvalidInputError: Missing student id or subject
            NotFoundError: The bank has no deliverable question for the subject
        """
        if not student_id or not student_id.strip():
            raise InvalidInputError("student_id is required")
        if not subject or not subject.strip():
            raise InvalidInputError("subject is required")

        now = self.clock()
        session = AssessmentSession(
            session_id=session_id or str(uuid.uuid4()),
            student_id=student_id,
            subject=subject,
            assessment_type=assessment_type,
            initial_difficulty=difficulty,
            current_difficulty=difficulty,
            cultural_context=cultural_context,
            accessibility_profile=accessibility_profile,
            adaptive_settings=adaptive_settings or AdaptiveSettings(),
            student_profile=student_profile or StudentProfile(student_id=student_id),
            question_budget=self.question_budget,
            created_at=now,
            last_activity_at=now,
        )
        session.ensure_controller(self.controller_config)

        lock = self._lock_for(session.session_id, create=True)
        try:
            with lock:
                if self.repository.get(session.session_id) is not None:
                    raise InvalidInputError(f"Session {session.session_id} already exists")

                first = self._select_next(session)
                if first is None:
                    raise NotFoundError("questions for subject", subject)

                session.transition(SessionStatus.ACTIVE, "create")
                session.issued_question_ids.append(first.id)
                self.repository.save(session)
        except AssessmentError:
            # Nothing was stored under this id
            if self.repository.get(session.session_id) is None:
                self._forget_lock(session.session_id, lock)
            raise

        logger.info(
            f"Created session {session.session_id} for student {student_id} "
            f"({subject}, {assessment_type.value}, starting {difficulty.value})"
        )
        return {
            "assessment_id": session.session_id,
            "status": session.status.value,
            "questions": [self._render(session, first)],
            "student_profile": session.student_profile.to_dict(),
            "adaptive_settings": session.adaptive_settings.to_dict(),
            "current_difficulty": session.current_difficulty.value,
            "question_budget": session.question_budget,
        }

    def submit_response(
        self,
        session_id: str,
        question_id: str,
        answer: Any,
        time_spent_ms: int = 0,
        confidence: float = 0.5,
        hints_used: int = 0,
        attempts: int = 1,
        emotional_state: Optional[EmotionalState] = None,
    ) -> dict[str, Any]:
        """
        Evaluate an answer, adjust difficulty and issue the next question.

        Raises:
            InvalidInputError: Missing question id, or a question not issued in this session
            InvalidStateError: The session is not active
            NotFoundError: Unknown session or question
        """
        if not question_id:
            raise InvalidInputError("question_id is required")

        with self._locked(session_id) as session:
            session.require(SessionStatus.ACTIVE, "submit_response to")

            question = self.bank.get(question_id)
            if question is None:
                raise NotFoundError("question", question_id)
            if question_id not in session.issued_question_ids:
                raise InvalidInputError(
                    f"Question {question_id} was not issued in session {session_id}"
                )

            response = Response(
                session_id=session_id,
                question_id=question_id,
                raw_answer=answer,
                time_spent_ms=time_spent_ms,
                confidence=self._checked_confidence(confidence, session_id),
                hints_used=self._at_least(hints_used, 0, "hints_used", session_id),
                attempts=self._at_least(attempts, 1, "attempts", session_id),
                emotional_state=emotional_state,
                evaluated_at=self.clock(),
            )

            evaluation = self.evaluator.evaluate(question, response)
            controller = session.ensure_controller(self.controller_config)
            adjustment = controller.update(evaluation)
            session.current_difficulty = controller.tier

            record = ResponseRecord(
                question=question,
                response=response,
                evaluation=evaluation,
                adjustment=adjustment,
            )
            session.records.append(record)
            session.last_activity_at = response.evaluated_at

            next_question = None
            if not session.budget_exhausted:
                next_question = self._select_next(session)
                if next_question is not None:
                    session.issued_question_ids.append(next_question.id)
            self.repository.save(session)
            snapshot = session.snapshot()

        insights = learning_insights(snapshot)
        if session.adaptive_settings.real_time_analysis:
            insights["provisional_difficulties"] = [
                finding.to_dict() for finding in self.detector.detect(session, snapshot)
            ]

        if next_question is None:
            logger.info(
                f"Session {session_id}: no further questions after {len(snapshot)} responses"
            )

        return {
            "evaluation": evaluation.to_dict(),
            "feedback": build_feedback(record, session.adaptive_settings.personalized_feedback),
            "next_question": self._render(session, next_question) if next_question else None,
            "difficulty_adjustment": adjustment.to_dict(),
            "learning_insights": insights,
            "recommendations": response_tips(record),
            "budget_remaining": session.budget_remaining,
        }

    def complete(self, session_id: str) -> dict[str, Any]:
        """
        Complete an active session and return its results.

        Completing an already completed session returns the stored results.

        Raises:
            InvalidStateError: The session was abandoned
            NotFoundError: Unknown session
        """
        with self._locked(session_id) as session:
            if session.status is SessionStatus.COMPLETED and session.results is not None:
                logger.debug(f"Session {session_id} already completed, returning stored results")
                return copy.deepcopy(session.results)

            session.require(SessionStatus.ACTIVE, "complete")
            now = self.clock()
            results = self._build_results(session, session.snapshot(), now)

            session.transition(SessionStatus.COMPLETED, "complete")
            session.completed_at = now
            session.last_activity_at = now
            session.results = results
            self.repository.save(session)

        logger.info(
            f"Completed session {session_id}: score {results['score']}%, "
            f"{len(results['difficulties'])} difficulty signals, "
            f"{len(results['recommendations'])} recommendations"
        )
        return copy.deepcopy(results)

    def abandon(self, session_id: str, reason: str = "cancelled") -> dict[str, Any]:
        """Abandon a created or active session."""
        with self._locked(session_id) as session:
            session.transition(SessionStatus.ABANDONED, "abandon")
            session.abandoned_reason = reason
            session.last_activity_at = self.clock()
            self.repository.save(session)

        logger.info(f"Abandoned session {session_id} ({reason})")
        return session.to_dict()

    def expire_stale(self, now: Optional[datetime] = None) -> list[str]:
        """Abandon every non-terminal session idle past the expiry window."""
        now = now or self.clock()
        expired = []
        for candidate in self.repository.all():
            if not candidate.is_expired(now, self.session_expiry_minutes):
                continue
            with self._locked(candidate.session_id) as session:
                # Re-check under the lock; a submission may have landed meanwhile
                if not session.is_expired(now, self.session_expiry_minutes):
                    continue
                session.transition(SessionStatus.ABANDONED, "expire")
                session.abandoned_reason = "expired"
                self.repository.save(session)
            expired.append(candidate.session_id)

        if expired:
            logger.info(f"Expired {len(expired)} stale sessions")
        return expired

    # ----------------------------------------------------------------
    # Helpers
    # ----------------------------------------------------------------

    def _select_next(self, session: AssessmentSession) -> Optional[Question]:
        return self.bank.select(
            session.subject,
            session.current_difficulty,
            exclude=session.issued_question_ids,
            cultural_context=session.cultural_context,
            accessibility_profile=session.accessibility_profile,
        )

    @staticmethod
    def _render(session: AssessmentSession, question: Question) -> dict[str, Any]:
        return question.render(
            session.cultural_context,
            session.accessibility_profile,
            session.adaptive_settings,
        )

    @staticmethod
    def _checked_confidence(confidence: float, session_id: str) -> float:
        if confidence is None:
            return 0.5
        if not 0.0 <= confidence <= 1.0:
            clamped = max(0.0, min(1.0, confidence))
            logger.warning(
                f"Session {session_id}: confidence {confidence} out of range, clamped to {clamped}"
            )
            return clamped
        return confidence

    @staticmethod
    def _at_least(value: int, minimum: int, name: str, session_id: str) -> int:
        if value < minimum:
            logger.warning(f"Session {session_id}: {name}={value} below {minimum}, using {minimum}")
            return minimum
        return value

    def _build_results(
        self,
        session: AssessmentSession,
        records: tuple[ResponseRecord, ...],
        completed_at: datetime,
    ) -> dict[str, Any]:
        total = len(records)
        correct = sum(1 for r in records if r.evaluation.correct)
        score = round(correct / total * 100) if total else 0

        difficulties = self.detector.detect(session, records)
        mastery = estimate_mastery(records)
        recommendations = self.recommender.recommend(session, difficulties, mastery)
        strengths, weaknesses = strengths_and_weaknesses(records, mastery)

        summary = (
            f"{correct}/{total} correct ({score}%), final difficulty "
            f"{session.current_difficulty.value}, mastery {mastery.level.value}"
        )
        if difficulties:
            summary += "; signals: " + ", ".join(
                f"{d.type.value} ({d.severity.value})" for d in difficulties
            )

        return {
            "assessment_id": session.session_id,
            "student_id": session.student_id,
            "subject": session.subject,
            "score": score,
            "total_questions": total,
            "correct_answers": correct,
            "time_spent_ms": sum(max(0, r.evaluation.time_spent_ms) for r in records),
            "difficulty_progression": [
                r.adjustment.direction.value if r.adjustment else "hold" for r in records
            ],
            "final_difficulty": session.current_difficulty.value,
            "mastery": mastery.to_dict(),
            "mastery_level": mastery.level.value,
            "strengths": strengths,
            "weaknesses": weaknesses,
            "difficulties": [d.to_dict() for d in difficulties],
            "recommendations": [r.to_dict() for r in recommendations],
            "learning_path": learning_path(
                recommendations, mastery, session.adaptive_settings.learning_path_optimization
            ),
            "accessibility_recommendations": accessibility_recommendations(
                session.accessibility_profile, difficulties
            ),
            "summary": summary,
            "completed_at": completed_at.isoformat(),
        }
