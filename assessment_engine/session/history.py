"""
Cross-session read paths.

Aggregates the stored results of a student's completed sessions. Only
completed sessions contribute; their results are frozen, so the aggregates
are stable for a given repository state.
"""
from __future__ import annotations

from collections import defaultdict
from typing import Any

from assessment_engine.models import Priority, SessionStatus, Severity

from .aggregate import AssessmentSession
from .repository import SessionRepository

SEVERITY_RANK = {Severity.MILD.value: 0, Severity.MODERATE.value: 1, Severity.SEVERE.value: 2}


class AssessmentHistory:
    """Query a student's assessment history through a session repository."""

    def __init__(self, repository: SessionRepository):
        self.repository = repository

    def completed_sessions(self, student_id: str) -> list[AssessmentSession]:
        return [
            s for s in self.repository.list_by_student(student_id)
            if s.status is SessionStatus.COMPLETED and s.results is not None
        ]

    def recommendations_by_subject(self, student_id: str, subject: str) -> list[dict[str, Any]]:
        """
        Recommendations for a subject across the student's completed sessions.

        Each lesson appears once, in its most recent form, with how often it was
        recommended. Sorted by priority, frequency, then recency.
        """
        key = subject.strip().lower()
        latest: dict[str, dict[str, Any]] = {}
        counts: dict[str, int] = defaultdict(int)
        seen_at: dict[str, str] = {}

        for session in self.completed_sessions(student_id):
            if session.subject.strip().lower() != key:
                continue
            for rec in session.results["recommendations"]:
                lesson_id = rec["lesson_id"]
                counts[lesson_id] += 1
                latest[lesson_id] = rec
                seen_at[lesson_id] = session.results["completed_at"]

        items = [
            {
                **rec,
                "times_recommended": counts[lesson_id],
                "last_recommended_at": seen_at[lesson_id],
            }
            for lesson_id, rec in latest.items()
        ]
        items.sort(key=lambda r: r["lesson_id"])
        items.sort(key=lambda r: r["last_recommended_at"], reverse=True)
        items.sort(
            key=lambda r: (Priority(r["priority"]).rank, r["times_recommended"]),
            reverse=True,
        )
        return items

    def difficulties_by_student(self, student_id: str) -> list[dict[str, Any]]:
        """
        Difficulty signals across all completed sessions, one entry per type.

        Returns entries with the sessions that raised the signal, the highest
        confidence and severity seen, subjects and merged accommodations.
        """
        merged: dict[str, dict[str, Any]] = {}
        for session in self.completed_sessions(student_id):
            for finding in session.results["difficulties"]:
                entry = merged.setdefault(
                    finding["type"],
                    {
                        "type": finding["type"],
                        "sessions": [],
                        "occurrences": 0,
                        "max_confidence": 0.0,
                        "max_severity": Severity.MILD.value,
                        "subjects": [],
                        "recommended_accommodations": [],
                        "supporting_indicators": [],
                        "last_detected_at": None,
                    },
                )
                entry["occurrences"] += 1
                if session.session_id not in entry["sessions"]:
                    entry["sessions"].append(session.session_id)
                entry["max_confidence"] = max(entry["max_confidence"], finding["confidence"])
                if SEVERITY_RANK[finding["severity"]] > SEVERITY_RANK[entry["max_severity"]]:
                    entry["max_severity"] = finding["severity"]
                subject = finding.get("subject") or session.subject
                if subject not in entry["subjects"]:
                    entry["subjects"].append(subject)
                for tag in finding["recommended_accommodations"]:
                    if tag not in entry["recommended_accommodations"]:
                        entry["recommended_accommodations"].append(tag)
                entry["supporting_indicators"] = list(finding["supporting_indicators"])
                entry["last_detected_at"] = session.results["completed_at"]

        return sorted(merged.values(), key=lambda e: (-e["max_confidence"], e["type"]))
