"""
Unit tests for request validation in the assessment service.

Run: pytest tests/unit/test_service_models.py -v
"""

import pytest

from assessment_engine.errors import InvalidInputError
from assessment_engine.models import AssessmentType, EmotionalState, Tier
from assessment_engine.service import (
    CreateSessionRequest,
    SessionRequest,
    SubmitResponseRequest,
    parse_request,
)


class TestCreateSessionRequest:
    def test_camel_case_payload(self):
        request = parse_request(CreateSessionRequest, {
            "studentId": "stu-1",
            "subject": "reading",
            "assessmentType": "progress",
            "difficulty": "easy",
            "culturalContext": {"culture": "es-MX", "language": "es"},
            "accessibilityProfile": {"hearing": True},
            "adaptiveSettings": {"difficultyAdjustment": False},
            "studentProfile": {"age": 9, "nativeLanguage": "es"},
        })
        assert request.student_id == "stu-1"
        assert request.assessment_type is AssessmentType.PROGRESS
        assert request.difficulty is Tier.EASY
        assert request.cultural_context.culture == "es-MX"
        assert request.accessibility_profile.hearing
        assert not request.adaptive_settings.difficulty_adjustment
        assert request.adaptive_settings.personalized_feedback
        assert request.student_profile.native_language == "es"

    def test_snake_case_payload(self):
        request = parse_request(CreateSessionRequest, {"student_id": "stu-1", "subject": "math"})
        assert request.difficulty is Tier.MEDIUM
        assert request.cultural_context is None

    def test_whitespace_is_stripped(self):
        request = parse_request(CreateSessionRequest, {"studentId": "  stu-1 ", "subject": " math"})
        assert request.student_id == "stu-1"
        assert request.subject == "math"

    @pytest.mark.parametrize("payload", [
        {"subject": "math"},
        {"studentId": "", "subject": "math"},
        {"studentId": "stu-1", "subject": "math", "difficulty": "extreme"},
        {"studentId": "stu-1", "subject": "math", "studentProfile": {"age": 1}},
    ])
    def test_invalid_payloads(self, payload):
        with pytest.raises(InvalidInputError):
            parse_request(CreateSessionRequest, payload)

    def test_error_message_names_the_field(self):
        with pytest.raises(InvalidInputError, match="studentId"):
            parse_request(CreateSessionRequest, {"subject": "math"})

    def test_model_instance_passes_through(self):
        request = CreateSessionRequest(student_id="stu-1", subject="math")
        assert parse_request(CreateSessionRequest, request) is request


class TestSubmitResponseRequest:
    @pytest.mark.parametrize("key", ["time_spent_ms", "timeSpentMs", "time_spent", "timeSpent"])
    def test_time_spent_aliases(self, key):
        request = parse_request(SubmitResponseRequest, {
            "assessmentId": "a1", "questionId": "q1", "answer": "cat", key: 4200,
        })
        assert request.time_spent_ms == 4200

    def test_defaults(self):
        request = parse_request(SubmitResponseRequest, {"assessmentId": "a1", "questionId": "q1"})
        assert request.answer is None
        assert request.confidence == 0.5
        assert request.hints_used == 0
        assert request.attempts == 1

    def test_out_of_range_confidence_is_accepted(self):
        request = parse_request(SubmitResponseRequest, {
            "assessmentId": "a1", "questionId": "q1", "confidence": 1.7,
        })
        assert request.confidence == 1.7

    def test_emotional_state(self):
        request = parse_request(SubmitResponseRequest, {
            "assessmentId": "a1", "questionId": "q1", "emotionalState": "confused",
        })
        assert request.emotional_state is EmotionalState.CONFUSED

    @pytest.mark.parametrize("payload", [
        {"assessmentId": "a1"},
        {"assessmentId": "a1", "questionId": "q1", "timeSpentMs": "soon"},
        {"assessmentId": "a1", "questionId": "q1", "emotionalState": "sleepy"},
        {"assessmentId": "a1", "questionId": "q1", "confidence": "nan"},
    ])
    def test_invalid_payloads(self, payload):
        with pytest.raises(InvalidInputError):
            parse_request(SubmitResponseRequest, payload)


def test_session_request_default_reason():
    assert parse_request(SessionRequest, {"assessmentId": "a1"}).reason == "cancelled"
