"""
Learning Insights and Feedback.

Running signals returned with every submitted response:
- Accuracy, error streak and the timing label of the latest answer
- Trend (first half vs second half of the session)
- Cognitive load estimate (response time, error rate, duration, error streak)
- Per-response feedback with suggestions and the next unused hint
"""
from __future__ import annotations

from collections.abc import Sequence
from statistics import fmean

from assessment_engine.models import ErrorClass, ResponseRecord

FAST_RATIO = 1.25
SLOW_RATIO = 0.67

# Suggestions per error class for constructive feedback
ERROR_SUGGESTIONS: dict[ErrorClass, list[str]] = {
    ErrorClass.REVERSAL: [
        "Check the order of letters or digits before answering",
        "Read the answer aloud or trace it with a finger",
    ],
    ErrorClass.SUBSTITUTION: ["Compare your answer letter by letter with the word in the text"],
    ErrorClass.OMISSION: ["Make sure every part of the answer is included"],
    ErrorClass.INSERTION: ["Check for extra letters or words"],
    ErrorClass.TRANSPOSITION: ["Check the order of the words or steps"],
    ErrorClass.CALCULATION: ["Your method looks close, recheck the arithmetic"],
    ErrorClass.PROCEDURAL: ["Write the steps down one by one and check their order"],
    ErrorClass.CONCEPTUAL: ["Review the concept", "Practice similar exercises"],
    ErrorClass.TIMEOUT: ["Take a short break and try again"],
}


def timing_label(speed_ratio: float, time_spent_ms: int) -> str:
    if time_spent_ms <= 0:
        return "normal"
    if speed_ratio >= FAST_RATIO:
        return "fast"
    if speed_ratio < SLOW_RATIO:
        return "slow"
    return "normal"


def error_streak(records: Sequence[ResponseRecord]) -> int:
    streak = 0
    for record in reversed(records):
        if record.evaluation.correct:
            break
        streak += 1
    return streak


def trend(records: Sequence[ResponseRecord]) -> str:
    """Compare mean quality of the first and second half of the session."""
    if len(records) < 6:
        return "stable"
    mid = len(records) // 2
    first = fmean(r.evaluation.quality_score for r in records[:mid])
    second = fmean(r.evaluation.quality_score for r in records[mid:])
    if second > first + 0.1:
        return "improving"
    if second < first - 0.1:
        return "declining"
    return "stable"


def cognitive_load(records: Sequence[ResponseRecord]) -> dict:
    """
    Estimate cognitive load from the last ten responses.

    Returns a dict with load_percent (0-100), load_level
    (low|moderate|high|critical), a recommendation and the factors.
    """
    if not records:
        return {
            "load_percent": 0,
            "load_level": "low",
            "recommendation": "Ready to learn!",
        }

    recent = list(records[-10:])

    # 1. Response time relative to expected (0-25)
    timed = [r.evaluation.speed_ratio for r in recent if r.evaluation.time_spent_ms > 0]
    if timed:
        slowness = fmean(min(4.0, 1.0 / ratio) if ratio > 0 else 4.0 for ratio in timed)
        time_factor = min(25.0, max(0.0, (slowness - 0.5) * 12.5))
    else:
        time_factor = 0.0

    # 2. Error rate (0-25)
    errors = sum(1 for r in recent if not r.evaluation.correct)
    error_factor = errors / len(recent) * 25

    # 3. Session duration (0-25), 50 minutes saturates
    minutes = sum(max(0, r.evaluation.time_spent_ms) for r in records) / 60_000
    duration_factor = min(25.0, minutes / 2)

    # 4. Error streak (0-25)
    streak_factor = min(25.0, error_streak(recent) * 5.0)

    load_percent = min(100.0, time_factor + error_factor + duration_factor + streak_factor)

    if load_percent < 30:
        level = "low"
        recommendation = "Cognitive resources available. Good time for challenging content."
    elif load_percent < 50:
        level = "moderate"
        recommendation = "Normal load. Continue at current pace."
    elif load_percent < 75:
        level = "high"
        recommendation = "Consider easier content or a short break."
    else:
        level = "critical"
        recommendation = "Take a 10-minute break. Cognitive resources depleted."

    return {
        "load_percent": round(load_percent),
        "load_level": level,
        "recommendation": recommendation,
        "factors": {
            "response_time": round(time_factor, 1),
            "error_rate": round(error_factor, 1),
            "duration": round(duration_factor, 1),
            "error_streak": round(streak_factor, 1),
        },
    }


def learning_insights(records: Sequence[ResponseRecord]) -> dict:
    """Running insights after the latest response."""
    if not records:
        return {
            "responses": 0,
            "running_accuracy": 0.0,
            "error_streak": 0,
            "timing": "normal",
            "trend": "stable",
            "cognitive_load": cognitive_load(records),
        }

    latest = records[-1].evaluation
    correct = sum(1 for r in records if r.evaluation.correct)
    return {
        "responses": len(records),
        "running_accuracy": round(correct / len(records), 4),
        "error_streak": error_streak(records),
        "timing": timing_label(latest.speed_ratio, latest.time_spent_ms),
        "trend": trend(records),
        "cognitive_load": cognitive_load(records),
    }


def build_feedback(record: ResponseRecord, personalized: bool = True) -> dict:
    """
    Feedback for one evaluated response.

    With personalization off only the verdict is returned.
    """
    evaluation = record.evaluation
    question = record.question

    if evaluation.correct:
        feedback = {
            "type": "positive",
            "message": "Excellent work!",
            "quality_score": round(evaluation.quality_score, 4),
            "suggestions": [],
        }
        if personalized and evaluation.confidence > 0.8:
            feedback["message"] += " Your confidence shows you have mastered this concept."
        return feedback

    feedback = {
        "type": "constructive",
        "message": "Don't worry, mistakes are part of learning.",
        "quality_score": round(evaluation.quality_score, 4),
        "suggestions": [],
    }
    if not personalized:
        return feedback

    suggestions = list(ERROR_SUGGESTIONS.get(evaluation.error_class, []))
    hints_used = max(0, record.response.hints_used)
    if hints_used < len(question.hints):
        suggestions.append(f"Hint: {question.hints[hints_used]}")
    if question.explanation:
        feedback["explanation"] = question.explanation
    feedback["error_class"] = evaluation.error_class.value
    feedback["suggestions"] = suggestions
    return feedback


def response_tips(record: ResponseRecord) -> list[str]:
    """Short study tips for the response just submitted."""
    tips = []
    evaluation = record.evaluation
    if timing_label(evaluation.speed_ratio, evaluation.time_spent_ms) == "slow":
        tips.append("Consider practicing to improve your speed")
    if record.response.hints_used > 0:
        tips.append("Use hints whenever you need help")
    if not evaluation.correct and evaluation.confidence >= 0.8:
        tips.append("Double-check answers you feel sure about")
    return tips
