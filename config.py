"""
Configuration settings for the adaptive assessment engine.

Uses Pydantic Settings for environment variable management with .env file support.
Every threshold of the adaptive policy lives here so that the policy can be tuned
without touching the engine code.
"""
from __future__ import annotations

from functools import lru_cache
from typing import Any, Literal

from pydantic import Field
from pydantic_settings import BaseSettings, SettingsConfigDict


class Settings(BaseSettings):
    """Application settings loaded from environment variables."""

    model_config = SettingsConfigDict(
        env_file=".env",
        env_file_encoding="utf-8",
        case_sensitive=False,
        extra="ignore",
    )

    # ========================================
    # Response Evaluation
    # ========================================
    edit_distance_tolerance: int = Field(
        default=2,
        ge=0,
        description="Max edit distance for a free-text answer to count as a near miss",
    )
    timeout_ms: int = Field(
        default=120_000,
        ge=0,
        description="An empty answer submitted after this long is a timeout, not an omission",
    )
    default_expected_time_ms: int = Field(
        default=60_000,
        gt=0,
        description="Expected answer time for questions that do not declare one",
    )
    numeric_calculation_tolerance: float = Field(
        default=0.25,
        ge=0,
        description="Relative error under which a wrong number is a calculation slip",
    )

    # ========================================
    # Difficulty Controller
    # ========================================
    controller_window_size: int = Field(
        default=3,
        ge=1,
        description="Number of recent evaluations in the sliding window",
    )
    increase_threshold: float = Field(
        default=0.8,
        ge=0,
        le=1,
        description="Window mean quality at or above which difficulty increases",
    )
    decrease_threshold: float = Field(
        default=0.4,
        ge=0,
        le=1,
        description="Window mean quality at or below which difficulty decreases",
    )

    # ========================================
    # Learning Difficulty Detection
    # ========================================
    detector_min_sample_size: int = Field(
        default=5,
        ge=1,
        description="Minimum responses per subject before detection runs",
    )
    detector_confidence_threshold: float = Field(
        default=0.6,
        ge=0,
        le=1,
        description="Findings are reported only above this confidence",
    )
    severity_moderate_threshold: float = Field(
        default=0.72,
        ge=0,
        le=1,
        description="Confidence above which severity is moderate",
    )
    severity_severe_threshold: float = Field(
        default=0.85,
        ge=0,
        le=1,
        description="Confidence above which severity is severe",
    )

    # ========================================
    # Recommendations
    # ========================================
    max_recommendations: int = Field(
        default=5,
        ge=1,
        description="Maximum number of recommendations returned",
    )

    # ========================================
    # Session
    # ========================================
    question_budget: int = Field(
        default=10,
        ge=1,
        description="Maximum number of questions issued per session",
    )
    session_expiry_minutes: int = Field(
        default=120,
        ge=1,
        description="Active sessions idle for longer than this are abandoned",
    )

    # ========================================
    # Logging
    # ========================================
    log_level: Literal["DEBUG", "INFO", "WARNING", "ERROR"] = Field(
        default="INFO",
        description="Logging level",
    )
    log_file: str | None = Field(
        default=None,
        description="Optional log file path",
    )

    def get_engine_config(self) -> dict[str, Any]:
        """Get the adaptive policy configuration as a dictionary."""
        return {
            "evaluation": {
                "edit_distance_tolerance": self.edit_distance_tolerance,
                "timeout_ms": self.timeout_ms,
                "default_expected_time_ms": self.default_expected_time_ms,
                "numeric_calculation_tolerance": self.numeric_calculation_tolerance,
            },
            "controller": {
                "window_size": self.controller_window_size,
                "increase_threshold": self.increase_threshold,
                "decrease_threshold": self.decrease_threshold,
            },
            "detector": {
                "min_sample_size": self.detector_min_sample_size,
                "confidence_threshold": self.detector_confidence_threshold,
                "severity_bands": {
                    "moderate": self.severity_moderate_threshold,
                    "severe": self.severity_severe_threshold,
                },
            },
            "recommendations": {
                "max_recommendations": self.max_recommendations,
            },
            "session": {
                "question_budget": self.question_budget,
                "session_expiry_minutes": self.session_expiry_minutes,
            },
        }


@lru_cache(maxsize=1)
def get_settings() -> Settings:
    """Get cached settings instance."""
    return Settings()
