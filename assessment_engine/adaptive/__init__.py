"""
Adaptive policy: difficulty control, difficulty detection, mastery and
recommendations.
"""

from .difficulty_controller import ControllerConfig, DifficultyController, decide
from .difficulty_detector import ACCOMMODATIONS, DetectorConfig, DifficultyDetector
from .mastery import MasteryEstimate, MasteryLevel, estimate_mastery
from .recommendation_generator import RecommendationConfig, RecommendationGenerator

__all__ = [
    "ACCOMMODATIONS",
    "ControllerConfig",
    "DetectorConfig",
    "DifficultyController",
    "DifficultyDetector",
    "MasteryEstimate",
    "MasteryLevel",
    "RecommendationConfig",
    "RecommendationGenerator",
    "decide",
    "estimate_mastery",
]
