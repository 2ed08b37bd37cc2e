"""
Difficulty Controller.

A small state machine over the easy / medium / hard tiers driven by a
sliding window of the most recent evaluations:

- mean quality >= increase threshold and not on the top tier    -> increase
- mean quality <= decrease threshold and not on the bottom tier -> decrease
- otherwise                                                     -> hold

The window is never reset on a direction change; only the oldest entry rolls
off. With fewer than a full window of evaluations the controller holds.
Inconsistent entries (negative time spent, out-of-range quality) stay in the
window but are excluded from the mean.
"""
from __future__ import annotations

from collections import deque
from collections.abc import Iterable, Sequence
from dataclasses import dataclass
from statistics import fmean
from typing import TYPE_CHECKING

from loguru import logger

from assessment_engine.models import (
    DifficultyAdjustment,
    Direction,
    EvaluationResult,
    Tier,
)

if TYPE_CHECKING:
    from config import Settings


@dataclass
class ControllerConfig:
    """Configuration for difficulty control."""

    window_size: int = 3
    increase_threshold: float = 0.8
    decrease_threshold: float = 0.4

    @classmethod
    def from_settings(cls, settings: Settings) -> ControllerConfig:
        return cls(
            window_size=settings.controller_window_size,
            increase_threshold=settings.increase_threshold,
            decrease_threshold=settings.decrease_threshold,
        )


def decide(
    tier: Tier,
    window: Sequence[EvaluationResult],
    config: ControllerConfig,
    enabled: bool = True,
) -> DifficultyAdjustment:
    """
    Decide the next tier from the current tier and a window of evaluations.

    Pure function: moves at most one tier and explains itself in the rationale.
    """
    def hold(*rationale: str, mean: float | None = None) -> DifficultyAdjustment:
        return DifficultyAdjustment(
            direction=Direction.HOLD,
            previous_tier=tier,
            new_tier=tier,
            rationale=tuple(rationale),
            window_mean=mean,
        )

    if not enabled:
        return hold("adjustment_disabled")

    if len(window) < config.window_size:
        return hold(f"insufficient_responses={len(window)}/{config.window_size}")

    recent = list(window)[-config.window_size:]
    consistent = [r for r in recent if r.is_consistent]
    rationale = [f"window_size={config.window_size}"]
    excluded = len(recent) - len(consistent)
    if excluded:
        rationale.append(f"excluded_inconsistent={excluded}")

    if not consistent:
        return hold(*rationale, "no_consistent_entries")

    mean = fmean(r.quality_score for r in consistent)

    if mean >= config.increase_threshold:
        rationale.append(f"window_mean={mean:.2f}>={config.increase_threshold:.2f}")
        if tier.is_top:
            return hold(*rationale, "already_at_top_tier", mean=mean)
        return DifficultyAdjustment(
            direction=Direction.INCREASE,
            previous_tier=tier,
            new_tier=tier.step_up(),
            rationale=tuple(rationale),
            window_mean=mean,
        )

    if mean <= config.decrease_threshold:
        rationale.append(f"window_mean={mean:.2f}<={config.decrease_threshold:.2f}")
        if tier.is_bottom:
            return hold(*rationale, "already_at_bottom_tier", mean=mean)
        return DifficultyAdjustment(
            direction=Direction.DECREASE,
            previous_tier=tier,
            new_tier=tier.step_down(),
            rationale=tuple(rationale),
            window_mean=mean,
        )

    rationale.append(
        f"window_mean={mean:.2f} within ({config.decrease_threshold:.2f}, {config.increase_threshold:.2f})"
    )
    return hold(*rationale, mean=mean)


class DifficultyController:
    """
    Stateful wrapper around decide() for one session.

    Holds the current tier and the sliding window. Rebuild it from history
    with replay() when a session is loaded from storage.
    """

    def __init__(self, tier: Tier, config: ControllerConfig | None = None, enabled: bool = True):
        self.tier = tier
        self.config = config or ControllerConfig()
        self.enabled = enabled
        self._window: deque[EvaluationResult] = deque(maxlen=self.config.window_size)

    @classmethod
    def replay(
        cls,
        initial_tier: Tier,
        results: Iterable[EvaluationResult],
        config: ControllerConfig | None = None,
        enabled: bool = True,
    ) -> DifficultyController:
        controller = cls(initial_tier, config, enabled)
        for result in results:
            controller.update(result)
        return controller

    @property
    def window(self) -> tuple[EvaluationResult, ...]:
        return tuple(self._window)

    def update(self, result: EvaluationResult) -> DifficultyAdjustment:
        """Add an evaluation to the window and apply the transition rule."""
        self._window.append(result)
        adjustment = decide(self.tier, self.window, self.config, self.enabled)
        if adjustment.direction is not Direction.HOLD:
            logger.debug(
                f"Difficulty {adjustment.direction.value}: "
                f"{adjustment.previous_tier.value} -> {adjustment.new_tier.value} "
                f"({', '.join(adjustment.rationale)})"
            )
        self.tier = adjustment.new_tier
        return adjustment
