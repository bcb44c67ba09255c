"""Conversion of step counts to distance and calorie estimates."""

from __future__ import annotations

from dataclasses import dataclass

STEP_LENGTH_M = 0.762
CALORIES_PER_STEP = 0.04
STEPS_GOAL = 10000


@dataclass(frozen=True)
class StepCounterState:
    """Cumulative step count with its derived distance and energy."""

    steps: int = 0
    distance_km: float = 0.0
    calories_kcal: float = 0.0

    def to_dict(self) -> dict:
        return {
            "steps": self.steps,
            "distance": self.distance_km,
            "calories": self.calories_kcal,
        }


def calculate_metrics(
    steps: int,
    step_length_m: float = STEP_LENGTH_M,
    calories_per_step: float = CALORIES_PER_STEP,
) -> StepCounterState:
    """Map a cumulative step count to distance (km) and calories (kcal)."""
    if steps < 0:
        raise ValueError(f"steps must not be negative: {steps}")
    return StepCounterState(
        steps=steps,
        distance_km=steps * step_length_m / 1000,
        calories_kcal=steps * calories_per_step,
    )


def goal_progress(steps: int, goal: int = STEPS_GOAL) -> float:
    """Percentage of the daily goal reached, capped at 100."""
    if goal <= 0:
        return 100.0
    return min(steps / goal * 100, 100.0)
