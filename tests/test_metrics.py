"""Tests for step metric conversion."""

import pytest

from step_bridge.metrics import StepCounterState, calculate_metrics, goal_progress


def test_zero_steps():
    assert calculate_metrics(0) == StepCounterState(0, 0.0, 0.0)


def test_known_conversion():
    state = calculate_metrics(1000)
    assert state.steps == 1000
    assert state.distance_km == pytest.approx(0.762)
    assert state.calories_kcal == pytest.approx(40.0)


def test_custom_factors():
    state = calculate_metrics(2000, step_length_m=0.5, calories_per_step=0.05)
    assert state.distance_km == pytest.approx(1.0)
    assert state.calories_kcal == pytest.approx(100.0)


@pytest.mark.parametrize("steps", [0, 1, 7, 999, 8000, 123456])
def test_same_input_same_output(steps):
    assert calculate_metrics(steps) == calculate_metrics(steps)


def test_negative_steps_rejected():
    with pytest.raises(ValueError):
        calculate_metrics(-1)


def test_to_dict_uses_storage_keys():
    assert calculate_metrics(10).to_dict() == {
        "steps": 10,
        "distance": pytest.approx(0.00762),
        "calories": pytest.approx(0.4),
    }


def test_goal_progress():
    assert goal_progress(0) == 0.0
    assert goal_progress(5000) == pytest.approx(50.0)
    assert goal_progress(25000) == 100.0
    assert goal_progress(10, goal=0) == 100.0
