"""
Tests for base derivations: runway, trajectory, goal forecast and health.
"""

import math
from datetime import date

import pytest

from backbone.config import IssueThresholds
from backbone.derive.goal_trajectory import (
    calculate_probability_of_hit,
    derive_company_goal_trajectories,
    derive_goal_trajectory,
    get_at_risk_goals,
)
from backbone.derive.health import HealthBand, derive_health
from backbone.derive.runway import RunwayResult, derive_company_runway, derive_runway
from backbone.derive.trajectory import (
    calculate_confidence,
    calculate_velocity,
    derive_company_trajectories,
    derive_trajectory,
    project_completion_date,
)
from tests.fixtures.portfolio import NOW, goal_record, iso, make_company, make_goal


# =============================================================================
# RUNWAY
# =============================================================================


class TestRunway:
    def test_fresh_inputs(self):
        result = derive_runway(600_000, 150_000, NOW, NOW, NOW)
        assert result.value == 4.0
        assert result.confidence == 1.0
        assert result.inputs_used == ["cash", "burn"]
        assert result.explain == "4 months runway at current burn rate"

    def test_rounded_to_one_decimal(self):
        assert derive_runway(1_000_000, 300_000, NOW, NOW, NOW).value == 3.3

    def test_missing_burn(self):
        result = derive_runway(1_000_000, None, NOW, None, NOW)
        assert result.value is None
        assert result.confidence == 0.0
        assert result.inputs_missing == ["burn"]
        assert not result.is_known

    def test_zero_burn_is_infinite(self):
        result = derive_runway(1_000_000, 0, NOW, NOW, NOW)
        assert math.isinf(result.value)
        assert result.confidence == 0.5
        assert result.is_known and not result.is_finite
        assert result.to_dict()["value"] == "Infinity"

    def test_negative_cash_is_zero(self):
        result = derive_runway(-5, 100, NOW, NOW, NOW)
        assert result.value == 0.0
        assert result.confidence == 0.9

    @pytest.mark.parametrize(
        ("age_days", "expected"),
        [(0, 1.0), (15, 0.75), (30, 0.5), (400, 0.5)],
    )
    def test_staleness_lowers_confidence_not_value(self, age_days, expected):
        company = make_company(cash=1_200_000, burn=100_000, asOf=iso(-age_days))
        result = derive_company_runway(company, NOW)
        assert result.value == 12.0
        assert result.confidence == pytest.approx(expected)

    def test_stalest_input_wins(self):
        company = make_company(cashAsOf=iso(0), burnAsOf=iso(-30))
        assert derive_company_runway(company, NOW).staleness_penalty == 1.0


# =============================================================================
# TRAJECTORY
# =============================================================================


class TestTrajectory:
    def test_on_track(self):
        goal = make_goal(current=50, target=100, due_in=60, history=[(-30, 20), (0, 50)])
        result = derive_trajectory(goal, NOW)
        assert result.on_track is True
        assert result.projected_date == date(2026, 5, 4)
        assert result.explain == "On track at 1.00/day. Projected 10 days early"
        assert result.confidence == pytest.approx(0.74)

    def test_behind(self):
        goal = make_goal(current=50, target=100, due_in=60, history=[(-30, 40), (0, 50)])
        result = derive_trajectory(goal, NOW)
        assert result.on_track is False
        assert result.explain == "Behind at 0.33/day. Projected 90 days late"

    def test_stalled(self):
        goal = make_goal(current=50, target=100, history=[(-30, 50), (0, 50)])
        result = derive_trajectory(goal, NOW)
        assert result.on_track is False
        assert result.projected_date is None
        assert result.explain.startswith("Stalled or regressing at 0.00/day")

    def test_pace_beyond_calendar_has_no_projection(self):
        assert project_completion_date(0, 1e9, 1 / 300, NOW) is None
        goal = make_goal(current=1, target=1e9, due_in=60, history=[(-300, 0), (0, 1)])
        result = derive_trajectory(goal, NOW)
        assert result.on_track is False
        assert result.projected_date is None

    def test_insufficient_history_is_unknown(self):
        goal = make_goal(current=50, target=100, due_in=60, history=[(-5, 50)])
        result = derive_trajectory(goal, NOW)
        assert result.on_track is None
        assert result.confidence == 0.2
        assert result.explain == "Insufficient history. Need 0.83/day to hit 100 by 2026-05-14"

    def test_achieved_beats_missing_history(self):
        goal = make_goal(current=100, target=100, history=[])
        result = derive_trajectory(goal, NOW)
        assert result.on_track is True
        assert result.projected_date == NOW.date()
        assert result.explain == "Goal achieved: 100 >= 100"

    def test_missed(self):
        goal = make_goal(current=50, target=100, due_in=-5)
        result = derive_trajectory(goal, NOW)
        assert result.on_track is False
        assert result.confidence == 1.0
        assert result.explain == "Missed: 50/100 by 2026-03-10"

    @pytest.mark.parametrize(
        ("field", "explain"),
        [("target", "Missing target value"), ("due", "Missing due date"), ("current", "Missing current value")],
    )
    def test_missing_fields(self, field, explain):
        goal = make_goal(**{field: None})
        result = derive_trajectory(goal, NOW)
        assert (result.on_track, result.confidence, result.explain) == (False, 0.0, explain)

    def test_velocity_uses_earliest_and_latest(self):
        goal = make_goal(history=[(0, 50), (-10, 10), (-5, 40)])
        pace = calculate_velocity(goal.history)
        assert pace.velocity == pytest.approx(4.0)
        assert pace.data_points == 3

    def test_confidence_bounds(self):
        assert calculate_confidence(0, 0, 30) == pytest.approx(0.6)
        assert calculate_confidence(50, 500, 10) == pytest.approx(1.0)

    def test_company_trajectories_keyed_by_goal(self):
        company = make_company(goals=[goal_record("a"), goal_record("b")])
        assert set(derive_company_trajectories(company, NOW)) == {"a", "b"}


# =============================================================================
# GOAL FORECAST
# =============================================================================


class TestGoalTrajectory:
    def test_probability_achieved(self):
        assert calculate_probability_of_hit(1.0, 10, True, 1.0, 0, None) == 1.0

    def test_probability_overdue(self):
        assert calculate_probability_of_hit(0.5, -1, False, 1.0, 0, None) == 0.0

    def test_probability_unknown_trajectory(self):
        # 0.2 * min(1, 15/30) + bonus for more than 14 days left
        assert calculate_probability_of_hit(0.0, 15, None, 0.2, 0, 1.0) == pytest.approx(0.2)

    def test_probability_behind_scales_with_pace(self):
        slow = calculate_probability_of_hit(0.5, 20, False, 1.0, 0.5, 1.0)
        fast = calculate_probability_of_hit(0.5, 20, False, 1.0, 0.9, 1.0)
        assert slow < fast

    def test_on_track_forecast(self):
        goal = make_goal(current=50, target=100, due_in=60, history=[(-30, 20), (0, 50)])
        forecast = derive_goal_trajectory(goal, NOW)
        assert forecast.progress == 0.5
        assert forecast.days_left == 60
        assert forecast.required_velocity == pytest.approx(50 / 60)
        assert forecast.velocity == pytest.approx(1.0)
        # 0.15 progress + 0.4 * 0.74 + 0.15 time bonus
        assert forecast.probability_of_hit == pytest.approx(0.596)
        assert forecast.explain[1] == "Moderate confidence (60%) - may need acceleration"

    def test_days_left_rounds_up(self):
        goal = make_goal(due_in=0.25)
        assert derive_goal_trajectory(goal, NOW).days_left == 1

    def test_reuses_given_trajectory(self):
        goal = make_goal()
        trajectory = derive_trajectory(goal, NOW)
        assert derive_goal_trajectory(goal, NOW, trajectory).trajectory is trajectory

    def test_only_open_goals_forecast(self):
        company = make_company(
            goals=[
                goal_record("open"),
                goal_record("risky", status="at_risk"),
                goal_record("closed", status="completed"),
            ]
        )
        forecasts = derive_company_goal_trajectories(company, NOW)
        assert [f.goal_id for f in forecasts] == ["open", "risky"]

    def test_at_risk_sorted_least_likely_first(self):
        company = make_company(
            goals=[
                goal_record("mid", current=40, due_in=20),
                goal_record("low", current=5, due_in=3),
                goal_record("done", current=100),
            ]
        )
        forecasts = derive_company_goal_trajectories(company, NOW)
        assert [f.goal_id for f in get_at_risk_goals(forecasts)] == ["low", "mid"]


# =============================================================================
# HEALTH
# =============================================================================


class TestHealth:
    def _runway(self, value, confidence=1.0):
        return RunwayResult(value=value, confidence=confidence)

    def test_red(self):
        health = derive_health(self._runway(4.0))
        assert health.band == HealthBand.RED
        assert health.signals == ["Runway 4.0 months < 6 month critical threshold"]

    def test_yellow(self):
        assert derive_health(self._runway(8.0)).band == HealthBand.YELLOW

    def test_green(self):
        assert derive_health(self._runway(12.0)).band == HealthBand.GREEN

    def test_unknown_runway_is_low_confidence_green(self):
        health = derive_health(self._runway(None, 0.0))
        assert (health.band, health.confidence) == (HealthBand.GREEN, 0.3)

    def test_infinite_runway(self):
        assert derive_health(self._runway(math.inf, 0.5)).band == HealthBand.GREEN

    def test_thresholds_configurable(self):
        health = derive_health(self._runway(4.0), IssueThresholds(runway_critical_months=3))
        assert health.band == HealthBand.YELLOW
