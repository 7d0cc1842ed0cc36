"""
Goal Forecast & Probability-of-Hit.

Extends trajectory.py with progress, days left, required pace and a 0-1
probability of hitting the target by the due date. Feeds pre-issue
forecasting, introduction search and goal-sourced actions.
"""

import math
from dataclasses import dataclass, field
from datetime import datetime

from backbone.dates import days_remaining
from backbone.derive.trajectory import Trajectory, calculate_velocity, derive_trajectory

# Goal statuses that still get a forecast
FORECAST_STATUSES = ("active", "at_risk")

# (days left above, bonus)
TIME_BONUSES = ((60, 0.2), (30, 0.15), (14, 0.1), (7, 0.05))


@dataclass
class GoalTrajectory:
    goal_id: str
    goal_name: str
    goal_type: str
    company_id: str | None
    current: float | None
    target: float | None
    progress: float
    due: datetime | None
    days_left: int | None
    trajectory: Trajectory
    velocity: float
    required_velocity: float | None
    probability_of_hit: float
    explain: list[str] = field(default_factory=list)

    @property
    def on_track(self) -> bool | None:
        return self.trajectory.on_track

    @property
    def confidence(self) -> float:
        return self.trajectory.confidence

    @property
    def metric_key(self) -> str:
        return self.goal_type or "custom"

    def to_dict(self) -> dict:
        return {
            "goal_id": self.goal_id,
            "goal_name": self.goal_name,
            "goal_type": self.goal_type,
            "company_id": self.company_id,
            "current": self.current,
            "target": self.target,
            "progress": round(self.progress, 4),
            "due": self.due.isoformat() if self.due else None,
            "days_left": self.days_left,
            "on_track": self.on_track,
            "projected_date": self.trajectory.to_dict()["projected_date"],
            "velocity": round(self.velocity, 4),
            "required_velocity": (
                round(self.required_velocity, 4) if self.required_velocity is not None else None
            ),
            "probability_of_hit": round(self.probability_of_hit, 4),
            "confidence": round(self.confidence, 3),
            "explain": list(self.explain),
        }


def calculate_probability_of_hit(
    progress: float,
    days_left: int | None,
    on_track: bool | None,
    confidence: float,
    velocity: float,
    required_velocity: float | None,
) -> float:
    """
    Probability (0-1) of hitting the target by the due date.

    base = progress × 0.3, plus a trajectory term (0.4 × confidence when on
    track; 0.2 × pace ratio × confidence when behind; 0.2 × time buffer when
    unknown), plus a tiered bonus for time remaining.
    """
    if progress >= 1:
        return 1.0
    if days_left is not None and days_left < 0:
        return 0.0

    prob = progress * 0.3

    if on_track is True:
        prob += 0.4 * confidence
    elif on_track is False:
        if velocity > 0 and required_velocity:
            prob += 0.2 * min(1.0, velocity / required_velocity) * confidence
    elif days_left is not None and days_left > 0:
        prob += 0.2 * min(1.0, days_left / 30)

    if days_left is not None:
        for threshold, bonus in TIME_BONUSES:
            if days_left > threshold:
                prob += bonus
                break

    return min(1.0, max(0.0, prob))


def _confidence_label(probability: float) -> str:
    pct = f"{probability * 100:.0f}%"
    if probability >= 0.8:
        return f"High confidence ({pct}) of hitting target"
    if probability >= 0.5:
        return f"Moderate confidence ({pct}) - may need acceleration"
    if probability >= 0.2:
        return f"At risk ({pct}) - intervention needed"
    return f"Unlikely to hit ({pct}) without major change"


def derive_goal_trajectory(
    goal, now: datetime, trajectory: Trajectory | None = None
) -> GoalTrajectory:
    """Forecast one goal, reusing an already derived trajectory when given."""
    if trajectory is None:
        trajectory = derive_trajectory(goal, now)

    current = goal.current
    target = goal.target
    if target and target > 0 and current is not None:
        progress = min(1.0, current / target)
    else:
        progress = 0.0

    days_left = days_remaining(goal.due, now)

    required_velocity = None
    if days_left and days_left > 0 and current is not None and target is not None:
        required_velocity = (target - current) / days_left

    velocity = calculate_velocity(goal.history).velocity
    probability = calculate_probability_of_hit(
        progress,
        days_left,
        trajectory.on_track,
        trajectory.confidence,
        velocity,
        required_velocity,
    )

    return GoalTrajectory(
        goal_id=goal.id,
        goal_name=goal.name,
        goal_type=goal.type,
        company_id=goal.company_id,
        current=current,
        target=target,
        progress=progress,
        due=goal.due,
        days_left=days_left,
        trajectory=trajectory,
        velocity=velocity,
        required_velocity=(
            required_velocity
            if required_velocity is not None and math.isfinite(required_velocity)
            else None
        ),
        probability_of_hit=probability,
        explain=[trajectory.explain, _confidence_label(probability)],
    )


def derive_company_goal_trajectories(
    company, now: datetime, trajectories: dict[str, Trajectory] | None = None
) -> list[GoalTrajectory]:
    """Forecasts for every active or at-risk goal of a company."""
    trajectories = trajectories or {}
    return [
        derive_goal_trajectory(goal, now, trajectories.get(goal.id))
        for goal in company.goals
        if goal.status in FORECAST_STATUSES
    ]


def get_at_risk_goals(trajectories: list[GoalTrajectory], threshold: float = 0.5) -> list[GoalTrajectory]:
    """Goals below threshold probability, least likely first."""
    return sorted(
        (t for t in trajectories if t.probability_of_hit < threshold),
        key=lambda t: t.probability_of_hit,
    )
