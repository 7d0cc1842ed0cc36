"""
Derivation layer: pure functions of (facts, now).

Runway, goal trajectory, probability of hit and health band.
"""

from .goal_trajectory import GoalTrajectory, derive_goal_trajectory
from .health import HealthBand, HealthResult, derive_health
from .runway import RunwayResult, derive_runway
from .trajectory import Trajectory, derive_trajectory

__all__ = [
    "RunwayResult",
    "derive_runway",
    "Trajectory",
    "derive_trajectory",
    "GoalTrajectory",
    "derive_goal_trajectory",
    "HealthBand",
    "HealthResult",
    "derive_health",
]
