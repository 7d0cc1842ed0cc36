"""
Goal Trajectory: progress velocity and completion projection.

Computes whether a goal is on track from its historical snapshots.

on_track is three-valued:
- True: projected to hit the target by the due date (or already hit)
- False: behind, stalled, missed, or missing required fields
- None: fewer than two history points, so the pace is unknown

None is not a failure state; downstream detectors branch on it explicitly.
"""

from dataclasses import dataclass
from datetime import date, datetime

from backbone.dates import add_days, days_between

# Data points at which the history bonus saturates
FULL_HISTORY_POINTS = 10


@dataclass
class Velocity:
    velocity: float = 0.0
    data_points: int = 0
    span_days: float = 0.0


@dataclass
class Trajectory:
    on_track: bool | None
    projected_date: date | None
    confidence: float
    explain: str

    def to_dict(self) -> dict:
        return {
            "on_track": self.on_track,
            "projected_date": self.projected_date.isoformat() if self.projected_date else None,
            "confidence": round(self.confidence, 3),
            "explain": self.explain,
        }


def _fmt(value: float) -> str:
    """Render a number the way it was supplied: 100 not 100.0."""
    return str(int(value)) if float(value).is_integer() else str(value)


def calculate_velocity(history) -> Velocity:
    """Units per day between the earliest and latest snapshot."""
    if not history or len(history) < 2:
        return Velocity(data_points=len(history or []))

    ordered = sorted(history, key=lambda p: p.as_of)
    first, last = ordered[0], ordered[-1]
    span_days = days_between(first.as_of, last.as_of)
    if span_days == 0:
        return Velocity(data_points=len(ordered))

    return Velocity(
        velocity=(last.value - first.value) / span_days,
        data_points=len(ordered),
        span_days=span_days,
    )


def project_completion_date(
    current: float, target: float, velocity: float, now: datetime
) -> datetime | None:
    """Date the target is reached at the current pace, or None if never."""
    gap = target - current
    if gap <= 0:
        return now
    if velocity <= 0:
        return None
    try:
        return add_days(now, gap / velocity)
    except OverflowError:
        # Pace too slow to land on any representable date
        return None


def calculate_confidence(
    data_points: int,
    span_days: float,
    days_to_deadline: float,
    velocity_variance: float = 0.0,
) -> float:
    """
    Confidence in a projection, 0-1.

    Base 0.5, up to +0.2 for history depth, up to +0.2 for history span
    relative to the remaining window, up to +0.1 for velocity consistency.
    Variance is not yet measured; callers pass 0.
    """
    confidence = 0.5
    confidence += min(data_points / FULL_HISTORY_POINTS, 1) * 0.2
    if days_to_deadline > 0 and span_days > 0:
        confidence += min(span_days / days_to_deadline, 1) * 0.2
    confidence += (1 - velocity_variance) * 0.1
    return min(max(confidence, 0.0), 1.0)


def derive_trajectory(goal, now: datetime) -> Trajectory:
    """Classify a goal as on track, behind, stalled, missed or unknown."""
    current, target, due = goal.current, goal.target, goal.due

    if target is None:
        return Trajectory(False, None, 0.0, "Missing target value")
    if due is None:
        return Trajectory(False, None, 0.0, "Missing due date")
    if current is None:
        return Trajectory(False, None, 0.0, "Missing current value")

    days_to_deadline = days_between(now, due)
    due_label = due.date().isoformat()

    if current >= target:
        return Trajectory(True, now.date(), 1.0, f"Goal achieved: {_fmt(current)} >= {_fmt(target)}")

    if days_to_deadline < 0:
        return Trajectory(False, None, 1.0, f"Missed: {_fmt(current)}/{_fmt(target)} by {due_label}")

    pace = calculate_velocity(goal.history)
    if pace.data_points < 2:
        required = (target - current) / days_to_deadline if days_to_deadline > 0 else target - current
        return Trajectory(
            None,
            None,
            0.2,
            f"Insufficient history. Need {required:.2f}/day to hit {_fmt(target)} by {due_label}",
        )

    projected = project_completion_date(current, target, pace.velocity, now)
    confidence = calculate_confidence(pace.data_points, pace.span_days, days_to_deadline)

    if projected is None:
        return Trajectory(
            False,
            None,
            confidence,
            f"Stalled or regressing at {pace.velocity:.2f}/day. "
            f"Current: {_fmt(current)}, Target: {_fmt(target)}",
        )

    if projected <= due:
        days_early = int(days_between(projected, due) // 1)
        timing = f"{days_early} days early" if days_early > 0 else "on deadline"
        return Trajectory(
            True,
            projected.date(),
            confidence,
            f"On track at {pace.velocity:.2f}/day. Projected {timing}",
        )

    days_late = int(days_between(due, projected) // 1)
    return Trajectory(
        False,
        projected.date(),
        confidence,
        f"Behind at {pace.velocity:.2f}/day. Projected {days_late} days late",
    )


def derive_company_trajectories(company, now: datetime) -> dict[str, Trajectory]:
    """Trajectory for every goal of a company, keyed by goal id."""
    return {goal.id: derive_trajectory(goal, now) for goal in company.goals}
