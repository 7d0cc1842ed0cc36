"""
Canonical Action Schema.

Actions are the primary decisioning artifact. Each one has exactly one
source, which is one of:

    IssueSource | PreIssueSource | GoalSource | IntroductionSource | ManualSource

Sources carry the record they came from, so impact derivation and the
ranking penalties pattern-match on the source instead of looking records
up by id.

Every ranked action must carry an ImpactModel whose seven dimensions sit
inside IMPACT_BOUNDS and whose explain list has 2-6 non-empty entries.
Out-of-range values are errors; nothing is clamped at validation time.
"""

import hashlib
import math
from dataclasses import dataclass, field, fields
from datetime import datetime
from enum import StrEnum

from backbone.dates import isoformat
from backbone.derive.goal_trajectory import GoalTrajectory
from backbone.predict.intro_opportunity import IntroductionOpportunity
from backbone.predict.issues import Issue
from backbone.predict.preissues import PreIssue

ENTITY_TYPES = ("company", "deal", "round", "relationship", "person", "goal", "portfolio", "other")

MIN_EXPLAIN = 2
MAX_EXPLAIN = 6


class SourceType(StrEnum):
    ISSUE = "ISSUE"
    PREISSUE = "PREISSUE"
    GOAL = "GOAL"
    INTRODUCTION = "INTRODUCTION"
    MANUAL = "MANUAL"


class ImpactValidationError(Exception):
    """Raised when an impact model is out of bounds or unexplained."""

    def __init__(self, errors: list[str], action_id: str | None = None):
        self.errors = errors
        self.action_id = action_id
        prefix = f"{action_id}: " if action_id else ""
        super().__init__(prefix + "; ".join(errors))


# =============================================================================
# SOURCES
# =============================================================================


@dataclass(frozen=True)
class IssueSource:
    issue: Issue
    source_type = SourceType.ISSUE

    @property
    def key(self) -> str:
        return f"issue:{self.issue.issue_id}"

    def to_dict(self) -> dict:
        data = {
            "source_type": str(self.source_type),
            "issue_id": self.issue.issue_id,
            "issue_type": str(self.issue.issue_type),
        }
        if self.issue.goal_id:
            data["goal_id"] = self.issue.goal_id
        return data


@dataclass(frozen=True)
class PreIssueSource:
    preissue: PreIssue
    source_type = SourceType.PREISSUE

    @property
    def key(self) -> str:
        return f"preissue:{self.preissue.pre_issue_id}"

    def to_dict(self) -> dict:
        return {
            "source_type": str(self.source_type),
            "pre_issue_id": self.preissue.pre_issue_id,
            "pre_issue_type": str(self.preissue.pre_issue_type),
        }


@dataclass(frozen=True)
class GoalSource:
    trajectory: GoalTrajectory
    source_type = SourceType.GOAL

    @property
    def key(self) -> str:
        return f"goal:{self.trajectory.goal_id}"

    def to_dict(self) -> dict:
        return {
            "source_type": str(self.source_type),
            "goal_id": self.trajectory.goal_id,
            "metric_key": self.trajectory.metric_key,
        }


@dataclass(frozen=True)
class IntroductionSource:
    opportunity: IntroductionOpportunity
    source_type = SourceType.INTRODUCTION

    @property
    def key(self) -> str:
        return f"intro:{self.opportunity.id}"

    def to_dict(self) -> dict:
        return {
            "source_type": str(self.source_type),
            "intro_id": self.opportunity.id,
            "goal_id": self.opportunity.goal_id,
            "timing": str(self.opportunity.timing.timing),
            "trust_risk_score": self.opportunity.trust_risk.score,
        }


@dataclass(frozen=True)
class ManualSource:
    note: str
    source_type = SourceType.MANUAL

    @property
    def key(self) -> str:
        return f"manual:{self.note[:20]}"

    def to_dict(self) -> dict:
        return {"source_type": str(self.source_type), "note": self.note}


ActionSource = IssueSource | PreIssueSource | GoalSource | IntroductionSource | ManualSource


# =============================================================================
# IMPACT MODEL
# =============================================================================

IMPACT_BOUNDS: dict[str, tuple[float, float]] = {
    "upside_magnitude": (0, 100),
    "probability_of_success": (0, 1),
    "execution_probability": (0, 1),
    "downside_magnitude": (0, 100),
    "time_to_impact_days": (0, math.inf),
    "effort_cost": (0, 100),
    "second_order_leverage": (0, 100),
}


@dataclass
class ImpactModel:
    upside_magnitude: float
    probability_of_success: float
    execution_probability: float
    downside_magnitude: float
    time_to_impact_days: float
    effort_cost: float
    second_order_leverage: float
    explain: list[str] = field(default_factory=list)

    @property
    def combined_probability(self) -> float:
        return self.execution_probability * self.probability_of_success

    def to_dict(self) -> dict:
        data = {f.name: getattr(self, f.name) for f in fields(self) if f.name != "explain"}
        data["explain"] = list(self.explain)
        return data


def validate_impact_model(impact: ImpactModel | None) -> list[str]:
    """Every bound and explain-list violation; empty list means valid."""
    if impact is None:
        return ["impact is required"]

    errors = []
    for name, (low, high) in IMPACT_BOUNDS.items():
        value = getattr(impact, name, None)
        if isinstance(value, bool) or not isinstance(value, (int, float)) or math.isnan(value):
            errors.append(f"impact.{name} must be a number")
        elif not low <= value <= high:
            errors.append(f"impact.{name} must be in [{low:g}, {high:g}], got {value}")

    explain = impact.explain
    if not isinstance(explain, list) or not explain:
        errors.append("impact.explain must be a non-empty list")
    elif len(explain) < MIN_EXPLAIN:
        errors.append(f"impact.explain must have at least {MIN_EXPLAIN} items")
    elif len(explain) > MAX_EXPLAIN:
        errors.append(f"impact.explain must have at most {MAX_EXPLAIN} items")
    elif not all(isinstance(e, str) and e.strip() for e in explain):
        errors.append("impact.explain items must be non-empty strings")
    return errors


def ensure_valid_impact(impact: ImpactModel | None, action_id: str | None = None) -> ImpactModel:
    """Strict variant of validate_impact_model."""
    errors = validate_impact_model(impact)
    if errors:
        raise ImpactValidationError(errors, action_id)
    return impact


# =============================================================================
# ACTION
# =============================================================================


@dataclass
class Action:
    action_id: str
    title: str
    entity_ref: dict
    sources: tuple[ActionSource, ...]
    resolution_id: str | None
    steps: list[str]
    created_at: datetime
    impact: ImpactModel | None = None
    days_until_deadline: float | None = None
    complexity: float | None = None

    @property
    def source(self) -> ActionSource:
        return self.sources[0]

    @property
    def source_type(self) -> SourceType:
        return self.source.source_type

    @property
    def company_id(self) -> str | None:
        if self.entity_ref.get("type") == "company":
            return self.entity_ref.get("id")
        return self.entity_ref.get("company_id")

    def to_dict(self) -> dict:
        return {
            "action_id": self.action_id,
            "title": self.title,
            "entity_ref": dict(self.entity_ref),
            "sources": [s.to_dict() for s in self.sources],
            "resolution_id": self.resolution_id,
            "steps": list(self.steps),
            "impact": self.impact.to_dict() if self.impact else None,
            "created_at": isoformat(self.created_at),
            "days_until_deadline": self.days_until_deadline,
        }


def generate_action_id(entity_ref: dict, resolution_id: str | None, sources) -> str:
    """Content-addressed id from the entity, resolution and sorted source keys."""
    parts = [
        entity_ref.get("type", ""),
        entity_ref.get("id", ""),
        resolution_id or "no-resolution",
        *sorted(s.key for s in sources),
    ]
    return "action-" + hashlib.sha256("|".join(parts).encode()).hexdigest()[:12]


def create_action(
    entity_ref: dict,
    title: str,
    source: ActionSource,
    resolution_id: str | None,
    steps,
    created_at: datetime,
    days_until_deadline: float | None = None,
    complexity: float | None = None,
) -> Action:
    sources = (source,)
    return Action(
        action_id=generate_action_id(entity_ref, resolution_id, sources),
        title=title,
        entity_ref=entity_ref,
        sources=sources,
        resolution_id=resolution_id,
        steps=list(steps),
        created_at=created_at,
        days_until_deadline=days_until_deadline,
        complexity=complexity,
    )


def validate_entity_ref(ref) -> list[str]:
    if not isinstance(ref, dict):
        return ["entity_ref must be a mapping"]
    errors = []
    if ref.get("type") not in ENTITY_TYPES:
        errors.append(f"entity_ref.type must be one of: {', '.join(ENTITY_TYPES)}")
    if not isinstance(ref.get("id"), str) or not ref.get("id"):
        errors.append("entity_ref.id must be a non-empty string")
    return errors


def validate_action(action: Action, require_impact: bool = True) -> list[str]:
    """Structural problems with an action; empty list means valid."""
    errors = []
    if not action.action_id:
        errors.append("Missing action_id")
    if not action.title:
        errors.append("Missing title")
    errors.extend(validate_entity_ref(action.entity_ref))
    if len(action.sources) != 1:
        errors.append(f"Action must have exactly one source, has {len(action.sources)}")
    elif isinstance(action.source, ManualSource) and not action.source.note:
        errors.append("MANUAL source requires note")
    if not isinstance(action.steps, list):
        errors.append("steps must be a list")
    if require_impact:
        errors.extend(validate_impact_model(action.impact))
    return errors
