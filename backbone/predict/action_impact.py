"""
Impact Model Attachment.

Derives the seven impact dimensions of every candidate action from its
source, independently of each other:

- upside_magnitude (0-100)
- probability_of_success (0-1): will it work if executed?
- execution_probability (0-1): will the founder actually do it?
- downside_magnitude (0-100)
- time_to_impact_days (>=0)
- effort_cost (0-100)
- second_order_leverage (0-100)

plus a 2-6 item explanation. Introductions adjust upside, execution and
time to impact by their timing; their trust risk is their downside.
"""

import logging
import math
from dataclasses import dataclass, field, replace

from backbone.derive.goal_trajectory import GoalTrajectory
from backbone.predict.action_schema import (
    MAX_EXPLAIN,
    MIN_EXPLAIN,
    Action,
    GoalSource,
    ImpactModel,
    IntroductionSource,
    IssueSource,
    ManualSource,
    PreIssueSource,
    validate_action,
)
from backbone.predict.intro_opportunity import Timing
from backbone.predict.issues import Severity
from backbone.predict.resolutions import get_any_resolution
from backbone.predict.ripple import RippleResult, calculate_issue_ripple

logger = logging.getLogger(__name__)

TIMING_UPSIDE_MULTIPLIER = {Timing.NOW: 1.2, Timing.SOON: 1.0, Timing.LATER: 0.7, Timing.NEVER: 0.0}
TIMING_EXECUTION_ADJUST = {Timing.NOW: 0.1, Timing.SOON: 0.0, Timing.LATER: -0.15, Timing.NEVER: -1.0}
TIMING_DAYS_TO_IMPACT = {Timing.NOW: 14, Timing.SOON: 30, Timing.LATER: 60, Timing.NEVER: 180}

# Company pre-issues matter most, peripheral entities less
ENTITY_WEIGHTS = {
    "company": 1.0,
    "deal": 0.85,
    "round": 0.80,
    "person": 0.55,
    "relationship": 0.50,
}
DEFAULT_ENTITY_WEIGHT = 0.6

# Reactive issues should outrank prevention
PREISSUE_UPSIDE_CAP = 65
DEFAULT_EFFORT_DAYS = 7
STANDARD_EXECUTION = "Standard execution probability"


@dataclass
class ImpactContext:
    """What impact derivation may read besides the action itself."""

    company: object = None
    goal_trajectories: list[GoalTrajectory] = field(default_factory=list)
    ripple: RippleResult | None = None


@dataclass
class Derived:
    value: float
    explain: str


def _effort(action: Action) -> float:
    resolution = get_any_resolution(action.resolution_id) if action.resolution_id else None
    return resolution.default_effort if resolution else DEFAULT_EFFORT_DAYS


def _default_impact(action: Action) -> float:
    resolution = get_any_resolution(action.resolution_id) if action.resolution_id else None
    return resolution.default_impact if resolution else 0.5


# =============================================================================
# DIMENSIONS
# =============================================================================


def derive_upside_magnitude(action: Action, context: ImpactContext) -> Derived:
    base = _default_impact(action)
    match action.source:
        case IssueSource(issue=issue):
            if issue.severity == Severity.CRITICAL:
                return Derived(round(max(70, base * 85)), f"Critical issue resolution ({issue.issue_type})")
            if issue.severity == Severity.HIGH:
                return Derived(round(max(55, base * 70)), "High-severity issue resolution")
            return Derived(round(max(40, base * 55)), f"Issue resolution ({issue.issue_type})")

        case PreIssueSource(preissue=p):
            entity_type = p.entity_ref.get("type", "company")
            value = (55 if p.severity == "high" else 40) * ENTITY_WEIGHTS.get(entity_type, DEFAULT_ENTITY_WEIGHT)
            value *= 0.6 + p.likelihood * 0.4
            cost = p.cost_of_delay.cost_multiplier if p.cost_of_delay else 1.0
            if cost > 1.5:
                value *= min(1.25, 1 + (cost - 1.5) / 4)
            value = min(PREISSUE_UPSIDE_CAP, value)
            imminent = " [IMMINENT]" if p.escalation and p.escalation.is_imminent else ""
            entity = f" [{entity_type}]" if entity_type != "company" else ""
            return Derived(
                round(value),
                f"Prevention of {p.pre_issue_type}{entity}{imminent} ({p.likelihood * 100:.0f}% likely)",
            )

        case GoalSource(trajectory=t):
            return Derived(
                round(50 + (1 - t.probability_of_hit) * 40),
                f"Goal advancement: {t.goal_name} ({t.probability_of_hit * 100:.0f}% current prob)",
            )

        case IntroductionSource(opportunity=o):
            timing = o.timing.timing
            value = (o.optionality_gain * 0.6 + o.relevance_score * 0.4) * TIMING_UPSIDE_MULTIPLIER[timing]
            match timing:
                case Timing.NOW:
                    explain = "High-value intro (timing: NOW)"
                case Timing.SOON:
                    explain = "Network opportunity (timing: SOON)"
                case _:
                    explain = f"Potential intro (timing: {timing} - wait for better signal)"
            return Derived(round(value), explain)

        case ManualSource():
            return Derived(30, "Manual action")


def derive_probability_of_success(action: Action, context: ImpactContext) -> Derived:
    effort = _effort(action)
    if effort <= 1:
        probability = 0.9
    elif effort <= 7:
        probability = 0.7
    elif effort <= 14:
        probability = 0.5
    else:
        probability = 0.4

    match action.source:
        case IssueSource(issue=issue):
            if str(issue.issue_type).startswith("DATA_"):
                probability = min(1.0, probability + 0.2)
                explain = "Data fix - high success probability"
            elif "CRITICAL" in str(issue.issue_type):
                probability = max(0.3, probability - 0.1)
                explain = "Critical issue - complex resolution"
            else:
                explain = f"Standard resolution ({effort:g}d effort)"
        case PreIssueSource(preissue=p):
            if p.time_to_breach_days > 30:
                probability = min(1.0, probability + 0.15)
                explain = "Early intervention - good odds"
            else:
                explain = "Preventative action"
        case GoalSource(trajectory=t):
            probability = 0.5 + t.confidence * 0.3
            explain = f"Goal confidence: {t.confidence * 100:.0f}%"
        case IntroductionSource(opportunity=o):
            probability = o.probability
            explain = (
                f"Intro success: {o.probability * 100:.0f}% "
                f"(confidence: {o.timing.confidence * 100:.0f}%)"
            )
        case ManualSource():
            explain = "Standard probability"

    return Derived(round(probability, 2), explain)


def derive_execution_probability(action: Action, context: ImpactContext) -> Derived:
    """Likelihood the founder acts: track record, complexity, bandwidth, urgency."""
    value = 0.7
    factors: list[str] = []

    if context.goal_trajectories:
        average = sum(t.probability_of_hit for t in context.goal_trajectories) / len(context.goal_trajectories)
        if average >= 0.7:
            value = min(1.0, value + 0.15)
            factors.append("Strong execution history")
        elif average < 0.4:
            value = max(0.3, value - 0.2)
            factors.append("Weak execution history")

    effort = _effort(action)
    if len(action.steps) > 5 or effort > 14:
        value = max(0.3, value - 0.15)
        factors.append("High complexity")
    elif len(action.steps) <= 2 and effort <= 3:
        value = min(1.0, value + 0.1)
        factors.append("Low complexity")

    company = context.company
    critical_issue = isinstance(action.source, IssueSource) and action.source.issue.severity == Severity.CRITICAL
    if company is not None and company.cash is not None and company.burn and company.burn > 0:
        if company.cash / company.burn < 6 and not critical_issue:
            value = max(0.3, value - 0.1)
            factors.append("Bandwidth constrained (low runway)")

    match action.source:
        case IssueSource():
            if critical_issue:
                value = min(1.0, value + 0.1)
                factors.append("Critical - high urgency")
        case PreIssueSource(preissue=p):
            if p.escalation and p.escalation.is_imminent:
                value = min(1.0, value + 0.1)
                factors.append("Imminent escalation - urgent")
            else:
                value = max(0.3, value - 0.1)
                factors.append("Preventative (low urgency)")
        case GoalSource(trajectory=t):
            if t.goal_type == "fundraise" and company is not None and company.raising:
                value = min(1.0, value + 0.1)
                factors.append("Active fundraise focus")
        case IntroductionSource(opportunity=o):
            timing = o.timing.timing
            value = max(0.2, min(1.0, value + TIMING_EXECUTION_ADJUST[timing]))
            match timing:
                case Timing.NOW:
                    factors.append("Timing: NOW - high urgency")
                case Timing.SOON:
                    factors.append("Timing: SOON")
                case _:
                    factors.append(f"Timing: {timing} - lower urgency")
        case ManualSource():
            pass

    explain = "; ".join(factors[:2]) if factors else STANDARD_EXECUTION
    return Derived(round(value, 2), explain)


def derive_downside_magnitude(action: Action, context: ImpactContext) -> Derived:
    match action.source:
        case IssueSource():
            effort = _effort(action)
            return Derived(round(min(50, effort * 2)), f"Effort wasted if unsuccessful ({effort:g}d)")
        case PreIssueSource():
            return Derived(15, "Low downside - preventative action")
        case GoalSource():
            return Derived(20, "Opportunity cost if goal push fails")
        case IntroductionSource(opportunity=o):
            return Derived(round(o.trust_risk.score * 0.5), f"Trust risk: {o.trust_risk.band}")
        case ManualSource():
            return Derived(10, "Minimal downside")


def derive_time_to_impact(action: Action, context: ImpactContext) -> Derived:
    match action.source:
        case IntroductionSource(opportunity=o):
            timing = o.timing.timing
            return Derived(TIMING_DAYS_TO_IMPACT[timing], f"Intro timing: {timing}")
        case _:
            effort = _effort(action)
            return Derived(math.ceil(effort * 1.2), f"Based on {effort:g}d effort estimate")


def derive_effort_cost(action: Action, context: ImpactContext) -> Derived:
    match action.source:
        case IntroductionSource():
            return Derived(10, "2-3 days effort for intro")
        case _:
            effort = _effort(action)
            return Derived(min(100, round(effort / 30 * 100)), f"{effort:g} days of effort")


def derive_second_order_leverage(action: Action, context: ImpactContext) -> Derived:
    match action.source:
        case IssueSource(issue=issue):
            ripple = context.ripple.for_issue(issue.issue_id) if context.ripple else None
            if ripple is None:
                ripple = calculate_issue_ripple(issue)
            explain = ripple.ripple_explain[0] if ripple.ripple_explain else "Removes downstream risk"
            return Derived(round(ripple.ripple_score * 80), explain)
        case PreIssueSource(preissue=p):
            return Derived(round(p.likelihood * 60), f"Prevents {p.pre_issue_type} cascade")
        case GoalSource(trajectory=t):
            if t.goal_type == "fundraise":
                return Derived(70, "Fundraise success enables growth")
            if t.goal_type == "revenue":
                return Derived(50, "Revenue growth compounds")
            return Derived(30, "Goal achievement builds momentum")
        case IntroductionSource(opportunity=o):
            return Derived(round(o.optionality_gain), f"Network optionality: {o.optionality_gain:g}")
        case ManualSource():
            return Derived(10, "Limited second-order effects")


# =============================================================================
# ASSEMBLY
# =============================================================================


def build_impact_model(action: Action, context: ImpactContext) -> ImpactModel:
    upside = derive_upside_magnitude(action, context)
    probability = derive_probability_of_success(action, context)
    execution = derive_execution_probability(action, context)
    downside = derive_downside_magnitude(action, context)
    time_to_impact = derive_time_to_impact(action, context)
    effort = derive_effort_cost(action, context)
    leverage = derive_second_order_leverage(action, context)

    explain = [
        upside.explain,
        probability.explain,
        execution.explain if execution.explain != STANDARD_EXECUTION else None,
        leverage.explain if leverage.value > 30 else None,
        downside.explain if downside.value > 30 else None,
    ]
    explain = [e for e in explain if e]
    if len(explain) < MIN_EXPLAIN:
        explain.append(effort.explain)

    if isinstance(action.source, IntroductionSource):
        timing = action.source.opportunity.timing
        reason = timing.rationale[0] if timing.rationale else "no timing signal"
        explain.insert(0, f"Timing: {timing.timing} - {reason}")

    return ImpactModel(
        upside_magnitude=upside.value,
        probability_of_success=probability.value,
        execution_probability=execution.value,
        downside_magnitude=downside.value,
        time_to_impact_days=time_to_impact.value,
        effort_cost=effort.value,
        second_order_leverage=leverage.value,
        explain=explain[:MAX_EXPLAIN],
    )


def attach_impact_model(action: Action, context: ImpactContext) -> Action:
    return replace(action, impact=build_impact_model(action, context))


def attach_company_impact_models(
    actions: list[Action], context: ImpactContext
) -> tuple[list[Action], list[str]]:
    """
    Attach and validate impact models.

    Returns:
        (valid actions, errors). An action whose impact fails validation
        is reported and left out.
    """
    attached = []
    errors = []
    for action in actions:
        with_impact = attach_impact_model(action, context)
        problems = validate_action(with_impact)
        if problems:
            errors.extend(f"{action.action_id}: {p}" for p in problems)
            logger.warning(f"Invalid impact model for {action.action_id}: {'; '.join(problems)}")
            continue
        attached.append(with_impact)
    return attached, errors
