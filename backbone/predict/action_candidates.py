"""
Action Candidates: issues, pre-issues, goals and introductions → actions.

- Issues (reactive): one action from the issue type's resolution
- Pre-issues (preventative): one action per preventative resolution
- Goals (offensive): one push action unless the goal is comfortably on
  track or already past due
- Introductions: one action per admissible opportunity

Candidates carry no impact model yet; action_impact attaches it.
"""

import logging
from datetime import datetime

from backbone.derive.goal_trajectory import GoalTrajectory
from backbone.predict.action_schema import (
    Action,
    GoalSource,
    IntroductionSource,
    IssueSource,
    PreIssueSource,
    create_action,
)
from backbone.predict.intro_opportunity import IntroductionOpportunity
from backbone.predict.issues import Issue
from backbone.predict.preissues import PreIssue, PreIssueType
from backbone.predict.resolutions import (
    GOAL_RESOLUTIONS,
    NETWORK_INTRO,
    PREVENTATIVE_RESOLUTIONS,
    get_goal_resolution,
    get_resolution,
)

logger = logging.getLogger(__name__)

# Goals this likely to hit, and on track, need no push
GOAL_COMFORT_PROBABILITY = 0.8


def _company_ref(company) -> dict:
    return {"type": "company", "id": company.id, "name": company.display_name}


def preissue_context_prefix(preissue: PreIssue) -> str | None:
    """Short label naming what a pre-issue is about, for action titles."""
    context = preissue.context
    match preissue.pre_issue_type:
        case PreIssueType.ROUND_STALL | PreIssueType.LEAD_VACANCY:
            return context.get("round_stage") or "Round"
        case PreIssueType.DEAL_STALL:
            return context.get("investor") or "Deal"
        case PreIssueType.GOAL_MISS:
            name = context.get("goal_name")
            return f'"{name}"' if name else "Goal"
        case PreIssueType.CONNECTION_DORMANT:
            return context.get("person_names") or "Connection"
    return None


def action_from_issue(issue: Issue, company, now: datetime) -> Action | None:
    resolution = get_resolution(issue.issue_type)
    if resolution is None:
        return None
    return create_action(
        entity_ref=_company_ref(company),
        title=f"{company.display_name}: {resolution.title}",
        source=IssueSource(issue),
        resolution_id=resolution.resolution_id,
        steps=resolution.action_steps,
        created_at=now,
    )


def actions_from_preissue(preissue: PreIssue, now: datetime) -> list[Action]:
    prefix = preissue_context_prefix(preissue)
    head = f"{preissue.company_name} {prefix}" if prefix else preissue.company_name
    days = preissue.escalation.days_until_escalation if preissue.escalation else None

    actions = []
    for resolution_id in preissue.preventative_actions:
        resolution = PREVENTATIVE_RESOLUTIONS.get(resolution_id) or GOAL_RESOLUTIONS.get(resolution_id)
        if resolution is None:
            logger.warning(f"Unknown preventative resolution {resolution_id} on {preissue.pre_issue_id}")
            continue
        actions.append(
            create_action(
                entity_ref={**preissue.entity_ref, "name": preissue.company_name},
                title=f"{head}: {resolution.title}",
                source=PreIssueSource(preissue),
                resolution_id=resolution.resolution_id,
                steps=resolution.action_steps,
                created_at=now,
                days_until_deadline=days,
            )
        )
    return actions


def action_from_goal(trajectory: GoalTrajectory, company, now: datetime) -> Action | None:
    if trajectory.on_track is True and trajectory.probability_of_hit > GOAL_COMFORT_PROBABILITY:
        return None
    if trajectory.days_left is not None and trajectory.days_left < 0:
        return None

    resolution = get_goal_resolution(trajectory.goal_type)
    return create_action(
        entity_ref=_company_ref(company),
        title=f"{company.display_name}: {resolution.title} for {trajectory.goal_name}",
        source=GoalSource(trajectory),
        resolution_id=resolution.resolution_id,
        steps=resolution.action_steps,
        created_at=now,
        days_until_deadline=trajectory.days_left,
    )


def action_from_introduction(opportunity: IntroductionOpportunity, company, now: datetime) -> Action:
    introducer = opportunity.introducer_name or opportunity.introducer_id
    steps = [
        step.format(introducer=introducer, goal=opportunity.goal_name)
        for step in NETWORK_INTRO.action_steps
    ]
    return create_action(
        entity_ref=_company_ref(company),
        title=f"{company.display_name}: Intro to {opportunity.target_person_name}",
        source=IntroductionSource(opportunity),
        resolution_id=NETWORK_INTRO.resolution_id,
        steps=steps,
        created_at=now,
        days_until_deadline=opportunity.goal_days_left,
    )


def generate_company_action_candidates(
    company,
    issues: list[Issue],
    preissues: list[PreIssue],
    goal_trajectories: list[GoalTrajectory],
    opportunities: list[IntroductionOpportunity],
    now: datetime,
) -> list[Action]:
    """All candidates for one company, first occurrence of each action id kept."""
    candidates: list[Action] = []
    for issue in issues:
        action = action_from_issue(issue, company, now)
        if action:
            candidates.append(action)
    for preissue in preissues:
        candidates.extend(actions_from_preissue(preissue, now))
    for trajectory in goal_trajectories:
        action = action_from_goal(trajectory, company, now)
        if action:
            candidates.append(action)
    for opportunity in opportunities:
        candidates.append(action_from_introduction(opportunity, company, now))

    seen: set[str] = set()
    unique = []
    for action in candidates:
        if action.action_id in seen:
            continue
        seen.add(action.action_id)
        unique.append(action)
    return unique
