"""
Resolution Library.

Every action references a resolution template by id; there is no free
text. A resolution carries a title, default effort (days), default impact
(0-1) and ordered action steps.

Four families:
- issue resolutions, one per issue type
- preventative resolutions, referenced by pre-issues
- goal resolutions, one per goal type
- the network introduction
"""

from dataclasses import dataclass

from backbone.predict.issues import IssueType


@dataclass(frozen=True)
class Resolution:
    resolution_id: str
    title: str
    default_effort: float
    default_impact: float
    action_steps: tuple[str, ...]
    issue_type: str | None = None

    def to_dict(self) -> dict:
        return {
            "resolution_id": self.resolution_id,
            "title": self.title,
            "default_effort": self.default_effort,
            "default_impact": self.default_impact,
            "action_steps": list(self.action_steps),
        }


def _index(*resolutions: Resolution) -> dict[str, Resolution]:
    return {r.resolution_id: r for r in resolutions}


# =============================================================================
# ISSUE RESOLUTIONS
# =============================================================================

ISSUE_RESOLUTIONS = _index(
    Resolution(
        "RESOLVE_RUNWAY_CRITICAL",
        "Emergency runway extension",
        30,
        1.0,
        (
            "Assess immediate cost reduction options",
            "Identify bridge funding sources",
            "Initiate emergency fundraise conversations",
            "Prepare 30-60-90 day cash plan",
        ),
        IssueType.RUNWAY_CRITICAL,
    ),
    Resolution(
        "RESOLVE_RUNWAY_WARNING",
        "Plan runway extension",
        14,
        0.7,
        (
            "Review burn rate optimization opportunities",
            "Start fundraise planning if not already",
            "Evaluate revenue acceleration options",
            "Build 6-month financial projection",
        ),
        IssueType.RUNWAY_WARNING,
    ),
    Resolution(
        "RESOLVE_DATA_MISSING",
        "Gather missing data",
        1,
        0.4,
        (
            "Identify missing data fields",
            "Request data from company",
            "Update system with new data",
            "Verify data completeness",
        ),
        IssueType.DATA_MISSING,
    ),
    Resolution(
        "RESOLVE_DATA_STALE",
        "Request data update",
        0.5,
        0.3,
        (
            "Request updated metrics from company",
            "Update system timestamps",
            "Flag any significant changes",
        ),
        IssueType.DATA_STALE,
    ),
    Resolution(
        "RESOLVE_DATA_NO_TIMESTAMP",
        "Add data timestamps",
        0.25,
        0.3,
        ("Add asOf timestamp to data", "Record provenance information"),
        IssueType.DATA_NO_TIMESTAMP,
    ),
    Resolution(
        "RESOLVE_NO_GOALS",
        "Define measurable goals",
        2,
        0.5,
        (
            "Schedule goal-setting session with founders",
            "Define 2-3 key metrics with targets",
            "Set deadlines for each goal",
            "Enter goals into system",
        ),
        IssueType.NO_GOALS,
    ),
    Resolution(
        "RESOLVE_GOAL_BEHIND",
        "Course correct goal trajectory",
        3,
        0.6,
        (
            "Analyze root cause of delay",
            "Identify acceleration opportunities",
            "Consider target or deadline adjustment",
            "Implement corrective actions",
        ),
        IssueType.GOAL_BEHIND,
    ),
    Resolution(
        "RESOLVE_GOAL_STALLED",
        "Diagnose and restart stalled goal",
        2,
        0.7,
        (
            "Identify blockers causing stall",
            "Reallocate resources if needed",
            "Consider goal relevance",
            "Establish new momentum",
        ),
        IssueType.GOAL_STALLED,
    ),
    Resolution(
        "RESOLVE_GOAL_MISSED",
        "Post-mortem and reset goal",
        1,
        0.5,
        (
            "Conduct goal post-mortem",
            "Document lessons learned",
            "Decide: abandon, extend, or redefine",
            "Update goal status in system",
        ),
        IssueType.GOAL_MISSED,
    ),
    Resolution(
        "RESOLVE_GOAL_NO_HISTORY",
        "Add historical data points",
        0.5,
        0.2,
        (
            "Request historical progress data",
            "Add past data points to goal history",
            "Verify trajectory calculation works",
        ),
        IssueType.GOAL_NO_HISTORY,
    ),
    Resolution(
        "RESOLVE_NO_PIPELINE",
        "Begin investor outreach",
        7,
        0.9,
        (
            "Build target investor list",
            "Prepare outreach materials",
            "Start initial outreach",
            "Track responses and schedule meetings",
        ),
        IssueType.NO_PIPELINE,
    ),
    Resolution(
        "RESOLVE_PIPELINE_GAP",
        "Expand investor pipeline",
        5,
        0.7,
        (
            "Identify additional target investors",
            "Request warm introductions",
            "Increase outreach velocity",
            "Review and optimize materials",
        ),
        IssueType.PIPELINE_GAP,
    ),
    Resolution(
        "RESOLVE_DEAL_STALE",
        "Follow up with investor",
        0.5,
        0.5,
        (
            "Send follow-up email or message",
            "Provide any requested updates",
            "Confirm next steps",
            "Update deal status",
        ),
        IssueType.DEAL_STALE,
    ),
    Resolution(
        "RESOLVE_DEAL_AT_RISK",
        "Address investor concerns",
        2,
        0.6,
        (
            "Schedule call with investor",
            "Identify specific concerns",
            "Prepare responses to objections",
            "Provide additional materials if needed",
        ),
        IssueType.DEAL_AT_RISK,
    ),
)

# =============================================================================
# PREVENTATIVE RESOLUTIONS
# =============================================================================

PREVENTATIVE_RESOLUTIONS = _index(
    Resolution(
        "REDUCE_BURN",
        "Reduce burn rate",
        7,
        0.7,
        (
            "Review all expense categories",
            "Identify non-essential costs",
            "Negotiate with vendors",
            "Implement cost reductions",
        ),
    ),
    Resolution(
        "ACCELERATE_FUNDRAISE",
        "Accelerate fundraising",
        14,
        0.8,
        (
            "Expand investor pipeline",
            "Increase outreach velocity",
            "Fast-track promising leads",
            "Consider bridge financing",
        ),
    ),
    Resolution(
        "BRIDGE_ROUND",
        "Secure bridge round",
        21,
        0.9,
        (
            "Reach out to existing investors",
            "Prepare bridge terms",
            "Negotiate and close quickly",
            "Update cap table",
        ),
    ),
    Resolution(
        "ACCELERATE_GOAL",
        "Accelerate goal progress",
        7,
        0.6,
        (
            "Identify acceleration levers",
            "Reallocate resources",
            "Remove blockers",
            "Track daily progress",
        ),
    ),
    Resolution(
        "REVISE_TARGET",
        "Revise goal target",
        1,
        0.4,
        (
            "Assess realistic attainment",
            "Propose revised target",
            "Document rationale",
            "Update goal in system",
        ),
    ),
    Resolution(
        "ADD_RESOURCES",
        "Add resources to goal",
        14,
        0.7,
        (
            "Identify resource gaps",
            "Hire or reassign team members",
            "Provide necessary tools/budget",
            "Monitor progress lift",
        ),
    ),
    Resolution(
        "FOLLOW_UP_INVESTOR",
        "Follow up with investor",
        0.5,
        0.5,
        (
            "Send check-in email",
            "Provide recent updates",
            "Ask about timeline",
            "Confirm next steps",
        ),
    ),
    Resolution(
        "SCHEDULE_CHECK_IN",
        "Schedule investor check-in",
        0.25,
        0.4,
        ("Propose call time", "Prepare talking points", "Conduct call", "Document outcomes"),
    ),
    Resolution(
        "PREPARE_ALTERNATIVES",
        "Prepare alternative investors",
        3,
        0.6,
        ("Identify backup investors", "Warm them up", "Prepare to pivot if needed"),
    ),
    Resolution(
        "ACCELERATE_OUTREACH",
        "Accelerate investor outreach",
        3,
        0.65,
        (
            "Identify 10 new prospects",
            "Send warm intros",
            "Schedule meetings this week",
            "Follow up aggressively",
        ),
    ),
    Resolution(
        "EXPAND_INVESTOR_LIST",
        "Expand investor target list",
        2,
        0.5,
        (
            "Research additional funds",
            "Identify angel networks",
            "Add to pipeline",
            "Prioritize and sequence",
        ),
    ),
    Resolution(
        "REVISIT_TERMS",
        "Revisit round terms",
        3,
        0.55,
        (
            "Review market comparables",
            "Identify sticking points",
            "Propose adjusted terms",
            "Socialize with leads",
        ),
    ),
    Resolution(
        "PRIORITIZE_LEAD_CANDIDATES",
        "Prioritize lead investor candidates",
        2,
        0.6,
        (
            "Rank investors by lead potential",
            "Assess check sizes",
            "Identify decision makers",
            "Focus energy on top 3",
        ),
    ),
    Resolution(
        "OFFER_LEAD_TERMS",
        "Offer lead investor terms",
        3,
        0.65,
        (
            "Prepare term sheet template",
            "Offer board seat if needed",
            "Discuss governance preferences",
            "Create urgency with timeline",
        ),
    ),
    Resolution(
        "EXPAND_SEARCH",
        "Expand lead investor search",
        5,
        0.5,
        (
            "Research non-obvious leads",
            "Consider strategic investors",
            "Explore international funds",
            "Reach out to portfolio founders",
        ),
    ),
    Resolution(
        "SEND_TOUCHPOINT",
        "Send relationship touchpoint",
        0.25,
        0.3,
        (
            "Draft brief personal message",
            "Reference shared interest/news",
            "Send via preferred channel",
            "Log interaction",
        ),
    ),
    Resolution(
        "SCHEDULE_CALL",
        "Schedule catch-up call",
        1,
        0.45,
        (
            "Propose call time",
            "Send calendar invite",
            "Prepare talking points",
            "Follow up if no response",
        ),
    ),
    Resolution(
        "FIND_REASON_TO_CONNECT",
        "Find reason to re-connect",
        1,
        0.4,
        (
            "Research recent activity",
            "Identify shared connections",
            "Find relevant news or intro",
            "Craft personalized outreach",
        ),
    ),
)

# =============================================================================
# GOAL RESOLUTIONS
# =============================================================================

GOAL_RESOLUTIONS = _index(
    Resolution(
        "REVENUE_PUSH",
        "Push revenue acceleration",
        14,
        0.7,
        (
            "Review sales pipeline",
            "Identify quick wins",
            "Accelerate deal closing",
            "Increase outreach",
        ),
    ),
    Resolution(
        "PRODUCT_SPRINT",
        "Sprint to product milestone",
        14,
        0.6,
        (
            "Define sprint scope",
            "Allocate engineering",
            "Clear blockers daily",
            "Track to milestone",
        ),
    ),
    Resolution(
        "HIRING_PUSH",
        "Accelerate hiring",
        21,
        0.5,
        (
            "Expand sourcing channels",
            "Speed up interview process",
            "Make competitive offers",
            "Onboard quickly",
        ),
    ),
    Resolution(
        "PARTNERSHIP_OUTREACH",
        "Expand partnership outreach",
        14,
        0.6,
        (
            "Identify target partners",
            "Prepare partnership materials",
            "Initiate conversations",
            "Drive to commitment",
        ),
    ),
    Resolution(
        "FUNDRAISE_CLOSE",
        "Drive to fundraise close",
        30,
        0.9,
        (
            "Finalize lead investor",
            "Complete due diligence",
            "Negotiate terms",
            "Execute closing",
        ),
    ),
)

GOAL_TYPE_RESOLUTIONS: dict[str, str] = {
    "revenue": "REVENUE_PUSH",
    "product": "PRODUCT_SPRINT",
    "hiring": "HIRING_PUSH",
    "partnership": "PARTNERSHIP_OUTREACH",
    "fundraise": "FUNDRAISE_CLOSE",
}

# =============================================================================
# INTRODUCTIONS
# =============================================================================

NETWORK_INTRO = Resolution(
    "NETWORK_INTRO",
    "Make introduction",
    1,
    0.6,
    (
        "Request introduction from {introducer}",
        "Brief {introducer} on {goal}",
        "Follow up within 48 hours",
    ),
)


def get_resolution(issue_type: str) -> Resolution | None:
    """Resolution for an issue type, or None if the type has none."""
    for resolution in ISSUE_RESOLUTIONS.values():
        if resolution.issue_type == issue_type:
            return resolution
    return None


def get_goal_resolution(goal_type: str) -> Resolution:
    return GOAL_RESOLUTIONS[GOAL_TYPE_RESOLUTIONS.get(goal_type, "REVENUE_PUSH")]


def get_any_resolution(resolution_id: str) -> Resolution | None:
    """Look a resolution up by id across every family."""
    if resolution_id == NETWORK_INTRO.resolution_id:
        return NETWORK_INTRO
    return (
        ISSUE_RESOLUTIONS.get(resolution_id)
        or PREVENTATIVE_RESOLUTIONS.get(resolution_id)
        or GOAL_RESOLUTIONS.get(resolution_id)
    )


def has_resolution(issue_type: str) -> bool:
    return get_resolution(issue_type) is not None
