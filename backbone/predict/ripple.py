"""
Ripple Effects: rule-based downstream consequences of issues.

Each issue type maps to a baseline ripple score (0-1) and the
consequences it tends to cause. A set of issues aggregates with
diminishing weight: the strongest counts in full, the next at half,
the next at a quarter, capped at 1.0.
"""

from dataclasses import dataclass, field

from backbone.predict.issues import Issue


@dataclass(frozen=True)
class RippleRule:
    ripple_score: float
    consequences: tuple[str, ...]


RIPPLE_RULES: dict[str, RippleRule] = {
    "RUNWAY_CRITICAL": RippleRule(
        0.9,
        (
            "High probability of insolvency within 6 months",
            "Unable to make new hires or investments",
            "Fundraise becomes distressed/down round",
            "Team morale and retention at risk",
        ),
    ),
    "RUNWAY_WARNING": RippleRule(
        0.5,
        (
            "Fundraise pressure increases",
            "Strategic optionality reduced",
            "May need to cut non-critical expenses",
        ),
    ),
    "NO_PIPELINE": RippleRule(
        0.8,
        (
            "Fundraise timeline at severe risk",
            "May need to extend runway via cuts",
            "Negotiating leverage diminished",
        ),
    ),
    "PIPELINE_GAP": RippleRule(
        0.5,
        ("Fundraise may miss target or timeline", "May need to accept less favorable terms"),
    ),
    "GOAL_MISSED": RippleRule(
        0.4,
        ("Investor confidence may decrease", "Narrative for fundraise weakened"),
    ),
    "GOAL_BEHIND": RippleRule(
        0.3,
        ("May miss key milestones", "Investor updates less compelling"),
    ),
    "GOAL_STALLED": RippleRule(
        0.5,
        ("Underlying blocker may be systemic", "Team execution capability questioned"),
    ),
    "DEAL_STALE": RippleRule(
        0.3,
        ("Investor interest may have cooled", "Momentum lost in process"),
    ),
    "DEAL_AT_RISK": RippleRule(
        0.4,
        ("May lose this investor entirely", "Need to rebuild pipeline"),
    ),
    "DATA_STALE": RippleRule(
        0.2,
        ("Decisions based on outdated information", "May miss emerging problems"),
    ),
    "DATA_MISSING": RippleRule(
        0.3,
        ("Cannot assess true state", "Blind spots in portfolio view"),
    ),
}

DEFAULT_RIPPLE = RippleRule(0.1, ("Minor downstream effects possible",))

# Issues below this score contribute to the total but not to the explanation
SIGNIFICANT_RIPPLE = 0.3


@dataclass
class IssueRipple:
    issue_id: str
    issue_type: str
    ripple_score: float
    ripple_explain: list[str]

    def to_dict(self) -> dict:
        return {
            "issue_id": self.issue_id,
            "issue_type": self.issue_type,
            "ripple_score": self.ripple_score,
            "ripple_explain": list(self.ripple_explain),
        }


@dataclass
class RippleResult:
    ripple_score: float
    ripple_explain: list[str]
    risk_level: str = "LOW"
    by_issue: list[IssueRipple] = field(default_factory=list)

    def for_issue(self, issue_id: str) -> IssueRipple | None:
        for item in self.by_issue:
            if item.issue_id == issue_id:
                return item
        return None

    def to_dict(self) -> dict:
        return {
            "ripple_score": self.ripple_score,
            "ripple_explain": list(self.ripple_explain),
            "risk_level": self.risk_level,
            "by_issue": [r.to_dict() for r in self.by_issue],
        }


def calculate_issue_ripple(issue: Issue) -> IssueRipple:
    rule = RIPPLE_RULES.get(str(issue.issue_type), DEFAULT_RIPPLE)
    return IssueRipple(
        issue_id=issue.issue_id,
        issue_type=str(issue.issue_type),
        ripple_score=rule.ripple_score,
        ripple_explain=list(rule.consequences),
    )


def _risk_level(score: float) -> str:
    if score >= 0.7:
        return "HIGH"
    if score >= 0.4:
        return "MEDIUM"
    return "LOW"


def calculate_aggregate_ripple(issues: list[Issue]) -> RippleResult:
    """
    Aggregate ripple over a set of issues.

    Sorted by individual score descending, the issue at rank i contributes
    score × 0.5^i. Explanations come only from significant ripples and are
    deduplicated in first-seen order.
    """
    if not issues:
        return RippleResult(0.0, ["No issues detected"])

    # sorted() is stable, so equal scores keep issue order
    by_issue = sorted(
        (calculate_issue_ripple(issue) for issue in issues),
        key=lambda r: r.ripple_score,
        reverse=True,
    )

    total = 0.0
    explain: list[str] = []
    for rank, ripple in enumerate(by_issue):
        total += ripple.ripple_score * 0.5**rank
        if ripple.ripple_score >= SIGNIFICANT_RIPPLE:
            explain.extend(e for e in ripple.ripple_explain if e not in explain)

    score = round(min(total, 1.0), 2)
    return RippleResult(score, explain, _risk_level(score), by_issue)
