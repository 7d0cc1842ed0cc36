"""
Issue Detection: current-state gaps.

Issues are gaps: absence, staleness and deviation. Each issue carries a
content-addressed id, so detecting twice on unchanged facts yields the
same ids and downstream deduplication stays idempotent.

Detectors:
- runway: DATA_MISSING, RUNWAY_CRITICAL, RUNWAY_WARNING
- goals: NO_GOALS, GOAL_MISSED, GOAL_STALLED, GOAL_BEHIND, GOAL_NO_HISTORY
- pipeline: NO_PIPELINE, PIPELINE_GAP, DEAL_STALE, DEAL_AT_RISK
- data freshness: DATA_NO_TIMESTAMP, DATA_STALE
"""

import hashlib
import logging
from dataclasses import dataclass, field
from datetime import datetime
from enum import IntEnum, StrEnum

from backbone.config import IssueThresholds
from backbone.dates import isoformat, whole_days_between
from backbone.derive.runway import RunwayResult
from backbone.derive.trajectory import Trajectory, derive_trajectory

logger = logging.getLogger(__name__)


class Severity(IntEnum):
    LOW = 0
    MEDIUM = 1
    HIGH = 2
    CRITICAL = 3


class IssueType(StrEnum):
    RUNWAY_CRITICAL = "RUNWAY_CRITICAL"
    RUNWAY_WARNING = "RUNWAY_WARNING"
    DATA_MISSING = "DATA_MISSING"
    DATA_STALE = "DATA_STALE"
    DATA_NO_TIMESTAMP = "DATA_NO_TIMESTAMP"
    NO_GOALS = "NO_GOALS"
    GOAL_BEHIND = "GOAL_BEHIND"
    GOAL_STALLED = "GOAL_STALLED"
    GOAL_MISSED = "GOAL_MISSED"
    GOAL_NO_HISTORY = "GOAL_NO_HISTORY"
    NO_PIPELINE = "NO_PIPELINE"
    PIPELINE_GAP = "PIPELINE_GAP"
    DEAL_STALE = "DEAL_STALE"
    DEAL_AT_RISK = "DEAL_AT_RISK"


CLOSED_DEAL_STATUSES = frozenset({"closed", "passed", "lost"})


@dataclass
class Issue:
    issue_id: str
    issue_type: IssueType
    entity_ref: dict
    severity: Severity
    evidence: dict
    detected_at: datetime

    @property
    def explain(self) -> str:
        return self.evidence.get("explain", "")

    @property
    def goal_id(self) -> str | None:
        if self.entity_ref.get("type") == "goal":
            return self.entity_ref.get("id")
        return None

    def to_dict(self) -> dict:
        return {
            "issue_id": self.issue_id,
            "issue_type": str(self.issue_type),
            "entity_ref": dict(self.entity_ref),
            "severity": int(self.severity),
            "evidence": dict(self.evidence),
            "detected_at": isoformat(self.detected_at),
        }


@dataclass
class IssueReport:
    issues: list[Issue] = field(default_factory=list)

    @property
    def summary(self) -> dict:
        counts = {s: 0 for s in Severity}
        types: list[str] = []
        for issue in self.issues:
            counts[issue.severity] += 1
            if issue.issue_type not in types:
                types.append(str(issue.issue_type))
        return {
            "total": len(self.issues),
            "critical": counts[Severity.CRITICAL],
            "high": counts[Severity.HIGH],
            "medium": counts[Severity.MEDIUM],
            "low": counts[Severity.LOW],
            "types": types,
        }

    def to_dict(self) -> dict:
        return {"issues": [i.to_dict() for i in self.issues], "summary": self.summary}


def generate_issue_id(issue_type: str, entity_id: str, stable_key: str = "") -> str:
    """Content-addressed id: type, entity and a stable discriminator only."""
    digest = hashlib.sha256(f"{issue_type}|{entity_id}|{stable_key}".encode()).hexdigest()[:6]
    return f"{issue_type}-{entity_id}-{digest}"


def _millions(amount: float) -> str:
    return f"${amount / 1_000_000:.1f}M"


class IssueDetector:
    """
    Stateless detector of current-state gaps for one company.

    Thresholds are injected; the default table matches IssueThresholds().
    """

    def __init__(self, thresholds: IssueThresholds | None = None):
        self.thresholds = thresholds or IssueThresholds()

    def _issue(
        self,
        issue_type: IssueType,
        entity_ref: dict,
        severity: Severity,
        evidence: dict,
        now: datetime,
        stable_key: str = "",
    ) -> Issue:
        return Issue(
            issue_id=generate_issue_id(issue_type, entity_ref["id"], stable_key),
            issue_type=issue_type,
            entity_ref=entity_ref,
            severity=severity,
            evidence=evidence,
            detected_at=now,
        )

    # =========================================================================
    # RUNWAY
    # =========================================================================

    def detect_runway_issues(self, company, runway: RunwayResult, now: datetime) -> list[Issue]:
        company_ref = {"type": "company", "id": company.id}

        if runway.value is None:
            return [
                self._issue(
                    IssueType.DATA_MISSING,
                    company_ref,
                    Severity.HIGH,
                    {
                        "field": "runway",
                        "reason": "missing_inputs",
                        "inputs_missing": list(runway.inputs_missing),
                        "explain": "Cannot calculate runway: missing cash or burn data",
                    },
                    now,
                )
            ]

        if not runway.is_finite:
            return []

        t = self.thresholds
        if runway.value < t.runway_critical_months:
            issue_type, severity, threshold, label = (
                IssueType.RUNWAY_CRITICAL,
                Severity.CRITICAL,
                t.runway_critical_months,
                "critical",
            )
        elif runway.value < t.runway_warning_months:
            issue_type, severity, threshold, label = (
                IssueType.RUNWAY_WARNING,
                Severity.HIGH,
                t.runway_warning_months,
                "warning",
            )
        else:
            return []

        return [
            self._issue(
                issue_type,
                company_ref,
                severity,
                {
                    "value": runway.value,
                    "threshold": threshold,
                    "explain": f"Runway {runway.value:.1f} months < {threshold:g} month {label} threshold",
                },
                now,
            )
        ]

    # =========================================================================
    # GOALS
    # =========================================================================

    def detect_goal_issues(
        self, company, trajectories: dict[str, Trajectory], now: datetime
    ) -> list[Issue]:
        active = [g for g in company.goals if g.is_active]
        if not active:
            return [
                self._issue(
                    IssueType.NO_GOALS,
                    {"type": "company", "id": company.id},
                    Severity.MEDIUM,
                    {"reason": "no_goals_defined", "explain": "No goals defined - cannot track progress"},
                    now,
                )
            ]

        issues = []
        for goal in active:
            trajectory = trajectories.get(goal.id) or derive_trajectory(goal, now)
            goal_ref = {"type": "goal", "id": goal.id, "company_id": company.id}
            goal_name = goal.name or goal.type
            days_to_deadline = whole_days_between(now, goal.due) if goal.due else None
            base = {
                "goal_name": goal_name,
                "current": goal.current,
                "target": goal.target,
                "due": isoformat(goal.due),
                "explain": trajectory.explain,
            }

            if (
                days_to_deadline is not None
                and days_to_deadline < 0
                and goal.current is not None
                and goal.target is not None
                and goal.current < goal.target
            ):
                issues.append(
                    self._issue(
                        IssueType.GOAL_MISSED,
                        goal_ref,
                        Severity.HIGH,
                        {**base, "days_overdue": abs(days_to_deadline)},
                        now,
                        company.id,
                    )
                )
                continue

            if trajectory.on_track is False:
                if trajectory.projected_date is None:
                    issues.append(
                        self._issue(IssueType.GOAL_STALLED, goal_ref, Severity.HIGH, base, now, company.id)
                    )
                else:
                    near_deadline = (
                        days_to_deadline is not None
                        and days_to_deadline < self.thresholds.goal_deadline_buffer_days
                    )
                    issues.append(
                        self._issue(
                            IssueType.GOAL_BEHIND,
                            goal_ref,
                            Severity.CRITICAL if near_deadline else Severity.HIGH,
                            {
                                **base,
                                "projected_date": trajectory.projected_date.isoformat(),
                                "confidence": trajectory.confidence,
                            },
                            now,
                            company.id,
                        )
                    )
            elif trajectory.on_track is None:
                issues.append(
                    self._issue(
                        IssueType.GOAL_NO_HISTORY,
                        goal_ref,
                        Severity.LOW,
                        {"goal_name": goal_name, "reason": "insufficient_history", "explain": trajectory.explain},
                        now,
                        company.id,
                    )
                )

        return issues

    # =========================================================================
    # PIPELINE
    # =========================================================================

    def detect_deal_issues(self, company, now: datetime) -> list[Issue]:
        t = self.thresholds
        issues = []
        deals = company.deals
        company_ref = {"type": "company", "id": company.id}

        if company.raising and company.round_target > 0:
            weighted = sum(d.weighted_amount for d in deals)
            if not deals:
                issues.append(
                    self._issue(
                        IssueType.NO_PIPELINE,
                        company_ref,
                        Severity.CRITICAL,
                        {
                            "round_target": company.round_target,
                            "reason": "no_deals",
                            "explain": f"Raising {_millions(company.round_target)} but no deals in pipeline",
                        },
                        now,
                    )
                )
            elif weighted < company.round_target * t.pipeline_coverage_min:
                issues.append(
                    self._issue(
                        IssueType.PIPELINE_GAP,
                        company_ref,
                        Severity.HIGH,
                        {
                            "round_target": company.round_target,
                            "weighted_pipeline": weighted,
                            "explain": (
                                f"Weighted pipeline {_millions(weighted)} < "
                                f"{t.pipeline_coverage_min * 100:.0f}% of {_millions(company.round_target)} target"
                            ),
                        },
                        now,
                    )
                )

        for deal in deals:
            deal_ref = {"type": "deal", "id": deal.id, "company_id": company.id}
            if deal.as_of is not None and deal.status not in CLOSED_DEAL_STATUSES:
                days_since = whole_days_between(deal.as_of, now)
                if days_since > t.deal_stale_days:
                    issues.append(
                        self._issue(
                            IssueType.DEAL_STALE,
                            deal_ref,
                            Severity.MEDIUM,
                            {
                                "investor": deal.investor,
                                "days_since_update": days_since,
                                "threshold": t.deal_stale_days,
                                "explain": f"Deal with {deal.investor} not updated in {days_since} days",
                            },
                            now,
                            company.id,
                        )
                    )

            if deal.status == "dd" and deal.probability < t.deal_at_risk_probability:
                issues.append(
                    self._issue(
                        IssueType.DEAL_AT_RISK,
                        deal_ref,
                        Severity.MEDIUM,
                        {
                            "investor": deal.investor,
                            "status": deal.status,
                            "probability": deal.probability,
                            "explain": (
                                f"Deal with {deal.investor} in DD but only {deal.probability:g}% probability"
                            ),
                        },
                        now,
                        company.id,
                    )
                )

        return issues

    # =========================================================================
    # DATA FRESHNESS
    # =========================================================================

    def detect_data_issues(self, company, now: datetime) -> list[Issue]:
        company_ref = {"type": "company", "id": company.id}
        if company.as_of is None:
            return [
                self._issue(
                    IssueType.DATA_NO_TIMESTAMP,
                    company_ref,
                    Severity.HIGH,
                    {"reason": "no_timestamp", "explain": "Company data has no timestamp - freshness unknown"},
                    now,
                )
            ]

        threshold = self.thresholds.data_stale_days
        age = whole_days_between(company.as_of, now)
        if age > threshold:
            return [
                self._issue(
                    IssueType.DATA_STALE,
                    company_ref,
                    Severity.MEDIUM,
                    {
                        "days_since_update": age,
                        "threshold": threshold,
                        "explain": f"Company data {age} days old (threshold: {threshold:g})",
                    },
                    now,
                )
            ]
        return []

    def detect(
        self,
        company,
        runway: RunwayResult,
        trajectories: dict[str, Trajectory],
        now: datetime,
    ) -> IssueReport:
        """All issues for a company, highest severity first."""
        issues = [
            *self.detect_runway_issues(company, runway, now),
            *self.detect_goal_issues(company, trajectories, now),
            *self.detect_deal_issues(company, now),
            *self.detect_data_issues(company, now),
        ]
        # sorted() is stable, so equal severities keep detector order
        issues = sorted(issues, key=lambda i: i.severity, reverse=True)
        if issues:
            logger.debug(f"Detected {len(issues)} issues for {company.id}")
        return IssueReport(issues)


def detect_issues(
    company,
    runway: RunwayResult,
    trajectories: dict[str, Trajectory],
    now: datetime,
    thresholds: IssueThresholds | None = None,
) -> IssueReport:
    return IssueDetector(thresholds).detect(company, runway, trajectories, now)
