"""
Pre-Issue Forecasting: gaps that have not happened yet.

A pre-issue is a forecast issue. Each one carries:
- an escalation window: when intervention stops being effective,
  i.e. time-to-breach minus a type-specific lead-time buffer
- a cost-of-delay curve: how much more expensive acting becomes as
  escalation approaches (non-decreasing as the window shrinks)

Company-level detectors: RUNWAY_BREACH, GOAL_MISS, DEAL_STALL,
ROUND_STALL, LEAD_VACANCY. Portfolio-level: CONNECTION_DORMANT.
"""

import logging
from dataclasses import dataclass, field
from datetime import datetime
from enum import StrEnum

from backbone.config import PreIssueThresholds
from backbone.dates import add_days, days_between, isoformat
from backbone.derive.goal_trajectory import GoalTrajectory
from backbone.derive.runway import RunwayResult

logger = logging.getLogger(__name__)


class PreIssueType(StrEnum):
    RUNWAY_BREACH = "RUNWAY_BREACH"
    GOAL_MISS = "GOAL_MISS"
    DEAL_STALL = "DEAL_STALL"
    ROUND_STALL = "ROUND_STALL"
    LEAD_VACANCY = "LEAD_VACANCY"
    CONNECTION_DORMANT = "CONNECTION_DORMANT"


PREVENTATIVE_ACTIONS: dict[PreIssueType, tuple[str, ...]] = {
    PreIssueType.RUNWAY_BREACH: ("REDUCE_BURN", "ACCELERATE_FUNDRAISE", "BRIDGE_ROUND"),
    PreIssueType.GOAL_MISS: ("ACCELERATE_GOAL", "REVISE_TARGET", "ADD_RESOURCES"),
    PreIssueType.DEAL_STALL: ("FOLLOW_UP_INVESTOR", "SCHEDULE_CHECK_IN", "PREPARE_ALTERNATIVES"),
    PreIssueType.ROUND_STALL: ("ACCELERATE_OUTREACH", "EXPAND_INVESTOR_LIST", "REVISIT_TERMS"),
    PreIssueType.LEAD_VACANCY: ("PRIORITIZE_LEAD_CANDIDATES", "OFFER_LEAD_TERMS", "EXPAND_SEARCH"),
    PreIssueType.CONNECTION_DORMANT: ("SEND_TOUCHPOINT", "SCHEDULE_CALL", "FIND_REASON_TO_CONNECT"),
}

CLOSED_DEAL_STATUSES = frozenset({"closed", "passed", "lost"})


# =============================================================================
# ESCALATION WINDOW & COST OF DELAY
# =============================================================================


@dataclass
class EscalationWindow:
    escalation_date: datetime
    days_until_escalation: float
    is_imminent: bool
    breach_date: datetime

    def to_dict(self) -> dict:
        return {
            "escalation_date": isoformat(self.escalation_date),
            "days_until_escalation": round(self.days_until_escalation, 2),
            "is_imminent": self.is_imminent,
            "breach_date": isoformat(self.breach_date),
        }


@dataclass
class CostOfDelay:
    cost_multiplier: float
    cost_curve: dict[str, float]
    explain: str

    def to_dict(self) -> dict:
        return {
            "cost_multiplier": self.cost_multiplier,
            "cost_curve": dict(self.cost_curve),
            "explain": self.explain,
        }


def base_cost_multiplier(days_until_escalation: float) -> tuple[float, str]:
    """
    Piecewise cost of waiting, before the per-type multiplier.

    1.0 beyond 30 days, 1.0→1.5 over 30-14, 1.5→2.5 over 14-7,
    2.5→5.0 over 7-0, then 5.0 plus half a point per day past escalation.
    """
    d = days_until_escalation
    if d > 30:
        return 1.0, "Baseline cost - ample time to act"
    if d > 14:
        return 1.0 + (30 - d) / 32, "Cost rising - action window narrowing"
    if d > 7:
        return 1.5 + (14 - d) / 7, "Elevated cost - limited options remaining"
    if d > 0:
        return 2.5 + (7 - d) / 2.8, "High cost - urgent action required"
    return 5.0 + abs(d) / 2, "Critical cost - damage accumulating"


@dataclass
class PreIssue:
    pre_issue_id: str
    pre_issue_type: PreIssueType
    entity_ref: dict
    company_id: str | None
    company_name: str
    title: str
    description: str
    likelihood: float
    time_to_breach_days: float
    severity: str
    explain: list[str]
    preventative_actions: tuple[str, ...]
    escalation: EscalationWindow | None = None
    cost_of_delay: CostOfDelay | None = None
    context: dict = field(default_factory=dict)

    def to_dict(self) -> dict:
        return {
            "pre_issue_id": self.pre_issue_id,
            "pre_issue_type": str(self.pre_issue_type),
            "entity_ref": dict(self.entity_ref),
            "company_id": self.company_id,
            "company_name": self.company_name,
            "title": self.title,
            "description": self.description,
            "likelihood": round(self.likelihood, 4),
            "time_to_breach_days": round(self.time_to_breach_days, 2),
            "severity": self.severity,
            "explain": list(self.explain),
            "preventative_actions": list(self.preventative_actions),
            "escalation": self.escalation.to_dict() if self.escalation else None,
            "cost_of_delay": self.cost_of_delay.to_dict() if self.cost_of_delay else None,
            "context": dict(self.context),
        }


def validate_pre_issue(preissue: PreIssue) -> list[str]:
    """Structural problems with a pre-issue; empty list means valid."""
    errors = []
    if not preissue.pre_issue_id:
        errors.append("Missing pre_issue_id")
    if not preissue.pre_issue_type:
        errors.append("Missing pre_issue_type")
    if not preissue.entity_ref:
        errors.append("Missing entity_ref")
    if not isinstance(preissue.likelihood, (int, float)):
        errors.append("likelihood must be a number")
    elif not 0 <= preissue.likelihood <= 1:
        errors.append("likelihood must be 0-1")
    if not isinstance(preissue.time_to_breach_days, (int, float)):
        errors.append("time_to_breach_days must be a number")
    if not isinstance(preissue.explain, list) or not preissue.explain:
        errors.append("explain must be a non-empty list")
    elif not all(isinstance(e, str) and e.strip() for e in preissue.explain):
        errors.append("explain entries must be non-empty strings")
    if preissue.escalation is None:
        errors.append("Missing escalation window")
    elif preissue.escalation.days_until_escalation > preissue.time_to_breach_days:
        errors.append("Escalation falls after breach")
    if preissue.cost_of_delay is None:
        errors.append("Missing cost_of_delay")
    return errors


def _millions(amount: float) -> str:
    return f"${amount / 1_000_000:.1f}M"


# =============================================================================
# FORECASTER
# =============================================================================


class PreIssueForecaster:
    """Detects forecast gaps and stamps each with escalation and cost of delay."""

    def __init__(self, thresholds: PreIssueThresholds | None = None):
        self.thresholds = thresholds or PreIssueThresholds()

    def escalation_buffer(self, pre_issue_type: str) -> float:
        return self.thresholds.escalation_buffers.get(
            str(pre_issue_type), self.thresholds.default_escalation_buffer_days
        )

    def type_multiplier(self, pre_issue_type: str) -> float:
        return self.thresholds.type_multipliers.get(str(pre_issue_type), 1.0)

    def compute_escalation_window(
        self, pre_issue_type: str, time_to_breach_days: float, now: datetime
    ) -> EscalationWindow:
        delta = max(0.0, time_to_breach_days - self.escalation_buffer(pre_issue_type))
        return EscalationWindow(
            escalation_date=add_days(now, delta),
            days_until_escalation=delta,
            is_imminent=delta <= self.thresholds.imminent_days,
            breach_date=add_days(now, time_to_breach_days),
        )

    def cost_at(self, days_until_escalation: float, pre_issue_type: str) -> float:
        base, _ = base_cost_multiplier(days_until_escalation)
        return round(base * self.type_multiplier(pre_issue_type), 2)

    def compute_cost_of_delay(self, days_until_escalation: float, pre_issue_type: str) -> CostOfDelay:
        _, explain = base_cost_multiplier(days_until_escalation)
        d = days_until_escalation
        return CostOfDelay(
            cost_multiplier=self.cost_at(d, pre_issue_type),
            cost_curve={
                "today": self.cost_at(d, pre_issue_type),
                "in_7_days": self.cost_at(d - 7, pre_issue_type),
                "in_14_days": self.cost_at(d - 14, pre_issue_type),
                "at_escalation": self.cost_at(0, pre_issue_type),
            },
            explain=explain,
        )

    def _stamp(self, preissue: PreIssue, now: datetime) -> PreIssue:
        preissue.escalation = self.compute_escalation_window(
            preissue.pre_issue_type, preissue.time_to_breach_days, now
        )
        preissue.cost_of_delay = self.compute_cost_of_delay(
            preissue.escalation.days_until_escalation, preissue.pre_issue_type
        )
        return preissue

    # =========================================================================
    # COMPANY DETECTORS
    # =========================================================================

    def detect_runway_breach(self, company, runway: RunwayResult, now: datetime) -> PreIssue | None:
        t = self.thresholds
        if not runway.is_finite or runway.value >= t.runway_breach_months:
            return None

        months = runway.value
        high = months < t.runway_high_likelihood_months
        likelihood = t.runway_high_likelihood if high else t.runway_base_likelihood
        burn = f"${company.burn / 1000:.0f}K/mo" if company.burn is not None else "unknown"
        return self._stamp(
            PreIssue(
                pre_issue_id=f"preissue-runway-{company.id}",
                pre_issue_type=PreIssueType.RUNWAY_BREACH,
                entity_ref={"type": "company", "id": company.id},
                company_id=company.id,
                company_name=company.display_name,
                title=f"Runway will breach {t.runway_high_likelihood_months:g}mo threshold",
                description=(
                    f"Current runway: {months:.1f} months. Without fundraise or burn "
                    "reduction, will hit critical level."
                ),
                likelihood=likelihood,
                time_to_breach_days=months * 30,
                severity="high" if high else "medium",
                explain=[
                    f"Runway: {months:.1f} months",
                    f"Burn: {burn}",
                    "High likelihood without intervention" if likelihood > 0.7 else "Moderate likelihood",
                ],
                preventative_actions=PREVENTATIVE_ACTIONS[PreIssueType.RUNWAY_BREACH],
            ),
            now,
        )

    def detect_goal_miss(self, trajectory: GoalTrajectory, company, now: datetime) -> PreIssue | None:
        t = self.thresholds
        p = trajectory.probability_of_hit
        if p >= t.goal_miss_probability or p <= 0:
            return None
        if trajectory.on_track is True:
            return None
        if trajectory.days_left is None or trajectory.days_left < 0:
            return None
        # Nothing to forecast against without both ends of the goal
        if trajectory.target is None or trajectory.current is None:
            return None

        return self._stamp(
            PreIssue(
                pre_issue_id=f"preissue-goal-{company.id}-{trajectory.goal_id}",
                pre_issue_type=PreIssueType.GOAL_MISS,
                entity_ref={"type": "company", "id": company.id},
                company_id=company.id,
                company_name=company.display_name,
                title=f'Goal "{trajectory.goal_name}" likely to miss target',
                description=(
                    f"{p * 100:.0f}% probability of hitting {trajectory.target:g} by "
                    f"{isoformat(trajectory.due)}. Currently at {trajectory.current:g}."
                ),
                likelihood=1 - p,
                time_to_breach_days=trajectory.days_left,
                severity="high" if p < t.goal_miss_high_severity_probability else "medium",
                explain=list(trajectory.explain),
                preventative_actions=PREVENTATIVE_ACTIONS[PreIssueType.GOAL_MISS],
                context={
                    "goal_id": trajectory.goal_id,
                    "goal_name": trajectory.goal_name,
                    "goal_type": trajectory.goal_type,
                },
            ),
            now,
        )

    def detect_deal_stalls(self, company, now: datetime) -> list[PreIssue]:
        t = self.thresholds
        found = []
        for deal in company.deals:
            if deal.as_of is None or deal.status in CLOSED_DEAL_STATUSES:
                continue
            idle = days_between(deal.as_of, now)
            if idle <= t.deal_stall_days:
                continue

            found.append(
                self._stamp(
                    PreIssue(
                        pre_issue_id=f"preissue-deal-{company.id}-{deal.id}",
                        pre_issue_type=PreIssueType.DEAL_STALL,
                        entity_ref={"type": "deal", "id": deal.id, "company_id": company.id},
                        company_id=company.id,
                        company_name=company.display_name,
                        title=f"Deal with {deal.investor} may be stalling",
                        description=(
                            f"No update in {int(idle)} days. Status: {deal.status}. "
                            f"Amount: {_millions(deal.amount)}"
                        ),
                        likelihood=min(0.9, 0.3 + (idle - t.deal_stall_days) / 30),
                        time_to_breach_days=t.deal_stall_days,
                        severity="high" if deal.amount > t.deal_stall_high_amount else "medium",
                        explain=[
                            f"{int(idle)} days since last update",
                            f"Current status: {deal.status}",
                            f"Deal value: {_millions(deal.amount)}",
                        ],
                        preventative_actions=PREVENTATIVE_ACTIONS[PreIssueType.DEAL_STALL],
                        context={"deal_id": deal.id, "investor": deal.investor},
                    ),
                    now,
                )
            )
        return found

    def _round_age(self, round_, now: datetime) -> float:
        if round_.start_date is None:
            return self.thresholds.round_default_age_days
        return days_between(round_.start_date, now)

    def detect_round_stall(self, round_, deals, company, now: datetime) -> PreIssue | None:
        t = self.thresholds
        if not round_.is_active:
            return None

        round_deals = [d for d in deals if d.round_id == round_.id]
        committed = sum(d.hard_commit for d in round_deals)
        coverage = committed / round_.target_amount if round_.target_amount > 0 else 0.0
        expected = min(1.0, self._round_age(round_, now) / t.round_full_coverage_days)
        gap = expected - coverage
        if gap < t.round_coverage_gap:
            return None

        if round_.target_close_date is not None:
            time_to_breach = max(
                t.round_min_time_to_breach_days, days_between(now, round_.target_close_date)
            )
        else:
            time_to_breach = t.round_default_time_to_breach_days

        stage = round_.stage or "Round"
        return self._stamp(
            PreIssue(
                pre_issue_id=f"preissue-round-stall-{round_.id}",
                pre_issue_type=PreIssueType.ROUND_STALL,
                entity_ref={"type": "round", "id": round_.id, "company_id": company.id},
                company_id=company.id,
                company_name=company.display_name,
                title=f"{stage} for {company.display_name} is behind schedule",
                description=f"Round {coverage * 100:.0f}% covered vs {expected * 100:.0f}% expected",
                likelihood=min(0.9, 0.3 + gap),
                time_to_breach_days=time_to_breach,
                severity="high" if gap > 0.4 else "medium",
                explain=[
                    f"Current coverage: {coverage * 100:.0f}%",
                    f"Expected by now: {expected * 100:.0f}%",
                    f"Gap: {gap * 100:.0f}%",
                    f"{len(round_deals)} active deals",
                ],
                preventative_actions=PREVENTATIVE_ACTIONS[PreIssueType.ROUND_STALL],
                context={"round_id": round_.id, "round_stage": stage},
            ),
            now,
        )

    def detect_lead_vacancy(self, round_, deals, company, now: datetime) -> PreIssue | None:
        t = self.thresholds
        if not round_.is_active:
            return None

        round_deals = [d for d in deals if d.round_id == round_.id]
        if any(d.is_lead for d in round_deals):
            return None

        age = self._round_age(round_, now)
        if age < t.lead_vacancy_days:
            return None

        stage = round_.stage or "Round"
        return self._stamp(
            PreIssue(
                pre_issue_id=f"preissue-lead-vacancy-{round_.id}",
                pre_issue_type=PreIssueType.LEAD_VACANCY,
                entity_ref={"type": "round", "id": round_.id, "company_id": company.id},
                company_id=company.id,
                company_name=company.display_name,
                title=f"{stage} for {company.display_name} needs a lead",
                description=f"Round active for {int(age)} days with no lead investor confirmed",
                likelihood=min(0.85, 0.4 + (age - t.lead_vacancy_days) / 90),
                time_to_breach_days=t.lead_vacancy_breach_days,
                severity="high" if age > 60 else "medium",
                explain=[
                    f"Round active for {int(age)} days",
                    "No lead investor confirmed",
                    f"{len(round_deals)} investors in pipeline",
                ],
                preventative_actions=PREVENTATIVE_ACTIONS[PreIssueType.LEAD_VACANCY],
                context={"round_id": round_.id, "round_stage": stage},
            ),
            now,
        )

    def forecast(
        self,
        company,
        runway: RunwayResult,
        goal_trajectories: list[GoalTrajectory],
        now: datetime,
    ) -> list[PreIssue]:
        """Every company-level pre-issue, in detector order."""
        found: list[PreIssue] = []

        runway_breach = self.detect_runway_breach(company, runway, now)
        if runway_breach:
            found.append(runway_breach)

        for trajectory in goal_trajectories:
            goal_miss = self.detect_goal_miss(trajectory, company, now)
            if goal_miss:
                found.append(goal_miss)

        found.extend(self.detect_deal_stalls(company, now))

        for round_ in company.rounds:
            for detector in (self.detect_round_stall, self.detect_lead_vacancy):
                preissue = detector(round_, company.deals, company, now)
                if preissue:
                    found.append(preissue)

        if found:
            logger.debug(f"Forecast {len(found)} pre-issues for {company.id}")
        return found

    # =========================================================================
    # PORTFOLIO DETECTORS
    # =========================================================================

    def detect_dormant_connection(
        self, relationship, people_by_id: dict, company, now: datetime
    ) -> PreIssue | None:
        t = self.thresholds
        if relationship.last_touch_at is None:
            return None
        idle = days_between(relationship.last_touch_at, now)
        if idle < t.dormant_days:
            return None

        def name(person_id: str) -> str:
            person = people_by_id.get(person_id)
            return person.name if person and person.name else person_id

        first, second = name(relationship.from_person_id), name(relationship.to_person_id)
        pair = f"{first} ↔ {second}"
        strength = f"{relationship.strength:g}" if relationship.strength is not None else "unknown"
        return self._stamp(
            PreIssue(
                pre_issue_id=f"preissue-dormant-{relationship.key}",
                pre_issue_type=PreIssueType.CONNECTION_DORMANT,
                entity_ref={
                    "type": "relationship",
                    "id": relationship.key,
                    "name": pair,
                    "company_id": company.id,
                },
                company_id=company.id,
                company_name=company.display_name,
                title=f"Connection between {first} and {second} going dormant",
                description=f"No contact in {int(idle)} days",
                likelihood=min(0.8, 0.3 + (idle - t.dormant_days) / 180),
                time_to_breach_days=t.dormant_breach_days,
                severity="high" if idle > 180 else "medium",
                explain=[
                    f"{int(idle)} days since last contact",
                    f"Relationship strength: {strength}",
                    "Connection may need re-activation",
                ],
                preventative_actions=PREVENTATIVE_ACTIONS[PreIssueType.CONNECTION_DORMANT],
                context={"person_names": pair, "relationship_id": relationship.key},
            ),
            now,
        )

    def forecast_dormant_connections(
        self, relationships, people, companies, now: datetime
    ) -> list[PreIssue]:
        """
        Dormant-connection pre-issues across the portfolio.

        A relationship is in scope when either end is a person attached to a
        portfolio company; it is attributed to the first such company.
        """
        people_by_id = {p.id: p for p in people}
        companies_by_id = {c.id: c for c in companies}

        found = []
        seen: set[str] = set()
        for relationship in relationships:
            if relationship.key in seen:
                continue
            company = None
            for person_id in (relationship.from_person_id, relationship.to_person_id):
                person = people_by_id.get(person_id)
                if person and person.company_id in companies_by_id:
                    company = companies_by_id[person.company_id]
                    break
            if company is None:
                continue
            preissue = self.detect_dormant_connection(relationship, people_by_id, company, now)
            if preissue:
                seen.add(relationship.key)
                found.append(preissue)
        return found


def get_imminent_pre_issues(preissues: list[PreIssue]) -> list[PreIssue]:
    return [p for p in preissues if p.escalation and p.escalation.is_imminent]


def rank_pre_issues_by_cost_of_delay(preissues: list[PreIssue]) -> list[PreIssue]:
    """Highest cost of waiting first."""
    return sorted(
        preissues,
        key=lambda p: p.cost_of_delay.cost_multiplier if p.cost_of_delay else 1.0,
        reverse=True,
    )
