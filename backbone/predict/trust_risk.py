"""
Trust Risk: the social-capital cost of asking for an introduction.

Six weighted contributions add up to a 0-100 score:
1. inverse relationship strength
2. recency of last touch
3. how often this relationship has already been asked
4. path length
5. fit mismatch between target and goal/company
6. reputational asymmetry of the introducer

Score bands: low ≤30, medium ≤60, high above. High blocks amplification.
"""

from dataclasses import dataclass, field
from datetime import datetime
from enum import StrEnum

from backbone.config import TrustRiskWeights
from backbone.dates import whole_days_between

# Recency bucket labels, aligned with TrustRiskWeights.recency_penalties
RECENCY_LABELS = ("very-recent", "recent", "moderate")

SENIOR_ROLES = ("Managing Partner", "Partner", "CEO", "CTO")

ADJACENT_SECTORS: dict[str, tuple[str, ...]] = {
    "Payments": ("Fintech", "Crypto", "Financial Infrastructure"),
    "Fintech": ("Payments", "Enterprise Software", "Crypto"),
    "Enterprise Software": ("Developer Tools", "AI", "Fintech"),
    "Developer Tools": ("Enterprise Software", "AI"),
    "Crypto": ("Fintech", "Payments"),
    "AI": ("Enterprise Software", "Developer Tools"),
}


class TrustRiskBand(StrEnum):
    LOW = "low"
    MEDIUM = "medium"
    HIGH = "high"


@dataclass
class TrustRisk:
    score: int
    band: TrustRiskBand
    reasons: list[str] = field(default_factory=list)
    components: dict[str, float] = field(default_factory=dict)

    @property
    def normalized(self) -> float:
        """Score on a 0-1 scale, as used by the ranking trust penalty."""
        return self.score / 100

    @property
    def blocks_amplification(self) -> bool:
        return self.band == TrustRiskBand.HIGH

    def to_dict(self) -> dict:
        return {
            "score": self.score,
            "band": str(self.band),
            "reasons": list(self.reasons),
            "components": {k: round(v, 2) for k, v in self.components.items()},
        }


def goal_tags(goal) -> list[str]:
    """Expertise tags a goal calls for."""
    if goal is None:
        return []
    name = (goal.name or "").lower()
    tags: list[str] = []
    match goal.type:
        case "fundraise":
            tags += ["investor", "fundraising", "capital"]
            if "seed" in name:
                tags += ["seed", "pre-seed"]
            if "series" in name:
                tags += ["series-a", "growth"]
        case "partnership":
            tags += ["partnerships", "business-development"]
        case "hiring":
            tags += ["hiring", "recruiting", "talent"]
        case "revenue":
            tags += ["sales", "customers", "growth"]
    return tags


def intro_capital_remaining(intros_last_90_days: int) -> int:
    """How many more asks a relationship can absorb without excessive risk."""
    if intros_last_90_days >= 3:
        return 0
    return 3 - intros_last_90_days


class TrustRiskCalculator:
    """Scores the trust risk of one introduction path."""

    def __init__(self, weights: TrustRiskWeights | None = None):
        self.weights = weights or TrustRiskWeights()

    def recency_penalty(self, days_since_touch: float) -> tuple[float, str]:
        for (max_days, penalty), label in zip(self.weights.recency_penalties, RECENCY_LABELS):
            if days_since_touch <= max_days:
                return penalty, label
        return self.weights.stale_penalty, "stale"

    def frequency_penalty(self, intros_last_90_days: int) -> float:
        table = self.weights.frequency_penalties
        return table[min(max(intros_last_90_days, 0), len(table) - 1)]

    def path_penalty(self, hops: int) -> float:
        table = self.weights.path_penalties
        return table[min(max(hops, 1), len(table)) - 1]

    def fit_mismatch_penalty(
        self, target_tags: list[str], wanted_tags: list[str], target_sector: str | None, company_sector: str | None
    ) -> tuple[float, list[str]]:
        w = self.weights
        penalty = 0.0
        reasons = []

        overlap = len([t for t in target_tags if t in wanted_tags])
        if overlap == 0 and wanted_tags:
            penalty += w.no_tag_overlap_penalty
            reasons.append("No expertise overlap with goal requirements")
        elif overlap == 1:
            penalty += w.weak_tag_overlap_penalty
            reasons.append("Weak expertise overlap")

        if target_sector and company_sector and target_sector != company_sector:
            if target_sector not in ADJACENT_SECTORS.get(company_sector, ()):
                penalty += w.sector_mismatch_penalty
                reasons.append(f"Sector mismatch: {target_sector} vs {company_sector}")

        return penalty, reasons

    def reputational_penalty(
        self, introducer_role: str | None, strength: float | None, success_rate: float | None
    ) -> tuple[float, list[str]]:
        w = self.weights
        penalty = 0.0
        reasons = []

        senior = bool(introducer_role) and any(r in introducer_role for r in SENIOR_ROLES)
        if senior and strength is not None and strength < w.senior_strength_floor:
            penalty += w.senior_weak_relationship_penalty
            reasons.append("Senior introducer with moderate relationship strength")

        if success_rate is not None and success_rate < w.low_success_rate:
            penalty += w.low_success_rate_penalty
            reasons.append(f"Below-average intro success rate ({success_rate * 100:.0f}%)")

        return penalty, reasons

    def band(self, score: float) -> TrustRiskBand:
        if score <= self.weights.low_band_max:
            return TrustRiskBand.LOW
        if score <= self.weights.medium_band_max:
            return TrustRiskBand.MEDIUM
        return TrustRiskBand.HIGH

    def calculate(
        self,
        relationship,
        path_length: int,
        now: datetime,
        intros_last_90_days: int = 0,
        target=None,
        goal=None,
        company=None,
        introducer=None,
    ) -> TrustRisk:
        """
        Trust risk for an intro over `relationship` (the introducer's edge).

        A missing relationship is scored at default strength and as stale.
        """
        w = self.weights
        reasons: list[str] = []
        components: dict[str, float] = {}

        strength = relationship.strength if relationship is not None else None
        effective = strength if strength is not None else w.default_strength
        components["strength"] = max(0.0, 100 - effective) * w.strength_weight
        if strength is not None and strength < w.weak_strength:
            reasons.append(f"Weak relationship (strength: {strength:g})")

        last_touch = relationship.last_touch_at if relationship is not None else None
        days = (
            abs(whole_days_between(last_touch, now))
            if last_touch is not None
            else int(w.default_days_since_touch)
        )
        components["recency"], label = self.recency_penalty(days)
        if components["recency"] > w.reason_threshold:
            reasons.append(f"{label} contact ({days} days ago)")

        components["frequency"] = self.frequency_penalty(intros_last_90_days)
        if components["frequency"] > w.reason_threshold:
            reasons.append(f"Recent intro requests ({intros_last_90_days} in last 90 days)")

        components["path"] = self.path_penalty(path_length)
        if path_length > 1:
            reasons.append(f"{path_length}-hop path (not direct relationship)")

        target_sector = "Investor" if target is not None and target.org_type == "investor" else None
        components["fit"], fit_reasons = self.fit_mismatch_penalty(
            list(target.tags) if target is not None else [],
            goal_tags(goal),
            target_sector,
            company.sector if company is not None else None,
        )
        reasons.extend(fit_reasons)

        success_rate = None
        if relationship is not None and relationship.intro_count > 0:
            success_rate = relationship.intro_success_count / relationship.intro_count
        components["reputation"], rep_reasons = self.reputational_penalty(
            getattr(introducer, "role", None), strength, success_rate
        )
        reasons.extend(rep_reasons)

        score = int(min(100, max(0, round(sum(components.values())))))
        return TrustRisk(
            score=score,
            band=self.band(score),
            reasons=reasons[: w.max_reasons] or ["Baseline risk assessment"],
            components=components,
        )


def calculate_trust_risk(
    relationship,
    path_length: int,
    now: datetime,
    weights: TrustRiskWeights | None = None,
    **context,
) -> TrustRisk:
    return TrustRiskCalculator(weights).calculate(relationship, path_length, now, **context)
