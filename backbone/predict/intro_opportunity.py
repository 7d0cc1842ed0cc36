"""
Introduction Opportunities: who in the network can unblock a goal.

For each blocked fundraise, partnership or hiring goal:
1. find target people that fit the goal (org type, stage, sector, tags)
2. breadth-first search from introducers (team and founders) to each
   target, never beyond two hops
3. filter second-order paths by expected conversion lift, and drop every
   second-order path of a traversal when too few of them clear the bar
4. score trust risk, probability and timing (NOW/SOON/LATER/NEVER)

NEVER-timed or high-trust-risk opportunities are dropped here and never
reach the action generator. Everything is derived per computation.
"""

import logging
from collections import deque
from dataclasses import dataclass, field
from datetime import datetime
from enum import StrEnum
from math import prod

from backbone.config import IntroWeights, TrustRiskWeights
from backbone.dates import days_remaining, whole_days_between
from backbone.derive.goal_trajectory import GoalTrajectory
from backbone.predict.trust_risk import TrustRisk, TrustRiskCalculator

logger = logging.getLogger(__name__)


class Timing(StrEnum):
    NOW = "NOW"
    SOON = "SOON"
    LATER = "LATER"
    NEVER = "NEVER"


TIMING_ORDER = {Timing.NOW: 0, Timing.SOON: 1, Timing.LATER: 2, Timing.NEVER: 3}

INTRO_GOAL_TYPES = ("fundraise", "partnership", "hiring")

TARGET_ORG_TYPES: dict[str, tuple[str, ...]] = {
    "fundraise": ("investor", "external"),
    "partnership": ("company", "external"),
    "hiring": ("company", "external"),
}

HIRING_TAGS = frozenset({"hiring", "recruiting", "talent", "engineering", "sales"})
PIPELINE_STATUSES = frozenset({"termsheet", "dd"})
ACTIVE_DEAL_STATUSES = frozenset({"meeting", "dd", "termsheet"})

# Generic goals are judged against a 90-day window
GOAL_WINDOW_DAYS = 90
# Average strength that leaves conversion unchanged
NEUTRAL_STRENGTH = 50


# =============================================================================
# GRAPH
# =============================================================================


@dataclass
class SecondOrder:
    conversion_lift: float
    expected_conversion: float
    is_second_order: bool
    include_in_ranking: bool
    explain: str

    def to_dict(self) -> dict:
        return {
            "conversion_lift": round(self.conversion_lift, 2),
            "expected_conversion": round(self.expected_conversion, 3),
            "is_second_order": self.is_second_order,
            "include_in_ranking": self.include_in_ranking,
            "explain": self.explain,
        }


@dataclass
class Path:
    """People from introducer to target, and the relationships between them."""

    people: tuple[str, ...]
    relationships: tuple
    second_order: SecondOrder | None = None

    @property
    def hops(self) -> int:
        return len(self.relationships)

    @property
    def introducer_id(self) -> str:
        return self.people[0]


@dataclass(frozen=True, slots=True)
class _PathState:
    node: int
    nodes: tuple[int, ...]
    edges: tuple


class RelationshipGraph:
    """Undirected adjacency lists over people, indexed by integer position."""

    def __init__(self, relationships):
        self._index: dict[str, int] = {}
        self._ids: list[str] = []
        self._adjacency: list[list[tuple[int, object]]] = []
        for rel in relationships:
            a = self._intern(rel.from_person_id)
            b = self._intern(rel.to_person_id)
            self._adjacency[a].append((b, rel))
            self._adjacency[b].append((a, rel))

    def _intern(self, person_id: str) -> int:
        if person_id not in self._index:
            self._index[person_id] = len(self._ids)
            self._ids.append(person_id)
            self._adjacency.append([])
        return self._index[person_id]

    def __contains__(self, person_id: str) -> bool:
        return person_id in self._index

    def neighbors(self, person_id: str) -> list[tuple[str, object]]:
        if person_id not in self._index:
            return []
        return [(self._ids[n], rel) for n, rel in self._adjacency[self._index[person_id]]]

    def find_paths(self, source_ids, target_ids, max_hops: int) -> list[Path]:
        """
        Every simple path of 1..max_hops edges from a source to a target.

        Search does not continue past a target. Sources are walked in the
        order given, neighbours in relationship order.
        """
        targets = {self._index[t] for t in target_ids if t in self._index}
        if not targets:
            return []

        found = []
        for source_id in source_ids:
            if source_id not in self._index:
                continue
            start = self._index[source_id]
            queue = deque([_PathState(start, (start,), ())])
            while queue:
                state = queue.popleft()
                if state.node in targets and len(state.nodes) > 1:
                    found.append(
                        Path(tuple(self._ids[n] for n in state.nodes), state.edges)
                    )
                    continue
                if len(state.nodes) > max_hops:
                    continue
                for nxt, rel in self._adjacency[state.node]:
                    if nxt not in state.nodes:
                        queue.append(_PathState(nxt, state.nodes + (nxt,), state.edges + (rel,)))
        return found


# =============================================================================
# RECORDS
# =============================================================================


@dataclass
class Target:
    person: object
    relevance_score: float


@dataclass
class IntroTiming:
    timing: Timing
    rationale: list[str]
    confidence: float
    score: int

    def to_dict(self) -> dict:
        return {
            "timing": str(self.timing),
            "timing_rationale": list(self.rationale),
            "timing_confidence": round(self.confidence, 3),
            "timing_score": self.score,
        }


@dataclass
class IntroductionOpportunity:
    id: str
    company_id: str
    company_name: str
    goal_id: str
    goal_name: str
    introducer_id: str
    introducer_name: str | None
    target_person_id: str
    target_person_name: str
    target_org: str | None
    path: list[str]
    probability: float
    trust_risk: TrustRisk
    optionality_gain: float
    relevance_score: float
    second_order: SecondOrder
    timing: IntroTiming
    goal_days_left: int | None = None
    rationale: list[str] = field(default_factory=list)

    @property
    def path_length(self) -> int:
        return len(self.path) - 1

    @property
    def conversion_lift(self) -> float:
        return self.second_order.conversion_lift

    @property
    def is_second_order(self) -> bool:
        return self.second_order.is_second_order

    def sort_key(self) -> tuple:
        return (TIMING_ORDER[self.timing.timing], -self.probability * (100 - self.trust_risk.score))

    def to_dict(self) -> dict:
        return {
            "id": self.id,
            "type": "INTRODUCTION",
            "company_id": self.company_id,
            "goal_id": self.goal_id,
            "goal_name": self.goal_name,
            "goal_days_left": self.goal_days_left,
            "introducer_id": self.introducer_id,
            "introducer_name": self.introducer_name,
            "target_person_id": self.target_person_id,
            "target_person_name": self.target_person_name,
            "target_org": self.target_org,
            "path": list(self.path),
            "path_length": self.path_length,
            "probability": round(self.probability, 4),
            "trust_risk": self.trust_risk.to_dict(),
            "optionality_gain": self.optionality_gain,
            "relevance_score": self.relevance_score,
            "conversion_lift": round(self.conversion_lift, 2),
            "is_second_order": self.is_second_order,
            "second_order": self.second_order.to_dict(),
            **self.timing.to_dict(),
            "rationale": list(self.rationale),
        }


def _strength(relationship, default: float = NEUTRAL_STRENGTH) -> float:
    return relationship.strength if relationship.strength is not None else default


def _progress_pct(goal) -> float:
    if not goal.target or goal.current is None:
        return 0.0
    return goal.current / goal.target * 100


def score_path(path: Path, decay: float = IntroWeights.path_length_decay) -> float:
    """Geometric mean of strengths, multiplied by decay once per extra hop."""
    if not path.relationships:
        return 0.0
    ratios = [_strength(r) / 100 for r in path.relationships]
    geo_mean = prod(ratios) ** (1 / len(ratios))
    return geo_mean * decay ** (len(ratios) - 1)


# =============================================================================
# ENGINE
# =============================================================================


class IntroOpportunityEngine:
    """Finds, filters, scores and times introductions for one company."""

    def __init__(self, weights: IntroWeights | None = None, trust_weights: TrustRiskWeights | None = None):
        self.weights = weights or IntroWeights()
        self.trust = TrustRiskCalculator(trust_weights)

    def _direct(self) -> SecondOrder:
        return SecondOrder(1.0, self.weights.baseline_conversion, False, True, "Direct intro (1-hop)")

    # =========================================================================
    # SECOND-ORDER FILTER
    # =========================================================================

    def conversion_lift(self, path: Path) -> SecondOrder:
        """
        Expected conversion lift of a path over a direct intro.

        lift = Π(strength/100) × hop_decay^(hops-1) × (mean strength / 50).
        Direct paths are always kept; longer ones only when lift ≥ the
        minimum.
        """
        w = self.weights
        if path.hops <= 1:
            return self._direct()

        strengths = [_strength(r) for r in path.relationships]
        lift = (
            prod(s / 100 for s in strengths)
            * w.hop_decay ** (path.hops - 1)
            * (sum(strengths) / len(strengths) / NEUTRAL_STRENGTH)
        )
        include = lift >= w.second_order_min_lift
        if include:
            explain = f"Second-order path ({path.hops} hops): {lift * 100:.0f}% lift vs baseline"
        else:
            explain = (
                f"Second-order path filtered: {lift * 100:.0f}% lift < "
                f"{w.second_order_min_lift * 100:.0f}% threshold"
            )
        return SecondOrder(lift, w.baseline_conversion * lift, True, include, explain)

    def filter_second_order_paths(self, paths: list[Path], goal) -> list[Path]:
        """
        Keep direct paths and second-order paths that clear the lift bar.

        Without a goal no second-order path is admitted. When fewer than
        min_second_order_inclusion of the second-order paths clear the bar,
        all of them are dropped.
        """
        if goal is None:
            return [
                Path(p.people, p.relationships, self._direct()) for p in paths if p.hops == 1
            ]

        scored = [Path(p.people, p.relationships, self.conversion_lift(p)) for p in paths]
        kept = [p for p in scored if p.second_order.include_in_ranking]

        second_order = [p for p in scored if p.second_order.is_second_order]
        if second_order:
            admitted = [p for p in kept if p.second_order.is_second_order]
            if len(admitted) / len(second_order) < self.weights.min_second_order_inclusion:
                return [p for p in kept if not p.second_order.is_second_order]
        return kept

    # =========================================================================
    # GOALS AND TARGETS
    # =========================================================================

    def is_goal_blocked(self, goal, company, now: datetime) -> bool:
        if goal.status != "active" or goal.due is None:
            return False

        days_left = whole_days_between(now, goal.due)
        progress = _progress_pct(goal)

        match goal.type:
            case "fundraise":
                committed = sum(d.weighted_amount for d in company.deals if d.status in PIPELINE_STATUSES)
                gap = (goal.target or 0) - (goal.current or 0) - committed
                if gap > 0 and days_left < 60:
                    return True
            case "partnership":
                if progress < 50 and days_left < 45:
                    return True
            case "hiring":
                expected = max(0.0, 100 - days_left / GOAL_WINDOW_DAYS * 100)
                if progress < expected * 0.7:
                    return True

        expected_pct = min(100.0, (GOAL_WINDOW_DAYS - days_left) / GOAL_WINDOW_DAYS * 100)
        return progress < expected_pct * 0.6

    def find_potential_targets(self, goal, company, people, investors) -> list[Target]:
        org_types = TARGET_ORG_TYPES.get(goal.type, ())
        stage = company.stage.lower()
        sector = company.sector.lower()
        targets = []

        for person in people:
            if person.org_type not in org_types or person.org_id == company.id:
                continue

            match goal.type:
                case "fundraise" if person.org_type == "investor":
                    investor = next(
                        (i for i in investors if i.person_id == person.id or i.id == person.org_id),
                        None,
                    )
                    if investor is None:
                        continue
                    stage_match = bool(stage) and stage in investor.stage_focus.lower()
                    sector_match = bool(sector) and sector in investor.sector_focus.lower()
                    if stage_match or sector_match:
                        targets.append(Target(person, (50 if stage_match else 0) + (50 if sector_match else 0)))
                case "partnership":
                    sector_match = bool(sector) and any(t.lower() in sector for t in person.tags)
                    if sector_match or person.org_type == "external":
                        targets.append(Target(person, 70 if sector_match else 30))
                case "hiring":
                    if any(t.lower() in HIRING_TAGS for t in person.tags):
                        targets.append(Target(person, 50))

        return targets

    def score_path(self, path: Path) -> float:
        return score_path(path, self.weights.path_length_decay)

    def intro_probability(self, path: Path, target: Target) -> float:
        w = self.weights
        probability = self.score_path(path) * (target.relevance_score / 100)
        return min(w.max_probability, max(w.min_probability, probability))

    def optionality_gain(self, target: Target) -> float:
        person = target.person
        gain = 0
        match person.org_type:
            case "investor":
                gain += 30
                if "founder-friendly" in person.tags:
                    gain += 10
            case "external":
                gain += 20
                if any(r in (person.role or "") for r in ("CEO", "CTO", "Partner")):
                    gain += 15
            case "company":
                gain += 25
        return min(100, gain)

    # =========================================================================
    # TIMING
    # =========================================================================

    def compute_timing(
        self,
        goal,
        company,
        trust_risk: TrustRisk,
        probability: float,
        trajectory: GoalTrajectory | None,
        now: datetime,
    ) -> IntroTiming:
        """
        NOW / SOON / LATER / NEVER from a scored set of signals.

        LATER is the default under uncertainty; trust risk above the NEVER
        cutoff blocks regardless of every other signal.
        """
        w = self.weights
        rationale: list[str] = []
        score = 0
        confidence = 0.5

        days_left = whole_days_between(now, goal.due) if goal.due else GOAL_WINDOW_DAYS
        progress = _progress_pct(goal)
        gap = 100 - progress

        if gap > 70:
            score += 2
            confidence += 0.1
            rationale.append(f"Large gap to target ({gap:.0f}% remaining)")
        elif gap > 40:
            score += 1
            rationale.append(f"Moderate gap to target ({gap:.0f}% remaining)")
        else:
            confidence += 0.15
            rationale.append(f"Goal on track ({progress:.0f}% complete)")

        if days_left < 21:
            score += 3
            confidence += 0.15
            rationale.append(f"Critical: {days_left} days remaining")
        elif days_left < 45:
            score += 2
            confidence += 0.1
            rationale.append(f"Approaching deadline: {days_left} days")
        elif days_left < 90:
            score += 1
            rationale.append(f"Reasonable runway: {days_left} days")
        else:
            confidence -= 0.1
            rationale.append(f"Ample time: {days_left} days")

        if trajectory is not None:
            if trajectory.velocity < 0:
                score += 2
                confidence += 0.1
                rationale.append("Negative velocity - losing ground")
            elif trajectory.probability_of_hit < 0.3:
                score += 2
                confidence += 0.1
                rationale.append(f"Low probability of hit ({trajectory.probability_of_hit * 100:.0f}%)")
            elif trajectory.probability_of_hit > 0.7:
                score -= 1
                confidence += 0.1
                rationale.append(f"Good probability of hit ({trajectory.probability_of_hit * 100:.0f}%)")

        if goal.type == "fundraise":
            if now.month in (1, 2, 3):
                score += 1
                confidence += 0.05
                rationale.append("Q1 - favorable fundraising season")
            elif now.month in (9, 10, 11):
                score += 1
                confidence += 0.05
                rationale.append("Autumn - favorable fundraising season")
            elif now.month in (7, 8):
                score -= 1
                rationale.append("Summer - slower investor activity")

            active = len([d for d in company.deals if d.status in ACTIVE_DEAL_STATUSES])
            if active == 0:
                score += 2
                confidence += 0.1
                rationale.append("No active deals - pipeline needs intros")
            elif active >= 3:
                score -= 1
                rationale.append(f"{active} active deals - pipeline healthy")

        if trust_risk.score > 70:
            score -= 3
            confidence += 0.15
            rationale.append(f"High trust risk ({trust_risk.score}) - delay recommended")
        elif trust_risk.score > 50:
            score -= 1
            rationale.append(f"Moderate trust risk ({trust_risk.score})")

        if probability < 0.3:
            score -= 1
            rationale.append(f"Low success probability ({probability * 100:.0f}%)")
        elif probability > 0.6:
            score += 1
            confidence += 0.1
            rationale.append(f"Good success probability ({probability * 100:.0f}%)")

        if trust_risk.score > w.never_trust_score:
            timing = Timing.NEVER
            rationale.insert(0, "BLOCKED: Trust risk too high")
            confidence = 0.9
        elif score >= w.now_min_score and confidence > w.now_min_confidence:
            timing = Timing.NOW
            rationale.insert(0, "Immediate action recommended")
        elif score >= w.soon_min_score and confidence > w.soon_min_confidence:
            timing = Timing.SOON
            rationale.insert(0, "Action recommended within 2-4 weeks")
        else:
            timing = Timing.LATER
            rationale.insert(0, "Wait for better signal or conditions")
            if confidence < 0.5:
                rationale.append("Insufficient confidence for earlier timing")

        return IntroTiming(timing, rationale, min(1.0, max(0.0, confidence)), score)

    # =========================================================================
    # GENERATION
    # =========================================================================

    def _rationale(self, goal, target: Target, introducer_name: str | None, trust: TrustRisk, timing: IntroTiming):
        person = target.person
        if target.relevance_score >= 70:
            fit = "strong sector/stage match"
        elif target.relevance_score >= 40:
            fit = "moderate relevance"
        else:
            fit = "potential connection"
        lines = [
            f'Goal "{goal.name or goal.type}" needs acceleration.',
            f"{person.name or person.id} ({person.role or 'Contact'}) is a fit because: {fit}.",
        ]
        if introducer_name:
            lines.append(f"Path: {introducer_name} can introduce.")
        lines.append(f"Trust risk: {trust.band} ({trust.score}/100).")
        lines.append(f"Timing: {timing.timing} - {timing.rationale[0]}")
        return lines

    def introducer_ids(self, company, team) -> list[str]:
        """Firm team members and the company's own team, then founders."""
        ids = [
            m.person_id for m in team if m.person_id and m.company_id in (None, company.id)
        ]
        ids.extend(company.founder_person_ids)
        return list(dict.fromkeys(ids))

    def generate(
        self,
        company,
        people,
        relationships,
        investors,
        team,
        goal_trajectories: list[GoalTrajectory],
        now: datetime,
    ) -> list[IntroductionOpportunity]:
        """Every admissible introduction for a company, best timing first."""
        w = self.weights
        graph = RelationshipGraph(relationships)
        introducers = self.introducer_ids(company, team)
        people_by_id = {p.id: p for p in people}
        team_by_person = {m.person_id: m for m in team}
        trajectories = {t.goal_id: t for t in goal_trajectories}

        opportunities = []
        blocked_goals = [
            g for g in company.goals
            if g.type in INTRO_GOAL_TYPES and self.is_goal_blocked(g, company, now)
        ]
        for goal in blocked_goals:
            for target in self.find_potential_targets(goal, company, people, investors):
                raw_paths = graph.find_paths(introducers, [target.person.id], w.max_hops)
                paths = self.filter_second_order_paths(raw_paths, goal)
                if not paths:
                    continue

                best = max(paths, key=lambda p: self.score_path(p) * p.second_order.conversion_lift)
                introducer = team_by_person.get(best.introducer_id) or people_by_id.get(best.introducer_id)
                introducer_name = getattr(introducer, "name", None) or None
                primary = best.relationships[0]

                trust = self.trust.calculate(
                    primary,
                    best.hops,
                    now,
                    intros_last_90_days=primary.intro_count,
                    target=target.person,
                    goal=goal,
                    company=company,
                    introducer=introducer,
                )
                probability = self.intro_probability(best, target)
                timing = self.compute_timing(
                    goal, company, trust, probability, trajectories.get(goal.id), now
                )
                if timing.timing == Timing.NEVER or trust.blocks_amplification:
                    logger.debug(
                        f"Dropped intro {company.id}/{goal.id}/{target.person.id}: "
                        f"timing {timing.timing}, trust {trust.score}"
                    )
                    continue

                opportunities.append(
                    IntroductionOpportunity(
                        id=f"intro-{company.id}-{goal.id}-{target.person.id}",
                        company_id=company.id,
                        company_name=company.display_name,
                        goal_id=goal.id,
                        goal_name=goal.name or goal.type,
                        introducer_id=best.introducer_id,
                        introducer_name=introducer_name,
                        target_person_id=target.person.id,
                        target_person_name=target.person.name or target.person.id,
                        target_org=target.person.org_id,
                        path=list(best.people),
                        probability=probability,
                        trust_risk=trust,
                        optionality_gain=self.optionality_gain(target),
                        relevance_score=target.relevance_score,
                        second_order=best.second_order,
                        timing=timing,
                        goal_days_left=days_remaining(goal.due, now),
                        rationale=self._rationale(goal, target, introducer_name, trust, timing),
                    )
                )

        opportunities.sort(key=lambda o: o.sort_key())
        return opportunities


def generate_intro_opportunities(
    company,
    people,
    relationships,
    investors,
    team,
    goal_trajectories: list[GoalTrajectory],
    now: datetime,
    weights: IntroWeights | None = None,
    trust_weights: TrustRiskWeights | None = None,
) -> list[IntroductionOpportunity]:
    return IntroOpportunityEngine(weights, trust_weights).generate(
        company, people, relationships, investors, team, goal_trajectories, now
    )
