"""
Unified Action Ranking.

SINGLE CANONICAL RANKING SURFACE. Every action is ordered by one scalar:

    rank_score = expected_net_impact
                 - trust_penalty
                 - execution_friction_penalty
                 + time_criticality_boost

    expected_net_impact = upside * p + leverage - downside * (1 - p)
                          - effort_cost - time_penalty(time_to_impact)
    p = execution_probability * probability_of_success

Ties within the configured epsilon are broken by ascending action_id.
No other number may reorder actions.
"""

import logging
import math
from dataclasses import dataclass

from backbone.config import RankingWeights
from backbone.predict.action_schema import (
    Action,
    GoalSource,
    ImpactModel,
    IntroductionSource,
    IssueSource,
    ManualSource,
    PreIssueSource,
)

logger = logging.getLogger(__name__)


# =============================================================================
# DATA STRUCTURES
# =============================================================================


@dataclass(frozen=True)
class RankComponents:
    expected_net_impact: float
    trust_penalty: float
    execution_friction_penalty: float
    time_criticality_boost: float

    def to_dict(self) -> dict:
        return {
            "expected_net_impact": round(self.expected_net_impact, 4),
            "trust_penalty": round(self.trust_penalty, 4),
            "execution_friction_penalty": round(self.execution_friction_penalty, 4),
            "time_criticality_boost": round(self.time_criticality_boost, 4),
        }


@dataclass
class RankedAction:
    action: Action
    rank_score: float
    rank_components: RankComponents
    rank: int = 0

    @property
    def action_id(self) -> str:
        return self.action.action_id

    @property
    def impact(self) -> ImpactModel:
        return self.action.impact

    def to_dict(self) -> dict:
        data = self.action.to_dict()
        data["rank_score"] = round(self.rank_score, 4)
        data["rank_components"] = self.rank_components.to_dict()
        data["expected_net_impact"] = round(self.rank_components.expected_net_impact, 4)
        data["rank"] = self.rank
        return data


# =============================================================================
# RANKER
# =============================================================================


class ActionRanker:
    """Scores and orders actions with one weight table."""

    def __init__(self, weights: RankingWeights | None = None):
        self.weights = weights or RankingWeights()

    def time_penalty(self, days: float) -> float:
        w = self.weights
        return min(w.time_penalty_cap, days / w.time_penalty_divisor)

    def expected_net_impact(self, impact: ImpactModel) -> float:
        p = impact.combined_probability
        expected_upside = impact.upside_magnitude * p
        expected_downside = impact.downside_magnitude * (1 - p)
        return (
            expected_upside
            + impact.second_order_leverage
            - expected_downside
            - impact.effort_cost
            - self.time_penalty(impact.time_to_impact_days)
        )

    def trust_risk(self, action: Action) -> float:
        """Trust risk in [0, 1] carried by the action's source."""
        match action.source:
            case IntroductionSource(opportunity=o):
                return o.trust_risk.normalized
            case IssueSource() | PreIssueSource() | GoalSource() | ManualSource():
                return 0.0

    def trust_penalty(self, trust_risk: float) -> float:
        w = self.weights
        if trust_risk <= w.trust_threshold:
            return 0.0
        return (trust_risk - w.trust_threshold) * w.trust_multiplier

    def execution_friction_penalty(self, action: Action) -> float:
        w = self.weights
        steps = min(len(action.steps or []), w.friction_max_steps)
        penalty = steps * w.friction_per_step
        if action.complexity:
            penalty += action.complexity * w.complexity_multiplier
        return penalty

    def time_criticality_boost(self, days_until_deadline: float | None) -> float:
        w = self.weights
        if days_until_deadline is None or days_until_deadline <= 0:
            return 0.0
        if days_until_deadline > w.urgency_window_days:
            return 0.0
        return w.urgency_max_boost * math.exp(-days_until_deadline / w.urgency_decay_days)

    def score(self, action: Action) -> tuple[float, RankComponents]:
        if action.impact is None:
            raise ValueError(f"Action {action.action_id} has no impact model")
        components = RankComponents(
            expected_net_impact=self.expected_net_impact(action.impact),
            trust_penalty=self.trust_penalty(self.trust_risk(action)),
            execution_friction_penalty=self.execution_friction_penalty(action),
            time_criticality_boost=self.time_criticality_boost(action.days_until_deadline),
        )
        rank_score = (
            components.expected_net_impact
            - components.trust_penalty
            - components.execution_friction_penalty
            + components.time_criticality_boost
        )
        return rank_score, components

    def rank(self, actions: list[Action]) -> list[RankedAction]:
        """
        Rank actions by rank_score.

        Sort is descending by score; scores within tie_epsilon of each other
        order by ascending action_id. Ranks are 1..N by final position.
        Actions without an impact model are skipped.
        """
        scored = []
        for action in actions:
            if action.impact is None:
                logger.warning(f"Skipping unscored action {action.action_id}")
                continue
            rank_score, components = self.score(action)
            scored.append(RankedAction(action, rank_score, components))

        ordered = sorted(scored, key=lambda r: (-r.rank_score, r.action_id))
        # Re-walk so near-equal scores fall back to id order
        epsilon = self.weights.tie_epsilon
        for i in range(1, len(ordered)):
            j = i
            while j > 0:
                prev, cur = ordered[j - 1], ordered[j]
                if abs(prev.rank_score - cur.rank_score) < epsilon and cur.action_id < prev.action_id:
                    ordered[j - 1], ordered[j] = cur, prev
                    j -= 1
                else:
                    break

        for index, ranked in enumerate(ordered):
            ranked.rank = index + 1
        return ordered


# =============================================================================
# MODULE-LEVEL API
# =============================================================================

_default_ranker = ActionRanker()


def time_penalty(days: float) -> float:
    return _default_ranker.time_penalty(days)


def compute_expected_net_impact(impact: ImpactModel) -> float:
    return _default_ranker.expected_net_impact(impact)


def compute_rank_score(action: Action) -> tuple[float, RankComponents]:
    return _default_ranker.score(action)


def rank_actions(actions: list[Action], weights: RankingWeights | None = None) -> list[RankedAction]:
    ranker = ActionRanker(weights) if weights else _default_ranker
    return ranker.rank(actions)


def get_top_actions(ranked: list[RankedAction], n: int = 5) -> list[RankedAction]:
    return ranked[:n]


def validate_ranking(ranked: list[RankedAction], epsilon: float = 0.0001) -> list[str]:
    """Check scores are numeric, order is non-increasing and ranks are 1..N."""
    errors = []
    for r in ranked:
        if not isinstance(r.rank_score, (int, float)) or math.isnan(r.rank_score):
            errors.append(f"Action {r.action_id}: missing or invalid rank_score")
        if not isinstance(r.rank, int) or r.rank < 1:
            errors.append(f"Action {r.action_id}: missing or invalid rank")

    for i in range(1, len(ranked)):
        if ranked[i].rank_score > ranked[i - 1].rank_score + epsilon:
            errors.append(f"Actions not sorted by rank_score at position {i}")

    for i, r in enumerate(ranked):
        if r.rank != i + 1:
            errors.append(f"Rank sequence broken at position {i}")
    return errors


def verify_determinism(
    actions: list[Action], weights: RankingWeights | None = None, epsilon: float = 0.0001
) -> bool:
    first = rank_actions(actions, weights)
    second = rank_actions(actions, weights)
    if len(first) != len(second):
        return False
    for a, b in zip(first, second):
        if a.action_id != b.action_id:
            return False
        if abs(a.rank_score - b.rank_score) > epsilon:
            return False
    return True
