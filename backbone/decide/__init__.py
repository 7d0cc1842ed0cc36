"""
Decision layer: the single canonical ranking surface.
"""

from .ranking import (
    ActionRanker,
    RankComponents,
    RankedAction,
    compute_expected_net_impact,
    compute_rank_score,
    get_top_actions,
    rank_actions,
    time_penalty,
    validate_ranking,
    verify_determinism,
)

__all__ = [
    "ActionRanker",
    "RankComponents",
    "RankedAction",
    "compute_expected_net_impact",
    "compute_rank_score",
    "get_top_actions",
    "rank_actions",
    "time_penalty",
    "validate_ranking",
    "verify_determinism",
]
