"""
Tests for issue ripple scoring.
"""

import pytest

from backbone.predict.issues import Issue, IssueType, Severity
from backbone.predict.ripple import (
    DEFAULT_RIPPLE,
    RIPPLE_RULES,
    calculate_aggregate_ripple,
    calculate_issue_ripple,
)
from tests.fixtures.portfolio import NOW


def _issue(issue_type: IssueType, issue_id: str | None = None) -> Issue:
    return Issue(
        issue_id=issue_id or f"{issue_type}-acme",
        issue_type=issue_type,
        entity_ref={"type": "company", "id": "acme"},
        severity=Severity.HIGH,
        evidence={},
        detected_at=NOW,
    )


class TestIssueRipple:
    def test_rule_lookup(self):
        ripple = calculate_issue_ripple(_issue(IssueType.RUNWAY_CRITICAL))
        assert ripple.ripple_score == 0.9
        assert ripple.ripple_explain[0] == "High probability of insolvency within 6 months"

    def test_unlisted_type_gets_default(self):
        ripple = calculate_issue_ripple(_issue(IssueType.GOAL_NO_HISTORY))
        assert ripple.ripple_score == DEFAULT_RIPPLE.ripple_score == 0.1

    def test_scores_in_unit_range(self):
        assert all(0 <= rule.ripple_score <= 1 for rule in RIPPLE_RULES.values())


class TestAggregateRipple:
    def test_no_issues(self):
        result = calculate_aggregate_ripple([])
        assert result.ripple_score == 0.0
        assert result.ripple_explain == ["No issues detected"]
        assert result.risk_level == "LOW"

    def test_diminishing_weights_capped(self):
        issues = [
            _issue(IssueType.GOAL_NO_HISTORY),
            _issue(IssueType.PIPELINE_GAP),
            _issue(IssueType.RUNWAY_CRITICAL),
        ]
        result = calculate_aggregate_ripple(issues)
        # 0.9 + 0.5 / 2 + 0.1 / 4 exceeds the cap
        assert result.ripple_score == 1.0
        assert result.risk_level == "HIGH"
        assert [r.issue_type for r in result.by_issue] == ["RUNWAY_CRITICAL", "PIPELINE_GAP", "GOAL_NO_HISTORY"]
        assert len(result.ripple_explain) == 6

    def test_medium(self):
        issues = [_issue(IssueType.DEAL_STALE, "a"), _issue(IssueType.DEAL_STALE, "b")]
        result = calculate_aggregate_ripple(issues)
        assert result.ripple_score == pytest.approx(0.45)
        assert result.risk_level == "MEDIUM"
        assert result.ripple_explain == ["Investor interest may have cooled", "Momentum lost in process"]

    def test_insignificant_ripple_not_explained(self):
        result = calculate_aggregate_ripple([_issue(IssueType.DATA_STALE)])
        assert result.ripple_score == 0.2
        assert result.ripple_explain == []

    def test_for_issue(self):
        result = calculate_aggregate_ripple([_issue(IssueType.NO_PIPELINE, "np")])
        assert result.for_issue("np").ripple_score == 0.8
        assert result.for_issue("missing") is None
