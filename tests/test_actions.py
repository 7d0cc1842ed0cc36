"""
Tests for the action schema, resolution library and candidate generation.
"""

import math
from dataclasses import replace

import pytest

from backbone.derive.goal_trajectory import derive_company_goal_trajectories
from backbone.derive.runway import derive_company_runway
from backbone.derive.trajectory import derive_company_trajectories
from backbone.predict.action_candidates import (
    action_from_goal,
    action_from_introduction,
    action_from_issue,
    actions_from_preissue,
    generate_company_action_candidates,
    preissue_context_prefix,
)
from backbone.predict.action_schema import (
    ImpactModel,
    ImpactValidationError,
    IssueSource,
    ManualSource,
    SourceType,
    create_action,
    ensure_valid_impact,
    generate_action_id,
    validate_action,
    validate_entity_ref,
    validate_impact_model,
)
from backbone.predict.intro_opportunity import generate_intro_opportunities
from backbone.predict.issues import IssueDetector, IssueType
from backbone.predict.preissues import PreIssueForecaster
from backbone.predict.resolutions import (
    NETWORK_INTRO,
    get_any_resolution,
    get_goal_resolution,
    get_resolution,
    has_resolution,
)
from tests.fixtures.portfolio import (
    NOW,
    deal_record,
    fundraise_company,
    goal_record,
    investor_network,
    make_company,
    make_person,
    make_relationship,
)


def _impact(**overrides) -> ImpactModel:
    values = {
        "upside_magnitude": 60,
        "probability_of_success": 0.5,
        "execution_probability": 0.8,
        "downside_magnitude": 20,
        "time_to_impact_days": 14,
        "effort_cost": 10,
        "second_order_leverage": 5,
        "explain": ["Why it matters", "Why it works"],
    }
    values.update(overrides)
    return ImpactModel(**values)


def _issues(company):
    runway = derive_company_runway(company, NOW)
    return IssueDetector().detect(company, runway, derive_company_trajectories(company, NOW), NOW).issues


# =============================================================================
# RESOLUTIONS
# =============================================================================


class TestResolutions:
    def test_every_issue_type_has_resolution(self):
        assert all(has_resolution(t) for t in IssueType)

    def test_runway_critical(self):
        resolution = get_resolution(IssueType.RUNWAY_CRITICAL)
        assert resolution.resolution_id == "RESOLVE_RUNWAY_CRITICAL"
        assert resolution.default_effort == 30
        assert len(resolution.action_steps) == 4

    def test_goal_resolution_fallback(self):
        assert get_goal_resolution("fundraise").resolution_id == "FUNDRAISE_CLOSE"
        assert get_goal_resolution("custom").resolution_id == "REVENUE_PUSH"

    def test_any_resolution(self):
        assert get_any_resolution("NETWORK_INTRO") is NETWORK_INTRO
        assert get_any_resolution("REDUCE_BURN").default_effort == 7
        assert get_any_resolution("NOPE") is None


# =============================================================================
# SCHEMA
# =============================================================================


class TestActionSchema:
    def _manual(self, note="Check in with the founders"):
        return create_action({"type": "company", "id": "acme"}, "Call", ManualSource(note), None, [], NOW)

    def test_action_id_is_content_addressed(self):
        first, second = self._manual(), self._manual()
        assert first.action_id == second.action_id
        assert first.action_id.startswith("action-")
        assert len(first.action_id) == len("action-") + 12

    def test_action_id_depends_on_source(self):
        assert self._manual("a").action_id != self._manual("b").action_id

    def test_action_id_ignores_source_order(self):
        ref = {"type": "company", "id": "acme"}
        a, b = ManualSource("a"), ManualSource("b")
        assert generate_action_id(ref, "X", [a, b]) == generate_action_id(ref, "X", [b, a])

    def test_single_source(self):
        action = self._manual()
        assert action.source_type == SourceType.MANUAL
        assert action.company_id == "acme"

    def test_validate_requires_impact(self):
        action = self._manual()
        assert validate_action(action) == ["impact is required"]
        assert validate_action(action, require_impact=False) == []
        assert validate_action(replace(action, impact=_impact())) == []

    def test_validate_manual_note(self):
        assert "MANUAL source requires note" in validate_action(self._manual(""), require_impact=False)

    def test_validate_entity_ref(self):
        assert validate_entity_ref({"type": "company", "id": "acme"}) == []
        assert len(validate_entity_ref({"type": "planet", "id": ""})) == 2
        assert validate_entity_ref("acme") == ["entity_ref must be a mapping"]

    def test_multiple_sources_rejected(self):
        action = self._manual()
        doubled = replace(action, sources=(action.source, ManualSource("x")))
        assert validate_action(doubled, require_impact=False) == ["Action must have exactly one source, has 2"]


class TestImpactValidation:
    def test_valid(self):
        assert validate_impact_model(_impact()) == []

    @pytest.mark.parametrize(
        ("field", "value"),
        [
            ("upside_magnitude", 101),
            ("probability_of_success", 1.5),
            ("execution_probability", -0.1),
            ("downside_magnitude", -1),
            ("time_to_impact_days", -1),
            ("effort_cost", 150),
            ("second_order_leverage", 100.5),
        ],
    )
    def test_out_of_bounds_is_error(self, field, value):
        (error,) = validate_impact_model(_impact(**{field: value}))
        assert error.startswith(f"impact.{field} must be in")

    def test_infinite_time_allowed(self):
        assert validate_impact_model(_impact(time_to_impact_days=math.inf)) == []

    def test_nan_rejected(self):
        assert validate_impact_model(_impact(effort_cost=float("nan"))) == ["impact.effort_cost must be a number"]

    @pytest.mark.parametrize(
        ("explain", "message"),
        [
            ([], "impact.explain must be a non-empty list"),
            (["one"], "impact.explain must have at least 2 items"),
            (["x"] * 7, "impact.explain must have at most 6 items"),
            (["ok", "  "], "impact.explain items must be non-empty strings"),
        ],
    )
    def test_explain_rules(self, explain, message):
        assert validate_impact_model(_impact(explain=explain)) == [message]

    def test_combined_probability(self):
        assert _impact().combined_probability == pytest.approx(0.4)

    def test_ensure_valid_raises(self):
        with pytest.raises(ImpactValidationError, match="a1: impact.upside_magnitude"):
            ensure_valid_impact(_impact(upside_magnitude=500), "a1")


# =============================================================================
# CANDIDATES
# =============================================================================


class TestCandidates:
    def test_issue_action(self):
        company = make_company(cash=600_000, burn=150_000, goals=[goal_record(current=100)])
        (issue,) = _issues(company)
        action = action_from_issue(issue, company, NOW)
        assert action.title == "Acme: Emergency runway extension"
        assert action.resolution_id == "RESOLVE_RUNWAY_CRITICAL"
        assert action.entity_ref == {"type": "company", "id": "acme", "name": "Acme"}
        assert isinstance(action.source, IssueSource)
        assert action.impact is None

    def test_preissue_actions_one_per_resolution(self):
        company = make_company(cash=600_000, burn=150_000)
        preissue = PreIssueForecaster().detect_runway_breach(company, derive_company_runway(company, NOW), NOW)
        actions = actions_from_preissue(preissue, NOW)
        assert [a.resolution_id for a in actions] == ["REDUCE_BURN", "ACCELERATE_FUNDRAISE", "BRIDGE_ROUND"]
        assert actions[0].title == "Acme: Reduce burn rate"
        assert all(a.days_until_deadline == 30 for a in actions)
        assert len({a.action_id for a in actions}) == 3

    def test_preissue_title_prefix(self):
        company = make_company(deals=[deal_record(investor="Sequoia", updated=-20)])
        (preissue,) = PreIssueForecaster().detect_deal_stalls(company, NOW)
        assert preissue_context_prefix(preissue) == "Sequoia"
        assert actions_from_preissue(preissue, NOW)[0].title == "Acme Sequoia: Follow up with investor"

    def test_dormant_connection_prefix(self):
        people = [make_person("a", "company", companyId="acme", name="Ada"), make_person("b", name="Ben")]
        rel = make_relationship("a", "b", touched=-100)
        (preissue,) = PreIssueForecaster().forecast_dormant_connections([rel], people, [make_company()], NOW)
        action = actions_from_preissue(preissue, NOW)[0]
        assert action.title == "Acme Ada ↔ Ben: Send relationship touchpoint"
        assert action.entity_ref["type"] == "relationship"
        assert action.company_id == "acme"

    def test_goal_action(self):
        company = make_company(goals=[goal_record(current=20, due_in=45, history=[(-10, 20)])])
        (trajectory,) = derive_company_goal_trajectories(company, NOW)
        action = action_from_goal(trajectory, company, NOW)
        assert action.title == "Acme: Push revenue acceleration for Revenue goal"
        assert action.source_type == SourceType.GOAL
        assert action.days_until_deadline == 45

    def test_comfortable_goal_has_no_action(self):
        company = make_company(goals=[goal_record(current=100)])
        (trajectory,) = derive_company_goal_trajectories(company, NOW)
        assert action_from_goal(trajectory, company, NOW) is None

    def test_overdue_goal_has_no_action(self):
        company = make_company(goals=[goal_record(due_in=-3)])
        (trajectory,) = derive_company_goal_trajectories(company, NOW)
        assert action_from_goal(trajectory, company, NOW) is None

    def test_introduction_action(self):
        company = fundraise_company()
        people, relationships, investors = investor_network()
        trajectories = derive_company_goal_trajectories(company, NOW)
        (opp,) = generate_intro_opportunities(company, people, relationships, investors, [], trajectories, NOW)
        action = action_from_introduction(opp, company, NOW)
        assert action.title == "Acme: Intro to Ivy"
        assert action.resolution_id == "NETWORK_INTRO"
        assert action.steps == ["Request introduction from Ada", "Brief Ada on Seed round", "Follow up within 48 hours"]
        assert action.days_until_deadline == 30

    def test_company_candidates_deduplicated(self):
        company = make_company(cash=600_000, burn=150_000, goals=[goal_record(current=20, history=[(-1, 20)])])
        issues = _issues(company)
        trajectories = derive_company_goal_trajectories(company, NOW)
        preissues = PreIssueForecaster().forecast(company, derive_company_runway(company, NOW), trajectories, NOW)
        candidates = generate_company_action_candidates(company, issues + issues, preissues, trajectories, [], NOW)
        ids = [a.action_id for a in candidates]
        assert len(ids) == len(set(ids))
        assert [a.source_type for a in candidates][:2] == [SourceType.ISSUE, SourceType.ISSUE]
        assert SourceType.PREISSUE in {a.source_type for a in candidates}
        assert candidates[-1].source_type == SourceType.GOAL
