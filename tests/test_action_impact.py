"""
Tests for impact model derivation.
"""

import pytest

from backbone.derive.goal_trajectory import derive_company_goal_trajectories
from backbone.derive.runway import derive_company_runway
from backbone.derive.trajectory import derive_company_trajectories
from backbone.predict.action_candidates import (
    action_from_goal,
    action_from_introduction,
    action_from_issue,
    actions_from_preissue,
)
from backbone.predict.action_impact import (
    ImpactContext,
    attach_company_impact_models,
    attach_impact_model,
    build_impact_model,
    derive_execution_probability,
    derive_upside_magnitude,
)
from backbone.predict.action_schema import ManualSource, create_action, validate_impact_model
from backbone.predict.intro_opportunity import generate_intro_opportunities
from backbone.predict.issues import IssueDetector, IssueType
from backbone.predict.preissues import PreIssueForecaster
from backbone.predict.ripple import calculate_aggregate_ripple
from tests.fixtures.portfolio import (
    NOW,
    fundraise_company,
    goal_record,
    investor_network,
    make_company,
    make_person,
    make_relationship,
)


def _issue_action(company, issue_type):
    runway = derive_company_runway(company, NOW)
    report = IssueDetector().detect(company, runway, derive_company_trajectories(company, NOW), NOW)
    issue = next(i for i in report.issues if i.issue_type == issue_type)
    return action_from_issue(issue, company, NOW), report


def _intro_action():
    company = fundraise_company()
    people, relationships, investors = investor_network()
    trajectories = derive_company_goal_trajectories(company, NOW)
    (opp,) = generate_intro_opportunities(company, people, relationships, investors, [], trajectories, NOW)
    return action_from_introduction(opp, company, NOW), opp


class TestIssueImpact:
    def test_runway_critical(self):
        company = make_company(cash=600_000, burn=150_000, goals=[goal_record(current=100)])
        action, report = _issue_action(company, IssueType.RUNWAY_CRITICAL)
        context = ImpactContext(company=company, ripple=calculate_aggregate_ripple(report.issues))
        impact = build_impact_model(action, context)
        assert impact.upside_magnitude == 85
        assert impact.probability_of_success == 0.3
        assert impact.execution_probability == 0.65
        assert impact.downside_magnitude == 50
        assert impact.time_to_impact_days == 36
        assert impact.effort_cost == 100
        assert impact.second_order_leverage == 72
        assert impact.explain == [
            "Critical issue resolution (RUNWAY_CRITICAL)",
            "Critical issue - complex resolution",
            "High complexity; Critical - high urgency",
            "High probability of insolvency within 6 months",
            "Effort wasted if unsuccessful (30d)",
        ]

    def test_data_fix(self):
        company = make_company(burn=None, goals=[goal_record(current=100)])
        action, _ = _issue_action(company, IssueType.DATA_MISSING)
        impact = build_impact_model(action, ImpactContext(company=company))
        assert impact.upside_magnitude == 55
        assert impact.probability_of_success == 1.0
        assert impact.execution_probability == 0.7
        assert impact.second_order_leverage == 24
        assert impact.explain == ["High-severity issue resolution", "Data fix - high success probability"]

    def test_ripple_falls_back_to_issue_rule(self):
        company = make_company(cash=600_000, burn=150_000, goals=[goal_record(current=100)])
        action, _ = _issue_action(company, IssueType.RUNWAY_CRITICAL)
        assert build_impact_model(action, ImpactContext()).second_order_leverage == 72


class TestPreIssueImpact:
    def test_runway_breach(self):
        company = make_company(cash=600_000, burn=150_000)
        preissue = PreIssueForecaster().detect_runway_breach(company, derive_company_runway(company, NOW), NOW)
        action = actions_from_preissue(preissue, NOW)[0]
        upside = derive_upside_magnitude(action, ImpactContext())
        assert upside.value == 51
        assert upside.explain == "Prevention of RUNWAY_BREACH (80% likely)"
        impact = build_impact_model(action, ImpactContext(company=company))
        assert impact.downside_magnitude == 15
        assert impact.second_order_leverage == 48

    def test_peripheral_entity_weighted_down(self):
        people = [make_person("a", "company", companyId="acme"), make_person("b")]
        rel = make_relationship("a", "b", strength=60, touched=-120)
        (preissue,) = PreIssueForecaster().forecast_dormant_connections([rel], people, [make_company()], NOW)
        action = actions_from_preissue(preissue, NOW)[0]
        upside = derive_upside_magnitude(action, ImpactContext())
        assert upside.value == 16
        assert upside.explain == "Prevention of CONNECTION_DORMANT [relationship] (47% likely)"

    def test_preissue_upside_capped_below_critical_issue(self):
        company = make_company(cash=100_000, burn=150_000)
        preissue = PreIssueForecaster().detect_runway_breach(company, derive_company_runway(company, NOW), NOW)
        for action in actions_from_preissue(preissue, NOW):
            assert derive_upside_magnitude(action, ImpactContext()).value <= 65


class TestGoalImpact:
    def test_goal_push(self):
        company = make_company(goals=[goal_record(current=20, due_in=45, history=[(-10, 20)])])
        trajectories = derive_company_goal_trajectories(company, NOW)
        action = action_from_goal(trajectories[0], company, NOW)
        impact = build_impact_model(action, ImpactContext(company=company, goal_trajectories=trajectories))
        assert impact.upside_magnitude == 74
        assert impact.probability_of_success == 0.56
        assert impact.downside_magnitude == 20
        assert impact.second_order_leverage == 50

    def test_weak_track_record_lowers_execution(self):
        company = make_company(goals=[goal_record(current=5, due_in=3)])
        trajectories = derive_company_goal_trajectories(company, NOW)
        action = action_from_goal(trajectories[0], company, NOW)
        execution = derive_execution_probability(action, ImpactContext(company=company, goal_trajectories=trajectories))
        assert execution.explain.startswith("Weak execution history")


class TestIntroductionImpact:
    def test_intro(self):
        action, opp = _intro_action()
        impact = build_impact_model(action, ImpactContext())
        assert impact.upside_magnitude == 70
        assert impact.probability_of_success == opp.probability == 0.8
        assert impact.execution_probability == 0.8
        assert impact.downside_magnitude == round(opp.trust_risk.score * 0.5)
        assert impact.time_to_impact_days == 14
        assert impact.effort_cost == 10
        assert impact.second_order_leverage == 30
        assert impact.explain[0] == "Timing: NOW - Immediate action recommended"
        assert validate_impact_model(impact) == []


class TestAttach:
    def test_manual_action(self):
        action = create_action({"type": "company", "id": "acme"}, "Call", ManualSource("check in"), None, [], NOW)
        attached = attach_impact_model(action, ImpactContext())
        assert attached.impact.upside_magnitude == 30
        assert attached.impact.explain == ["Manual action", "Standard probability"]
        assert action.impact is None

    def test_invalid_actions_reported_and_dropped(self):
        good = create_action({"type": "company", "id": "acme"}, "Call", ManualSource("a"), None, [], NOW)
        bad = create_action({"type": "planet", "id": "x"}, "Call", ManualSource("b"), None, [], NOW)
        attached, errors = attach_company_impact_models([good, bad], ImpactContext())
        assert [a.action_id for a in attached] == [good.action_id]
        assert errors == [f"{bad.action_id}: entity_ref.type must be one of: company, deal, round, relationship, person, goal, portfolio, other"]

    @pytest.mark.parametrize("cash", [100_000, 600_000, 5_000_000])
    def test_every_derived_impact_in_bounds(self, cash):
        company = make_company(cash=cash, burn=150_000, raising=True, roundTarget=5_000_000, goals=[goal_record(history=[(-1, 50)])])
        runway = derive_company_runway(company, NOW)
        report = IssueDetector().detect(company, runway, derive_company_trajectories(company, NOW), NOW)
        trajectories = derive_company_goal_trajectories(company, NOW)
        actions = [action_from_issue(i, company, NOW) for i in report.issues]
        for preissue in PreIssueForecaster().forecast(company, runway, trajectories, NOW):
            actions.extend(actions_from_preissue(preissue, NOW))
        context = ImpactContext(company, trajectories, calculate_aggregate_ripple(report.issues))
        attached, errors = attach_company_impact_models(actions, context)
        assert errors == []
        assert len(attached) == len(actions)
