"""
Tests for fact contracts, the dataset loader and the derived-field gate.
"""

from datetime import UTC, datetime

import pytest
from pydantic import ValidationError

from backbone.contracts.facts import Company, Deal, Goal, Relationship
from backbone.contracts.forbidden import find_forbidden_fields, forbidden_field_errors
from backbone.contracts.loader import assemble_companies, load_dataset
from tests.fixtures.portfolio import company_record, deal_record, goal_record, portfolio_payload


class TestFactModels:
    def test_camel_case_aliases(self):
        company = Company.model_validate(company_record(roundTarget=5_000_000, raising=True))
        assert company.round_target == 5_000_000
        assert company.raising is True

    def test_snake_case_accepted(self):
        deal = Deal.model_validate({"id": "d", "hard_commit": 100, "is_lead": True})
        assert deal.hard_commit == 100
        assert deal.is_lead

    def test_timestamps_normalised_to_utc(self):
        goal = Goal.model_validate({"id": "g", "due": "2026-04-01T02:00:00+02:00"})
        assert goal.due == datetime(2026, 4, 1, 0, 0, tzinfo=UTC)

    def test_unknown_fields_kept(self):
        deal = Deal.model_validate({"id": "d", "source": "crm"})
        assert deal.model_extra == {"source": "crm"}

    def test_facts_are_frozen(self):
        deal = Deal.model_validate({"id": "d"})
        with pytest.raises(ValidationError):
            deal.amount = 5  # type: ignore[misc]

    def test_probability_bounds(self):
        with pytest.raises(ValidationError):
            Deal.model_validate({"id": "d", "probability": 120})

    def test_weighted_amount(self):
        deal = Deal.model_validate(deal_record(amount=4_000_000, probability=25))
        assert deal.weighted_amount == 1_000_000

    def test_relationship_key_and_other(self):
        rel = Relationship.model_validate({"fromPersonId": "a", "toPersonId": "b"})
        assert rel.key == "a-b"
        assert rel.other("a") == "b"
        assert rel.other("b") == "a"
        assert rel.other("c") is None

    def test_company_defaults(self):
        company = Company.model_validate({"id": "x"})
        assert company.is_portfolio is True
        assert company.display_name == "x"


class TestLoadDataset:
    def test_none_is_empty(self):
        dataset, errors = load_dataset(None)
        assert dataset.companies == []
        assert errors == []

    def test_non_object(self):
        _, errors = load_dataset([1, 2])  # type: ignore[arg-type]
        assert errors == ["Raw data must be an object"]

    def test_portfolio_payload_loads(self):
        dataset, errors = load_dataset(portfolio_payload())
        assert errors == []
        assert [c.id for c in dataset.companies] == ["acme", "globex", "initech"]
        assert len(dataset.people) == 2
        assert dataset.relationships[0].key == "r-dormant"

    def test_nested_records_get_company_id(self):
        dataset, _ = load_dataset(portfolio_payload())
        acme = dataset.companies[0]
        assert {d.company_id for d in acme.deals} == {"acme"}
        assert acme.goals[0].company_id == "acme"

    def test_bad_record_skipped_and_reported(self):
        raw = {"companies": [company_record("ok"), {"name": "no id"}, "junk"]}
        dataset, errors = load_dataset(raw)
        assert [c.id for c in dataset.companies] == ["ok"]
        assert len(errors) == 2
        assert errors[0].startswith("companies[1]: id")
        assert errors[1] == "companies[2]: expected an object"

    def test_bad_nested_record_reported_with_path(self):
        raw = {"companies": [company_record(deals=[deal_record(probability=300)])]}
        dataset, errors = load_dataset(raw)
        assert dataset.companies[0].deals == []
        assert errors[0].startswith("companies[0].deals[0] (d1): probability")


class TestAssembleCompanies:
    def test_top_level_goals_attached(self):
        raw = {
            "companies": [company_record("acme"), company_record("globex")],
            "goals": [{**goal_record("top"), "companyId": "globex"}],
        }
        dataset, _ = load_dataset(raw)
        companies = assemble_companies(dataset)
        assert companies[0].goals == []
        assert [g.id for g in companies[1].goals] == ["top"]

    def test_nested_wins_on_duplicate_id(self):
        raw = {
            "companies": [company_record("acme", goals=[goal_record("g1", current=10)])],
            "goals": [{**goal_record("g1", current=99), "companyId": "acme"}],
        }
        dataset, _ = load_dataset(raw)
        (company,) = assemble_companies(dataset)
        assert len(company.goals) == 1
        assert company.goals[0].current == 10


class TestForbiddenFields:
    def test_clean_payload(self):
        assert find_forbidden_fields(portfolio_payload()) == []

    def test_nested_paths(self):
        raw = {
            "companies": [
                company_record("a", runway=4),
                company_record("b", goals=[goal_record(onTrack=True)]),
            ]
        }
        assert find_forbidden_fields(raw) == ["companies[0].runway", "companies[1].goals[0].onTrack"]

    def test_snake_case_variants(self):
        assert find_forbidden_fields({"rank_score": 1}) == ["rank_score"]

    def test_error_messages(self):
        assert forbidden_field_errors({"priority": 1}) == ["Forbidden derived field in raw data: priority"]
