"""
Portfolio builders.

Raw records use the camelCase wire format the engine receives; make_*
helpers validate them into fact models. Every date is expressed as an
offset in days from NOW.
"""

from datetime import UTC, datetime, timedelta

from backbone.contracts.facts import Company, Deal, Goal, Investor, Person, Relationship

NOW = datetime(2026, 3, 15, 12, 0, 0, tzinfo=UTC)


def iso(days: float = 0) -> str:
    """ISO timestamp `days` after NOW (negative for the past)."""
    return (NOW + timedelta(days=days)).isoformat().replace("+00:00", "Z")


def company_record(company_id: str = "acme", **overrides) -> dict:
    record = {
        "id": company_id,
        "name": company_id.title(),
        "cash": 2_400_000,
        "burn": 100_000,
        "asOf": iso(0),
        "raising": False,
        "roundTarget": 0,
        "stage": "Seed",
        "sector": "Fintech",
        "isPortfolio": True,
        "goals": [],
        "deals": [],
    }
    record.update(overrides)
    return record


def goal_record(
    goal_id: str = "g1",
    goal_type: str = "revenue",
    current: float = 50,
    target: float = 100,
    due_in: float = 60,
    history: list[tuple[float, float]] | None = None,
    **overrides,
) -> dict:
    """history is a list of (days from NOW, value)."""
    record = {
        "id": goal_id,
        "name": f"{goal_type.title()} goal",
        "type": goal_type,
        "current": current,
        "target": target,
        "due": iso(due_in),
        "status": "active",
        "history": [{"value": v, "asOf": iso(d)} for d, v in (history or [])],
    }
    record.update(overrides)
    return record


def deal_record(
    deal_id: str = "d1",
    investor: str = "Benchmark",
    amount: float = 1_000_000,
    probability: float = 50,
    status: str = "meeting",
    updated: float = -1,
    **overrides,
) -> dict:
    record = {
        "id": deal_id,
        "investor": investor,
        "amount": amount,
        "probability": probability,
        "status": status,
        "asOf": iso(updated),
    }
    record.update(overrides)
    return record


def make_company(company_id: str = "acme", goals=None, deals=None, **overrides) -> Company:
    record = company_record(company_id, **overrides)
    record["goals"] = [{**g, "companyId": company_id} for g in (goals or [])]
    record["deals"] = [{**d, "companyId": company_id} for d in (deals or [])]
    return Company.model_validate(record)


def make_goal(**kwargs) -> Goal:
    company_id = kwargs.pop("company_id", "acme")
    return Goal.model_validate({**goal_record(**kwargs), "companyId": company_id})


def make_deal(**kwargs) -> Deal:
    company_id = kwargs.pop("company_id", "acme")
    return Deal.model_validate({**deal_record(**kwargs), "companyId": company_id})


def make_person(person_id: str, org_type: str = "external", **overrides) -> Person:
    return Person.model_validate({"id": person_id, "name": person_id.title(), "orgType": org_type, **overrides})


def make_relationship(a: str, b: str, strength: float | None = 80, touched: float = -3, **overrides) -> Relationship:
    record = {
        "id": f"{a}-{b}",
        "fromPersonId": a,
        "toPersonId": b,
        "strength": strength,
        "lastTouchAt": iso(touched),
    }
    record.update(overrides)
    return Relationship.model_validate(record)


def portfolio_payload() -> dict:
    """
    A small portfolio exercising every stage of the pipeline.

    - acme: 4 months runway, raising 10M against a 3M weighted pipeline,
      one goal with a single history point
    - globex: healthy, goal already achieved
    - initech: tracked market company, not in the portfolio
    """
    return {
        "companies": [
            company_record(
                "acme",
                cash=600_000,
                burn=150_000,
                raising=True,
                roundTarget=10_000_000,
                founderPersonIds=["p-founder"],
                goals=[
                    goal_record("acme-rev", "revenue", current=20, target=100, due_in=45, history=[(-10, 20)]),
                ],
                deals=[
                    deal_record("acme-d1", "Sequoia", amount=4_000_000, probability=50),
                    deal_record("acme-d2", "Accel", amount=2_000_000, probability=50),
                ],
            ),
            company_record(
                "globex",
                cash=3_000_000,
                burn=100_000,
                goals=[goal_record("globex-rev", "revenue", current=100, target=100, due_in=30)],
            ),
            company_record("initech", isPortfolio=False),
        ],
        "people": [
            {"id": "p-founder", "name": "Ada Founder", "orgType": "company", "companyId": "acme", "role": "CEO"},
            {"id": "p-friend", "name": "Ben Friend", "orgType": "external", "companyId": "acme"},
        ],
        "relationships": [
            {
                "id": "r-dormant",
                "fromPersonId": "p-founder",
                "toPersonId": "p-friend",
                "strength": 60,
                "lastTouchAt": iso(-120),
            },
        ],
        "investors": [],
        "team": [],
    }


def fundraise_company(**overrides) -> Company:
    """Seed fintech company with a blocked 5M fundraise due in 30 days."""
    return make_company(
        stage="Seed",
        sector="Fintech",
        founderPersonIds=["p-founder"],
        goals=[goal_record("raise", "fundraise", current=0, target=5_000_000, due_in=30, name="Seed round")],
        **overrides,
    )


def investor_network(strength: float | None = 90, touched: float = -3, **rel_overrides):
    """(people, relationships, investors): the founder one hop from a matching seed investor."""
    people = [
        make_person("p-founder", "company", companyId="acme", role="CEO", name="Ada"),
        make_person("p-inv", "investor", orgId="fund-1", name="Ivy"),
    ]
    relationships = [make_relationship("p-founder", "p-inv", strength=strength, touched=touched, **rel_overrides)]
    investors = [Investor.model_validate({"id": "fund-1", "stageFocus": "Seed, Series A", "sectorFocus": "Fintech"})]
    return people, relationships, investors
