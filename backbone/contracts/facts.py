"""
Fact Contracts: Pydantic Models for Raw Portfolio Facts.

Facts are the only inputs the engine accepts: timestamped observations
about companies, goals, deals, rounds, people and relationships. They are
immutable for the duration of a computation and never carry derived
values (see forbidden.py).

Wire format is camelCase (asOf, roundTarget, fromPersonId); snake_case
field names are accepted too. Unknown fields such as provenance tags are
kept but ignored. All timestamps are normalised to UTC.
"""

from datetime import datetime
from typing import Annotated

from pydantic import AfterValidator, BaseModel, ConfigDict, Field
from pydantic.alias_generators import to_camel

from backbone.dates import ensure_utc

UTCDateTime = Annotated[datetime, AfterValidator(ensure_utc)]


class Fact(BaseModel):
    """Base for every raw fact record."""

    model_config = ConfigDict(
        alias_generator=to_camel,
        populate_by_name=True,
        extra="allow",
        frozen=True,
    )


# =============================================================================
# GOALS
# =============================================================================


class HistoryPoint(Fact):
    """One snapshot of a goal's current value."""

    value: float
    as_of: UTCDateTime


class Goal(Fact):
    id: str
    company_id: str | None = None
    name: str = ""
    type: str = "custom"
    current: float | None = None
    target: float | None = None
    due: UTCDateTime | None = None
    status: str = "active"
    history: list[HistoryPoint] = Field(default_factory=list)

    @property
    def is_active(self) -> bool:
        return self.status == "active"


# =============================================================================
# FUNDRAISING
# =============================================================================


class Deal(Fact):
    id: str
    company_id: str | None = None
    investor: str = ""
    person_id: str | None = None
    status: str = "outreach"
    probability: float = Field(default=0.0, ge=0.0, le=100.0)
    amount: float = 0.0
    as_of: UTCDateTime | None = None
    round_id: str | None = None
    is_lead: bool = False
    hard_commit: float = 0.0

    @property
    def weighted_amount(self) -> float:
        return self.amount * self.probability / 100


class Round(Fact):
    id: str
    company_id: str | None = None
    stage: str = ""
    status: str = "active"
    target_amount: float = 0.0
    start_date: UTCDateTime | None = None
    target_close_date: UTCDateTime | None = None

    @property
    def is_active(self) -> bool:
        return self.status.lower() == "active"


# =============================================================================
# NETWORK
# =============================================================================


class Person(Fact):
    id: str
    name: str = ""
    org_type: str = "external"
    org_id: str | None = None
    company_id: str | None = None
    role: str = ""
    tags: list[str] = Field(default_factory=list)


class Relationship(Fact):
    """Undirected tie between two people, 0-100 strength."""

    id: str | None = None
    from_person_id: str
    to_person_id: str
    strength: float | None = Field(default=None, ge=0.0, le=100.0)
    last_touch_at: UTCDateTime | None = None
    intro_count: int = Field(default=0, ge=0)
    intro_success_count: int = Field(default=0, ge=0)

    @property
    def key(self) -> str:
        return self.id or f"{self.from_person_id}-{self.to_person_id}"

    def other(self, person_id: str) -> str | None:
        """The far end of this relationship as seen from person_id."""
        if person_id == self.from_person_id:
            return self.to_person_id
        if person_id == self.to_person_id:
            return self.from_person_id
        return None


class Investor(Fact):
    id: str
    person_id: str | None = None
    name: str = ""
    stage_focus: str = ""
    sector_focus: str = ""


class TeamMember(Fact):
    person_id: str
    name: str = ""
    role: str = ""
    company_id: str | None = None


# =============================================================================
# COMPANY
# =============================================================================


class Company(Fact):
    id: str
    name: str = ""
    cash: float | None = None
    burn: float | None = None
    as_of: UTCDateTime | None = None
    cash_as_of: UTCDateTime | None = None
    burn_as_of: UTCDateTime | None = None
    raising: bool = False
    round_target: float = 0.0
    stage: str = ""
    sector: str = ""
    is_portfolio: bool = True
    founder_person_ids: list[str] = Field(default_factory=list)
    goals: list[Goal] = Field(default_factory=list)
    deals: list[Deal] = Field(default_factory=list)
    rounds: list[Round] = Field(default_factory=list)

    @property
    def display_name(self) -> str:
        return self.name or self.id


class Dataset(Fact):
    """A validated snapshot of every fact collection."""

    companies: list[Company] = Field(default_factory=list)
    goals: list[Goal] = Field(default_factory=list)
    deals: list[Deal] = Field(default_factory=list)
    rounds: list[Round] = Field(default_factory=list)
    people: list[Person] = Field(default_factory=list)
    relationships: list[Relationship] = Field(default_factory=list)
    investors: list[Investor] = Field(default_factory=list)
    team: list[TeamMember] = Field(default_factory=list)
