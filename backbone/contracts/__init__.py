"""
Contracts: fact models and the raw-input gates in front of the engine.
"""

from .facts import (
    Company,
    Dataset,
    Deal,
    Goal,
    HistoryPoint,
    Investor,
    Person,
    Relationship,
    Round,
    TeamMember,
)
from .forbidden import FORBIDDEN_DERIVED_FIELDS, find_forbidden_fields, forbidden_field_errors
from .loader import assemble_companies, load_dataset

__all__ = [
    "Company",
    "Dataset",
    "Deal",
    "Goal",
    "HistoryPoint",
    "Investor",
    "Person",
    "Relationship",
    "Round",
    "TeamMember",
    "FORBIDDEN_DERIVED_FIELDS",
    "find_forbidden_fields",
    "forbidden_field_errors",
    "load_dataset",
    "assemble_companies",
]
