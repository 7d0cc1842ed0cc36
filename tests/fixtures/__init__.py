"""
Test fixtures for deterministic testing.

This module provides:
- portfolio: builders for raw fact records and validated fact models,
  all dated relative to the pinned reference time NOW
"""

from .portfolio import (
    NOW,
    company_record,
    deal_record,
    fundraise_company,
    goal_record,
    investor_network,
    iso,
    make_company,
    make_deal,
    make_goal,
    make_person,
    make_relationship,
    portfolio_payload,
)

__all__ = [
    "NOW",
    "company_record",
    "deal_record",
    "fundraise_company",
    "goal_record",
    "investor_network",
    "iso",
    "make_company",
    "make_deal",
    "make_goal",
    "make_person",
    "make_relationship",
    "portfolio_payload",
]
