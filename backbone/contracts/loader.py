"""
Raw payload → validated Dataset.

Each record is validated on its own. A bad record is skipped and
reported; the rest of the dataset still loads so a partial computation
remains inspectable.
"""

import logging
from typing import Any

from pydantic import BaseModel, ValidationError

from backbone.contracts.facts import (
    Company,
    Dataset,
    Deal,
    Goal,
    Investor,
    Person,
    Relationship,
    Round,
    TeamMember,
)

logger = logging.getLogger(__name__)

# Top-level collections and the model each record must satisfy
COLLECTIONS: dict[str, type[BaseModel]] = {
    "goals": Goal,
    "deals": Deal,
    "rounds": Round,
    "people": Person,
    "relationships": Relationship,
    "investors": Investor,
    "team": TeamMember,
}

_NESTED = ("goals", "deals", "rounds")


def _describe(exc: ValidationError) -> str:
    parts = []
    for err in exc.errors()[:3]:
        loc = ".".join(str(p) for p in err.get("loc", ()))
        parts.append(f"{loc}: {err.get('msg')}" if loc else str(err.get("msg")))
    return "; ".join(parts)


def _label(collection: str, index: int, record: Any) -> str:
    record_id = record.get("id") if isinstance(record, dict) else None
    return f"{collection}[{index}]" + (f" ({record_id})" if record_id else "")


def _parse(model: type[BaseModel], collection: str, index: int, record: Any, errors: list[str]):
    if not isinstance(record, dict):
        errors.append(f"{_label(collection, index, record)}: expected an object")
        return None
    try:
        return model.model_validate(record)
    except ValidationError as e:
        errors.append(f"{_label(collection, index, record)}: {_describe(e)}")
        return None


def _parse_company(index: int, record: Any, errors: list[str]) -> Company | None:
    if not isinstance(record, dict):
        errors.append(f"{_label('companies', index, record)}: expected an object")
        return None

    flat = {k: v for k, v in record.items() if k not in _NESTED}
    company = _parse(Company, "companies", index, flat, errors)
    if company is None:
        return None

    nested: dict[str, list] = {}
    for key, model in (("goals", Goal), ("deals", Deal), ("rounds", Round)):
        items = record.get(key) or []
        parsed = []
        for j, item in enumerate(items):
            if isinstance(item, dict) and "companyId" not in item and "company_id" not in item:
                item = {**item, "companyId": company.id}
            fact = _parse(model, f"companies[{index}].{key}", j, item, errors)
            if fact is not None:
                parsed.append(fact)
        nested[key] = parsed
    return company.model_copy(update=nested)


def load_dataset(raw: dict | None) -> tuple[Dataset, list[str]]:
    """
    Validate a raw payload record by record.

    Returns:
        (dataset, errors) where errors names every skipped record.
    """
    errors: list[str] = []
    if raw is None:
        return Dataset(), errors
    if not isinstance(raw, dict):
        return Dataset(), ["Raw data must be an object"]

    companies = []
    for i, record in enumerate(raw.get("companies") or []):
        company = _parse_company(i, record, errors)
        if company is not None:
            companies.append(company)

    collections: dict[str, list] = {"companies": companies}
    for name, model in COLLECTIONS.items():
        parsed = []
        for i, record in enumerate(raw.get(name) or []):
            fact = _parse(model, name, i, record, errors)
            if fact is not None:
                parsed.append(fact)
        collections[name] = parsed

    if errors:
        logger.warning(f"Skipped {len(errors)} invalid fact records")
    return Dataset(**collections), errors


def _merge(nested: list, top_level: list) -> list:
    """Nested records first, then top-level ones; first id wins."""
    seen: set[str] = set()
    merged = []
    for fact in [*nested, *top_level]:
        if fact.id in seen:
            continue
        seen.add(fact.id)
        merged.append(fact)
    return merged


def assemble_companies(dataset: Dataset) -> list[Company]:
    """Attach top-level goals, deals and rounds to their companies."""
    by_company: dict[str, dict[str, list]] = {}
    for key in _NESTED:
        for fact in getattr(dataset, key):
            if fact.company_id:
                by_company.setdefault(fact.company_id, {k: [] for k in _NESTED})[key].append(fact)

    assembled = []
    for company in dataset.companies:
        extra = by_company.get(company.id)
        if not extra:
            assembled.append(company)
            continue
        assembled.append(
            company.model_copy(
                update={key: _merge(getattr(company, key), extra[key]) for key in _NESTED}
            )
        )
    return assembled
