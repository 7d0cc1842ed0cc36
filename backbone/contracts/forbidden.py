"""
Forbidden derived-field gate.

Raw facts must never carry values the engine derives. A fact store that
round-trips a computed runway or rank score would feed stale derived
numbers back into the next computation, so every raw payload is scanned
before it is parsed and each hit is reported as a validation error.
"""

from typing import Any

from pydantic.alias_generators import to_snake

_DERIVED_FIELDS_CAMEL = (
    "runway",
    "runwayMonths",
    "health",
    "healthBand",
    "healthSignals",
    "priority",
    "priorities",
    "impact",
    "impactModel",
    "urgency",
    "risk",
    "score",
    "tier",
    "band",
    "progressPct",
    "coverage",
    "expectedValue",
    "conversionProb",
    "onTrack",
    "projectedDate",
    "velocity",
    "issues",
    "preissues",
    "preIssues",
    "actions",
    "actionId",
    "rippleScore",
    "rippleEffect",
    "goalTrajectory",
    "probabilityOfHit",
    "explain",
    "expectedNetImpact",
    "upsideMagnitude",
    "probabilityOfSuccess",
    "executionProbability",
    "downsideMagnitude",
    "timeToImpactDays",
    "effortCost",
    "secondOrderLeverage",
    "rankScore",
    "rankComponents",
    "rank",
    "trustRisk",
    "trustRiskScore",
)

FORBIDDEN_DERIVED_FIELDS: frozenset[str] = frozenset(
    _DERIVED_FIELDS_CAMEL + tuple(to_snake(name) for name in _DERIVED_FIELDS_CAMEL)
)


def find_forbidden_fields(raw: Any, path: str = "") -> list[str]:
    """
    Deep-scan a raw payload for derived field names.

    Returns dotted paths of every offending key, e.g.
    ["companies[0].runway", "companies[1].goals[0].onTrack"].
    """
    hits: list[str] = []
    if isinstance(raw, dict):
        for key, value in raw.items():
            child = f"{path}.{key}" if path else str(key)
            if key in FORBIDDEN_DERIVED_FIELDS:
                hits.append(child)
            hits.extend(find_forbidden_fields(value, child))
    elif isinstance(raw, list):
        for i, item in enumerate(raw):
            hits.extend(find_forbidden_fields(item, f"{path}[{i}]"))
    return hits


def forbidden_field_errors(raw: Any) -> list[str]:
    return [f"Forbidden derived field in raw data: {p}" for p in find_forbidden_fields(raw)]
