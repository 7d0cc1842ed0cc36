"""
Runway derivation: (cash, burn, as-of timestamps, now) → months of runway.

Never stored. Stale inputs lower confidence rather than the value.
"""

import math
from dataclasses import dataclass, field
from datetime import datetime

from backbone.dates import days_between

# Inputs older than this are fully stale
MAX_STALE_DAYS = 30


@dataclass
class RunwayResult:
    value: float | None
    confidence: float
    inputs_used: list[str] = field(default_factory=list)
    inputs_missing: list[str] = field(default_factory=list)
    staleness_penalty: float = 0.0
    explain: str = ""

    @property
    def is_known(self) -> bool:
        return self.value is not None

    @property
    def is_finite(self) -> bool:
        return self.value is not None and math.isfinite(self.value)

    def to_dict(self) -> dict:
        value = self.value
        if value is not None and math.isinf(value):
            value = "Infinity"
        return {
            "value": value,
            "confidence": round(self.confidence, 3),
            "inputs_used": list(self.inputs_used),
            "inputs_missing": list(self.inputs_missing),
            "staleness_penalty": round(self.staleness_penalty, 3),
            "explain": self.explain,
        }


def _staleness(as_of: datetime | None, now: datetime) -> float:
    if as_of is None:
        return 0.0
    return min(days_between(as_of, now) / MAX_STALE_DAYS, 1.0)


def derive_runway(
    cash: float | None,
    burn: float | None,
    cash_as_of: datetime | None,
    burn_as_of: datetime | None,
    now: datetime,
) -> RunwayResult:
    """
    Compute runway in months.

    Missing cash or burn yields value None with zero confidence; a zero or
    negative burn yields infinite runway; negative cash yields zero.
    """
    inputs_used = []
    inputs_missing = []
    for name, value in (("cash", cash), ("burn", burn)):
        (inputs_missing if value is None else inputs_used).append(name)

    staleness = max(0.0, _staleness(cash_as_of, now), _staleness(burn_as_of, now))

    if inputs_missing:
        return RunwayResult(
            value=None,
            confidence=0.0,
            inputs_used=inputs_used,
            inputs_missing=inputs_missing,
            staleness_penalty=staleness,
            explain=f"Cannot compute runway: missing {', '.join(inputs_missing)}",
        )

    if burn <= 0:
        return RunwayResult(
            value=math.inf,
            confidence=0.5,
            inputs_used=inputs_used,
            staleness_penalty=staleness,
            explain="Infinite runway (burn is zero or negative)",
        )

    if cash < 0:
        return RunwayResult(
            value=0.0,
            confidence=0.9,
            inputs_used=inputs_used,
            staleness_penalty=staleness,
            explain="Zero runway (cash is negative)",
        )

    months = cash / burn
    return RunwayResult(
        value=round(months, 1),
        confidence=max(0.0, 1 - staleness * 0.5),
        inputs_used=inputs_used,
        staleness_penalty=staleness,
        explain=f"{round(months)} months runway at current burn rate",
    )


def derive_company_runway(company, now: datetime) -> RunwayResult:
    """Runway for a Company fact; per-field timestamps fall back to as_of."""
    return derive_runway(
        company.cash,
        company.burn,
        company.cash_as_of or company.as_of,
        company.burn_as_of or company.as_of,
        now,
    )
