"""
Company health band, derived from runway alone.

RED below the critical runway threshold, YELLOW below the warning
threshold, GREEN otherwise. Unknown runway stays GREEN with low
confidence; the missing data surfaces as a DATA_MISSING issue instead.
"""

from dataclasses import dataclass, field
from enum import StrEnum

from backbone.config import IssueThresholds
from backbone.derive.runway import RunwayResult


class HealthBand(StrEnum):
    GREEN = "GREEN"
    YELLOW = "YELLOW"
    RED = "RED"


@dataclass
class HealthResult:
    band: HealthBand
    confidence: float
    signals: list[str] = field(default_factory=list)

    def to_dict(self) -> dict:
        return {
            "band": str(self.band),
            "confidence": round(self.confidence, 3),
            "signals": list(self.signals),
        }


def derive_health(runway: RunwayResult, thresholds: IssueThresholds | None = None) -> HealthResult:
    thresholds = thresholds or IssueThresholds()

    if runway.value is None:
        return HealthResult(HealthBand.GREEN, 0.3, ["Runway unknown"])
    if not runway.is_finite:
        return HealthResult(HealthBand.GREEN, runway.confidence, ["Runway not constrained by burn"])

    months = runway.value
    if months < thresholds.runway_critical_months:
        signal = f"Runway {months} months < {thresholds.runway_critical_months:g} month critical threshold"
        return HealthResult(HealthBand.RED, runway.confidence, [signal])
    if months < thresholds.runway_warning_months:
        signal = f"Runway {months} months < {thresholds.runway_warning_months:g} month warning threshold"
        return HealthResult(HealthBand.YELLOW, runway.confidence, [signal])
    return HealthResult(HealthBand.GREEN, runway.confidence, [f"Runway {months} months"])
