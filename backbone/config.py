"""
Configuration for the Backbone decision engine.

Every threshold and weight the pipeline uses lives in an immutable table
here. Components take their table at construction, so a test or a
deployment can override a single number without touching module state:

    detector = IssueDetector(IssueThresholds(runway_critical_months=4))

Tables can also be overridden from YAML:

    issues:
      runway_critical_months: 4
    ranking:
      urgency_max_boost: 10

Override the YAML location via BACKBONE_CONFIG.
"""

import logging
import os
from dataclasses import dataclass, field, fields, replace
from pathlib import Path
from types import MappingProxyType
from collections.abc import Mapping
from typing import Any

import yaml

logger = logging.getLogger(__name__)

ENGINE_VERSION: str = "9.1.0"
"""Version string stamped into every computation's meta block."""

CONFIG_PATH_ENV: str = "BACKBONE_CONFIG"
"""Environment variable naming a YAML override file."""


class ConfigError(ValueError):
    """Raised when a configuration file has unknown keys or bad values."""

    pass


def _frozen(mapping: dict) -> Mapping:
    return MappingProxyType(dict(mapping))


# ============================================================
# Issue detection
# ============================================================


@dataclass(frozen=True)
class IssueThresholds:
    """Current-state gap thresholds."""

    runway_critical_months: float = 6
    runway_warning_months: float = 12
    data_stale_days: float = 14
    deal_stale_days: float = 7
    goal_deadline_buffer_days: float = 7
    pipeline_coverage_min: float = 0.5
    deal_at_risk_probability: float = 50


# ============================================================
# Pre-issue forecasting
# ============================================================


@dataclass(frozen=True)
class PreIssueThresholds:
    """Forecast thresholds, escalation buffers and cost-of-delay scaling."""

    runway_breach_months: float = 9
    runway_high_likelihood_months: float = 6
    runway_high_likelihood: float = 0.8
    runway_base_likelihood: float = 0.5
    goal_miss_probability: float = 0.6
    goal_miss_high_severity_probability: float = 0.3
    deal_stall_days: float = 14
    deal_stall_high_amount: float = 2_000_000
    imminent_days: float = 7
    round_full_coverage_days: float = 90
    round_coverage_gap: float = 0.2
    round_default_age_days: float = 30
    round_default_time_to_breach_days: float = 60
    round_min_time_to_breach_days: float = 7
    lead_vacancy_days: float = 30
    lead_vacancy_breach_days: float = 45
    dormant_days: float = 90
    dormant_breach_days: float = 30
    default_escalation_buffer_days: float = 14
    # Lead time needed before breach for intervention to still work
    escalation_buffers: Mapping[str, float] = field(
        default_factory=lambda: _frozen(
            {"RUNWAY_BREACH": 90, "GOAL_MISS": 14, "DEAL_STALL": 7}
        )
    )
    type_multipliers: Mapping[str, float] = field(
        default_factory=lambda: _frozen(
            {
                "RUNWAY_BREACH": 1.5,
                "GOAL_MISS": 1.0,
                "DEAL_STALL": 1.2,
                "ROUND_STALL": 1.2,
                "LEAD_VACANCY": 1.3,
                "CONNECTION_DORMANT": 0.6,
            }
        )
    )


# ============================================================
# Introductions
# ============================================================


@dataclass(frozen=True)
class TrustRiskWeights:
    """Weights for the six trust-risk contributions."""

    strength_weight: float = 0.3
    default_strength: float = 50
    weak_strength: float = 50
    default_days_since_touch: float = 180
    # (max days since touch, penalty); anything older gets stale_penalty
    recency_penalties: tuple[tuple[float, float], ...] = ((7, 0), (30, 10), (90, 25))
    stale_penalty: float = 40
    # Indexed by prior intro count, last entry applies to everything above
    frequency_penalties: tuple[float, ...] = (0, 5, 15, 30, 50)
    # Indexed by hop count - 1, last entry applies to longer paths
    path_penalties: tuple[float, ...] = (0, 15, 35, 50)
    no_tag_overlap_penalty: float = 20
    weak_tag_overlap_penalty: float = 10
    sector_mismatch_penalty: float = 15
    senior_weak_relationship_penalty: float = 15
    senior_strength_floor: float = 70
    low_success_rate_penalty: float = 10
    low_success_rate: float = 0.5
    reason_threshold: float = 10
    low_band_max: float = 30
    medium_band_max: float = 60
    max_reasons: int = 4


@dataclass(frozen=True)
class IntroWeights:
    """Path search limits, second-order lift filter and timing cutoffs."""

    max_hops: int = 2
    baseline_conversion: float = 0.15
    second_order_min_lift: float = 1.2
    hop_decay: float = 0.6
    path_length_decay: float = 0.7
    min_second_order_inclusion: float = 0.2
    never_trust_score: float = 80
    min_probability: float = 0.1
    max_probability: float = 0.8
    now_min_score: float = 6
    now_min_confidence: float = 0.6
    soon_min_score: float = 3
    soon_min_confidence: float = 0.5


# ============================================================
# Ranking
# ============================================================


@dataclass(frozen=True)
class RankingWeights:
    """Penalties and boosts applied on top of expected net impact."""

    trust_threshold: float = 0.3
    trust_multiplier: float = 20
    friction_per_step: float = 0.5
    friction_max_steps: int = 10
    complexity_multiplier: float = 5
    urgency_window_days: float = 28
    urgency_max_boost: float = 15
    urgency_decay_days: float = 7
    time_penalty_divisor: float = 7
    time_penalty_cap: float = 30
    tie_epsilon: float = 0.0001


# ============================================================
# Engine
# ============================================================


@dataclass(frozen=True)
class EngineConfig:
    issues: IssueThresholds = field(default_factory=IssueThresholds)
    preissues: PreIssueThresholds = field(default_factory=PreIssueThresholds)
    trust_risk: TrustRiskWeights = field(default_factory=TrustRiskWeights)
    intro: IntroWeights = field(default_factory=IntroWeights)
    ranking: RankingWeights = field(default_factory=RankingWeights)
    today_actions: int = 5
    low_confidence_runway: float = 0.5
    version: str = ENGINE_VERSION


DEFAULT_CONFIG = EngineConfig()

_SECTIONS: dict[str, type] = {
    "issues": IssueThresholds,
    "preissues": PreIssueThresholds,
    "trust_risk": TrustRiskWeights,
    "intro": IntroWeights,
    "ranking": RankingWeights,
}


def _coerce(section: str, name: str, current: Any, value: Any, integer: bool = False) -> Any:
    """Validate one override against the type of its default."""
    label = f"{section}.{name}" if section else name
    if isinstance(current, Mapping):
        if not isinstance(value, dict):
            raise ConfigError(f"{label} must be a mapping")
        merged = dict(current)
        for key, item in value.items():
            merged[str(key)] = _coerce(section, f"{name}.{key}", 0.0, item)
        return _frozen(merged)
    if isinstance(current, tuple):
        if not isinstance(value, list):
            raise ConfigError(f"{label} must be a list")
        return tuple(tuple(v) if isinstance(v, list) else v for v in value)
    if isinstance(current, str):
        if not isinstance(value, str):
            raise ConfigError(f"{label} must be a string")
        return value
    if isinstance(value, bool) or not isinstance(value, (int, float)):
        raise ConfigError(f"{label} must be a number, got {value!r}")
    if integer:
        if float(value) != int(value):
            raise ConfigError(f"{label} must be an integer, got {value!r}")
        return int(value)
    return float(value)


def _apply_overrides(section: str, table: Any, overrides: dict) -> Any:
    known = {f.name: f.type for f in fields(table)}
    unknown = sorted(set(overrides) - set(known))
    if unknown:
        raise ConfigError(f"Unknown keys in '{section}': {', '.join(unknown)}")
    changes = {
        name: _coerce(section, name, getattr(table, name), value, known[name] is int)
        for name, value in overrides.items()
    }
    return replace(table, **changes)


def config_from_dict(data: dict | None, base: EngineConfig | None = None) -> EngineConfig:
    """
    Build an EngineConfig from a parsed override document.

    Top-level keys are either table sections (issues, preissues,
    trust_risk, intro, ranking) or scalar engine settings
    (today_actions, low_confidence_runway, version).

    Raises:
        ConfigError on unknown sections, unknown fields or wrong types.
    """
    config = base or DEFAULT_CONFIG
    if not data:
        return config
    if not isinstance(data, dict):
        raise ConfigError("Configuration root must be a mapping")

    changes: dict[str, Any] = {}
    scalars: dict[str, Any] = {}
    for key, value in data.items():
        if key in _SECTIONS:
            if not isinstance(value, dict):
                raise ConfigError(f"Section '{key}' must be a mapping")
            changes[key] = _apply_overrides(key, getattr(config, key), value)
        else:
            scalars[key] = value

    if scalars:
        known = {f.name for f in fields(config)} - set(_SECTIONS)
        unknown = sorted(set(scalars) - known)
        if unknown:
            raise ConfigError(f"Unknown configuration keys: {', '.join(unknown)}")
        for name, value in scalars.items():
            changes[name] = _coerce("", name, getattr(config, name), value, name == "today_actions")

    return replace(config, **changes)


def load_config(path: str | Path | None = None) -> EngineConfig:
    """
    Load engine configuration from YAML.

    With no path, BACKBONE_CONFIG is consulted; if that is unset too the
    defaults are returned unchanged.

    Raises:
        FileNotFoundError if the named file doesn't exist.
        yaml.YAMLError if the file is not valid YAML.
        ConfigError if the document has unknown keys or bad values.
    """
    if path is None:
        path = os.environ.get(CONFIG_PATH_ENV)
    if not path:
        return DEFAULT_CONFIG

    config_path = Path(path)
    if not config_path.exists():
        raise FileNotFoundError(f"Engine config not found: {config_path}")

    with open(config_path) as f:
        data = yaml.safe_load(f)

    config = config_from_dict(data)
    logger.info(f"Loaded engine config from {config_path}")
    return config
