# BACKBONE - Portfolio Decision Core
"""
Raw portfolio facts in, one ranked list of actions out.

    from backbone import compute

    result = compute(raw_data, now)
    for ranked in result.today_actions:
        print(ranked.rank, ranked.action.title)
"""

from .config import DEFAULT_CONFIG, ENGINE_VERSION, ConfigError, EngineConfig, load_config
from .runtime import ComputeResult, Engine, compute, compute_company

__version__ = ENGINE_VERSION

__all__ = [
    "DEFAULT_CONFIG",
    "ENGINE_VERSION",
    "ConfigError",
    "EngineConfig",
    "load_config",
    "ComputeResult",
    "Engine",
    "compute",
    "compute_company",
]
