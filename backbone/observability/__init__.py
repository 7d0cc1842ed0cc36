"""
Observability module: structured logging, run IDs, metrics.

Usage:
    from backbone.observability import get_logger, RunContext

    logger = get_logger(__name__)

    with RunContext() as ctx:
        logger.info("Computing portfolio", extra={"companies": 3})

Metrics:
    from backbone.observability import REGISTRY, compute_duration, timed

    @timed(compute_duration)
    def compute(...):
        ...
"""

from .context import CompanyScope, RunContext, generate_run_id, get_company_id, get_run_id, set_run_id
from .logging import HumanFormatter, JSONFormatter, configure_logging, get_logger
from .metrics import (
    REGISTRY,
    Counter,
    Gauge,
    Histogram,
    MetricsRegistry,
    actions_ranked,
    companies_computed,
    compute_duration,
    compute_errors,
    compute_runs,
    node_duration,
    timed,
)

__all__ = [
    # Logging
    "get_logger",
    "configure_logging",
    "JSONFormatter",
    "HumanFormatter",
    # Context
    "RunContext",
    "CompanyScope",
    "generate_run_id",
    "get_run_id",
    "set_run_id",
    "get_company_id",
    # Metrics
    "REGISTRY",
    "MetricsRegistry",
    "Counter",
    "Gauge",
    "Histogram",
    "timed",
    "compute_runs",
    "compute_errors",
    "compute_duration",
    "companies_computed",
    "node_duration",
    "actions_ranked",
]
