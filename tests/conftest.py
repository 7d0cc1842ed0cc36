"""
Test configuration: repo root on sys.path, metrics and env isolation.

Every test sees the default engine configuration and a fresh metrics
registry, so counts asserted in one test never leak into another.
"""

import sys
from pathlib import Path

import pytest

# Add repo root to sys.path so tests can import backbone.*
REPO_ROOT = Path(__file__).parent.parent
if str(REPO_ROOT) not in sys.path:
    sys.path.insert(0, str(REPO_ROOT))

from backbone.observability.metrics import REGISTRY  # noqa: E402

from tests.fixtures.portfolio import NOW  # noqa: E402


@pytest.fixture(autouse=True)
def _isolate_environment(monkeypatch):
    """No override file and zeroed metrics for every test."""
    monkeypatch.delenv("BACKBONE_CONFIG", raising=False)
    REGISTRY.reset()
    yield
    REGISTRY.reset()


@pytest.fixture
def now():
    return NOW
