"""
In-process metrics for pipeline runs.

Counters, gauges and timing summaries kept in one registry and exported in
Prometheus text format. Metrics describe how the engine ran; they never
feed back into computed outputs.
"""

import functools
import threading
import time
from collections.abc import Callable
from dataclasses import dataclass, field
from typing import ClassVar


@dataclass
class Metric:
    """A named series; subclasses supply the exposition samples."""

    kind: ClassVar[str] = "untyped"

    name: str
    description: str = ""
    _lock: threading.Lock = field(default_factory=threading.Lock, repr=False)

    def samples(self) -> list[tuple[str, float]]:
        raise NotImplementedError

    def reset(self) -> None:
        raise NotImplementedError

    def exposition(self) -> list[str]:
        lines = [f"# HELP {self.name} {self.description}"] if self.description else []
        lines.append(f"# TYPE {self.name} {self.kind}")
        lines.extend(f"{self.name}{suffix} {value}" for suffix, value in self.samples())
        return lines


@dataclass
class Counter(Metric):
    kind: ClassVar[str] = "counter"

    _value: int = 0

    def inc(self, amount: int = 1) -> None:
        with self._lock:
            self._value += amount

    def reset(self) -> None:
        with self._lock:
            self._value = 0

    @property
    def value(self) -> int:
        with self._lock:
            return self._value

    def samples(self) -> list[tuple[str, float]]:
        return [("", self.value)]


@dataclass
class Gauge(Metric):
    kind: ClassVar[str] = "gauge"

    _value: float = 0.0

    def set(self, value: float) -> None:
        with self._lock:
            self._value = value

    def reset(self) -> None:
        self.set(0.0)

    @property
    def value(self) -> float:
        with self._lock:
            return self._value

    def samples(self) -> list[tuple[str, float]]:
        return [("", self.value)]


@dataclass
class Histogram(Metric):
    """Timing observations, exported as a count/sum summary over the last max_samples."""

    kind: ClassVar[str] = "summary"

    max_samples: int = 1000
    _values: list[float] = field(default_factory=list)

    def observe(self, value: float) -> None:
        with self._lock:
            self._values.append(value)
            del self._values[: -self.max_samples]

    def reset(self) -> None:
        with self._lock:
            self._values.clear()

    @property
    def count(self) -> int:
        with self._lock:
            return len(self._values)

    @property
    def sum(self) -> float:
        with self._lock:
            return float(sum(self._values))

    def samples(self) -> list[tuple[str, float]]:
        return [("_count", self.count), ("_sum", self.sum)]


class MetricsRegistry:
    """Name-keyed metrics; a name belongs to one metric kind for the registry's lifetime."""

    def __init__(self) -> None:
        self._metrics: dict[str, Metric] = {}
        self._lock = threading.Lock()

    def _get(self, cls: type[Metric], name: str, description: str) -> Metric:
        with self._lock:
            metric = self._metrics.get(name)
            if metric is None:
                metric = self._metrics[name] = cls(name, description)
            elif not isinstance(metric, cls):
                raise TypeError(f"Metric {name} is already registered as a {metric.kind}")
            return metric

    def counter(self, name: str, description: str = "") -> Counter:
        return self._get(Counter, name, description)

    def gauge(self, name: str, description: str = "") -> Gauge:
        return self._get(Gauge, name, description)

    def histogram(self, name: str, description: str = "") -> Histogram:
        return self._get(Histogram, name, description)

    def reset(self) -> None:
        """Zero every registered metric. Used between test cases."""
        with self._lock:
            metrics = list(self._metrics.values())
        for metric in metrics:
            metric.reset()

    def to_prometheus(self) -> str:
        with self._lock:
            metrics = [self._metrics[name] for name in sorted(self._metrics)]
        lines = [line for metric in metrics for line in metric.exposition()]
        return "\n".join(lines) + "\n"


REGISTRY = MetricsRegistry()

compute_runs = REGISTRY.counter("compute_runs_total", "Total portfolio computations")
compute_errors = REGISTRY.counter(
    "compute_validation_errors_total", "Validation errors collected during computation"
)
compute_duration = REGISTRY.histogram("compute_duration_seconds", "Portfolio computation duration")
companies_computed = REGISTRY.counter("companies_computed_total", "Company DAG executions")
node_duration = REGISTRY.histogram("dag_node_duration_seconds", "Single DAG node execution time")
actions_ranked = REGISTRY.gauge("actions_ranked", "Actions ranked by the most recent computation")


def timed(histogram: Histogram) -> Callable:
    """Record each call's wall time in `histogram`, including calls that raise."""

    def decorator(func: Callable) -> Callable:
        @functools.wraps(func)
        def wrapper(*args, **kwargs):
            start = time.perf_counter()
            try:
                return func(*args, **kwargs)
            finally:
                histogram.observe(time.perf_counter() - start)

        return wrapper

    return decorator
