"""Prometheus-formatted self-metrics for the exporter process."""

from __future__ import annotations

from typing import Callable, Dict


class Counter:
    def __init__(self, name: str, description: str = "") -> None:
        self.name = name
        self.description = description
        self._value = 0.0

    @property
    def value(self) -> float:
        return self._value

    def inc(self, amount: float = 1.0) -> None:
        self._value += amount

    def render(self) -> str:
        return f"# HELP {self.name} {self.description}\n# TYPE {self.name} counter\n{self.name} {self._value}\n"


class Gauge:
    def __init__(self, name: str, description: str = "", supplier: Callable[[], float] | None = None) -> None:
        self.name = name
        self.description = description
        self._value = 0.0
        self._supplier = supplier

    @property
    def value(self) -> float:
        return self._supplier() if self._supplier else self._value

    def set(self, value: float) -> None:
        self._value = value

    def render(self) -> str:
        return f"# HELP {self.name} {self.description}\n# TYPE {self.name} gauge\n{self.name} {self.value}\n"


class Histogram:
    def __init__(self, name: str, buckets: list[float], description: str = "") -> None:
        self.name = name
        self.description = description
        self._buckets = sorted(buckets)
        self._counts = {b: 0 for b in self._buckets}
        self._sum = 0.0
        self._count = 0

    @property
    def count(self) -> int:
        return self._count

    def observe(self, value: float) -> None:
        self._count += 1
        self._sum += value
        for bucket in self._buckets:
            if value <= bucket:
                self._counts[bucket] += 1

    def render(self) -> str:
        lines = [f"# HELP {self.name} {self.description}", f"# TYPE {self.name} histogram"]
        for bucket in self._buckets:
            lines.append(f'{self.name}_bucket{{le="{bucket}"}} {self._counts[bucket]}')
        lines.append(f'{self.name}_bucket{{le="+Inf"}} {self._count}')
        lines.append(f"{self.name}_sum {self._sum}")
        lines.append(f"{self.name}_count {self._count}")
        return "\n".join(lines) + "\n"


class MetricsRegistry:
    def __init__(self) -> None:
        self._metrics: Dict[str, object] = {}

    def register(self, metric):
        self._metrics[metric.name] = metric
        return metric

    def render(self) -> str:
        return "\n".join(metric.render() for metric in self._metrics.values()) + "\n"


GLOBAL_REGISTRY = MetricsRegistry()

POLL_COUNTER = GLOBAL_REGISTRY.register(Counter("linkpulse_polls_total", "Node polls started"))
POLL_ERRORS_COUNTER = GLOBAL_REGISTRY.register(Counter("linkpulse_poll_errors_total", "Node polls that failed"))
AUTH_FAILURES_COUNTER = GLOBAL_REGISTRY.register(
    Counter("linkpulse_auth_failures_total", "Polls skipped because the node rejected the session")
)
RUN_STATS_PASSES_COUNTER = GLOBAL_REGISTRY.register(
    Counter("linkpulse_run_stats_passes_total", "Run aggregation passes executed")
)
RUN_STATS_SKIPPED_COUNTER = GLOBAL_REGISTRY.register(
    Counter("linkpulse_run_stats_skipped_total", "Run aggregation passes skipped by the scheduler")
)
RUN_STATS_ERRORS_COUNTER = GLOBAL_REGISTRY.register(
    Counter("linkpulse_run_stats_errors_total", "Run aggregation passes that failed")
)
POLL_LATENCY_HISTOGRAM = GLOBAL_REGISTRY.register(
    Histogram(
        "linkpulse_poll_latency_seconds",
        buckets=[0.1, 0.25, 0.5, 1.0, 2.5, 5.0, 10.0, 30.0],
        description="Latency of a full node poll",
    )
)
