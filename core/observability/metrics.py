"""
Metrics Collection for Dashboard Queries

Collects and exposes metrics for:
- Query lifecycle (started, completed, failed) per widget
- Fallbacks to mock data and discarded stale completions
- Load times (average, p95) per widget

Metrics are in-memory only; they describe the running process.
"""

import statistics
from collections import defaultdict
from dataclasses import dataclass, field
from threading import Lock
from typing import Any, Dict, List, Optional


# =============================================================================
# Metric Data Classes
# =============================================================================

def _counter_template() -> Dict[str, int]:
    return {"started": 0, "completed": 0, "failed": 0, "fallbacks": 0, "discarded": 0}


@dataclass
class QueryMetrics:
    """Counters for query execution."""
    started: int = 0
    completed: int = 0
    failed: int = 0
    fallbacks: int = 0
    discarded: int = 0

    # By widget name
    by_widget: Dict[str, Dict[str, int]] = field(default_factory=lambda: defaultdict(_counter_template))

    # By data source of completed queries
    by_source: Dict[str, int] = field(default_factory=lambda: defaultdict(int))


@dataclass
class TimingMetrics:
    """Load time metrics."""
    # Raw timing samples (keep last N for percentile calculations)
    samples: List[float] = field(default_factory=list)
    max_samples: int = 1000

    by_widget: Dict[str, List[float]] = field(default_factory=lambda: defaultdict(list))

    def add_sample(self, duration_ms: float, widget: str = None):
        """Add a timing sample."""
        self.samples.append(duration_ms)
        if len(self.samples) > self.max_samples:
            self.samples = self.samples[-self.max_samples:]

        if widget:
            self.by_widget[widget].append(duration_ms)
            if len(self.by_widget[widget]) > self.max_samples:
                self.by_widget[widget] = self.by_widget[widget][-self.max_samples:]

    def get_average(self, widget: str = None) -> float:
        """Get average load time."""
        samples = self.by_widget.get(widget, []) if widget else self.samples
        return statistics.mean(samples) if samples else 0.0

    def get_p95(self, widget: str = None) -> float:
        """Get 95th percentile load time."""
        samples = self.by_widget.get(widget, []) if widget else self.samples
        if not samples:
            return 0.0
        sorted_samples = sorted(samples)
        idx = int(len(sorted_samples) * 0.95)
        return sorted_samples[min(idx, len(sorted_samples) - 1)]


# =============================================================================
# Metrics Collector (Singleton)
# =============================================================================

class MetricsCollector:
    """
    Thread-safe metrics collector for dashboard queries.

    Usage:
        metrics = MetricsCollector.instance()
        metrics.record_query_started("overview")
        metrics.record_query_completed("overview", "mock", duration_ms=220)
    """

    _instance: Optional["MetricsCollector"] = None
    _lock = Lock()

    def __init__(self):
        self.queries = QueryMetrics()
        self.timings = TimingMetrics()
        self._lock = Lock()

    @classmethod
    def instance(cls) -> "MetricsCollector":
        """Get singleton instance."""
        if cls._instance is None:
            with cls._lock:
                if cls._instance is None:
                    cls._instance = cls()
        return cls._instance

    def reset(self) -> None:
        """Drop all collected metrics."""
        with self._lock:
            self.queries = QueryMetrics()
            self.timings = TimingMetrics()

    # =========================================================================
    # Query Metrics
    # =========================================================================

    def record_query_started(self, widget: str):
        """Record a query start."""
        with self._lock:
            self.queries.started += 1
            self.queries.by_widget[widget]["started"] += 1

    def record_query_completed(self, widget: str, source: str, duration_ms: float = None):
        """Record a query that reached ready."""
        with self._lock:
            self.queries.completed += 1
            self.queries.by_widget[widget]["completed"] += 1
            self.queries.by_source[source] += 1
            if duration_ms is not None:
                self.timings.add_sample(duration_ms, widget)

    def record_query_failed(self, widget: str, error: str = None, duration_ms: float = None):
        """Record a query that reached error."""
        with self._lock:
            self.queries.failed += 1
            self.queries.by_widget[widget]["failed"] += 1
            if duration_ms is not None:
                self.timings.add_sample(duration_ms, widget)

    def record_query_fallback(self, widget: str):
        """Record a backend failure that was replaced by mock data."""
        with self._lock:
            self.queries.fallbacks += 1
            self.queries.by_widget[widget]["fallbacks"] += 1

    def record_query_discarded(self, widget: str):
        """Record a completion that arrived after its generation was superseded."""
        with self._lock:
            self.queries.discarded += 1
            self.queries.by_widget[widget]["discarded"] += 1

    # =========================================================================
    # Summaries
    # =========================================================================

    def get_timing_stats(self, widget: str = None) -> Dict[str, float]:
        """Get timing statistics, overall or for one widget."""
        with self._lock:
            samples = self.timings.by_widget.get(widget, []) if widget else self.timings.samples
            return {
                "count": len(samples),
                "average_ms": round(self.timings.get_average(widget), 2),
                "p95_ms": round(self.timings.get_p95(widget), 2),
            }

    def get_summary(self) -> Dict[str, Any]:
        """Get a JSON-serializable snapshot of all metrics."""
        with self._lock:
            return {
                "queries": {
                    "started": self.queries.started,
                    "completed": self.queries.completed,
                    "failed": self.queries.failed,
                    "fallbacks": self.queries.fallbacks,
                    "discarded": self.queries.discarded,
                    "by_widget": {k: dict(v) for k, v in self.queries.by_widget.items()},
                    "by_source": dict(self.queries.by_source),
                },
                "timings": {
                    "average_ms": round(self.timings.get_average(), 2),
                    "p95_ms": round(self.timings.get_p95(), 2),
                },
            }


# =============================================================================
# Convenience Functions
# =============================================================================

def get_metrics() -> MetricsCollector:
    """Get the metrics collector instance."""
    return MetricsCollector.instance()


def record_query_started(widget: str):
    get_metrics().record_query_started(widget)


def record_query_completed(widget: str, source: str, duration_ms: float = None):
    get_metrics().record_query_completed(widget, source, duration_ms)


def record_query_failed(widget: str, error: str = None, duration_ms: float = None):
    get_metrics().record_query_failed(widget, error, duration_ms)


def record_query_fallback(widget: str):
    get_metrics().record_query_fallback(widget)


def record_query_discarded(widget: str):
    get_metrics().record_query_discarded(widget)
