"""
Metrics Collection for the Back-Office Service

Collects and exposes in-memory metrics for:
- Backend requests (by method and endpoint group, failures by status)
- Batch operations (payment syncs and advance batches: runs, per-supplier outcomes)
- Processing times (average, p95)
"""

from collections import defaultdict
from dataclasses import dataclass, field
from datetime import datetime, timezone
from threading import Lock
from typing import Dict, List, Optional, Any
import statistics


# =============================================================================
# Metric Data Classes
# =============================================================================

@dataclass
class RequestMetrics:
    """Metrics for calls made to the factory backend."""
    total: int = 0
    failed: int = 0

    # By "METHOD resource", e.g. "PUT supplierPayment"
    by_endpoint: Dict[str, Dict[str, int]] = field(default_factory=lambda: defaultdict(lambda: {"total": 0, "failed": 0}))

    # By HTTP status (0 for connection errors)
    failures_by_status: Dict[int, int] = field(default_factory=lambda: defaultdict(int))


@dataclass
class BatchMetrics:
    """Metrics for sequential batch operations."""
    runs: int = 0
    created: int = 0
    updated: int = 0
    failed: int = 0
    last_run_at: Optional[datetime] = None

    by_operation: Dict[str, Dict[str, int]] = field(default_factory=lambda: defaultdict(lambda: {"runs": 0, "created": 0, "updated": 0, "failed": 0}))


@dataclass
class TimingMetrics:
    """Processing time metrics."""
    # Raw timing samples (keep last N for percentile calculations)
    samples: List[float] = field(default_factory=list)
    max_samples: int = 1000

    by_stage: Dict[str, List[float]] = field(default_factory=lambda: defaultdict(list))

    def add_sample(self, duration_ms: float, stage: str = None):
        """Add a timing sample."""
        self.samples.append(duration_ms)
        if len(self.samples) > self.max_samples:
            self.samples = self.samples[-self.max_samples:]

        if stage:
            self.by_stage[stage].append(duration_ms)
            if len(self.by_stage[stage]) > self.max_samples:
                self.by_stage[stage] = self.by_stage[stage][-self.max_samples:]

    def get_average(self, stage: str = None) -> float:
        """Get average processing time."""
        samples = self.by_stage.get(stage, []) if stage else self.samples
        return statistics.mean(samples) if samples else 0.0

    def get_p95(self, stage: str = None) -> float:
        """Get 95th percentile processing time."""
        samples = self.by_stage.get(stage, []) if stage else self.samples
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
    Thread-safe metrics collector for the back-office service.

    Usage:
        metrics = MetricsCollector.instance()
        metrics.record_request("GET", "supplier", status=200, duration_ms=42)
        metrics.record_batch_outcome("sync_payments", "updated")
    """

    _instance: Optional["MetricsCollector"] = None
    _lock = Lock()

    def __init__(self):
        self.requests = RequestMetrics()
        self.batches = BatchMetrics()
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

    # =========================================================================
    # Backend Requests
    # =========================================================================

    def record_request(self, method: str, resource: str, status: int, duration_ms: float = None):
        """Record one backend request. Status 0 means no response was received."""
        key = f"{method.upper()} {resource}"
        failed = status == 0 or status >= 400
        with self._lock:
            self.requests.total += 1
            self.requests.by_endpoint[key]["total"] += 1
            if failed:
                self.requests.failed += 1
                self.requests.by_endpoint[key]["failed"] += 1
                self.requests.failures_by_status[status] += 1
            if duration_ms is not None:
                self.timings.add_sample(duration_ms, f"backend.{resource}")

    # =========================================================================
    # Batch Operations
    # =========================================================================

    def record_batch_started(self, operation: str):
        """Record the start of a batch run."""
        with self._lock:
            self.batches.runs += 1
            self.batches.last_run_at = datetime.now(timezone.utc)
            self.batches.by_operation[operation]["runs"] += 1

    def record_batch_outcome(self, operation: str, outcome: str):
        """Record one per-supplier outcome: created, updated or failed."""
        if outcome not in ("created", "updated", "failed"):
            raise ValueError(f"Unknown batch outcome: {outcome}")
        with self._lock:
            setattr(self.batches, outcome, getattr(self.batches, outcome) + 1)
            self.batches.by_operation[operation][outcome] += 1

    # =========================================================================
    # Timing Metrics
    # =========================================================================

    def record_processing_time(self, stage: str, duration_ms: float):
        """Record a processing time sample."""
        with self._lock:
            self.timings.add_sample(duration_ms, stage)

    def get_timing_stats(self, stage: str = None) -> Dict[str, float]:
        """Get timing statistics for a stage."""
        with self._lock:
            return {
                "average_ms": self.timings.get_average(stage),
                "p95_ms": self.timings.get_p95(stage),
                "sample_count": len(self.timings.by_stage.get(stage, []) if stage else self.timings.samples),
            }

    # =========================================================================
    # Summary
    # =========================================================================

    def get_summary(self) -> Dict[str, Any]:
        """Get a summary of all metrics."""
        with self._lock:
            return {
                "requests": {
                    "total": self.requests.total,
                    "failed": self.requests.failed,
                    "by_endpoint": {k: dict(v) for k, v in self.requests.by_endpoint.items()},
                    "failures_by_status": dict(self.requests.failures_by_status),
                },
                "batches": {
                    "runs": self.batches.runs,
                    "created": self.batches.created,
                    "updated": self.batches.updated,
                    "failed": self.batches.failed,
                    "last_run_at": self.batches.last_run_at.isoformat() if self.batches.last_run_at else None,
                    "by_operation": {k: dict(v) for k, v in self.batches.by_operation.items()},
                },
                "timings": {
                    "overall": {
                        "average_ms": self.timings.get_average(),
                        "p95_ms": self.timings.get_p95(),
                    },
                    "by_stage": {
                        stage: {
                            "average_ms": self.timings.get_average(stage),
                            "p95_ms": self.timings.get_p95(stage),
                        }
                        for stage in self.timings.by_stage.keys()
                    },
                },
            }


# =============================================================================
# Module-level convenience functions
# =============================================================================

def get_metrics() -> MetricsCollector:
    """Get the global metrics collector."""
    return MetricsCollector.instance()


def record_request(method: str, resource: str, status: int, duration_ms: float = None):
    get_metrics().record_request(method, resource, status, duration_ms)


def record_batch_started(operation: str):
    get_metrics().record_batch_started(operation)


def record_batch_outcome(operation: str, outcome: str):
    get_metrics().record_batch_outcome(operation, outcome)


def record_processing_time(stage: str, duration_ms: float):
    """Record a processing time sample."""
    get_metrics().record_processing_time(stage, duration_ms)
