"""
Dependency Telemetry for the MES/ERP Integration

Tracks calls to external dependencies:
- ERP REST requests (name, target, result code, duration)
- Retries of locked ERP resources
- Bus sends

Telemetry is kept in memory. Recent events are retained in a bounded
buffer so tests and diagnostics can inspect what happened.
"""

import statistics
from collections import defaultdict, deque
from dataclasses import dataclass, field, asdict
from datetime import datetime
from threading import Lock
from typing import Deque, Dict, List, Optional, Any


# =============================================================================
# Telemetry Data Classes
# =============================================================================

@dataclass
class DependencyEvent:
    """One tracked call to an external dependency."""
    name: str
    result_code: Optional[int]
    success: bool
    data: Optional[str] = None
    target: Optional[str] = None
    duration_ms: float = 0.0
    dependency_type: str = "HTTP"
    attempt: Optional[int] = None
    timestamp: datetime = field(default_factory=datetime.utcnow)

    def to_dict(self) -> Dict[str, Any]:
        data = asdict(self)
        data["timestamp"] = self.timestamp.isoformat()
        return data


@dataclass
class DependencyStats:
    """Aggregated counters for one dependency name."""
    calls: int = 0
    failures: int = 0
    retries: int = 0
    durations: List[float] = field(default_factory=list)
    max_samples: int = 1000

    def add_duration(self, duration_ms: float):
        self.durations.append(duration_ms)
        if len(self.durations) > self.max_samples:
            self.durations = self.durations[-self.max_samples:]

    def get_average(self) -> float:
        return statistics.mean(self.durations) if self.durations else 0.0


# =============================================================================
# Telemetry Collector (Singleton)
# =============================================================================

class DependencyTelemetry:
    """
    Thread-safe dependency telemetry collector.

    Usage:
        telemetry = DependencyTelemetry.instance()
        telemetry.track_dependency("POST /prodorderconf/v1/ProdnOrdConf2", 201, ...)
        telemetry.record_retry("POST /prodorderconf/v1/ProdnOrdConf2", attempt=0, result_code=423)
    """

    _instance: Optional["DependencyTelemetry"] = None
    _lock = Lock()

    def __init__(self, max_events: int = 500):
        self.by_name: Dict[str, DependencyStats] = defaultdict(DependencyStats)
        self._events: Deque[DependencyEvent] = deque(maxlen=max_events)
        self._lock = Lock()

    @classmethod
    def instance(cls) -> "DependencyTelemetry":
        """Get singleton instance."""
        if cls._instance is None:
            with cls._lock:
                if cls._instance is None:
                    cls._instance = cls()
        return cls._instance

    # =========================================================================
    # Recording
    # =========================================================================

    def track_dependency(
        self,
        name: str,
        result_code: Optional[int],
        data: Optional[str] = None,
        target: Optional[str] = None,
        duration_ms: float = 0.0,
        success: bool = True,
        dependency_type: str = "HTTP",
        attempt: Optional[int] = None,
    ) -> DependencyEvent:
        """Record one call to an external dependency."""
        event = DependencyEvent(
            name=name,
            result_code=result_code,
            success=success,
            data=data,
            target=target,
            duration_ms=duration_ms,
            dependency_type=dependency_type,
            attempt=attempt,
        )
        with self._lock:
            stats = self.by_name[name]
            stats.calls += 1
            if not success:
                stats.failures += 1
            if attempt is not None:
                stats.retries += 1
            stats.add_duration(duration_ms)
            self._events.append(event)
        return event

    def record_retry(
        self,
        name: str,
        attempt: int,
        result_code: Optional[int],
        data: Optional[str] = None,
        target: Optional[str] = None,
        duration_ms: float = 0.0,
    ) -> DependencyEvent:
        """Record a failed attempt that is about to be retried."""
        return self.track_dependency(
            name,
            result_code,
            data=data,
            target=target,
            duration_ms=duration_ms,
            success=False,
            attempt=attempt,
        )

    # =========================================================================
    # Queries
    # =========================================================================

    def recent(self, name: Optional[str] = None, retries_only: bool = False) -> List[DependencyEvent]:
        """Recently tracked events, oldest first."""
        with self._lock:
            events = list(self._events)
        if name:
            events = [e for e in events if e.name == name]
        if retries_only:
            events = [e for e in events if e.attempt is not None]
        return events

    def get_summary(self) -> Dict[str, Any]:
        """Get a summary of all dependencies."""
        with self._lock:
            return {
                name: {
                    "calls": stats.calls,
                    "failures": stats.failures,
                    "retries": stats.retries,
                    "average_ms": stats.get_average(),
                }
                for name, stats in self.by_name.items()
            }

    def reset(self):
        """Clear all recorded telemetry."""
        with self._lock:
            self.by_name.clear()
            self._events.clear()


# =============================================================================
# Module-level convenience functions
# =============================================================================

def get_telemetry() -> DependencyTelemetry:
    """Get the global telemetry collector."""
    return DependencyTelemetry.instance()


def track_dependency(name: str, result_code: Optional[int], **kwargs) -> DependencyEvent:
    """Record one call to an external dependency."""
    return get_telemetry().track_dependency(name, result_code, **kwargs)
