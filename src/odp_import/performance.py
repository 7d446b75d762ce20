"""Timing of pipeline steps.

Engine phases are wrapped with ``timed_operation``, which only logs. The
import service keeps a ``PerformanceMonitor`` so callers can inspect the
durations of extraction and import runs afterwards.
"""

import functools
import logging
import threading
import time
from contextlib import contextmanager
from dataclasses import dataclass, field
from typing import Any, Callable, Dict, Iterator, List, Optional, TypeVar

logger = logging.getLogger(__name__)

T = TypeVar('T')


@dataclass
class OperationTiming:
    """One finished (or running) pipeline step."""

    operation_name: str
    started: float = field(default_factory=time.perf_counter)
    duration: Optional[float] = None
    success: bool = True
    error: Optional[str] = None
    metadata: Dict[str, Any] = field(default_factory=dict)

    def stop(self, error: Optional[str] = None) -> None:
        self.duration = time.perf_counter() - self.started
        self.success = error is None
        self.error = error


@dataclass
class OperationStats:
    """Aggregated durations of every run of one operation."""

    count: int
    failures: int
    total: float
    slowest: float

    @property
    def average(self) -> float:
        return self.total / self.count if self.count else 0.0

    @property
    def success_rate(self) -> float:
        return (self.count - self.failures) / self.count if self.count else 0.0

    def to_dict(self) -> Dict[str, Any]:
        return {
            "count": self.count,
            "failures": self.failures,
            "total": self.total,
            "average": self.average,
            "slowest": self.slowest,
            "successRate": self.success_rate,
        }


class PerformanceMonitor:
    """
    Records how long pipeline operations take.

    Args:
        slow_threshold: Operations slower than this many seconds are
            logged as warnings.
    """

    def __init__(self, slow_threshold: float = 60.0):
        self.slow_threshold = slow_threshold
        self._timings: Dict[str, List[OperationTiming]] = {}
        self._lock = threading.Lock()

    @contextmanager
    def track(self, operation_name: str, **metadata) -> Iterator[OperationTiming]:
        """
        Time the body of a ``with`` block.

        A failing body is recorded as unsuccessful and its exception is
        re-raised unchanged.
        """
        timing = OperationTiming(operation_name=operation_name, metadata=metadata)
        try:
            yield timing
        except Exception as e:
            timing.stop(error=str(e))
            self._record(timing)
            raise
        if timing.duration is None:
            timing.stop()
        self._record(timing)

    def _record(self, timing: OperationTiming) -> None:
        with self._lock:
            self._timings.setdefault(timing.operation_name, []).append(timing)
        if timing.duration is not None and timing.duration > self.slow_threshold:
            logger.warning(
                f"Operation '{timing.operation_name}' took {timing.duration:.2f}s "
                f"(threshold {self.slow_threshold:.0f}s)"
            )

    def timings(self, operation_name: str) -> List[OperationTiming]:
        with self._lock:
            return list(self._timings.get(operation_name, []))

    def stats(self, operation_name: str) -> Optional[OperationStats]:
        """Aggregate of ``operation_name``, or None if it never ran."""
        timings = [t for t in self.timings(operation_name) if t.duration is not None]
        if not timings:
            return None
        durations = [t.duration for t in timings]
        return OperationStats(
            count=len(timings),
            failures=sum(1 for t in timings if not t.success),
            total=sum(durations),
            slowest=max(durations),
        )

    def summary(self) -> Dict[str, Dict[str, Any]]:
        with self._lock:
            names = list(self._timings)
        return {name: self.stats(name).to_dict() for name in names if self.stats(name)}

    def reset(self) -> None:
        with self._lock:
            self._timings.clear()


def timed_operation(operation_name: str):
    """
    Decorator logging how long the wrapped call took.

    Example:
        @timed_operation("seed_reference_maps")
        def _seed_reference_maps(self, user_id, context):
            ...
    """
    def decorator(func: Callable[..., T]) -> Callable[..., T]:
        @functools.wraps(func)
        def wrapper(*args, **kwargs) -> T:
            started = time.perf_counter()
            try:
                result = func(*args, **kwargs)
            except Exception as e:
                logger.error(f"{operation_name} failed after {time.perf_counter() - started:.2f}s: {e}")
                raise
            logger.debug(f"{operation_name} finished in {time.perf_counter() - started:.2f}s")
            return result
        return wrapper
    return decorator
