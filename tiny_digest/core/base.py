"""
Base classes and interfaces for tiny-digest summaries.

This module defines the abstract base classes that streaming summaries
implement to provide a consistent interface: updating with stream items,
querying results, resetting state, and the benchmarking hooks used to
measure memory and update cost.
"""

import abc
import math
import sys
from collections import deque
from typing import Any, Dict, Generic, Iterable, List, Optional, TypeVar

T = TypeVar("T")  # Type for the items being processed
R = TypeVar("R")  # Type for the result of queries


class StreamSummary(Generic[T, R], abc.ABC):
    """
    Abstract base class for streaming data structures.

    Subclasses implement `update` and `query`. The base class keeps the count
    of processed items and optional timing of recent updates, and provides
    the memory estimation and statistics hooks shared by all summaries.

    Summaries are not thread-safe. Callers that share one instance between
    threads must serialize every call themselves.
    """

    def __init__(self, memory_limit_bytes: Optional[int] = None):
        """
        Initialize a new stream summary.

        Args:
            memory_limit_bytes: Optional maximum memory usage in bytes.
                                None means no explicit limit.

        Raises:
            ValueError: If memory_limit_bytes is negative.
        """
        if memory_limit_bytes is not None and memory_limit_bytes < 0:
            raise ValueError("Memory limit must be non-negative")

        self._memory_limit_bytes = memory_limit_bytes
        self._items_processed = 0

        # Performance tracking attributes
        self._last_update_time: float = 0.0
        self._total_update_time: float = 0.0
        self._update_count: int = 0

        # Optional performance tracking buffer for recent updates
        self._track_recent_updates: bool = False
        self._recent_update_times: Optional[deque] = None
        self._max_update_history: int = 100

    @abc.abstractmethod
    def update(self, item: T) -> None:
        """
        Update the summary with a new item from the stream.

        Args:
            item: The new item to process.
        """
        pass

    @abc.abstractmethod
    def query(self, *args: Any, **kwargs: Any) -> R:
        """
        Query the current state of the summary.

        The parameters and return value depend on the specific algorithm.
        """
        pass

    def _record_update_time(self, elapsed: float) -> None:
        """
        Record the duration of one update when performance tracking is on.

        Args:
            elapsed: Wall-clock duration of the update in seconds.
        """
        self._last_update_time = elapsed
        self._total_update_time += elapsed
        self._update_count += 1

        if self._recent_update_times is not None:
            self._recent_update_times.append(elapsed)

    def estimate_size(self) -> int:
        """
        Estimate the current memory usage of this summary in bytes.

        This is a rough figure: it accounts for the object, its instance
        dictionary and the tracking buffers, but not everything Python
        allocates behind the scenes. Derived classes add their own data
        structures on top.

        Returns:
            Estimated memory usage in bytes.
        """
        size = sys.getsizeof(self)

        if hasattr(self, "__dict__"):
            size += sys.getsizeof(self.__dict__)

        if self._recent_update_times is not None:
            size += sys.getsizeof(self._recent_update_times)
            size += len(self._recent_update_times) * sys.getsizeof(0.0)

        return size

    def check_memory_limit(self) -> bool:
        """
        Check if the current memory usage is within the configured limit.

        Returns:
            True if the memory usage is within limits (or there is no limit).
        """
        if self._memory_limit_bytes is None:
            return True

        return self.estimate_size() <= self._memory_limit_bytes

    def clear(self) -> None:
        """
        Reset the base counters and tracking metrics.

        Derived classes override this to clear their own data structures and
        call super().clear() so the base metrics are reset too.
        """
        self._items_processed = 0
        self._total_update_time = 0.0
        self._update_count = 0
        self._last_update_time = 0.0

        if self._recent_update_times is not None:
            self._recent_update_times.clear()

    def enable_performance_tracking(
        self, track_recent_updates: bool = True, max_history: int = 100
    ) -> None:
        """
        Enable timing of updates for benchmarking.

        Tracking adds a clock read per update, so only turn it on when
        measuring.

        Args:
            track_recent_updates: Whether to track timing of recent updates.
            max_history: Maximum number of recent updates to keep.
        """
        self._track_recent_updates = track_recent_updates
        self._max_update_history = max(1, max_history)

        if track_recent_updates:
            self._recent_update_times = deque(maxlen=self._max_update_history)

    def disable_performance_tracking(self) -> None:
        """Disable performance tracking to reduce overhead."""
        self._track_recent_updates = False
        self._recent_update_times = None

    def get_performance_stats(self) -> Dict[str, Any]:
        """
        Get performance statistics for this summary.

        Returns:
            A dictionary with the items processed, memory usage and, when
            tracking was enabled, update timings in nanoseconds.
        """
        stats = {
            "items_processed": self._items_processed,
            "memory_bytes": self.estimate_size(),
        }

        if self._update_count > 0:
            stats["avg_update_time_ns"] = (
                self._total_update_time / self._update_count
            ) * 1e9
            stats["last_update_time_ns"] = self._last_update_time * 1e9

        if self._recent_update_times:
            recent_times_ns = [t * 1e9 for t in self._recent_update_times]
            stats["recent_update_times_ns"] = recent_times_ns
            stats["min_update_time_ns"] = min(recent_times_ns)
            stats["max_update_time_ns"] = max(recent_times_ns)

        return stats

    def get_stats(self) -> Dict[str, Any]:
        """
        Get detailed statistics about the current state of the summary.

        Derived classes extend this with algorithm-specific entries while
        calling super().get_stats() for the base metrics.

        Returns:
            A dictionary containing various statistics about the summary state.
        """
        stats = {
            "type": self.__class__.__name__,
            "items_processed": self._items_processed,
            "memory_bytes": self.estimate_size(),
        }

        if self._memory_limit_bytes is not None:
            stats["memory_limit_bytes"] = self._memory_limit_bytes
            if self._memory_limit_bytes > 0:
                stats["memory_usage_pct"] = (
                    self.estimate_size() / self._memory_limit_bytes
                ) * 100

        if self._update_count > 0:
            stats["avg_update_time_ns"] = (
                self._total_update_time / self._update_count
            ) * 1e9

        error_bounds = self.error_bounds()
        if error_bounds:
            stats.update(error_bounds)

        return stats

    def error_bounds(self) -> Dict[str, Any]:
        """
        Get the theoretical error bounds for this summary.

        The base implementation returns an empty dictionary.
        """
        return {}

    @property
    def items_processed(self) -> int:
        """Get the total number of items processed by this summary."""
        return self._items_processed


class QuantileEstimator(StreamSummary[float, float], abc.ABC):
    """
    Abstract base class for quantile estimation algorithms.

    Examples include the merging t-digest. `query(q)` is the quantile lookup.
    """

    REPORTED_QUANTILES = (0.5, 0.9, 0.99)

    @abc.abstractmethod
    def quantile(self, q: float) -> float:
        """
        Estimate the value at rank q.

        Args:
            q: Rank between 0.0 and 1.0.

        Returns:
            The estimated value, or NaN when it cannot be estimated.
        """
        pass

    @abc.abstractmethod
    def cdf(self, x: float) -> float:
        """
        Estimate the fraction of the stream weight at or below x.

        Args:
            x: The value to look up.

        Returns:
            The estimated rank between 0.0 and 1.0.
        """
        pass

    def query(self, q: float) -> float:
        """Alias of quantile()."""
        return self.quantile(q)

    def quantiles(self, qs: Iterable[float]) -> List[float]:
        """Estimate several quantiles at once."""
        return [self.quantile(q) for q in qs]

    def percentile(self, p: float) -> float:
        """
        Estimate the value at percentile p.

        Args:
            p: Percentile between 0 and 100.
        """
        return self.quantile(p / 100.0)

    def get_stats(self) -> Dict[str, Any]:
        """
        Get statistics about the current state of the quantile estimator.

        Returns:
            A dictionary with the base statistics plus the estimated value at
            a few common quantiles, when they can be estimated.
        """
        stats = super().get_stats()

        for q in self.REPORTED_QUANTILES:
            value = self.quantile(q)
            if not math.isnan(value):
                stats[f"p{q * 100:g}"] = value

        return stats
