# tiny_digest/algorithms/tdigest.py

import bisect
import logging
import math
import sys
import time
from operator import attrgetter
from typing import Any, Dict, Iterable, List, Optional, Tuple, Union

from tiny_digest.algorithms.centroid import Centroid, CentroidLike, CentroidList
from tiny_digest.algorithms.scale import ArcsineScale
from tiny_digest.core.base import QuantileEstimator

logger = logging.getLogger(__name__)


def weighted_average(x1: float, w1: float, x2: float, w2: float) -> float:
    """
    Weighted average of two points, clamped to the interval they span.

    The clamp keeps floating-point overshoot from pushing the result past
    either endpoint.
    """
    if x1 <= x2:
        return _weighted_average_sorted(x1, w1, x2, w2)
    return _weighted_average_sorted(x2, w2, x1, w1)


def _weighted_average_sorted(x1: float, w1: float, x2: float, w2: float) -> float:
    x = (x1 * w1 + x2 * w2) / (w1 + w2)
    return max(x1, min(x, x2))


class TDigest(QuantileEstimator):
    """
    Merging t-digest for quantile and CDF estimation over data streams.

    The t-digest (Dunning & Ertl, 2019) summarizes a stream of weighted values
    as a sorted list of centroids. New centroids are staged in an unsorted
    buffer and periodically folded into the sorted list by a single merge
    pass. During that pass an arcsine scale function caps how much weight a
    centroid may absorb depending on where it sits in the distribution:

    1. Centroids near q=0 and q=1 stay small, so extreme quantiles are precise
    2. Centroids near the median grow large, which keeps the digest small
    3. The number of centroids stays near 2 * compression whatever the stream size

    Queries fold the buffer in first, so results always reflect every value
    added so far. Instances are not thread-safe; callers must serialize
    access.

    Example:
        td = TDigest(compression=200)
        for latency in latencies:
            td.add(latency)
        p99 = td.quantile(0.99)
        share_under_100ms = td.cdf(100.0)
    """

    DEFAULT_COMPRESSION: float = 1000.0
    PROCESSED_FACTOR: int = 2
    UNPROCESSED_FACTOR: int = 8

    def __init__(
        self,
        compression: float = DEFAULT_COMPRESSION,
        memory_limit_bytes: Optional[int] = None,
    ):
        """
        Initialize a TDigest.

        Args:
            compression: Controls accuracy and memory usage. Higher values
                keep more centroids, which improves accuracy at the cost of
                memory. Must be a finite number > 0. Default: 1000.
            memory_limit_bytes: Optional memory budget checked by
                check_memory_limit().

        Raises:
            ValueError: If compression is not a finite positive number.
        """
        super().__init__(memory_limit_bytes)
        if (
            isinstance(compression, bool)
            or not isinstance(compression, (int, float))
            or not math.isfinite(compression)
            or compression <= 0
        ):
            raise ValueError("Compression must be a finite number > 0")

        self.compression: float = float(compression)
        self._scale = ArcsineScale(self.compression)
        self._max_processed: int = math.ceil(self.PROCESSED_FACTOR * self.compression)
        self._max_unprocessed: int = math.ceil(
            self.UNPROCESSED_FACTOR * self.compression
        )

        self._processed = CentroidList()
        self._unprocessed = CentroidList()
        self._cumulative: List[float] = [0.0]
        self._processed_weight: float = 0.0
        self._unprocessed_weight: float = 0.0
        self._min: float = math.inf
        self._max: float = -math.inf

    #
    # Ingestion
    #
    def update(self, item: float) -> None:
        """
        Add a single observation with weight 1.

        Args:
            item: Numeric value to add. Non-numeric values and NaN are
                ignored.

        Raises:
            ValueError: If item is infinite.
        """
        if isinstance(item, bool) or not isinstance(item, (int, float)):
            return
        self.add(item)

    def add(self, value: float, weight: float = 1.0) -> None:
        """
        Add a value with the given weight.

        NaN values are dropped silently.

        Raises:
            ValueError: If value is infinite, or weight is not a finite
                number > 0.
        """
        value = float(value)
        if math.isnan(value):
            return
        self.add_centroid(Centroid(value, weight))

    def add_centroid(self, centroid: CentroidLike) -> None:
        """
        Stage a centroid for the next compaction.

        The centroid is copied, so the caller may keep using it. If either
        the sorted list or the buffer has outgrown its bound, compaction runs
        right away.

        Args:
            centroid: A Centroid or a (mean, weight) pair.

        Raises:
            ValueError: If the mean is not finite, or the weight is not a
                finite number > 0.
        """
        start = time.perf_counter() if self._track_recent_updates else None

        mean, weight = centroid
        mean = float(mean)
        weight = float(weight)
        if not math.isfinite(mean):
            raise ValueError(f"Centroid mean must be finite, got {mean}")
        if not math.isfinite(weight) or weight <= 0:
            raise ValueError(
                f"Centroid weight must be a finite number > 0, got {weight}"
            )

        self._unprocessed.append(Centroid(mean, weight))
        self._unprocessed_weight += weight
        self._items_processed += 1

        # Exact extremes, even once the end centroids start absorbing others
        if mean < self._min:
            self._min = mean
        if mean > self._max:
            self._max = mean

        if (
            len(self._processed) > self._max_processed
            or len(self._unprocessed) > self._max_unprocessed
        ):
            self.compact()

        if start is not None:
            self._record_update_time(time.perf_counter() - start)

    def add_centroid_list(self, centroids: Iterable[CentroidLike]) -> None:
        """
        Add every centroid of a batch, in order.

        Compaction runs mid-batch whenever the buffer fills up, so a large
        batch never pushes the buffer far past its bound.

        Args:
            centroids: Centroids or (mean, weight) pairs.
        """
        for centroid in centroids:
            self.add_centroid(centroid)

    #
    # Compaction
    #
    def compact(self) -> None:
        """
        Fold the buffer into the sorted centroid list.

        All centroids are sorted by mean and swept once from left to right.
        Each one is merged into the previous output centroid while the
        running weight stays under the limit the scale function allows at
        that position; otherwise it starts a new output centroid. Does
        nothing when the buffer is empty and the list is within its bound.
        """
        if not self._unprocessed and len(self._processed) <= self._max_processed:
            return

        merged = self._unprocessed
        num_before = len(merged) + len(self._processed)
        merged.extend(self._processed)
        merged.sort()

        self._processed = CentroidList([merged[0]])
        self._processed_weight += self._unprocessed_weight
        self._unprocessed_weight = 0.0

        total = self._processed_weight
        so_far = merged[0].weight
        limit = total * self._scale.quantile(1.0)
        for centroid in merged[1:]:
            projected = so_far + centroid.weight
            if projected <= limit:
                so_far = projected
                self._processed.merge_into_last(centroid)
            else:
                k1 = self._scale.index(so_far / total)
                limit = total * self._scale.quantile(k1 + 1.0)
                so_far = projected
                self._processed.append(centroid)

        self._min = min(self._min, self._processed[0].mean)
        self._max = max(self._max, self._processed[-1].mean)
        self._update_cumulative()
        self._unprocessed = CentroidList()

        logger.debug(
            "Compacted %d centroids into %d (total weight %g)",
            num_before,
            len(self._processed),
            total,
        )

    def _update_cumulative(self) -> None:
        """Rebuild the half-weight-offset cumulative index of the sorted list."""
        cumulative = []
        prev = 0.0
        for centroid in self._processed:
            cumulative.append(prev + centroid.weight / 2.0)
            prev += centroid.weight
        cumulative.append(prev)
        self._cumulative = cumulative

    #
    # Queries
    #
    def quantile(self, q: float) -> float:
        """
        Estimate the value at rank q.

        Between centroids the estimate interpolates linearly on the
        cumulative index. Below the first centroid's midpoint it interpolates
        from the minimum, above the last centroid's midpoint towards the
        maximum.

        Args:
            q: Rank between 0.0 and 1.0.

        Returns:
            The estimated value. NaN if q is outside [0, 1] or the digest is
            empty.
        """
        self.compact()

        if not (0.0 <= q <= 1.0) or not self._processed:
            return float("nan")

        processed = self._processed
        if len(processed) == 1:
            return processed[0].mean

        index = q * self._processed_weight
        first = processed[0]
        if index <= first.weight / 2.0:
            fraction = 2.0 * index / first.weight
            return min(first.mean, self._min + fraction * (first.mean - self._min))

        cumulative = self._cumulative
        lower = bisect.bisect_left(cumulative, index)

        if lower < len(processed):
            z1 = index - cumulative[lower - 1]
            z2 = cumulative[lower] - index
            return weighted_average(
                processed[lower - 1].mean, z2, processed[lower].mean, z1
            )

        # Right tail: past the last centroid's midpoint
        last = processed[-1]
        z1 = index - cumulative[-2]
        z2 = self._processed_weight - index
        return weighted_average(last.mean, z2, self._max, z1)

    def cdf(self, x: float) -> float:
        """
        Estimate the fraction of the total weight at or below x.

        Args:
            x: The value to look up.

        Returns:
            The estimated rank in [0, 1]. 0.0 for an empty digest, NaN for
            a NaN x.
        """
        self.compact()

        if math.isnan(x):
            return float("nan")

        processed = self._processed
        if not processed:
            return 0.0
        if x <= self._min:
            return 0.0
        if x >= self._max:
            return 1.0

        if len(processed) == 1:
            width = self._max - self._min
            if math.isclose(self._min, self._max):
                # Too narrow to interpolate
                return 0.5
            return (x - self._min) / width

        total = self._processed_weight

        first = processed[0]
        if x <= first.mean:
            if first.mean - self._min > 0:
                return (
                    (x - self._min)
                    / (first.mean - self._min)
                    * first.weight
                    / total
                    / 2.0
                )
            return 0.0

        last = processed[-1]
        if x >= last.mean:
            if self._max - last.mean > 0:
                return (
                    1.0
                    - (self._max - x)
                    / (self._max - last.mean)
                    * last.weight
                    / total
                    / 2.0
                )
            return 1.0

        upper = bisect.bisect_right(processed, x, key=attrgetter("mean"))
        z1 = x - processed[upper - 1].mean
        z2 = processed[upper].mean - x
        return (
            weighted_average(
                self._cumulative[upper - 1], z2, self._cumulative[upper], z1
            )
            / total
        )

    def export(self) -> Tuple[Centroid, ...]:
        """
        Return a snapshot of the compressed centroids in ascending mean order.

        The centroids are copies; later updates to the digest do not show up
        in the snapshot and changes to the snapshot do not affect the digest.
        Each centroid unpacks as (mean, weight).
        """
        self.compact()
        return tuple(self._processed.clone())

    #
    # Inspection
    #
    @property
    def total_weight(self) -> float:
        """Total weight added, compacted or not."""
        return self._processed_weight + self._unprocessed_weight

    @property
    def min(self) -> Optional[float]:
        """Smallest value seen, or None if the digest is empty."""
        return None if self.is_empty else self._min

    @property
    def max(self) -> Optional[float]:
        """Largest value seen, or None if the digest is empty."""
        return None if self.is_empty else self._max

    @property
    def num_centroids(self) -> int:
        """Number of centroids after folding in the buffer."""
        self.compact()
        return len(self._processed)

    @property
    def is_empty(self) -> bool:
        """Check if the digest contains any data."""
        return self._items_processed == 0

    def __len__(self) -> int:
        """Return the number of centroids added to the digest."""
        return self._items_processed

    def __str__(self) -> str:
        return "{processed: %s, unprocessed: %s}" % (
            list(self._processed),
            list(self._unprocessed),
        )

    def __repr__(self) -> str:
        return (
            f"TDigest(compression={self.compression:g}, "
            f"items_processed={self._items_processed}, "
            f"total_weight={self.total_weight:g})"
        )

    def clear(self) -> None:
        """
        Reset the digest to its initial empty state.

        Configuration parameters are kept.
        """
        super().clear()
        self._processed = CentroidList()
        self._unprocessed = CentroidList()
        self._cumulative = [0.0]
        self._processed_weight = 0.0
        self._unprocessed_weight = 0.0
        self._min = math.inf
        self._max = -math.inf

    def estimate_size(self) -> int:
        """
        Estimate the memory footprint of the digest in bytes.

        Returns:
            Estimated size in bytes.
        """
        size = super().estimate_size()

        size += sys.getsizeof(self._processed) + sys.getsizeof(self._unprocessed)

        num_centroids = len(self._processed) + len(self._unprocessed)
        if num_centroids:
            # Each centroid holds two float objects
            size += num_centroids * (
                sys.getsizeof(Centroid(0.0)) + 2 * sys.getsizeof(0.0)
            )

        size += sys.getsizeof(self._cumulative)
        size += len(self._cumulative) * sys.getsizeof(0.0)

        return size

    #
    # Benchmarking hooks
    #
    def get_stats(self) -> Dict[str, Any]:
        """
        Get detailed statistics about the current state of the digest.

        Returns:
            A dictionary with the configuration, centroid counts and weights,
            tracked extremes, how centroids spread over the value range, and
            the error model.
        """
        self.compact()

        stats = super().get_stats()

        stats.update(
            {
                "compression": self.compression,
                "max_processed": self._max_processed,
                "max_unprocessed": self._max_unprocessed,
                "total_weight": self.total_weight,
                "num_centroids": len(self._processed),
                "buffer_items": len(self._unprocessed),
                "compression_ratio": len(self._processed)
                / max(1, self._max_processed),
            }
        )

        if not self.is_empty:
            stats["min_value"] = self._min
            stats["max_value"] = self._max

        if self._processed:
            weights = self._processed.weights()
            stats.update(
                {
                    "min_weight": min(weights),
                    "max_weight": max(weights),
                    "avg_weight": sum(weights) / len(weights),
                    "total_centroid_weight": self._processed.total_weight(),
                }
            )

            means = self._processed.means()
            if len(means) > 1:
                span = means[-1] - means[0]
                stats["centroid_span"] = span
                stats["avg_centroid_spacing"] = span / (len(means) - 1)

                # The scale function should keep many small centroids in the tails
                lower_tail = sum(1 for m in means if m < means[0] + 0.1 * span)
                upper_tail = sum(1 for m in means if m > means[-1] - 0.1 * span)
                middle = len(means) - lower_tail - upper_tail
                stats.update(
                    {
                        "centroids_lower_10pct": lower_tail,
                        "centroids_middle_80pct": middle,
                        "centroids_upper_10pct": upper_tail,
                        "tail_concentration_ratio": (lower_tail + upper_tail)
                        / max(1, middle),
                    }
                )

        if self._items_processed > 0:
            stats["bytes_per_item"] = self.estimate_size() / self._items_processed

        return stats

    def error_bounds(self) -> Dict[str, Union[str, float, int, Dict[str, float]]]:
        """
        Describe the error model of this digest.

        The t-digest error varies with the quantile: it is roughly
        proportional to q(1-q)/compression, smallest at the tails.

        Returns:
            A dictionary with the error characteristics at several quantiles,
            or {"state": "empty"} when there is no data.
        """
        if self.is_empty:
            return {"state": "empty"}

        c = self.compression
        bounds: Dict[str, Any] = {
            "accuracy_model": "non-uniform (higher at tails)",
            "theoretical_max_centroids": self._max_processed,
            "error_bounds": {
                f"q{q:.3f}": q * (1 - q) / c
                for q in (0.001, 0.01, 0.05, 0.25, 0.5, 0.75, 0.95, 0.99, 0.999)
            },
        }

        if self._processed:
            bounds["actual_centroids"] = len(self._processed)
            bounds["compression_efficiency"] = len(self._processed) / max(
                1, self._max_processed
            )

        return bounds

    @classmethod
    def create_from_accuracy_target(
        cls, accuracy_target: float, tail_focus: bool = True
    ) -> "TDigest":
        """
        Create a TDigest with a compression sized for a target accuracy.

        Args:
            accuracy_target: Target relative error for quantile estimates,
                strictly between 0 and 1.
            tail_focus: If True, size for accuracy at q=0.01 and q=0.99.
                If False, size for accuracy at the median.

        Raises:
            ValueError: If accuracy_target is not between 0 and 1.
        """
        if not (0.0 < accuracy_target < 1.0):
            raise ValueError("Accuracy target must be between 0 and 1")

        # Error is about q(1-q)/compression: 0.0099/c at the tails, 0.25/c at the median
        if tail_focus:
            compression = math.ceil(0.0099 / accuracy_target)
        else:
            compression = math.ceil(0.25 / accuracy_target)

        return cls(compression=max(1, compression))
