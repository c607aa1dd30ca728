# tiny_digest/algorithms/centroid.py

import sys
from operator import attrgetter
from typing import Iterable, Iterator, List, Optional, Union


class Centroid:
    """A weighted mean standing in for one or more merged observations."""

    __slots__ = ["mean", "weight"]

    def __init__(self, mean: float, weight: float = 1.0):
        """Initialize a centroid with a mean value and weight."""
        self.mean = float(mean)
        self.weight = float(weight)

    def merge(self, other: "Centroid") -> None:
        """
        Fold another centroid into this one.

        The mean becomes the weighted average of both means and the weights
        add up. If the combined weight is zero the mean is left as it is.
        """
        total_weight = self.weight + other.weight
        if total_weight != 0:
            self.mean = (
                self.mean * self.weight + other.mean * other.weight
            ) / total_weight
        self.weight = total_weight

    def copy(self) -> "Centroid":
        """Return an independent copy of this centroid."""
        return Centroid(self.mean, self.weight)

    def __lt__(self, other: "Centroid") -> bool:
        """Allow centroids to be sorted by mean value."""
        return self.mean < other.mean

    def __eq__(self, other: object) -> bool:
        if not isinstance(other, Centroid):
            return NotImplemented
        return self.mean == other.mean and self.weight == other.weight

    __hash__ = None  # mutable

    def __iter__(self) -> Iterator[float]:
        """Unpack as (mean, weight)."""
        yield self.mean
        yield self.weight

    def __repr__(self) -> str:
        """Provide a readable representation of the centroid."""
        return f"Centroid(mean={self.mean:.4g}, weight={self.weight:.4g})"


CentroidLike = Union[Centroid, Iterable[float]]


class CentroidList:
    """
    Mutable, ordered sequence of centroids.

    Used both as the sorted, compressed set of a digest and as its unsorted
    staging buffer. Elements are addressable by index so the last one can be
    merged into in place.
    """

    __slots__ = ["_items"]

    def __init__(self, centroids: Optional[Iterable[Centroid]] = None):
        self._items: List[Centroid] = list(centroids) if centroids else []

    def append(self, centroid: Centroid) -> None:
        """Add a centroid at the end of the list."""
        self._items.append(centroid)

    def extend(self, centroids: Iterable[Centroid]) -> None:
        """Add every centroid of an iterable at the end of the list."""
        self._items.extend(centroids)

    def sort(self) -> None:
        """Sort in place by ascending mean. Equal means keep insertion order."""
        self._items.sort(key=attrgetter("mean"))

    def clear(self) -> None:
        """Remove all centroids."""
        self._items.clear()

    def clone(self) -> "CentroidList":
        """Return a deep copy: every centroid is copied by value."""
        return CentroidList(c.copy() for c in self._items)

    def merge_into_last(self, centroid: Centroid) -> None:
        """
        Merge a centroid into the final element of the list.

        Raises:
            IndexError: If the list is empty.
        """
        self._items[-1].merge(centroid)

    def total_weight(self) -> float:
        """Sum of the weights of all centroids."""
        return sum(c.weight for c in self._items)

    def means(self) -> List[float]:
        """Centroid means, in list order."""
        return [c.mean for c in self._items]

    def weights(self) -> List[float]:
        """Centroid weights, in list order."""
        return [c.weight for c in self._items]

    def __getitem__(self, index: int) -> Centroid:
        """
        Return the centroid at the given position.

        Raises:
            IndexError: If the index is out of range.
        """
        return self._items[index]

    def __len__(self) -> int:
        return len(self._items)

    def __sizeof__(self) -> int:
        return object.__sizeof__(self) + sys.getsizeof(self._items)

    def __iter__(self) -> Iterator[Centroid]:
        return iter(self._items)

    def __eq__(self, other: object) -> bool:
        if not isinstance(other, CentroidList):
            return NotImplemented
        return self._items == other._items

    __hash__ = None  # mutable

    def __repr__(self) -> str:
        return f"CentroidList({self._items!r})"
