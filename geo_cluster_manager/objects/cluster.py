from __future__ import annotations

from dataclasses import dataclass, field
from hashlib import md5
from typing import Generic, Iterable, Sequence, TypeVar

from shapely.geometry import MultiPoint

from geo_cluster_manager.objects.cluster_item import ClusterItem, item_key
from geo_cluster_manager.objects.geo_point import GeoPoint

T = TypeVar("T", bound=ClusterItem)


class Cluster(Generic[T]):
    """Group of one or more items produced by a single clustering pass.

    Explanation:
    Holds the member items in input order and their centroid (mean of the
    member coordinates). Never mutated; every pass builds fresh clusters.
    """

    __slots__ = ("_items", "_location")

    def __init__(self, items: Sequence[T]) -> None:
        """Create a cluster container.

        Args:
            items: Member items, at least one.
        """
        if not items:
            raise ValueError("A cluster needs at least one item")
        self._items = tuple(items)
        centroid = MultiPoint([item.location.to_lonlat() for item in self._items]).centroid
        self._location = GeoPoint(latitude=centroid.y, longitude=centroid.x)

    @property
    def items(self) -> tuple[T, ...]:
        return self._items

    @property
    def location(self) -> GeoPoint:
        """Centroid (mean of the member coordinates)."""
        return self._location

    @classmethod
    def from_items(cls, items: Iterable[T]) -> "Cluster[T]":
        return cls(list(items))

    @property
    def count(self) -> int:
        return len(self.items)

    @property
    def is_multiple(self) -> bool:
        return self.count > 1

    def get_id(self) -> str:
        """Identity derived from the member identities, independent of member order."""
        keys = sorted(item_key(item) for item in self.items)
        return md5("|".join(keys).encode()).hexdigest()

    def __str__(self) -> str:
        return f"Cluster of {self.count} {type(self.items[0]).__name__} ({self.location.latitude}, {self.location.longitude})"


@dataclass
class ClusterResult(Generic[T]):
    """Output of one pass: aggregate groups and items to draw on their own."""

    clusterable_groups: list[Cluster[T]] = field(default_factory=list)
    unclusterable_singles: list[T] = field(default_factory=list)

    @classmethod
    def empty(cls) -> "ClusterResult[T]":
        return cls()
