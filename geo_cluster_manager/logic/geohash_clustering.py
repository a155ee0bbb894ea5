from __future__ import annotations

from typing import Generic, Sequence, TypeVar

from geo_cluster_manager.objects.cluster import Cluster
from geo_cluster_manager.objects.cluster_item import ClusterItem
from geo_cluster_manager.utility.geohash import GeohashCache

T = TypeVar("T", bound=ClusterItem)


class GeohashClustering(Generic[T]):
    """Group items that share a geohash prefix."""

    def __init__(self, cache: GeohashCache) -> None:
        """Init with the item geohash cache.

        Args:
            cache: Provides the full-precision geohash of each item.
        """
        self.cache = cache

    def run(self, items: Sequence[T], level: int) -> list[Cluster[T]]:
        """Partition items by their first `level` geohash characters.

        Takes the prefix of the first remaining item as the key, moves every
        remaining item with that prefix into one cluster and repeats until
        nothing is left. Cluster order follows the first appearance of each
        prefix; members keep input order.

        Args:
            items: Clusterable items.
            level: Prefix length (1..precision).

        Returns:
            Clusters covering every input item exactly once.
        """
        prefixes = [self.cache.geohash(item)[:level] for item in items]
        remaining = list(range(len(items)))
        clusters: list[Cluster[T]] = []
        while remaining:
            key = prefixes[remaining[0]]
            members = [idx for idx in remaining if prefixes[idx] == key]
            remaining = [idx for idx in remaining if prefixes[idx] != key]
            clusters.append(Cluster.from_items(items[idx] for idx in members))
        return clusters
