from __future__ import annotations

from typing import Generic, Optional, Sequence, TypeVar

from shapely import STRtree

from geo_cluster_manager.objects.cluster import Cluster
from geo_cluster_manager.objects.cluster_item import ClusterItem
from geo_cluster_manager.utility.calc_distance import DistanceCalculator, MercatorProjection

T = TypeVar("T", bound=ClusterItem)


class MaxDistClustering(Generic[T]):
    """Single-linkage clustering with a screen-space join radius.

    Explanation:
    Items are projected to Web Mercator; two items are linked when their
    planar distance is at most `epsilon` pixels at the given integer zoom.
    Each cluster is the transitive closure of links from a seed item.
    """

    epsilon: float

    def __init__(self, epsilon: float = 20.0, projection: Optional[MercatorProjection] = None) -> None:
        """Configure the algorithm.

        Args:
            epsilon: Join radius in screen pixels.
            projection: Shared projector (a new one is created if omitted).
        """
        self.epsilon = epsilon
        self.projection = projection or MercatorProjection()

    def radius_m(self, zoom_level: int) -> float:
        """Join radius on the ground (Mercator meters); halves with every zoom step."""
        return DistanceCalculator.pixels_to_meters(self.epsilon, zoom_level)

    def run(self, items: Sequence[T], zoom_level: int) -> list[Cluster[T]]:
        """Cluster items at an integer zoom.

        Args:
            items: Clusterable items.
            zoom_level: Integer zoom from the breakpoint table.

        Returns:
            Clusters covering every input item exactly once, seeded in input order.
        """
        if not items:
            return []
        points = self.projection.to_mercator_many([item.location for item in items])
        radius = self.radius_m(zoom_level)
        tree = STRtree(points)

        # dict keeps insertion order, used as an ordered set
        unassigned = dict.fromkeys(range(len(items)))
        clusters: list[Cluster[T]] = []
        while unassigned:
            seed = next(iter(unassigned))
            del unassigned[seed]
            members = [seed]
            frontier = [seed]
            while frontier:
                current = frontier.pop()
                near = tree.query(points[current], predicate="dwithin", distance=radius)
                absorbed = [int(idx) for idx in near if int(idx) in unassigned]
                for idx in absorbed:
                    del unassigned[idx]
                members.extend(absorbed)
                frontier.extend(absorbed)
            clusters.append(Cluster.from_items(items[idx] for idx in sorted(members)))
        return clusters
