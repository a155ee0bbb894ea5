"""ClusterManager - groups map items into clusters for the current viewport.

Owns the item collection, the last known zoom and the map association.
Every pass reads the visible bounds, filters items, clusters the eligible
ones and hands the result to the marker builders. Only the newest pass is
ever published; passes overtaken by a later request are dropped.
"""

from __future__ import annotations

import asyncio
import logging
from typing import Any, Generic, Iterable, Optional, TypeVar

from geo_cluster_manager.logic.collaborators import (
    ClusterMarkerBuilder,
    ItemMarkerBuilder,
    RedrawCallback,
    ViewportSource,
)
from geo_cluster_manager.logic.geohash_clustering import GeohashClustering
from geo_cluster_manager.logic.max_dist_clustering import MaxDistClustering
from geo_cluster_manager.logic.settings import ClusterAlgorithm, ClusterManagerSettings
from geo_cluster_manager.objects.camera_position import CameraPosition
from geo_cluster_manager.objects.cluster import Cluster, ClusterResult
from geo_cluster_manager.objects.cluster_item import ClusterItem
from geo_cluster_manager.rendering.folium_markers import basic_cluster_marker
from geo_cluster_manager.utility.geohash import GeohashCache, GeohashEncoder
from geo_cluster_manager.utility.zoom_levels import ZoomLevelMapper

logger = logging.getLogger(__name__)

T = TypeVar("T", bound=ClusterItem)


class ClusterManager(Generic[T]):
    """Orchestrates clustering passes for one map.

    Usage:
        ```python
        manager = ClusterManager(items, viewport, marker_builder=build_marker,
                                 update_clusters=redraw)
        await manager.associate_with_map(map_id)
        await manager.on_camera_move(position)
        await manager.update_map()  # e.g. on camera idle
        ```
    """

    def __init__(
        self,
        items: Iterable[T],
        viewport_source: ViewportSource,
        marker_builder: ItemMarkerBuilder,
        update_clusters: RedrawCallback,
        cluster_builder: Optional[ClusterMarkerBuilder] = None,
        settings: Optional[ClusterManagerSettings] = None,
    ) -> None:
        """Initialize ClusterManager.

        Args:
            items: Initial item collection.
            viewport_source: Supplies zoom and visible bounds for a map handle.
            marker_builder: Builds the marker of a single item.
            update_clusters: Called once after each published pass.
            cluster_builder: Builds the marker of a cluster (basic circle if None).
            settings: Clustering configuration (uses defaults if None).

        Raises:
            ValueError: If the zoom table is longer than the geohash precision.
        """
        self.settings = settings or ClusterManagerSettings()
        if len(self.settings.levels) > self.settings.geohash_precision:
            raise ValueError("Zoom level table exceeds geohash precision")

        self.viewport_source = viewport_source
        self.marker_builder = marker_builder
        self.cluster_builder = cluster_builder or basic_cluster_marker
        self.update_clusters = update_clusters

        self.zoom_mapper = ZoomLevelMapper(self.settings.levels)
        self.geohash_cache = GeohashCache(GeohashEncoder(self.settings.geohash_precision))
        self._geohash_clustering: GeohashClustering[T] = GeohashClustering(self.geohash_cache)
        self._max_dist_clustering: MaxDistClustering[T] = MaxDistClustering(self.settings.epsilon)

        self._items: list[T] = list(items)
        self._markers: tuple[Any, ...] = ()
        self._map_handle: Any = None
        self._zoom: Optional[float] = None

        self._generation = 0
        self._pass_lock = asyncio.Lock()

    @property
    def items(self) -> tuple[T, ...]:
        return tuple(self._items)

    @property
    def markers(self) -> tuple[Any, ...]:
        """Markers of the last published pass."""
        return self._markers

    @property
    def zoom(self) -> Optional[float]:
        return self._zoom

    @property
    def map_handle(self) -> Any:
        return self._map_handle

    async def associate_with_map(self, handle: Any, with_update: bool = True) -> None:
        """Bind to a map and read its zoom."""
        self._map_handle = handle
        self._zoom = await self.viewport_source.current_zoom(handle)
        logger.debug("Associated with map %r at zoom %s", handle, self._zoom)
        if with_update:
            await self.update_map()

    async def set_items(self, items: Iterable[T]) -> None:
        """Replace all items and recompute."""
        self._items = list(items)
        self.geohash_cache.prune(self._items)
        await self.update_map()

    async def add_item(self, item: T) -> None:
        """Append one item and recompute."""
        self._items = [*self._items, item]
        await self.update_map()

    async def on_camera_move(self, position: CameraPosition, force_update: bool = False) -> None:
        """Track the camera zoom; recompute only when forced."""
        self._zoom = position.zoom
        if force_update:
            await self.update_map()

    async def update_map(self) -> bool:
        """Run one pass and publish its markers unless a newer pass was requested meanwhile.

        Returns:
            True if this pass was published, False if it was superseded.
        """
        self._generation += 1
        generation = self._generation
        async with self._pass_lock:
            if generation != self._generation:
                logger.debug("Pass %d superseded before start", generation)
                return False

            result = await self.compute_clusters()
            cluster_markers = await asyncio.gather(
                *(self.cluster_builder(cluster) for cluster in result.clusterable_groups)
            )
            item_markers = await asyncio.gather(
                *(self.marker_builder(item) for item in result.unclusterable_singles)
            )

            if generation != self._generation:
                logger.debug("Pass %d superseded while building markers, dropped", generation)
                return False

            self._markers = (*item_markers, *cluster_markers)
            self.update_clusters()
            return True

    async def compute_clusters(self) -> ClusterResult[T]:
        """Cluster the items visible in the current viewport.

        Returns:
            Multi-item clusters plus the items to draw individually. When the
            zoom is at or above `stop_clustering_zoom` every eligible item comes
            back as its own single-item cluster instead.
        """
        if self._map_handle is None:
            return ClusterResult.empty()

        settings = self.settings
        map_bounds = await self.viewport_source.visible_bounds(self._map_handle)
        if settings.cluster_algorithm == ClusterAlgorithm.GEOHASH:
            bounds = map_bounds.inflate(settings.extra_percent)
        else:
            bounds = map_bounds

        visible_items = [item for item in self._items if bounds.contains(item.location)]
        unclusterable = [item for item in visible_items if not item.can_cluster]
        clusterable = [item for item in visible_items if item.can_cluster]
        zoom = self._zoom if self._zoom is not None else 0.0

        if settings.stop_clustering_zoom is not None and zoom >= settings.stop_clustering_zoom:
            logger.debug("Zoom %s >= %s, clustering disabled", zoom, settings.stop_clustering_zoom)
            return ClusterResult(
                clusterable_groups=[Cluster.from_items([item]) for item in clusterable],
                unclusterable_singles=unclusterable,
            )

        clusters = self._run_algorithm(clusterable, zoom)

        multiple = [cluster for cluster in clusters if cluster.is_multiple]
        singles = [cluster.items[0] for cluster in clusters if not cluster.is_multiple]
        singles.extend(unclusterable)

        logger.debug(
            "Pass at zoom %s: %d visible, %d clusterable -> %d clusters, %d singles",
            zoom, len(visible_items), len(clusterable), len(multiple), len(singles),
        )
        return ClusterResult(clusterable_groups=multiple, unclusterable_singles=singles)

    def select_algorithm(self, clusterable_count: int) -> ClusterAlgorithm:
        """Geohash when configured or when there are too many items for max-distance."""
        if (
            self.settings.cluster_algorithm == ClusterAlgorithm.GEOHASH
            or clusterable_count >= self.settings.max_items_for_max_dist_algo
        ):
            return ClusterAlgorithm.GEOHASH
        return ClusterAlgorithm.MAX_DIST

    def _run_algorithm(self, clusterable: list[T], zoom: float) -> list[Cluster[T]]:
        if self.select_algorithm(len(clusterable)) == ClusterAlgorithm.GEOHASH:
            level = self.zoom_mapper.find_level(zoom)
            logger.debug("Geohash clustering at prefix length %d", level)
            return self._geohash_clustering.run(clusterable, level)
        zoom_level = self.zoom_mapper.level_to_int_zoom(zoom)
        logger.debug("Max-distance clustering at zoom %d", zoom_level)
        return self._max_dist_clustering.run(clusterable, zoom_level)
