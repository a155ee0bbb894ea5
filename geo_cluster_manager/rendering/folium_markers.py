from __future__ import annotations

import logging
from pathlib import Path
from typing import Iterable, Optional

import folium

from geo_cluster_manager.objects.cluster import Cluster
from geo_cluster_manager.objects.cluster_item import ClusterItem, item_key
from geo_cluster_manager.objects.geo_bounds import GeoBounds
from geo_cluster_manager.utility.calc_distance import DistanceCalculator

CLUSTER_COLOR = "#c0392b"
ITEM_COLOR = "#2980b9"
MULTIPLE_SIZE_PX = 42
SINGLE_SIZE_PX = 24

logger = logging.getLogger(__name__)


def _circle_icon(size: int, text: Optional[str]) -> folium.DivIcon:
    """Red disc with an optional centered label."""
    label = text or ""
    html = (
        f'<div style="width:{size}px;height:{size}px;border-radius:50%;'
        f"background:{CLUSTER_COLOR};color:white;font-size:{size // 3}px;"
        f'display:flex;align-items:center;justify-content:center;">{label}</div>'
    )
    return folium.DivIcon(html=html, icon_size=(size, size), icon_anchor=(size // 2, size // 2))


async def basic_cluster_marker(cluster: Cluster) -> folium.Marker:
    """Default cluster marker: a disc, larger and labeled with the count when it groups several items."""
    size = MULTIPLE_SIZE_PX if cluster.is_multiple else SINGLE_SIZE_PX
    max_dist = max(DistanceCalculator.haversine_m(cluster.location, item.location) for item in cluster.items)
    return folium.Marker(
        location=[cluster.location.latitude, cluster.location.longitude],
        icon=_circle_icon(size, str(cluster.count) if cluster.is_multiple else None),
        popup=folium.Popup(
            f"Items: {cluster.count}<br/>Max dist to centroid: {max_dist:.1f} m<br/>Id: {cluster.get_id()[:8]}",
            max_width=220,
        ),
    )


async def basic_item_marker(item: ClusterItem) -> folium.CircleMarker:
    """Default single item marker."""
    label = getattr(item, "label", None) or item_key(item)
    return folium.CircleMarker(
        location=[item.location.latitude, item.location.longitude],
        radius=4,
        color=ITEM_COLOR,
        fill=True,
        fill_opacity=0.9,
        tooltip=label,
    )


class FoliumMarkerLayer:
    """Redraw target that writes the published markers into an HTML map.

    Explanation:
    Pass `layer.redraw` as the manager's redraw callback and `layer.bind(manager)`
    so the layer can read the published markers.
    """

    def __init__(self, output: Path, bounds: Optional[GeoBounds] = None, tiles: str = "cartodbpositron") -> None:
        """Configure the output map.

        Args:
            output: HTML file written on every redraw.
            bounds: Viewport outline to draw (optional).
            tiles: Folium tile set.
        """
        self.output = output
        self.bounds = bounds
        self.tiles = tiles
        self.redraw_count = 0
        self._manager = None

    def bind(self, manager) -> None:
        self._manager = manager

    def build_map(self, markers: Iterable[folium.Marker]) -> folium.Map:
        """Assemble a folium map from markers and the optional viewport outline."""
        markers = list(markers)
        if self.bounds is not None:
            mid = self.bounds.center()
            center = [mid.latitude, mid.longitude]
        else:
            center = [0.0, 0.0]
        fmap = folium.Map(location=center, zoom_start=3, tiles=self.tiles)  # type: ignore

        if self.bounds is not None:
            outline = {
                "type": "FeatureCollection",
                "features": [
                    {"type": "Feature", "properties": {}, "geometry": poly.__geo_interface__}
                    for poly in self.bounds.to_polygons()
                ],
            }
            folium.GeoJson(
                outline,
                name="Viewport",
                style_function=lambda _: {"color": "#7f8c8d", "fillOpacity": 0.0, "weight": 1},
            ).add_to(fmap)
            fmap.fit_bounds(self.bounds.leaflet_corners())

        group = folium.FeatureGroup(name=f"Markers ({len(markers)})")
        for marker in markers:
            marker.add_to(group)
        group.add_to(fmap)
        folium.LayerControl().add_to(fmap)
        return fmap

    def redraw(self) -> None:
        if self._manager is None:
            raise RuntimeError("FoliumMarkerLayer.redraw called before bind()")
        fmap = self.build_map(self._manager.markers)
        self.output.parent.mkdir(parents=True, exist_ok=True)
        fmap.save(str(self.output))
        self.redraw_count += 1
        logger.info("Wrote map with %d markers to %s", len(self._manager.markers), self.output)
