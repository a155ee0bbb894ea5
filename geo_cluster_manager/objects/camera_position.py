from dataclasses import dataclass

from geo_cluster_manager.objects.geo_point import GeoPoint


@dataclass(frozen=True)
class CameraPosition:
    """Camera state reported by the map widget after a move."""

    target: GeoPoint
    zoom: float
    bearing: float = 0.0
    tilt: float = 0.0
