from math import radians, sin, cos, asin, sqrt

from pyproj import Transformer
from shapely.geometry import Point

from geo_cluster_manager.objects.geo_point import GeoPoint

# Web Mercator ground resolution at zoom 0 for 256 px tiles (meters per pixel)
METERS_PER_PIXEL_Z0 = 156543.03392
# Web Mercator is undefined at the poles
MAX_MERCATOR_LAT = 85.05112878


class DistanceCalculator:
    """Distance helpers for geographic and screen space."""

    @staticmethod
    def haversine_m(a: GeoPoint, b: GeoPoint) -> float:
        """Great-circle distance between two points in meters."""
        r = 6371000
        dlat = radians(b.latitude - a.latitude)
        dlon = radians(b.longitude - a.longitude)
        h = sin(dlat/2)**2 + cos(radians(a.latitude))*cos(radians(b.latitude))*sin(dlon/2)**2
        return 2 * r * asin(sqrt(h))

    @staticmethod
    def pixels_to_meters(pixels: float, zoom: int) -> float:
        """Convert a screen distance to Web Mercator meters at an integer zoom."""
        return pixels * METERS_PER_PIXEL_Z0 / (2 ** zoom)


class MercatorProjection:
    """Project WGS84 points into Web Mercator (EPSG:3857) meters."""

    def _init_transformer(self) -> Transformer:
        return Transformer.from_crs("EPSG:4326", "EPSG:3857", always_xy=True)

    def __init__(self) -> None:
        self.forward_transformer = self._init_transformer()

    def to_mercator_many(self, points: list[GeoPoint]) -> list[Point]:
        """Project many points in one transformer call; latitude is clamped to the Mercator range."""
        if not points:
            return []
        lngs = [p.longitude for p in points]
        lats = [min(max(p.latitude, -MAX_MERCATOR_LAT), MAX_MERCATOR_LAT) for p in points]
        xs, ys = self.forward_transformer.transform(lngs, lats)
        return [Point(x, y) for x, y in zip(xs, ys)]
