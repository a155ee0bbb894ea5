from __future__ import annotations

from shapely.geometry import Polygon, box

from geo_cluster_manager.objects.geo_point import GeoPoint

# Largest longitude kept inside the half-open [-180, 180) interval
MAX_LNG = 180.0 - 1e-10


def wrap_longitude(lng: float) -> float:
    """Normalize a longitude into [-180, 180)."""
    return ((lng + 180.0) % 360.0) - 180.0


class GeoBounds:
    """Latitude/longitude rectangle in WGS84.

    Explanation:
    Stores the southwest and northeast corners. Latitude bounds never wrap.
    A southwest longitude greater than the northeast longitude means the box
    crosses the antimeridian and covers [west, 180] plus [-180, east].
    """

    southwest: GeoPoint
    northeast: GeoPoint

    def __init__(self, southwest: GeoPoint, northeast: GeoPoint) -> None:
        """Create bounds from two corners.

        Args:
            southwest: South-west corner.
            northeast: North-east corner.
        """
        self.southwest = southwest
        self.northeast = northeast

    @classmethod
    def from_edges(cls, north: float, south: float, east: float, west: float) -> "GeoBounds":
        return cls(GeoPoint(south, west), GeoPoint(north, east))

    @property
    def north(self) -> float:
        return self.northeast.latitude

    @property
    def south(self) -> float:
        return self.southwest.latitude

    @property
    def east(self) -> float:
        return self.northeast.longitude

    @property
    def west(self) -> float:
        return self.southwest.longitude

    def crosses_antimeridian(self) -> bool:
        return self.west > self.east

    def lng_span(self) -> float:
        """Return the longitude width in degrees, following the wrap if any."""
        if self.crosses_antimeridian():
            return (180.0 - self.west) + (self.east + 180.0)
        return self.east - self.west

    def lat_span(self) -> float:
        return self.north - self.south

    def center(self) -> GeoPoint:
        """Midpoint of the bounds; across the antimeridian the longitude is wrapped back into range."""
        lat = (self.north + self.south) / 2
        return GeoPoint(lat, wrap_longitude(self.west + self.lng_span() / 2))

    def leaflet_corners(self) -> list[list[float]]:
        """Return [[south, west], [north, east]] with east unwrapped (may exceed 180) so the box stays contiguous."""
        return [[self.south, self.west], [self.north, self.west + self.lng_span()]]

    def contains(self, point: GeoPoint) -> bool:
        """Check if a point lies inside or on the boundary."""
        return self.contains_point(point.longitude, point.latitude)

    def contains_point(self, lon: float, lat: float) -> bool:
        """Check if lon/lat lies inside these bounds, honoring the antimeridian wrap.

        Args:
            lon: Longitude.
            lat: Latitude.

        Returns:
            True if point is inside or on the boundary.
        """
        if not self.south <= lat <= self.north:
            return False
        if self.crosses_antimeridian():
            return lon >= self.west or lon <= self.east
        return self.west <= lon <= self.east

    def inflate(self, percent: float) -> "GeoBounds":
        """Grow the bounds by `percent` of their span on each side.

        Latitude is clamped to +/-90. Longitude edges that pass +/-180 wrap
        around instead of being clamped. A zero longitude delta pins the
        east edge to 180 so the result never collapses to a zero-width strip.

        Args:
            percent: Fraction of the span to add on each side (0.5 = 50%).

        Returns:
            New, inflated bounds.
        """
        lng_span = self.lng_span()
        lng = percent * lng_span
        lat = percent * self.lat_span()

        south = max(-90.0, self.south - lat)
        north = min(90.0, self.north + lat)

        if lng == 0:
            return GeoBounds(GeoPoint(south, self.west), GeoPoint(north, MAX_LNG))

        if lng_span + 2 * lng >= 360.0:
            return GeoBounds(GeoPoint(south, -180.0), GeoPoint(north, 180.0))

        west = wrap_longitude(self.west - lng)
        east = wrap_longitude(self.east + lng)
        return GeoBounds(GeoPoint(south, west), GeoPoint(north, east))

    def to_polygons(self) -> list[Polygon]:
        """Return the bounds as lon/lat boxes, split in two at the antimeridian."""
        if self.crosses_antimeridian():
            return [
                box(self.west, self.south, 180.0, self.north),
                box(-180.0, self.south, self.east, self.north),
            ]
        return [box(self.west, self.south, self.east, self.north)]

    def __str__(self) -> str:
        return f"GeoBounds(north={self.north}, south={self.south}, east={self.east}, west={self.west})"
