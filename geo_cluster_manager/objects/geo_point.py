from dataclasses import dataclass


@dataclass(frozen=True)
class GeoPoint:
    """Immutable WGS84 coordinate (latitude, longitude) in degrees."""

    latitude: float
    longitude: float

    def to_lonlat(self) -> tuple[float, float]:
        """Return (lon, lat), the axis order shapely and pyproj expect."""
        return self.longitude, self.latitude

    def __str__(self) -> str:
        return f"GeoPoint(lat={self.latitude}, lng={self.longitude})"
