from __future__ import annotations

from enum import IntEnum
from typing import Iterable

from geo_cluster_manager.objects.cluster_item import ClusterItem
from geo_cluster_manager.objects.geo_bounds import GeoBounds
from geo_cluster_manager.objects.geo_point import GeoPoint

BASE32 = "0123456789bcdefghjkmnpqrstuvwxyz"
BASE32_DECODE_MAP = {char: index for index, char in enumerate(BASE32)}
BITS_PER_CHAR = 5


class GeohashPrecision(IntEnum):
    """Supported geohash lengths; CONSTRAINED is for hosts with limited float precision."""

    DEFAULT = 20
    CONSTRAINED = 12


class GeohashEncoder:
    """Encode points into fixed-length geohash strings."""

    precision: int

    def __init__(self, precision: int = GeohashPrecision.DEFAULT) -> None:
        """Init encoder.

        Args:
            precision: Maximum (and default) geohash length.
        """
        if precision <= 0:
            raise ValueError("precision must be > 0")
        self.precision = int(precision)

    def encode(self, point: GeoPoint, length: int | None = None) -> str:
        """Interleave longitude/latitude bisection bits into base32 characters.

        Args:
            point: Coordinate to encode.
            length: Number of characters (defaults to the encoder precision).

        Returns:
            Geohash string of exactly `length` characters.
        """
        length = self.precision if length is None else length
        if not 0 < length <= self.precision:
            raise ValueError(f"length must be in 1..{self.precision}, got {length}")

        lat_range = [-90.0, 90.0]
        lng_range = [-180.0, 180.0]
        chars: list[str] = []
        even = True
        bit = 0
        ch = 0
        while len(chars) < length:
            value, interval = (point.longitude, lng_range) if even else (point.latitude, lat_range)
            mid = (interval[0] + interval[1]) / 2.0
            ch <<= 1
            if value >= mid:
                ch |= 1
                interval[0] = mid
            else:
                interval[1] = mid
            even = not even
            bit += 1
            if bit == BITS_PER_CHAR:
                chars.append(BASE32[ch])
                bit = 0
                ch = 0
        return "".join(chars)

    @staticmethod
    def decode_bounds(geohash: str) -> GeoBounds:
        """Return the cell rectangle covered by a geohash."""
        if not geohash:
            raise ValueError("geohash must be non-empty")
        lat_range = [-90.0, 90.0]
        lng_range = [-180.0, 180.0]
        even = True
        for char in geohash.lower():
            try:
                value = BASE32_DECODE_MAP[char]
            except KeyError as e:
                raise ValueError(f"Invalid geohash character: {char!r}") from e
            for shift in range(BITS_PER_CHAR - 1, -1, -1):
                interval = lng_range if even else lat_range
                mid = (interval[0] + interval[1]) / 2.0
                if (value >> shift) & 1:
                    interval[0] = mid
                else:
                    interval[1] = mid
                even = not even
        return GeoBounds(GeoPoint(lat_range[0], lng_range[0]), GeoPoint(lat_range[1], lng_range[1]))


class GeohashCache:
    """Full-precision geohash per item, computed once and reused across passes.

    Explanation:
    Keyed by object identity. The item itself is held alongside its hash so
    the id cannot be recycled while the entry lives; `prune` drops entries
    for items the caller no longer owns.
    """

    def __init__(self, encoder: GeohashEncoder) -> None:
        self.encoder = encoder
        self._entries: dict[int, tuple[ClusterItem, str]] = {}

    def geohash(self, item: ClusterItem) -> str:
        entry = self._entries.get(id(item))
        if entry is None or entry[0] is not item:
            entry = (item, self.encoder.encode(item.location))
            self._entries[id(item)] = entry
        return entry[1]

    def prune(self, items: Iterable[ClusterItem]) -> None:
        keep = {id(item) for item in items}
        self._entries = {key: entry for key, entry in self._entries.items() if key in keep}

    def __len__(self) -> int:
        return len(self._entries)
