from __future__ import annotations

from dataclasses import dataclass
from typing import Optional, Protocol, runtime_checkable

from geo_cluster_manager.objects.geo_point import GeoPoint


@runtime_checkable
class ClusterItem(Protocol):
    """Anything that can be placed on the map and optionally grouped.

    Explanation:
    Implementations must keep `location` fixed for their lifetime; a moved
    point is a new item. Items without an `item_id` are identified by their
    coordinates.
    """

    @property
    def location(self) -> GeoPoint: ...

    @property
    def can_cluster(self) -> bool: ...


@dataclass(frozen=True)
class MapItem:
    """Plain point item, used by the CSV loader and handy for callers without their own type."""

    item_id: str
    location: GeoPoint
    can_cluster: bool = True
    label: Optional[str] = None


def item_key(item: ClusterItem) -> str:
    """Return a stable identity string for an item."""
    item_id = getattr(item, "item_id", None)
    if item_id is not None:
        return str(item_id)
    return f"{item.location.latitude}_{item.location.longitude}"
