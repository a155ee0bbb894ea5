from typing import Optional

import pytest

from geo_cluster_manager.logic.collaborators import StaticViewport
from geo_cluster_manager.objects.cluster_item import MapItem
from geo_cluster_manager.objects.geo_bounds import GeoBounds
from geo_cluster_manager.objects.geo_point import GeoPoint

MAP_ID = 1


def make_item(item_id: str, lat: float, lng: float, can_cluster: bool = True, label: Optional[str] = None) -> MapItem:
    return MapItem(item_id=item_id, location=GeoPoint(lat, lng), can_cluster=can_cluster, label=label)


@pytest.fixture
def viewport() -> StaticViewport:
    source = StaticViewport()
    source.set_view(MAP_ID, GeoBounds(GeoPoint(-20.0, -20.0), GeoPoint(20.0, 20.0)), 12.0)
    return source


class RecordingRedraw:
    """Counts redraw callbacks."""

    def __init__(self) -> None:
        self.calls = 0

    def __call__(self) -> None:
        self.calls += 1


async def tag_item(item):
    return ("item", item.item_id)


async def tag_cluster(cluster):
    return ("cluster", tuple(sorted(i.item_id for i in cluster.items)))
