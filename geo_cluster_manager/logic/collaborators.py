from __future__ import annotations

from typing import Any, Awaitable, Callable, Hashable, Protocol, TypeVar

from geo_cluster_manager.objects.cluster import Cluster
from geo_cluster_manager.objects.geo_bounds import GeoBounds

T = TypeVar("T")
M = TypeVar("M")

ClusterMarkerBuilder = Callable[[Cluster[T]], Awaitable[M]]
ItemMarkerBuilder = Callable[[T], Awaitable[M]]
RedrawCallback = Callable[[], None]


class ViewportSource(Protocol):
    """Reads camera state from the map widget identified by `handle`."""

    async def current_zoom(self, handle: Any) -> float: ...

    async def visible_bounds(self, handle: Any) -> GeoBounds: ...


class StaticViewport:
    """In-memory viewport source; the caller moves the camera by hand.

    Explanation:
    Keeps one (bounds, zoom) pair per map handle. Useful for headless
    rendering and tests.
    """

    def __init__(self) -> None:
        self._views: dict[Hashable, tuple[GeoBounds, float]] = {}

    def set_view(self, handle: Hashable, bounds: GeoBounds, zoom: float) -> None:
        self._views[handle] = (bounds, zoom)

    def _view(self, handle: Hashable) -> tuple[GeoBounds, float]:
        try:
            return self._views[handle]
        except KeyError:
            raise KeyError(f"No view registered for map {handle!r}") from None

    async def current_zoom(self, handle: Hashable) -> float:
        return self._view(handle)[1]

    async def visible_bounds(self, handle: Hashable) -> GeoBounds:
        return self._view(handle)[0]
