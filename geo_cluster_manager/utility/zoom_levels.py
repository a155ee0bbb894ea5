from bisect import bisect_right
from typing import Sequence

DEFAULT_ZOOM_LEVELS = (1.0, 4.25, 6.75, 8.25, 11.5, 14.5, 16.0, 16.5, 20.0)


class ZoomLevelMapper:
    """Map a continuous map zoom onto the configured breakpoint table."""

    levels: tuple[float, ...]

    def __init__(self, levels: Sequence[float] = DEFAULT_ZOOM_LEVELS) -> None:
        """Init mapper.

        Args:
            levels: Ascending zoom thresholds, world view first.
        """
        if not levels:
            raise ValueError("At least one zoom level is required")
        if any(a > b for a, b in zip(levels, levels[1:])):
            raise ValueError(f"Zoom levels must be ascending, got {list(levels)}")
        self.levels = tuple(float(level) for level in levels)

    def _reached(self, zoom: float) -> int:
        """Number of thresholds that are <= zoom."""
        return bisect_right(self.levels, zoom)

    def find_level(self, zoom: float) -> int:
        """1-based index of the highest threshold <= zoom, or 1 below the table.

        Used directly as the geohash prefix length.
        """
        return max(self._reached(zoom), 1)

    def level_to_int_zoom(self, zoom: float) -> int:
        """Integer value of the highest threshold <= zoom, or 1 below the table."""
        reached = self._reached(zoom)
        if reached == 0:
            return 1
        return int(self.levels[reached - 1])
