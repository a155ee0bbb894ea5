#!/usr/bin/env python3
from __future__ import annotations

import argparse
import asyncio
import logging
from pathlib import Path
from typing import List, Optional, Sequence

from geo_cluster_manager.logic.cluster_manager import ClusterManager
from geo_cluster_manager.logic.collaborators import StaticViewport
from geo_cluster_manager.logic.settings import ClusterManagerSettings, load_settings
from geo_cluster_manager.objects.cluster_item import MapItem
from geo_cluster_manager.objects.geo_bounds import GeoBounds
from geo_cluster_manager.rendering.folium_markers import FoliumMarkerLayer, basic_item_marker
from geo_cluster_manager.utility.load_items import LoadMapItems

MAP_ID = 0
OUTPUT_DEFAULT = Path("outputs") / "cluster_map.html"
ZOOM_DEFAULT = 10.0


def bounds_from_items(items: List[MapItem], pad: float) -> GeoBounds:
    """Compute bounds covering all items with padding."""
    if not items:
        raise ValueError("No items to derive bounds from.")
    top = min(90.0, max(i.location.latitude for i in items) + pad)
    bottom = max(-90.0, min(i.location.latitude for i in items) - pad)
    right = min(180.0, max(i.location.longitude for i in items) + pad)
    left = max(-180.0, min(i.location.longitude for i in items) - pad)
    return GeoBounds.from_edges(north=top, south=bottom, east=right, west=left)


async def render(
    items: List[MapItem],
    bounds: GeoBounds,
    zoom: float,
    settings: ClusterManagerSettings,
    output: Path,
) -> ClusterManager[MapItem]:
    """Run a single clustering pass for the viewport and write it to HTML."""
    viewport = StaticViewport()
    viewport.set_view(MAP_ID, bounds, zoom)
    layer = FoliumMarkerLayer(output, bounds=bounds)
    manager: ClusterManager[MapItem] = ClusterManager(
        items,
        viewport,
        marker_builder=basic_item_marker,
        update_clusters=layer.redraw,
        settings=settings,
    )
    layer.bind(manager)
    await manager.associate_with_map(MAP_ID)
    return manager


def main(argv: Optional[Sequence[str]] = None) -> None:
    """Load points from CSV, cluster them for one viewport and write the map."""
    parser = argparse.ArgumentParser(
        description="Cluster points from a CSV for a map viewport and render them with folium."
    )
    parser.add_argument("csv", type=Path, help="CSV with latitude/longitude (and optional id, can_cluster, label)")
    parser.add_argument("--zoom", type=float, default=ZOOM_DEFAULT, help="Map zoom (default: 10)")
    parser.add_argument(
        "--bounds",
        nargs=4,
        type=float,
        metavar=("WEST", "SOUTH", "EAST", "NORTH"),
        help="Visible bounds (default: all items plus --pad)",
    )
    parser.add_argument("--pad", type=float, default=0.02, help="Padding in degrees for derived bounds")
    parser.add_argument("--settings", type=Path, help="JSON file with ClusterManagerSettings")
    parser.add_argument("--output", type=Path, default=OUTPUT_DEFAULT, help="HTML output path")
    parser.add_argument("--verbose", action="store_true", help="Log clustering details")
    args = parser.parse_args(argv)

    logging.basicConfig(level=logging.DEBUG if args.verbose else logging.INFO)

    items = LoadMapItems(args.csv).load_items()
    if args.bounds:
        west, south, east, north = args.bounds
        bounds = GeoBounds.from_edges(north=north, south=south, east=east, west=west)
    else:
        bounds = bounds_from_items(items, args.pad)
    settings = load_settings(args.settings) if args.settings else ClusterManagerSettings()

    print(f"Clustering {len(items):,} items in {bounds} at zoom {args.zoom}")
    manager = asyncio.run(render(items, bounds, args.zoom, settings, args.output))
    print(f"Published {len(manager.markers):,} markers to {args.output}")


if __name__ == "__main__":
    main()
