import logging
from pathlib import Path
from typing import List, Optional

import polars as pl

from geo_cluster_manager.objects.cluster_item import MapItem
from geo_cluster_manager.objects.geo_bounds import GeoBounds
from geo_cluster_manager.objects.geo_point import GeoPoint

logger = logging.getLogger(__name__)


class LoadMapItems:
    """Load point items from a CSV file."""

    ITEM_SCHEMA = {
        "id": pl.Utf8,
        "latitude": pl.Float64,
        "longitude": pl.Float64,
        "can_cluster": pl.Boolean,
        "label": pl.Utf8,
    }

    def __init__(self, csv_path: Path) -> None:
        """Init loader.

        Args:
            csv_path: CSV with `latitude`/`longitude` columns and optional
                `id`, `can_cluster` and `label` columns.
        """
        self.csv_path = csv_path

    def load_items(self, bbox: Optional[GeoBounds] = None) -> List[MapItem]:
        """Load items with coordinates, optionally restricted to bounds.

        Args:
            bbox: Optional bounds to spatially filter items.

        Returns:
            List of MapItem; missing ids default to the row number and
            missing `can_cluster` values to True.
        """
        if not self.csv_path.exists():
            raise FileNotFoundError(f"Item data missing: {self.csv_path}")

        columns = pl.scan_csv(self.csv_path).collect_schema().names()
        overrides = {name: dtype for name, dtype in self.ITEM_SCHEMA.items() if name in columns}
        scan = pl.scan_csv(self.csv_path, schema_overrides=overrides, null_values=[""])
        scan = scan.with_row_index("row_nr").with_columns(
            [
                (pl.col("id") if "id" in columns else pl.lit(None, dtype=pl.Utf8))
                .fill_null(pl.col("row_nr").cast(pl.Utf8))
                .alias("id"),
                (pl.col("can_cluster") if "can_cluster" in columns else pl.lit(None, dtype=pl.Boolean))
                .fill_null(True)
                .alias("can_cluster"),
                (pl.col("label") if "label" in columns else pl.lit(None, dtype=pl.Utf8)).alias("label"),
            ]
        )
        rows = (
            scan.filter(pl.col("latitude").is_not_null() & pl.col("longitude").is_not_null())
            .select(["id", "latitude", "longitude", "can_cluster", "label"])
            .collect()
        )
        items = [
            MapItem(
                item_id=row["id"],
                location=GeoPoint(row["latitude"], row["longitude"]),
                can_cluster=bool(row["can_cluster"]),
                label=row["label"],
            )
            for row in rows.iter_rows(named=True)
        ]
        if bbox is not None:
            items = [item for item in items if bbox.contains(item.location)]
        logger.info("Loaded items: %d", len(items))
        return items
