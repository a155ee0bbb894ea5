from __future__ import annotations

import json
from enum import Enum
from pathlib import Path
from typing import Optional

from pydantic import BaseModel, ConfigDict, Field, field_validator, model_validator

from geo_cluster_manager.utility.geohash import GeohashPrecision
from geo_cluster_manager.utility.zoom_levels import DEFAULT_ZOOM_LEVELS


class ClusterAlgorithm(str, Enum):
    GEOHASH = "GEOHASH"
    MAX_DIST = "MAX_DIST"


class MaxDistParams(BaseModel):
    """Parameters of the max-distance algorithm."""
    model_config = ConfigDict(frozen=True)

    # Join radius in screen pixels
    epsilon: float = Field(default=20.0, gt=0)


class ClusterManagerSettings(BaseModel):
    """Construction-time configuration of a ClusterManager."""
    model_config = ConfigDict(frozen=True)

    levels: list[float] = Field(default_factory=lambda: list(DEFAULT_ZOOM_LEVELS))
    # Extra share of the viewport loaded on each side (0.2 = 20%)
    extra_percent: float = Field(default=0.5, ge=0)
    max_items_for_max_dist_algo: int = Field(default=200, ge=0)
    cluster_algorithm: ClusterAlgorithm = ClusterAlgorithm.GEOHASH
    max_dist_params: Optional[MaxDistParams] = None
    stop_clustering_zoom: Optional[float] = None
    geohash_precision: int = Field(default=GeohashPrecision.DEFAULT, gt=0, le=GeohashPrecision.DEFAULT)

    @field_validator("levels")
    @classmethod
    def _levels_ascending(cls, levels: list[float]) -> list[float]:
        if not levels:
            raise ValueError("levels must not be empty")
        if any(a > b for a, b in zip(levels, levels[1:])):
            raise ValueError("levels must be ascending")
        return levels

    @model_validator(mode="after")
    def _levels_fit_precision(self) -> "ClusterManagerSettings":
        if len(self.levels) > self.geohash_precision:
            raise ValueError(
                f"{len(self.levels)} zoom levels exceed geohash precision {self.geohash_precision}"
            )
        return self

    @property
    def epsilon(self) -> float:
        return (self.max_dist_params or MaxDistParams()).epsilon


def load_settings(path: Path) -> ClusterManagerSettings:
    """Load settings from JSON file."""
    data = json.loads(path.read_text())
    return ClusterManagerSettings.model_validate(data)
