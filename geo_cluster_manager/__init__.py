"""Viewport-driven clustering of geolocated map items."""

from geo_cluster_manager.logic.cluster_manager import ClusterManager
from geo_cluster_manager.logic.collaborators import StaticViewport, ViewportSource
from geo_cluster_manager.logic.geohash_clustering import GeohashClustering
from geo_cluster_manager.logic.max_dist_clustering import MaxDistClustering
from geo_cluster_manager.logic.settings import (
    ClusterAlgorithm,
    ClusterManagerSettings,
    MaxDistParams,
    load_settings,
)
from geo_cluster_manager.objects.camera_position import CameraPosition
from geo_cluster_manager.objects.cluster import Cluster, ClusterResult
from geo_cluster_manager.objects.cluster_item import ClusterItem, MapItem
from geo_cluster_manager.objects.geo_bounds import GeoBounds
from geo_cluster_manager.objects.geo_point import GeoPoint
from geo_cluster_manager.utility.geohash import GeohashEncoder, GeohashPrecision
from geo_cluster_manager.utility.zoom_levels import ZoomLevelMapper

__all__ = [
    "CameraPosition",
    "Cluster",
    "ClusterAlgorithm",
    "ClusterItem",
    "ClusterManager",
    "ClusterManagerSettings",
    "ClusterResult",
    "GeoBounds",
    "GeoPoint",
    "GeohashClustering",
    "GeohashEncoder",
    "GeohashPrecision",
    "MapItem",
    "MaxDistClustering",
    "MaxDistParams",
    "StaticViewport",
    "ViewportSource",
    "ZoomLevelMapper",
    "load_settings",
]
