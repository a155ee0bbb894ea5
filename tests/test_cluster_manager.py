"""Tests for the ClusterManager update pipeline."""

import asyncio

import pytest

from geo_cluster_manager.logic.cluster_manager import ClusterManager
from geo_cluster_manager.logic.collaborators import StaticViewport
from geo_cluster_manager.logic.settings import ClusterAlgorithm, ClusterManagerSettings
from geo_cluster_manager.objects.camera_position import CameraPosition
from geo_cluster_manager.objects.geo_bounds import GeoBounds
from geo_cluster_manager.objects.geo_point import GeoPoint

from conftest import MAP_ID, RecordingRedraw, make_item, tag_cluster, tag_item


def example_items():
    return [make_item("a", 0, 0), make_item("b", 0.0001, 0.0001), make_item("c", 10, 10)]


def make_manager(viewport, items=None, settings=None, redraw=None, marker_builder=tag_item):
    return ClusterManager(
        items if items is not None else example_items(),
        viewport,
        marker_builder=marker_builder,
        update_clusters=redraw or RecordingRedraw(),
        cluster_builder=tag_cluster,
        settings=settings,
    )


def grid_items(n: int, step: float = 0.001):
    return [make_item(str(i), (i // 20) * step, (i % 20) * step) for i in range(n)]


def spy_algorithms(manager, monkeypatch):
    used = []
    geohash_run = manager._geohash_clustering.run
    max_dist_run = manager._max_dist_clustering.run
    monkeypatch.setattr(manager._geohash_clustering, "run", lambda items, level: used.append("geohash") or geohash_run(items, level))
    monkeypatch.setattr(manager._max_dist_clustering, "run", lambda items, zoom: used.append("max_dist") or max_dist_run(items, zoom))
    return used


class TestConstruction:
    def test_levels_exceeding_precision_fail(self, viewport):
        settings = ClusterManagerSettings.model_construct(
            levels=[float(i) for i in range(13)], geohash_precision=12
        )
        with pytest.raises(ValueError):
            make_manager(viewport, settings=settings)

    def test_default_cluster_builder(self, viewport):
        from geo_cluster_manager.rendering.folium_markers import basic_cluster_marker

        manager = ClusterManager([], viewport, marker_builder=tag_item, update_clusters=RecordingRedraw())
        assert manager.cluster_builder is basic_cluster_marker


class TestComputeClusters:
    @pytest.mark.asyncio
    async def test_not_associated_returns_empty(self, viewport):
        manager = make_manager(viewport)
        result = await manager.compute_clusters()
        assert result.clusterable_groups == []
        assert result.unclusterable_singles == []

    @pytest.mark.asyncio
    async def test_end_to_end_example(self, viewport):
        manager = make_manager(viewport)
        await manager.associate_with_map(MAP_ID, with_update=False)
        assert manager.zoom_mapper.find_level(manager.zoom) == 5
        result = await manager.compute_clusters()
        assert len(result.clusterable_groups) == 1
        cluster = result.clusterable_groups[0]
        assert cluster.is_multiple
        assert cluster.count == 2
        assert {i.item_id for i in cluster.items} == {"a", "b"}
        assert [i.item_id for i in result.unclusterable_singles] == ["c"]

    @pytest.mark.asyncio
    async def test_unclusterable_items_are_singles(self, viewport):
        items = [make_item("a", 0, 0), make_item("b", 0, 0, can_cluster=False), make_item("c", 0, 0)]
        manager = make_manager(viewport, items=items)
        await manager.associate_with_map(MAP_ID, with_update=False)
        result = await manager.compute_clusters()
        assert [{i.item_id for i in c.items} for c in result.clusterable_groups] == [{"a", "c"}]
        assert [i.item_id for i in result.unclusterable_singles] == ["b"]

    @pytest.mark.asyncio
    async def test_items_outside_bounds_are_dropped(self, viewport):
        # viewport is (-20..20); geohash inflation by 50% reaches 40
        items = [make_item("in", 5, 5), make_item("margin", 35, 35), make_item("out", 60, 60)]
        manager = make_manager(viewport, items=items)
        await manager.associate_with_map(MAP_ID, with_update=False)
        result = await manager.compute_clusters()
        assert {i.item_id for i in result.unclusterable_singles} == {"in", "margin"}

    @pytest.mark.asyncio
    async def test_max_dist_uses_raw_bounds(self, viewport):
        items = [make_item("in", 5, 5), make_item("margin", 35, 35)]
        settings = ClusterManagerSettings(cluster_algorithm=ClusterAlgorithm.MAX_DIST)
        manager = make_manager(viewport, items=items, settings=settings)
        await manager.associate_with_map(MAP_ID, with_update=False)
        result = await manager.compute_clusters()
        assert [i.item_id for i in result.unclusterable_singles] == ["in"]

    @pytest.mark.asyncio
    async def test_wrapped_viewport(self):
        viewport = StaticViewport()
        viewport.set_view(MAP_ID, GeoBounds(GeoPoint(-10, 170), GeoPoint(10, -170)), 3.0)
        items = [make_item("east", 0, 179.9), make_item("west", 0, -179.9), make_item("zero", 0, 0)]
        manager = make_manager(viewport, items=items)
        await manager.associate_with_map(MAP_ID, with_update=False)
        result = await manager.compute_clusters()
        seen = {i.item_id for i in result.unclusterable_singles}
        seen |= {i.item_id for c in result.clusterable_groups for i in c.items}
        assert seen == {"east", "west"}

    @pytest.mark.asyncio
    async def test_stop_clustering_zoom(self):
        viewport = StaticViewport()
        viewport.set_view(MAP_ID, GeoBounds(GeoPoint(-1, -1), GeoPoint(1, 1)), 16.0)
        items = [make_item("a", 0, 0), make_item("b", 0, 0), make_item("c", 0, 0, can_cluster=False)]
        settings = ClusterManagerSettings(stop_clustering_zoom=16.0)
        manager = make_manager(viewport, items=items, settings=settings)
        await manager.associate_with_map(MAP_ID, with_update=False)
        result = await manager.compute_clusters()
        assert len(result.clusterable_groups) == 2
        assert all(not c.is_multiple for c in result.clusterable_groups)
        assert [i.item_id for i in result.unclusterable_singles] == ["c"]

    @pytest.mark.asyncio
    async def test_below_stop_clustering_zoom_still_clusters(self):
        viewport = StaticViewport()
        viewport.set_view(MAP_ID, GeoBounds(GeoPoint(-1, -1), GeoPoint(1, 1)), 15.9)
        items = [make_item("a", 0, 0), make_item("b", 0, 0)]
        manager = make_manager(viewport, items=items, settings=ClusterManagerSettings(stop_clustering_zoom=16.0))
        await manager.associate_with_map(MAP_ID, with_update=False)
        result = await manager.compute_clusters()
        assert len(result.clusterable_groups) == 1
        assert result.clusterable_groups[0].is_multiple

    @pytest.mark.asyncio
    async def test_idempotent(self, viewport):
        manager = make_manager(viewport, items=grid_items(150))
        await manager.associate_with_map(MAP_ID, with_update=False)

        def groups(result):
            return (
                {frozenset(i.item_id for i in c.items) for c in result.clusterable_groups},
                {i.item_id for i in result.unclusterable_singles},
            )

        assert groups(await manager.compute_clusters()) == groups(await manager.compute_clusters())

    @pytest.mark.asyncio
    async def test_result_covers_visible_items(self, viewport):
        items = grid_items(150, step=0.3)
        settings = ClusterManagerSettings(cluster_algorithm=ClusterAlgorithm.MAX_DIST)
        manager = make_manager(viewport, items=items, settings=settings)
        await manager.associate_with_map(MAP_ID, with_update=False)
        result = await manager.compute_clusters()
        seen = [i.item_id for c in result.clusterable_groups for i in c.items]
        seen += [i.item_id for i in result.unclusterable_singles]
        assert sorted(seen) == sorted(i.item_id for i in items)


class TestAlgorithmSelection:
    def test_threshold_is_inclusive(self, viewport):
        settings = ClusterManagerSettings(
            cluster_algorithm=ClusterAlgorithm.MAX_DIST, max_items_for_max_dist_algo=200
        )
        manager = make_manager(viewport, settings=settings)
        assert manager.select_algorithm(200) == ClusterAlgorithm.GEOHASH
        assert manager.select_algorithm(199) == ClusterAlgorithm.MAX_DIST

    def test_geohash_configured(self, viewport):
        manager = make_manager(viewport)
        assert manager.select_algorithm(1) == ClusterAlgorithm.GEOHASH

    @pytest.mark.asyncio
    async def test_pipeline_switches_on_eligible_count(self, viewport, monkeypatch):
        settings = ClusterManagerSettings(
            cluster_algorithm=ClusterAlgorithm.MAX_DIST, max_items_for_max_dist_algo=3
        )
        manager = make_manager(viewport, items=grid_items(3), settings=settings)
        used = spy_algorithms(manager, monkeypatch)
        await manager.associate_with_map(MAP_ID, with_update=False)

        await manager.compute_clusters()
        await manager.set_items(grid_items(2))
        assert used == ["geohash", "max_dist"]

    @pytest.mark.asyncio
    async def test_unclusterable_items_do_not_count_toward_threshold(self, viewport, monkeypatch):
        settings = ClusterManagerSettings(
            cluster_algorithm=ClusterAlgorithm.MAX_DIST, max_items_for_max_dist_algo=3
        )
        items = grid_items(2) + [make_item("x", 0.5, 0.5, can_cluster=False), make_item("y", 0.6, 0.6, can_cluster=False)]
        manager = make_manager(viewport, items=items, settings=settings)
        used = spy_algorithms(manager, monkeypatch)
        await manager.associate_with_map(MAP_ID, with_update=False)

        result = await manager.compute_clusters()
        # 4 visible items, only 2 eligible
        assert used == ["max_dist"]
        assert {i.item_id for i in result.unclusterable_singles} >= {"x", "y"}

    @pytest.mark.asyncio
    @pytest.mark.parametrize("count, expected", [(200, "geohash"), (199, "max_dist")])
    async def test_pipeline_threshold_is_inclusive(self, viewport, monkeypatch, count, expected):
        settings = ClusterManagerSettings(
            cluster_algorithm=ClusterAlgorithm.MAX_DIST, max_items_for_max_dist_algo=200
        )
        manager = make_manager(viewport, items=grid_items(count), settings=settings)
        used = spy_algorithms(manager, monkeypatch)
        await manager.associate_with_map(MAP_ID, with_update=False)

        await manager.compute_clusters()
        assert used == [expected]


class TestUpdates:
    @pytest.mark.asyncio
    async def test_associate_publishes_markers(self, viewport):
        redraw = RecordingRedraw()
        manager = make_manager(viewport, redraw=redraw)
        await manager.associate_with_map(MAP_ID)
        assert manager.zoom == 12.0
        assert redraw.calls == 1
        assert set(manager.markers) == {("item", "c"), ("cluster", ("a", "b"))}

    @pytest.mark.asyncio
    async def test_set_and_add_items_recompute(self, viewport):
        redraw = RecordingRedraw()
        manager = make_manager(viewport, redraw=redraw)
        await manager.associate_with_map(MAP_ID)
        await manager.set_items([make_item("x", 1, 1)])
        assert manager.markers == (("item", "x"),)
        await manager.add_item(make_item("y", 1, 1))
        assert manager.markers == (("cluster", ("x", "y")),)
        assert [i.item_id for i in manager.items] == ["x", "y"]
        assert redraw.calls == 3

    @pytest.mark.asyncio
    async def test_set_items_prunes_geohash_cache(self, viewport):
        manager = make_manager(viewport)
        await manager.associate_with_map(MAP_ID)
        assert len(manager.geohash_cache) == 3
        await manager.set_items([make_item("x", 1, 1)])
        assert len(manager.geohash_cache) == 1

    @pytest.mark.asyncio
    async def test_camera_move_updates_zoom_without_recompute(self, viewport):
        redraw = RecordingRedraw()
        manager = make_manager(viewport, redraw=redraw)
        await manager.associate_with_map(MAP_ID)
        await manager.on_camera_move(CameraPosition(GeoPoint(0, 0), zoom=3.0))
        assert manager.zoom == 3.0
        assert redraw.calls == 1
        await manager.on_camera_move(CameraPosition(GeoPoint(0, 0), zoom=3.0), force_update=True)
        assert redraw.calls == 2
        # zoom 3 -> prefix length 1, so (10, 10) joins the others
        assert manager.markers == (("cluster", ("a", "b", "c")),)

    @pytest.mark.asyncio
    async def test_not_associated_update_publishes_nothing(self, viewport):
        redraw = RecordingRedraw()
        manager = make_manager(viewport, redraw=redraw)
        assert await manager.update_map() is True
        assert manager.markers == ()
        assert redraw.calls == 1

    @pytest.mark.asyncio
    async def test_marker_failure_keeps_previous_markers(self, viewport):
        redraw = RecordingRedraw()
        fail = {"on": False}

        async def flaky_marker(item):
            if fail["on"]:
                raise RuntimeError("icon failed")
            return ("item", item.item_id)

        manager = make_manager(viewport, redraw=redraw, marker_builder=flaky_marker)
        await manager.associate_with_map(MAP_ID)
        before = manager.markers

        fail["on"] = True
        with pytest.raises(RuntimeError):
            await manager.set_items([make_item("x", 1, 1)])
        assert manager.markers == before
        assert redraw.calls == 1

    @pytest.mark.asyncio
    async def test_viewport_failure_propagates(self):
        manager = make_manager(StaticViewport())
        with pytest.raises(KeyError):
            await manager.associate_with_map("unknown")

    @pytest.mark.asyncio
    async def test_latest_pass_wins(self, viewport):
        redraw = RecordingRedraw()
        started = asyncio.Event()
        gate = asyncio.Event()

        async def slow_marker(item):
            started.set()
            await gate.wait()
            return ("item", item.item_id)

        manager = make_manager(viewport, items=[make_item("old", 10, 10)], redraw=redraw, marker_builder=slow_marker)
        await manager.associate_with_map(MAP_ID, with_update=False)

        first = asyncio.create_task(manager.update_map())
        await started.wait()
        second = asyncio.create_task(manager.set_items([make_item("new", 10, 10)]))
        await asyncio.sleep(0)
        gate.set()

        assert await first is False
        await second
        assert redraw.calls == 1
        assert manager.markers == (("item", "new"),)

    @pytest.mark.asyncio
    async def test_queued_passes_collapse(self, viewport):
        redraw = RecordingRedraw()
        manager = make_manager(viewport, redraw=redraw)
        await manager.associate_with_map(MAP_ID, with_update=False)
        results = await asyncio.gather(manager.update_map(), manager.update_map(), manager.update_map())
        assert results[-1] is True
        assert results.count(True) == 1
        assert redraw.calls == 1
