"""Tests for the FlowEngine pipeline and report export."""

from __future__ import annotations

import csv
import io
import json
from datetime import datetime, timezone

import pytest

from netflow.config.settings import Settings
from netflow.errors import SnapshotError
from netflow.graph.engine import FlowEngine
from netflow.graph.exporters import FlowExporter
from netflow.graph.layout import ForceLayout
from netflow.sources import InMemorySource, Snapshot

NOW = datetime(2024, 6, 1, 12, 0, tzinfo=timezone.utc)


def _person(pid: str, **fields) -> dict:
    return {"id": pid, "name": pid.upper(), **fields}


def _rel(a: str, b: str, strength: float = 5, **fields) -> dict:
    return {"fromId": a, "toId": b, "strength": strength, **fields}


@pytest.fixture
def abc():
    return [_person("a"), _person("b"), _person("c")], [_rel("a", "b"), _rel("b", "c")]


@pytest.fixture
def star():
    """One hub with twelve strong spokes."""
    people = [_person("hub")] + [_person(f"leaf{i}") for i in range(12)]
    rels = [_rel("hub", f"leaf{i}", 9) for i in range(12)]
    return people, rels


@pytest.fixture
def two_cities():
    people = [
        _person("a", location="NYC"),
        _person("b", location="NYC"),
        _person("c", location="SF"),
        _person("d", location="SF"),
    ]
    rels = [_rel("a", "b"), _rel("b", "c", 8), _rel("c", "d")]
    return people, rels


class _FailingSource:
    name = "broken"

    async def fetch(self, owner_id, depth=2):
        raise ConnectionError("store unreachable")


# ---------------------------------------------------------------------------
# Pipeline
# ---------------------------------------------------------------------------


class TestAnalyze:
    def test_abc_example(self, abc):
        report = FlowEngine(min_strength=3, include_layout=False).analyze(*abc, now=NOW)

        assert report.metrics.total_nodes == 3
        assert report.metrics.total_edges == 2
        assert report.metrics.average_degree == pytest.approx(4 / 3)
        assert report.metrics.network_density == pytest.approx(2 / 3)
        assert report.metrics.clustering_coefficient == 0
        assert report.patterns == []
        assert report.insights == [
            "With 3 connections, you have room to expand. "
            "Target strategic connections in your field.",
            "Your network is highly interconnected. "
            "This creates strong trust and information flow.",
        ]
        assert report.timestamp == NOW

    def test_abc_high_threshold(self, abc):
        report = FlowEngine(min_strength=8, include_layout=False).analyze(*abc, now=NOW)

        assert report.edges == []
        assert report.metrics.average_degree == 0
        assert report.metrics.network_density == 0
        assert report.insights[1].startswith("Your network has low density.")

    def test_empty_snapshot(self):
        report = FlowEngine().analyze([], [], now=NOW)

        assert report.nodes == []
        assert report.edges == []
        assert report.clusters == []
        assert report.patterns == []
        assert report.metrics.total_nodes == 0
        assert report.metrics.influencers == []
        assert report.insights == [
            "With 0 connections, you have room to expand. "
            "Target strategic connections in your field.",
            "Your network has low density. "
            "Consider introducing connections to each other.",
        ]

    def test_hub_and_spoke(self, star):
        report = FlowEngine(include_layout=False).analyze(*star, now=NOW)

        assert [p.kind for p in report.patterns] == ["hub_and_spoke"]
        assert report.patterns[0].strength == pytest.approx(5.5)
        assert report.metrics.influencers[0] == "hub"
        assert report.insights == [
            "With 13 connections, you have room to expand. "
            "Target strategic connections in your field.",
            "You have super-connectors in your network. "
            "They can accelerate introductions.",
        ]
        assert all(e.kind == "strong" for e in report.edges)

    def test_bridges(self, two_cities):
        report = FlowEngine(include_layout=False).analyze(*two_cities, now=NOW)

        assert report.metrics.bridge_nodes == ["b", "c"]
        assert [c.name for c in report.clusters] == ["NYC", "SF"]

    def test_summary_and_stats(self, abc):
        people, rels = abc
        report = FlowEngine(include_layout=False).analyze(
            people, rels + [_rel("a", "ghost", 9)], now=NOW,
        )
        assert report.stats.orphan_references == 1
        assert report.summary["load_stats"]["orphan_references"] == 1
        assert report.summary["connected_components"] == 1

    def test_bad_timestamp_falls_back_to_default_recency(self):
        people = [_person("a", updatedAt="yesterday"), _person("b")]
        report = FlowEngine(include_layout=False).analyze(people, [_rel("a", "b")], now=NOW)

        assert report.metrics.total_nodes == 2
        assert report.metrics.total_edges == 1
        assert report.stats.orphan_references == 0
        assert report.stats.invalid_timestamps == 1
        influence = {n.id: n.influence for n in report.nodes}
        assert influence["a"] == pytest.approx((1 * 2 + 5 + 5) / 4)
        assert influence["a"] == influence["b"]

    def test_layout_positions_every_node(self, abc):
        engine = FlowEngine(layout=ForceLayout(seed=1))
        report = engine.analyze(*abc, now=NOW)

        assert report.layout is not None
        assert report.layout.iterations_run == 50
        for node in report.nodes:
            assert 50 <= node.x <= 750
            assert 50 <= node.y <= 550

    def test_layout_disabled(self, abc):
        report = FlowEngine(include_layout=False).analyze(*abc, now=NOW)
        assert report.layout is None
        assert all(n.x is None and n.y is None for n in report.nodes)

    def test_deterministic_without_layout(self, two_cities):
        engine = FlowEngine(include_layout=False)
        first = FlowExporter(engine.analyze(*two_cities, now=NOW)).to_json()
        second = FlowExporter(engine.analyze(*two_cities, now=NOW)).to_json()
        assert first == second

    def test_deterministic_with_seeded_layout(self, star):
        engine = FlowEngine(layout=ForceLayout(seed=21))
        first = FlowExporter(engine.analyze(*star, now=NOW)).to_json()
        second = FlowExporter(engine.analyze(*star, now=NOW)).to_json()
        assert first == second


class TestAnalyzeAsync:
    @pytest.mark.asyncio
    async def test_matches_sync(self, star):
        engine = FlowEngine(layout=ForceLayout(seed=5))
        sync_report = engine.analyze(*star, now=NOW)
        async_report = await engine.analyze_async(*star, now=NOW)

        assert FlowExporter(async_report).to_dict() == FlowExporter(sync_report).to_dict()

    @pytest.mark.asyncio
    async def test_from_source(self, abc):
        engine = FlowEngine(include_layout=False)
        report = await engine.analyze_from_source(InMemorySource(*abc), "owner-1", now=NOW)
        assert report.metrics.total_edges == 2

    @pytest.mark.asyncio
    async def test_source_failure_wrapped(self):
        engine = FlowEngine()
        with pytest.raises(SnapshotError) as exc_info:
            await engine.analyze_from_source(_FailingSource(), "owner-1")

        error = exc_info.value
        assert error.source == "broken"
        assert error.owner_id == "owner-1"
        assert isinstance(error.cause, ConnectionError)
        assert error.__cause__ is error.cause
        assert "ConnectionError" in error.context()["cause"]

    @pytest.mark.asyncio
    async def test_snapshot_error_passes_through(self):
        original = SnapshotError("already wrapped", source="x")

        class Source:
            name = "x"

            async def fetch(self, owner_id, depth=2):
                raise original

        with pytest.raises(SnapshotError) as exc_info:
            await FlowEngine().analyze_from_source(Source(), "o")
        assert exc_info.value is original

    @pytest.mark.asyncio
    async def test_depth_reaches_source(self):
        seen = {}

        class Source:
            name = "recording"

            async def fetch(self, owner_id, depth=2):
                seen["depth"] = depth
                return Snapshot()

        await FlowEngine(include_layout=False).analyze_from_source(Source(), "o", depth=4)
        assert seen == {"depth": 4}


class TestFromSettings:
    def test_settings_values(self):
        engine = FlowEngine.from_settings(Settings(MIN_STRENGTH=5, LAYOUT_ENABLED=False))
        assert engine.min_strength == 5
        assert engine.analyze([_person("a")], [], now=NOW).layout is None

    def test_overrides_win(self):
        engine = FlowEngine.from_settings(Settings(MIN_STRENGTH=5), min_strength=8)
        assert engine.min_strength == 8

    def test_none_overrides_ignored(self):
        engine = FlowEngine.from_settings(
            Settings(MIN_STRENGTH=4), min_strength=None, include_layout=None,
        )
        assert engine.min_strength == 4

    def test_seed_override(self, star):
        settings = Settings(LAYOUT_SEED=1)
        first = FlowEngine.from_settings(settings, seed=77).analyze(*star, now=NOW)
        second = FlowEngine(layout=ForceLayout(seed=77)).analyze(*star, now=NOW)
        assert first.layout.positions == second.layout.positions


# ---------------------------------------------------------------------------
# Export
# ---------------------------------------------------------------------------


class TestFlowExporter:
    @pytest.fixture
    def report(self, two_cities):
        people, rels = two_cities
        rels[0]["createdAt"] = "2024-05-01T09:00:00Z"
        return FlowEngine(layout=ForceLayout(seed=2)).analyze(people, rels, now=NOW)

    def test_to_dict_shape(self, report):
        data = FlowExporter(report).to_dict()

        assert set(data) == {
            "nodes", "edges", "clusters", "metrics", "patterns", "insights", "timestamp",
        }
        assert data["timestamp"] == "2024-06-01T12:00:00+00:00"
        assert set(data["metrics"]) == {
            "totalNodes", "totalEdges", "averageDegree", "clusteringCoefficient",
            "networkDensity", "centralityScore", "bridgeNodes", "influencers",
        }
        assert data["clusters"][0]["centralNodes"]
        # "NYC" carries no comma, so it is not recognised as a location
        assert data["clusters"][0]["type"] == "interest"

    def test_node_and_edge_records(self, report):
        data = FlowExporter(report).to_dict()

        node = data["nodes"][0]
        assert node["type"] == "person"
        assert node["cluster"] == "NYC"
        assert "x" in node and "y" in node

        edge = data["edges"][0]
        assert edge["type"] == "moderate"
        assert edge["direction"] == "bidirectional"
        assert edge["metadata"]["lastInteraction"] == "2024-05-01T09:00:00+00:00"

    def test_no_coordinates_without_layout(self, two_cities):
        report = FlowEngine(include_layout=False).analyze(*two_cities, now=NOW)
        for node in FlowExporter(report).to_dict()["nodes"]:
            assert "x" not in node and "y" not in node

    def test_json_serializable(self, report):
        assert json.loads(FlowExporter(report).to_json())["metrics"]["totalNodes"] == 4

    def test_d3_links_use_indices(self, report):
        d3 = FlowExporter(report).to_d3_json()

        assert [n["id"] for n in d3["nodes"]] == ["a", "b", "c", "d"]
        assert [(l["source"], l["target"]) for l in d3["links"]] == [(0, 1), (1, 2), (2, 3)]
        assert d3["nodes"][0]["group"] == "NYC"
        assert d3["nodes"][0]["color"] == report.clusters[0].color

    def test_cytoscape_positions(self, report):
        elements = FlowExporter(report).to_cytoscape_json()["elements"]
        nodes = [e for e in elements if e["group"] == "nodes"]
        edges = [e for e in elements if e["group"] == "edges"]

        assert len(nodes) == 4
        assert all("position" in e for e in nodes)
        assert [e["data"]["id"] for e in edges] == ["e0", "e1", "e2"]

    def test_csv_tables(self, report):
        exporter = FlowExporter(report)

        nodes = list(csv.reader(io.StringIO(exporter.to_csv_nodes())))
        assert nodes[0] == ["id", "name", "cluster", "connections", "influence", "x", "y"]
        assert len(nodes) == 5

        edges = list(csv.reader(io.StringIO(exporter.to_csv_edges())))
        assert edges[0] == ["source_id", "target_id", "strength", "type", "direction"]
        assert edges[2][:2] == ["b", "c"]
        assert edges[2][3] == "strong"

    def test_csv_files(self, report, tmp_path):
        nodes_path, edges_path = FlowExporter(report).to_csv_files(tmp_path / "out")
        assert nodes_path.read_text().startswith("id,name,cluster")
        assert edges_path.read_text().startswith("source_id,target_id")
