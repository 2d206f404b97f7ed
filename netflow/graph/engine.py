"""Connection-flow engine — high-level orchestrator.

Runs the full pipeline on one snapshot of people and relationships:

    build → influence → clusters → metrics → patterns / bridges
          → insights, with the layout running alongside

Usage::

    engine = FlowEngine(min_strength=3)
    report = engine.analyze(people, relationships)

    report.metrics.influencers
    FlowExporter(report).to_dict()

Every call works on its own graph; the engine holds configuration only,
so one instance can serve concurrent requests.
"""

from __future__ import annotations

import asyncio
import logging
from dataclasses import asdict
from datetime import datetime, timezone
from typing import Any, Iterable

from netflow.errors import SnapshotError
from netflow.graph.algorithms import FlowAnalysis
from netflow.graph.clusters import detect_clusters
from netflow.graph.influence import score_influence
from netflow.graph.insights import InsightContext, generate_insights
from netflow.graph.layout import ForceLayout, LayoutResult
from netflow.graph.loader import DEFAULT_MIN_STRENGTH, FlowGraph, FlowGraphLoader
from netflow.graph.models import FlowCluster, FlowMetrics, FlowPattern, FlowReport
from netflow.graph.patterns import PatternContext, detect_patterns

logger = logging.getLogger(__name__)

Records = Iterable[dict[str, Any]] | None


class FlowEngine:
    """Build and analyze relationship flow graphs.

    Parameters
    ----------
    min_strength:
        Minimum relationship strength for an edge. Default 3.
    max_nodes, max_edges:
        Input caps; see ``FlowGraphLoader``.
    layout:
        Layout engine to use. ``None`` uses a default ``ForceLayout``.
    include_layout:
        Skip the layout step entirely when False.
    """

    def __init__(
        self,
        min_strength: float = DEFAULT_MIN_STRENGTH,
        max_nodes: int = 500,
        max_edges: int = 1_000,
        layout: ForceLayout | None = None,
        include_layout: bool = True,
    ) -> None:
        self._loader = FlowGraphLoader(
            min_strength=min_strength,
            max_nodes=max_nodes,
            max_edges=max_edges,
        )
        self._layout = layout or ForceLayout()
        self._include_layout = include_layout

    @classmethod
    def from_settings(cls, settings: Any, **overrides: Any) -> "FlowEngine":
        """Construct an engine from a ``Settings`` object.

        Keyword overrides (``min_strength``, ``seed``, ``include_layout``)
        take precedence over the settings values.
        """
        seed = overrides.pop("seed", None)
        layout = ForceLayout(
            width=settings.LAYOUT_WIDTH,
            height=settings.LAYOUT_HEIGHT,
            iterations=settings.LAYOUT_ITERATIONS,
            seed=seed if seed is not None else settings.LAYOUT_SEED,
            timeout_seconds=settings.LAYOUT_TIMEOUT,
            grid_threshold=settings.GRID_THRESHOLD,
        )
        params: dict[str, Any] = {
            "min_strength": settings.MIN_STRENGTH,
            "max_nodes": settings.MAX_NODES,
            "max_edges": settings.MAX_EDGES,
            "include_layout": settings.LAYOUT_ENABLED,
        }
        params.update({k: v for k, v in overrides.items() if v is not None})
        return cls(layout=layout, **params)

    @property
    def min_strength(self) -> float:
        return self._loader.min_strength

    # -- Pipeline stages -----------------------------------------------------

    def build(self, people: Records, relationships: Records) -> FlowGraph:
        """Build the strength-filtered graph without analysing it."""
        return self._loader.load(people, relationships)

    def _analyze_structure(
        self,
        flow_graph: FlowGraph,
        now: datetime,
    ) -> tuple[list[FlowCluster], FlowMetrics, list[FlowPattern], list[str], dict[str, Any]]:
        score_influence(flow_graph, now=now)
        clusters = detect_clusters(flow_graph)

        analysis = FlowAnalysis(flow_graph)
        metrics = analysis.metrics()

        patterns = detect_patterns(
            PatternContext.from_metrics(metrics, analysis.max_connections())
        )
        insights = generate_insights(InsightContext(
            node_count=flow_graph.node_count,
            cluster_count=len(clusters),
            metrics=metrics,
            patterns=tuple(patterns),
        ))

        summary = {
            **analysis.summary(),
            "load_stats": asdict(flow_graph.stats),
        }
        return clusters, metrics, patterns, insights, summary

    def _compute_layout(self, flow_graph: FlowGraph) -> LayoutResult | None:
        if not self._include_layout:
            return None
        return self._layout.compute([n.id for n in flow_graph.nodes], flow_graph.edges)

    def _assemble(
        self,
        flow_graph: FlowGraph,
        structure: tuple[list[FlowCluster], FlowMetrics, list[FlowPattern], list[str], dict[str, Any]],
        layout: LayoutResult | None,
        now: datetime,
    ) -> FlowReport:
        clusters, metrics, patterns, insights, summary = structure
        if layout is not None:
            layout.apply(flow_graph.nodes)

        logger.info(
            "Connection flow analyzed: %d nodes, %d edges, %d clusters, "
            "%d patterns, %d insights",
            metrics.total_nodes, metrics.total_edges, len(clusters),
            len(patterns), len(insights),
        )

        return FlowReport(
            nodes=flow_graph.nodes,
            edges=flow_graph.edges,
            clusters=clusters,
            metrics=metrics,
            patterns=patterns,
            insights=insights,
            timestamp=now,
            stats=flow_graph.stats,
            layout=layout,
            summary=summary,
        )

    # -- Entry points --------------------------------------------------------

    def analyze(
        self,
        people: Records,
        relationships: Records,
        now: datetime | None = None,
    ) -> FlowReport:
        """Run the full pipeline synchronously.

        ``now`` pins both the recency reference and the report timestamp,
        which makes the output reproducible apart from the layout.
        """
        now = now or datetime.now(timezone.utc)
        flow_graph = self.build(people, relationships)
        structure = self._analyze_structure(flow_graph, now)
        layout = self._compute_layout(flow_graph)
        return self._assemble(flow_graph, structure, layout, now)

    async def analyze_async(
        self,
        people: Records,
        relationships: Records,
        now: datetime | None = None,
    ) -> FlowReport:
        """Run the pipeline with the layout in a worker thread.

        The layout depends only on the builder output, so it runs
        concurrently with metrics and insight generation.
        """
        now = now or datetime.now(timezone.utc)
        flow_graph = self.build(people, relationships)

        layout_task = asyncio.create_task(asyncio.to_thread(self._compute_layout, flow_graph))
        try:
            structure = self._analyze_structure(flow_graph, now)
        except BaseException:
            layout_task.cancel()
            raise
        layout = await layout_task

        return self._assemble(flow_graph, structure, layout, now)

    async def analyze_from_source(
        self,
        source: Any,
        owner_id: str,
        depth: int = 2,
        now: datetime | None = None,
    ) -> FlowReport:
        """Fetch a snapshot from a ``RecordSource`` and analyze it.

        Any failure to retrieve the snapshot surfaces as a single
        ``SnapshotError``; there is no retry here.
        """
        source_name = getattr(source, "name", type(source).__name__)
        try:
            snapshot = await source.fetch(owner_id, depth=depth)
        except SnapshotError:
            raise
        except Exception as e:
            error = SnapshotError(
                f"Failed to fetch snapshot for owner {owner_id!r} from {source_name}",
                source=source_name,
                owner_id=owner_id,
                cause=e,
            )
            logger.error("Snapshot fetch failed: %s", error.context())
            raise error from e

        logger.info(
            "Fetched snapshot from %s: %d people, %d relationships (depth=%d)",
            source_name, len(snapshot.people), len(snapshot.relationships), depth,
        )
        return await self.analyze_async(snapshot.people, snapshot.relationships, now=now)
