"""Person/relationship records → flow graph conversion.

People become nodes; relationships at or above the minimum strength
become undirected edges. The loader fails soft: malformed records,
unknown endpoints, and self-loops are counted in ``LoadStats`` and
skipped rather than raised, so a partially dirty snapshot still
produces a usable graph. An unparseable timestamp only blanks that
field; the record itself is kept and the field counted in
``LoadStats.invalid_timestamps``.

Parallel relationships between the same pair of people collapse into
a single edge carrying the strongest value, which keeps density and
clustering within [0, 1].
"""

from __future__ import annotations

import logging
from dataclasses import dataclass, field
from datetime import datetime
from typing import Any, Iterable

import networkx as nx

from netflow.errors import InvalidRecordError
from netflow.graph.models import (
    EdgeKind,
    FlowEdge,
    FlowNode,
    PersonRecord,
    RelationshipRecord,
)

logger = logging.getLogger(__name__)


# ---------------------------------------------------------------------------
# Edge strength semantics
# ---------------------------------------------------------------------------

DEFAULT_MIN_STRENGTH = 3

# Lower bound (inclusive) → edge kind, checked from strongest down.
EDGE_KIND_THRESHOLDS: list[tuple[float, EdgeKind]] = [
    (8, "strong"),
    (5, "moderate"),
    (3, "weak"),
]

# Baseline per-person strength; no independent signal exists upstream.
BASELINE_STRENGTH = 5
DEFAULT_NODE_SIZE = 5


def edge_kind(strength: float) -> EdgeKind:
    """Classify a relationship strength into an edge kind."""
    for threshold, kind in EDGE_KIND_THRESHOLDS:
        if strength >= threshold:
            return kind
    return "potential"


# ---------------------------------------------------------------------------
# Graph loader
# ---------------------------------------------------------------------------


@dataclass
class LoadStats:
    """Statistics from a graph loading operation."""

    nodes_loaded: int = 0
    edges_loaded: int = 0
    relationships_seen: int = 0
    below_threshold: int = 0
    orphan_references: int = 0
    self_loops: int = 0
    merged_edges: int = 0
    duplicate_people: int = 0
    skipped_records: int = 0
    invalid_timestamps: int = 0
    edge_kind_counts: dict[str, int] = field(default_factory=dict)


@dataclass
class FlowGraph:
    """Output of the graph builder.

    ``relationships`` keeps every parseable relationship, including the
    ones filtered out of ``edges``, because influence scoring counts
    the unfiltered set.
    """

    graph: nx.Graph
    nodes: list[FlowNode]
    edges: list[FlowEdge]
    relationships: list[RelationshipRecord]
    updated_at: dict[str, datetime | None]
    stats: LoadStats
    min_strength: float = DEFAULT_MIN_STRENGTH

    @property
    def node_count(self) -> int:
        return len(self.nodes)

    @property
    def edge_count(self) -> int:
        return len(self.edges)

    def node(self, node_id: str) -> FlowNode:
        return self.graph.nodes[node_id]["node"]


class FlowGraphLoader:
    """Convert person and relationship records into a flow graph.

    Parameters
    ----------
    min_strength:
        Relationships weaker than this are excluded from the edge set
        entirely. Default 3.
    max_nodes:
        Safety cap on graph size. The layout step is quadratic in node
        count, so the default of 500 keeps it bounded.
    max_edges:
        Safety cap on accepted edges. Default 1,000.
    """

    def __init__(
        self,
        min_strength: float = DEFAULT_MIN_STRENGTH,
        max_nodes: int = 500,
        max_edges: int = 1_000,
    ) -> None:
        self._min_strength = min_strength
        self._max_nodes = max_nodes
        self._max_edges = max_edges

    @property
    def min_strength(self) -> float:
        return self._min_strength

    def load(
        self,
        people: Iterable[dict[str, Any]] | None,
        relationships: Iterable[dict[str, Any]] | None,
    ) -> FlowGraph:
        """Build the flow graph from raw record dicts.

        Missing or empty collections yield an empty graph.
        """
        graph = nx.Graph()
        stats = LoadStats()
        nodes: list[FlowNode] = []
        updated_at: dict[str, datetime | None] = {}
        capped = 0

        # Pass 1: people → nodes
        for raw in people or []:
            if len(nodes) >= self._max_nodes:
                capped += 1
                continue

            try:
                person = PersonRecord.from_dict(raw)
            except InvalidRecordError as e:
                logger.debug("Skipping person record: %s", e)
                stats.skipped_records += 1
                continue
            self._note_issues(person.id, person.issues, stats)

            if person.id in graph:
                stats.duplicate_people += 1
                continue

            node = self._make_node(person)
            nodes.append(node)
            updated_at[person.id] = person.updated_at
            graph.add_node(person.id, node=node, name=node.name)
            stats.nodes_loaded += 1

        if capped:
            stats.skipped_records += capped
            logger.warning(
                "Node cap reached (%d). Skipped %d person records.",
                self._max_nodes, capped,
            )

        # Pass 2: relationships → edges
        parsed: list[RelationshipRecord] = []
        for raw in relationships or []:
            try:
                rel = RelationshipRecord.from_dict(raw)
            except InvalidRecordError as e:
                logger.debug("Skipping relationship record: %s", e)
                stats.skipped_records += 1
                continue
            self._note_issues(f"{rel.from_id}->{rel.to_id}", rel.issues, stats)
            parsed.append(rel)
        stats.relationships_seen = len(parsed)

        edges = self._build_edges(graph, parsed, stats)

        for edge in edges:
            graph.nodes[edge.source]["node"].connections += 1
            graph.nodes[edge.target]["node"].connections += 1
            stats.edge_kind_counts[edge.kind] = stats.edge_kind_counts.get(edge.kind, 0) + 1
        stats.edges_loaded = len(edges)

        logger.debug(
            "Loaded %d nodes, %d edges (min_strength=%s, %d below threshold, "
            "%d orphan references)",
            stats.nodes_loaded, stats.edges_loaded, self._min_strength,
            stats.below_threshold, stats.orphan_references,
        )

        return FlowGraph(
            graph=graph,
            nodes=nodes,
            edges=edges,
            relationships=parsed,
            updated_at=updated_at,
            stats=stats,
            min_strength=self._min_strength,
        )

    def _make_node(self, person: PersonRecord) -> FlowNode:
        metadata: dict[str, Any] = {"strength": BASELINE_STRENGTH}
        if person.email:
            metadata["email"] = person.email
        if person.location:
            metadata["location"] = person.location
        return FlowNode(
            id=person.id,
            name=person.name,
            kind="person",
            size=DEFAULT_NODE_SIZE,
            metadata=metadata,
        )

    def _build_edges(
        self,
        graph: nx.Graph,
        relationships: list[RelationshipRecord],
        stats: LoadStats,
    ) -> list[FlowEdge]:
        """Filter, validate and merge relationships into edges."""
        edges: list[FlowEdge] = []
        capped = False

        for rel in relationships:
            if not rel.strength >= self._min_strength:
                stats.below_threshold += 1
                continue

            if rel.from_id not in graph or rel.to_id not in graph:
                logger.debug(
                    "Dropping relationship %s → %s: unknown endpoint",
                    rel.from_id, rel.to_id,
                )
                stats.orphan_references += 1
                continue

            if rel.from_id == rel.to_id:
                stats.self_loops += 1
                continue

            if graph.has_edge(rel.from_id, rel.to_id):
                existing: FlowEdge = graph.edges[rel.from_id, rel.to_id]["edge"]
                stats.merged_edges += 1
                if rel.strength > existing.value:
                    existing.value = rel.strength
                    existing.kind = edge_kind(rel.strength)
                    graph.edges[rel.from_id, rel.to_id]["weight"] = rel.strength
                    existing.metadata.update(self._edge_metadata(rel))
                continue

            if len(edges) >= self._max_edges:
                capped = True
                stats.skipped_records += 1
                continue

            edge = FlowEdge(
                source=rel.from_id,
                target=rel.to_id,
                value=rel.strength,
                kind=edge_kind(rel.strength),
                direction="bidirectional",
                metadata=self._edge_metadata(rel),
            )
            edges.append(edge)
            graph.add_edge(rel.from_id, rel.to_id, edge=edge, weight=rel.strength)

        if capped:
            logger.warning(
                "Edge cap reached (%d). Skipping remaining relationships.",
                self._max_edges,
            )

        return edges

    @staticmethod
    def _note_issues(label: str, issues: list[str], stats: LoadStats) -> None:
        for issue in issues:
            logger.debug("Ignoring field on %s: %s", label, issue)
        stats.invalid_timestamps += len(issues)

    @staticmethod
    def _edge_metadata(rel: RelationshipRecord) -> dict[str, Any]:
        metadata: dict[str, Any] = {}
        if rel.created_at is not None:
            metadata["last_interaction"] = rel.created_at
        if rel.type:
            metadata["relationship_type"] = rel.type
        return metadata
