"""Attribute-based cluster detection.

Nodes are grouped by a derived key: location if known, otherwise the
domain of the email address, otherwise ``general``. Grouping ignores
graph structure; bridge detection and cluster density downstream
depend on whichever key ``cluster_key`` returns.
"""

from __future__ import annotations

import logging

from netflow.graph.loader import FlowGraph
from netflow.graph.models import ClusterKind, FlowCluster, FlowNode

logger = logging.getLogger(__name__)

DEFAULT_CLUSTER = "general"

CLUSTER_PALETTE: list[str] = [
    "#3b82f6", "#10b981", "#f59e0b", "#ef4444", "#8b5cf6",
    "#ec4899", "#06b6d4", "#84cc16", "#f97316", "#6366f1",
]

# Substring markers → cluster kind, checked in order.
CLUSTER_KIND_MARKERS: list[tuple[tuple[str, ...], ClusterKind]] = [
    (("Inc", "LLC", "Corp"), "company"),
    (("University", "College"), "school"),
    ((",",), "location"),
]

MAX_CENTRAL_NODES = 3


def cluster_key(node: FlowNode) -> str:
    """Derive the grouping key for a node."""
    location = node.metadata.get("location")
    if location:
        return location

    email = node.metadata.get("email") or ""
    if "@" in email:
        domain = email.split("@", 1)[1]
        if domain:
            return domain

    return DEFAULT_CLUSTER


def cluster_kind(name: str) -> ClusterKind:
    for markers, kind in CLUSTER_KIND_MARKERS:
        if any(marker in name for marker in markers):
            return kind
    return "interest"


def cluster_color(index: int) -> str:
    return CLUSTER_PALETTE[index % len(CLUSTER_PALETTE)]


def assign_clusters(flow_graph: FlowGraph) -> dict[str, list[str]]:
    """Label each node with its cluster key.

    Returns member ids grouped by key, in first-seen order.
    """
    groups: dict[str, list[str]] = {}
    for node in flow_graph.nodes:
        node.cluster = cluster_key(node)
        groups.setdefault(node.cluster, []).append(node.id)
    return groups


def detect_clusters(flow_graph: FlowGraph) -> list[FlowCluster]:
    """Partition the graph into clusters and describe each one."""
    groups = assign_clusters(flow_graph)

    clusters: list[FlowCluster] = []
    for index, (name, member_ids) in enumerate(groups.items()):
        size = len(member_ids)
        internal_edges = flow_graph.graph.subgraph(member_ids).number_of_edges()
        possible = size * (size - 1) / 2
        density = internal_edges / possible if size >= 2 else 0.0

        members = [flow_graph.node(mid) for mid in member_ids]
        # sorted() is stable, so equal influence keeps insertion order
        ranked = sorted(members, key=lambda n: n.influence, reverse=True)

        clusters.append(FlowCluster(
            id=f"cluster-{index}",
            name=name,
            kind=cluster_kind(name),
            size=size,
            density=density,
            central_nodes=[n.id for n in ranked[:MAX_CENTRAL_NODES]],
            color=cluster_color(index),
        ))

    logger.debug("Detected %d clusters", len(clusters))
    return clusters
