"""Flow metrics, bridge detection, and influencer ranking.

Wraps NetworkX primitives with the connection-flow definitions of each
metric. Two of them differ from the textbook versions:

- The clustering coefficient averages only over nodes with degree >= 2;
  nodes that cannot form a triangle are left out rather than counted
  as zero (``nx.average_clustering`` would count them).
- ``centrality_score`` is the mean influence score, a proxy and
  not betweenness or eigenvector centrality.

Every ratio is guarded so an empty or edgeless graph yields zeros.
"""

from __future__ import annotations

import logging
from typing import Any

import networkx as nx

from netflow.graph.loader import FlowGraph
from netflow.graph.models import FlowMetrics

logger = logging.getLogger(__name__)

DEFAULT_INFLUENCER_COUNT = 5


class FlowAnalysis:
    """Compute aggregate statistics on a clustered flow graph.

    Parameters
    ----------
    flow_graph:
        Output of ``FlowGraphLoader.load`` with influence scored and
        cluster labels assigned.
    """

    def __init__(self, flow_graph: FlowGraph) -> None:
        self._flow = flow_graph
        self._graph = flow_graph.graph

    @property
    def graph(self) -> nx.Graph:
        return self._graph

    @property
    def node_count(self) -> int:
        return self._flow.node_count

    @property
    def edge_count(self) -> int:
        return self._flow.edge_count

    # -- Degree and density --------------------------------------------------

    def average_degree(self) -> float:
        if self.node_count == 0:
            return 0.0
        return 2 * self.edge_count / self.node_count

    def network_density(self) -> float:
        n = self.node_count
        if n < 2:
            return 0.0
        return self.edge_count / (n * (n - 1) / 2)

    def max_connections(self) -> int:
        return max((node.connections for node in self._flow.nodes), default=0)

    # -- Clustering ----------------------------------------------------------

    def clustering_coefficient(self) -> float:
        """Average local clustering over nodes with at least two neighbours."""
        qualifying = [n for n in self._graph.nodes if self._graph.degree(n) >= 2]
        if not qualifying:
            return 0.0
        local = nx.clustering(self._graph, qualifying)
        return sum(local[n] for n in qualifying) / len(qualifying)

    # -- Centrality proxy ----------------------------------------------------

    def centrality_score(self) -> float:
        """Mean node influence. A proxy, not graph centrality."""
        if self.node_count == 0:
            return 0.0
        return sum(node.influence for node in self._flow.nodes) / self.node_count

    # -- Bridges and influencers ---------------------------------------------

    def find_bridge_nodes(self) -> list[str]:
        """Endpoints of every edge that crosses between two clusters.

        Membership only: a node touching one cross-cluster edge counts
        the same as a node touching ten.
        """
        bridges: dict[str, None] = {}
        for edge in self._flow.edges:
            source_cluster = self._flow.node(edge.source).cluster
            target_cluster = self._flow.node(edge.target).cluster
            if source_cluster != target_cluster:
                bridges.setdefault(edge.source)
                bridges.setdefault(edge.target)
        return list(bridges)

    def find_influencers(self, top_n: int = DEFAULT_INFLUENCER_COUNT) -> list[str]:
        """Top nodes by influence; ties keep their original order."""
        ranked = sorted(self._flow.nodes, key=lambda n: n.influence, reverse=True)
        return [node.id for node in ranked[:top_n]]

    # -- Aggregates ----------------------------------------------------------

    def metrics(self) -> FlowMetrics:
        return FlowMetrics(
            total_nodes=self.node_count,
            total_edges=self.edge_count,
            average_degree=self.average_degree(),
            clustering_coefficient=self.clustering_coefficient(),
            network_density=self.network_density(),
            centrality_score=self.centrality_score(),
            bridge_nodes=self.find_bridge_nodes(),
            influencers=self.find_influencers(),
        )

    def summary(self) -> dict[str, Any]:
        """Return high-level graph statistics for logs and the CLI."""
        components = list(nx.connected_components(self._graph))

        cluster_counts: dict[str, int] = {}
        for node in self._flow.nodes:
            label = node.cluster or "unassigned"
            cluster_counts[label] = cluster_counts.get(label, 0) + 1

        return {
            "node_count": self.node_count,
            "edge_count": self.edge_count,
            "density": self.network_density(),
            "connected_components": len(components),
            "largest_component_size": max((len(c) for c in components), default=0),
            "isolated_nodes": sum(1 for node in self._flow.nodes if node.connections == 0),
            "edge_kind_distribution": dict(self._flow.stats.edge_kind_counts),
            "cluster_distribution": cluster_counts,
        }
