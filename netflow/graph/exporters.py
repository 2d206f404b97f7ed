"""Flow report export for rendering surfaces and external tools.

Supported formats:
  - Connection-flow JSON: the record the web graph view consumes
    (camelCase keys, ISO timestamps)
  - D3 JSON: nodes/links with index references
  - Cytoscape JSON: elements with preset positions from the layout
  - CSV: node and edge tables for spreadsheet analysis
"""

from __future__ import annotations

import csv
import io
import json
import logging
from datetime import datetime
from pathlib import Path
from typing import Any

from netflow.graph.models import (
    FlowCluster,
    FlowEdge,
    FlowMetrics,
    FlowNode,
    FlowPattern,
    FlowReport,
)

logger = logging.getLogger(__name__)


def _camel(key: str) -> str:
    head, *rest = key.split("_")
    return head + "".join(part.title() for part in rest)


def _jsonable(value: Any) -> Any:
    if isinstance(value, datetime):
        return value.isoformat()
    if isinstance(value, dict):
        return {_camel(str(k)): _jsonable(v) for k, v in value.items()}
    if isinstance(value, (list, tuple)):
        return [_jsonable(v) for v in value]
    return value


class FlowExporter:
    """Export a ``FlowReport`` in various formats.

    Parameters
    ----------
    report:
        The analysis result to export.
    """

    def __init__(self, report: FlowReport) -> None:
        self._report = report

    # -- Connection-flow JSON ------------------------------------------------

    def to_dict(self) -> dict[str, Any]:
        """The response record: nodes, edges, clusters, metrics, patterns,
        insights and a generation timestamp."""
        report = self._report
        return {
            "nodes": [self._node_dict(n) for n in report.nodes],
            "edges": [self._edge_dict(e) for e in report.edges],
            "clusters": [self._cluster_dict(c) for c in report.clusters],
            "metrics": self._metrics_dict(report.metrics),
            "patterns": [self._pattern_dict(p) for p in report.patterns],
            "insights": list(report.insights),
            "timestamp": report.timestamp.isoformat(),
        }

    def to_json(self, indent: int | None = 2) -> str:
        return json.dumps(self.to_dict(), indent=indent)

    @staticmethod
    def _node_dict(node: FlowNode) -> dict[str, Any]:
        data: dict[str, Any] = {
            "id": node.id,
            "name": node.name,
            "type": node.kind,
            "size": node.size,
            "connections": node.connections,
            "influence": node.influence,
            "metadata": _jsonable(node.metadata),
        }
        if node.cluster is not None:
            data["cluster"] = node.cluster
        if node.x is not None and node.y is not None:
            data["x"] = node.x
            data["y"] = node.y
        return data

    @staticmethod
    def _edge_dict(edge: FlowEdge) -> dict[str, Any]:
        return {
            "source": edge.source,
            "target": edge.target,
            "value": edge.value,
            "type": edge.kind,
            "direction": edge.direction,
            "metadata": _jsonable(edge.metadata),
        }

    @staticmethod
    def _cluster_dict(cluster: FlowCluster) -> dict[str, Any]:
        return {
            "id": cluster.id,
            "name": cluster.name,
            "type": cluster.kind,
            "size": cluster.size,
            "density": cluster.density,
            "centralNodes": list(cluster.central_nodes),
            "color": cluster.color,
        }

    @staticmethod
    def _metrics_dict(metrics: FlowMetrics) -> dict[str, Any]:
        return {
            "totalNodes": metrics.total_nodes,
            "totalEdges": metrics.total_edges,
            "averageDegree": metrics.average_degree,
            "clusteringCoefficient": metrics.clustering_coefficient,
            "networkDensity": metrics.network_density,
            "centralityScore": metrics.centrality_score,
            "bridgeNodes": list(metrics.bridge_nodes),
            "influencers": list(metrics.influencers),
        }

    @staticmethod
    def _pattern_dict(pattern: FlowPattern) -> dict[str, Any]:
        return {
            "type": pattern.kind,
            "strength": pattern.strength,
            "description": pattern.description,
            "recommendations": list(pattern.recommendations),
        }

    # -- D3 JSON -------------------------------------------------------------

    def to_d3_json(self) -> dict[str, Any]:
        """Export to D3.js force-directed JSON format."""
        nodes = []
        node_index: dict[str, int] = {}
        colors = {c.name: c.color for c in self._report.clusters}

        for i, node in enumerate(self._report.nodes):
            node_index[node.id] = i
            entry: dict[str, Any] = {
                "id": node.id,
                "name": node.name,
                "group": node.cluster or "general",
                "color": colors.get(node.cluster or "", "#95A5A6"),
                "influence": node.influence,
            }
            if node.x is not None:
                entry["x"], entry["y"] = node.x, node.y
            nodes.append(entry)

        links = [
            {
                "source": node_index[e.source],
                "target": node_index[e.target],
                "value": e.value,
                "type": e.kind,
            }
            for e in self._report.edges
            if e.source in node_index and e.target in node_index
        ]

        return {"nodes": nodes, "links": links}

    # -- Cytoscape JSON ------------------------------------------------------

    def to_cytoscape_json(self) -> dict[str, Any]:
        """Export to Cytoscape.js elements, positioned when laid out."""
        elements: list[dict[str, Any]] = []
        colors = {c.name: c.color for c in self._report.clusters}

        for node in self._report.nodes:
            element: dict[str, Any] = {
                "data": {
                    "id": node.id,
                    "label": node.name,
                    "cluster": node.cluster or "",
                    "color": colors.get(node.cluster or "", "#95A5A6"),
                    "influence": node.influence,
                    "connections": node.connections,
                },
                "group": "nodes",
            }
            if node.x is not None and node.y is not None:
                element["position"] = {"x": node.x, "y": node.y}
            elements.append(element)

        for i, edge in enumerate(self._report.edges):
            elements.append({
                "data": {
                    "id": f"e{i}",
                    "source": edge.source,
                    "target": edge.target,
                    "label": edge.kind,
                    "weight": edge.value,
                },
                "group": "edges",
            })

        return {"elements": elements}

    # -- CSV -----------------------------------------------------------------

    def to_csv_nodes(self) -> str:
        """Export node table as CSV string."""
        output = io.StringIO()
        writer = csv.writer(output)
        writer.writerow(["id", "name", "cluster", "connections", "influence", "x", "y"])

        for node in self._report.nodes:
            writer.writerow([
                node.id,
                node.name,
                node.cluster or "",
                node.connections,
                f"{node.influence:.4f}",
                "" if node.x is None else f"{node.x:.2f}",
                "" if node.y is None else f"{node.y:.2f}",
            ])

        return output.getvalue()

    def to_csv_edges(self) -> str:
        """Export edge table as CSV string."""
        output = io.StringIO()
        writer = csv.writer(output)
        writer.writerow(["source_id", "target_id", "strength", "type", "direction"])

        for edge in self._report.edges:
            writer.writerow([edge.source, edge.target, edge.value, edge.kind, edge.direction])

        return output.getvalue()

    def to_csv_files(self, directory: str | Path) -> tuple[Path, Path]:
        """Write node and edge CSV files to a directory."""
        directory = Path(directory)
        directory.mkdir(parents=True, exist_ok=True)

        nodes_path = directory / "nodes.csv"
        edges_path = directory / "edges.csv"

        nodes_path.write_text(self.to_csv_nodes())
        edges_path.write_text(self.to_csv_edges())

        logger.info("Exported CSV to %s (nodes + edges)", directory)
        return nodes_path, edges_path
