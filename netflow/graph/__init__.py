"""Netflow Graph Analytics Engine.

Builds relationship graphs from person and relationship records and
derives metrics, clusters, patterns, insights, and a 2D layout.

Usage::

    from netflow.graph import FlowEngine, FlowExporter

    engine = FlowEngine(min_strength=3)
    report = engine.analyze(people, relationships)

    report.metrics.bridge_nodes
    report.insights
    FlowExporter(report).to_dict()
"""

from netflow.graph.algorithms import FlowAnalysis
from netflow.graph.engine import FlowEngine
from netflow.graph.exporters import FlowExporter
from netflow.graph.layout import ForceLayout, LayoutResult
from netflow.graph.loader import FlowGraph, FlowGraphLoader, LoadStats

__all__ = [
    "FlowEngine",
    "FlowAnalysis",
    "FlowExporter",
    "FlowGraph",
    "FlowGraphLoader",
    "ForceLayout",
    "LayoutResult",
    "LoadStats",
]
