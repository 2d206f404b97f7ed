"""Templated natural-language observations about a flow graph.

``INSIGHT_RULES`` is evaluated top to bottom; every rule whose
predicate holds contributes one message, so output order always
follows table order.
"""

from __future__ import annotations

from dataclasses import dataclass
from typing import Callable

from netflow.graph.models import FlowMetrics, FlowPattern, PatternKind


@dataclass(frozen=True)
class InsightContext:
    node_count: int
    cluster_count: int
    metrics: FlowMetrics
    patterns: tuple[FlowPattern, ...] = ()

    def pattern_strength(self, kind: PatternKind) -> float | None:
        for pattern in self.patterns:
            if pattern.kind == kind:
                return pattern.strength
        return None

    def pattern_above(self, kind: PatternKind, threshold: float) -> bool:
        strength = self.pattern_strength(kind)
        return strength is not None and strength > threshold

    def template_fields(self) -> dict[str, object]:
        return {
            "node_count": self.node_count,
            "cluster_count": self.cluster_count,
            "density": self.metrics.network_density,
            "clustering": self.metrics.clustering_coefficient,
        }


@dataclass(frozen=True)
class InsightRule:
    name: str
    predicate: Callable[[InsightContext], bool]
    template: str

    def render(self, ctx: InsightContext) -> str | None:
        if not self.predicate(ctx):
            return None
        return self.template.format(**ctx.template_fields())


INSIGHT_RULES: tuple[InsightRule, ...] = (
    InsightRule(
        name="large_network",
        predicate=lambda ctx: ctx.node_count > 100,
        template=(
            "Your network of {node_count} connections is large and diverse. "
            "Focus on quality over quantity."
        ),
    ),
    InsightRule(
        name="small_network",
        predicate=lambda ctx: ctx.node_count < 30,
        template=(
            "With {node_count} connections, you have room to expand. "
            "Target strategic connections in your field."
        ),
    ),
    InsightRule(
        name="high_density",
        predicate=lambda ctx: ctx.metrics.network_density > 0.5,
        template=(
            "Your network is highly interconnected. "
            "This creates strong trust and information flow."
        ),
    ),
    InsightRule(
        name="low_density",
        predicate=lambda ctx: ctx.metrics.network_density < 0.1,
        template=(
            "Your network has low density. "
            "Consider introducing connections to each other."
        ),
    ),
    InsightRule(
        name="tight_knit",
        predicate=lambda ctx: ctx.metrics.clustering_coefficient > 0.5,
        template=(
            "High clustering indicates tight-knit groups. "
            "Leverage these for deep collaboration."
        ),
    ),
    InsightRule(
        name="super_connectors",
        predicate=lambda ctx: ctx.pattern_above("hub_and_spoke", 2),
        template=(
            "You have super-connectors in your network. "
            "They can accelerate introductions."
        ),
    ),
    InsightRule(
        name="strong_communities",
        predicate=lambda ctx: ctx.pattern_above("community", 1.5),
        template=(
            "Strong community structures detected. "
            "Bridge these communities for unique opportunities."
        ),
    ),
    InsightRule(
        name="cluster_diversity",
        predicate=lambda ctx: ctx.cluster_count > 5,
        template=(
            "Your network spans {cluster_count} distinct clusters. "
            "This diversity is valuable for innovation."
        ),
    ),
)


def generate_insights(
    ctx: InsightContext,
    rules: tuple[InsightRule, ...] = INSIGHT_RULES,
) -> list[str]:
    messages = (rule.render(ctx) for rule in rules)
    return [m for m in messages if m is not None]
