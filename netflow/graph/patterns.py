"""Network shape classification.

Each pattern is a row in ``PATTERN_RULES``: a predicate over the graph
metrics, a strength function, and fixed description/recommendation
text. Rules are independent and several may fire for the same graph.
"""

from __future__ import annotations

import logging
from dataclasses import dataclass, field
from typing import Callable

from netflow.graph.models import FlowMetrics, FlowPattern, PatternKind

logger = logging.getLogger(__name__)


@dataclass(frozen=True)
class PatternContext:
    """The subset of metrics pattern rules read."""

    max_connections: int
    average_degree: float
    clustering_coefficient: float
    network_density: float

    @classmethod
    def from_metrics(cls, metrics: FlowMetrics, max_connections: int) -> "PatternContext":
        return cls(
            max_connections=max_connections,
            average_degree=metrics.average_degree,
            clustering_coefficient=metrics.clustering_coefficient,
            network_density=metrics.network_density,
        )


@dataclass(frozen=True)
class PatternRule:
    kind: PatternKind
    predicate: Callable[[PatternContext], bool]
    strength: Callable[[PatternContext], float]
    description: str
    recommendations: tuple[str, ...] = field(default_factory=tuple)

    def evaluate(self, ctx: PatternContext) -> FlowPattern | None:
        if not self.predicate(ctx):
            return None
        return FlowPattern(
            kind=self.kind,
            strength=self.strength(ctx),
            description=self.description,
            recommendations=list(self.recommendations),
        )


def _hub_strength(ctx: PatternContext) -> float:
    if ctx.average_degree == 0:
        return 0.0
    return (ctx.max_connections - ctx.average_degree) / ctx.average_degree


def _community_strength(ctx: PatternContext) -> float:
    sparsity = 1 - ctx.network_density
    if sparsity == 0:
        return 0.0
    return ctx.clustering_coefficient / sparsity


PATTERN_RULES: tuple[PatternRule, ...] = (
    PatternRule(
        kind="hub_and_spoke",
        predicate=lambda ctx: ctx.max_connections > 3 * ctx.average_degree,
        strength=_hub_strength,
        description="Your network has central hubs with many connections",
        recommendations=(
            "Leverage hub connections for introductions",
            "Build direct relationships to reduce dependency on hubs",
        ),
    ),
    PatternRule(
        kind="small_world",
        predicate=lambda ctx: ctx.clustering_coefficient > 0.3 and ctx.average_degree > 4,
        strength=lambda ctx: ctx.clustering_coefficient,
        description="Your network exhibits small-world properties with tight clusters",
        recommendations=(
            "Use cluster bridges for rapid information spread",
            "Identify and strengthen weak ties between clusters",
        ),
    ),
    PatternRule(
        kind="community",
        predicate=lambda ctx: ctx.network_density < 0.3 and ctx.clustering_coefficient > 0.4,
        strength=_community_strength,
        description="Your network has distinct community structures",
        recommendations=(
            "Foster cross-community connections",
            "Identify community leaders for targeted engagement",
        ),
    ),
)


def detect_patterns(
    ctx: PatternContext,
    rules: tuple[PatternRule, ...] = PATTERN_RULES,
) -> list[FlowPattern]:
    """Evaluate every rule in table order and collect the ones that fire."""
    patterns = [p for p in (rule.evaluate(ctx) for rule in rules) if p is not None]
    if patterns:
        logger.debug("Patterns detected: %s", ", ".join(p.kind for p in patterns))
    return patterns
