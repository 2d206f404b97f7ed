"""Per-node influence scoring.

Influence blends how many relationships touch a person, a fixed
baseline strength, and how recently the person's record changed::

    influence = (direct_connections * 2 + strength + recency) / 4

``direct_connections`` counts the *unfiltered* relationship set, so a
person with many weak ties still scores above an isolated one even
when those ties fall below the edge threshold.
"""

from __future__ import annotations

import logging
from collections import Counter
from datetime import datetime, timezone

from netflow.graph.loader import BASELINE_STRENGTH, FlowGraph

logger = logging.getLogger(__name__)

RECENCY_CEILING = 10.0
RECENCY_DEFAULT = 5.0
DAYS_PER_RECENCY_POINT = 30.0


def recency_score(updated_at: datetime | None, now: datetime) -> float:
    """Ten points for a fresh record, minus one per 30 days of staleness."""
    if updated_at is None:
        return RECENCY_DEFAULT
    days = (now - updated_at).total_seconds() / 86_400
    return max(0.0, RECENCY_CEILING - days / DAYS_PER_RECENCY_POINT)


def influence_score(
    direct_connections: int,
    recency: float,
    strength: float = BASELINE_STRENGTH,
) -> float:
    return (direct_connections * 2 + strength + recency) / 4


def score_influence(flow_graph: FlowGraph, now: datetime | None = None) -> dict[str, float]:
    """Annotate every node with its influence and return the scores by id."""
    now = now or datetime.now(timezone.utc)

    touches: Counter[str] = Counter()
    for rel in flow_graph.relationships:
        touches[rel.from_id] += 1
        if rel.to_id != rel.from_id:
            touches[rel.to_id] += 1

    scores: dict[str, float] = {}
    for node in flow_graph.nodes:
        recency = recency_score(flow_graph.updated_at.get(node.id), now)
        node.influence = influence_score(touches[node.id], recency)
        scores[node.id] = node.influence

    if scores:
        logger.debug(
            "Scored influence for %d nodes (max %.2f)",
            len(scores), max(scores.values()),
        )
    return scores
