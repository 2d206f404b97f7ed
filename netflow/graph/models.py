"""Typed records for the connection-flow graph.

Input records (people, relationships) are parsed from plain dicts as
supplied by the record store. Output types (nodes, edges, clusters,
metrics, patterns) are what the rendering surface consumes.
"""

from __future__ import annotations

import math
from dataclasses import dataclass, field
from datetime import datetime, timezone
from typing import TYPE_CHECKING, Any, Literal

from netflow.errors import InvalidRecordError

if TYPE_CHECKING:
    from netflow.graph.layout import LayoutResult
    from netflow.graph.loader import LoadStats

NodeKind = Literal["person", "cluster", "hub"]
EdgeKind = Literal["strong", "moderate", "weak", "potential"]
ClusterKind = Literal["industry", "location", "interest", "company", "school"]
PatternKind = Literal["hub_and_spoke", "small_world", "community"]

STRENGTH_MIN = 1.0
STRENGTH_MAX = 10.0


def parse_timestamp(value: Any) -> datetime | None:
    """Parse an ISO-8601 string or datetime into an aware UTC datetime."""
    if value is None or value == "":
        return None
    if isinstance(value, datetime):
        dt = value
    elif isinstance(value, str):
        text = value.strip()
        if text.endswith("Z"):
            text = text[:-1] + "+00:00"
        try:
            dt = datetime.fromisoformat(text)
        except ValueError as e:
            raise InvalidRecordError(f"Invalid timestamp: {value!r}", value) from e
    else:
        raise InvalidRecordError(f"Invalid timestamp type: {type(value).__name__}", value)

    if dt.tzinfo is None:
        dt = dt.replace(tzinfo=timezone.utc)
    return dt.astimezone(timezone.utc)


def _pick(record: dict[str, Any], *keys: str) -> Any:
    for key in keys:
        value = record.get(key)
        if value is not None:
            return value
    return None


def _lenient_timestamp(
    record: dict[str, Any], issues: list[str], *keys: str,
) -> datetime | None:
    """Parse an optional timestamp field; record a bad value in ``issues``."""
    try:
        return parse_timestamp(_pick(record, *keys))
    except InvalidRecordError as e:
        issues.append(str(e))
        return None


# ---------------------------------------------------------------------------
# Input records
# ---------------------------------------------------------------------------


@dataclass
class PersonRecord:
    """A person as supplied by the record store."""

    id: str
    name: str
    location: str | None = None
    email: str | None = None
    updated_at: datetime | None = None
    issues: list[str] = field(default_factory=list, repr=False)

    @classmethod
    def from_dict(cls, record: dict[str, Any]) -> "PersonRecord":
        """Parse a person; an unparseable ``updatedAt`` becomes ``None``."""
        pid = record.get("id")
        if pid is None or pid == "":
            raise InvalidRecordError("Person record has no id", record)
        pid = str(pid)
        name = _pick(record, "name", "fullName", "full_name") or pid
        issues: list[str] = []
        return cls(
            id=pid,
            name=str(name),
            location=_pick(record, "location") or None,
            email=_pick(record, "email", "primaryEmail", "primary_email") or None,
            updated_at=_lenient_timestamp(record, issues, "updatedAt", "updated_at"),
            issues=issues,
        )


@dataclass
class RelationshipRecord:
    """A (possibly directed) relationship between two people."""

    from_id: str
    to_id: str
    strength: float
    type: str = ""
    metadata: dict[str, Any] = field(default_factory=dict)
    created_at: datetime | None = None
    issues: list[str] = field(default_factory=list, repr=False)

    @classmethod
    def from_dict(cls, record: dict[str, Any]) -> "RelationshipRecord":
        from_id = _pick(record, "fromId", "from_id", "personId", "source")
        to_id = _pick(record, "toId", "to_id", "relatedPersonId", "target")
        if from_id is None or to_id is None:
            raise InvalidRecordError("Relationship record is missing an endpoint", record)

        raw_strength = record.get("strength")
        if isinstance(raw_strength, bool):
            raise InvalidRecordError("Relationship strength must be numeric", record)
        try:
            strength = float(raw_strength)
        except (TypeError, ValueError) as e:
            raise InvalidRecordError("Relationship strength must be numeric", record) from e
        if not math.isfinite(strength) or not STRENGTH_MIN <= strength <= STRENGTH_MAX:
            raise InvalidRecordError(
                f"Relationship strength {strength!r} outside {STRENGTH_MIN:g}-{STRENGTH_MAX:g}",
                record,
            )

        issues: list[str] = []
        return cls(
            from_id=str(from_id),
            to_id=str(to_id),
            strength=strength,
            type=str(_pick(record, "type", "relationshipType") or ""),
            metadata=dict(record.get("metadata") or {}),
            created_at=_lenient_timestamp(record, issues, "createdAt", "created_at"),
            issues=issues,
        )


# ---------------------------------------------------------------------------
# Graph elements
# ---------------------------------------------------------------------------


@dataclass
class FlowNode:
    """A person in the flow graph, annotated as the pipeline runs."""

    id: str
    name: str
    kind: NodeKind = "person"
    size: float = 5
    connections: int = 0
    cluster: str | None = None
    influence: float = 0.0
    metadata: dict[str, Any] = field(default_factory=dict)
    x: float | None = None
    y: float | None = None


@dataclass
class FlowEdge:
    """An undirected, strength-filtered relationship."""

    source: str
    target: str
    value: float
    kind: EdgeKind
    direction: Literal["bidirectional", "unidirectional"] = "bidirectional"
    metadata: dict[str, Any] = field(default_factory=dict)


@dataclass
class FlowCluster:
    """A group of nodes sharing a grouping key."""

    id: str
    name: str
    kind: ClusterKind
    size: int
    density: float
    central_nodes: list[str]
    color: str


@dataclass
class FlowMetrics:
    """Aggregate statistics for the whole graph."""

    total_nodes: int = 0
    total_edges: int = 0
    average_degree: float = 0.0
    clustering_coefficient: float = 0.0
    network_density: float = 0.0
    centrality_score: float = 0.0
    bridge_nodes: list[str] = field(default_factory=list)
    influencers: list[str] = field(default_factory=list)


@dataclass
class FlowPattern:
    """A structural pattern detected in the graph."""

    kind: PatternKind
    strength: float
    description: str
    recommendations: list[str] = field(default_factory=list)


@dataclass
class FlowReport:
    """Everything one analysis run produces, ready for export."""

    nodes: list[FlowNode]
    edges: list[FlowEdge]
    clusters: list[FlowCluster]
    metrics: FlowMetrics
    patterns: list[FlowPattern]
    insights: list[str]
    timestamp: datetime
    stats: LoadStats | None = None
    layout: LayoutResult | None = None
    summary: dict[str, Any] = field(default_factory=dict)
