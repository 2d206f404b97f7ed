"""Connection-flow API — analyze an owner's relationship network over HTTP.

Endpoints:
    GET  /api/insights/connection-flow   Analyze the owner's stored snapshot
    POST /api/insights/connection-flow   Analyze a snapshot posted in the body

Each request builds its own engine and graph; nothing is shared between
requests.
"""

from __future__ import annotations

import logging
from datetime import datetime
from typing import Any, Optional

from fastapi import APIRouter, Depends, Query
from fastapi.responses import JSONResponse
from pydantic import BaseModel, ConfigDict, Field

from netflow.config.settings import settings
from netflow.errors import SnapshotError
from netflow.graph.engine import FlowEngine
from netflow.graph.exporters import FlowExporter
from netflow.sources import RecordSource, source_from_settings

logger = logging.getLogger(__name__)

router = APIRouter(prefix="/api/insights", tags=["insights"])

FAILURE_DETAIL = {"error": "Failed to analyze connection flow"}


# ---------------------------------------------------------------------------
# Request models
# ---------------------------------------------------------------------------


class PersonIn(BaseModel):
    model_config = ConfigDict(extra="allow")

    id: str
    name: str = ""
    location: Optional[str] = None
    email: Optional[str] = None
    updatedAt: Optional[datetime] = None


class RelationshipIn(BaseModel):
    model_config = ConfigDict(extra="allow")

    fromId: str
    toId: str
    strength: float = Field(..., ge=1, le=10)
    type: str = ""
    metadata: dict[str, Any] = {}
    createdAt: Optional[datetime] = None


class FlowRequest(BaseModel):
    """A snapshot to analyze directly."""
    people: list[PersonIn] = []
    relationships: list[RelationshipIn] = []
    minStrength: int = Field(3, ge=1, le=10)
    seed: Optional[int] = None
    includeLayout: bool = True


# ---------------------------------------------------------------------------
# Dependencies
# ---------------------------------------------------------------------------


def get_source() -> RecordSource:
    """Record source for stored snapshots; overridden in tests."""
    return source_from_settings(settings)


# ---------------------------------------------------------------------------
# GET /api/insights/connection-flow
# ---------------------------------------------------------------------------


@router.get("/connection-flow")
async def get_connection_flow(
    user_id: str = Query("default-user", alias="userId"),
    depth: int = Query(2, ge=1, le=5),
    min_strength: int = Query(3, alias="minStrength", ge=1, le=10),
    seed: Optional[int] = Query(None),
    source: RecordSource = Depends(get_source),
) -> Any:
    """Analyze the owner's stored network."""
    logger.info(
        "Analyzing connection flow (user=%s, depth=%d, minStrength=%d)",
        user_id, depth, min_strength,
    )
    engine = FlowEngine.from_settings(settings, min_strength=min_strength, seed=seed)

    try:
        report = await engine.analyze_from_source(source, user_id, depth=depth)
    except SnapshotError as e:
        logger.error("Failed to analyze connection flow: %s (%s)", e, e.context())
        return JSONResponse(status_code=502, content=FAILURE_DETAIL)

    return FlowExporter(report).to_dict()


# ---------------------------------------------------------------------------
# POST /api/insights/connection-flow
# ---------------------------------------------------------------------------


@router.post("/connection-flow")
async def post_connection_flow(req: FlowRequest) -> dict[str, Any]:
    """Analyze a snapshot supplied in the request body."""
    engine = FlowEngine.from_settings(
        settings,
        min_strength=req.minStrength,
        seed=req.seed,
        include_layout=req.includeLayout,
    )
    report = await engine.analyze_async(
        [p.model_dump() for p in req.people],
        [r.model_dump() for r in req.relationships],
    )
    return FlowExporter(report).to_dict()
