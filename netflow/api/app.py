"""Netflow — FastAPI application factory.

Usage:
    uvicorn netflow.api.app:create_app --factory --reload --port 8000

Or for production:
    uvicorn netflow.api.app:app --host 0.0.0.0 --port 8000 --workers 4
"""

from __future__ import annotations

import logging

from fastapi import FastAPI
from fastapi.middleware.cors import CORSMiddleware

from netflow import __version__

logger = logging.getLogger("netflow.api")


def create_app(include_docs: bool = True) -> FastAPI:
    """Build and return the FastAPI application."""
    app = FastAPI(
        title="Netflow",
        description="Relationship network analytics",
        version=__version__,
        docs_url="/docs" if include_docs else None,
        redoc_url="/redoc" if include_docs else None,
        openapi_url="/openapi.json" if include_docs else None,
    )

    # CORS: the graph view is served from a separate frontend
    app.add_middleware(
        CORSMiddleware,
        allow_origins=["*"],
        allow_methods=["GET", "POST"],
        allow_headers=["*"],
    )

    from netflow.api.routes.connection_flow import router as flow_router
    app.include_router(flow_router)

    @app.get("/api/health")
    async def health():
        """Liveness check."""
        return {"status": "ok", "version": __version__}

    logger.debug("Netflow v%s app created", __version__)
    return app


# Default app instance for `uvicorn netflow.api.app:app`
app = create_app()
