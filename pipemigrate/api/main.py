"""FastAPI application factory for the reporting API."""

from typing import Dict, List, Optional

from fastapi import FastAPI
from fastapi.middleware.cors import CORSMiddleware

from .. import __version__
from ..storage.id_map import IdMap
from .routes import reports


def create_app(id_maps: Dict[str, IdMap], cors_origins: Optional[List[str]] = None) -> FastAPI:
    """
    Build the reporting API.

    Args:
        id_maps: Migration id -> identity map exposed by the API
        cors_origins: Origins allowed to call the API from a browser

    Returns:
        FastAPI application
    """
    app = FastAPI(
        title="Pipemigrate Reporting API",
        description="Read-only access to migration identity maps and message logs",
        version=__version__,
    )
    app.state.id_maps = dict(id_maps)

    if cors_origins:
        app.add_middleware(
            CORSMiddleware,
            allow_origins=cors_origins,
            allow_credentials=True,
            allow_methods=["GET"],
            allow_headers=["*"],
        )

    app.include_router(reports.router, prefix="/api/migrations", tags=["migrations"])

    @app.get("/api/health")
    def health_check():
        """Health check endpoint."""
        return {"status": "healthy"}

    return app
