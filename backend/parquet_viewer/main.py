"""FastAPI application entrypoint and configuration.

This module provides the main FastAPI application factory that configures
logging, sets up CORS middleware, includes the Parquet layer router, and
exposes a health check endpoint for monitoring.

Example:
    The application can be run with uvicorn:
        $ uvicorn parquet_viewer.main:app --reload

    Or imported and used programmatically:
        >>> from parquet_viewer.main import app
        >>> # Use app in ASGI server
"""

import logging

import fastapi
from fastapi.middleware import cors

from parquet_viewer.api import parquet
from parquet_viewer.core import config


def create_app() -> fastapi.FastAPI:
    """Create and configure the FastAPI application.

    Configures root logging at the configured level, includes the Parquet
    layer router, and adds a health check endpoint. CORS origins are
    configured from settings so a browser-based map can call the API.

    Returns:
        Configured FastAPI application instance ready for ASGI server.
    """
    settings = config.get_settings()
    logging.basicConfig(
        level=settings.log_level.upper(),
        format="%(asctime)s %(levelname)s %(name)s: %(message)s",
    )
    app = fastapi.FastAPI(title="Parquet Map Viewer", version="0.1.0")

    app.include_router(parquet.router)

    app.add_middleware(
        cors.CORSMiddleware,  # type: ignore[arg-type]
        allow_origins=settings.allow_origins,
        allow_methods=["*"],
        allow_headers=["*"],
    )

    @app.get("/health")
    async def health() -> dict[str, str]:  # type: ignore[misc]
        """Health check endpoint for monitoring and load balancers.

        Returns:
            Dictionary with status "ok" if the service is running.
        """
        return {"status": "ok"}

    return app


app = create_app()
