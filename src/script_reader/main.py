"""
FastAPI Application Entry Point.

Creates the FastAPI application for the script-reader service.

Usage:
    # Run with uvicorn
    uvicorn script_reader.main:app --host 0.0.0.0 --port 8000

    # Or use the module directly
    python -m uvicorn script_reader.main:app --reload
"""
from __future__ import annotations

from contextlib import asynccontextmanager

from fastapi import FastAPI

from script_reader import __version__
from script_reader.api.routes import router
from script_reader.core.logging import configure_logging, get_logger, info
from script_reader.services.reader_service import reset_service

_LOG = get_logger("script-reader.app")


@asynccontextmanager
async def lifespan(app: FastAPI):
    info(_LOG, "startup", version=__version__)
    yield
    # Release held audio and close the backend client
    reset_service()
    info(_LOG, "shutdown")


def create_app() -> FastAPI:
    """
    Create and configure the FastAPI application.

    Returns:
        FastAPI: Configured application instance ready to serve requests.
    """
    # Initialize structured logging (reads SCRIPT_READER_LOG_LEVEL env var)
    configure_logging()

    app = FastAPI(title="script-reader", version=__version__, lifespan=lifespan)
    app.include_router(router)
    return app


# Global application instance for ASGI servers (uvicorn, gunicorn, etc.)
app = create_app()
