"""
FastAPI application for UI shells that talk HTTP
Starts the routine runtime with the app and stops it (writing pending edits) on shutdown
"""

from contextlib import asynccontextmanager
from typing import Optional

from fastapi import FastAPI
from fastapi.middleware.cors import CORSMiddleware

from routine_backend import __version__
from routine_backend.core.logger import get_logger
from routine_backend.handlers import register_fastapi_routes
from routine_backend.system.runtime import start_runtime, stop_runtime

logger = get_logger(__name__)


def create_app(config_file: Optional[str] = None, manage_runtime: bool = True) -> FastAPI:
    """Build the FastAPI app

    Args:
        config_file: Configuration file passed to the runtime
        manage_runtime: Start and stop the runtime with the app lifespan
    """

    @asynccontextmanager
    async def lifespan(app: FastAPI):
        if manage_runtime:
            await start_runtime(config_file)
        try:
            yield
        finally:
            if manage_runtime:
                await stop_runtime(quiet=True)

    app = FastAPI(
        title="Daily Routine API",
        description="Routine schedule and sync commands for the UI shell",
        version=__version__,
        lifespan=lifespan,
    )

    # Add CORS middleware for development
    app.add_middleware(
        CORSMiddleware,
        allow_origins=["*"],
        allow_credentials=True,
        allow_methods=["*"],
        allow_headers=["*"],
    )

    @app.get("/health")
    async def health_check():
        """Health check endpoint"""
        return {"status": "healthy"}

    register_fastapi_routes(app, prefix="/api")
    logger.info("FastAPI routes registered successfully")
    return app
