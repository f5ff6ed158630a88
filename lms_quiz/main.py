"""
LMS Quiz Engine
Main application entry point
"""

import asyncio
import logging
import sys
from contextlib import asynccontextmanager

import uvicorn
from fastapi import FastAPI
from fastapi.middleware.cors import CORSMiddleware
from fastapi.middleware.gzip import GZipMiddleware

from .backend.app import create_app
from .backend.database.connection import close_database_connections, init_database
from .backend.dependencies import cleanup_dependencies
from .backend.utils.helpers import setup_logging
from .config import get_settings

# Configure logging
logger = logging.getLogger(__name__)


@asynccontextmanager
async def lifespan(app: FastAPI):
    """Application lifespan manager for startup and shutdown events"""

    # Startup
    logger.info("🚀 Starting LMS Quiz Engine...")

    await init_database()

    logger.info("🎉 Application startup complete!")

    yield

    # Shutdown
    logger.info("🛑 Shutting down application...")
    await cleanup_dependencies()
    await close_database_connections()
    logger.info("✅ Application shutdown complete")


def create_main_app() -> FastAPI:
    """Create the outer application and mount the backend API under /api"""

    settings = get_settings()
    setup_logging()

    main_app = FastAPI(
        title=settings.APP_NAME,
        description="Quiz attempt, grading and XP reward engine for the LMS",
        version=settings.VERSION,
        docs_url="/api/docs" if settings.DEBUG else None,
        redoc_url="/api/redoc" if settings.DEBUG else None,
        lifespan=lifespan,
        openapi_url="/api/openapi.json" if settings.DEBUG else None
    )

    # Add middleware
    main_app.add_middleware(GZipMiddleware, minimum_size=1000)
    main_app.add_middleware(
        CORSMiddleware,
        allow_origins=settings.ALLOWED_HOSTS,
        allow_credentials=True,
        allow_methods=["*"],
        allow_headers=["*"],
    )

    # Mount the backend API
    main_app.mount("/api", create_app())

    # Liveness probe
    @main_app.get("/health")
    async def health_check():
        return {
            "status": "healthy",
            "version": settings.VERSION,
            "environment": settings.ENVIRONMENT
        }

    return main_app


async def run_server():
    """Run the server"""
    settings = get_settings()

    config = uvicorn.Config(
        app="lms_quiz.main:app",
        host=settings.HOST,
        port=settings.PORT,
        log_level=settings.LOG_LEVEL.lower(),
        access_log=settings.DEBUG,
        loop="asyncio"
    )

    server = uvicorn.Server(config)
    await server.serve()


def main():
    """Main entry point"""
    settings = get_settings()
    logger.info(f"Starting application in {settings.ENVIRONMENT} mode")

    try:
        asyncio.run(run_server())
    except KeyboardInterrupt:
        logger.info("Application stopped by user")
    except OSError as e:
        logger.error(f"Application failed to start: {e}")
        sys.exit(1)


# App instance for uvicorn
app = create_main_app()

if __name__ == "__main__":
    main()
