"""
LMS Quiz Engine
FastAPI application factory and configuration
"""

import logging
import time
import traceback

from fastapi import FastAPI, Request, status
from fastapi.encoders import jsonable_encoder
from fastapi.exceptions import RequestValidationError
from fastapi.middleware.cors import CORSMiddleware
from fastapi.middleware.gzip import GZipMiddleware
from fastapi.middleware.trustedhost import TrustedHostMiddleware
from fastapi.responses import JSONResponse
from starlette.exceptions import HTTPException as StarletteHTTPException

# Import API routers
from .api import lessons, questions, quizzes, reports
from .database.connection import check_database_health
from .exceptions import AppException
from ..config import get_settings

# Configure logging
logger = logging.getLogger(__name__)


class RequestContextMiddleware:
    """Middleware to add request timing"""

    def __init__(self, app):
        self.app = app

    async def __call__(self, scope, receive, send):
        if scope["type"] == "http":
            start_time = time.time()

            async def send_wrapper(message):
                if message["type"] == "http.response.start":
                    process_time = time.time() - start_time
                    message["headers"] = list(message.get("headers", []))
                    message["headers"].append(
                        (b"x-process-time", f"{process_time:.6f}".encode())
                    )
                await send(message)

            await self.app(scope, receive, send_wrapper)
        else:
            await self.app(scope, receive, send)


def error_body(error: str, message, details=None) -> dict:
    return {
        "error": error,
        "message": message,
        "details": details or {},
        "timestamp": time.time()
    }


def create_app() -> FastAPI:
    """Create and configure the FastAPI application"""

    settings = get_settings()

    # Create FastAPI instance
    app = FastAPI(
        title=f"{settings.APP_NAME} API",
        description="Quiz attempts, grading and lesson XP rewards",
        version=settings.VERSION,
        docs_url="/docs" if settings.DEBUG else None,
        redoc_url="/redoc" if settings.DEBUG else None,
        openapi_url="/openapi.json" if settings.DEBUG else None,
        default_response_class=JSONResponse
    )

    # Add custom middleware
    app.add_middleware(RequestContextMiddleware)

    # Add security middleware
    if not settings.DEBUG:
        app.add_middleware(
            TrustedHostMiddleware,
            allowed_hosts=settings.ALLOWED_HOSTS
        )

    # Add compression middleware
    app.add_middleware(GZipMiddleware, minimum_size=1000)

    # CORS middleware
    app.add_middleware(
        CORSMiddleware,
        allow_origins=settings.ALLOWED_HOSTS,
        allow_credentials=True,
        allow_methods=["*"],
        allow_headers=["*"],
        expose_headers=["x-process-time"]
    )

    # Exception handlers
    @app.exception_handler(AppException)
    async def app_exception_handler(request: Request, exc: AppException):
        """Handle custom application exceptions"""
        return JSONResponse(
            status_code=exc.status_code,
            content=error_body(exc.error_code, exc.message, exc.details)
        )

    @app.exception_handler(RequestValidationError)
    async def validation_exception_handler(request: Request, exc: RequestValidationError):
        """Handle request validation errors"""
        return JSONResponse(
            status_code=status.HTTP_422_UNPROCESSABLE_ENTITY,
            content=error_body(
                "VALIDATION_ERROR",
                "Request validation failed",
                {"errors": jsonable_encoder(exc.errors())}
            )
        )

    @app.exception_handler(StarletteHTTPException)
    async def http_exception_handler(request: Request, exc: StarletteHTTPException):
        """Handle HTTP exceptions"""
        return JSONResponse(
            status_code=exc.status_code,
            content=error_body("HTTP_ERROR", exc.detail),
            headers=getattr(exc, "headers", None)
        )

    @app.exception_handler(Exception)
    async def general_exception_handler(request: Request, exc: Exception):
        """Handle unexpected exceptions"""
        logger.exception(f"Unexpected error: {exc}")

        if settings.DEBUG:
            return JSONResponse(
                status_code=status.HTTP_500_INTERNAL_SERVER_ERROR,
                content=error_body(
                    "INTERNAL_ERROR",
                    str(exc),
                    {"traceback": traceback.format_exc()}
                )
            )

        return JSONResponse(
            status_code=status.HTTP_500_INTERNAL_SERVER_ERROR,
            content=error_body("INTERNAL_ERROR", "An internal server error occurred")
        )

    # Health check endpoint
    @app.get("/health", tags=["System"])
    async def health_check():
        """API health check endpoint"""
        database = await check_database_health()
        return {
            "status": "healthy" if database["status"] == "healthy" else "degraded",
            "api_version": settings.VERSION,
            "environment": settings.ENVIRONMENT,
            "database": database,
            "timestamp": time.time()
        }

    # Include API routers
    app.include_router(
        quizzes.router,
        prefix="/quiz",
        tags=["Quizzes"]
    )

    app.include_router(
        questions.router,
        prefix="/question",
        tags=["Questions"]
    )

    app.include_router(
        lessons.router,
        prefix="/lesson",
        tags=["Lessons"]
    )

    app.include_router(
        reports.router,
        prefix="/reports",
        tags=["Reports"]
    )

    logger.info("✅ Backend API configured successfully")
    return app


# Export the app factory
__all__ = ["create_app"]
