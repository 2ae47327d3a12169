"""Main FastAPI application."""
import logging
from contextlib import asynccontextmanager
from datetime import datetime
from typing import Any, Dict

from fastapi import FastAPI, Request
from fastapi.exceptions import RequestValidationError
from fastapi.middleware.cors import CORSMiddleware
from fastapi.responses import JSONResponse
from starlette.exceptions import HTTPException as StarletteHTTPException

from chunked_upload.api import upload
from chunked_upload.config import settings
from chunked_upload.core.exceptions import ErrorCategory, UploadServiceException
from chunked_upload.services.upload_service import get_upload_service
from chunked_upload.utils.logger import get_logger

logger: logging.Logger = get_logger(__name__)


@asynccontextmanager
async def lifespan(app: FastAPI) -> Any:
    """Application lifecycle management

    Prepares storage directories and runs the session reaper for the
    lifetime of the application.
    """
    logger.info("Starting %s...", settings.app_name)
    service = app.dependency_overrides.get(get_upload_service, get_upload_service)()
    await service.startup()

    yield

    logger.info("Shutting down %s...", settings.app_name)
    await service.shutdown()


def create_application() -> FastAPI:
    """Create and configure FastAPI application instance

    Configures CORS, exception handlers and routes.
    """
    application = FastAPI(
        title=settings.app_name,
        version=settings.app_version,
        description="Resumable chunked upload API",
        docs_url="/docs",
        redoc_url="/redoc",
        lifespan=lifespan
    )

    application.add_middleware(
        CORSMiddleware,
        allow_origins=["*"],
        allow_credentials=True,
        allow_methods=["*"],
        allow_headers=["*"],
    )

    _register_exception_handlers(application)
    _register_routes(application)

    logger.info(
        f"Application '{settings.app_name}' v{settings.app_version} "
        "created successfully"
    )

    return application


def _error_body(request: Request, code: str, message: str, **extra: Any) -> Dict[str, Any]:
    error = {"code": code, "message": message}
    error.update(extra)
    error["timestamp"] = datetime.utcnow().isoformat()
    error["path"] = str(request.url.path)
    return {"error": error}


def _register_exception_handlers(app: FastAPI) -> None:
    """Register global exception handlers for consistent error responses"""

    @app.exception_handler(UploadServiceException)
    async def upload_exception_handler(request: Request, exc: UploadServiceException) -> JSONResponse:
        status_code = _map_error_category_to_status_code(exc.category)
        log = logger.error if status_code >= 500 else logger.warning
        log(
            f"Upload exception: {exc.message}",
            extra={
                "error_code": exc.error_code,
                "category": exc.category.value,
                "details": exc.details,
                "request_path": request.url.path,
                "request_method": request.method
            }
        )

        return JSONResponse(
            status_code=status_code,
            content=_error_body(
                request,
                exc.error_code,
                exc.message,
                category=exc.category.value,
                severity=exc.severity.value,
                details=exc.details
            )
        )

    @app.exception_handler(RequestValidationError)
    async def request_validation_handler(request: Request, exc: RequestValidationError) -> JSONResponse:
        """Malformed request parameters are client errors (400)"""
        logger.warning(f"Request validation error: {exc.errors()}")
        return JSONResponse(
            status_code=400,
            content=_error_body(
                request,
                "VALIDATION_ERROR",
                "Request validation failed",
                category=ErrorCategory.VALIDATION.value,
                details=[
                    {"loc": list(err.get("loc", ())), "msg": err.get("msg"), "type": err.get("type")}
                    for err in exc.errors()
                ]
            )
        )

    @app.exception_handler(StarletteHTTPException)
    async def http_exception_handler(request: Request, exc: StarletteHTTPException) -> JSONResponse:
        logger.warning(f"HTTP exception: {exc.status_code} - {exc.detail}")
        return JSONResponse(
            status_code=exc.status_code,
            content=_error_body(request, f"HTTP_{exc.status_code}", str(exc.detail))
        )

    @app.exception_handler(Exception)
    async def global_exception_handler(request: Request, exc: Exception) -> JSONResponse:
        """Global exception handler for uncaught exceptions"""
        logger.error(
            f"Unhandled exception: {type(exc).__name__}: {exc}",
            exc_info=True,
            extra={
                "request_path": request.url.path,
                "request_method": request.method,
                "exception_type": type(exc).__name__
            }
        )
        return JSONResponse(
            status_code=500,
            content=_error_body(
                request,
                "INTERNAL_SERVER_ERROR",
                "Internal server error",
                type=type(exc).__name__
            )
        )


def _register_routes(app: FastAPI) -> None:
    """Register API routes with the FastAPI application"""
    app.include_router(
        upload.router,
        prefix="/api/v1",
        tags=["upload"]
    )

    @app.get("/health", tags=["health"])
    async def health_check() -> Dict[str, str]:
        return {"status": "healthy", "version": settings.app_version}


def _map_error_category_to_status_code(category: ErrorCategory) -> int:
    """Map error categories to HTTP status codes

    Args:
        category: ErrorCategory enum value

    Returns:
        Corresponding HTTP status code
    """
    status_code_mapping: Dict[ErrorCategory, int] = {
        ErrorCategory.VALIDATION: 400,          # Bad Request
        ErrorCategory.PAYLOAD_TOO_LARGE: 413,   # Payload Too Large
        ErrorCategory.NOT_FOUND: 404,           # Not Found
        ErrorCategory.CONFLICT: 409,            # Conflict
        ErrorCategory.BUSINESS_LOGIC: 400,      # Bad Request
        ErrorCategory.STORAGE: 500,             # Internal Server Error
        ErrorCategory.SYSTEM: 500               # Internal Server Error
    }
    return status_code_mapping.get(category, 500)


# Create FastAPI application instance
app: FastAPI = create_application()

if __name__ == "__main__":
    # Lazy import uvicorn to avoid dependency if not running directly
    import uvicorn

    logger.info(f"Starting {settings.app_name} v{settings.app_version}")
    logger.info(f"Environment: {settings.environment.value}")

    uvicorn.run(
        "chunked_upload.main:app",
        host=settings.host,
        port=settings.port,
        reload=settings.debug,
        log_level=settings.log_level.value.lower(),
        access_log=True
    )
