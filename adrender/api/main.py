"""
FastAPI Application
==================

Main FastAPI application exposing template previews, single renders and
batch exports.
"""

from contextlib import asynccontextmanager
from typing import Any, AsyncGenerator, Dict, Optional
import uuid

from fastapi import FastAPI, HTTPException, Request
from fastapi.middleware.cors import CORSMiddleware
from fastapi.middleware.gzip import GZipMiddleware
from fastapi.responses import JSONResponse
import uvicorn

from adrender.api.dependencies import get_template_store
from adrender.api.routes import dpa, export, health, preview
from adrender.config.logging import bind_request_context, get_logger
from adrender.config.settings import get_settings
from adrender.core.export import ArchiveError, ExportTimeoutError
from adrender.core.manifest import ManifestValidationError, ParseError
from adrender.core.rendering import DocumentBuildError, PNGGenerationError
from adrender.core.templates import MissingTemplateError
from adrender.models.schemas import ErrorResponse

logger = get_logger(__name__)


@asynccontextmanager
async def lifespan(app: FastAPI) -> AsyncGenerator[None, None]:
    """Application lifespan manager."""
    logger.info("Starting FastAPI application", version=settings.app_version)

    store = get_template_store()
    if store.is_available():
        logger.info("Templates root available", templates_root=str(store.root))
    else:
        logger.warning("Templates root missing, exports will fail", templates_root=str(store.root))

    try:
        yield
    finally:
        logger.info("Shutting down FastAPI application")


# Create FastAPI app
settings = get_settings()
app = FastAPI(
    title=settings.app_name,
    description="Transform script-based ad manifests and render them for batch export",
    version=settings.app_version,
    lifespan=lifespan,
    docs_url="/docs" if settings.debug else None,
    redoc_url="/redoc" if settings.debug else None,
)

# Add middleware
app.add_middleware(
    CORSMiddleware,
    allow_origins=settings.allowed_hosts,
    allow_credentials=True,
    allow_methods=["GET", "POST"],
    allow_headers=["*"],
    expose_headers=["Content-Disposition", "X-Export-Succeeded", "X-Export-Failed", "X-Export-Failed-Jobs"],
)

app.add_middleware(GZipMiddleware, minimum_size=1000)

app.include_router(health.router)
app.include_router(preview.router)
app.include_router(export.router)
app.include_router(dpa.router)


# Request ID middleware
@app.middleware("http")
async def add_request_id(request: Request, call_next) -> JSONResponse:  # type: ignore
    """Add request ID to all requests."""
    request_id = request.headers.get("X-Request-ID") or str(uuid.uuid4())
    request.state.request_id = request_id
    bind_request_context(request_id, method=request.method, path=request.url.path)

    response = await call_next(request)  # type: ignore
    response.headers["X-Request-ID"] = request_id  # type: ignore

    return response  # type: ignore


def error_json(
    request: Request,
    status_code: int,
    error: str,
    error_code: str,
    details: Optional[Dict[str, Any]] = None,
) -> JSONResponse:
    """Structured error response."""
    error_response = ErrorResponse(
        error=error,
        error_code=error_code,
        details=details,
        request_id=getattr(request.state, "request_id", None),
    )
    logger.error(
        "Request failed",
        status_code=status_code,
        error_code=error_code,
        error=error,
        request_id=error_response.request_id,
    )
    return JSONResponse(status_code=status_code, content=error_response.model_dump(mode="json"))


# Exception handlers
@app.exception_handler(HTTPException)
async def custom_http_exception_handler(request: Request, exc: HTTPException) -> JSONResponse:
    """Custom HTTP exception handler with structured error response."""
    return error_json(request, exc.status_code, str(exc.detail), str(exc.status_code))


@app.exception_handler(MissingTemplateError)
async def missing_template_handler(request: Request, exc: MissingTemplateError) -> JSONResponse:
    return error_json(request, 404, str(exc), "TEMPLATE_NOT_FOUND")


@app.exception_handler(ParseError)
async def parse_error_handler(request: Request, exc: ParseError) -> JSONResponse:
    """Manifest failures are the template's fault, never retried."""
    details: Dict[str, Any] = {"line": exc.line, "column": exc.column, "offset": exc.offset, "token": exc.token}
    error_code = "MANIFEST_PARSE_ERROR"
    if isinstance(exc, ManifestValidationError):
        details = {"errors": exc.errors}
        error_code = "MANIFEST_INVALID"
    return error_json(request, 422, str(exc), error_code, details)


@app.exception_handler(ArchiveError)
async def archive_error_handler(request: Request, exc: ArchiveError) -> JSONResponse:
    return error_json(
        request,
        500,
        "Export archive could not be written",
        "ARCHIVE_ERROR",
        {"message": str(exc)} if settings.debug else None,
    )


@app.exception_handler(ExportTimeoutError)
async def export_timeout_handler(request: Request, exc: ExportTimeoutError) -> JSONResponse:
    return error_json(request, 504, str(exc), "EXPORT_TIMEOUT")


@app.exception_handler(PNGGenerationError)
async def png_generation_exception_handler(request: Request, exc: PNGGenerationError) -> JSONResponse:
    """Handle PNG generation errors with specific error codes."""
    error_message = str(exc)

    if "Browser launch failed" in error_message or "not started" in error_message:
        error_code = "BROWSER_UNAVAILABLE"
        status_code = 503
        user_message = "Failed to launch browser instance. Service temporarily unavailable."
    elif "timeout" in error_message.lower() or "timed out" in error_message.lower():
        error_code = "BROWSER_TIMEOUT"
        status_code = 504
        user_message = "Browser operation timed out. Please try again."
    else:
        error_code = "PNG_GENERATION_ERROR"
        status_code = 500
        user_message = "PNG generation failed due to an internal error."

    return error_json(
        request,
        status_code,
        user_message,
        error_code,
        {"message": error_message} if settings.debug else None,
    )


@app.exception_handler(DocumentBuildError)
async def document_build_handler(request: Request, exc: DocumentBuildError) -> JSONResponse:
    return error_json(request, 500, str(exc), "DOCUMENT_BUILD_ERROR")


@app.exception_handler(Exception)
async def general_exception_handler(request: Request, exc: Exception) -> JSONResponse:
    """General exception handler for unexpected errors."""
    logger.error("Unhandled exception", exception=str(exc), exc_info=True)
    return error_json(
        request,
        500,
        "Internal server error",
        "INTERNAL_ERROR",
        {"exception": str(exc)} if settings.debug else None,
    )


def main() -> None:
    """Run the API server."""
    uvicorn.run(
        "adrender.api.main:app",
        host=settings.host,
        port=settings.port,
        workers=settings.workers,
        log_config=None,
        reload=settings.environment == "development" and settings.debug,
    )


if __name__ == "__main__":
    main()
