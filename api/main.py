"""
FastAPI main application for the Book Review Catalog API.
"""

from contextlib import asynccontextmanager
from datetime import datetime

import structlog
from fastapi import FastAPI, Request, status
from fastapi.exceptions import RequestValidationError
from fastapi.middleware.cors import CORSMiddleware
from fastapi.responses import JSONResponse
from starlette.exceptions import HTTPException as StarletteHTTPException

from api import dependencies
from api.auth import RateLimiter, get_rate_limit_headers
from api.config import config as api_config
from api.models import ErrorResponse, FieldError, HealthResponse
from api.routes import books, reviews
from catalog.database import CatalogDatabase
from catalog.exceptions import CatalogError
from utilities.config import config
from utilities.logger import setup_logging

# Setup logging
logger = structlog.get_logger(__name__)

rate_limiter = RateLimiter(
    rate_limit=api_config.rate_limit_requests,
    window_seconds=api_config.rate_limit_window
)

RATE_LIMIT_EXEMPT_PATHS = {"/health"}


@asynccontextmanager
async def lifespan(app: FastAPI):
    """Application lifespan manager."""
    setup_logging(
        log_level=config.log_level,
        log_format=config.log_format,
        log_file=config.get_log_file_path(),
        debug=config.debug
    )
    logger.info("Starting Book Review Catalog API")

    database = CatalogDatabase.from_config(config)
    try:
        await database.connect()
        logger.info("Database connection established")
        dependencies.catalog_db = database

    except Exception as e:
        logger.error("Failed to connect to database", error=str(e))
        raise

    yield

    # Shutdown
    logger.info("Shutting down Book Review Catalog API")
    dependencies.catalog_db = None
    await database.disconnect()


# Create FastAPI application
app = FastAPI(
    title=api_config.api_title,
    description=api_config.api_description,
    version=api_config.api_version,
    license_info={
        "name": "MIT",
        "url": "https://opensource.org/licenses/MIT",
    },
    lifespan=lifespan
)

# Add CORS middleware
app.add_middleware(
    CORSMiddleware,
    allow_origins=api_config.cors_origins,
    allow_credentials=api_config.cors_allow_credentials,
    allow_methods=api_config.cors_allow_methods,
    allow_headers=api_config.cors_allow_headers,
)


@app.middleware("http")
async def rate_limit_middleware(request: Request, call_next):
    """Apply the per-client rate limit and attach rate limit headers."""
    if not api_config.rate_limit_enabled or request.url.path in RATE_LIMIT_EXEMPT_PATHS:
        return await call_next(request)

    client_id = request.client.host if request.client else "anonymous"
    allowed = rate_limiter.check_rate_limit(client_id)
    headers = get_rate_limit_headers(rate_limiter.get_rate_limit_info(client_id))

    if not allowed:
        logger.warning("Rate limit exceeded", client=client_id, path=request.url.path)
        return JSONResponse(
            status_code=status.HTTP_429_TOO_MANY_REQUESTS,
            content=ErrorResponse(message="Too many requests, please try again later").model_dump(exclude_none=True),
            headers=headers
        )

    response = await call_next(request)
    response.headers.update(headers)
    return response


# Exception handlers
@app.exception_handler(CatalogError)
async def catalog_exception_handler(request: Request, exc: CatalogError):
    """Handle domain errors raised by the catalog services."""
    return JSONResponse(
        status_code=exc.status_code,
        content=ErrorResponse(message=exc.message).model_dump(exclude_none=True)
    )


@app.exception_handler(RequestValidationError)
async def validation_exception_handler(request: Request, exc: RequestValidationError):
    """Report field constraint violations as itemized 400 errors."""
    errors = [
        FieldError(
            field=".".join(str(part) for part in error["loc"] if part not in ("body", "query", "path")),
            message=error["msg"]
        )
        for error in exc.errors()
    ]
    return JSONResponse(
        status_code=status.HTTP_400_BAD_REQUEST,
        content=ErrorResponse(message="Validation failed", errors=errors).model_dump(exclude_none=True)
    )


@app.exception_handler(StarletteHTTPException)
async def http_exception_handler(request: Request, exc: StarletteHTTPException):
    """Handle HTTP exceptions."""
    return JSONResponse(
        status_code=exc.status_code,
        content=ErrorResponse(message=str(exc.detail)).model_dump(exclude_none=True),
        headers=getattr(exc, "headers", None)
    )


@app.exception_handler(Exception)
async def general_exception_handler(request: Request, exc: Exception):
    """Handle general exceptions."""
    logger.error("Unhandled exception", error=str(exc), path=request.url.path, exc_info=True)
    return JSONResponse(
        status_code=status.HTTP_500_INTERNAL_SERVER_ERROR,
        content=ErrorResponse(
            message="Internal server error",
            detail=str(exc) if api_config.debug else None
        ).model_dump(exclude_none=True)
    )


# Health check endpoint (no authentication required)
@app.get("/health", response_model=HealthResponse, tags=["Health"])
async def health_check():
    """Health check endpoint."""
    db_status = "unavailable"
    if dependencies.catalog_db:
        health_info = await dependencies.catalog_db.health_check()
        db_status = health_info.get("status", "unknown")

    return HealthResponse(
        status="healthy" if db_status == "healthy" else "degraded",
        timestamp=datetime.utcnow(),
        version=api_config.api_version,
        database_status=db_status
    )


app.include_router(books.router)
app.include_router(reviews.router)


if __name__ == "__main__":
    import uvicorn
    uvicorn.run(
        "api.main:app",
        host=api_config.host,
        port=api_config.port,
        reload=api_config.debug,
        log_level=api_config.log_level.lower()
    )
