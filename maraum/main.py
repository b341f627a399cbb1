"""FastAPI application entry point."""

import logging
from contextlib import asynccontextmanager
from typing import AsyncGenerator

from fastapi import FastAPI, Request
from fastapi.encoders import jsonable_encoder
from fastapi.exceptions import RequestValidationError
from fastapi.middleware.cors import CORSMiddleware
from fastapi.responses import JSONResponse

from maraum.api.deps import get_prompt_registry
from maraum.api.v1.router import router as api_router
from maraum.core.config import settings
from maraum.core.errors import MaraumError, ValidationError
from maraum.core.logging import setup_logging
from maraum.core.request_logging import RequestLoggingMiddleware

logger = logging.getLogger(__name__)


@asynccontextmanager
async def lifespan(app: FastAPI) -> AsyncGenerator[None, None]:
    """Application lifespan handler."""
    # Startup
    setup_logging(debug=settings.debug)
    registry = get_prompt_registry()
    logger.info(f"Loaded {len(registry.templates)} prompt templates")
    yield
    # Shutdown


app = FastAPI(
    title=settings.app_name,
    description="Dual-chat German practice scenarios with a guided narrative and a helper",
    version="0.1.0",
    lifespan=lifespan,
)

# CORS middleware
# Note: When allow_credentials=True, origins/methods/headers must be explicit (not wildcards)
app.add_middleware(
    CORSMiddleware,
    allow_origins=settings.cors_origins,
    allow_credentials=True,
    allow_methods=["GET", "POST", "OPTIONS"],
    allow_headers=["Authorization", "Content-Type", "Accept", "Origin", "X-Request-ID"],
)

# Request logging middleware
app.add_middleware(
    RequestLoggingMiddleware,
    exclude_paths=["/", "/health", "/api/v1/health"],
)


@app.exception_handler(MaraumError)
async def maraum_error_handler(request: Request, exc: MaraumError) -> JSONResponse:
    """Render application errors as ``{error, message, details}``."""
    request_id = getattr(request.state, "request_id", None)
    if exc.status_code >= 500:
        logger.error(f"{exc.kind}: {exc.message}", extra={"request_id": request_id})
    return JSONResponse(status_code=exc.status_code, content=jsonable_encoder(exc.to_dict()))


@app.exception_handler(RequestValidationError)
async def validation_error_handler(request: Request, exc: RequestValidationError) -> JSONResponse:
    """Reshape FastAPI's 422 into the 400 ``validation_error`` body."""
    errors = [
        {
            "field": ".".join(str(part) for part in err["loc"] if part != "body"),
            "message": err["msg"],
        }
        for err in exc.errors()
    ]
    error = ValidationError("Invalid request", {"errors": errors})
    return JSONResponse(status_code=error.status_code, content=error.to_dict())


# Include routers
app.include_router(api_router)


@app.get("/")
async def root() -> dict[str, str]:
    """Root endpoint."""
    return {"service": "maraum-backend", "status": "running"}
