from contextlib import asynccontextmanager
import logging
import uuid

import structlog
from fastapi import FastAPI, Request
from fastapi.middleware.cors import CORSMiddleware
from fastapi.responses import JSONResponse

from app.core.arq import close_arq_pool
from app.core.config import settings
from app.core.exceptions import (
    ApplicationError,
    ConflictError,
    InvalidStateError,
    InvalidTransitionError,
    NotFoundError,
    PermissionDeniedError,
    ValidationError,
)
from app.core.logging import configure_logging
from app.api.v1 import applications, admin

logger = logging.getLogger(__name__)

ERROR_STATUS_CODES = {
    ValidationError: 422,
    InvalidStateError: 409,
    InvalidTransitionError: 409,
    ConflictError: 409,
    NotFoundError: 404,
    PermissionDeniedError: 403,
}


@asynccontextmanager
async def lifespan(app: FastAPI):
    configure_logging(settings.app_env)
    logger.info(f"Starting recruitment API ({settings.app_env})")
    yield
    await close_arq_pool()


app = FastAPI(
    title="Faculty Recruitment API",
    description="Application lifecycle and credit scoring for faculty recruitment",
    version="1.0.0",
    docs_url="/docs",
    redoc_url="/redoc",
    lifespan=lifespan,
)

# Add CORS middleware
app.add_middleware(
    CORSMiddleware,
    allow_origins=settings.allowed_origins,
    allow_credentials=True,
    allow_methods=["*"],
    allow_headers=["*"],
)


@app.middleware("http")
async def bind_request_id(request: Request, call_next):
    request_id = request.headers.get("X-Request-ID") or uuid.uuid4().hex
    structlog.contextvars.clear_contextvars()
    structlog.contextvars.bind_contextvars(request_id=request_id)
    response = await call_next(request)
    response.headers["X-Request-ID"] = request_id
    return response


@app.exception_handler(ApplicationError)
async def application_error_handler(request: Request, exc: ApplicationError):
    status_code = next(
        (code for error_type, code in ERROR_STATUS_CODES.items() if isinstance(exc, error_type)),
        400,
    )
    logger.info(f"{request.method} {request.url.path} -> {status_code} {exc.kind}: {exc.message}")
    return JSONResponse(status_code=status_code, content=exc.to_dict())


# Include API routers
app.include_router(applications.router, prefix="/api/v1/applications", tags=["Applications"])
app.include_router(admin.router, prefix="/api/v1/admin/applications", tags=["Review"])


@app.get("/healthz")
async def health_check():
    """Health check endpoint"""
    return {"status": "ok", "version": "1.0.0"}


@app.get("/")
async def root():
    """Root endpoint"""
    return {"message": "Faculty Recruitment API", "docs": "/docs"}
