from fastapi import FastAPI, Request
from fastapi.exceptions import RequestValidationError
from fastapi.encoders import jsonable_encoder
from fastapi.middleware.cors import CORSMiddleware
from fastapi.responses import JSONResponse
from starlette.middleware.base import BaseHTTPMiddleware
from contextlib import asynccontextmanager
from slowapi.errors import RateLimitExceeded
import uuid

from . import __version__
from .config import settings
from .database import create_tables
from .errors import (
    ReservationEngineError, InvalidRangeError, RangeNotAvailableError,
    InvalidTransitionError, NotFoundError, ValidationError
)
from .routers import availability, health, reservations
from .utils.logging_config import setup_logging, get_logger, set_request_context, clear_request_context
from .utils.rate_limiter import limiter

logger = get_logger(__name__)


# Most specific class first; the first isinstance match wins
ERROR_STATUS_CODES = (
    (InvalidRangeError, 422),
    (RangeNotAvailableError, 409),
    (InvalidTransitionError, 409),
    (NotFoundError, 404),
    (ValidationError, 400),
)


def status_code_for(exc: ReservationEngineError) -> int:
    for error_class, status_code in ERROR_STATUS_CODES:
        if isinstance(exc, error_class):
            return status_code
    return 400


@asynccontextmanager
async def lifespan(app: FastAPI):
    """Application lifespan events"""
    setup_logging(settings.log_level, json_format=settings.log_json)
    logger.info(f"Starting reservation engine {__version__} ({settings.environment})")
    logger.info(f"CORS origins: {settings.cors_origins}")

    # Deployments run Alembic; this only fills in missing tables
    create_tables()

    yield

    logger.info("Shutting down reservation engine")


app = FastAPI(
    title="Reservation & Availability Engine",
    description="Availability, pricing and reservation lifecycle for property rentals",
    version=__version__,
    lifespan=lifespan
)

# Rate limiter state
app.state.limiter = limiter


# ================================
# CORS MIDDLEWARE - MUST BE FIRST!
# ================================
app.add_middleware(
    CORSMiddleware,
    allow_origins=settings.cors_origins,
    allow_credentials=True,
    allow_methods=["GET", "POST", "PATCH", "DELETE", "OPTIONS"],
    allow_headers=["*"],
    expose_headers=["X-Request-ID"],
)


# Security Headers Middleware
class SecurityHeadersMiddleware(BaseHTTPMiddleware):
    async def dispatch(self, request: Request, call_next):
        response = await call_next(request)
        response.headers["X-Content-Type-Options"] = "nosniff"
        response.headers["X-Frame-Options"] = "DENY"
        if settings.is_production:
            response.headers["Strict-Transport-Security"] = "max-age=31536000; includeSubDomains"
        return response


# Request ID Middleware
class RequestIdMiddleware(BaseHTTPMiddleware):
    async def dispatch(self, request: Request, call_next):
        request_id = request.headers.get("X-Request-ID", str(uuid.uuid4())[:8])
        request.state.request_id = request_id
        set_request_context(request_id)
        try:
            response = await call_next(request)
        finally:
            clear_request_context()
        response.headers["X-Request-ID"] = request_id
        return response


app.add_middleware(RequestIdMiddleware)
app.add_middleware(SecurityHeadersMiddleware)


@app.exception_handler(ReservationEngineError)
async def engine_error_handler(request: Request, exc: ReservationEngineError):
    status_code = status_code_for(exc)
    logger.info(f"{request.method} {request.url.path} -> {status_code} {exc.code}: {exc.message}")
    return JSONResponse(status_code=status_code, content=exc.to_dict())


@app.exception_handler(RequestValidationError)
async def request_validation_handler(request: Request, exc: RequestValidationError):
    """Malformed request bodies and parameters are client errors (400)"""
    return JSONResponse(
        status_code=400,
        content={
            "detail": jsonable_encoder(exc.errors()),
            "code": ValidationError.code,
        }
    )


@app.exception_handler(RateLimitExceeded)
async def rate_limit_handler(request: Request, exc: RateLimitExceeded):
    return JSONResponse(
        status_code=429,
        content={"detail": "Too many requests, try again later", "code": "rate_limited"}
    )


app.include_router(reservations.router)
app.include_router(availability.router)
app.include_router(health.router)


@app.get("/")
async def root():
    return {
        "message": "Reservation & Availability Engine",
        "version": __version__,
        "docs": "/docs",
        "status": "running"
    }
