"""
Campus Gate API - Main Application Entry Point

Participation admission and lifecycle engine for campus events:
- Concurrency-safe registration and merch purchase with a versioned capacity ledger
- Event status state machine with derived ONGOING display status
- Signed QR tickets, payment review and audited attendance
- Structured logging with request correlation
"""

from contextlib import asynccontextmanager

from fastapi import FastAPI, Request
from fastapi.middleware.cors import CORSMiddleware
from fastapi.responses import JSONResponse

from campusgate.api.middleware import RequestLoggingMiddleware
from campusgate.api.router import api_router
from campusgate.core.config import get_settings
from campusgate.core.errors import STATUS_BY_CATEGORY, DomainError
from campusgate.core.logging import get_logger, setup_logging
from campusgate.core.metrics import metrics_endpoint
from campusgate.infrastructure.redis_client import close_redis, get_redis, get_redis_status
from campusgate.services.gate_factory import get_admission_gate, reset_admission_gate
from campusgate.services.notification_service import get_notifier

settings = get_settings()
logger = get_logger(__name__)


@asynccontextmanager
async def lifespan(app: FastAPI):
    """Application lifecycle: startup and shutdown hooks."""
    setup_logging()

    logger.info(
        "application_starting",
        app=settings.APP_NAME,
        version=settings.APP_VERSION,
        environment=settings.ENVIRONMENT,
        admission_strategy=settings.ADMISSION_STRATEGY,
    )

    if settings.REDIS_ENABLED:
        redis_client = await get_redis()
        if redis_client:
            logger.info("redis_ready")
        else:
            logger.warning("redis_unavailable", message="Admission gate falls back to optimistic")

    gate = await get_admission_gate()
    logger.info("admission_gate_ready", gate=type(gate).__name__)

    yield

    # Cleanup
    await get_notifier().drain()
    reset_admission_gate()
    await close_redis()
    logger.info("application_shutdown")


app = FastAPI(
    title=settings.APP_NAME,
    version=settings.APP_VERSION,
    description="Participation admission and lifecycle engine for campus events",
    lifespan=lifespan,
    docs_url="/docs",
    redoc_url="/redoc",
)

# CORS
app.add_middleware(
    CORSMiddleware,
    allow_origins=["*"],  # Restrict in production
    allow_credentials=True,
    allow_methods=["*"],
    allow_headers=["*"],
)

# Custom middleware
app.add_middleware(RequestLoggingMiddleware)

# Routes
app.include_router(api_router)


@app.exception_handler(DomainError)
async def domain_error_handler(request: Request, exc: DomainError):
    status_code = STATUS_BY_CATEGORY.get(exc.category, 400)
    logger.info("domain_error", code=exc.code.value, status_code=status_code)
    return JSONResponse(status_code=status_code, content={"error": exc.to_dict()})


@app.get("/health", tags=["Health"])
async def health_check():
    """Health check endpoint for Docker and load balancers."""
    gate = await get_admission_gate()
    return {
        "status": "healthy",
        "version": settings.APP_VERSION,
        "environment": settings.ENVIRONMENT,
        "admission_gate": {
            "strategy": type(gate).__name__,
            "redis": await get_redis_status(),
        },
    }


@app.get("/metrics", tags=["Health"])
async def metrics():
    return metrics_endpoint()


@app.get("/", tags=["Root"])
async def root():
    return {
        "message": f"Welcome to {settings.APP_NAME}",
        "version": settings.APP_VERSION,
        "docs": "/docs",
    }
