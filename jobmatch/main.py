from datetime import datetime, timezone

from fastapi import FastAPI, Request
from fastapi.middleware.cors import CORSMiddleware
from fastapi.responses import JSONResponse
from contextlib import asynccontextmanager
from jobmatch.routers import matches

# Import logging and middleware
from jobmatch.utils.logging_config import configure_for_environment, get_logger
from jobmatch.middleware.error_handlers import (
    ExceptionHandlerMiddleware,
    RequestLoggingMiddleware,
    PerformanceMiddleware,
    HealthCheckMiddleware,
    register_exception_handlers
)

# Configure logging first
configure_for_environment()
logger = get_logger(__name__)

APP_VERSION = "1.0.0"


@asynccontextmanager
async def lifespan(app: FastAPI):
    """Application lifespan context manager"""
    from jobmatch.services import db
    from jobmatch.services.clients import build_pipeline, create_clients
    from jobmatch.utils.settings import get_settings

    # Startup
    logger.info("Job Match API starting up...")
    settings = get_settings()

    logger.info("Initializing database indexes...")
    try:
        await db.init_indexes()
        logger.info("Database indexes initialized successfully")
    except Exception as e:
        logger.warning(f"Database index initialization had issues: {e}")
        logger.info("Application will continue - some operations may be slower without indexes")

    clients = create_clients(settings)
    app.state.clients = clients
    app.state.pipeline = build_pipeline(settings, clients)

    logger.info("Job Match API startup completed")

    yield

    # Shutdown
    logger.info("Job Match API shutting down...")
    await clients.close()
    db.client.close()
    logger.info("Job Match API shutdown completed")


app = FastAPI(title="Job Match API", version=APP_VERSION, lifespan=lifespan)

register_exception_handlers(app)

# Add middleware in order (LIFO - Last In, First Out)
# Health paths are marked before any logging middleware sees the request
app.add_middleware(PerformanceMiddleware, slow_request_threshold=2.0)
app.add_middleware(RequestLoggingMiddleware)
app.add_middleware(ExceptionHandlerMiddleware)
app.add_middleware(HealthCheckMiddleware)

# Add CORS middleware
app.add_middleware(
    CORSMiddleware,
    allow_origins=["*"],  # Allows all origins
    allow_credentials=True,
    allow_methods=["*"],  # Allows all methods
    allow_headers=["*"],  # Allows all headers
)


@app.get("/")
@app.head("/")
async def root():
    """Root endpoint - handles both GET and HEAD requests for health checks"""
    logger.debug("Root endpoint accessed")
    return {"message": "Welcome to the Job Match API", "version": APP_VERSION, "status": "ok"}


@app.get("/health")
@app.head("/health")
async def health_check():
    """Liveness check - handles both GET and HEAD requests"""
    return {"status": "healthy", "timestamp": datetime.now(timezone.utc).isoformat()}


@app.get("/health/ready")
async def readiness_check(request: Request):
    """Readiness check - pings the result cache and the record store"""
    from jobmatch.services import db

    pipeline = getattr(request.app.state, "pipeline", None)
    checks = {
        "cache": await pipeline.cache.ping() if pipeline is not None else False,
        "database": await db.ping(),
    }
    ready = all(checks.values())
    if not ready:
        logger.warning(f"Readiness check failed: {checks}")
    return JSONResponse(
        status_code=200 if ready else 503,
        content={
            "status": "ready" if ready else "not_ready",
            "checks": checks,
            "timestamp": datetime.now(timezone.utc).isoformat()
        }
    )


# Include routers
app.include_router(matches.router)

logger.info("Job Match API initialized successfully")
