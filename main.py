"""
CourseHub Enrollment API Server

FastAPI application for course enrollments: enrollment lifecycle, EMI
schedules, video modules and learning progress.
"""
import logging
import os
from contextlib import asynccontextmanager
from fastapi import FastAPI, Request, status
from fastapi.middleware.cors import CORSMiddleware
from fastapi.responses import JSONResponse
from fastapi.exceptions import RequestValidationError
import time

from coursehub.api.routes import enrollments, modules, progress
from coursehub.database import close_database, close_redis, init_database, init_redis
from coursehub.exceptions import EnrollmentError
from coursehub.services.events import PUBLISH_EVENTS_TO_REDIS, configure_event_publisher
from coursehub.timeutils import utcnow

# Configure logging
logging.basicConfig(
    level=os.getenv("LOG_LEVEL", "INFO").upper(),
    format='%(asctime)s - %(name)s - %(levelname)s - %(message)s'
)
logger = logging.getLogger(__name__)

VERSION = "1.0.0"


@asynccontextmanager
async def lifespan(app: FastAPI):
    """
    Application lifespan manager.

    Opens the database handle (and the Redis event channel when enabled) on
    startup and releases them on shutdown.
    """
    # Startup
    logger.info("Starting CourseHub enrollment API server...")
    init_database()

    if PUBLISH_EVENTS_TO_REDIS:
        configure_event_publisher(await init_redis())
        logger.info("Enrollment events will be published to Redis")

    yield

    # Shutdown
    logger.info("Shutting down CourseHub enrollment API server...")
    if PUBLISH_EVENTS_TO_REDIS:
        configure_event_publisher(None)
        await close_redis()
    await close_database()
    logger.info("Database connections closed")


# Create FastAPI application
app = FastAPI(
    title="CourseHub Enrollment API",
    description="Enrollment lifecycle, EMI scheduling and progress tracking",
    version=VERSION,
    lifespan=lifespan,
    docs_url="/api/docs",
    redoc_url="/api/redoc",
    openapi_url="/api/openapi.json"
)


# CORS middleware for development
app.add_middleware(
    CORSMiddleware,
    allow_origins=["*"],  # In production, specify exact origins
    allow_credentials=True,
    allow_methods=["*"],
    allow_headers=["*"],
)


# Request logging middleware
@app.middleware("http")
async def log_requests(request: Request, call_next):
    """Log all requests with timing"""
    start_time = time.time()

    # Process request
    response = await call_next(request)

    # Calculate duration
    duration_ms = (time.time() - start_time) * 1000

    # Log request
    logger.info(
        f"{request.method} {request.url.path} - "
        f"Status: {response.status_code} - "
        f"Duration: {duration_ms:.2f}ms"
    )

    return response


# Domain error handler
@app.exception_handler(EnrollmentError)
async def enrollment_exception_handler(request: Request, exc: EnrollmentError):
    """Map enrollment errors onto their HTTP status and the error envelope"""
    if exc.status_code >= 500:
        logger.error(f"{exc.code} on {request.url.path}: {exc.message}")
    else:
        logger.warning(f"{exc.code} on {request.method} {request.url.path}: {exc.message}")

    return JSONResponse(
        status_code=exc.status_code,
        content={"error": exc.to_dict()}
    )


# Global exception handler
@app.exception_handler(Exception)
async def global_exception_handler(request: Request, exc: Exception):
    """Handle all uncaught exceptions"""
    logger.error(f"Unhandled exception: {exc}", exc_info=True)

    return JSONResponse(
        status_code=status.HTTP_500_INTERNAL_SERVER_ERROR,
        content={
            "error": {
                "code": "INTERNAL_ERROR",
                "message": "An internal server error occurred",
                "details": str(exc) if app.debug else None
            }
        }
    )


# Validation error handler
@app.exception_handler(RequestValidationError)
async def validation_exception_handler(request: Request, exc: RequestValidationError):
    """Handle request validation errors"""
    return JSONResponse(
        status_code=status.HTTP_422_UNPROCESSABLE_ENTITY,
        content={
            "error": {
                "code": "VALIDATION_ERROR",
                "message": "Request validation failed",
                "details": exc.errors()
            }
        }
    )


# Health check endpoint
@app.get("/health", tags=["Health"])
async def health_check():
    """
    Health check endpoint.

    Returns server status and version information.
    """
    return {
        "status": "ok",
        "timestamp": utcnow().isoformat(),
        "version": VERSION,
        "service": "coursehub-enrollment-api"
    }


# Include routers
app.include_router(enrollments.router)
app.include_router(modules.router)
app.include_router(progress.router)


# Root endpoint
@app.get("/", tags=["Root"])
async def root():
    """API root endpoint"""
    return {
        "name": "CourseHub Enrollment API",
        "version": VERSION,
        "description": "Enrollment lifecycle, EMI scheduling and progress tracking",
        "docs": "/api/docs",
        "health": "/health"
    }


if __name__ == "__main__":
    import uvicorn

    uvicorn.run(
        "main:app",
        host="0.0.0.0",
        port=8000,
        reload=True,
        log_level="info"
    )
