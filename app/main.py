"""
The Intake - Main FastAPI Application

Downloads intake service that:
- Watches the downloads directory for multi-part cloud archives
- Merges complete archives and classifies every extracted asset
- Records routing decisions and analytics events
"""

from contextlib import asynccontextmanager
from fastapi import FastAPI, Request
from fastapi.middleware.cors import CORSMiddleware
from fastapi.responses import JSONResponse
from loguru import logger
import sys

from app.utils.config import get_settings
from app.api import health, admin
from domains.file_ingest.collectors.downloads import DownloadsWatcher
from domains.file_ingest.errors import ConfigError
from domains.file_ingest.pipeline import IngestPipeline


# Configure logging
logger.remove()
logger.add(
    sys.stdout,
    format="<green>{time:YYYY-MM-DD HH:mm:ss}</green> | <level>{level: <8}</level> | <cyan>{name}</cyan>:<cyan>{function}</cyan> - <level>{message}</level>",
    level=get_settings().log_level
)


@asynccontextmanager
async def lifespan(app: FastAPI):
    """Application lifespan manager."""
    settings = get_settings()
    logger.info(f"Starting {settings.api_title} v{settings.api_version}")

    pipeline = IngestPipeline(settings)
    watcher = DownloadsWatcher(pipeline)

    pipeline.start()
    try:
        watcher.start_watching()
    except (ConfigError, OSError) as e:
        logger.error(f"Failed to watch {watcher.directory}: {e}")
        pipeline.stop()
        raise

    app.state.pipeline = pipeline
    app.state.watcher = watcher

    yield

    # Cleanup
    logger.info("Shutting down application...")
    watcher.stop_watching()
    pipeline.stop()
    logger.success("Application shut down complete")


# Create FastAPI app
settings = get_settings()
app = FastAPI(
    title=settings.api_title,
    version=settings.api_version,
    description="Multi-part download merging and media asset classification",
    lifespan=lifespan
)

# Add CORS middleware
app.add_middleware(
    CORSMiddleware,
    allow_origins=["*"],  # Configure appropriately for production
    allow_credentials=True,
    allow_methods=["*"],
    allow_headers=["*"],
)


# Exception handler
@app.exception_handler(Exception)
async def global_exception_handler(request: Request, exc: Exception):
    """Global exception handler."""
    logger.error(f"Unhandled exception: {exc}")
    return JSONResponse(
        status_code=500,
        content={
            "error": "Internal server error",
            "detail": str(exc) if settings.log_level == "DEBUG" else "An error occurred"
        }
    )


# Include routers
app.include_router(health.router, tags=["Health"])
app.include_router(admin.router, prefix="/admin", tags=["Admin"])


@app.get("/")
async def root():
    """Root endpoint."""
    return {
        "service": "The Intake",
        "version": settings.api_version,
        "status": "operational",
        "docs": "/docs",
        "health": "/health"
    }


if __name__ == "__main__":
    import uvicorn
    uvicorn.run(
        "app.main:app",
        host="0.0.0.0",
        port=settings.api_port,
        reload=True,
        log_level=settings.log_level.lower()
    )
