"""FastAPI application entry point."""
import logging
from contextlib import asynccontextmanager

from fastapi import FastAPI

from autoedit.api.routes import router
from autoedit.config import settings
from autoedit.pipeline import __version__
from autoedit.utils.ffmpeg import check_ffmpeg_available

# Configure logging
logging.basicConfig(
    level=logging.INFO if not settings.debug else logging.DEBUG,
    format="%(asctime)s - %(name)s - %(levelname)s - %(message)s"
)
logger = logging.getLogger(__name__)


@asynccontextmanager
async def lifespan(app: FastAPI):
    """Application lifespan handler."""
    logger.info("Starting AutoEdit...")

    if not check_ffmpeg_available():
        logger.warning(f"ffmpeg not found at '{settings.ffmpeg_path}', export is unavailable")

    yield

    logger.info("Shutdown complete")


# Create FastAPI app
app = FastAPI(
    title=settings.app_name,
    description="Highlight clip selection from game state logs",
    version=__version__,
    lifespan=lifespan
)

# Include API routes
app.include_router(router, prefix="/api")


@app.get("/")
async def root():
    """Root endpoint."""
    return {
        "app": settings.app_name,
        "version": __version__,
        "api": "/api",
        "docs": "/docs"
    }


if __name__ == "__main__":
    import uvicorn
    uvicorn.run(
        "autoedit.main:app",
        host=settings.host,
        port=settings.port,
        reload=settings.debug
    )
