"""
FastAPI main application for PromoReel.
"""

import logging
from contextlib import asynccontextmanager
from pathlib import Path

from fastapi import FastAPI
from fastapi.middleware.cors import CORSMiddleware
from fastapi.staticfiles import StaticFiles

from . import __version__
from .routers import audio_router, config_router, creative_router, recordings_router
from .routers.config import get_config
from .utils.logger import setup_logging

config = get_config()

setup_logging(config.log_level, config.log_file)
logger = logging.getLogger(__name__)

storage_root = Path(config.storage.base_path)
recordings_dir = storage_root / config.storage.recordings_dir
outputs_dir = storage_root / config.storage.outputs_dir
temp_dir = storage_root / config.storage.temp_dir


@asynccontextmanager
async def lifespan(app: FastAPI):
    """Application lifespan handler."""
    # Startup
    logger.info("Starting PromoReel API...")

    for dir_path in [recordings_dir, outputs_dir, temp_dir]:
        dir_path.mkdir(parents=True, exist_ok=True)
        logger.info(f"Ensured directory exists: {dir_path}")

    yield

    # Shutdown
    from .services.cv_processor import get_cv_processor
    logger.info("Shutting down PromoReel API...")
    stats = get_cv_processor().stats()
    if stats["processing"] or stats["pending"]:
        logger.warning(f"Unfinished CV jobs at shutdown: {stats}")


# Create FastAPI app
app = FastAPI(
    title="PromoReel API",
    description="API para geração de vídeos promocionais a partir de uma URL ou descrição",
    version=__version__,
    lifespan=lifespan,
)

# Configure CORS
app.add_middleware(
    CORSMiddleware,
    allow_origins=config.allowed_origins,
    allow_credentials=True,
    allow_methods=["*"],
    allow_headers=["*"],
)

# Include routers
app.include_router(config_router)
app.include_router(creative_router)
app.include_router(recordings_router)
app.include_router(audio_router)

# Mount static files for recordings and outputs
for mount_dir in [recordings_dir, outputs_dir]:
    mount_dir.mkdir(parents=True, exist_ok=True)
app.mount("/recordings", StaticFiles(directory=str(recordings_dir)), name="recordings")
app.mount("/outputs", StaticFiles(directory=str(outputs_dir)), name="outputs")


@app.get("/")
async def root():
    """Root endpoint."""
    return {
        "name": "PromoReel API",
        "version": __version__,
        "status": "running"
    }


@app.get("/health")
async def health_check():
    """Health check endpoint."""
    return {"status": "healthy"}


@app.get("/api")
async def api_info():
    """API information."""
    return {
        "endpoints": {
            "config": "/api/config",
            "creative": "/api/creative",
            "recordings": "/api/recordings",
            "audio": "/api/audio",
        },
        "documentation": "/docs",
    }
