"""
Routers package for the PromoReel API.
"""

from .config import router as config_router
from .creative import router as creative_router
from .recordings import router as recordings_router
from .audio import router as audio_router

__all__ = [
    "config_router",
    "creative_router",
    "recordings_router",
    "audio_router",
]
