"""
Utility modules for PromoReel.
"""

from .logger import setup_logging, get_run_logger, get_recording_logger
from .file_manager import FileManager, safe_name

__all__ = [
    "setup_logging",
    "get_run_logger",
    "get_recording_logger",
    "FileManager",
    "safe_name",
]
