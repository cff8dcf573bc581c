"""
Logging helpers for PromoReel.
"""

import logging
import sys
from pathlib import Path
from typing import Optional


DEFAULT_FORMAT = "%(asctime)s - %(name)s - %(levelname)s - %(message)s"

NOISY_LOGGERS = ("httpx", "httpcore", "urllib3", "asyncio", "PIL")


def setup_logging(
    level: str = "INFO",
    log_file: Optional[str] = None,
    format_string: Optional[str] = None
) -> None:
    """
    Configure root logging for the API process.

    Args:
        level: Logging level name (DEBUG, INFO, WARNING, ERROR)
        log_file: Optional file that receives a copy of every record
        format_string: Custom record format
    """
    numeric_level = getattr(logging, level.upper(), logging.INFO)

    handlers = [logging.StreamHandler(sys.stdout)]
    if log_file:
        log_path = Path(log_file)
        log_path.parent.mkdir(parents=True, exist_ok=True)
        handlers.append(logging.FileHandler(log_path))

    logging.basicConfig(
        level=numeric_level,
        format=format_string or DEFAULT_FORMAT,
        handlers=handlers,
        force=True,
    )

    for name in NOISY_LOGGERS:
        logging.getLogger(name).setLevel(logging.WARNING)


class RunLoggerAdapter(logging.LoggerAdapter):
    """Prefixes every message with the pipeline run (or recording) id."""

    def __init__(self, logger: logging.Logger, run_id: str, label: str = "Run"):
        super().__init__(logger, {"run_id": run_id, "label": label})

    def process(self, msg, kwargs):
        return f"[{self.extra['label']} {self.extra['run_id']}] {msg}", kwargs


def get_run_logger(name: str, run_id: str) -> RunLoggerAdapter:
    return RunLoggerAdapter(logging.getLogger(name), run_id)


def get_recording_logger(name: str, recording_id: str) -> RunLoggerAdapter:
    return RunLoggerAdapter(logging.getLogger(name), recording_id, label="Recording")
