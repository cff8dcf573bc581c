"""
File storage utilities for PromoReel.
"""

import logging
import re
import shutil
from datetime import datetime, timedelta
from pathlib import Path
from typing import Optional

logger = logging.getLogger(__name__)


_UNSAFE_CHARS = re.compile(r"[^A-Za-z0-9._-]+")


def safe_name(value: str) -> str:
    """Reduce an id or project name to a filesystem-safe token."""
    cleaned = _UNSAFE_CHARS.sub("-", value).strip("-.")
    return cleaned or "default"


class FileManager:
    """
    Manages the on-disk layout of uploaded recordings, outputs and temp files.

    Recordings live under <base>/recordings/<project>/ and are served by the
    API at /recordings/<project>/<file>.
    """

    def __init__(
        self,
        base_path: str = "storage",
        recordings_dir: str = "recordings",
        output_dir: str = "outputs",
        temp_dir: str = "temp"
    ):
        self.base_path = Path(base_path)
        self.recordings_dir = self.base_path / recordings_dir
        self.output_dir = self.base_path / output_dir
        self.temp_dir = self.base_path / temp_dir

        for dir_path in [self.recordings_dir, self.output_dir, self.temp_dir]:
            dir_path.mkdir(parents=True, exist_ok=True)

    def recording_path(self, project_id: str, recording_id: str, extension: str = ".webm") -> Path:
        project_dir = self.recordings_dir / safe_name(project_id)
        project_dir.mkdir(parents=True, exist_ok=True)
        return project_dir / f"recording-{safe_name(recording_id)}{extension}"

    def recording_url(self, path: Path) -> str:
        """Public URL of a stored recording."""
        relative = Path(path).resolve().relative_to(self.recordings_dir.resolve())
        return f"/recordings/{relative.as_posix()}"

    def resolve_recording_url(self, url: str) -> Optional[Path]:
        """Map a /recordings/... URL back to a local file, if it exists."""
        prefix = "/recordings/"
        if not url.startswith(prefix):
            return None
        candidate = (self.recordings_dir / url[len(prefix):]).resolve()
        if self.recordings_dir.resolve() not in candidate.parents:
            return None
        return candidate if candidate.exists() else None

    def get_temp_path(self, job_id: str, filename: str) -> Path:
        job_temp_dir = self.temp_dir / safe_name(job_id)
        job_temp_dir.mkdir(parents=True, exist_ok=True)
        return job_temp_dir / filename

    def cleanup_job_temp(self, job_id: str) -> None:
        job_temp_dir = self.temp_dir / safe_name(job_id)
        if job_temp_dir.exists():
            try:
                shutil.rmtree(job_temp_dir)
                logger.info(f"Cleaned up temp files for job: {job_id}")
            except OSError as e:
                logger.error(f"Failed to cleanup temp files for job {job_id}: {e}")

    def delete_file(self, path: Optional[str]) -> bool:
        if not path:
            return False
        target = Path(path)
        if not target.exists():
            return False
        try:
            target.unlink()
            logger.info(f"Deleted file: {target}")
            return True
        except OSError as e:
            logger.error(f"Failed to delete {target}: {e}")
            return False

    def cleanup_old_temp_files(self, max_age_hours: int = 24) -> int:
        """
        Remove temp directories older than max_age_hours.

        Returns:
            Number of directories removed
        """
        cutoff = datetime.now() - timedelta(hours=max_age_hours)
        removed_count = 0

        for item in self.temp_dir.iterdir():
            if not item.is_dir():
                continue
            try:
                if datetime.fromtimestamp(item.stat().st_mtime) < cutoff:
                    shutil.rmtree(item)
                    removed_count += 1
                    logger.info(f"Removed old temp directory: {item}")
            except OSError as e:
                logger.error(f"Failed to remove temp directory {item}: {e}")

        return removed_count
