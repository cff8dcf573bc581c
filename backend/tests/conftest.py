"""
Shared fixtures.

The config file is redirected to a throwaway directory before any promoreel
module is imported, so tests never read or write ./storage.
"""

import json
import os
import tempfile
from pathlib import Path

import pytest

_TEST_ROOT = Path(tempfile.mkdtemp(prefix="promoreel-tests-"))
_CONFIG_FILE = _TEST_ROOT / "config.json"
_CONFIG_FILE.write_text(json.dumps({"storage": {"base_path": str(_TEST_ROOT / "storage")}}))
os.environ["PROMOREEL_CONFIG"] = str(_CONFIG_FILE)


from promoreel.models.config import FullConfig  # noqa: E402
from promoreel.utils.file_manager import FileManager  # noqa: E402


@pytest.fixture
def config(tmp_path):
    """Default config with storage under tmp_path and no model API key."""
    cfg = FullConfig()
    cfg.storage.base_path = str(tmp_path / "storage")
    return cfg


@pytest.fixture
def file_manager(tmp_path):
    return FileManager(base_path=str(tmp_path / "storage"))


