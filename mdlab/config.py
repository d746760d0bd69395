"""
Settings, read from ``MDLAB_*`` environment variables (and a ``.env`` file).
"""

import os
import tempfile
from pathlib import Path
from typing import Optional

from dotenv import load_dotenv
from pydantic import BaseModel, Field


def _parse_bool(value: Optional[str], default: bool = False) -> bool:
    if value is None or value == "":
        return default
    return value.lower() in ("1", "true", "yes", "y", "on")


class Settings(BaseModel):
    """Runtime configuration."""

    base_path: Path = Field(default_factory=lambda: Path.home() / "mdl")
    base_file: str = "index.md"
    temp_path: Path = Field(default_factory=lambda: Path(tempfile.gettempdir()) / "mdl")
    strict_exit_code: bool = False
    python_command: Optional[str] = None
    log_level: str = "WARNING"

    def workspace(self, name: str = "") -> Path:
        """A directory under the temp workspace, created if missing."""
        path = self.temp_path / name if name else self.temp_path
        path.mkdir(parents=True, exist_ok=True)
        return path

    @property
    def index_file(self) -> Path:
        return self.base_path / self.base_file


def load_settings(env_file: Optional[Path] = None) -> Settings:
    """Load settings from the environment."""
    load_dotenv(env_file)

    values = {}
    if os.getenv("MDLAB_BASE_PATH"):
        values["base_path"] = Path(os.environ["MDLAB_BASE_PATH"]).expanduser()
    if os.getenv("MDLAB_BASE_FILE"):
        values["base_file"] = os.environ["MDLAB_BASE_FILE"]
    if os.getenv("MDLAB_TEMP_PATH"):
        values["temp_path"] = Path(os.environ["MDLAB_TEMP_PATH"]).expanduser()
    if os.getenv("MDLAB_PYTHON"):
        values["python_command"] = os.environ["MDLAB_PYTHON"]
    if os.getenv("MDLAB_LOG_LEVEL"):
        values["log_level"] = os.environ["MDLAB_LOG_LEVEL"].upper()
    values["strict_exit_code"] = _parse_bool(os.getenv("MDLAB_STRICT_EXIT_CODE"), False)

    return Settings(**values)
