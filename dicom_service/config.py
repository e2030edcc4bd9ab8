"""Runtime configuration read from the process environment."""

import logging
from dataclasses import dataclass
from pathlib import Path
from typing import Optional

from environs import Env


@dataclass(frozen=True)
class Settings:
    upload_dir: Path = Path("uploads")
    host: str = "0.0.0.0"
    port: int = 8080
    log_level: int = logging.INFO
    log_file: Optional[Path] = None

    @classmethod
    def from_env(cls, env: Optional[Env] = None) -> "Settings":
        """
        Builds settings from DICOM_* and LOG_* environment variables.

        A `.env` file in the working directory is honoured when present.
        """
        if env is None:
            env = Env()
            env.read_env()

        log_file = env.path("LOG_FILE", None)
        return cls(
            upload_dir=env.path("DICOM_UPLOAD_DIR", "uploads"),
            host=env("DICOM_HOST", "0.0.0.0"),
            port=env.int("DICOM_PORT", 8080),
            log_level=env.log_level("LOG_LEVEL", "INFO"),
            log_file=log_file,
        )
