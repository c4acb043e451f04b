"""Application Settings and Configuration.

This module provides application-wide settings read from the environment,
with a ``.env`` file in the working directory loaded first when present.

Environment Variables:
    - HHR_APP_NAME: Application name shown by the CLI
    - HHR_PARSER_VERSION: Parser version used by the service (default "v1")
    - HHR_LOG_LEVEL: Logging level (default "INFO")
    - HHR_LOG_JSON: Emit JSON log lines when "true" (default "false")
    - HHR_SOURCE_DIR: Directory holding raw ``<patientId>.json`` payloads
    - HHR_MAX_PAYLOAD_SIZE: Largest payload file accepted, in bytes

Security Impact:
    - Settings never hold patient data
    - The payload size cap bounds memory used by a single source read
"""

import logging
import os
from pathlib import Path
from typing import Optional

from dotenv import load_dotenv

from history_reconciler import __version__

logger = logging.getLogger(__name__)

# Application metadata
APP_NAME = "History-Reconciler"
APP_VERSION = __version__

DEFAULT_PARSER_VERSION = "v1"
DEFAULT_SOURCE_DIR = "data"

# Default max payload size (10MB)
DEFAULT_MAX_PAYLOAD_SIZE = 10 * 1024 * 1024


def _env_bool(name: str, default: str) -> bool:
    return os.getenv(name, default).strip().lower() in ("1", "true", "yes", "on")


class Settings:
    """Application settings loaded from the environment.

    Parameters:
        env_file: Optional ``.env`` file to load before reading variables.
            Variables already set in the process environment take precedence.
    """

    def __init__(self, env_file: Optional[Path] = None):
        """Initialize settings from environment."""
        env_path = env_file or Path.cwd() / ".env"
        if env_path.exists():
            load_dotenv(env_path)
            logger.debug(f"Loaded environment variables from {env_path}")

        self.app_name = os.getenv("HHR_APP_NAME", APP_NAME)
        self.app_version = APP_VERSION
        self.parser_version = os.getenv("HHR_PARSER_VERSION", DEFAULT_PARSER_VERSION)

        # Logging
        self.log_level = os.getenv("HHR_LOG_LEVEL", "INFO")
        self.log_json = _env_bool("HHR_LOG_JSON", "false")

        # Raw payload source
        self.source_dir = os.getenv("HHR_SOURCE_DIR", DEFAULT_SOURCE_DIR)
        self.max_payload_size = int(os.getenv("HHR_MAX_PAYLOAD_SIZE", str(DEFAULT_MAX_PAYLOAD_SIZE)))

    def get_source_dir(self) -> Path:
        """Get the raw payload directory as a Path."""
        return Path(self.source_dir)


# Global settings instance
settings = Settings()
