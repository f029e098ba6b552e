"""Configuration management for novelverse.

Loads configuration from environment variables and provides defaults.
"""

import os
from dataclasses import dataclass
from pathlib import Path
from typing import Optional

from dotenv import load_dotenv

# Load .env file if present
load_dotenv()

DEFAULT_API_URL = "http://localhost:7777"
DEFAULT_DEBOUNCE_SECONDS = 2.0


@dataclass
class Config:
    """Application configuration."""

    # API
    api_url: str
    timeout: int  # seconds

    # Reading sessions
    debounce_seconds: float

    # Local storage
    db_path: Path
    credentials_path: Path

    # Logging
    log_level: str

    @classmethod
    def from_env(cls) -> "Config":
        """Load configuration from environment variables."""
        base_dir = Path.home() / ".novelverse"

        return cls(
            api_url=os.environ.get("NOVELVERSE_API_URL", DEFAULT_API_URL).rstrip("/"),
            timeout=int(os.environ.get("NOVELVERSE_TIMEOUT", "10")),
            debounce_seconds=float(
                os.environ.get("NOVELVERSE_DEBOUNCE_SECONDS", str(DEFAULT_DEBOUNCE_SECONDS))
            ),
            db_path=Path(
                os.environ.get("NOVELVERSE_DB_PATH", str(base_dir / "progress.db"))
            ).expanduser(),
            credentials_path=Path(
                os.environ.get(
                    "NOVELVERSE_CREDENTIALS_PATH", str(base_dir / "credentials.json")
                )
            ).expanduser(),
            log_level=os.environ.get("NOVELVERSE_LOG_LEVEL", "WARNING").upper(),
        )

    def validate(self) -> list[str]:
        """Validate configuration, return list of errors."""
        errors = []

        if not self.api_url.startswith(("http://", "https://")):
            errors.append(f"API URL must start with http:// or https://: {self.api_url}")

        if self.timeout <= 0:
            errors.append(f"Timeout must be positive: {self.timeout}")

        if self.debounce_seconds < 0:
            errors.append(f"Debounce window cannot be negative: {self.debounce_seconds}")

        # Check local storage directories are writable
        for path in (self.db_path, self.credentials_path):
            if not path.parent.exists():
                try:
                    path.parent.mkdir(parents=True, exist_ok=True)
                except PermissionError:
                    errors.append(f"Cannot create directory: {path.parent}")

        return errors


# Global config instance
_config: Optional[Config] = None


def get_config() -> Config:
    """Get or create the global config instance."""
    global _config
    if _config is None:
        _config = Config.from_env()
    return _config


def reset_config() -> None:
    """Reset the global config instance. Used for testing."""
    global _config
    _config = None
