"""
Configuration management for the agent0 runner.

All settings come from environment variables (a ``.env`` file is loaded by
the server on startup). This module provides defaults and validation.
"""

import os
from dataclasses import dataclass, field
from pathlib import Path
from typing import Optional

DEFAULT_DB_PATH = Path(__file__).resolve().parent.parent / "runner" / "data" / "agent0.db"


def _env_float(name: str, default: float) -> float:
    raw = os.getenv(name)
    if raw is None or raw.strip() == "":
        return default
    return float(raw)


def _env_int(name: str, default: int) -> int:
    raw = os.getenv(name)
    if raw is None or raw.strip() == "":
        return default
    return int(raw)


@dataclass
class RunnerSettings:
    """
    Settings for the agent0 runner.

    Every field can be overridden with the environment variable of the same name.
    """

    # Storage
    DB_PATH: Path = DEFAULT_DB_PATH

    # Credential decryption (armored PEM private key + its passphrase)
    CREDENTIALS_PRIVATE_KEY: Optional[str] = None
    CREDENTIALS_PRIVATE_KEY_PASSPHRASE: Optional[str] = None

    # Generation
    GENERATION_TIMEOUT_SECONDS: float = 300.0  # per step; 0 disables
    DEFAULT_MAX_STEP_COUNT: int = 1

    # HTTP
    CORS_ORIGINS: list[str] = field(default_factory=lambda: ["*"])

    def __post_init__(self):
        """Validate settings after initialization."""
        if self.GENERATION_TIMEOUT_SECONDS < 0:
            raise ValueError(
                f"GENERATION_TIMEOUT_SECONDS must be >= 0, got {self.GENERATION_TIMEOUT_SECONDS}"
            )
        if self.DEFAULT_MAX_STEP_COUNT < 1:
            raise ValueError(
                f"DEFAULT_MAX_STEP_COUNT must be >= 1, got {self.DEFAULT_MAX_STEP_COUNT}"
            )

    @property
    def generation_timeout(self) -> Optional[float]:
        """Per-step vendor timeout in seconds, or None when disabled."""
        return self.GENERATION_TIMEOUT_SECONDS or None


def get_settings() -> RunnerSettings:
    """
    Build settings from defaults + environment overrides.

    Returns:
        RunnerSettings instance with all configuration.
    """
    return RunnerSettings(
        DB_PATH=Path(os.getenv("DB_PATH", str(DEFAULT_DB_PATH))),
        CREDENTIALS_PRIVATE_KEY=os.getenv("CREDENTIALS_PRIVATE_KEY"),
        CREDENTIALS_PRIVATE_KEY_PASSPHRASE=os.getenv("CREDENTIALS_PRIVATE_KEY_PASSPHRASE"),
        GENERATION_TIMEOUT_SECONDS=_env_float("GENERATION_TIMEOUT_SECONDS", 300.0),
        DEFAULT_MAX_STEP_COUNT=_env_int("DEFAULT_MAX_STEP_COUNT", 1),
        CORS_ORIGINS=os.getenv("CORS_ORIGINS", "*").split(","),
    )


# Singleton instance (lazy-loaded)
_settings_instance: Optional[RunnerSettings] = None


def runtime_settings() -> RunnerSettings:
    """Get the cached settings instance."""
    global _settings_instance
    if _settings_instance is None:
        _settings_instance = get_settings()
    return _settings_instance


def reset_settings():
    """Reset cached settings (useful for testing)."""
    global _settings_instance
    _settings_instance = None
