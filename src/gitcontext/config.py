"""Configuration loader for gitcontext.

Loads from gitcontext.toml with sensible defaults when file is absent.
Configuration is loaded once at startup and passed via dependency injection.
"""

from __future__ import annotations

import tomllib
from dataclasses import dataclass, field
from pathlib import Path

CREDENTIAL_BACKENDS = ("keyring", "memory")
LOG_LEVELS = ("DEBUG", "INFO", "WARNING", "ERROR", "CRITICAL")


class ConfigError(Exception):
    """Raised when configuration loading or validation fails."""


@dataclass(frozen=True)
class StorageConfig:
    accounts_path: str = "~/.gitcontext/accounts.json"
    profiles_path: str = "~/.gitcontext/profiles.json"


@dataclass(frozen=True)
class CredentialsConfig:
    backend: str = "keyring"  # "keyring" | "memory"
    service_name: str = "gitcontext"


@dataclass(frozen=True)
class LoggingConfig:
    level: str = "INFO"


@dataclass(frozen=True)
class Config:
    """Root configuration."""

    storage: StorageConfig = field(default_factory=StorageConfig)
    credentials: CredentialsConfig = field(default_factory=CredentialsConfig)
    logging: LoggingConfig = field(default_factory=LoggingConfig)

    @property
    def accounts_path(self) -> Path:
        return Path(self.storage.accounts_path).expanduser()

    @property
    def profiles_path(self) -> Path:
        return Path(self.storage.profiles_path).expanduser()


def load_config(path: Path | None = None) -> Config:
    """Load configuration from a TOML file.

    If path is None, searches for gitcontext.toml in the current directory
    then ~/.gitcontext/. Returns default config if no file is found.
    """
    if path is None:
        candidates = [
            Path.cwd() / "gitcontext.toml",
            Path.home() / ".gitcontext" / "gitcontext.toml",
        ]
        for candidate in candidates:
            if candidate.exists():
                path = candidate
                break

    if path is None or not path.exists():
        return Config()

    try:
        with open(path, "rb") as f:
            raw = tomllib.load(f)
    except tomllib.TOMLDecodeError as e:
        raise ConfigError(f"Invalid TOML in {path}: {e}") from e
    except OSError as e:
        raise ConfigError(f"Cannot read config {path}: {e}") from e

    storage_data = raw.get("storage", {})
    storage = StorageConfig(
        accounts_path=str(
            storage_data.get("accounts_path", "~/.gitcontext/accounts.json")
        ),
        profiles_path=str(
            storage_data.get("profiles_path", "~/.gitcontext/profiles.json")
        ),
    )

    cred_data = raw.get("credentials", {})
    backend = str(cred_data.get("backend", "keyring")).strip().lower()
    if backend not in CREDENTIAL_BACKENDS:
        raise ConfigError(
            f"Unknown credentials backend {backend!r} in {path}. "
            f"Expected one of: {', '.join(CREDENTIAL_BACKENDS)}"
        )
    credentials = CredentialsConfig(
        backend=backend,
        service_name=str(cred_data.get("service_name", "gitcontext")),
    )

    log_data = raw.get("logging", {})
    level = str(log_data.get("level", "INFO")).upper()
    if level not in LOG_LEVELS:
        raise ConfigError(f"Unknown logging level {level!r} in {path}")
    logging_cfg = LoggingConfig(level=level)

    return Config(
        storage=storage,
        credentials=credentials,
        logging=logging_cfg,
    )
