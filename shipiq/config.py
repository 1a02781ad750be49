"""Centralised configuration loader for ShipIQ services."""

from __future__ import annotations

import os
from functools import lru_cache
from pathlib import Path
from typing import Any, Dict, Optional

import yaml
from pydantic import BaseModel, Field


def _env(name: str, default: Optional[str] = None) -> Optional[str]:
    value = os.getenv(name)
    return value if value else default


class MongoSettings(BaseModel):
    uri: str = Field(
        default_factory=lambda: _env("MONGODB_URI", "mongodb://localhost:27017")
    )
    database: str = Field(default_factory=lambda: _env("MONGODB_DB_NAME", "shipiq"))
    options: Dict[str, Any] = Field(default_factory=dict)


class RedisSettings(BaseModel):
    url: str = Field(
        default_factory=lambda: _env("REDIS_URL", "redis://localhost:6379/0")
    )
    # Seconds to wait for a per-secret lock before giving up.
    lock_timeout: int = Field(default=10)


class GitHubSettings(BaseModel):
    api_url: str = Field(default="https://api.github.com")
    app_id: Optional[str] = Field(default_factory=lambda: _env("GITHUB_APP_ID"))
    # PEM string or path to the PEM file.
    private_key: Optional[str] = Field(
        default_factory=lambda: _env("GITHUB_APP_PRIVATE_KEY_PATH")
        or _env("GITHUB_APP_PRIVATE_KEY")
    )
    webhook_secret: Optional[str] = Field(
        default_factory=lambda: _env("GITHUB_WEBHOOK_SECRET")
    )
    request_timeout: float = Field(default=30.0)
    cache_installation_tokens: bool = Field(default=True)


class SecretSettings(BaseModel):
    # 64 hex characters (32 bytes).
    encryption_key: Optional[str] = Field(
        default_factory=lambda: _env("ENCRYPTION_KEY")
    )


class ScannerSettings(BaseModel):
    default_branch: str = Field(default="main")
    manifest_path: str = Field(default="package.json")


class RetrySettings(BaseModel):
    webhook_url: Optional[str] = Field(
        default_factory=lambda: _env("RETRY_WEBHOOK_URL")
    )
    timeout: float = Field(default=30.0)


class LoggingSettings(BaseModel):
    level: str = Field(default_factory=lambda: _env("LOG_LEVEL", "INFO"))


class Settings(BaseModel):
    environment: str = Field(default="local")
    mongo: MongoSettings = Field(default_factory=MongoSettings)
    redis: RedisSettings = Field(default_factory=RedisSettings)
    github: GitHubSettings = Field(default_factory=GitHubSettings)
    secrets: SecretSettings = Field(default_factory=SecretSettings)
    scanner: ScannerSettings = Field(default_factory=ScannerSettings)
    retry: RetrySettings = Field(default_factory=RetrySettings)
    logging: LoggingSettings = Field(default_factory=LoggingSettings)

    @property
    def github_app_configured(self) -> bool:
        return bool(self.github.app_id and self.github.private_key)


def _load_yaml(path: Path) -> Dict[str, Any]:
    with path.open("r", encoding="utf-8") as handle:
        data = yaml.safe_load(handle) or {}
        if not isinstance(data, dict):
            raise ValueError(f"Config at {path} must be a mapping")
        return data


def _config_path() -> Path:
    env_path = os.getenv("SHIPIQ_CONFIG")
    if env_path:
        return Path(env_path).expanduser().resolve()
    return Path(__file__).resolve().parents[1] / "config" / "shipiq.yml"


def load_settings(path: Optional[Path] = None) -> Settings:
    """Build settings from a YAML file; a missing file means env/defaults only."""
    config_path = path or _config_path()
    raw = _load_yaml(config_path) if config_path.exists() else {}
    return Settings(**raw)


@lru_cache(maxsize=1)
def get_settings() -> Settings:
    return load_settings()
