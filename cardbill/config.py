"""Configuration for the board client, record store and billing.

Loads from YAML config file with environment variable overrides.
Pattern: CONFIG__{SECTION}__{KEY} overrides nested YAML keys.
Example: CONFIG__BILLING__HOURLY_RATE=900

The config object is built once at startup and handed to every component
that talks to an external service.
"""

import os
from pathlib import Path
from typing import Optional

import yaml
from pydantic import BaseModel, Field


# --- Board Service ---


class BoardConfig(BaseModel):
    base_url: str = "https://example.kaiten.ru/api/latest"
    api_token: str = ""  # from env: BOARD_API_TOKEN
    timeout: float = 10.0


# --- Record Store ---


class DatabaseConfig(BaseModel):
    url: str = "sqlite+aiosqlite:///data/cardbill.db"
    echo: bool = False


# --- Billing ---


class BillingConfig(BaseModel):
    hourly_rate: float = Field(default=850, ge=0, description="Rate per hour, display only")
    currency: str = "RUB"


class ArchiveSyncConfig(BaseModel):
    inter_call_delay: float = Field(default=0.2, ge=0)  # seconds between PATCH calls
    retry_delay: float = Field(default=1.0, ge=0)  # wait after a 429
    max_retries: int = Field(default=1, ge=0)


class CacheConfig(BaseModel):
    ttl_seconds: float = 300  # 5 minutes
    max_size: int = Field(default=1000, ge=1)


class EmbedConfig(BaseModel):
    """What a host page hands over when it mounts the dashboard."""

    container_id: str = "kaiten-app"
    api_url: str = ""
    api_token: str = ""


# --- Service Config ---


class ServiceConfig(BaseModel):
    board: BoardConfig = BoardConfig()
    database: DatabaseConfig = DatabaseConfig()
    billing: BillingConfig = BillingConfig()
    archive_sync: ArchiveSyncConfig = ArchiveSyncConfig()
    cache: CacheConfig = CacheConfig()
    container_id: str = "kaiten-app"

    def with_embed(self, embed: EmbedConfig) -> "ServiceConfig":
        """Return a copy bound to the host's container and board credentials."""
        board = self.board.model_copy(
            update={
                "base_url": embed.api_url or self.board.base_url,
                "api_token": embed.api_token or self.board.api_token,
            }
        )
        return self.model_copy(
            update={"board": board, "container_id": embed.container_id}
        )


def _apply_env_overrides(config_dict: dict, prefix: str = "CONFIG") -> dict:
    """Apply environment variable overrides to config dict.

    Pattern: CONFIG__SECTION__KEY=value maps to config[section][key] = value
    """
    for key, value in os.environ.items():
        if not key.startswith(f"{prefix}__"):
            continue
        parts = key[len(prefix) + 2 :].lower().split("__")
        target = config_dict
        for part in parts[:-1]:
            target = target.setdefault(part, {})
        # Type coercion for common cases
        if value.lower() in ("true", "false"):
            value = value.lower() == "true"
        elif value.isdigit():
            value = int(value)
        target[parts[-1]] = value
    return config_dict


def load_config(
    config_path: Optional[str] = None,
) -> ServiceConfig:
    """Load configuration from YAML file with env overrides.

    Priority: env vars > YAML file > defaults
    """
    config_dict = {}

    # 1. Load YAML if exists
    if config_path is None:
        config_path = os.getenv("CONFIG_PATH", "config/cardbill.yml")
    path = Path(config_path)
    if path.exists():
        with open(path) as f:
            config_dict = yaml.safe_load(f) or {}

    # 2. Apply env overrides
    config_dict = _apply_env_overrides(config_dict)

    # 3. Dedicated env vars for the two secrets-ish settings
    board = config_dict.setdefault("board", {})
    if not board.get("api_token"):
        board["api_token"] = os.getenv("BOARD_API_TOKEN", "")
    if os.getenv("BOARD_API_URL"):
        board["base_url"] = os.getenv("BOARD_API_URL")

    database = config_dict.setdefault("database", {})
    if os.getenv("DATABASE_URL"):
        database["url"] = os.environ["DATABASE_URL"]

    return ServiceConfig(**config_dict)


def get_database_url(config: DatabaseConfig) -> str:
    """Normalize the record store URL to an async driver."""
    url = config.url
    # Common Heroku/Cloud SQL pattern: postgres:// → postgresql://
    if url.startswith("postgres://"):
        url = url.replace("postgres://", "postgresql+asyncpg://", 1)
    return url
