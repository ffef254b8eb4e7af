"""Application configuration loaded from config.yaml + environment variables."""

from __future__ import annotations

import yaml
from pathlib import Path
from pydantic import Field
from pydantic_settings import BaseSettings

_CONFIG_PATH = Path(__file__).resolve().parent.parent / "config.yaml"


def _load_yaml() -> dict:
    if _CONFIG_PATH.exists():
        with open(_CONFIG_PATH) as f:
            return yaml.safe_load(f) or {}
    return {}


_yaml = _load_yaml()


class SyncConfig(BaseSettings):
    poll_interval_seconds: float = 5.0
    request_timeout_seconds: float = 10.0


class PricingConfig(BaseSettings):
    min_price: float = 20.0
    max_price: float = 250.0
    model: str = ""


class SessionStoreConfig(BaseSettings):
    path: str = "data/session.json"


class Settings(BaseSettings):
    database_url: str = "sqlite+aiosqlite:///data/helpr.db"
    api_base_url: str = "http://127.0.0.1:8000"
    openai_api_key: str = ""
    anthropic_api_key: str = ""
    sync: SyncConfig = Field(default_factory=SyncConfig)
    pricing: PricingConfig = Field(default_factory=PricingConfig)
    session_store: SessionStoreConfig = Field(default_factory=SessionStoreConfig)

    model_config = {"env_file": ".env", "env_file_encoding": "utf-8"}


def get_settings() -> Settings:
    """Build Settings by merging YAML defaults with env overrides."""
    y = _yaml
    sync = SyncConfig(**y.get("sync", {}))
    pricing = PricingConfig(**y.get("pricing", {}))
    store = SessionStoreConfig(**y.get("session_store", {}))
    overrides = {}
    db_url = y.get("database", {}).get("url")
    if db_url:
        overrides["database_url"] = db_url
    api_url = y.get("api", {}).get("base_url")
    if api_url:
        overrides["api_base_url"] = api_url
    return Settings(
        sync=sync,
        pricing=pricing,
        session_store=store,
        **overrides,
    )
