"""
Configuration Management Module

Provides centralized configuration using pydantic-settings for environment-based configuration.
"""

from pathlib import Path

from pydantic_settings import BaseSettings
from typing import Optional

from .storage import StorageInterface, InMemoryStorage, SQLiteStorage


class ConsortiumConfig(BaseSettings):
    """KYC consortium configuration"""

    # Fixed admin identity; the deployer of the consortium
    admin_address: str = "admin"

    # Database configuration
    database_url: str = "sqlite:///kyc_consortium.db"  # or memory://

    # Logging configuration
    log_level: str = "INFO"
    log_format: str = "json"  # json or text
    log_file: Optional[str] = None  # If None, logs to stdout

    # Feature flags
    enable_audit_logging: bool = True
    enable_events: bool = True

    class Config:
        env_prefix = "KYC_"
        env_file = ".env"
        case_sensitive = False


# Global configuration instance
config = ConsortiumConfig()


def get_config() -> ConsortiumConfig:
    """Get global configuration instance"""
    return config


def reload_config() -> ConsortiumConfig:
    """Reload configuration from environment"""
    global config
    config = ConsortiumConfig()
    return config


def create_storage(cfg: Optional[ConsortiumConfig] = None) -> StorageInterface:
    """Build the storage backend named by ``database_url``"""
    cfg = cfg or get_config()
    url = cfg.database_url

    if url.startswith("memory://"):
        return InMemoryStorage()
    if url.startswith("sqlite:///"):
        path = url[len("sqlite:///"):] or ":memory:"
        if path != ":memory:":
            Path(path).parent.mkdir(parents=True, exist_ok=True)
        return SQLiteStorage(path)

    raise ValueError(f"Unsupported database_url: {url}")
