"""Configuration settings for PetCare."""

from pydantic_settings import BaseSettings
from functools import lru_cache


class Settings(BaseSettings):
    """Application settings loaded from environment variables."""

    # MongoDB settings
    mongodb_url: str = "mongodb://localhost:27017"
    mongodb_database: str = "petcare"

    # Identity provider settings
    identity_api_key: str = ""
    identity_base_url: str = "https://identitytoolkit.googleapis.com/v1"
    secure_token_url: str = "https://securetoken.googleapis.com/v1/token"
    identity_timeout_seconds: float = 10.0

    # Local session cache; empty keeps the cache in memory only
    session_cache_path: str = ""

    # Application settings
    app_name: str = "PetCare"
    debug: bool = False

    model_config = {
        "env_file": ".env",
        "env_file_encoding": "utf-8",
    }


@lru_cache
def get_settings() -> Settings:
    """Get cached settings instance."""
    return Settings()
