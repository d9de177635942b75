"""
Configuration management for the SkillSwap marketplace service.
Values are read from environment variables (or a local .env file).
"""

from functools import lru_cache
from typing import Optional

from pydantic_settings import BaseSettings, SettingsConfigDict


class Settings(BaseSettings):
    """
    Application settings loaded from environment variables.

    Environment variable names are matched case-insensitively, so
    FIREBASE_CREDENTIALS_PATH populates firebase_credentials_path.
    """

    model_config = SettingsConfigDict(env_file=".env", case_sensitive=False, extra="ignore")

    # Application Info
    app_name: str = "SkillSwap Marketplace API"
    version: str = "1.0.0"
    environment: str = "development"
    log_level: str = "INFO"

    # API Configuration
    api_prefix: str = "/api"
    host: str = "0.0.0.0"
    port: int = 5000

    # Firestore
    firebase_credentials_path: Optional[str] = None
    firebase_config_path: Optional[str] = None
    firebase_project_id: Optional[str] = None


@lru_cache
def get_settings() -> Settings:
    return Settings()
