"""
config.py — Ardhi Registries Global Configuration
"""

from pydantic_settings import BaseSettings, SettingsConfigDict
from functools import lru_cache
from typing import List


class Settings(BaseSettings):

    model_config = SettingsConfigDict(
        env_file=".env",
        env_file_encoding="utf-8",
        extra="ignore",
    )

    # App
    APP_NAME: str = "Ardhi Registries"
    APP_VERSION: str = "1.0.0"
    DEBUG: bool = False
    ENVIRONMENT: str = "development"

    # API Server
    HOST: str = "0.0.0.0"
    PORT: int = 3001
    ALLOWED_ORIGINS: List[str] = [
        "http://localhost:3000",
    ]

    # Per client IP, fixed window
    RATE_LIMIT_REQUESTS: int = 100
    RATE_LIMIT_WINDOW_SECONDS: int = 15 * 60

    # Database
    DATABASE_URL: str = "sqlite+aiosqlite:///./ardhi.db"
    DB_POOL_SIZE: int = 10
    DB_MAX_OVERFLOW: int = 20

    # Blockchain
    BLOCKCHAIN_BACKEND: str = "simulation"
    WEB3_PROVIDER_URL: str = "http://127.0.0.1:7545"
    CHAIN_ID: int = 1337
    CONTRACT_ADDRESS: str = ""
    DEPLOYER_PRIVATE_KEY: str = ""

    # Auth
    JWT_SECRET_KEY: str = "change-me-in-production"
    JWT_ALGORITHM: str = "HS256"
    JWT_EXPIRY_MINUTES: int = 24 * 60
    PASSWORD_HASH_ITERATIONS: int = 100_000

    # Notifications
    SMTP_HOST: str = ""
    SMTP_PORT: int = 587
    SMTP_USER: str = ""
    SMTP_PASSWORD: str = ""
    MAIL_FROM: str = "admin@ardhi-registries.com"
    MAIL_DEFAULT_SUBJECT: str = "Ardhi Registries Notification"
    SMS_FROM_NUMBER: str = ""

    # Uploads
    MAX_FILE_SIZE: int = 10 * 1024 * 1024
    ALLOWED_FILE_TYPES: List[str] = [
        "image/jpeg",
        "image/png",
        "image/gif",
        "application/pdf",
    ]

    # Listings
    DEFAULT_PAGE_SIZE: int = 10
    MAX_PAGE_SIZE: int = 100

    # Logging
    LOG_LEVEL: str = "INFO"
    LOG_FILE: str = "ardhi.log"


@lru_cache()
def get_settings() -> Settings:
    return Settings()


settings = get_settings()
