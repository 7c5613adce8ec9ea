"""
Company Mapper Configuration
============================

Loads settings from environment variables.

Environment selection:
- COMPANY_MAPPER_ENV selects the environment (default: development)
- Looks for .env.{COMPANY_MAPPER_ENV} in the project root first
- Falls back to the root .env if the env-specific file is not found
- On a PaaS the variables come straight from the process environment
"""

import logging
import os
from functools import lru_cache
from pathlib import Path
from typing import List

from dotenv import load_dotenv
from pydantic_settings import BaseSettings, SettingsConfigDict

PROJECT_ROOT = Path(__file__).parent.parent

LOG_FORMAT = "%(asctime)s %(levelname)-8s %(name)s: %(message)s"


def _load_env_file():
    """Load the correct .env file based on COMPANY_MAPPER_ENV."""
    env_name = os.getenv("COMPANY_MAPPER_ENV", "development")
    env_specific = PROJECT_ROOT / f".env.{env_name}"
    env_root = PROJECT_ROOT / ".env"

    if env_specific.exists():
        load_dotenv(env_specific, override=True)
    elif env_root.exists():
        load_dotenv(env_root, override=True)


# Load the environment-specific .env BEFORE Settings reads the environment
_load_env_file()


class Settings(BaseSettings):
    """Service settings from environment"""

    model_config = SettingsConfigDict(extra="ignore")

    ENV: str = os.getenv("COMPANY_MAPPER_ENV", "development")
    SITE_NAME: str = "Company Mapper"

    # Storage: "file" (JSON files under DATA_DIR) or "memory" (lost on restart)
    STORAGE_BACKEND: str = "file"
    DATA_DIR: str = "data"

    # Admin login
    ADMIN_EMAIL: str = "admin@companymap.com"
    ADMIN_PASSWORD_HASH: str = ""           # bcrypt hash; empty = default password
    BCRYPT_ROUNDS: int = 12

    # Session tokens
    JWT_SECRET_KEY: str = "CHANGE-THIS-IN-PRODUCTION-use-openssl-rand-hex-32"
    JWT_ALGORITHM: str = "HS256"
    SESSION_EXPIRE_DAYS: int = 7
    SESSION_COOKIE_NAME: str = "admin_session"

    # Uploads nested deeper than this are rejected
    MAX_TREE_DEPTH: int = 100

    # Tag classification
    CLASSIFICATION_TABLE_PATH: str = ""
    HOME_COUNTRY: str = "France"
    HOME_COUNTRY_CODE: str = "FR"

    LOG_LEVEL: str = "INFO"

    # Comma-separated
    CORS_ORIGINS: str = "http://localhost:3000,http://127.0.0.1:3000"

    @property
    def is_production(self) -> bool:
        return self.ENV == "production"

    @property
    def cors_origins(self) -> List[str]:
        return [o.strip() for o in self.CORS_ORIGINS.split(",") if o.strip()]

    def data_path(self) -> Path:
        """DATA_DIR as an absolute path (relative paths hang off the project root)."""
        path = Path(self.DATA_DIR)
        return path if path.is_absolute() else PROJECT_ROOT / path


@lru_cache
def get_settings() -> Settings:
    return Settings()


def configure_logging(level: str = "INFO"):
    logging.basicConfig(level=level.upper(), format=LOG_FORMAT)
