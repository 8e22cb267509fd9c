"""
Application settings, read from the environment (and an optional .env file).

JWT_SECRET is required in production-like environments. Elsewhere a random
per-process secret is used, so tokens do not survive a restart.
"""

import secrets
from functools import lru_cache
from typing import List, Optional

from pydantic import model_validator
from pydantic_settings import BaseSettings, SettingsConfigDict

PRODUCTION_ENVIRONMENTS = ("production", "staging")

_PROCESS_SECRET = secrets.token_urlsafe(32)


class Settings(BaseSettings):
    model_config = SettingsConfigDict(env_file=".env", case_sensitive=False, extra="ignore")

    environment: str = "development"

    # Database
    mongodb_uri: str = "mongodb://localhost:27017"
    database_name: str = "workhub"

    # Auth
    jwt_secret: Optional[str] = None
    jwt_algorithm: str = "HS256"
    access_token_expire_hours: int = 24
    bcrypt_rounds: int = 10

    # API
    cors_origins: List[str] = ["http://localhost:3000"]
    port: int = 5001

    # Observability
    log_level: str = "INFO"
    log_format: str = "json"

    @model_validator(mode="after")
    def require_secret_in_production(self) -> "Settings":
        if self.is_production and not self.jwt_secret:
            raise ValueError(f"JWT_SECRET must be set when ENVIRONMENT={self.environment}")
        return self

    @property
    def is_production(self) -> bool:
        return self.environment.lower() in PRODUCTION_ENVIRONMENTS

    @property
    def ephemeral_secret(self) -> bool:
        return not self.jwt_secret

    @property
    def signing_secret(self) -> str:
        return self.jwt_secret or _PROCESS_SECRET


@lru_cache
def get_settings() -> Settings:
    return Settings()
