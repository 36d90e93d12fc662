"""
Service configuration

Settings are read once from environment variables.
"""
import os
from dataclasses import dataclass
from functools import lru_cache
from typing import Optional


@dataclass(frozen=True)
class Settings:
    database_url: Optional[str]
    database_name: Optional[str]
    prices_api_url: str
    shops_api_url: str
    http_timeout_seconds: float
    api_username: str
    api_password: str
    port: int
    environment: str


def load_settings() -> Settings:
    return Settings(
        database_url=os.getenv("DATABASE_URL"),
        database_name=os.getenv("DATABASE_NAME"),
        prices_api_url=os.getenv("PRICES_API_URL", "http://prices:8080").rstrip("/"),
        shops_api_url=os.getenv("SHOPS_API_URL", "http://shops:8080").rstrip("/"),
        http_timeout_seconds=float(os.getenv("HTTP_TIMEOUT_SECONDS", "5")),
        api_username=os.getenv("API_USERNAME", "admin"),
        api_password=os.getenv("API_PASSWORD", "changeme"),
        port=int(os.getenv("PORT", 8000)),
        environment=os.getenv("ENVIRONMENT", "development").lower(),
    )


@lru_cache(maxsize=1)
def get_settings() -> Settings:
    return load_settings()
