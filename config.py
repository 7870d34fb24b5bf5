"""
Application settings

Loaded once from the environment (and an optional .env file) into an
immutable Settings object. Components receive it through get_settings().
"""
import logging
import os
from functools import lru_cache
from typing import List
from urllib.parse import quote_plus

from dotenv import load_dotenv
from pydantic import BaseModel, ConfigDict, Field

logger = logging.getLogger("drapegear.config")

DEV_ACCESS_SECRET = "dev-access-secret-change"
DEV_REFRESH_SECRET = "dev-refresh-secret-change"


class Settings(BaseModel):
    model_config = ConfigDict(frozen=True)

    database_url: str = "mongodb://localhost:27017"
    database_name: str = "drapeGearDB"
    access_token_secret: str = DEV_ACCESS_SECRET
    refresh_token_secret: str = DEV_REFRESH_SECRET
    access_token_expire_minutes: int = Field(60, ge=1)
    refresh_token_expire_days: int = Field(7, ge=1)
    stripe_secret_key: str = ""
    payment_currency: str = "usd"
    allow_admin_registration: bool = True
    cors_origins: List[str] = Field(default_factory=lambda: ["*"])
    log_level: str = "INFO"
    port: int = 5000


def _env_flag(name: str, default: bool = False) -> bool:
    value = os.getenv(name)
    if value is None:
        return default
    return value.strip().lower() in ("1", "true", "yes", "on")


def _database_url() -> str:
    url = os.getenv("DATABASE_URL")
    if url:
        return url
    user, password, host = os.getenv("DB_USER"), os.getenv("DB_PASS"), os.getenv("DB_HOST")
    if user and password and host:
        return f"mongodb+srv://{quote_plus(user)}:{quote_plus(password)}@{host}/?retryWrites=true&w=majority"
    return "mongodb://localhost:27017"


def load_settings() -> Settings:
    load_dotenv()
    origins = [o.strip() for o in os.getenv("CORS_ORIGINS", "*").split(",") if o.strip()]
    settings = Settings(
        database_url=_database_url(),
        database_name=os.getenv("DATABASE_NAME", "drapeGearDB"),
        access_token_secret=os.getenv("ACCESS_TOKEN_SECRET", DEV_ACCESS_SECRET),
        refresh_token_secret=os.getenv("REFRESH_TOKEN_SECRET", DEV_REFRESH_SECRET),
        access_token_expire_minutes=int(os.getenv("ACCESS_TOKEN_EXPIRE_MINUTES", "60")),
        refresh_token_expire_days=int(os.getenv("REFRESH_TOKEN_EXPIRE_DAYS", "7")),
        stripe_secret_key=os.getenv("STRIPE_SECRET_KEY", ""),
        payment_currency=os.getenv("PAYMENT_CURRENCY", "usd").lower(),
        allow_admin_registration=_env_flag("ALLOW_ADMIN_REGISTRATION", default=True),
        cors_origins=origins or ["*"],
        log_level=os.getenv("LOG_LEVEL", "INFO").upper(),
        port=int(os.getenv("PORT", "5000")),
    )
    if settings.access_token_secret == DEV_ACCESS_SECRET or settings.refresh_token_secret == DEV_REFRESH_SECRET:
        logger.warning("Token secrets not set, using development defaults")
    if settings.allow_admin_registration:
        logger.warning("Self-service admin registration is enabled")
    return settings


@lru_cache
def get_settings() -> Settings:
    return load_settings()
