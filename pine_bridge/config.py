"""Runtime configuration for the app, loaded from the environment (and `.env`)."""
from functools import lru_cache

from pydantic import Field
from pydantic_settings import BaseSettings, SettingsConfigDict


class Settings(BaseSettings):
    model_config = SettingsConfigDict(env_file=".env", extra="ignore")

    database_url: str = Field(default="sqlite:///./pine_bridge.db")
    # Ignored for SQLite
    db_pool_size: int = Field(default=5, ge=1)
    db_max_overflow: int = Field(default=10, ge=0)

    session_secret: str = Field(default="pine-bridge-dev-secret")
    session_ttl_seconds: int = Field(default=60 * 60 * 24 * 7, gt=0)  # 1 week
    session_cookie: str = Field(default="pine_bridge_session")
    # Only send the cookie over HTTPS; turn on in production
    cookie_secure: bool = Field(default=False)

    log_level: str = Field(default="INFO")
    log_json: bool = Field(default=False)

    # Defaults for the seed CLI
    admin_email: str = Field(default="admin@pinebridge.com")
    admin_password: str = Field(default="admin123")


@lru_cache()
def get_settings() -> Settings:
    return Settings()
