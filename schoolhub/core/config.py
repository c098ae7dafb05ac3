from typing import Optional

from pydantic import Field
from pydantic_settings import BaseSettings


class Settings(BaseSettings):
    """Application configuration loaded from environment variables."""

    service_name: str = Field("school-management-api", alias="SERVICE_NAME")
    environment: str = Field("development", alias="ENVIRONMENT")
    port: int = Field(3000, alias="PORT")

    database_url: str = Field("sqlite+aiosqlite:///./schoolhub.db", alias="DATABASE_URL")
    # Memory cache is used when unset
    redis_url: Optional[str] = Field(None, alias="REDIS_URL")
    cache_ttl: int = Field(3600, alias="CACHE_TTL")

    jwt_secret_key: str = Field(..., alias="JWT_SECRET_KEY")
    jwt_algorithm: str = Field("HS256", alias="JWT_ALGORITHM")
    access_token_expire_minutes: int = Field(60 * 24, alias="ACCESS_TOKEN_EXPIRE_MINUTES")
    refresh_token_expire_days: int = Field(7, alias="REFRESH_TOKEN_EXPIRE_DAYS")
    bcrypt_rounds: int = Field(12, alias="BCRYPT_ROUNDS")

    max_page_size: int = Field(100, alias="MAX_PAGE_SIZE")

    rate_limit_window_seconds: int = Field(900, alias="RATE_LIMIT_WINDOW_SECONDS")
    rate_limit_max_requests: int = Field(100, alias="RATE_LIMIT_MAX_REQUESTS")
    # Honour X-Forwarded-For only when deployed behind a reverse proxy that sets it
    trust_proxy_headers: bool = Field(False, alias="TRUST_PROXY_HEADERS")

    log_level: str = Field("INFO", alias="LOG_LEVEL")
    # Create missing tables on start; deployments that manage schema separately turn this off
    auto_create_schema: bool = Field(True, alias="AUTO_CREATE_SCHEMA")

    class Config:
        env_file = ".env"
        env_file_encoding = "utf-8"
        extra = "ignore"
        populate_by_name = True


settings = Settings()
