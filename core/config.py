"""
Project configuration.
"""
from pydantic_settings import BaseSettings, SettingsConfigDict
from pydantic import BaseModel, Field, field_validator
from typing import Optional
from pydantic import model_validator


class RedisSettings(BaseModel):
    url: Optional[str] = None
    max_connections: int = 10
    namespace: str = "phonepe-reconciler"


class DatabaseSettings(BaseModel):
    url: str = "sqlite+aiosqlite:///./phonepe.db"
    echo: bool = False


class Settings(BaseSettings):
    """Service settings."""

    PROJECT_NAME: str = Field(default="PhonePe Reconciler")
    VERSION: str = Field(default="1.0.0")
    DEBUG: bool = Field(default=True)
    ENVIRONMENT: str = Field(default="development")

    redis: RedisSettings = Field(default_factory=RedisSettings)
    database: DatabaseSettings = Field(default_factory=DatabaseSettings)

    # Storefront-issued customer tokens are verified with this key
    SECRET_KEY: Optional[str] = Field(default=None, description="HS256 key shared with the storefront")
    ALGORITHM: str = Field(default="HS256")

    CORS_ORIGINS: list = Field(default=["http://localhost:3000", "http://localhost:8000"])

    # Request body logging
    LOG_REQUEST_BODY_ENABLE_BY_DEFAULT: bool = Field(default=True)
    LOG_REQUEST_BODY_MAX_BYTES: int = Field(default=2048)

    model_config = SettingsConfigDict(
        env_file=".env",
        case_sensitive=False,
        extra="allow",
        env_nested_delimiter="__",
    )

    @model_validator(mode="after")
    def _validate_secret_key(self):
        if not self.SECRET_KEY:
            raise ValueError("SECRET_KEY is not set. Configure it in the environment or .env")
        return self

    @field_validator("CORS_ORIGINS", mode="before")
    @classmethod
    def _parse_cors_origins(cls, v):
        """Accept a JSON array string or a comma separated string."""
        if isinstance(v, list):
            return v
        if isinstance(v, str):
            s = v.strip()
            if s.startswith("[") and s.endswith("]"):
                import json
                try:
                    arr = json.loads(s)
                    if isinstance(arr, list):
                        return arr
                except ValueError:
                    pass
            if "," in s:
                return [item.strip() for item in s.split(",") if item.strip()]
            return [s]
        return v


settings = Settings()
