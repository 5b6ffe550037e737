from __future__ import annotations

import json
from pathlib import Path
from typing import Annotated, Any, Literal

from pydantic import Field, field_validator, model_validator
from pydantic_settings import BaseSettings, NoDecode, SettingsConfigDict

# library_api/core/config.py -> BASE_DIR == repository root
BASE_DIR = Path(__file__).resolve().parents[2]


class Settings(BaseSettings):
    model_config = SettingsConfigDict(
        env_file=str(BASE_DIR / ".env"),
        extra="ignore",
        env_prefix="",
        case_sensitive=False,
    )

    # Environment
    env: Literal["development", "test", "production"] = Field(
        default="development", validation_alias="ENV"
    )

    # Application
    api_name: str = Field(default="library-api", validation_alias="API_NAME")
    app_version: str = Field(default="1.0.0", validation_alias="API_VERSION_STRING")
    api_prefix: str = Field(default="/api", validation_alias="API_PREFIX")
    api_version: str = Field(default="v1", validation_alias="API_VERSION")
    log_level: str = Field(default="INFO", validation_alias="LOG_LEVEL")

    @field_validator("env", mode="before")
    @classmethod
    def normalize_env(cls, v: Any) -> str:
        if v is None:
            return "development"
        s = str(v).strip().lower()
        aliases = {"dev": "development", "local": "development", "prod": "production"}
        return aliases.get(s, s)

    # Database
    database_url: str = Field(
        default="sqlite+pysqlite:///./library.db",
        validation_alias="DATABASE_URL",
    )

    # Auth: both secrets are mandatory, the process must not boot without them.
    jwt_secret: str = Field(min_length=1, validation_alias="JWT_SECRET")
    jwt_refresh_secret: str = Field(min_length=1, validation_alias="JWT_REFRESH_SECRET")
    jwt_expires_in: str = Field(default="7d", validation_alias="JWT_EXPIRES_IN")
    jwt_refresh_expires_in: str = Field(
        default="30d", validation_alias="JWT_REFRESH_EXPIRES_IN"
    )
    jwt_algorithm: str = Field(default="HS256", validation_alias="JWT_ALGORITHM")
    jwt_issuer: str = Field(default="library-api", validation_alias="JWT_ISSUER")
    jwt_audience: str = Field(default="library-users", validation_alias="JWT_AUDIENCE")
    password_hash_rounds: int = Field(
        default=12, ge=4, le=31, validation_alias="PASSWORD_HASH_ROUNDS"
    )

    @model_validator(mode="after")
    def check_auth_settings(self) -> "Settings":
        if self.jwt_secret == self.jwt_refresh_secret:
            raise ValueError("JWT_SECRET and JWT_REFRESH_SECRET must differ")
        if self.env != "test" and self.password_hash_rounds < 10:
            raise ValueError("PASSWORD_HASH_ROUNDS must be at least 10 outside tests")
        return self

    # CORS
    cors_origins: Annotated[list[str], NoDecode] = Field(
        default_factory=lambda: ["*"],
        validation_alias="CORS_ORIGINS",
    )

    @field_validator("cors_origins", mode="before")
    @classmethod
    def parse_cors_origins(cls, v: Any) -> list[str]:
        """
        Supported env formats:
          - JSON list: '["http://localhost:3000"]'
          - Bracket list (no quotes): '[http://localhost:3000, http://localhost:5173]'
          - Comma-separated: 'http://localhost:3000, http://localhost:5173'
          - '*' wildcard
        """
        if v is None:
            return []
        if isinstance(v, list):
            return [str(x).strip() for x in v if str(x).strip()]
        if not isinstance(v, str):
            raise TypeError("cors_origins must be a string or list of strings")

        s = v.strip()
        if not s:
            return []
        if s == "*":
            return ["*"]

        if s.startswith("[") and s.endswith("]"):
            try:
                parsed = json.loads(s)
                if isinstance(parsed, list):
                    return [str(x).strip() for x in parsed if str(x).strip()]
            except json.JSONDecodeError:
                inner = s[1:-1].strip()
                if not inner:
                    return []
                parts = [p.strip().strip('"').strip("'") for p in inner.split(",")]
                return [p for p in parts if p]

        parts = [p.strip() for p in s.split(",")]
        return [p for p in parts if p]

    # Rate limiting
    rate_limit_enabled: bool = Field(default=True, validation_alias="RATE_LIMIT_ENABLED")
    rate_limit_backend: Literal["memory", "redis"] = Field(
        default="memory", validation_alias="RATE_LIMIT_BACKEND"
    )
    redis_url: str = Field(
        default="redis://localhost:6379/0", validation_alias="REDIS_URL"
    )
    rate_limit_general_window_seconds: int = Field(
        default=15 * 60, validation_alias="RATE_LIMIT_GENERAL_WINDOW_SECONDS"
    )
    rate_limit_general_max: int = Field(
        default=100, validation_alias="RATE_LIMIT_GENERAL_MAX"
    )
    rate_limit_auth_window_seconds: int = Field(
        default=15 * 60, validation_alias="RATE_LIMIT_AUTH_WINDOW_SECONDS"
    )
    rate_limit_auth_max: int = Field(default=5, validation_alias="RATE_LIMIT_AUTH_MAX")
    rate_limit_create_window_seconds: int = Field(
        default=10 * 60, validation_alias="RATE_LIMIT_CREATE_WINDOW_SECONDS"
    )
    rate_limit_create_max: int = Field(
        default=10, validation_alias="RATE_LIMIT_CREATE_MAX"
    )
    rate_limit_search_window_seconds: int = Field(
        default=5 * 60, validation_alias="RATE_LIMIT_SEARCH_WINDOW_SECONDS"
    )
    rate_limit_search_max: int = Field(
        default=50, validation_alias="RATE_LIMIT_SEARCH_MAX"
    )

    # OpenTelemetry
    otel_enabled: bool = Field(default=False, validation_alias="OTEL_ENABLED")
    otel_otlp_endpoint: str = Field(
        default="http://localhost:4317",
        validation_alias="OTEL_OTLP_ENDPOINT",
    )

    @property
    def api_base_path(self) -> str:
        prefix = "/" + self.api_prefix.strip("/") if self.api_prefix.strip("/") else ""
        return f"{prefix}/{self.api_version.strip('/')}"

    @property
    def is_development(self) -> bool:
        return self.env == "development"


settings = Settings()
