from __future__ import annotations

from pydantic import SecretStr, field_validator
from pydantic_settings import BaseSettings, SettingsConfigDict


class Settings(BaseSettings):
    SHOPIFY_API_SECRET: SecretStr | None = None
    SHOPIFY_ADMIN_TOKEN: SecretStr | None = None
    SHOPIFY_ADMIN_API_VERSION: str = "2025-07"
    SHOPIFY_REQUEST_TIMEOUT_SECONDS: float = 20.0

    PROXY_CORS_ORIGINS: str = "*"
    LOG_LEVEL: str = "INFO"
    HOST: str = "0.0.0.0"
    PORT: int = 3000

    @field_validator("SHOPIFY_API_SECRET", "SHOPIFY_ADMIN_TOKEN", mode="before")
    @classmethod
    def blank_secret_is_unset(cls, value: object) -> object:
        if isinstance(value, str) and not value.strip():
            return None
        return value

    @field_validator("SHOPIFY_REQUEST_TIMEOUT_SECONDS")
    @classmethod
    def validate_timeout(cls, value: float) -> float:
        if value <= 0:
            raise ValueError("SHOPIFY_REQUEST_TIMEOUT_SECONDS must be positive")
        return value

    @field_validator("LOG_LEVEL")
    @classmethod
    def normalize_log_level(cls, value: str) -> str:
        return value.strip().upper() or "INFO"

    @property
    def proxy_secret(self) -> str | None:
        if self.SHOPIFY_API_SECRET is None:
            return None
        return self.SHOPIFY_API_SECRET.get_secret_value()

    @property
    def admin_access_token(self) -> str | None:
        if self.SHOPIFY_ADMIN_TOKEN is None:
            return None
        return self.SHOPIFY_ADMIN_TOKEN.get_secret_value()

    @property
    def cors_origins(self) -> list[str]:
        return [origin.strip() for origin in self.PROXY_CORS_ORIGINS.split(",") if origin.strip()]

    model_config = SettingsConfigDict(env_file=".env", extra="ignore")


settings = Settings()
