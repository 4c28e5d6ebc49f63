from functools import lru_cache

from pydantic_settings import BaseSettings, SettingsConfigDict


class Settings(BaseSettings):
    app_name: str = "Referral Hub API"
    app_env: str = "local"
    app_debug: bool = True
    api_port: int = 8000
    database_url: str = "sqlite+pysqlite:///./referralhub.db"
    jwt_secret: str = "replace-me"
    jwt_algorithm: str = "HS256"
    rate_limit_disabled: bool = False
    rate_limit_public_leads_per_minute: int = 10
    metrics_enabled: bool = False
    otel_enabled: bool = False
    workflow_poll_attempts: int = 3
    workflow_poll_delay_seconds: float = 0.5
    strict_delete: bool = False
    referral_code_prefix: str = "REF"
    referral_code_length: int = 8

    model_config = SettingsConfigDict(env_file=".env", env_file_encoding="utf-8", case_sensitive=False)


@lru_cache
def get_settings() -> Settings:
    return Settings()
