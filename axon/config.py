from typing import List, Optional

from pydantic import Field
from pydantic_settings import BaseSettings, SettingsConfigDict


class Settings(BaseSettings):
    model_config = SettingsConfigDict(
        env_file=".env",
        env_file_encoding="utf-8",
        case_sensitive=False,
        extra="ignore",
    )

    app_name: str = "Axon API Client"
    version: str = "1.0.0"
    database_url: str = Field(default="sqlite:///./axon.db")
    secret_key: str = Field(default="dev-change-me")
    token_algorithm: str = "HS256"
    token_ttl_hours: int = 24
    proxy_timeout_seconds: float = 30.0
    proxy_max_redirects: int = 5
    proxy_user_agent: str = "XH-Axon HTTP Client/1.0"
    cors_origins: List[str] = [
        "http://localhost:3000",
        "http://localhost:5173",
        "http://localhost:8080",
    ]
    # Stand-in for the SMS gateway during development; None disables it.
    static_verification_code: Optional[str] = "123456"
    history_limit: int = 100
    log_level: str = "INFO"
    host: str = "127.0.0.1"
    port: int = 3001


settings = Settings()
