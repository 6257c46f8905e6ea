from functools import lru_cache
from pathlib import Path
from typing import Annotated, List

from pydantic import field_validator
from pydantic_settings import BaseSettings, NoDecode, SettingsConfigDict


class Settings(BaseSettings):
    model_config = SettingsConfigDict(
        env_file=str(Path(__file__).resolve().parents[1] / ".env"),
        env_file_encoding="utf-8",
        extra="ignore",
    )

    api_host: str = "0.0.0.0"
    api_port: int = 8000
    api_debug: bool = True
    cors_origins: Annotated[List[str], NoDecode] = ["http://localhost:3000", "http://localhost:5173"]
    log_level: str = "INFO"

    redis_url: str = "redis://localhost:6379/0"

    recall_api_key: str = ""
    recall_api_base_url: str = "https://us-west-2.recall.ai/api/v1"
    webhook_base_url: str = "http://localhost:8000"

    analyzer_provider: str = "bedrock"
    aws_region: str = "us-east-1"
    aws_access_key_id: str | None = None
    aws_secret_access_key: str | None = None
    bedrock_model_id: str = "anthropic.claude-3-haiku-20240307-v1:0"
    openai_api_key: str = ""
    openai_api_url: str | None = None
    openai_model: str = "gpt-3.5-turbo"

    analysis_min_interval_seconds: float = 1.0
    analysis_workers: int = 2
    transcript_buffer_size: int = 10
    analysis_window: int = 2

    @field_validator("cors_origins", mode="before")
    @classmethod
    def split_cors(cls, value: str | list[str]) -> list[str]:
        if isinstance(value, str):
            items = [item.strip() for item in value.split(",") if item.strip()]
            default_value = cls.model_fields["cors_origins"].default  # type: ignore[index]
            return items or default_value
        return value

    @field_validator("analyzer_provider")
    @classmethod
    def check_provider(cls, value: str) -> str:
        value = value.strip().lower()
        if value not in ("bedrock", "openai"):
            raise ValueError("analyzer_provider must be 'bedrock' or 'openai'")
        return value

    @property
    def webhook_url(self) -> str:
        return f"{self.webhook_base_url.rstrip('/')}/api/webhook"


@lru_cache
def get_settings() -> Settings:
    return Settings()
