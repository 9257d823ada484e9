"""Environment configuration for the slack-status CLI."""

from __future__ import annotations

from typing import Optional

from pydantic import Field
from pydantic_settings import BaseSettings, SettingsConfigDict

from channel_stats import HISTORY_PAGE_SIZE
from slack_api import DEFAULT_API_URL, DEFAULT_TIMEOUT


class Settings(BaseSettings):
    """Settings loaded from environment variables (or a local ``.env``)."""

    model_config = SettingsConfigDict(env_file=".env", case_sensitive=False, extra="ignore")

    slack_api_token: Optional[str] = None
    slack_api_url: str = DEFAULT_API_URL
    slack_history_page_size: int = Field(default=HISTORY_PAGE_SIZE, ge=1, le=1000)
    slack_http_timeout: float = Field(default=DEFAULT_TIMEOUT, gt=0)
    log_level: str = "WARNING"

    def resolve_token(self, override: str | None = None) -> str | None:
        """Return the ``--token`` override if given, else the environment token."""
        return override or self.slack_api_token


def get_settings() -> Settings:
    return Settings()
