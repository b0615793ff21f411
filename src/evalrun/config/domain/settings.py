"""Connection and default-run settings for the client."""

from pydantic import BaseModel, ConfigDict, Field

DEFAULT_BASE_URL = "https://app.evalrun.dev"


class ClientSettings(BaseModel, frozen=True):
    model_config = ConfigDict(frozen=True, extra="forbid")

    base_url: str = Field(default=DEFAULT_BASE_URL, min_length=1)
    api_key: str = Field(min_length=1)
    workspace_id: str | None = None
    default_concurrency: int = Field(default=10, ge=1)
    default_timeout_minutes: float = Field(default=15, gt=0)
    request_timeout_seconds: float = Field(default=30, gt=0)
    max_retries: int = Field(default=5, ge=0)
