"""Process configuration read from the environment."""

from pydantic import Field, field_validator
from pydantic_settings import BaseSettings, SettingsConfigDict

from swrcache.duration import parse_duration
from swrcache.types import BackoffPolicy


class Settings(BaseSettings):
    """Settings shared by the API process and the SWR worker.

    Every field can be set with an ``SWRCACHE_`` prefixed environment
    variable, e.g. ``SWRCACHE_REDIS_URL``.
    """

    model_config = SettingsConfigDict(
        env_prefix="SWRCACHE_",
        env_file=".env",
        case_sensitive=False,
        extra="ignore",
    )

    redis_url: str = "redis://localhost:6379/0"
    key_prefix: str = "swrcache"
    queue_name: str = "swr"

    worker_concurrency: int = Field(default=1, ge=1)
    worker_delay_ms: int | None = Field(default=None, ge=0)

    job_timeout: str = "60s"
    job_retries: int = Field(default=5, ge=0)
    job_backoff: str = "10s"
    stall_interval: str = "5s"

    log_level: str = "info"
    log_json: bool = False

    @field_validator("job_timeout", "job_backoff", "stall_interval")
    @classmethod
    def _check_duration(cls, value: str) -> str:
        parse_duration(value)
        return value

    @property
    def job_timeout_ms(self) -> int:
        return parse_duration(self.job_timeout)

    @property
    def stall_interval_ms(self) -> int:
        return parse_duration(self.stall_interval)

    @property
    def backoff(self) -> BackoffPolicy:
        return BackoffPolicy("exponential", parse_duration(self.job_backoff))
