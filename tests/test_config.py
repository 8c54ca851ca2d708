"""Tests for settings."""

import pytest
from pydantic import ValidationError

from swrcache import BackoffPolicy, Settings


class TestSettings:
    def test_defaults(self, monkeypatch: pytest.MonkeyPatch) -> None:
        monkeypatch.delenv("SWRCACHE_REDIS_URL", raising=False)
        settings = Settings(_env_file=None)
        assert settings.redis_url == "redis://localhost:6379/0"
        assert settings.job_timeout_ms == 60_000
        assert settings.job_retries == 5
        assert settings.backoff == BackoffPolicy("exponential", 10_000)
        assert settings.worker_delay_ms is None

    def test_environment_overrides(self, monkeypatch: pytest.MonkeyPatch) -> None:
        monkeypatch.setenv("SWRCACHE_REDIS_URL", "redis://cache:6379/2")
        monkeypatch.setenv("SWRCACHE_WORKER_CONCURRENCY", "8")
        monkeypatch.setenv("SWRCACHE_WORKER_DELAY_MS", "250")
        monkeypatch.setenv("SWRCACHE_JOB_BACKOFF", "2s")

        settings = Settings(_env_file=None)
        assert settings.redis_url == "redis://cache:6379/2"
        assert settings.worker_concurrency == 8
        assert settings.worker_delay_ms == 250
        assert settings.backoff.delay_ms == 2000

    def test_invalid_duration(self) -> None:
        with pytest.raises(ValidationError):
            Settings(_env_file=None, job_timeout="soon")

    def test_concurrency_must_be_positive(self) -> None:
        with pytest.raises(ValidationError):
            Settings(_env_file=None, worker_concurrency=0)
