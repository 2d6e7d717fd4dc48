"""Tests for environment-driven settings."""

from __future__ import annotations

import pytest

from stresspro.config import DEFAULT_PORT, Settings


class TestSettings:
    def test_defaults_without_environment(self) -> None:
        settings = Settings.from_env({})
        assert settings.port == DEFAULT_PORT == 3001
        assert settings.host == "0.0.0.0"
        assert settings.wave_pause_ms == 10.0
        assert settings.job_retention_seconds == 3600.0
        assert settings.max_connections is None
        assert settings.http2 is False
        assert settings.log_level == "INFO"

    def test_values_from_environment(self) -> None:
        settings = Settings.from_env(
            {
                "PORT": "8080",
                "STRESSPRO_HOST": "127.0.0.1",
                "STRESSPRO_WAVE_PAUSE_MS": "25",
                "STRESSPRO_JOB_RETENTION_SECONDS": "0",
                "STRESSPRO_SWEEP_INTERVAL_SECONDS": "15",
                "STRESSPRO_MAX_CONNECTIONS": "50",
                "STRESSPRO_HTTP2": "yes",
                "STRESSPRO_LOG_LEVEL": "debug",
            }
        )
        assert settings.port == 8080
        assert settings.host == "127.0.0.1"
        assert settings.wave_pause_ms == 25.0
        assert settings.job_retention_seconds == 0.0
        assert settings.sweep_interval_seconds == 15.0
        assert settings.max_connections == 50
        assert settings.http2 is True
        assert settings.log_level == "DEBUG"

    def test_reads_process_environment(self, monkeypatch: pytest.MonkeyPatch) -> None:
        monkeypatch.setenv("PORT", "4567")
        assert Settings.from_env().port == 4567

    def test_invalid_number_raises(self) -> None:
        with pytest.raises(ValueError):
            Settings.from_env({"PORT": "not-a-port"})

    def test_connection_config(self) -> None:
        config = Settings(max_connections=12, http2=True).connection_config
        assert config.max_connections == 12
        assert config.http2 is True
