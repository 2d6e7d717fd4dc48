"""Environment-driven settings for the StressPro server."""

from __future__ import annotations

import os
from collections.abc import Mapping
from dataclasses import dataclass

from stresspro.engine.models import ConnectionConfig

DEFAULT_PORT = 3001

_TRUTHY = {"1", "true", "yes", "on"}


def _optional_int(value: str | None) -> int | None:
    if value is None or not value.strip():
        return None
    return int(value)


@dataclass(frozen=True, slots=True)
class Settings:
    """Server configuration.

    Attributes:
        host: Bind address (``STRESSPRO_HOST``, default 0.0.0.0).
        port: Listening port (``PORT``, default 3001).
        wave_pause_ms: Pause between waves (``STRESSPRO_WAVE_PAUSE_MS``, default 10).
        job_retention_seconds: Retention of finished jobs, 0 keeps them forever
            (``STRESSPRO_JOB_RETENTION_SECONDS``, default 3600).
        sweep_interval_seconds: Retention sweep period
            (``STRESSPRO_SWEEP_INTERVAL_SECONDS``, default 60).
        max_connections: Optional cap on pooled connections per job
            (``STRESSPRO_MAX_CONNECTIONS``, unset by default, pool follows concurrency).
        http2: Enable HTTP/2 for job clients (``STRESSPRO_HTTP2``, default false).
        log_level: Root log level (``STRESSPRO_LOG_LEVEL``, default INFO).
    """

    host: str = "0.0.0.0"
    port: int = DEFAULT_PORT
    wave_pause_ms: float = 10.0
    job_retention_seconds: float = 3600.0
    sweep_interval_seconds: float = 60.0
    max_connections: int | None = None
    http2: bool = False
    log_level: str = "INFO"

    @classmethod
    def from_env(cls, environ: Mapping[str, str] | None = None) -> Settings:
        """Read settings from the environment, falling back to defaults.

        Raises:
            ValueError: If a numeric variable cannot be parsed.
        """
        env = os.environ if environ is None else environ
        return cls(
            host=env.get("STRESSPRO_HOST", "0.0.0.0"),
            port=int(env.get("PORT", str(DEFAULT_PORT))),
            wave_pause_ms=float(env.get("STRESSPRO_WAVE_PAUSE_MS", "10")),
            job_retention_seconds=float(env.get("STRESSPRO_JOB_RETENTION_SECONDS", "3600")),
            sweep_interval_seconds=float(env.get("STRESSPRO_SWEEP_INTERVAL_SECONDS", "60")),
            max_connections=_optional_int(env.get("STRESSPRO_MAX_CONNECTIONS")),
            http2=env.get("STRESSPRO_HTTP2", "false").strip().lower() in _TRUTHY,
            log_level=env.get("STRESSPRO_LOG_LEVEL", "INFO").upper(),
        )

    @property
    def connection_config(self) -> ConnectionConfig:
        return ConnectionConfig(max_connections=self.max_connections, http2=self.http2)
