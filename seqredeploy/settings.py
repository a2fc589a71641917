from __future__ import annotations

import os
from dataclasses import dataclass


def _env_bool(name: str, default: bool = False) -> bool:
    raw = os.getenv(name)
    if raw is None:
        return default
    return raw.strip().lower() in {"1", "true", "yes", "y", "on"}


def _env_int(name: str, default: int) -> int:
    raw = os.getenv(name)
    if raw is None:
        return default
    try:
        return int(raw)
    except ValueError:
        return default


@dataclass(frozen=True)
class Settings:
    # Request authorization
    secret: str | None = os.getenv("SEQREDEPLOY_SECRET")

    # Health check target; falls back to the container's private address when unset.
    host_ip: str | None = os.getenv("SEQREDEPLOY_HOSTIP") or None

    # Rollout pacing
    settle_delay_s: int = _env_int("SEQREDEPLOY_SETTLE_DELAY_S", 25)
    check_interval_s: int = _env_int("SEQREDEPLOY_CHECK_INTERVAL_S", 5)
    check_timeout_s: int = _env_int("SEQREDEPLOY_CHECK_TIMEOUT_S", 600)
    watch_timeout_s: int = _env_int("SEQREDEPLOY_WATCH_TIMEOUT_S", 600)
    request_timeout_s: int = _env_int("SEQREDEPLOY_REQUEST_TIMEOUT_S", 2)

    # Docker backend
    service_label: str = os.getenv("SEQREDEPLOY_SERVICE_LABEL", "com.docker.compose.service")
    check_env: str = os.getenv("SEQREDEPLOY_CHECK_ENV", "HTTP_CHECK")
    reuse_volumes: bool = _env_bool("SEQREDEPLOY_REUSE_VOLUMES", True)

    # Logging
    log_level: str = os.getenv("SEQREDEPLOY_LOG_LEVEL", "INFO")
    journal_size: int = _env_int("SEQREDEPLOY_JOURNAL_SIZE", 500)
    rollout_history: int = _env_int("SEQREDEPLOY_ROLLOUT_HISTORY", 50)


settings = Settings()
