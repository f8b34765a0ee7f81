from __future__ import annotations

import os
from dataclasses import dataclass


@dataclass(frozen=True)
class Settings:
    # Periodic remote push while a match is live (seconds)
    sync_interval_sec: float = 30.0
    # Delay of the extra push after a visit closes or a leg ends (seconds)
    milestone_delay_sec: float = 0.1
    # Presence lease / stale registration cutoff (seconds)
    presence_ttl_sec: float = 3600.0
    # Directory for the device-local match cache. Unset keeps it in memory.
    cache_dir: str | None = None
    log_level: str = "INFO"
    log_file: str | None = None

    @classmethod
    def from_env(cls) -> Settings:
        return cls(
            sync_interval_sec=float(os.environ.get("LIVEDARTS_SYNC_INTERVAL_SEC", "30")),
            milestone_delay_sec=float(os.environ.get("LIVEDARTS_MILESTONE_DELAY_SEC", "0.1")),
            presence_ttl_sec=float(os.environ.get("LIVEDARTS_PRESENCE_TTL_SEC", "3600")),
            cache_dir=os.environ.get("LIVEDARTS_CACHE_DIR") or None,
            log_level=os.environ.get("LIVEDARTS_LOG_LEVEL", "INFO").upper(),
            log_file=os.environ.get("LIVEDARTS_LOG_FILE") or None,
        )


_SETTINGS: Settings | None = None


def get_settings() -> Settings:
    global _SETTINGS
    if _SETTINGS is None:
        _SETTINGS = Settings.from_env()
    return _SETTINGS
