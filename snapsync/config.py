"""
Configuration module for project snapshot sync.

Settings come from environment variables, optionally loaded from a .env file.
Every value has a default matching the host page's usual behavior.
"""

import os
from dataclasses import dataclass, fields
from typing import Mapping, Optional

from dotenv import load_dotenv

from snapsync.acquisition import AcquisitionTimings
from snapsync.cache import SnapshotCache
from snapsync.idle import IdleMonitor

ENV_PREFIX = "SNAPSYNC_"


@dataclass
class Settings:
    """
    Tunable values of the pipeline. Times are in milliseconds unless noted.

    Environment variable names are the upper-cased field names with the
    SNAPSYNC_ prefix, e.g. SNAPSYNC_CACHE_MAX_AGE_MS.
    """
    cache_max_age_ms: int = 5 * 60 * 1000
    idle_refresh_enabled: bool = True
    idle_timeout_ms: int = 10000
    idle_threshold_ms: int = 1000
    user_idle_threshold_s: int = 60
    settle_delay_ms: int = 200
    submenu_backoff_ms: int = 150
    submenu_attempts: int = 4
    submenu_settle_ms: int = 250
    action_backoff_ms: int = 200
    action_attempts: int = 3
    acquisition_timeout_ms: int = 10000

    def acquisition_timings(self) -> AcquisitionTimings:
        return AcquisitionTimings(
            settle_delay_ms=self.settle_delay_ms,
            submenu_backoff_ms=self.submenu_backoff_ms,
            submenu_attempts=self.submenu_attempts,
            submenu_settle_ms=self.submenu_settle_ms,
            action_backoff_ms=self.action_backoff_ms,
            action_attempts=self.action_attempts,
            timeout_ms=self.acquisition_timeout_ms
        )

    def build_idle_monitor(self, clock=None) -> IdleMonitor:
        """Create an IdleMonitor using the configured user idle threshold, in seconds."""
        return IdleMonitor(detection_interval=self.user_idle_threshold_s, clock=clock)

    def build_cache(self, idle_scheduler=None, idle_monitor=None, clock=None) -> SnapshotCache:
        """Create a SnapshotCache configured from these settings."""
        cache = SnapshotCache(
            idle_scheduler=idle_scheduler,
            idle_monitor=idle_monitor,
            clock=clock,
            max_cache_age_ms=self.cache_max_age_ms,
            idle_timeout_ms=self.idle_timeout_ms,
            idle_threshold_ms=self.idle_threshold_ms
        )
        if not self.idle_refresh_enabled:
            cache.set_idle_refresh_enabled(False)
        return cache


def _parse_bool(value: str) -> bool:
    value = value.strip().lower()
    if value in ("1", "true", "yes", "on"):
        return True
    if value in ("0", "false", "no", "off"):
        return False
    raise ValueError(f"not a boolean: {value!r}")


def load_settings(env: Optional[Mapping[str, str]] = None, dotenv_path: Optional[str] = None) -> Settings:
    """
    Build Settings from the environment.

    Args:
        env: Mapping to read instead of os.environ. No .env file is loaded when given.
        dotenv_path: Explicit .env file to load, otherwise the default lookup is used

    Returns:
        Settings with every recognized variable applied
    """
    if env is None:
        load_dotenv(dotenv_path)
        env = os.environ

    settings = Settings()
    for f in fields(Settings):
        name = ENV_PREFIX + f.name.upper()
        raw = env.get(name)
        if raw is None or raw.strip() == "":
            continue
        try:
            value = _parse_bool(raw) if f.type in (bool, "bool") else int(raw)
        except ValueError as e:
            print(f"Warning: ignoring invalid value for {name}: {e}")
            continue
        setattr(settings, f.name, value)

    return settings
