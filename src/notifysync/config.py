"""
Configuration for the notification sync engine.

Values come from the environment, optionally seeded from a ``.env`` file.
"""

from __future__ import annotations

import os
from dataclasses import dataclass
from enum import Enum
from pathlib import Path

from dotenv import load_dotenv

from notifysync.errors import ConfigurationError

ENV_LOCATIONS = [
    Path.cwd() / ".env",
    Path.home() / ".notifysync" / ".env",
]


class RacePolicy(str, Enum):
    """How a poll snapshot treats a read that is not confirmed yet."""

    REMOTE_WINS = "remote_wins"  # Snapshot overwrites the optimistic read
    PENDING_WINS = "pending_wins"  # Optimistic read survives for a grace window


@dataclass
class SyncConfig:
    """Tunables for a notification sync session."""

    poll_interval_ms: int = 5000
    race_policy: RacePolicy = RacePolicy.PENDING_WINS
    pending_grace_ms: int = 3000

    # Remote store
    supabase_url: str = ""
    supabase_key: str = ""
    access_token: str = ""
    request_timeout: float = 10.0

    def __post_init__(self) -> None:
        if self.poll_interval_ms <= 0:
            raise ConfigurationError("poll_interval_ms must be positive")
        if self.pending_grace_ms < 0:
            raise ConfigurationError("pending_grace_ms cannot be negative")
        if self.request_timeout <= 0:
            raise ConfigurationError("request_timeout must be positive")
        if not isinstance(self.race_policy, RacePolicy):
            self.race_policy = _parse_policy(str(self.race_policy))

    @property
    def poll_interval(self) -> float:
        """Poll interval in seconds."""
        return self.poll_interval_ms / 1000

    @property
    def pending_grace(self) -> float:
        """Pending-wins grace window in seconds."""
        return self.pending_grace_ms / 1000

    @classmethod
    def from_env(cls, env_file: Path | None = None) -> SyncConfig:
        """Build a config from environment variables and the first ``.env`` found."""
        locations = [env_file] if env_file else ENV_LOCATIONS
        for env_path in locations:
            if env_path.exists():
                load_dotenv(env_path)
                break

        return cls(
            poll_interval_ms=_int_env("NOTIFYSYNC_POLL_INTERVAL_MS", 5000),
            race_policy=_parse_policy(
                os.environ.get("NOTIFYSYNC_RACE_POLICY", RacePolicy.PENDING_WINS.value)
            ),
            pending_grace_ms=_int_env("NOTIFYSYNC_PENDING_GRACE_MS", 3000),
            supabase_url=os.environ.get("SUPABASE_URL", ""),
            supabase_key=os.environ.get("SUPABASE_ANON_KEY", ""),
            access_token=os.environ.get("SUPABASE_ACCESS_TOKEN", ""),
            request_timeout=_float_env("NOTIFYSYNC_REQUEST_TIMEOUT", 10.0),
        )


def _parse_policy(value: str) -> RacePolicy:
    try:
        return RacePolicy(value.strip().lower())
    except ValueError:
        choices = ", ".join(p.value for p in RacePolicy)
        raise ConfigurationError(f"Unknown race policy {value!r} (expected one of: {choices})")


def _int_env(name: str, default: int) -> int:
    raw = os.environ.get(name)
    if raw is None or raw == "":
        return default
    try:
        return int(raw)
    except ValueError:
        raise ConfigurationError(f"{name} must be an integer, got {raw!r}")


def _float_env(name: str, default: float) -> float:
    raw = os.environ.get(name)
    if raw is None or raw == "":
        return default
    try:
        return float(raw)
    except ValueError:
        raise ConfigurationError(f"{name} must be a number, got {raw!r}")
