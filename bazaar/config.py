"""Application settings and environment loading utilities."""
from __future__ import annotations

import os
from dataclasses import dataclass
from functools import lru_cache
from pathlib import Path
from typing import Optional, Tuple

from bazaar.rate_limit import RateLimitConfig


def _load_dotenv() -> None:
    env_path = Path(".env")
    if not env_path.exists():
        return
    for line in env_path.read_text().splitlines():
        line = line.strip()
        if not line or line.startswith("#"):
            continue
        if "=" not in line:
            continue
        key, value = line.split("=", 1)
        os.environ.setdefault(key.strip(), value.strip())


_load_dotenv()


def _positive_int(name: str, default: int) -> int:
    raw: Optional[str] = os.getenv(name)
    if raw is None or not raw.strip():
        return default
    try:
        value = int(raw)
    except ValueError as exc:
        raise RuntimeError(f"Environment variable {name} must be an integer, got {raw!r}") from exc
    if value <= 0:
        raise RuntimeError(f"Environment variable {name} must be positive, got {value}")
    return value


def _path_list(name: str, default: Tuple[str, ...]) -> Tuple[str, ...]:
    raw = os.getenv(name)
    if raw is None:
        return default
    return tuple(item.strip() for item in raw.split(",") if item.strip())


@dataclass(frozen=True)
class Settings:
    """Runtime configuration derived from environment variables."""

    rate_limit_window_ms: int = 1000
    rate_limit_max_requests: int = 5
    rate_limit_stale_after_ms: int = 60_000
    rate_limit_sweep_interval_seconds: int = 60
    rate_limit_exempt_paths: Tuple[str, ...] = ("/api/health",)
    api_base_url: str = "http://localhost:5001"
    port: int = 5001

    def rate_limit_config(self) -> RateLimitConfig:
        return RateLimitConfig(
            window_ms=self.rate_limit_window_ms,
            max_requests_per_window=self.rate_limit_max_requests,
            stale_after_ms=self.rate_limit_stale_after_ms,
        )

    @classmethod
    def from_env(cls) -> "Settings":
        return cls(
            rate_limit_window_ms=_positive_int("BAZAAR_RATE_LIMIT_WINDOW_MS", 1000),
            rate_limit_max_requests=_positive_int("BAZAAR_RATE_LIMIT_MAX_REQUESTS", 5),
            rate_limit_stale_after_ms=_positive_int("BAZAAR_RATE_LIMIT_STALE_AFTER_MS", 60_000),
            rate_limit_sweep_interval_seconds=_positive_int(
                "BAZAAR_RATE_LIMIT_SWEEP_INTERVAL_SECONDS", 60
            ),
            rate_limit_exempt_paths=_path_list("BAZAAR_RATE_LIMIT_EXEMPT_PATHS", ("/api/health",)),
            api_base_url=os.getenv("BAZAAR_API_BASE_URL", "http://localhost:5001").rstrip("/"),
            port=_positive_int("PORT", 5001),
        )


@lru_cache()
def get_settings() -> Settings:
    """Return cached application settings."""

    return Settings.from_env()
