"""Environment-driven configuration for the page augmenter."""

from __future__ import annotations

import os
from dataclasses import dataclass

from shopbridge.constants import (
    DEFAULT_BACKEND_URL,
    DEFAULT_ERROR_HOLD_SECONDS,
    DEFAULT_POLL_SECONDS,
    DEFAULT_RETRY_DELAYS,
)
from shopbridge.texts import current_lang


@dataclass
class AugmentConfig:
    backend_url: str = DEFAULT_BACKEND_URL
    poll_seconds: float = DEFAULT_POLL_SECONDS
    retry_delays: tuple[float, ...] = DEFAULT_RETRY_DELAYS
    error_hold_seconds: float = DEFAULT_ERROR_HOLD_SECONDS
    headless: bool = False
    lang: str = "fa"
    api_key_configured: bool = False

    @classmethod
    def from_env(cls) -> "AugmentConfig":
        backend = str(os.getenv("SHOPBRIDGE_BACKEND_URL", "")).strip() or DEFAULT_BACKEND_URL
        return cls(
            backend_url=backend,
            poll_seconds=_env_float("SHOPBRIDGE_POLL_SECONDS", DEFAULT_POLL_SECONDS, minimum=0.1),
            retry_delays=_env_delays("SHOPBRIDGE_RETRY_DELAYS", DEFAULT_RETRY_DELAYS),
            error_hold_seconds=_env_float(
                "SHOPBRIDGE_ERROR_HOLD_SECONDS", DEFAULT_ERROR_HOLD_SECONDS, minimum=0.0
            ),
            headless=_env_flag("SHOPBRIDGE_HEADLESS"),
            lang=current_lang(),
            api_key_configured=bool(str(os.getenv("SHOPBRIDGE_API_KEY", "")).strip()),
        )

    def status_payload(self) -> dict[str, object]:
        return {
            "backend_url": self.backend_url,
            "poll_seconds": self.poll_seconds,
            "retry_delays": list(self.retry_delays),
            "error_hold_seconds": self.error_hold_seconds,
            "headless": self.headless,
            "lang": self.lang,
            "api_key_configured": self.api_key_configured,
        }


def _env_float(name: str, default: float, *, minimum: float) -> float:
    raw = str(os.getenv(name, "")).strip()
    if not raw:
        return default
    try:
        value = float(raw)
    except ValueError:
        return default
    return value if value >= minimum else default


def _env_delays(name: str, default: tuple[float, ...]) -> tuple[float, ...]:
    raw = str(os.getenv(name, "")).strip()
    if not raw:
        return default
    delays: list[float] = []
    for part in raw.split(","):
        part = part.strip()
        if not part:
            continue
        try:
            value = float(part)
        except ValueError:
            return default
        if value < 0:
            return default
        delays.append(value)
    return tuple(delays) or default


def _env_flag(name: str) -> bool:
    return str(os.getenv(name, "")).strip().lower() in {"1", "true", "yes", "on"}
