"""Connection settings for the ``damlevel`` client.

Explicit command-line values win over the environment; anything blank or
unparsable falls back to the defaults below.
"""

from __future__ import annotations

import math
import os
from dataclasses import dataclass
from typing import Optional

DEFAULT_BASE_URL = "http://localhost:8000"
DEFAULT_TIMEOUT = 30.0

ENV_BASE_URL = "API_BASE_URL"
ENV_ACTOR_ID = "DAMLEVEL_ACTOR_ID"
ENV_HTTP_TIMEOUT = "DAMLEVEL_HTTP_TIMEOUT"


@dataclass(frozen=True)
class CLIConfig:
    base_url: str = DEFAULT_BASE_URL
    actor_id: Optional[str] = None
    timeout: float = DEFAULT_TIMEOUT


def _env(name: str) -> Optional[str]:
    return _clean(os.getenv(name))


def _clean(value: Optional[str]) -> Optional[str]:
    if value is None:
        return None
    return value.strip() or None


def _normalize_base_url(url: str) -> str:
    if "://" not in url:
        url = f"http://{url}"
    return url.rstrip("/")


def _env_timeout() -> Optional[float]:
    raw = _env(ENV_HTTP_TIMEOUT)
    if raw is None:
        return None
    try:
        return float(raw)
    except ValueError:
        return None


def _usable_timeout(seconds: Optional[float]) -> float:
    if seconds is None or not math.isfinite(seconds) or seconds <= 0:
        return DEFAULT_TIMEOUT
    return seconds


def load_config(
    base_url: Optional[str] = None,
    actor_id: Optional[str] = None,
    timeout: Optional[float] = None,
) -> CLIConfig:
    url = _clean(base_url) or _env(ENV_BASE_URL) or DEFAULT_BASE_URL
    seconds = _usable_timeout(timeout if timeout is not None else _env_timeout())
    return CLIConfig(
        base_url=_normalize_base_url(url),
        actor_id=_clean(actor_id) or _env(ENV_ACTOR_ID),
        timeout=seconds,
    )
