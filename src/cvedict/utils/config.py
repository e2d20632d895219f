from __future__ import annotations

import logging
import os
from dataclasses import dataclass

from cvedict.constants import (
    DEFAULT_HTTP_TIMEOUT,
    DEFAULT_MAX_CONCURRENCY,
    MSRC_BASE_URL,
    NUGET_FLAT_CONTAINER_URL,
    NVD_API_BASE_URL,
)

logger = logging.getLogger(__name__)


@dataclass(frozen=True)
class Settings:
    """Runtime configuration resolved from the environment and ``.env``."""

    nvd_api_key: str | None = None
    http_timeout: float = DEFAULT_HTTP_TIMEOUT
    max_concurrency: int = DEFAULT_MAX_CONCURRENCY
    msrc_base_url: str = MSRC_BASE_URL
    nvd_base_url: str = NVD_API_BASE_URL
    nuget_base_url: str = NUGET_FLAT_CONTAINER_URL
    progress: bool = True


def _env(name: str) -> str | None:
    # Treat empty strings as absent so blank CI secrets fall back to defaults
    value = os.getenv(name)
    if value is None or not value.strip():
        return None
    return value.strip()


def _env_number(name: str, default: float, cast: type) -> float:
    raw = _env(name)
    if raw is None:
        return default
    try:
        return cast(raw)
    except ValueError:
        logger.warning("[config] %s=%r is not a valid number; using %s", name, raw, default)
        return default


def get_settings() -> Settings:
    """Return settings after loading environment variables.

    A ``.env`` file is loaded first; real environment variables win over it.
    """
    from dotenv import find_dotenv, load_dotenv

    try:
        env_path = find_dotenv(usecwd=True) or find_dotenv()
    except Exception:
        env_path = ""
    load_dotenv(dotenv_path=env_path if env_path else None, override=False)

    progress_flag = (_env("CVEDICT_PROGRESS") or "").lower()
    return Settings(
        nvd_api_key=_env("NVD_API_KEY"),
        http_timeout=float(_env_number("CVEDICT_HTTP_TIMEOUT", DEFAULT_HTTP_TIMEOUT, float)),
        max_concurrency=int(_env_number("CVEDICT_MAX_CONCURRENCY", DEFAULT_MAX_CONCURRENCY, int)),
        msrc_base_url=(_env("CVEDICT_MSRC_BASE_URL") or MSRC_BASE_URL).rstrip("/"),
        nvd_base_url=_env("CVEDICT_NVD_BASE_URL") or NVD_API_BASE_URL,
        nuget_base_url=(_env("CVEDICT_NUGET_BASE_URL") or NUGET_FLAT_CONTAINER_URL).rstrip("/"),
        progress=progress_flag not in {"0", "false", "off", "no"},
    )
