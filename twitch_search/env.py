from __future__ import annotations

import logging
import os
from dataclasses import dataclass
from pathlib import Path

from dotenv import load_dotenv

from auth.callback import DEFAULT_CALLBACK_PORT
from auth.errors import ConfigMalformed
from auth.urls import DEFAULT_CALLBACK_PATH

from .constants import DEFAULT_API_BASE_URL, DEFAULT_CLIENT_FILE, DEFAULT_TOKEN_FILE, LOGGER


def is_truthy(value: str | None) -> bool:
    if value is None:
        return False
    return value.strip().lower() in {"1", "true", "yes", "on"}


def _get_env_int(key: str, default: int) -> int:
    raw = os.getenv(key, "").strip()
    if not raw:
        return default
    try:
        return int(raw)
    except ValueError:
        raise ConfigMalformed(f"{key} must be an integer value.")


def _get_env_float(key: str, default: float | None) -> float | None:
    raw = os.getenv(key, "").strip()
    if not raw:
        return default
    try:
        value = float(raw)
    except ValueError:
        raise ConfigMalformed(f"{key} must be a number.")
    if value <= 0:
        raise ConfigMalformed(f"{key} must be greater than zero.")
    return value


def _get_env_path(key: str, default: Path) -> Path:
    raw = os.getenv(key, "").strip()
    if not raw:
        return default
    return Path(raw).expanduser()


@dataclass(frozen=True)
class Settings:
    client_file: Path
    token_file: Path
    callback_port: int
    callback_path: str
    consent_timeout: float | None
    api_base_url: str
    api_timeout: float
    api_max_retries: int
    debug: bool


def load_env() -> None:
    env_path = Path(__file__).resolve().parent.parent / ".env"
    if not env_path.exists():
        return
    load_dotenv(env_path)


def load_settings() -> Settings:
    port = _get_env_int("TWITCH_SEARCH_CALLBACK_PORT", DEFAULT_CALLBACK_PORT)
    if not 0 < port < 65536:
        raise ConfigMalformed("TWITCH_SEARCH_CALLBACK_PORT must be a valid TCP port.")

    return Settings(
        client_file=_get_env_path("TWITCH_SEARCH_CLIENT_FILE", DEFAULT_CLIENT_FILE),
        token_file=_get_env_path("TWITCH_SEARCH_TOKEN_FILE", DEFAULT_TOKEN_FILE),
        callback_port=port,
        callback_path=os.getenv("TWITCH_SEARCH_CALLBACK_PATH", DEFAULT_CALLBACK_PATH),
        consent_timeout=_get_env_float("TWITCH_SEARCH_CONSENT_TIMEOUT", None),
        api_base_url=os.getenv("TWITCH_API_BASE_URL", DEFAULT_API_BASE_URL).rstrip("/"),
        api_timeout=_get_env_float("TWITCH_API_TIMEOUT", 30.0),
        api_max_retries=_get_env_int("TWITCH_API_MAX_RETRIES", 2),
        debug=is_truthy(os.getenv("TWITCH_SEARCH_DEBUG")),
    )


def setup_logging(debug: bool | None = None) -> bool:
    if debug is None:
        debug = is_truthy(os.getenv("TWITCH_SEARCH_DEBUG"))
    level = logging.INFO if debug else logging.WARNING
    logging.basicConfig(level=level, format="%(levelname)s %(name)s: %(message)s")
    LOGGER.setLevel(level)
    return debug
