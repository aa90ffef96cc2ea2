from __future__ import annotations

import logging
import os
from dataclasses import dataclass
from pathlib import Path

from dotenv import load_dotenv
from pydantic import AnyHttpUrl, TypeAdapter, ValidationError

from .constants import (
    DEFAULT_BASE_URL,
    DEFAULT_COOKIE_JAR_PATH,
    DEFAULT_MAX_PENDING,
    DEFAULT_TIMEOUT_SECONDS,
    DEFAULT_TOKEN_STORE_PATH,
    LOGGER,
    REFRESH_PATH,
)

_HTTP_URL = TypeAdapter(AnyHttpUrl)


@dataclass
class RelaySettings:
    base_url: str = DEFAULT_BASE_URL
    refresh_path: str = REFRESH_PATH
    timeout: float = DEFAULT_TIMEOUT_SECONDS
    renewal_timeout: float | None = DEFAULT_TIMEOUT_SECONDS
    max_pending: int | None = DEFAULT_MAX_PENDING
    token_store_path: str = DEFAULT_TOKEN_STORE_PATH
    cookie_jar_path: str | None = None
    debug: bool = True


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
        raise RuntimeError(f"{key} must be an integer value.")


def _get_env_float(key: str, default: float) -> float:
    raw = os.getenv(key, "").strip()
    if not raw:
        return default
    try:
        value = float(raw)
    except ValueError:
        raise RuntimeError(f"{key} must be a number.")
    if value <= 0:
        raise RuntimeError(f"{key} must be greater than zero.")
    return value


def load_env() -> None:
    env_path = Path(__file__).resolve().parent.parent / ".env"
    if not env_path.exists():
        return
    load_dotenv(env_path, override=False)


def validate_base_url(value: str) -> str:
    try:
        url = _HTTP_URL.validate_python(value.strip())
    except ValidationError as error:
        raise RuntimeError(
            "APIRELAY_BASE_URL must be an http(s) URL (for example: "
            "http://localhost:3000/api)."
        ) from error
    return str(url).rstrip("/")


def load_settings() -> RelaySettings:
    timeout = _get_env_float("APIRELAY_TIMEOUT", DEFAULT_TIMEOUT_SECONDS)
    renewal_timeout = _get_env_float("APIRELAY_RENEWAL_TIMEOUT", timeout)
    max_pending = _get_env_int("APIRELAY_MAX_PENDING", DEFAULT_MAX_PENDING)
    if max_pending < 0:
        raise RuntimeError("APIRELAY_MAX_PENDING must not be negative.")

    refresh_path = os.getenv("APIRELAY_REFRESH_PATH", REFRESH_PATH).strip() or REFRESH_PATH
    if not refresh_path.startswith("/"):
        refresh_path = f"/{refresh_path}"

    cookie_jar_path = os.getenv("APIRELAY_COOKIE_JAR_PATH", DEFAULT_COOKIE_JAR_PATH).strip()

    return RelaySettings(
        base_url=validate_base_url(os.getenv("APIRELAY_BASE_URL", DEFAULT_BASE_URL)),
        refresh_path=refresh_path,
        timeout=timeout,
        renewal_timeout=renewal_timeout,
        max_pending=max_pending or None,
        token_store_path=os.getenv("APIRELAY_TOKEN_STORE_PATH", DEFAULT_TOKEN_STORE_PATH),
        cookie_jar_path=cookie_jar_path or None,
        debug=is_truthy(os.getenv("APIRELAY_DEBUG", "1")),
    )


def setup_logging(debug_enabled: bool) -> bool:
    if debug_enabled:
        logging.basicConfig(level=logging.INFO)
        LOGGER.setLevel(logging.INFO)
    return debug_enabled
