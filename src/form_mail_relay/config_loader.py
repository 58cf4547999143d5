# Copyright 2025 Softwell S.r.l. - SPDX-License-Identifier: Apache-2.0
"""Configuration loading for the form mail relay."""

from __future__ import annotations

import configparser
import os
from pathlib import Path
from typing import Any, Mapping

from .attachments import MAX_UPLOAD_BYTES
from .smtp_pool import DEFAULT_POOL_SIZE
from .logger import get_logger

logger = get_logger("ConfigLoader")

SECRET_KEYS = frozenset({"smtp_password", "api_token"})


def load_settings(config_path: str | os.PathLike | None = None, environ: Mapping[str, str] | None = None) -> dict[str, Any]:
    """
    Load configuration from an INI file (default: config.ini) with environment variables as fallbacks.

    Environment variables (prefixed with FMR_; the original deployment's
    PORT, GMAIL_USER and GMAIL_APP_PASSWORD are honoured as well):
      FMR_CONFIG - Path to config.ini file (default: config.ini)
      FMR_LOG_LEVEL - Logging level (default: INFO)
      FMR_HOST / FMR_PORT - Listening address (default: 0.0.0.0:5000)
      FMR_API_TOKEN - Token protecting /metrics and /api/test-email
      FMR_CORS_ORIGINS - Comma separated list of allowed origins
      FMR_SMTP_HOST / FMR_SMTP_PORT - SMTP server (default: smtp.gmail.com:465)
      FMR_SMTP_USER / FMR_SMTP_PASSWORD - SMTP credentials
      FMR_SMTP_USE_TLS - TLS on/off (default: on for ports 465 and 587)
      FMR_SEND_TIMEOUT - Seconds allowed per send attempt (default: 30)
      FMR_SMTP_POOL_SIZE - Maximum simultaneous SMTP connections (default: 3)
      FMR_SERVICE_ADDRESS - Sender of career applications (default: SMTP user)
      FMR_SERVICE_NAME - Display name for messages sent as the service
      FMR_TEST_RECIPIENT - Recipient of /api/test-email (default: service address)
      FMR_MAX_UPLOAD_BYTES - Resume size ceiling (default: 4 MiB)

    Config file sections/keys:
      [server] host, port, api_token, cors_origins
      [smtp] host, port, user, password, use_tls, send_timeout, pool_size
      [relay] service_address, service_name, test_recipient, max_upload_bytes
      [logging] level
    """
    env = os.environ if environ is None else environ
    path = Path(config_path or env.get("FMR_CONFIG", "config.ini"))
    parser = configparser.ConfigParser()
    if path.exists():
        parser.read(path)
        logger.debug("Loaded configuration file %s", path)

    def get(section: str, option: str, fallback: str | None = None) -> str | None:
        if parser.has_option(section, option):
            return parser.get(section, option)
        return fallback

    def get_int(section: str, option: str, fallback: str | None = None, default: int | None = None) -> int | None:
        value = get(section, option, fallback)
        if value is None or str(value).strip() == "":
            return default
        return int(value)

    def get_float(section: str, option: str, fallback: str | None = None, default: float | None = None) -> float | None:
        value = get(section, option, fallback)
        if value is None or str(value).strip() == "":
            return default
        return float(value)

    def get_bool(section: str, option: str, fallback: str | None = None, default: bool | None = None) -> bool | None:
        value = get(section, option, fallback)
        if value is None:
            return default
        normalized = str(value).strip().lower()
        if normalized in {"1", "true", "yes", "on"}:
            return True
        if normalized in {"0", "false", "no", "off"}:
            return False
        return default

    def env_any(*names: str) -> str | None:
        for name in names:
            if env.get(name):
                return env[name]
        return None

    smtp_port = get_int("smtp", "port", env.get("FMR_SMTP_PORT"), default=465)
    settings: dict[str, Any] = {
        "http_host": get("server", "host", env.get("FMR_HOST", "0.0.0.0")),
        "http_port": get_int("server", "port", env_any("FMR_PORT", "PORT"), default=5000),
        "api_token": get("server", "api_token", env.get("FMR_API_TOKEN")),
        "cors_origins": get("server", "cors_origins", env.get("FMR_CORS_ORIGINS", "")),
        "smtp_host": get("smtp", "host", env.get("FMR_SMTP_HOST", "smtp.gmail.com")),
        "smtp_port": smtp_port,
        "smtp_user": get("smtp", "user", env_any("FMR_SMTP_USER", "GMAIL_USER")),
        "smtp_password": get("smtp", "password", env_any("FMR_SMTP_PASSWORD", "GMAIL_APP_PASSWORD")),
        "smtp_use_tls": get_bool("smtp", "use_tls", env.get("FMR_SMTP_USE_TLS"), default=smtp_port in (465, 587)),
        "send_timeout": get_float("smtp", "send_timeout", env.get("FMR_SEND_TIMEOUT"), default=30.0),
        "smtp_pool_size": get_int("smtp", "pool_size", env.get("FMR_SMTP_POOL_SIZE"), default=DEFAULT_POOL_SIZE),
        "service_address": get("relay", "service_address", env.get("FMR_SERVICE_ADDRESS")),
        "service_name": get("relay", "service_name", env.get("FMR_SERVICE_NAME")),
        "test_recipient": get("relay", "test_recipient", env.get("FMR_TEST_RECIPIENT")),
        "max_upload_bytes": get_int("relay", "max_upload_bytes", env.get("FMR_MAX_UPLOAD_BYTES"), default=MAX_UPLOAD_BYTES),
        "log_level": get("logging", "level", env.get("FMR_LOG_LEVEL", "INFO")),
    }

    token = settings.get("api_token")
    if isinstance(token, str):
        token = token.strip() or None
    settings["api_token"] = token
    settings["cors_origins"] = [
        origin.strip() for origin in str(settings.get("cors_origins") or "").split(",") if origin.strip()
    ]
    if not settings["service_address"]:
        settings["service_address"] = settings["smtp_user"]
    if not settings["test_recipient"]:
        settings["test_recipient"] = settings["service_address"]
    return settings


def masked(settings: Mapping[str, Any]) -> dict[str, Any]:
    """Copy of ``settings`` with secrets replaced, safe to print or log."""
    return {key: ("***" if key in SECRET_KEYS and value else value) for key, value in settings.items()}
