# Copyright 2025 Softwell S.r.l. - SPDX-License-Identifier: Apache-2.0
"""ASGI application entry point for uvicorn.

This module builds a ready-to-serve application from :func:`load_settings`
(``config.ini`` plus ``FMR_*`` environment variables).

Usage:
    uvicorn form_mail_relay.server:app --host 0.0.0.0 --port 5000
"""

from __future__ import annotations

from collections.abc import AsyncGenerator
from contextlib import asynccontextmanager
from typing import Any, Mapping

from fastapi import FastAPI

from .api import create_app
from .config_loader import load_settings
from .logger import configure_logging
from .relay import FormMailRelay


def build_app(settings: Mapping[str, Any]) -> FastAPI:
    """Create the relay described by ``settings`` and wrap it in the HTTP API."""
    relay = FormMailRelay.from_settings(settings)

    @asynccontextmanager
    async def lifespan(app: FastAPI) -> AsyncGenerator[None, None]:
        """Check the SMTP account on startup and close connections on shutdown."""
        await relay.start()
        yield
        await relay.stop()

    return create_app(
        relay,
        api_token=settings.get("api_token"),
        cors_origins=settings.get("cors_origins"),
        lifespan=lifespan,
    )


_settings = load_settings()
configure_logging(_settings.get("log_level"))
app = build_app(_settings)
