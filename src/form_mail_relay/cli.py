# Copyright 2025 Softwell S.r.l. - SPDX-License-Identifier: Apache-2.0
"""Command-line interface for form-mail-relay.

Usage:
    form-mail-relay serve --port 5000
    form-mail-relay verify
    form-mail-relay send-test ops@example.com
    form-mail-relay show-config

All commands read ``config.ini`` (or ``--config``) and the ``FMR_*``
environment variables.
"""

from __future__ import annotations

import asyncio
import json
import os
import sys
from pathlib import Path
from typing import Any

import click
from rich.console import Console
from rich.table import Table

from .config_loader import load_settings, masked
from .logger import configure_logging
from .relay import FormMailRelay

console = Console()
err_console = Console(stderr=True)


def print_error(message: str) -> None:
    """Print an error message to stderr."""
    err_console.print(f"[red]Error:[/red] {message}")


def print_success(message: str) -> None:
    """Print a success message."""
    console.print(f"[green]✓[/green] {message}")


def run_async(coro):
    """Run an async coroutine synchronously."""
    return asyncio.run(coro)


def _settings(ctx: click.Context) -> dict[str, Any]:
    return ctx.obj["settings"]


@click.group()
@click.version_option(package_name="form-mail-relay")
@click.option("--config", "-c", "config_path", default=None, help="Path to config.ini (default: $FMR_CONFIG or config.ini).")
@click.pass_context
def main(ctx: click.Context, config_path: str | None) -> None:
    """Relay website contact and career forms to email."""
    settings = load_settings(config_path)
    configure_logging(settings.get("log_level"))
    ctx.ensure_object(dict)
    ctx.obj["settings"] = settings
    ctx.obj["config_path"] = config_path


@main.command()
@click.option("--host", "-h", default=None, help="Host to bind to (default: from config, 0.0.0.0).")
@click.option("--port", "-p", type=int, default=None, help="Port to listen on (default: from config, 5000).")
@click.option("--reload", is_flag=True, help="Enable auto-reload for development.")
@click.pass_context
def serve(ctx: click.Context, host: str | None, port: int | None, reload: bool) -> None:
    """Run the HTTP server."""
    import uvicorn

    settings = _settings(ctx)
    if ctx.obj.get("config_path"):
        # form_mail_relay.server loads its own settings when uvicorn imports it.
        os.environ["FMR_CONFIG"] = str(Path(ctx.obj["config_path"]).resolve())
    uvicorn.run(
        "form_mail_relay.server:app",
        host=host or str(settings["http_host"]),
        port=port or int(settings["http_port"]),
        reload=reload,
    )


@main.command()
@click.pass_context
def verify(ctx: click.Context) -> None:
    """Check that the SMTP account accepts a connection and login."""
    settings = _settings(ctx)
    try:
        relay = FormMailRelay.from_settings(settings)
    except ValueError as exc:
        print_error(str(exc))
        sys.exit(2)

    async def _check() -> bool:
        try:
            return await relay.transport.verify()
        finally:
            await relay.transport.close()

    if run_async(_check()):
        print_success(f"SMTP server {settings['smtp_host']}:{settings['smtp_port']} is ready to send emails")
        return
    print_error(f"SMTP server {settings['smtp_host']}:{settings['smtp_port']} is not reachable or refused the login")
    sys.exit(1)


@main.command("send-test")
@click.argument("recipient", required=False)
@click.pass_context
def send_test(ctx: click.Context, recipient: str | None) -> None:
    """Send the fixed test message (to RECIPIENT or the configured test recipient)."""
    settings = _settings(ctx)
    try:
        relay = FormMailRelay.from_settings(settings)
    except ValueError as exc:
        print_error(str(exc))
        sys.exit(2)

    async def _send():
        try:
            return await relay.send_test(recipient)
        finally:
            await relay.transport.close()

    outcome = run_async(_send())
    if outcome.ok:
        suffix = " (fallback sender)" if outcome.used_fallback else ""
        print_success(f"Test email sent from {outcome.sender}{suffix}")
        return
    print_error(f"{outcome.reason}: {outcome.details}")
    sys.exit(1)


@main.command("show-config")
@click.option("--json", "as_json", is_flag=True, help="Output as JSON.")
@click.pass_context
def show_config(ctx: click.Context, as_json: bool) -> None:
    """Print the effective settings with secrets masked."""
    settings = masked(_settings(ctx))
    if as_json:
        console.print_json(json.dumps(settings, indent=2, default=str))
        return
    table = Table(title="form-mail-relay settings")
    table.add_column("Key", style="cyan")
    table.add_column("Value")
    for key, value in settings.items():
        table.add_row(key, "" if value is None else str(value))
    console.print(table)


if __name__ == "__main__":
    main()
