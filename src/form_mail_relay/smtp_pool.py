# Copyright 2025 Softwell S.r.l. - SPDX-License-Identifier: Apache-2.0
"""Bounded SMTP connection pool for the relay's single mail account.

The relay talks to exactly one authenticated SMTP account. An
``aiosmtplib.SMTP`` client carries one SMTP transaction at a time, so every
send checks a connection out of the pool and hands it back when done. At
most ``size`` connections are open at once; further sends wait for a free
one. Idle connections are reused while they are fresh and answer ``NOOP``.

Example:
    ::

        pool = SMTPPool(SMTPAccount("smtp.gmail.com", 465, "me@gmail.com", "app-pw", use_tls=True))
        async with pool.connection() as smtp:
            await smtp.send_message(message, sender="me@gmail.com")
        await pool.close_all()
"""

from __future__ import annotations

import asyncio
import time
from contextlib import asynccontextmanager
from dataclasses import dataclass
from typing import AsyncIterator

import aiosmtplib

from .logger import get_logger

DEFAULT_POOL_SIZE = 3


@dataclass(frozen=True)
class SMTPAccount:
    """Connection parameters of the authenticated account."""

    host: str
    port: int
    user: str | None = None
    password: str | None = None
    use_tls: bool = False
    connect_timeout: float = 10.0

    def __repr__(self) -> str:
        return f"SMTPAccount(host={self.host!r}, port={self.port}, user={self.user!r}, use_tls={self.use_tls})"


class SMTPPool:
    """Asyncio-friendly pool of at most ``size`` authenticated connections.

    Attributes:
        account: The account every connection authenticates as.
        ttl: Maximum idle age in seconds before a connection is replaced.
        size: Upper bound on open connections.
        idle: ``(smtp, last_used)`` pairs waiting to be reused.
        in_use: Number of connections currently checked out.
    """

    def __init__(self, account: SMTPAccount, ttl: int = 300, size: int = DEFAULT_POOL_SIZE):
        self.account = account
        self.ttl = ttl
        self.size = max(1, int(size))
        self.idle: list[tuple[aiosmtplib.SMTP, float]] = []
        self.in_use = 0
        self.slots = asyncio.Semaphore(self.size)
        self.logger = get_logger("SMTPPool")

    @property
    def open_connections(self) -> int:
        return len(self.idle) + self.in_use

    def _client(self) -> aiosmtplib.SMTP:
        acc = self.account
        # Port 465: implicit TLS. Other ports with TLS: STARTTLS.
        if acc.use_tls and acc.port == 465:
            return aiosmtplib.SMTP(hostname=acc.host, port=acc.port, use_tls=True, start_tls=False, timeout=acc.connect_timeout)
        if acc.use_tls:
            return aiosmtplib.SMTP(hostname=acc.host, port=acc.port, use_tls=False, start_tls=True, timeout=acc.connect_timeout)
        return aiosmtplib.SMTP(hostname=acc.host, port=acc.port, use_tls=False, start_tls=False, timeout=acc.connect_timeout)

    async def connect(self) -> aiosmtplib.SMTP:
        """Open and authenticate a new connection.

        Raises:
            asyncio.TimeoutError: If connecting takes longer than the budget.
            aiosmtplib.SMTPException: If the server or the login refuses us.
        """
        smtp = self._client()

        async def _do_connect():
            await smtp.connect()
            if self.account.user and self.account.password:
                await smtp.login(self.account.user, self.account.password)

        await asyncio.wait_for(_do_connect(), timeout=self.account.connect_timeout + 5.0)
        return smtp

    async def _is_alive(self, smtp: aiosmtplib.SMTP) -> bool:
        try:
            code, _ = await asyncio.wait_for(smtp.noop(), timeout=5.0)
            return code == 250
        except Exception:
            return False

    async def _quit(self, smtp: aiosmtplib.SMTP) -> None:
        try:
            await smtp.quit()
        except Exception as exc:
            self.logger.debug("Ignoring error while closing SMTP connection: %s", exc)

    def _drop(self, smtp: aiosmtplib.SMTP) -> None:
        """Close a connection left in an unknown state, without a QUIT round trip."""
        try:
            smtp.close()
        except Exception as exc:
            self.logger.debug("Ignoring error while dropping SMTP connection: %s", exc)

    async def _checkout(self) -> aiosmtplib.SMTP:
        while self.idle:
            smtp, last_used = self.idle.pop()
            if (time.time() - last_used) < self.ttl and await self._is_alive(smtp):
                return smtp
            await self._quit(smtp)
        return await self.connect()

    @asynccontextmanager
    async def connection(self) -> AsyncIterator[aiosmtplib.SMTP]:
        """Check out a connection for one send and return it afterwards.

        Waits while ``size`` connections are busy. A connection whose block
        raised (send error, timeout, cancellation) is closed, not reused.
        """
        async with self.slots:
            self.in_use += 1
            try:
                smtp = await self._checkout()
                try:
                    yield smtp
                except BaseException:
                    self._drop(smtp)
                    raise
                self.idle.append((smtp, time.time()))
            finally:
                self.in_use -= 1

    async def cleanup(self) -> None:
        """Close idle connections older than ``ttl``."""
        now = time.time()
        expired = [entry for entry in self.idle if (now - entry[1]) > self.ttl]
        self.idle = [entry for entry in self.idle if entry not in expired]
        for smtp, _ in expired:
            await self._quit(smtp)

    async def close_all(self) -> None:
        entries, self.idle = self.idle, []
        for smtp, _ in entries:
            await self._quit(smtp)
