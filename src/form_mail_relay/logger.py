# Copyright 2025 Softwell S.r.l. - SPDX-License-Identifier: Apache-2.0
"""Logging helpers for the form mail relay.

Handlers, level and format are configured once via ``logging.basicConfig()``
in the entry points (``main.py``, :mod:`form_mail_relay.server`,
:mod:`form_mail_relay.cli`); modules only ask for named loggers.
"""

import logging

LOG_FORMAT = "[%(asctime)s] [%(levelname)s] %(message)s"
LOG_DATEFMT = "%Y-%m-%d %H:%M:%S"


def get_logger(name: str = "FormMailRelay") -> logging.Logger:
    """Return the standard library logger bound to ``name``."""
    return logging.getLogger(name)


def configure_logging(level: str | None = "INFO") -> None:
    """Apply the service log format at the given level name.

    Unknown level names fall back to ``INFO``.
    """
    logging.basicConfig(
        level=getattr(logging, str(level or "INFO").upper(), logging.INFO),
        format=LOG_FORMAT,
        datefmt=LOG_DATEFMT,
        force=True,  # Force reconfiguration to avoid duplicate handlers
    )
