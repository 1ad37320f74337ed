"""structlog configuration shared by every module."""

from __future__ import annotations

import logging
import sys

import structlog

from switchfleet.config import Settings, settings

_configured = False


def setup_logging(cfg: Settings | None = None) -> None:
    """Configure structlog and the stdlib root logger (idempotent)."""
    global _configured
    if _configured:
        return
    _cfg = cfg or settings

    level = logging.getLevelName(_cfg.switchfleet_log_level.upper())
    if not isinstance(level, int):
        level = logging.INFO

    logging.basicConfig(format="%(message)s", stream=sys.stdout, level=level)
    # paramiko is chatty at INFO (banner, auth method negotiation)
    logging.getLogger("paramiko").setLevel(max(level, logging.WARNING))

    renderer = (
        structlog.processors.JSONRenderer()
        if _cfg.switchfleet_log_json
        else structlog.dev.ConsoleRenderer()
    )
    structlog.configure(
        processors=[
            structlog.contextvars.merge_contextvars,
            structlog.processors.add_log_level,
            structlog.processors.TimeStamper(fmt="iso"),
            structlog.processors.format_exc_info,
            renderer,
        ],
        wrapper_class=structlog.make_filtering_bound_logger(level),
        cache_logger_on_first_use=True,
    )
    _configured = True


def get_logger(name: str) -> structlog.stdlib.BoundLogger:
    return structlog.get_logger(name)
