"""
Structured logging for the risk pipeline.

Every event carries an ISO-8601 UTC timestamp, the level, the emitting module
and an event_type key. Account addresses passed under ADDRESS_KEYS are
shortened before rendering so full keys never reach log storage.

Imports nothing from backend_riskguard so any module can import it first.
"""

from __future__ import annotations

import logging
import os
import sys
from datetime import datetime, timezone
from typing import Any

import structlog

SERVICE_NAME = "backend_riskguard"
ADDRESS_KEYS = ("address", "counterparty", "sender_address")
SHORT_ADDRESS_CHARS = 16


def short_address(address: str | None) -> str:
    """First 16 characters of an address plus '...' (unchanged when shorter)."""
    address = address or ""
    if len(address) <= SHORT_ADDRESS_CHARS:
        return address
    return address[:SHORT_ADDRESS_CHARS] + "..."


def _stamp(logger: Any, method_name: str, event_dict: dict[str, Any]) -> dict[str, Any]:
    event_dict.setdefault("timestamp", datetime.now(timezone.utc).isoformat())
    return event_dict


def _event_type(logger: Any, method_name: str, event_dict: dict[str, Any]) -> dict[str, Any]:
    """structlog's positional 'event' becomes event_type."""
    if "event" in event_dict:
        event_dict.setdefault("event_type", event_dict.pop("event"))
    return event_dict


def _shorten_addresses(logger: Any, method_name: str, event_dict: dict[str, Any]) -> dict[str, Any]:
    for key in ADDRESS_KEYS:
        value = event_dict.get(key)
        if isinstance(value, str):
            event_dict[key] = short_address(value)
    return event_dict


def _level_from_env() -> int:
    return getattr(logging, os.getenv("LOG_LEVEL", "INFO").strip().upper(), logging.INFO)


def configure_logging(log_format: str | None = None, level: int | None = None) -> None:
    """
    (Re)configure structlog. JSON lines by default; LOG_FORMAT=console gives
    the coloured developer renderer.
    """
    fmt = (log_format or os.getenv("LOG_FORMAT", "json")).strip().lower()
    renderer: Any
    if fmt == "json":
        renderer = structlog.processors.JSONRenderer()
    else:
        renderer = structlog.dev.ConsoleRenderer(colors=sys.stderr.isatty())
    structlog.configure(
        processors=[
            structlog.contextvars.merge_contextvars,
            structlog.processors.add_log_level,
            structlog.processors.format_exc_info,
            _stamp,
            _event_type,
            _shorten_addresses,
            renderer,
        ],
        wrapper_class=structlog.make_filtering_bound_logger(level if level is not None else _level_from_env()),
        context_class=dict,
        logger_factory=structlog.PrintLoggerFactory(file=sys.stdout),
        cache_logger_on_first_use=True,
    )


if not structlog.is_configured():
    configure_logging()


def get_logger(name: str) -> structlog.BoundLogger:
    """
    Module logger:

        logger = get_logger(__name__)
        logger.info("analysis_done", address=addr, score=72, risk_level="HIGH")
    """
    return structlog.get_logger(name).bind(logger=name)


def bind_address(address: str) -> structlog.BoundLogger:
    """Logger with the analyzed address bound to every subsequent event."""
    return get_logger(SERVICE_NAME).bind(address=address)
