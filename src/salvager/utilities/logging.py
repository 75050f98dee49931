"""Logging utilities for Salvager."""

import logging
from collections.abc import Mapping
from typing import Any, Literal
from urllib.parse import parse_qsl, urlencode, urlsplit, urlunsplit

from rich.console import Console
from rich.logging import RichHandler

SENSITIVE_KEYS: frozenset[str] = frozenset({"token", "authorization", "access_token", "api_key"})


def configure_logging(
    level: Literal["DEBUG", "INFO", "WARNING", "ERROR", "CRITICAL"] = "INFO",
) -> None:
    """Configure logging for Salvager.

    Args:
        level: the log level to use
    """
    logging.basicConfig(
        level=level,
        format="%(message)s",
        handlers=[RichHandler(console=Console(stderr=True), rich_tracebacks=True)],
    )


def redact_sensitive_data(
    data: Mapping[str, Any] | None,
    sensitive_keys: frozenset[str] | set[str] | None = None,
) -> Mapping[str, Any] | None:
    """Return a shallow copy with sensitive values replaced by "***"."""
    if data is None:
        return None

    keys = {k.lower() for k in (sensitive_keys or SENSITIVE_KEYS)}
    return {k: ("***" if k.lower() in keys else v) for k, v in data.items()}


def redact_url(url: str) -> str:
    """Mask credential query parameters, e.g. ``?token=...``, before a URL is logged."""
    parts = urlsplit(url)
    if not parts.query:
        return url
    query = redact_sensitive_data(dict(parse_qsl(parts.query, keep_blank_values=True))) or {}
    return urlunsplit(parts._replace(query=urlencode(query, safe="*")))
