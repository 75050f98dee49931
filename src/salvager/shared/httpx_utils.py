"""Utilities for creating standardized httpx AsyncClient instances."""

from __future__ import annotations

from typing import Any

import httpx

__all__ = ["create_http_client"]


def create_http_client(
    *,
    timeout: httpx.Timeout | float | None = None,
    **kwargs: Any,
) -> httpx.AsyncClient:
    """Create an httpx AsyncClient with Salvager defaults.

    Defaults:
    - follow_redirects=True (always enabled)
    - Default timeout of 30 seconds if not specified

    Args:
        timeout: Request timeout, either an httpx.Timeout or seconds.
        **kwargs: Additional keyword arguments to pass to AsyncClient,
            e.g. ``transport=httpx.MockTransport(handler)`` in tests.

    Returns:
        Configured httpx.AsyncClient instance. The caller owns it and must
        close it (``await client.aclose()`` or ``async with``).

    Examples:
        async with create_http_client(timeout=10) as client:
            response = await client.get("https://api.apify.com/v2/datasets")
    """
    defaults: dict[str, Any] = {
        "follow_redirects": True,
    }

    if timeout is None:
        defaults["timeout"] = httpx.Timeout(30.0)
    elif isinstance(timeout, httpx.Timeout):
        defaults["timeout"] = timeout
    else:
        defaults["timeout"] = httpx.Timeout(timeout)

    # Defaults take precedence
    kwargs = {**kwargs, **defaults}

    return httpx.AsyncClient(**kwargs)
