"""
Shared HTTP client utilities for the proving backend.

Centralizes httpx client creation with connection pooling, timeouts, and a
consistent User-Agent. Clients are built per orchestrator context and closed
by their owner; nothing here is cached at module level.
"""

from __future__ import annotations

import os
from typing import Optional

import httpx

DEFAULT_TIMEOUT = float(os.getenv("PO_HTTP_TIMEOUT", "30"))
DEFAULT_CONNECT_TIMEOUT = float(os.getenv("PO_HTTP_CONNECT_TIMEOUT", "5"))
USER_AGENT = os.getenv("PO_HTTP_UA", "proof-orchestrator/0.x")


def _build_limits() -> httpx.Limits:
    return httpx.Limits(max_keepalive_connections=20, max_connections=100)


def _build_timeout(timeout: Optional[float]) -> httpx.Timeout:
    return httpx.Timeout(
        timeout if timeout is not None else DEFAULT_TIMEOUT,
        connect=DEFAULT_CONNECT_TIMEOUT,
    )


def _default_headers() -> dict:
    return {"User-Agent": USER_AGENT, "Content-Type": "application/json"}


def build_async_client(
    base_url: str = "",
    timeout: Optional[float] = None,
    transport: Optional[httpx.AsyncBaseTransport] = None,
) -> httpx.AsyncClient:
    """
    Build an asynchronous httpx client.

    Args:
        base_url: Prefix for every relative request path
        timeout: Default read timeout in seconds (per-request overrides win)
        transport: Optional transport, e.g. httpx.MockTransport in tests
    """
    return httpx.AsyncClient(
        base_url=base_url,
        timeout=_build_timeout(timeout),
        limits=_build_limits(),
        headers=_default_headers(),
        transport=transport,
    )
