"""Shared outbound HTTP client handling."""

from collections.abc import AsyncIterator
from contextlib import asynccontextmanager

import httpx

from source_bundler.config import settings


@asynccontextmanager
async def http_client(
    client: httpx.AsyncClient | None = None,
) -> AsyncIterator[httpx.AsyncClient]:
    """Yield *client* if given, otherwise a short-lived client of our own.

    Injected clients are left open; their owner closes them.
    """
    if client is not None:
        yield client
        return

    async with httpx.AsyncClient(
        timeout=settings.http_timeout, follow_redirects=True
    ) as owned:
        yield owned
