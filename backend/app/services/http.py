"""Shared outbound HTTP client helper."""

from collections.abc import AsyncIterator
from contextlib import asynccontextmanager

import httpx

from app.config import settings

USER_AGENT = f"{settings.app_name}/{settings.app_version}"


@asynccontextmanager
async def outbound_client(
    client: httpx.AsyncClient | None = None,
    timeout: float | None = None,
    headers: dict[str, str] | None = None,
) -> AsyncIterator[httpx.AsyncClient]:
    """Yield ``client`` if given (left open), else a short-lived configured client."""
    if client is not None:
        yield client
        return
    async with httpx.AsyncClient(
        timeout=timeout or settings.http_timeout_seconds,
        follow_redirects=True,
        headers={"User-Agent": USER_AGENT, **(headers or {})},
    ) as new_client:
        yield new_client
