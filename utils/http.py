"""
Shared httpx client handling.
"""
from contextlib import asynccontextmanager
from typing import AsyncIterator, Optional

import httpx


@asynccontextmanager
async def http_session(
    client: Optional[httpx.AsyncClient] = None,
    timeout: float = 30.0,
) -> AsyncIterator[httpx.AsyncClient]:
    """Yield the injected client untouched, or a short-lived one owned by this call"""
    if client is not None:
        yield client
        return

    async with httpx.AsyncClient(timeout=timeout) as owned:
        yield owned
