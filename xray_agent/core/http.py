import asyncio
from typing import Any, Optional

import httpx

# httpx timeouts bound each connect/read/write separately; the wait_for bounds the whole call
DEADLINE_ERRORS = (httpx.TimeoutException, asyncio.TimeoutError)


async def request_within(
    deadline_seconds: float,
    method: str,
    url: str,
    transport: Optional[httpx.AsyncBaseTransport] = None,
    **kwargs: Any,
) -> httpx.Response:
    """Send one request and read its body, failing once ``deadline_seconds`` have passed in total.

    Raises one of ``DEADLINE_ERRORS`` on expiry; other transport failures
    surface as ``httpx.HTTPError``.
    """

    async def send() -> httpx.Response:
        async with httpx.AsyncClient(transport=transport, timeout=deadline_seconds) as client:
            return await client.request(method, url, **kwargs)

    return await asyncio.wait_for(send(), timeout=deadline_seconds)
