"""
Shared HTTP helper for exchange adapters.

Maps every transport-level failure onto the source error taxonomy so the
aggregator only has to catch SourceUnavailableError.
"""

import asyncio
import logging
from typing import Any, Optional

import aiohttp

from coinpulse.services.base import (
    MalformedPayloadError,
    RateLimitError,
    SourceUnavailableError,
)

logger = logging.getLogger(__name__)

DEFAULT_HEADERS = {
    "Accept": "application/json",
    "User-Agent": "coinpulse-backend/0.1",
}


def create_session() -> aiohttp.ClientSession:
    """Session owned by the application lifespan and shared by all adapters."""
    return aiohttp.ClientSession(headers=DEFAULT_HEADERS)


async def fetch_json(
    session: aiohttp.ClientSession,
    source: str,
    url: str,
    params: Optional[dict] = None,
    headers: Optional[dict] = None,
    timeout: float = 6.0,
) -> Any:
    """GET a JSON document with its own deadline."""
    try:
        async with session.get(
            url,
            params=params,
            headers=headers,
            timeout=aiohttp.ClientTimeout(total=timeout),
        ) as response:
            if response.status == 429:
                raise RateLimitError(source, "Rate limited (HTTP 429)", {"status": 429})
            if not 200 <= response.status < 300:
                body = await response.text()
                raise SourceUnavailableError(
                    source,
                    f"HTTP {response.status}",
                    {"status": response.status, "body": body[:200]},
                )
            try:
                return await response.json(content_type=None)
            except ValueError as e:
                raise MalformedPayloadError(source, f"Invalid JSON: {e}") from e
    except asyncio.TimeoutError as e:
        raise SourceUnavailableError(source, f"Timed out after {timeout:.1f}s") from e
    except aiohttp.ClientError as e:
        raise SourceUnavailableError(source, f"Connection error: {e}") from e
