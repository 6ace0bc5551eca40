import asyncio
import logging
from typing import List, Sequence

import httpx

from imagegrid.errors import DownloadError, EmptyInput

logger = logging.getLogger(__name__)


async def fetch_one(client: httpx.AsyncClient, url: str) -> bytes:
    """Download one source. Non-2xx responses count as failures."""
    try:
        response = await client.get(url)
        response.raise_for_status()
    except (httpx.HTTPError, httpx.InvalidURL) as e:
        logger.warning(f"Failed to fetch {url}: {e}")
        raise DownloadError(e, url=url) from e
    return response.content


async def fetch(client: httpx.AsyncClient, sources: Sequence[str]) -> List[bytes]:
    """
    Download every URL in ``sources`` concurrently.

    All requests go out before any is awaited. The result is in input order.
    The first failure to arrive aborts the whole call; requests still in
    flight are cancelled and nothing partial is returned.

    Args:
        client: Shared client, safe for concurrent requests.
        sources: URLs to fetch.

    Raises:
        EmptyInput: ``sources`` is empty.
        DownloadError: any single fetch failed.
    """
    if not sources:
        raise EmptyInput()

    tasks = [asyncio.ensure_future(fetch_one(client, url)) for url in sources]
    try:
        results = await asyncio.gather(*tasks)
    except DownloadError:
        for task in tasks:
            task.cancel()
        raise

    logger.info(f"Fetched {len(results)} sources ({sum(len(r) for r in results)} bytes)")
    return list(results)
