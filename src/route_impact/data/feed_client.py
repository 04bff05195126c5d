import logging

import httpx

from route_impact.errors import DataLoadError

logger = logging.getLogger(__name__)


def is_url(source: str) -> bool:
    return source.startswith(("http://", "https://"))


class FeedClient:
    """Async HTTP client for downloading a static feed archive.

    Usage:
        async with FeedClient(timeout=60.0) as client:
            archive = await client.download("https://example.com/gtfs.zip")
    """

    def __init__(self, timeout: float = 60.0):
        """Initialize the client.

        Args:
            timeout: Request timeout in seconds.
        """
        self._timeout = timeout
        self._client: httpx.AsyncClient | None = None

    async def __aenter__(self) -> "FeedClient":
        """Enter async context - create HTTP client."""
        self._client = httpx.AsyncClient(timeout=self._timeout, follow_redirects=True)
        return self

    async def __aexit__(self, exc_type, exc_val, exc_tb) -> None:
        """Exit async context - close HTTP client."""
        if self._client:
            await self._client.aclose()
            self._client = None

    async def download(self, url: str) -> bytes:
        """Download the feed archive.

        Returns:
            Raw bytes of the ZIP archive.

        Raises:
            RuntimeError: If client not initialized.
            DataLoadError: If the HTTP request fails.
        """
        if not self._client:
            raise RuntimeError("Client not initialized - use 'async with'")

        try:
            response = await self._client.get(url)
            response.raise_for_status()
        except httpx.HTTPError as e:
            raise DataLoadError(url, e) from e

        logger.info(f"Downloaded {len(response.content):,} bytes from {url}")
        return response.content
