"""Base adapter interface and common utilities."""

from abc import ABC, abstractmethod
from typing import Any, Optional
import httpx
from tenacity import retry, stop_after_attempt, wait_exponential, retry_if_exception_type


class BaseAdapter(ABC):
    """Abstract base class for upstream citation sources."""

    source_name: str = "unknown"
    base_url: str = ""

    def __init__(self, timeout: float = 30.0):
        self.timeout = timeout
        self._client: Optional[httpx.AsyncClient] = None

    async def get_client(self) -> httpx.AsyncClient:
        """Get or create HTTP client."""
        if self._client is None or self._client.is_closed:
            self._client = httpx.AsyncClient(
                timeout=httpx.Timeout(self.timeout),
                follow_redirects=True,
            )
        return self._client

    async def close(self):
        """Close HTTP client."""
        if self._client and not self._client.is_closed:
            await self._client.aclose()

    @retry(
        stop=stop_after_attempt(3),
        wait=wait_exponential(multiplier=1, min=1, max=10),
        retry=retry_if_exception_type((httpx.TimeoutException, httpx.NetworkError)),
        reraise=True,
    )
    async def _make_request(
        self,
        method: str,
        url: str,
        **kwargs,
    ) -> httpx.Response:
        """Make HTTP request with retry logic."""
        client = await self.get_client()
        response = await client.request(method, url, **kwargs)
        response.raise_for_status()
        return response

    @abstractmethod
    async def fetch_citations(
        self,
        book_id: int,
        chapter: int,
        verse_spec: str,
    ) -> list[dict[str, Any]]:
        """Fetch the talks citing a reference.

        Args:
            book_id: Citation index book id
            chapter: Chapter number
            verse_spec: Normalized verse range such as "1" or "1-2"

        Returns:
            Talks as plain dicts, in the order the source lists them

        Raises:
            httpx.HTTPError: the source could not be reached or answered with an error
        """
        pass
