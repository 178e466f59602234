"""JSON endpoint extractor for storefronts exposing structured product data."""

import logging
import time
from abc import abstractmethod
from typing import Any, Optional

import httpx

from src import metrics
from src.config import settings
from src.ingest.base import BaseExtractor, ExtractionError, RawProductData

logger = logging.getLogger(__name__)


class JSONEndpointExtractor(BaseExtractor):
    """Extractor that skips rendering and reads a machine-readable endpoint.

    Subclasses derive the endpoint from the product URL (``build_endpoint_url``)
    and map the decoded payload to raw fields (``parse_payload``).
    """

    def __init__(
        self,
        timeout_seconds: float | None = None,
        user_agent: str | None = None,
        transport: Optional[httpx.AsyncBaseTransport] = None,
    ):
        """
        Initialize JSON endpoint extractor.

        Args:
            timeout_seconds: Per-request timeout
            user_agent: User-Agent header sent with requests
            transport: Optional httpx transport (used to stub the network)
        """
        self.timeout_seconds = timeout_seconds or settings.http_timeout_seconds
        self.user_agent = user_agent or settings.user_agent
        self._transport = transport
        self._http_client: httpx.AsyncClient | None = None

    async def _get_client(self) -> httpx.AsyncClient:
        """Get or create HTTP client."""
        if self._http_client is None:
            self._http_client = httpx.AsyncClient(
                timeout=self.timeout_seconds,
                follow_redirects=True,
                headers={
                    "User-Agent": self.user_agent,
                    "Accept": "application/json, text/plain, */*",
                },
                transport=self._transport,
            )
        return self._http_client

    async def close(self):
        """Close HTTP client."""
        if self._http_client:
            await self._http_client.aclose()
            self._http_client = None

    async def extract(self, url: str) -> RawProductData:
        """
        Fetch and map the product's JSON representation.

        Args:
            url: Normalized product URL

        Returns:
            RawProductData with raw field values

        Raises:
            ExtractionError: On transport failure, non-2xx status or unusable payload
        """
        endpoint = self.build_endpoint_url(url)
        start = time.monotonic()
        try:
            data = await self._fetch_json(endpoint)
        finally:
            metrics.extraction_duration_seconds.labels(platform=self.platform.value).observe(
                time.monotonic() - start
            )

        try:
            raw = self.parse_payload(data, url)
        except ExtractionError:
            raise
        except Exception as e:
            raise self.fail(f"Unexpected payload from {endpoint}: {type(e).__name__}: {e}", cause=e) from e

        logger.info(f"Extracted {self.platform.value} product from {endpoint}: {(raw.name or '')[:60]!r}")
        return raw

    async def _fetch_json(self, endpoint: str) -> Any:
        """GET ``endpoint`` and decode the JSON body."""
        client = await self._get_client()

        try:
            response = await client.get(endpoint)
            response.raise_for_status()
        except httpx.TimeoutException as e:
            raise self.fail(f"Timed out fetching {endpoint}", cause=e, retryable=True) from e
        except httpx.HTTPStatusError as e:
            status = e.response.status_code
            raise self.fail(
                f"HTTP {status}: {e.response.reason_phrase} from {endpoint}",
                cause=e,
                retryable=status >= 500 or status == 429,
            ) from e
        except httpx.HTTPError as e:
            raise self.fail(f"Request to {endpoint} failed: {e}", cause=e, retryable=True) from e

        try:
            return response.json()
        except ValueError as e:
            raise self.fail(f"Invalid JSON from {endpoint}", cause=e) from e

    @abstractmethod
    def build_endpoint_url(self, url: str) -> str:
        """Derive the JSON endpoint from the product URL."""
        pass

    @abstractmethod
    def parse_payload(self, data: Any, url: str) -> RawProductData:
        """Map a decoded payload to raw product fields."""
        pass

    @staticmethod
    def _extract_path(data: Any, path: list[str]) -> Any:
        """Extract value from nested dict using path."""
        current = data
        for key in path:
            if isinstance(current, dict):
                current = current.get(key)
            else:
                return None
        return current
