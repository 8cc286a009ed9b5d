"""mempool.space REST client for mempoolscope."""

import time
import requests
from typing import Optional, Tuple
from .cache import CacheStore, cache_key
from .constants import (
    DEFAULT_BASE_URL,
    DEFAULT_CONNECT_TIMEOUT_SECS,
    DEFAULT_RESOURCE_TIMEOUT_SECS,
    DOWNLOAD_CHUNK_BYTES,
)
from .errors import HTTPError, NetworkError, RequestTimeoutError
from .logging import get_logger

logger = get_logger(__name__)


class MempoolAPIClient:
    """REST client with persistent session and optional response cache."""

    def __init__(
        self,
        base_url: str = DEFAULT_BASE_URL,
        cache: Optional[CacheStore] = None,
        connect_timeout: float = DEFAULT_CONNECT_TIMEOUT_SECS,
        resource_timeout: float = DEFAULT_RESOURCE_TIMEOUT_SECS,
        session: Optional[requests.Session] = None,
    ):
        """
        Initialize API client.

        Args:
            base_url: API root (e.g., "https://mempool.space/api")
            cache: Cache store used by fetch_with_cache(); None disables caching
            connect_timeout: Connect/request timeout in seconds
            resource_timeout: Overall deadline for one request in seconds
            session: Pre-built session (tests inject mocks here)
        """
        self.base_url = base_url.rstrip("/")
        self.cache = cache
        self.connect_timeout = connect_timeout
        self.resource_timeout = resource_timeout
        self.session = session or requests.Session()
        self.session.headers["accept"] = "application/json, text/plain"

    def update_base_url(self, new_url: str) -> None:
        """Switch the API root at runtime (network switch or custom endpoint)."""
        if not new_url:
            return
        logger.info(f"Updating API base URL to: {new_url}")
        self.base_url = new_url.rstrip("/")

    def build_url(self, endpoint: str) -> str:
        return f"{self.base_url}{endpoint}"

    def fetch(self, endpoint: str) -> Tuple[bytes, int]:
        """
        Issue a GET for an endpoint.

        Args:
            endpoint: Path relative to the base URL (e.g., "/mempool")

        Returns:
            Tuple of (body bytes, status code)

        Raises:
            RequestTimeoutError: Connect/read timeout or overall deadline exceeded
            NetworkError: Transport-level failure
            HTTPError: Status outside 200-299
        """
        url = self.build_url(endpoint)
        logger.debug(f"GET {url}")
        started = time.monotonic()
        try:
            response = self.session.get(
                url,
                timeout=(self.connect_timeout, self.connect_timeout),
                stream=True,
            )
        except requests.Timeout as e:
            raise RequestTimeoutError(url, self.connect_timeout) from e
        except requests.RequestException as e:
            raise NetworkError(url, str(e)) from e

        try:
            if not 200 <= response.status_code <= 299:
                logger.warning(f"Bad status code {response.status_code} for {url}")
                raise HTTPError(response.status_code, url)
            body = self._read_body(response, url, started)
        finally:
            response.close()

        logger.debug(f"Received {len(body)} bytes from {url}")
        return body, response.status_code

    def _read_body(self, response: requests.Response, url: str, started: float) -> bytes:
        """Read a streamed body, enforcing the overall resource deadline."""
        chunks = []
        try:
            for chunk in response.iter_content(chunk_size=DOWNLOAD_CHUNK_BYTES):
                if time.monotonic() - started > self.resource_timeout:
                    raise RequestTimeoutError(url, self.resource_timeout)
                chunks.append(chunk)
        except requests.Timeout as e:
            raise RequestTimeoutError(url, self.connect_timeout) from e
        except requests.RequestException as e:
            raise NetworkError(url, str(e)) from e
        return b"".join(chunks)

    def fetch_with_cache(self, endpoint: str) -> bytes:
        """
        Return cached bytes for an endpoint, or fetch and cache them.

        Only successful live fetches are written to the cache; fetch errors
        propagate unchanged.
        """
        if self.cache is None:
            data, _ = self.fetch(endpoint)
            return data

        key = cache_key(endpoint)
        cached = self.cache.get(key)
        if cached is not None:
            logger.debug(f"Using cached data for: {endpoint}")
            return cached

        data, _ = self.fetch(endpoint)
        self.cache.put(key, data)
        return data

    def fetch_text(self, endpoint: str, use_cache: bool = False) -> str:
        """Fetch a plain-text endpoint and return the stripped UTF-8 body."""
        data = self.fetch_with_cache(endpoint) if use_cache else self.fetch(endpoint)[0]
        return data.decode("utf-8", errors="replace").strip()

    def close(self) -> None:
        self.session.close()
