"""Error taxonomy for the data-acquisition pipeline."""


class MempoolError(Exception):
    """Base class for all pipeline errors."""


class NetworkError(MempoolError):
    """Raised on transport-level failures (DNS, refused connection, reset)."""

    def __init__(self, url: str = None, message: str = None):
        self.url = url
        self.message = message or "Network request failed"
        super().__init__(self.message if url is None else f"{self.message}: {url}")


class RequestTimeoutError(MempoolError, TimeoutError):
    """Raised when the connect/request timeout or the overall resource deadline is exceeded."""

    def __init__(self, url: str = None, timeout: float = None):
        self.url = url
        self.timeout = timeout
        super().__init__(f"Request timed out after {timeout}s: {url}")


class HTTPError(MempoolError):
    """Raised when the upstream API answers with a status outside 200-299."""

    def __init__(self, status_code: int, url: str = None):
        self.status_code = status_code
        self.url = url
        super().__init__(f"HTTP {status_code} for {url}")


class DecodeError(MempoolError):
    """Raised when a required field is absent or has the wrong type."""

    def __init__(self, path: str, reason: str):
        self.path = path or "$"
        self.reason = reason
        super().__init__(f"{self.path}: {reason}")


class CacheIOError(MempoolError):
    """Cache file operation failed. Always recovered inside the cache store."""
