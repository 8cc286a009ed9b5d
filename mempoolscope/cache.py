"""File-backed response cache with lazy, time-based expiry."""

import re
import time
from pathlib import Path
from typing import Callable, Optional
from .constants import CACHE_TIMESTAMP_SUFFIX
from .errors import CacheIOError
from .logging import get_logger

logger = get_logger(__name__)

_UNSAFE_KEY_CHARS = re.compile(r"[^A-Za-z0-9._-]")


def cache_key(endpoint: str) -> str:
    """
    Derive a filesystem-safe cache key from an endpoint path.

    "/address/bc1q.../utxo" -> "_address_bc1q..._utxo"

    Args:
        endpoint: Endpoint path relative to the API base URL

    Returns:
        Deterministic key containing only [A-Za-z0-9._-]
    """
    key = _UNSAFE_KEY_CHARS.sub("_", endpoint)
    # Keep keys from colliding with timestamp sidecars or dot-files
    if key.endswith(CACHE_TIMESTAMP_SUFFIX):
        key += "_"
    if key.startswith("."):
        key = "_" + key
    return key or "_"


class CacheStore:
    """Key/expiry byte-blob store backed by a local directory.

    Each entry is two files: ``<key>`` holds the payload and ``<key>.ts`` holds
    the unix write timestamp. Any I/O failure is treated as a cache miss.
    """

    def __init__(self, cache_dir: str, duration_mins: int, clock: Callable[[], float] = time.time):
        """
        Initialize cache store.

        Args:
            cache_dir: Directory holding cache files (created on demand)
            duration_mins: Entry lifetime in minutes, measured from write time
            clock: Source of the current unix time (injectable for tests)
        """
        self.cache_dir = Path(cache_dir)
        self.duration_mins = duration_mins
        self._clock = clock

    @property
    def duration_secs(self) -> float:
        return self.duration_mins * 60

    def _paths(self, key: str):
        return self.cache_dir / key, self.cache_dir / (key + CACHE_TIMESTAMP_SUFFIX)

    def _read_timestamp(self, ts_path: Path) -> Optional[float]:
        try:
            return float(ts_path.read_text(encoding="utf-8").strip())
        except FileNotFoundError:
            return None
        except (OSError, ValueError) as e:
            raise CacheIOError(f"Unreadable cache timestamp {ts_path}: {e}") from e

    def _is_expired(self, written_at: Optional[float]) -> bool:
        if written_at is None:
            return True
        return self._clock() - written_at > self.duration_secs

    def _evict(self, key: str) -> None:
        for path in self._paths(key):
            try:
                path.unlink()
            except FileNotFoundError:
                pass
            except OSError as e:
                logger.warning(f"Failed to remove expired cache file {path}: {e}")

    def get(self, key: str) -> Optional[bytes]:
        """
        Load a cached payload.

        Expired entries, and entries without a readable timestamp, are removed
        and reported as absent.

        Args:
            key: Cache key (see cache_key())

        Returns:
            Payload bytes, or None on miss
        """
        data_path, ts_path = self._paths(key)
        try:
            if not data_path.exists():
                return None
            if self._is_expired(self._read_timestamp(ts_path)):
                logger.debug(f"Cache entry expired: {key}")
                self._evict(key)
                return None
            data = data_path.read_bytes()
        except (OSError, CacheIOError) as e:
            logger.warning(f"Cache read failed for {key}, treating as miss: {e}")
            return None

        logger.debug(f"Loaded {len(data)} bytes from cache: {key}")
        return data

    def put(self, key: str, data: bytes) -> None:
        """
        Store a payload, overwriting any previous entry for the key.

        Args:
            key: Cache key (see cache_key())
            data: Payload bytes
        """
        data_path, ts_path = self._paths(key)
        try:
            self.cache_dir.mkdir(parents=True, exist_ok=True)
            data_path.write_bytes(data)
            ts_path.write_text(repr(self._clock()), encoding="utf-8")
        except OSError as e:
            logger.warning(f"Cache write failed for {key}: {e}")
            return
        logger.debug(f"Saved {len(data)} bytes to cache: {key}")

    def is_valid(self, key: str) -> bool:
        """Check whether a cached entry exists and has not expired."""
        data_path, ts_path = self._paths(key)
        try:
            if not data_path.exists():
                return False
            return not self._is_expired(self._read_timestamp(ts_path))
        except (OSError, CacheIOError) as e:
            logger.warning(f"Cache validity check failed for {key}: {e}")
            return False

    def clear(self) -> None:
        """
        Remove every cache entry.

        Only files the cache wrote are touched: timestamp sidecars and the
        blobs they belong to. Other files in the directory are left alone.
        Individual failures are logged and skipped.
        """
        try:
            sidecars = [
                p for p in self.cache_dir.iterdir()
                if p.name.endswith(CACHE_TIMESTAMP_SUFFIX) and p.name != CACHE_TIMESTAMP_SUFFIX
            ]
        except FileNotFoundError:
            return
        except OSError as e:
            logger.warning(f"Error listing cache directory {self.cache_dir}: {e}")
            return

        removed = 0
        for ts_path in sidecars:
            data_path = ts_path.with_name(ts_path.name[:-len(CACHE_TIMESTAMP_SUFFIX)])
            for path in (data_path, ts_path):
                try:
                    if path.is_file():
                        path.unlink()
                        removed += 1
                except FileNotFoundError:
                    continue
                except OSError as e:
                    logger.warning(f"Error removing cache file {path}: {e}")
        logger.info(f"Cache cleared ({removed} files removed)")
