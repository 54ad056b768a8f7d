"""Network document source for the web layer.

The server answers with the network JSON from, in order: a short-lived
in-memory copy, the bundled local file, or a remote copy.
"""

import json
import logging
import time
from dataclasses import dataclass
from pathlib import Path
from typing import Any, Callable, Optional

import requests

from .config import NETWORK_CACHE_TTL, NETWORK_REMOTE_URL, PipelineConfig
from .errors import NetworkDataUnavailable

logger = logging.getLogger(__name__)


@dataclass
class CacheEntry:
    value: Any
    fetched_at: float


class NetworkDataCache:
    """Single-value cache with time-based expiry.

    The clock is injected so expiry can be tested without sleeping.
    """

    def __init__(self, ttl_seconds: float, clock: Callable[[], float] = time.monotonic):
        self.ttl_seconds = ttl_seconds
        self.clock = clock
        self._entry: Optional[CacheEntry] = None

    def get(self) -> Optional[Any]:
        """Return the cached value, or None if empty or expired."""
        if self._entry is None:
            return None
        if self.clock() - self._entry.fetched_at >= self.ttl_seconds:
            self._entry = None
            return None
        return self._entry.value

    def put(self, value: Any):
        self._entry = CacheEntry(value=value, fetched_at=self.clock())

    def clear(self):
        self._entry = None


class NetworkDataSource:
    """Load the network document: cache, then local file, then remote URL."""

    def __init__(self, cache: NetworkDataCache, local_path: Optional[Path] = None,
                 remote_url: Optional[str] = None, timeout: int = 30,
                 session: Optional[requests.Session] = None):
        self.cache = cache
        self.local_path = local_path
        self.remote_url = remote_url
        self.timeout = timeout
        self.session = session or requests.Session()

    @classmethod
    def from_config(cls, config: PipelineConfig, remote_url: Optional[str] = None,
                    ttl_seconds: float = NETWORK_CACHE_TTL) -> "NetworkDataSource":
        """Source reading the pipeline's network output, with the configured remote fallback."""
        return cls(
            NetworkDataCache(ttl_seconds),
            local_path=config.network_path,
            remote_url=remote_url if remote_url is not None else (NETWORK_REMOTE_URL or None),
        )

    def load(self) -> Any:
        """Return the parsed network document.

        Raises:
            NetworkDataUnavailable: No source produced a valid document.
        """
        cached = self.cache.get()
        if cached is not None:
            return cached

        data = self._load_local()
        if data is None:
            data = self._load_remote()
        if data is None:
            raise NetworkDataUnavailable("Failed to load network data")

        self.cache.put(data)
        return data

    def _load_local(self) -> Optional[Any]:
        if not self.local_path or not self.local_path.exists():
            return None
        try:
            with open(self.local_path, encoding="utf-8") as f:
                return json.load(f)
        except (OSError, json.JSONDecodeError) as e:
            logger.error(f"Error reading {self.local_path}: {e}")
            return None

    def _load_remote(self) -> Optional[Any]:
        if not self.remote_url:
            return None
        logger.info(f"Fetching network data from {self.remote_url}...")
        try:
            resp = self.session.get(self.remote_url, timeout=self.timeout)
            if resp.status_code != 200:
                logger.error(f"Remote network data returned status {resp.status_code}")
                return None
            return resp.json()
        except (requests.RequestException, ValueError) as e:
            logger.error(f"Error fetching network data: {e}")
            return None
