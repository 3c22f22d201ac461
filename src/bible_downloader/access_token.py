"""Discovery and caching of the rotating access token.

The chapter endpoint is addressed through a build identifier that the site
embeds in every server-rendered page and changes on each deployment. It is
read from a stable reference page and kept for a fixed validity window.
"""

import asyncio
import logging
import re
import time
from typing import Callable, Optional

import httpx

from .errors import NetworkError, TokenNotFoundError


logger = logging.getLogger(__name__)


# =============================================================================
# Configuration
# =============================================================================

REFERENCE_PAGE_URL = "https://www.bible.com/bible/1/GEN.1.KJV"
TOKEN_TTL = 60 * 60  # seconds

# Tried in order; the first match wins.
TOKEN_PATTERNS = (
    re.compile(r'"buildId"\s*:\s*"([^"]+)"'),
    re.compile(r'/_next/static/([^/"\']+)/_buildManifest\.js'),
)


# =============================================================================
# Cache
# =============================================================================

class TokenCache:
    """Holds one token for `ttl` seconds. Owned by the caller."""

    def __init__(self, ttl: float = TOKEN_TTL, clock: Callable[[], float] = time.monotonic):
        self.ttl = ttl
        self._clock = clock
        self._token: Optional[str] = None
        self._stored_at = 0.0

    @property
    def valid(self) -> bool:
        return self._token is not None and self._clock() - self._stored_at < self.ttl

    def get(self) -> Optional[str]:
        """Return the cached token, or None when empty or expired."""
        return self._token if self.valid else None

    def set(self, token: str):
        self._token = token
        self._stored_at = self._clock()

    def invalidate(self):
        self._token = None


# =============================================================================
# Resolver
# =============================================================================

def extract_token(markup: str) -> str:
    """Find the access token in page markup."""
    for pattern in TOKEN_PATTERNS:
        match = pattern.search(markup)
        if match:
            return match.group(1)
    raise TokenNotFoundError("No access token found in reference page")


class TokenResolver:
    """Resolves the access token, hitting the network only on a cache miss."""

    def __init__(
        self,
        client: httpx.AsyncClient,
        cache: Optional[TokenCache] = None,
        reference_url: str = REFERENCE_PAGE_URL,
    ):
        self.client = client
        self.cache = cache if cache is not None else TokenCache()
        self.reference_url = reference_url
        self._lock = asyncio.Lock()

    async def resolve(self) -> str:
        token = self.cache.get()
        if token:
            return token

        # Workers starting together share a single lookup.
        async with self._lock:
            token = self.cache.get()
            if token:
                return token

            logger.debug("Resolving access token from %s", self.reference_url)
            try:
                response = await self.client.get(self.reference_url)
            except httpx.HTTPError as e:
                raise NetworkError(f"Token page request failed: {e}", self.reference_url) from e
            if not response.is_success:
                raise NetworkError(
                    f"Token page returned HTTP {response.status_code}",
                    self.reference_url,
                    response.status_code,
                )

            token = extract_token(response.text)
            self.cache.set(token)
            logger.info("Resolved access token %s", token)
            return token

    def invalidate(self):
        self.cache.invalidate()
