"""Retrieval of a single chapter's content payload."""

import json
import logging
import re
from typing import Any, Optional

import httpx
from pydantic import BaseModel, ConfigDict, Field, ValidationError

from .access_token import TokenResolver
from .errors import MalformedResponseError, MissingContentError, NetworkError
from .models import ChapterPayload


logger = logging.getLogger(__name__)


# =============================================================================
# Configuration
# =============================================================================

NEXT_DATA_URL = "https://www.bible.com/_next/data"
DEFAULT_LANGUAGE = "en"
REQUEST_TIMEOUT = 30.0
USER_AGENT = "Mozilla/5.0 (compatible; bible-downloader/0.2)"

# Full pages carry the same payload inline.
NEXT_DATA_SCRIPT = re.compile(
    r'<script[^>]*id="__NEXT_DATA__"[^>]*>(.*?)</script>', re.DOTALL
)


def make_client(timeout: float = REQUEST_TIMEOUT, max_connections: int = 20) -> httpx.AsyncClient:
    """Build the shared async HTTP client used for tokens and chapters."""
    return httpx.AsyncClient(
        headers={"User-Agent": USER_AGENT, "Accept": "application/json, text/html"},
        timeout=httpx.Timeout(timeout),
        follow_redirects=True,
        limits=httpx.Limits(max_connections=max_connections),
    )


# =============================================================================
# Payload schema
# =============================================================================

class _Model(BaseModel):
    model_config = ConfigDict(extra="ignore", populate_by_name=True)


class ChapterLink(_Model):
    usfm: list[str] = Field(default_factory=list)
    human: str = ""


class Copyright(_Model):
    text: str = ""
    html: str = ""


class ChapterInfo(_Model):
    content: Optional[str] = None
    reference: Optional[ChapterLink] = None
    copyright: Optional[Copyright] = None
    next: Optional[ChapterLink] = None
    previous: Optional[ChapterLink] = None


class PageProps(_Model):
    chapter_info: Optional[ChapterInfo] = Field(default=None, alias="chapterInfo")


class PageData(_Model):
    page_props: Optional[PageProps] = Field(default=None, alias="pageProps")


def _first_usfm(link: Optional[ChapterLink]) -> Optional[str]:
    if link and link.usfm:
        return link.usfm[0]
    return None


def decode_body(body: str) -> Any:
    """Parse a JSON body, falling back to the inline data block of a full page."""
    try:
        return json.loads(body)
    except json.JSONDecodeError:
        pass

    match = NEXT_DATA_SCRIPT.search(body)
    if not match:
        raise ValueError("body is neither JSON nor a page with inline data")
    # The inline block wraps the data under "props".
    data = json.loads(match.group(1))
    if isinstance(data, dict) and "props" in data:
        return data["props"]
    return data


def parse_payload(body: str, chapter_ref: str) -> ChapterPayload:
    """Validate a response body and pull out the chapter content."""
    try:
        data = decode_body(body)
    except ValueError as e:
        raise MalformedResponseError(f"Unparseable payload for {chapter_ref}: {e}", chapter_ref) from e

    try:
        page = PageData.model_validate(data)
    except ValidationError as e:
        raise MalformedResponseError(f"Unexpected payload shape for {chapter_ref}", chapter_ref) from e

    info = page.page_props.chapter_info if page.page_props else None
    if info is None or not info.content:
        raise MissingContentError(f"No chapter content in payload for {chapter_ref}", chapter_ref)

    return ChapterPayload(
        usfm=chapter_ref,
        content=info.content,
        reference=info.reference.human if info.reference else "",
        copyright=info.copyright.text if info.copyright else "",
        next_ref=_first_usfm(info.next),
        previous_ref=_first_usfm(info.previous),
    )


# =============================================================================
# Fetcher
# =============================================================================

class ChapterFetcher:
    """Fetches one chapter payload at a time through the content endpoint."""

    def __init__(
        self,
        client: httpx.AsyncClient,
        tokens: TokenResolver,
        language: str = DEFAULT_LANGUAGE,
        base_url: str = NEXT_DATA_URL,
    ):
        self.client = client
        self.tokens = tokens
        self.language = language
        self.base_url = base_url.rstrip("/")

    def chapter_url(self, token: str, version_id: int, chapter_ref: str, abbreviation: str) -> str:
        return (
            f"{self.base_url}/{token}/{self.language}/bible/"
            f"{version_id}/{chapter_ref}.{abbreviation}.json"
        )

    async def ensure_token(self) -> str:
        return await self.tokens.resolve()

    def invalidate_token(self):
        self.tokens.invalidate()

    async def fetch_chapter(self, version_id: int, chapter_ref: str, abbreviation: str) -> ChapterPayload:
        """
        Fetch a chapter's raw markup and metadata.

        Args:
            version_id: Catalog id of the version
            chapter_ref: Chapter reference, e.g. 'GEN.1'
            abbreviation: Version abbreviation, e.g. 'KJV'

        Returns:
            ChapterPayload with the unprocessed markup fragment
        """
        token = await self.tokens.resolve()
        url = self.chapter_url(token, version_id, chapter_ref, abbreviation)
        params = {"versionId": str(version_id), "usfm": f"{chapter_ref}.{abbreviation}"}

        try:
            response = await self.client.get(url, params=params)
        except httpx.HTTPError as e:
            raise NetworkError(f"Request for {chapter_ref} failed: {e}", url) from e

        if not response.is_success:
            raise NetworkError(
                f"HTTP {response.status_code} for {chapter_ref}", url, response.status_code
            )

        logger.debug("Fetched %s (%d bytes)", chapter_ref, len(response.content))
        return parse_payload(response.text, chapter_ref)
