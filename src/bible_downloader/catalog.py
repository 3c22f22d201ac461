"""Catalog discovery: languages, versions and a version's book/chapter skeleton."""

import logging
from typing import Optional

import requests
from requests.adapters import HTTPAdapter
from urllib3.util.retry import Retry

from .errors import CatalogError, NetworkError
from .models import BookEntry, Catalog, ChapterEntry, Language, Version


logger = logging.getLogger(__name__)


# =============================================================================
# Configuration
# =============================================================================

API_BASE_URL = "https://www.bible.com/api/bible"
REQUEST_TIMEOUT = 30


def make_session() -> requests.Session:
    """Session with keep-alive and retries on throttling and server errors."""
    session = requests.Session()
    session.headers.update({
        "User-Agent": "Mozilla/5.0",
        "Accept": "application/json",
    })
    adapter = HTTPAdapter(
        max_retries=Retry(total=2, backoff_factor=0.5, status_forcelist=[429, 500, 502, 503, 504])
    )
    session.mount("http://", adapter)
    session.mount("https://", adapter)
    return session


# =============================================================================
# Conversion
# =============================================================================

def parse_language(data: dict) -> Language:
    return Language(
        tag=data.get("language_tag") or data.get("tag", ""),
        name=data.get("name", ""),
        local_name=data.get("local_name") or data.get("name", ""),
        text_direction=data.get("text_direction", "ltr"),
    )


def parse_version(data: dict) -> Version:
    language = data.get("language")
    copyright_short = data.get("copyright_short") or {}
    return Version(
        id=data["id"],
        abbreviation=data.get("abbreviation") or data.get("local_abbreviation", ""),
        title=data.get("title", ""),
        local_title=data.get("local_title", ""),
        language=parse_language(language) if language else None,
        copyright_text=copyright_short.get("text", "") if isinstance(copyright_short, dict) else str(copyright_short),
    )


def parse_books(books: list[dict]) -> list[BookEntry]:
    """Build the skeleton, keeping only canonical, numbered chapters."""
    entries = []
    for order, book in enumerate(books):
        chapters = []
        for chapter in book.get("chapters") or []:
            if chapter.get("canonical") is False:
                continue
            entry = ChapterEntry(id=chapter["usfm"], label=str(chapter.get("human", "")))
            if entry.number is None:
                logger.debug("Skipping unnumbered chapter %s", entry.id)
                continue
            chapters.append(entry)

        entries.append(BookEntry(
            id=book["usfm"],
            name=book.get("human", ""),
            local_name=book.get("human_long") or book.get("human", ""),
            order=order,
            chapters=chapters,
        ))
    return entries


# =============================================================================
# Client
# =============================================================================

class CatalogClient:
    """Plain request/response client for the catalog endpoints."""

    def __init__(self, session: Optional[requests.Session] = None, base_url: str = API_BASE_URL):
        self.session = session or make_session()
        self.base_url = base_url.rstrip("/")

    def _get(self, path: str, params: Optional[dict] = None) -> dict:
        url = f"{self.base_url}/{path}"
        try:
            response = self.session.get(url, params=params, timeout=REQUEST_TIMEOUT)
            response.raise_for_status()
        except requests.HTTPError as e:
            raise NetworkError(str(e), url, e.response.status_code if e.response is not None else None) from e
        except requests.RequestException as e:
            raise NetworkError(str(e), url) from e

        try:
            body = response.json()
        except ValueError as e:
            raise CatalogError(f"Invalid JSON from {url}") from e

        data = (body.get("response") or {}).get("data") if isinstance(body, dict) else None
        if data is None:
            raise CatalogError(f"No data in response from {url}")
        return data

    def get_languages(self) -> list[Language]:
        """Languages that have at least one default version, sorted by local name."""
        data = self._get("configuration")
        languages: dict[str, Language] = {}
        for version in data.get("default_versions", []):
            raw = version.get("language")
            if not raw:
                continue
            language = parse_language(raw)
            languages.setdefault(language.tag, language)
        return sorted(languages.values(), key=lambda lang: lang.local_name.casefold())

    def get_versions(self, language_tag: str) -> list[Version]:
        data = self._get("versions", params={"language_tag": language_tag, "type": "all"})
        return [parse_version(v) for v in data.get("versions", [])]

    def get_catalog(self, version_id: int) -> Catalog:
        """Version metadata and its ordered book/chapter skeleton."""
        data = self._get(f"version/{version_id}")
        catalog = Catalog(version=parse_version(data), books=parse_books(data.get("books") or []))
        logger.info(
            "Catalog for %s: %d books, %d chapters",
            catalog.version.abbreviation, len(catalog.books), catalog.chapter_count,
        )
        return catalog
