"""
Bible Downloader - Downloads whole Bible versions chapter by chapter and assembles them into one document.
"""

from .models import (
    Language,
    Version,
    BookEntry,
    ChapterEntry,
    Catalog,
    Verse,
    Chapter,
    Book,
    Document,
    ChapterPayload,
    ProgressEvent,
)
from .errors import (
    BibleDownloadError,
    TokenNotFoundError,
    NetworkError,
    ChapterError,
    MalformedResponseError,
    MissingContentError,
    CatalogError,
    DownloadCancelled,
)
from .access_token import TokenCache, TokenResolver
from .fetcher import ChapterFetcher
from .parser import parse_verses
from .catalog import CatalogClient
from .orchestrator import DownloadOrchestrator, download_catalog

__all__ = [
    "Language",
    "Version",
    "BookEntry",
    "ChapterEntry",
    "Catalog",
    "Verse",
    "Chapter",
    "Book",
    "Document",
    "ChapterPayload",
    "ProgressEvent",
    "BibleDownloadError",
    "TokenNotFoundError",
    "NetworkError",
    "ChapterError",
    "MalformedResponseError",
    "MissingContentError",
    "CatalogError",
    "DownloadCancelled",
    "TokenCache",
    "TokenResolver",
    "ChapterFetcher",
    "parse_verses",
    "CatalogClient",
    "DownloadOrchestrator",
    "download_catalog",
]

__version__ = "0.2.0"
