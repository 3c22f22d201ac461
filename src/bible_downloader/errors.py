"""Exceptions raised while acquiring a Bible version."""

from typing import Optional


class BibleDownloadError(Exception):
    """Base class for every error raised by this package."""


class TokenNotFoundError(BibleDownloadError):
    """No known pattern matched the access token on the reference page."""


class NetworkError(BibleDownloadError):
    """Connection failure or a non-2xx response."""

    def __init__(self, message: str, url: str = "", status_code: Optional[int] = None):
        super().__init__(message)
        self.url = url
        self.status_code = status_code


class ChapterError(BibleDownloadError):
    """A chapter payload could not be turned into content."""

    def __init__(self, message: str, chapter_ref: str = ""):
        super().__init__(message)
        self.chapter_ref = chapter_ref


class MalformedResponseError(ChapterError):
    """The payload body is not structured data of the expected shape."""


class MissingContentError(ChapterError):
    """The payload parsed but has no chapter content."""


class CatalogError(BibleDownloadError):
    """A catalog endpoint returned an unusable envelope."""


class DownloadCancelled(BibleDownloadError):
    """The cancellation signal was observed; no document is produced."""

    def __init__(self, processed: int, total: int):
        super().__init__(f"Download cancelled after {processed}/{total} chapters")
        self.processed = processed
        self.total = total
