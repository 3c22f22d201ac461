"""
Bounded concurrent download of a whole version, chapter by chapter.

A fixed number of chapter tasks are kept in flight. Each task fetches and
parses one chapter and writes it into the slot of its book; the document is
assembled from the slots in catalog order once every task has concluded, so
completion order never affects the result.
"""

import asyncio
import copy
import logging
from collections import deque
from datetime import datetime, timezone
from typing import Callable, Optional, Protocol

from .access_token import TokenCache, TokenResolver
from .errors import DownloadCancelled
from .fetcher import DEFAULT_LANGUAGE, ChapterFetcher, make_client
from .models import (
    Book,
    BookEntry,
    Catalog,
    Chapter,
    ChapterEntry,
    ChapterPayload,
    Document,
    ProgressEvent,
    Verse,
)
from .parser import parse_verses


logger = logging.getLogger(__name__)


# =============================================================================
# Configuration
# =============================================================================

DEFAULT_CONCURRENCY = 5
TICK_DELAY = 0.1  # seconds between scheduling rounds


class Fetcher(Protocol):
    async def ensure_token(self) -> str: ...

    def invalidate_token(self): ...

    async def fetch_chapter(self, version_id: int, chapter_ref: str, abbreviation: str) -> ChapterPayload: ...


class CancelSignal(Protocol):
    def is_set(self) -> bool: ...


ProgressSink = Callable[[ProgressEvent], None]


# =============================================================================
# Orchestrator
# =============================================================================

class DownloadOrchestrator:
    """Drives fetch and parse for every chapter of a catalog."""

    def __init__(
        self,
        fetcher: Fetcher,
        parser: Callable[[str], list[Verse]] = parse_verses,
        tick_delay: float = TICK_DELAY,
        refresh_after_failures: Optional[int] = None,
    ):
        self.fetcher = fetcher
        self.parser = parser
        self.tick_delay = tick_delay
        # Off by default: failures never trigger a token refresh.
        self.refresh_after_failures = refresh_after_failures
        self.failures: list[tuple[str, Exception]] = []
        self._abandoned: set[asyncio.Task] = set()

    async def _download_chapter(
        self,
        catalog: Catalog,
        chapter: ChapterEntry,
        slot: dict[str, Chapter],
        failures: list[tuple[str, Exception]],
    ) -> bool:
        """Fetch, parse and store one chapter. Returns success status."""
        version = catalog.version
        try:
            payload = await self.fetcher.fetch_chapter(version.id, chapter.id, version.abbreviation)
            verses = self.parser(payload.content)
        except Exception as e:
            logger.warning("Skipping %s: %s", chapter.id, e)
            failures.append((chapter.id, e))
            return False

        slot[chapter.id] = Chapter(id=chapter.id, number=chapter.number, verses=verses)
        return True

    def _abandon(self, in_flight: dict):
        """Let dispatched tasks finish on their own; their results are dropped."""
        for task in in_flight:
            self._abandoned.add(task)
            task.add_done_callback(self._abandoned.discard)

    async def drain(self):
        """Wait for chapters still in flight from a cancelled run."""
        if self._abandoned:
            await asyncio.gather(*self._abandoned, return_exceptions=True)

    async def run(
        self,
        catalog: Catalog,
        *,
        concurrency: int = DEFAULT_CONCURRENCY,
        progress: Optional[ProgressSink] = None,
        cancel: Optional[CancelSignal] = None,
    ) -> Document:
        """
        Download every chapter in the catalog.

        Args:
            catalog: Version metadata and book/chapter skeleton
            concurrency: Maximum number of chapters in flight
            progress: Called with a ProgressEvent after each chapter
            cancel: Checked between scheduling rounds (e.g. threading.Event)

        Returns:
            The assembled Document; failed chapters are omitted

        Raises:
            DownloadCancelled: the cancel signal was set before the queue drained
            TokenNotFoundError: no access token could be resolved
        """
        if concurrency < 1:
            raise ValueError("concurrency must be at least 1")

        failures: list[tuple[str, Exception]] = []
        self.failures = failures

        work = list(enumerate(catalog.work_items()))
        pending = deque(work)
        total = len(work)
        slots: dict[str, dict[str, Chapter]] = {book.id: {} for book in catalog.books}
        in_flight: dict[asyncio.Task, tuple[int, BookEntry, ChapterEntry]] = {}
        processed = 0
        consecutive_failures = 0

        logger.info(
            "Downloading %s: %d chapters, %d workers",
            catalog.version.abbreviation, total, concurrency,
        )

        # Nothing can be fetched without a token.
        if pending:
            await self.fetcher.ensure_token()

        while pending or in_flight:
            if cancel is not None and cancel.is_set():
                logger.info("Download cancelled after %d/%d chapters", processed, total)
                # Late failures from abandoned chapters stay out of the report.
                self.failures = list(failures)
                self._abandon(in_flight)
                raise DownloadCancelled(processed, total)

            while pending and len(in_flight) < concurrency:
                index, (book, chapter) = pending.popleft()
                task = asyncio.create_task(
                    self._download_chapter(catalog, chapter, slots[book.id], failures)
                )
                in_flight[task] = (index, book, chapter)

            done, _ = await asyncio.wait(in_flight, return_when=asyncio.FIRST_COMPLETED)

            for task in sorted(done, key=lambda t: in_flight[t][0]):
                _, book, chapter = in_flight.pop(task)
                processed += 1

                if task.result():
                    consecutive_failures = 0
                else:
                    consecutive_failures += 1
                    if self.refresh_after_failures and consecutive_failures >= self.refresh_after_failures:
                        logger.warning(
                            "%d chapters failed in a row, refreshing access token",
                            consecutive_failures,
                        )
                        self.fetcher.invalidate_token()
                        consecutive_failures = 0

                if progress:
                    progress(ProgressEvent(
                        current=processed,
                        total=total,
                        book_label=book.name,
                        chapter_label=chapter.label,
                        percentage=round(processed / total * 100),
                    ))

            if self.tick_delay:
                await asyncio.sleep(self.tick_delay)

        if failures:
            logger.warning("%d of %d chapters failed and were omitted", len(failures), total)

        return assemble_document(catalog, slots)


def assemble_document(catalog: Catalog, slots: dict[str, dict[str, Chapter]]) -> Document:
    """Walk the catalog in order and pull whatever landed in each slot."""
    books = []
    for entry in catalog.books:
        slot = slots.get(entry.id, {})
        books.append(Book(
            id=entry.id,
            name=entry.name,
            local_name=entry.local_name,
            order=entry.order,
            chapters=[slot[chapter.id] for chapter in entry.chapters if chapter.id in slot],
        ))

    return Document(
        version=copy.deepcopy(catalog.version),
        books=books,
        downloaded_at=datetime.now(timezone.utc).isoformat(timespec="seconds"),
    )


# =============================================================================
# Convenience
# =============================================================================

async def download_catalog(
    catalog: Catalog,
    concurrency: int = DEFAULT_CONCURRENCY,
    progress: Optional[ProgressSink] = None,
    cancel: Optional[CancelSignal] = None,
    token_cache: Optional[TokenCache] = None,
    language: str = DEFAULT_LANGUAGE,
    refresh_after_failures: Optional[int] = None,
) -> Document:
    """Wire up a client, resolver, fetcher and orchestrator and run one download."""
    async with make_client(max_connections=concurrency + 2) as client:
        tokens = TokenResolver(client, token_cache)
        fetcher = ChapterFetcher(client, tokens, language=language)
        orchestrator = DownloadOrchestrator(fetcher, refresh_after_failures=refresh_after_failures)
        try:
            return await orchestrator.run(catalog, concurrency=concurrency, progress=progress, cancel=cancel)
        finally:
            # The client must outlive every request it started.
            await orchestrator.drain()
