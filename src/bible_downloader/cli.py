#!/usr/bin/env python3
"""
CLI for Bible Downloader - Downloads whole Bible versions chapter by chapter.

Usage:
    python -m bible_downloader languages                 # List languages
    python -m bible_downloader versions eng              # List versions for a language
    python -m bible_downloader books 1                   # Show a version's books
    python -m bible_downloader download 1                # Download a version
    python -m bible_downloader download 1 --workers 8 --format sqlite
    python -m bible_downloader export bibles/KJV.json --format csv
"""

import argparse
import asyncio
import signal
import threading
import time
from pathlib import Path
from typing import Optional

from .access_token import TokenCache
from .catalog import CatalogClient
from .errors import BibleDownloadError, DownloadCancelled
from .export import FORMATS, export_document
from .fetcher import DEFAULT_LANGUAGE
from .logging_config import setup_logging
from .models import ProgressEvent
from .orchestrator import DEFAULT_CONCURRENCY, download_catalog
from .storage import DATA_DIR, list_documents, load_document, save_document


# =============================================================================
# Progress Tracking
# =============================================================================

class ProgressTracker:
    """Track and display download progress."""

    def __init__(self):
        self.start_time = time.time()
        self.last: Optional[ProgressEvent] = None

    def __call__(self, event: ProgressEvent):
        self.last = event
        self.print_progress(event)

    def print_progress(self, event: ProgressEvent):
        elapsed = time.time() - self.start_time
        rate = event.current / elapsed if elapsed > 0 else 0
        remaining = (event.total - event.current) / rate if rate > 0 else 0
        elapsed_str = time.strftime("%H:%M:%S", time.gmtime(elapsed))
        remaining_str = time.strftime("%H:%M:%S", time.gmtime(remaining))
        label = f"{event.book_label} {event.chapter_label}"

        print(
            f"\r[{event.current:,}/{event.total:,}] "
            f"{event.percentage}% | "
            f"⏱ {elapsed_str} elapsed | "
            f"~{remaining_str} remaining | "
            f"📖 {label:<30}",
            end="",
            flush=True
        )


# =============================================================================
# Commands
# =============================================================================

def cmd_languages(args) -> int:
    for language in CatalogClient().get_languages():
        print(f"{language.tag:<12} {language.local_name} ({language.name})")
    return 0


def cmd_versions(args) -> int:
    versions = CatalogClient().get_versions(args.language)
    if not versions:
        print(f"❌ No versions for language: {args.language}")
        return 1
    for version in versions:
        print(f"{version.id:>6}  {version.abbreviation:<10} {version.title}")
    return 0


def cmd_books(args) -> int:
    catalog = CatalogClient().get_catalog(args.version_id)
    print(f"📖 {catalog.version.title} ({catalog.version.abbreviation})")
    for book in catalog.books:
        print(f"  {book.id:<5} {book.name:<25} {len(book.chapters):>3} chapters")
    print(f"Total chapters: {catalog.chapter_count:,}")
    return 0


def cmd_download(args) -> int:
    print("📖 Bible Downloader")
    print("=" * 60)

    print("Loading catalog...")
    catalog = CatalogClient().get_catalog(args.version_id)

    print(f"Version: {catalog.version.title} ({catalog.version.abbreviation})")
    print(f"Total chapters to download: {catalog.chapter_count:,}")
    print(f"Workers: {args.workers}")
    print(f"Output: {args.output}/")
    print("=" * 60)

    token_cache = TokenCache()
    if args.token:
        token_cache.set(args.token)

    cancel = threading.Event()
    previous_handler = signal.signal(signal.SIGINT, lambda signum, frame: cancel.set())
    progress = ProgressTracker()

    try:
        document = asyncio.run(download_catalog(
            catalog,
            concurrency=args.workers,
            progress=progress,
            cancel=cancel,
            token_cache=token_cache,
            language=args.language,
            refresh_after_failures=args.refresh_after,
        ))
    except DownloadCancelled as e:
        print(f"\n\n⛔ {e}. Nothing was saved.")
        return 130
    finally:
        signal.signal(signal.SIGINT, previous_handler)

    path = save_document(document, args.output)
    missing = catalog.chapter_count - document.chapter_count
    elapsed = time.time() - progress.start_time

    print("\n")
    print("=" * 60)
    print("✅ Download complete!")
    print(f"   Chapters: {document.chapter_count:,}/{catalog.chapter_count:,}")
    if missing:
        print(f"   Missing: {missing:,}")
    print(f"   Verses: {document.verse_count:,}")
    print(f"   Time: {time.strftime('%H:%M:%S', time.gmtime(elapsed))}")
    print(f"   Saved: {path}")

    if args.format and args.format != "json":
        exported = export_document(document, path.with_suffix(f".{args.format}"), args.format)
        print(f"   Exported: {exported}")
    print("=" * 60)
    return 0


def cmd_export(args) -> int:
    document = load_document(args.file)
    output = args.output or Path(args.file).with_suffix(f".{args.format}")
    written = export_document(document, output, args.format)
    print(f"✅ Exported {document.version.abbreviation} to {written}")
    return 0


def cmd_library(args) -> int:
    documents = list_documents(args.output)
    if not documents:
        print(f"No downloaded versions in {args.output}/")
        return 0
    for doc in documents:
        print(f"{doc['abbreviation']:<10} {doc['title']:<40} {doc['books_count']:>3} books  {doc['path']}")
    return 0


# =============================================================================
# CLI Entry Point
# =============================================================================

def build_parser() -> argparse.ArgumentParser:
    parser = argparse.ArgumentParser(
        description="Download Bible versions chapter by chapter and export them."
    )
    parser.add_argument(
        "--verbose", "-v",
        action="store_true",
        help="Show debug logging"
    )
    parser.add_argument(
        "--log-file",
        type=str,
        help="Also write logs to this file"
    )
    commands = parser.add_subparsers(dest="command", required=True)

    commands.add_parser("languages", help="List available languages").set_defaults(func=cmd_languages)

    versions = commands.add_parser("versions", help="List versions for a language tag")
    versions.add_argument("language", help="Language tag (e.g. 'eng')")
    versions.set_defaults(func=cmd_versions)

    books = commands.add_parser("books", help="Show a version's books and chapter counts")
    books.add_argument("version_id", type=int)
    books.set_defaults(func=cmd_books)

    download = commands.add_parser("download", help="Download a whole version")
    download.add_argument("version_id", type=int)
    download.add_argument(
        "--workers", "-w",
        type=int,
        default=DEFAULT_CONCURRENCY,
        help=f"Number of chapters downloaded at once (default: {DEFAULT_CONCURRENCY})"
    )
    download.add_argument(
        "--output", "-o",
        type=str,
        default=DATA_DIR,
        help=f"Library directory (default: {DATA_DIR})"
    )
    download.add_argument(
        "--format", "-f",
        choices=FORMATS,
        help="Also export in this format next to the saved JSON"
    )
    download.add_argument(
        "--token", "-t",
        type=str,
        help="Use this access token instead of looking one up"
    )
    download.add_argument(
        "--language", "-l",
        type=str,
        default=DEFAULT_LANGUAGE,
        help=f"Site locale used in chapter URLs (default: {DEFAULT_LANGUAGE})"
    )
    download.add_argument(
        "--refresh-after",
        type=int,
        default=None,
        help="Refresh the access token after this many failures in a row"
    )
    download.set_defaults(func=cmd_download)

    export = commands.add_parser("export", help="Export a saved version")
    export.add_argument("file", help="Saved version JSON file")
    export.add_argument("--format", "-f", choices=FORMATS, required=True)
    export.add_argument("--output", "-o", help="Output path (default: next to the input)")
    export.set_defaults(func=cmd_export)

    library = commands.add_parser("library", help="List downloaded versions")
    library.add_argument("--output", "-o", default=DATA_DIR, help=f"Library directory (default: {DATA_DIR})")
    library.set_defaults(func=cmd_library)

    return parser


def main(argv: Optional[list[str]] = None) -> int:
    args = build_parser().parse_args(argv)
    setup_logging(args.verbose, args.log_file)

    if getattr(args, "workers", 1) < 1:
        print("❌ --workers must be at least 1")
        return 1

    try:
        return args.func(args)
    except BibleDownloadError as e:
        print(f"\n❌ {e}")
        return 1


if __name__ == "__main__":
    exit(main())
