#!/usr/bin/env python3
"""
Tests for the command line interface, with the network replaced by stubs.
"""

import json
import logging

from bible_downloader import cli
from bible_downloader.errors import DownloadCancelled, NetworkError
from bible_downloader.logging_config import setup_logging
from bible_downloader.models import (
    Book,
    BookEntry,
    Catalog,
    Chapter,
    ChapterEntry,
    Document,
    ProgressEvent,
    Verse,
    Version,
)


VERSION = Version(id=1, abbreviation="KJV", title="King James Version")
CATALOG = Catalog(version=VERSION, books=[
    BookEntry(id="GEN", name="Genesis", local_name="Genesis", order=0, chapters=[
        ChapterEntry(id="GEN.1", label="1"),
        ChapterEntry(id="GEN.2", label="2"),
    ]),
])


class StubCatalogClient:
    def get_catalog(self, version_id):
        return CATALOG


def fake_download(document=None, error=None):
    calls = []

    async def download_catalog(catalog, **kwargs):
        calls.append(kwargs)
        kwargs["progress"](ProgressEvent(1, 2, "Genesis", "1", 50))
        if error:
            raise error
        return document

    return download_catalog, calls


def one_chapter_document() -> Document:
    return Document(version=VERSION, downloaded_at="2026-10-19T00:00:00+00:00", books=[
        Book(id="GEN", name="Genesis", local_name="Genesis", order=0, chapters=[
            Chapter(id="GEN.1", number=1, verses=[Verse(id="GEN.1.1", number=1, content="In the beginning")]),
        ]),
    ])


def test_download_saves_and_exports(tmp_path, monkeypatch, capsys):
    download, calls = fake_download(document=one_chapter_document())
    monkeypatch.setattr(cli, "CatalogClient", StubCatalogClient)
    monkeypatch.setattr(cli, "download_catalog", download)

    code = cli.main([
        "download", "1", "--workers", "3", "--output", str(tmp_path),
        "--format", "csv", "--token", "seed",
    ])

    assert code == 0
    assert calls[0]["concurrency"] == 3
    assert calls[0]["token_cache"].get() == "seed"
    saved = json.loads((tmp_path / "KJV.json").read_text(encoding="utf-8"))
    assert saved["version"]["abbreviation"] == "KJV"
    assert (tmp_path / "KJV.csv").exists()
    out = capsys.readouterr().out
    assert "Chapters: 1/2" in out
    assert "Missing: 1" in out


def test_download_cancelled(tmp_path, monkeypatch):
    download, _ = fake_download(error=DownloadCancelled(1, 2))
    monkeypatch.setattr(cli, "CatalogClient", StubCatalogClient)
    monkeypatch.setattr(cli, "download_catalog", download)

    code = cli.main(["download", "1", "--output", str(tmp_path)])

    assert code == 130
    assert not (tmp_path / "KJV.json").exists()


def test_download_error_reported(tmp_path, monkeypatch, capsys):
    class BrokenCatalog:
        def get_catalog(self, version_id):
            raise NetworkError("HTTP 500", status_code=500)

    monkeypatch.setattr(cli, "CatalogClient", BrokenCatalog)

    assert cli.main(["download", "1", "--output", str(tmp_path)]) == 1
    assert "HTTP 500" in capsys.readouterr().out


def test_invalid_workers(tmp_path):
    assert cli.main(["download", "1", "--workers", "0", "--output", str(tmp_path)]) == 1


def test_export_and_library(tmp_path, capsys):
    source = tmp_path / "KJV.json"
    source.write_text(one_chapter_document().to_json(), encoding="utf-8")

    assert cli.main(["export", str(source), "--format", "xml"]) == 0
    assert (tmp_path / "KJV.xml").exists()

    assert cli.main(["library", "--output", str(tmp_path)]) == 0
    assert "King James Version" in capsys.readouterr().out


def test_log_file_records_debug_while_console_stays_quiet(tmp_path, capsys):
    log_file = tmp_path / "run.log"

    logger = setup_logging(verbose=False, log_file=str(log_file))
    logging.getLogger("bible_downloader.orchestrator").debug("fetched GEN.1")
    logging.getLogger("bible_downloader.catalog").warning("catalog slow")
    for handler in logger.handlers:
        handler.flush()

    written = log_file.read_text(encoding="utf-8")
    assert "fetched GEN.1" in written
    assert "[bible_downloader.catalog]" in written
    err = capsys.readouterr().err
    assert "catalog slow" in err
    assert "fetched GEN.1" not in err
    assert logging.getLogger("httpx").level == logging.WARNING

    setup_logging(verbose=True)
    assert len(logger.handlers) == 1

    for handler in list(logger.handlers):
        logger.removeHandler(handler)
    logger.propagate = True
    for name in ("httpx", "httpcore", "urllib3"):
        logging.getLogger(name).setLevel(logging.NOTSET)
