#!/usr/bin/env python3
"""
Tests for the exporters and the local library.
"""

import csv
import json
import sqlite3
import xml.etree.ElementTree as ET

import pytest

from bible_downloader.export import export_document
from bible_downloader.models import Book, Chapter, Document, Language, Verse, Version
from bible_downloader.storage import (
    delete_document,
    is_downloaded,
    list_documents,
    load_document,
    save_document,
)


@pytest.fixture
def document() -> Document:
    version = Version(
        id=1,
        abbreviation="KJV",
        title="King James Version",
        local_title="King James Version",
        language=Language(tag="eng", name="English", local_name="English"),
        copyright_text="Public Domain",
    )
    return Document(
        version=version,
        downloaded_at="2026-10-19T12:00:00+00:00",
        books=[
            Book(id="GEN", name="Genesis", local_name="Genesis", order=0, chapters=[
                Chapter(id="GEN.1", number=1, verses=[
                    Verse(id="GEN.1.1", number=1, content="In the beginning God created the heaven and the earth."),
                    Verse(id="GEN.1.3", number=3, content='And God said, "Let there be light"'),
                ]),
            ]),
            Book(id="EXO", name="Exodus", local_name="Exodus", order=1, chapters=[
                Chapter(id="EXO.3", number=3, verses=[
                    Verse(id="EXO.3.14", number=14, content="I AM THAT I AM"),
                ]),
            ]),
        ],
    )


def test_json_export(document, tmp_path):
    path = export_document(document, tmp_path / "kjv.json", "json")

    data = json.loads(path.read_text(encoding="utf-8"))
    assert data["version"]["abbreviation"] == "KJV"
    assert data["books"][0]["chapters"][0]["verses"][1] == {
        "id": "GEN.1.3", "verse": 3, "content": 'And God said, "Let there be light"',
    }


def test_csv_export(document, tmp_path):
    path = export_document(document, tmp_path / "kjv.csv", "csv")

    lines = path.read_text(encoding="utf-8").splitlines()
    assert lines[0] == "Bible,Book,Chapter,Verse,Content"
    assert lines[1] == "KJV,Genesis,1,1,In the beginning God created the heaven and the earth."
    assert lines[2] == 'KJV,Genesis,1,3,"And God said, ""Let there be light"""'
    assert len(lines) == 4

    with open(path, encoding="utf-8", newline="") as f:
        rows = list(csv.reader(f))
    assert rows[2][4] == 'And God said, "Let there be light"'


def test_xml_export(document, tmp_path):
    path = export_document(document, tmp_path / "kjv.xml", "xml")

    assert path.read_text(encoding="utf-8").startswith("<?xml")
    root = ET.parse(path).getroot()
    assert root.tag == "bible"
    assert root.get("abbreviation") == "KJV"
    assert root.findtext("copyright") == "Public Domain"
    books = root.findall("./books/book")
    assert [b.get("id") for b in books] == ["GEN", "EXO"]
    verses = books[0].findall("./chapters/chapter/verses/verse")
    assert [(v.get("number"), v.text) for v in verses][0] == (
        "1", "In the beginning God created the heaven and the earth.",
    )
    assert books[1].find("./chapters/chapter").get("number") == "3"


def test_sqlite_export(document, tmp_path):
    target = tmp_path / "kjv.db"
    target.write_text("stale")

    export_document(document, target, "sqlite")

    conn = sqlite3.connect(target)
    try:
        assert conn.execute("SELECT abbreviation, language_tag FROM bible_info").fetchone() == ("KJV", "eng")
        assert conn.execute("SELECT id FROM books ORDER BY book_order").fetchall() == [("GEN",), ("EXO",)]
        assert conn.execute(
            "SELECT v.verse_number FROM verses v JOIN chapters c ON v.chapter_id = c.id "
            "WHERE c.book_id = 'GEN' ORDER BY v.verse_number"
        ).fetchall() == [(1,), (3,)]
        indexes = {row[1] for row in conn.execute("PRAGMA index_list('verses')")}
        assert "idx_verses_content" in indexes
    finally:
        conn.close()


def test_unknown_format(document, tmp_path):
    with pytest.raises(ValueError):
        export_document(document, tmp_path / "kjv.pdf", "pdf")


def test_library_round_trip(document, tmp_path):
    path = save_document(document, tmp_path)

    assert path.name == "KJV.json"
    assert is_downloaded("KJV", tmp_path)
    assert load_document(path) == document

    (tmp_path / "broken.json").write_text("{not json", encoding="utf-8")
    summaries = list_documents(tmp_path)
    assert [s["abbreviation"] for s in summaries] == ["KJV"]
    assert summaries[0]["books_count"] == 2

    assert delete_document("KJV", tmp_path) == path
    assert not is_downloaded("KJV", tmp_path)
    assert delete_document("KJV", tmp_path) is None


def test_list_missing_directory(tmp_path):
    assert list_documents(tmp_path / "nowhere") == []
