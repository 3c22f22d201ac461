"""Encoders that write a Document in other formats."""

import csv
import logging
import sqlite3
import xml.etree.ElementTree as ET
from pathlib import Path
from typing import Union

from .models import Document


logger = logging.getLogger(__name__)

FORMATS = ("json", "csv", "xml", "sqlite")

PathLike = Union[str, Path]


def export_json(document: Document, path: PathLike) -> Path:
    path = Path(path)
    path.write_text(document.to_json(), encoding="utf-8")
    return path


def export_csv(document: Document, path: PathLike) -> Path:
    """One row per verse. Values with commas, quotes or newlines are quoted."""
    path = Path(path)
    with open(path, "w", encoding="utf-8", newline="") as f:
        writer = csv.writer(f, quoting=csv.QUOTE_MINIMAL, lineterminator="\n")
        writer.writerow(["Bible", "Book", "Chapter", "Verse", "Content"])
        for book in document.books:
            for chapter in book.chapters:
                for verse in chapter.verses:
                    writer.writerow([
                        document.version.abbreviation,
                        book.name,
                        chapter.number,
                        verse.number,
                        verse.content,
                    ])
    return path


def build_xml(document: Document) -> ET.Element:
    version = document.version
    root = ET.Element("bible", {
        "id": str(version.id),
        "abbreviation": version.abbreviation,
        "title": version.title,
        "localTitle": version.local_title,
    })

    language = ET.SubElement(root, "language")
    if version.language:
        language.set("tag", version.language.tag)
        language.text = version.language.name
    ET.SubElement(root, "copyright").text = version.copyright_text

    books = ET.SubElement(root, "books")
    for book in document.books:
        book_el = ET.SubElement(books, "book", {
            "id": book.id,
            "name": book.name,
            "localName": book.local_name,
        })
        chapters = ET.SubElement(book_el, "chapters")
        for chapter in book.chapters:
            chapter_el = ET.SubElement(chapters, "chapter", {
                "id": chapter.id,
                "number": str(chapter.number),
            })
            verses = ET.SubElement(chapter_el, "verses")
            for verse in chapter.verses:
                verse_el = ET.SubElement(verses, "verse", {
                    "id": verse.id,
                    "number": str(verse.number),
                })
                verse_el.text = verse.content
    return root


def export_xml(document: Document, path: PathLike) -> Path:
    path = Path(path)
    tree = ET.ElementTree(build_xml(document))
    ET.indent(tree, space="  ")
    tree.write(path, encoding="UTF-8", xml_declaration=True)
    return path


SCHEMA = """
CREATE TABLE bible_info (
    id INTEGER PRIMARY KEY,
    abbreviation TEXT,
    title TEXT,
    local_title TEXT,
    language_tag TEXT,
    language_name TEXT,
    language_local_name TEXT,
    copyright_text TEXT,
    downloaded_at TEXT
);

CREATE TABLE books (
    id TEXT PRIMARY KEY,
    name TEXT,
    local_name TEXT,
    book_order INTEGER
);

CREATE TABLE chapters (
    id TEXT PRIMARY KEY,
    book_id TEXT,
    chapter_number INTEGER,
    FOREIGN KEY (book_id) REFERENCES books(id)
);

CREATE TABLE verses (
    id TEXT PRIMARY KEY,
    chapter_id TEXT,
    verse_number INTEGER,
    content TEXT,
    FOREIGN KEY (chapter_id) REFERENCES chapters(id)
);

CREATE INDEX idx_chapters_book ON chapters(book_id);
CREATE INDEX idx_verses_chapter ON verses(chapter_id);
CREATE INDEX idx_verses_content ON verses(content);
"""


def export_sqlite(document: Document, path: PathLike) -> Path:
    """Four related tables; `books.book_order` keeps the canonical order."""
    path = Path(path)
    if path.exists():
        path.unlink()

    version = document.version
    language = version.language
    conn = sqlite3.connect(path)
    try:
        with conn:
            conn.executescript(SCHEMA)
            conn.execute(
                "INSERT INTO bible_info VALUES (?, ?, ?, ?, ?, ?, ?, ?, ?)",
                (
                    version.id,
                    version.abbreviation,
                    version.title,
                    version.local_title,
                    language.tag if language else "",
                    language.name if language else "",
                    language.local_name if language else "",
                    version.copyright_text,
                    document.downloaded_at,
                ),
            )
            for order, book in enumerate(document.books):
                conn.execute(
                    "INSERT INTO books (id, name, local_name, book_order) VALUES (?, ?, ?, ?)",
                    (book.id, book.name, book.local_name, order),
                )
                for chapter in book.chapters:
                    conn.execute(
                        "INSERT INTO chapters (id, book_id, chapter_number) VALUES (?, ?, ?)",
                        (chapter.id, book.id, chapter.number),
                    )
                    conn.executemany(
                        "INSERT INTO verses (id, chapter_id, verse_number, content) VALUES (?, ?, ?, ?)",
                        [(v.id, chapter.id, v.number, v.content) for v in chapter.verses],
                    )
    finally:
        conn.close()
    return path


_EXPORTERS = {
    "json": export_json,
    "csv": export_csv,
    "xml": export_xml,
    "sqlite": export_sqlite,
}


def export_document(document: Document, path: PathLike, fmt: str) -> Path:
    """Write the document to `path` in one of FORMATS."""
    try:
        exporter = _EXPORTERS[fmt]
    except KeyError:
        raise ValueError(f"Unsupported format: {fmt}") from None

    written = exporter(document, path)
    logger.info("Exported %s as %s to %s", document.version.abbreviation, fmt, written)
    return written
