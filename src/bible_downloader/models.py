"""Data models for Bible downloading."""

import json
import re
from dataclasses import dataclass, field, asdict
from typing import Optional


_DIGITS = re.compile(r"\d+")
_LEADING_NUMBER = re.compile(r"^\s*(\d+)")


def trailing_number(reference: str) -> Optional[int]:
    """Return the trailing numeric component of a reference like 'GEN.1.3'."""
    last = reference.split(".")[-1]
    return int(last) if _DIGITS.fullmatch(last) else None


# =============================================================================
# Catalog
# =============================================================================

@dataclass(frozen=True)
class Language:
    """A language offered by the content platform."""

    tag: str  # e.g. "eng"
    name: str  # e.g. "English"
    local_name: str  # name in the language itself
    text_direction: str = "ltr"

    def to_dict(self) -> dict:
        return asdict(self)

    @classmethod
    def from_dict(cls, data: dict) -> "Language":
        return cls(
            tag=data.get("tag", ""),
            name=data.get("name", ""),
            local_name=data.get("local_name", ""),
            text_direction=data.get("text_direction", "ltr"),
        )


@dataclass
class Version:
    """One translation of the Bible. `id` is the external catalog key."""

    id: int
    abbreviation: str  # e.g. "KJV"
    title: str
    local_title: str = ""
    language: Optional[Language] = None
    copyright_text: str = ""

    def to_dict(self) -> dict:
        return asdict(self)

    @classmethod
    def from_dict(cls, data: dict) -> "Version":
        language = data.get("language")
        return cls(
            id=data["id"],
            abbreviation=data.get("abbreviation", ""),
            title=data.get("title", ""),
            local_title=data.get("local_title", ""),
            language=Language.from_dict(language) if language else None,
            copyright_text=data.get("copyright_text", ""),
        )


@dataclass
class ChapterEntry:
    """A chapter as listed in the catalog skeleton (no text)."""

    id: str  # chapter reference, e.g. "GEN.1"
    label: str  # human label, e.g. "1"

    @property
    def number(self) -> Optional[int]:
        """Chapter number parsed from the human label, else from the id."""
        match = _LEADING_NUMBER.match(self.label)
        if match and int(match.group(1)) > 0:
            return int(match.group(1))
        number = trailing_number(self.id)
        return number if number else None


@dataclass
class BookEntry:
    """A book as listed in the catalog skeleton."""

    id: str  # canonical book code, e.g. "GEN"
    name: str
    local_name: str
    order: int  # position in the catalog's canonical sequence
    chapters: list[ChapterEntry] = field(default_factory=list)


@dataclass
class Catalog:
    """Version metadata plus its ordered book/chapter skeleton."""

    version: Version
    books: list[BookEntry] = field(default_factory=list)

    @property
    def chapter_count(self) -> int:
        return sum(len(book.chapters) for book in self.books)

    def work_items(self) -> list[tuple[BookEntry, ChapterEntry]]:
        """Flatten into one (book, chapter) pair per chapter, in catalog order."""
        return [(book, chapter) for book in self.books for chapter in book.chapters]


# =============================================================================
# Downloaded content
# =============================================================================

@dataclass
class Verse:
    """A single verse. `content` is never empty."""

    id: str  # opaque reference, e.g. "GEN.1.1"
    number: int
    content: str

    def to_dict(self) -> dict:
        return {"id": self.id, "verse": self.number, "content": self.content}

    @classmethod
    def from_dict(cls, data: dict) -> "Verse":
        return cls(id=data["id"], number=data["verse"], content=data["content"])


@dataclass
class Chapter:
    id: str
    number: int
    verses: list[Verse] = field(default_factory=list)

    def to_dict(self) -> dict:
        return {
            "id": self.id,
            "chapter": self.number,
            "verses": [verse.to_dict() for verse in self.verses],
        }

    @classmethod
    def from_dict(cls, data: dict) -> "Chapter":
        return cls(
            id=data["id"],
            number=data["chapter"],
            verses=[Verse.from_dict(v) for v in data.get("verses", [])],
        )


@dataclass
class Book:
    id: str
    name: str
    local_name: str
    order: int
    chapters: list[Chapter] = field(default_factory=list)

    def to_dict(self) -> dict:
        return {
            "id": self.id,
            "name": self.name,
            "local_name": self.local_name,
            "order": self.order,
            "chapters": [chapter.to_dict() for chapter in self.chapters],
        }

    @classmethod
    def from_dict(cls, data: dict) -> "Book":
        return cls(
            id=data["id"],
            name=data.get("name", ""),
            local_name=data.get("local_name", ""),
            order=data.get("order", 0),
            chapters=[Chapter.from_dict(c) for c in data.get("chapters", [])],
        )


@dataclass
class Document:
    """The fully assembled text of one version."""

    version: Version
    books: list[Book] = field(default_factory=list)
    downloaded_at: str = ""  # ISO-8601, UTC

    @property
    def chapter_count(self) -> int:
        return sum(len(book.chapters) for book in self.books)

    @property
    def verse_count(self) -> int:
        return sum(len(ch.verses) for book in self.books for ch in book.chapters)

    def to_dict(self) -> dict:
        """Convert to dictionary."""
        return {
            "version": self.version.to_dict(),
            "downloaded_at": self.downloaded_at,
            "books": [book.to_dict() for book in self.books],
        }

    def to_json(self, indent: int = 2) -> str:
        """Convert to JSON string."""
        return json.dumps(self.to_dict(), indent=indent, ensure_ascii=False)

    @classmethod
    def from_dict(cls, data: dict) -> "Document":
        return cls(
            version=Version.from_dict(data["version"]),
            books=[Book.from_dict(b) for b in data.get("books", [])],
            downloaded_at=data.get("downloaded_at", ""),
        )


# =============================================================================
# Engine messages
# =============================================================================

@dataclass
class ChapterPayload:
    """Raw chapter content as returned by the content endpoint."""

    usfm: str  # chapter reference that was requested
    content: str  # unprocessed markup fragment
    reference: str = ""  # human reference, e.g. "Genesis 1"
    copyright: str = ""
    next_ref: Optional[str] = None
    previous_ref: Optional[str] = None


@dataclass
class ProgressEvent:
    """Emitted after every chapter completion, successful or not."""

    current: int
    total: int
    book_label: str
    chapter_label: str
    percentage: int
