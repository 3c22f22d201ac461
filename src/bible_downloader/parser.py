"""Turns a chapter's markup fragment into verses."""

import html
import logging
from typing import Optional

from bs4 import BeautifulSoup, Tag

from .models import Verse, trailing_number


logger = logging.getLogger(__name__)


def _is_decoration(span: Tag, verse: Tag) -> bool:
    """True for content nested in a footnote or cross-reference inside the verse."""
    for parent in span.parents:
        if parent is verse:
            return False
        if "note" in parent.get("class", []):
            return True
    return False


def extract_verse_text(verse: Tag) -> str:
    """Concatenate the content spans of one verse block, in document order."""
    parts = []
    for span in verse.find_all("span", class_="content"):
        if _is_decoration(span, verse):
            continue
        parts.append(span.get_text())
    # Markup is sometimes double-escaped, so unescape what the parser left.
    return html.unescape("".join(parts)).strip()


def verse_number(reference: str) -> Optional[int]:
    """'GEN.1.3' -> 3, 'GEN.1.3+GEN.1.4' -> 4."""
    return trailing_number(reference)


def parse_verses(fragment: str) -> list[Verse]:
    """
    Parse a chapter fragment into verses.

    Verses rendered as several disjoint blocks (poetry, stanzas) share a
    reference and are merged into one verse, joined by a single space.

    Args:
        fragment: Chapter markup as returned by the content endpoint

    Returns:
        Verses in ascending verse-number order, none with empty content
    """
    soup = BeautifulSoup(fragment, "html.parser")

    texts: dict[str, list[str]] = {}
    numbers: dict[str, int] = {}

    for block in soup.find_all("span", class_="verse"):
        reference = block.get("data-usfm")
        if not reference:
            continue

        number = verse_number(reference)
        if number is None:
            logger.debug("Skipping verse block with unnumbered reference %r", reference)
            continue

        text = extract_verse_text(block)
        if reference not in texts:
            texts[reference] = []
            numbers[reference] = number
        if text:
            texts[reference].append(text)

    verses: list[Verse] = []
    for reference in sorted(texts, key=lambda ref: numbers[ref]):
        content = " ".join(texts[reference])
        if not content:
            continue
        if verses and verses[-1].number == numbers[reference]:
            verses[-1].content = f"{verses[-1].content} {content}"
            continue
        verses.append(Verse(id=reference, number=numbers[reference], content=content))

    return verses
