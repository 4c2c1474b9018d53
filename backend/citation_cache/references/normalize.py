"""Normalization of incoming scripture references.

Everything that reaches the citation store goes through here first, so two
spellings of the same reference always produce the same cache key.
"""

import math
import re
from dataclasses import dataclass
from typing import Optional

from citation_cache.cache.errors import InvalidReferenceError
from citation_cache.references.books import map_book_key_to_byu_id


# "1", "1-2", "1,3-5"
VERSE_SPEC_PATTERN = re.compile(r"^\d+(?:-\d+)?(?:,\d+(?:-\d+)?)*$")

# Width of the verse_spec column
VERSE_SPEC_MAX_LENGTH = 64

_DASHES = str.maketrans({"–": "-", "—": "-", "−": "-"})


@dataclass(frozen=True)
class NormalizedReference:
    """A reference ready to be used as a cache key."""
    volume: str
    book: str
    book_id: int
    chapter: int
    verse_spec: str


def normalize_key_part(value: Optional[str]) -> str:
    """Lowercase a volume/book key and join its words with hyphens.

    "1 Nephi" -> "1-nephi", " Words_of_Mormon " -> "words-of-mormon"
    """
    if not value:
        return ""
    value = value.strip().lower()
    value = re.sub(r"[\s_]+", "-", value)
    return value


def normalize_verse_spec(verses: Optional[str]) -> str:
    """Strip all whitespace and unify dash characters in a verse range."""
    if not verses:
        return ""
    verses = verses.translate(_DASHES)
    return re.sub(r"\s+", "", verses)


def is_valid_verse_spec(verse_spec: str) -> bool:
    return len(verse_spec) <= VERSE_SPEC_MAX_LENGTH and bool(VERSE_SPEC_PATTERN.match(verse_spec))


def parse_chapter(value: str) -> int:
    """Parse a chapter number, accepting any finite positive whole number."""
    try:
        number = float(value.strip())
    except (AttributeError, ValueError):
        raise InvalidReferenceError("Invalid chapter")

    if not math.isfinite(number) or number <= 0 or not number.is_integer():
        raise InvalidReferenceError("Invalid chapter")
    return int(number)


def normalize_reference(
    volume: Optional[str],
    book: Optional[str],
    chapter: Optional[str],
    verses: Optional[str],
) -> NormalizedReference:
    """Validate and normalize raw query parameters.

    Raises:
        InvalidReferenceError: a required part is missing, malformed or unmapped
    """
    volume_key = normalize_key_part(volume)
    book_key = normalize_key_part(book)
    verse_spec = normalize_verse_spec(verses)

    if not book_key or not (chapter or "").strip() or not verse_spec:
        raise InvalidReferenceError("Missing book, chapter, or verses")

    chapter_number = parse_chapter(chapter)

    if not is_valid_verse_spec(verse_spec):
        raise InvalidReferenceError(f"Invalid verses '{verses}'")

    book_id = map_book_key_to_byu_id(volume_key, book_key)
    if book_id is None:
        raise InvalidReferenceError("Unsupported book mapping")

    return NormalizedReference(
        volume=volume_key,
        book=book_key,
        book_id=book_id,
        chapter=chapter_number,
        verse_spec=verse_spec,
    )
