"""Book key to BYU citation index id mapping."""

from typing import Optional


# Canonical lower-case book keys -> citation index book ids.
# Partial: only books whose citation index ids are known.
BOOK_TO_BYU_ID: dict[str, int] = {
    # New Testament
    "matthew": 101,
    "mark": 102,
    "luke": 103,
    "john": 104,
    # Book of Mormon
    "1-nephi": 205,
    "2-nephi": 206,
    "jacob": 207,
    "enos": 208,
    "jarom": 209,
    "omni": 210,
    "words-of-mormon": 211,
    "mosiah": 212,
    "alma": 213,
    "helaman": 214,
    "3-nephi": 215,
    "4-nephi": 216,
    "mormon": 217,
    "ether": 218,
    "moroni": 219,
}


def map_book_key_to_byu_id(volume: str, book: str) -> Optional[int]:
    """Resolve a book key to its citation index id.

    The volume is accepted for API symmetry; book keys are unique across
    volumes, so only the book takes part in the lookup.
    """
    if not book:
        return None
    return BOOK_TO_BYU_ID.get(book.lower())
