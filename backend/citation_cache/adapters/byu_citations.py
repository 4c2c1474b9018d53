"""BYU Scripture Citation Index adapter.

The index has no JSON API. Its ajax endpoint returns an HTML fragment listing
the general conference talks that cite a verse range, so the talks are
scraped out of that fragment.
"""

import html
import re
from dataclasses import dataclass
from typing import Any, Optional
from urllib.parse import urljoin

from citation_cache.adapters.base import BaseAdapter
from citation_cache.config import get_settings


# "2019-O:3, Speaker Title" on one line
TALK_LINE_COMBINED = re.compile(r"^(\d{4})-([OA]):(\d+),\s+([^,]+?)\s+(.+)$")
# "• 2019-O:3, Speaker" with the title on the next line
TALK_LINE_BULLET = re.compile(r"^•?\s*(\d{4})-([OA]):(\d+),\s+(.+)$")

TALK_ANCHOR = re.compile(
    r'<a[^>]+href="([^"]*?(?:content/)?talks_ajax/(\d+)/?[^"]*)"[^>]*>(.*?)</a>',
    re.IGNORECASE | re.DOTALL,
)
WATCH_ANCHOR = re.compile(
    r'<a[^>]+href="([^"]+)"[^>]*>(?:(?!</a>).)*?\bWatch\b',
    re.IGNORECASE | re.DOTALL,
)
LISTEN_ANCHOR = re.compile(
    r'<a[^>]+href="([^"]+)"[^>]*>(?:(?!</a>).)*?\bListen\b',
    re.IGNORECASE | re.DOTALL,
)

# Header lines the fragment repeats around the talk list
NOISE_LINES = [
    re.compile(r"^citation\s?index$", re.IGNORECASE),
    re.compile(r"^index$", re.IGNORECASE),
    re.compile(r"^[A-Za-z0-9\- ]+\s+\d+\s*: ?\d+$"),  # "Ether 12:4"
]

SESSIONS = {"O": "October", "A": "April"}

# Characters after a talk anchor searched for its Watch/Listen links
LINK_WINDOW = 400


@dataclass
class CitationTalk:
    """A talk citing a scripture reference."""
    title: str
    id: Optional[str] = None
    speaker: Optional[str] = None
    conference: Optional[str] = None
    year: Optional[str] = None
    session: Optional[str] = None
    href: Optional[str] = None
    talk_url: Optional[str] = None
    watch_url: Optional[str] = None
    listen_url: Optional[str] = None
    talk_id: Optional[str] = None

    def dedup_key(self) -> str:
        return "__".join([
            self.id or self.talk_id or "",
            (self.title or "").lower(),
            (self.speaker or "").lower(),
            self.year or "",
            self.session or "",
        ])

    def to_dict(self) -> dict[str, Any]:
        """Convert to the JSON shape served to clients, without unset fields."""
        data = {
            "id": self.id,
            "title": self.title,
            "speaker": self.speaker,
            "conference": self.conference,
            "year": self.year,
            "session": self.session,
            "href": self.href,
            "talkUrl": self.talk_url,
            "watchUrl": self.watch_url,
            "listenUrl": self.listen_url,
            "talkId": self.talk_id,
        }
        return {k: v for k, v in data.items() if v is not None}


def text_from_html(fragment: str) -> str:
    """Flatten an HTML fragment to text, one block element per line."""
    text = re.sub(r"<script[\s\S]*?</script>", " ", fragment, flags=re.IGNORECASE)
    text = re.sub(r"<style[\s\S]*?</style>", " ", text, flags=re.IGNORECASE)
    text = re.sub(r"<br\s*/?>", "\n", text, flags=re.IGNORECASE)
    text = re.sub(r"<li[^>]*>", "\n• ", text, flags=re.IGNORECASE)
    text = re.sub(r"</(p|div|li|ul|h\d)>", "\n", text, flags=re.IGNORECASE)
    text = re.sub(r"<[^>]+>", " ", text)
    text = html.unescape(text).replace("\u00a0", " ")
    text = re.sub(r"[ \t]+", " ", text)
    text = re.sub(r"\n{3,}", "\n\n", text)
    return text.strip()


def _is_noise(line: str) -> bool:
    return any(pattern.match(line) for pattern in NOISE_LINES)


def _talk_id(year: str, session: str, index: str) -> str:
    return f"{year}-{session}:{index}"


def parse_talk_lines(lines: list[str]) -> list[CitationTalk]:
    """Build talks from the text lines of a citation fragment."""
    talks = []
    i = 0
    while i < len(lines):
        line = lines[i]

        match = TALK_LINE_COMBINED.match(line)
        if match:
            year, session, index, speaker, title = match.groups()
            talks.append(CitationTalk(
                id=_talk_id(year, session, index),
                year=year,
                session=SESSIONS.get(session),
                speaker=speaker.strip(),
                title=title.strip(),
            ))
            i += 1
            continue

        match = TALK_LINE_BULLET.match(line)
        if match:
            year, session, index, speaker = match.groups()
            speaker = speaker.strip()
            next_line = lines[i + 1] if i + 1 < len(lines) else ""
            is_next_talk = bool(TALK_LINE_BULLET.match(next_line) or TALK_LINE_COMBINED.match(next_line))
            is_link = bool(re.match(r"^(watch|listen)", next_line, re.IGNORECASE))
            title = next_line if next_line and not is_next_talk and not is_link else ""

            talks.append(CitationTalk(
                id=_talk_id(year, session, index),
                year=year,
                session=SESSIONS.get(session),
                speaker=speaker,
                title=title or speaker,
            ))
            i += 2 if title else 1
            continue

        i += 1

    return talks


def parse_talks_from_html(fragment: str, site_url: str) -> list[CitationTalk]:
    """Extract the citing talks from a citation index HTML fragment.

    Talk anchors are paired with talks in document order; each anchor
    contributes the talk's id and URL, and the Watch/Listen links that
    follow it before the next talk anchor.
    """
    lines = [line.strip() for line in re.split(r"\n+", text_from_html(fragment))]
    lines = [line for line in lines if line and not _is_noise(line)]
    talks = parse_talk_lines(lines)

    anchors = []
    seen_ids = set()
    for match in TALK_ANCHOR.finditer(fragment):
        talk_id = match.group(2)
        if talk_id in seen_ids:
            continue
        seen_ids.add(talk_id)
        anchors.append(match)

    for i, (talk, anchor) in enumerate(zip(talks, anchors)):
        talk.talk_id = anchor.group(2)
        talk.talk_url = urljoin(site_url, anchor.group(1))
        if not talk.title:
            talk.title = text_from_html(anchor.group(3))

        window_end = anchor.end() + LINK_WINDOW
        if i + 1 < len(anchors):
            window_end = min(window_end, anchors[i + 1].start())
        window = fragment[anchor.end():window_end]
        watch = WATCH_ANCHOR.search(window)
        if watch:
            talk.watch_url = urljoin(site_url, watch.group(1))
        listen = LISTEN_ANCHOR.search(window)
        if listen:
            talk.listen_url = urljoin(site_url, listen.group(1))

    unique = []
    seen_keys = set()
    for talk in talks:
        key = talk.dedup_key()
        if key in seen_keys:
            continue
        seen_keys.add(key)
        unique.append(talk)
    return unique


class ByuCitationAdapter(BaseAdapter):
    """Adapter for the BYU Scripture Citation Index."""

    source_name = "byu_citation_index"

    def __init__(
        self,
        timeout: float = 30.0,
        base_url: Optional[str] = None,
        site_url: Optional[str] = None,
    ):
        super().__init__(timeout=timeout)
        settings = get_settings()
        self.base_url = (base_url or settings.byu_citation_base_url).rstrip("/")
        self.site_url = site_url or settings.byu_site_url

    def build_verses_url(self, book_id: int, chapter: int) -> str:
        return f"{self.base_url}/{book_id}/{chapter}"

    async def fetch_citations(
        self,
        book_id: int,
        chapter: int,
        verse_spec: str,
    ) -> list[dict[str, Any]]:
        """Fetch and parse the talks citing a verse range."""
        response = await self._make_request(
            "GET",
            self.build_verses_url(book_id, chapter),
            params={"verses": verse_spec},
            headers={"Accept": "text/html"},
        )
        talks = parse_talks_from_html(response.text, self.site_url)
        return [talk.to_dict() for talk in talks]
