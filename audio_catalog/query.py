from __future__ import annotations

from dataclasses import dataclass
from enum import Enum
from typing import Any, Callable, Dict, Iterable, List, Mapping, Optional

from pydantic import BaseModel, ConfigDict, Field

from .models import Record, ResultRecord, parse_id_token

DEFAULT_LIMIT = 100
MAX_LIMIT = 1000


class SortKey(str, Enum):
    TRACK = "track"
    TITLE = "title"
    ARTIST = "artist"
    ALBUM = "album"
    DURATION = "duration"


class SearchTerms(BaseModel):
    """Structured query issued by a caller; immutable once built."""

    model_config = ConfigDict(frozen=True, extra="forbid")

    artist: Optional[str] = None
    album: Optional[str] = None
    term: Optional[str] = None
    limit: Optional[int] = Field(default=None, ge=1, le=MAX_LIMIT)
    sort_by: Optional[SortKey] = None
    after: Optional[str] = None


@dataclass(slots=True)
class SearchResults:
    results: List[ResultRecord]
    has_more: bool
    terms: SearchTerms
    other_albums: Optional[List[str]] = None
    other_artists: Optional[List[str]] = None

    def to_record(self) -> Dict[str, Any]:
        return {
            "has_more": self.has_more,
            "terms": self.terms.model_dump(mode="json"),
            "results": [result.to_record() for result in self.results],
            "other_albums": self.other_albums,
            "other_artists": self.other_artists,
        }


SortChain = Callable[[Record], tuple]


def _track(record: Record) -> tuple[int, int]:
    # Missing track numbers sort before every real one.
    if record.track is None:
        return (0, 0)
    return (1, record.track)


# The trailing id makes the order total, which cursor paging relies on.
SORT_CHAINS: Dict[SortKey, SortChain] = {
    SortKey.TRACK: lambda r: (_track(r), r.title_lower, r.album_lower, r.artist_lower, r.duration, r.id),
    SortKey.TITLE: lambda r: (r.title_lower, _track(r), r.album_lower, r.artist_lower, r.duration, r.id),
    SortKey.ARTIST: lambda r: (r.artist_lower, _track(r), r.title_lower, r.album_lower, r.duration, r.id),
    SortKey.ALBUM: lambda r: (r.album_lower, _track(r), r.title_lower, r.artist_lower, r.duration, r.id),
    SortKey.DURATION: lambda r: (r.duration, _track(r), r.title_lower, r.album_lower, r.artist_lower, r.id),
}


def run_query(records: Mapping[int, Record], terms: SearchTerms) -> SearchResults:
    """Filter, sort and page ``records``; callers hold the catalog lock."""
    limit = terms.limit or DEFAULT_LIMIT
    sort_key = SORT_CHAINS[terms.sort_by or SortKey.TRACK]
    artist = terms.artist.lower() if terms.artist is not None else None
    album = terms.album.lower() if terms.album is not None else None
    needle = terms.term.lower() if terms.term else None

    predicates: list[Callable[[Record], bool]] = []
    if artist is not None:
        predicates.append(lambda r: r.artist_lower == artist)
    if album is not None:
        predicates.append(lambda r: r.album_lower == album)
    if needle:
        predicates.append(
            lambda r: needle in r.title_lower
            or needle in r.artist_lower
            or needle in r.album_lower
            or needle in r.stem_lower
        )

    cursor_id = parse_id_token(terms.after)
    cursor = records.get(cursor_id) if cursor_id is not None else None
    if cursor is not None:
        floor = sort_key(cursor)
        predicates.append(lambda r: sort_key(r) > floor)

    candidates = [record for record in records.values() if all(check(record) for check in predicates)]
    candidates.sort(key=sort_key)

    results = SearchResults(
        results=[ResultRecord.from_record(record) for record in candidates[:limit]],
        has_more=len(candidates) > limit,
        terms=terms,
    )
    if artist is not None:
        results.other_albums = albums_by_artist(records.values(), artist)
    elif album is not None:
        results.other_albums, results.other_artists = related_to_album(records.values(), album)
    return results


def albums_by_artist(records: Iterable[Record], artist_lower: str) -> List[str]:
    return _distinct(record.album for record in records if record.artist_lower == artist_lower)


def related_to_album(records: Iterable[Record], album_lower: str) -> tuple[List[str], List[str]]:
    """Albums sharing an artist with ``album_lower``, and the artists on it."""
    pool = list(records)
    on_album = [record for record in pool if record.album_lower == album_lower]
    artists = {record.artist_lower for record in on_album}
    albums = _distinct(
        record.album
        for record in pool
        if record.artist_lower in artists and record.album_lower != album_lower
    )
    return albums, _distinct(record.artist for record in on_album)


def _distinct(values: Iterable[str]) -> List[str]:
    chosen: Dict[str, str] = {}
    for value in values:
        if not value:
            continue
        key = value.lower()
        current = chosen.get(key)
        if current is None or value < current:
            chosen[key] = value
    return [chosen[key] for key in sorted(chosen)]
