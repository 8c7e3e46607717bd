from __future__ import annotations

import hashlib
import json
import math
from dataclasses import dataclass, replace
from pathlib import Path
from typing import Dict, Optional

from .meta_keys import IDENTITY_FIELDS, IDENTITY_SCHEME, SNAPSHOT_FIELDS

UNKNOWN_TITLE = "(unknown)"


class CatalogError(Exception):
    """Base class for errors raised by the catalog."""


class TagReadError(CatalogError):
    """Raised when a file cannot be parsed; the scan skips it and keeps going."""


class SnapshotError(CatalogError):
    """Raised for a snapshot line that cannot be turned back into a Record."""


@dataclass(frozen=True, slots=True)
class TrackTags:
    """Tag values reported by a tag provider for a single file."""

    title: str = ""
    artist: str = ""
    album: str = ""
    year: int = 0
    comment: str = ""
    duration: float = 0.0
    track: Optional[int] = None


@dataclass(frozen=True, slots=True)
class Record:
    """One catalog entry.

    Build instances with :meth:`Record.build` so the lowercase search keys and
    the identity are derived from the display fields exactly once.
    """

    id: int
    path: str
    title: str
    artist: str
    album: str
    year: int
    comment: str
    duration: float
    track: Optional[int]
    title_lower: str
    artist_lower: str
    album_lower: str
    stem_lower: str

    @classmethod
    def build(cls, path: Path | str, tags: TrackTags) -> "Record":
        path_str = str(path)
        title = tags.title or ""
        artist = tags.artist or ""
        album = tags.album or ""
        draft = cls(
            id=0,
            path=path_str,
            title=title,
            artist=artist,
            album=album,
            year=max(int(tags.year or 0), 0),
            comment=tags.comment or "",
            duration=round(_clean_duration(tags.duration), 3),
            track=tags.track,
            title_lower=title.lower(),
            artist_lower=artist.lower(),
            album_lower=album.lower(),
            stem_lower=(file_stem(path_str) or "").lower(),
        )
        return replace(draft, id=compute_identity(draft))

    @property
    def token(self) -> str:
        return id_token(self.id)

    def tags(self) -> TrackTags:
        return TrackTags(
            title=self.title,
            artist=self.artist,
            album=self.album,
            year=self.year,
            comment=self.comment,
            duration=self.duration,
            track=self.track,
        )

    def to_snapshot(self) -> Dict[str, object]:
        return {name: getattr(self, name) for name in SNAPSHOT_FIELDS}


@dataclass(frozen=True, slots=True)
class ResultRecord:
    """Display-safe projection of a Record; never carries the file path."""

    id: str
    title: str
    artist: str
    album: str
    year: int
    comment: str
    duration: str
    track: Optional[int]

    @classmethod
    def from_record(cls, record: Record) -> "ResultRecord":
        title = record.title
        if not title:
            title = _display_text(file_stem(record.path) or UNKNOWN_TITLE)
        return cls(
            id=record.token,
            title=title,
            artist=record.artist,
            album=record.album,
            year=record.year,
            comment=record.comment,
            duration=format_duration(record.duration),
            track=record.track,
        )

    def to_record(self) -> Dict[str, object]:
        return {
            "id": self.id,
            "title": self.title,
            "artist": self.artist,
            "album": self.album,
            "year": self.year,
            "comment": self.comment,
            "duration": self.duration,
            "track": self.track,
        }


def compute_identity(record: Record) -> int:
    """Hash every content field in a fixed order into an unsigned 64-bit id.

    The digest is SHA-256 over a canonical JSON array, so ids survive restarts
    and upgrades as long as IDENTITY_SCHEME is unchanged.
    """
    payload = [IDENTITY_SCHEME] + [getattr(record, name) for name in IDENTITY_FIELDS]
    encoded = json.dumps(payload, ensure_ascii=False, separators=(",", ":"))
    digest = hashlib.sha256(encoded.encode("utf-8", "surrogateescape")).digest()
    return int.from_bytes(digest[:8], "big")


def id_token(record_id: int) -> str:
    # Decimal string: 64-bit ids overflow JavaScript numbers.
    return str(record_id)


def parse_id_token(token: object) -> Optional[int]:
    if token is None:
        return None
    cleaned = str(token).strip()
    if not cleaned.isdigit():
        return None
    value = int(cleaned)
    if value >= 1 << 64:
        return None
    return value


def file_stem(path: str) -> Optional[str]:
    stem = Path(path).stem
    return stem or None


def format_duration(seconds: float) -> str:
    total = int(_clean_duration(seconds))
    hours, rest = divmod(total, 3600)
    minutes, secs = divmod(rest, 60)
    if hours:
        return f"{hours}:{minutes:02}:{secs:02}"
    return f"{minutes:02}:{secs:02}"


def parse_track_number(value: object) -> Optional[int]:
    if value is None:
        return None
    if isinstance(value, int):
        return value if value >= 0 else None
    if isinstance(value, (tuple, list)):
        return parse_track_number(value[0]) if value else None
    try:
        cleaned = str(value).strip()
    except Exception:
        return None
    if "/" in cleaned:
        cleaned = cleaned.split("/", 1)[0].strip()
    if cleaned.isdigit():
        return int(cleaned)
    return None


def _clean_duration(value: object) -> float:
    try:
        seconds = float(value or 0.0)
    except (TypeError, ValueError):
        return 0.0
    if not math.isfinite(seconds) or seconds < 0:
        return 0.0
    return seconds


def _display_text(value: str) -> str:
    # Undecodable filename bytes arrive as surrogate escapes; JSON can't carry them.
    return value.encode("utf-8", "surrogateescape").decode("utf-8", "replace")
