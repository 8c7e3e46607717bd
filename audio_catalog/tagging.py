from __future__ import annotations

import math
import re
from pathlib import Path
from typing import Optional, Protocol

from mutagen import MutagenError
from mutagen.flac import FLAC
from mutagen.id3 import ID3
from mutagen.mp3 import MP3
from mutagen.mp4 import MP4
from mutagen.oggvorbis import OggVorbis

from .models import TagReadError, TrackTags, parse_track_number


class TagProvider(Protocol):
    def read(self, path: Path) -> TrackTags: ...


class TagReader:
    """Reads catalog tags from the most common tagging formats."""

    SUPPORTED_EXTS = {".mp3", ".flac", ".m4a", ".ogg"}

    def read(self, path: Path) -> TrackTags:
        handlers = {
            ".mp3": self._read_mp3,
            ".flac": self._read_flac,
            ".m4a": self._read_mp4,
            ".ogg": self._read_ogg,
        }
        ext = path.suffix.lower()
        handler = handlers.get(ext)
        if not handler:
            raise TagReadError(f"Unsupported extension {ext or '(none)'}: {path}")
        try:
            return handler(path)
        except TagReadError:
            raise
        except (MutagenError, OSError, ValueError) as exc:
            raise TagReadError(f"Can't read metadata from {path}: {exc}") from exc

    def _read_mp3(self, path: Path) -> TrackTags:
        audio = MP3(path)
        tags = audio.tags
        if not isinstance(tags, ID3) or not len(tags):
            raise TagReadError(f"No ID3 tags in {path}")
        return TrackTags(
            title=self._id3_text(tags, "TIT2") or "",
            artist=self._id3_text(tags, "TPE1") or "",
            album=self._id3_text(tags, "TALB") or "",
            year=parse_year(self._id3_text(tags, "TDRC") or self._id3_text(tags, "TYER")) or 0,
            comment=self._id3_text(tags, "COMM") or "",
            duration=self._length(audio),
            track=parse_track_number(self._id3_text(tags, "TRCK")),
        )

    def _read_flac(self, path: Path) -> TrackTags:
        audio = FLAC(path)
        if not audio.tags:
            raise TagReadError(f"No Vorbis comments in {path}")
        return self._vorbis_tags(audio)

    def _read_ogg(self, path: Path) -> TrackTags:
        audio = OggVorbis(path)
        if not audio.tags:
            raise TagReadError(f"No Vorbis comments in {path}")
        return self._vorbis_tags(audio)

    def _read_mp4(self, path: Path) -> TrackTags:
        audio = MP4(path)
        if not audio.tags:
            raise TagReadError(f"No MP4 tags in {path}")
        track_number = None
        track_info = audio.get("trkn")
        if track_info and isinstance(track_info, list):
            track_number = parse_track_number(track_info[0])
        return TrackTags(
            title=self._mp4_text(audio, "\xa9nam") or "",
            artist=self._mp4_text(audio, "\xa9ART") or "",
            album=self._mp4_text(audio, "\xa9alb") or "",
            year=parse_year(self._mp4_text(audio, "\xa9day")) or 0,
            comment=self._mp4_text(audio, "\xa9cmt") or "",
            duration=self._length(audio),
            track=track_number,
        )

    def _vorbis_tags(self, audio: FLAC | OggVorbis) -> TrackTags:
        def first(*keys: str) -> Optional[str]:
            for key in keys:
                values = audio.get(key)
                if values:
                    return str(values[0])
            return None

        return TrackTags(
            title=first("TITLE") or "",
            artist=first("ARTIST") or "",
            album=first("ALBUM") or "",
            year=parse_year(first("DATE", "YEAR")) or 0,
            comment=first("COMMENT", "DESCRIPTION") or "",
            duration=self._length(audio),
            track=parse_track_number(first("TRACKNUMBER")),
        )

    def _id3_text(self, tags: ID3, frame_id: str) -> Optional[str]:
        frame = tags.getall(frame_id)
        if not frame:
            return None
        return str(frame[0].text[0]) if frame[0].text else None

    def _mp4_text(self, audio: MP4, key: str) -> Optional[str]:
        value = audio.get(key)
        if not value:
            return None
        first = value[0]
        if isinstance(first, bytes):
            return first.decode("utf-8", errors="replace")
        return str(first)

    @staticmethod
    def _length(audio) -> float:
        info = getattr(audio, "info", None)
        length = float(getattr(info, "length", None) or 0.0)
        if not math.isfinite(length):
            return 0.0
        return max(length, 0.0)


def parse_year(value: Optional[str]) -> Optional[int]:
    if not value:
        return None
    match = re.search(r"\d{4}", str(value))
    if not match:
        return None
    return int(match.group(0))
