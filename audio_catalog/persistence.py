"""JSON-lines snapshot of the catalog.

The snapshot is a cache rather than a source of truth: every line stands on
its own, lines that fail to parse are dropped, and entries whose file has
disappeared are pruned on load.
"""

from __future__ import annotations

import logging
from pathlib import Path
from typing import Iterable, Iterator, Optional

from pydantic import BaseModel, ConfigDict, Field

from .fs_utils import path_exists, write_lines_atomic
from .models import Record, SnapshotError, TrackTags

logger = logging.getLogger(__name__)


class SnapshotEntry(BaseModel):
    model_config = ConfigDict(extra="ignore")

    id: int = Field(ge=0, lt=1 << 64)
    path: str = Field(min_length=1)
    title: str = ""
    artist: str = ""
    album: str = ""
    year: int = Field(default=0, ge=0)
    comment: str = ""
    duration: float = Field(default=0.0, ge=0)
    track: Optional[int] = None
    title_lower: str = ""
    artist_lower: str = ""
    album_lower: str = ""
    stem_lower: str = ""

    @classmethod
    def from_record(cls, record: Record) -> "SnapshotEntry":
        return cls.model_validate(record.to_snapshot())

    def to_record(self) -> Record:
        record = Record.build(
            self.path,
            TrackTags(
                title=self.title,
                artist=self.artist,
                album=self.album,
                year=self.year,
                comment=self.comment,
                duration=self.duration,
                track=self.track,
            ),
        )
        derived = (record.title_lower, record.artist_lower, record.album_lower, record.stem_lower)
        stored = (self.title_lower, self.artist_lower, self.album_lower, self.stem_lower)
        if derived != stored:
            raise SnapshotError(f"search keys do not match display fields for {self.path}")
        if record.id != self.id:
            logger.debug("Identity of %s changed from %s to %s", self.path, self.id, record.id)
        return record


class SnapshotFile:
    def __init__(self, path: Path) -> None:
        self.path = path

    def load(self) -> list[Record]:
        if not self.path.exists():
            logger.info("No library snapshot at %s; starting empty", self.path)
            return []
        try:
            with self.path.open("r", encoding="utf-8", errors="replace") as fh:
                records, dropped, stale = self._parse(fh)
        except OSError as exc:
            logger.warning("Unable to read library snapshot %s: %s", self.path, exc)
            return []
        logger.info(
            "Loaded %d records from %s (%d unreadable, %d missing on disk)",
            len(records),
            self.path,
            dropped,
            stale,
        )
        return records

    def save(self, records: Iterable[Record]) -> bool:
        try:
            count = write_lines_atomic(self.path, self._serialize(records))
        except OSError as exc:
            logger.error("Failed to write library snapshot %s: %s", self.path, exc)
            return False
        logger.info("Saved %d records to %s", count, self.path)
        return True

    def _parse(self, lines: Iterable[str]) -> tuple[list[Record], int, int]:
        records: list[Record] = []
        dropped = stale = 0
        for lineno, line in enumerate(lines, 1):
            line = line.strip()
            if not line:
                continue
            try:
                record = SnapshotEntry.model_validate_json(line).to_record()
            except (SnapshotError, ValueError) as exc:
                logger.debug("Dropping snapshot line %d: %s", lineno, exc)
                dropped += 1
                continue
            if not self._still_exists(record):
                stale += 1
                continue
            records.append(record)
        return records, dropped, stale

    @staticmethod
    def _still_exists(record: Record) -> bool:
        try:
            return bool(path_exists(Path(record.path)))
        except OSError as exc:
            logger.debug("Dropping %s: %s", record.path, exc)
            return False

    @staticmethod
    def _serialize(records: Iterable[Record]) -> Iterator[str]:
        for record in records:
            try:
                line = SnapshotEntry.from_record(record).model_dump_json()
                line.encode("utf-8")
            except ValueError as exc:
                logger.warning("Not saving %r: %s", record.path, exc)
                continue
            yield line
