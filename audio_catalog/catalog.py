from __future__ import annotations

from contextlib import contextmanager
from dataclasses import replace
from pathlib import Path
from threading import RLock
from typing import Iterable, Iterator, Optional

from .models import Record, parse_id_token
from .query import SearchResults, SearchTerms, run_query


class CatalogStore:
    """In-memory identity -> Record mapping guarded by a single lock.

    Scans hold the lock for their whole pass and every query holds it for its
    whole computation, so readers never observe a half-applied scan.
    """

    def __init__(self, records: Iterable[Record] = ()) -> None:
        self._lock = RLock()
        self._records: dict[int, Record] = {}
        self._by_path: dict[str, int] = {}
        for record in records:
            self._put(record)

    def __len__(self) -> int:
        with self._lock:
            return len(self._records)

    def __contains__(self, record_id: object) -> bool:
        with self._lock:
            return record_id in self._records

    @contextmanager
    def exclusive(self) -> Iterator["CatalogStore"]:
        with self._lock:
            yield self

    def get(self, record_id: int) -> Optional[Record]:
        with self._lock:
            return self._records.get(record_id)

    def resolve_path(self, token: object) -> Optional[Path]:
        record_id = parse_id_token(token)
        if record_id is None:
            return None
        with self._lock:
            record = self._records.get(record_id)
        return Path(record.path) if record else None

    def known_paths(self) -> set[str]:
        with self._lock:
            return {path for path, record_id in self._by_path.items() if record_id in self._records}

    def records(self) -> list[Record]:
        with self._lock:
            return list(self._records.values())

    def put(self, record: Record) -> Optional[Record]:
        """Insert or replace ``record``.

        Returns the Record it superseded for the same path, if any. That
        Record survives only if an identical file exists under another path.
        """
        with self._lock:
            return self._put(record)

    def discard_path(self, path: Path | str) -> Optional[Record]:
        with self._lock:
            return self._discard_path(str(path))

    def merge(self, records: Iterable[Record]) -> int:
        added = 0
        with self._lock:
            for record in records:
                if record.id in self._records:
                    self._by_path.setdefault(record.path, record.id)
                    continue
                self._put(record)
                added += 1
        return added

    def query(self, terms: SearchTerms) -> SearchResults:
        with self._lock:
            return run_query(self._records, terms)

    def _put(self, record: Record) -> Optional[Record]:
        evicted = None
        previous_id = self._by_path.get(record.path)
        if previous_id is not None and previous_id != record.id:
            previous = self._records.get(previous_id)
            if previous is not None and previous.path == record.path:
                evicted = self._drop(previous_id, record.path)
        self._records[record.id] = record
        self._by_path[record.path] = record.id
        return evicted

    def _discard_path(self, path: str) -> Optional[Record]:
        record_id = self._by_path.pop(path, None)
        if record_id is None:
            return None
        record = self._records.get(record_id)
        if record is None or record.path != path:
            return None
        return self._drop(record_id, path)

    def _drop(self, record_id: int, path: str) -> Record:
        record = self._records.pop(record_id)
        # Another file with identical content keeps the entry alive under its own path.
        for alias, alias_id in self._by_path.items():
            if alias_id == record_id and alias != path:
                self._records[record_id] = replace(record, path=alias)
                break
        return record
