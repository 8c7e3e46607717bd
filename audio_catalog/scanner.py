from __future__ import annotations

import fnmatch
import logging
import os
import time
from dataclasses import dataclass, field
from pathlib import Path
from typing import TYPE_CHECKING, Iterable, Optional

from .config import LibrarySettings
from .models import Record, TagReadError
from .tagging import TagProvider, TagReader

if TYPE_CHECKING:
    from .catalog import CatalogStore

logger = logging.getLogger(__name__)


@dataclass
class ScanReport:
    parsed: int = 0
    skipped_known: int = 0
    failed: int = 0
    roots_scanned: list[Path] = field(default_factory=list)
    failed_roots: dict[Path, str] = field(default_factory=dict)
    failed_directories: dict[Path, str] = field(default_factory=dict)
    elapsed: float = 0.0

    @property
    def ok(self) -> bool:
        return not self.failed_roots


class LibraryScanner:
    """Walks library roots and merges parsed files into a CatalogStore.

    Paths already present in the store are not parsed again unless the root is
    scanned with ``force=True``; tags can change without the path changing, so
    forcing is the only way to pick up edited files under a known path.
    """

    def __init__(self, settings: LibrarySettings, reader: TagProvider | None = None) -> None:
        self.settings = settings
        self.reader = reader or TagReader()
        self._exts = {ext.lower() for ext in self.settings.include_extensions}

    def scan(
        self,
        store: "CatalogStore",
        targets: Optional[Iterable[tuple[Path, bool]]] = None,
    ) -> ScanReport:
        pairs = list(self.settings.scan_targets() if targets is None else targets)
        report = ScanReport()
        start = time.perf_counter()
        with store.exclusive():
            known_paths = store.known_paths()
            for root, force in pairs:
                self._scan_root(Path(root), force, store, known_paths, report)
        report.elapsed = time.perf_counter() - start
        logger.info(
            "Scanned %d root(s) in %.2fs: %d parsed, %d unchanged, %d unreadable",
            len(report.roots_scanned),
            report.elapsed,
            report.parsed,
            report.skipped_known,
            report.failed,
        )
        return report

    def scan_file(self, store: "CatalogStore", path: Path, *, force: bool = True) -> Optional[Record]:
        if not self._should_include(path):
            return None
        report = ScanReport()
        with store.exclusive():
            return self._scan_path(path, force, store, store.known_paths(), report)

    def _scan_root(
        self,
        root: Path,
        force: bool,
        store: "CatalogStore",
        known_paths: set[str],
        report: ScanReport,
    ) -> None:
        logger.debug("Scanning %s (force=%s)", root, force)
        visited = {os.path.realpath(root)}
        try:
            self._walk(root, force, store, known_paths, report, visited)
        except OSError as exc:
            logger.warning("Unable to scan library root %s: %s", root, exc)
            report.failed_roots[root] = str(exc)
            return
        report.roots_scanned.append(root)

    def _walk(
        self,
        directory: Path,
        force: bool,
        store: "CatalogStore",
        known_paths: set[str],
        report: ScanReport,
        visited: set[str],
    ) -> None:
        for entry in self._list_directory(directory):
            path = Path(entry.path)
            if self._is_dir(entry):
                real = os.path.realpath(path)
                if real in visited:
                    continue
                visited.add(real)
                try:
                    self._walk(path, force, store, known_paths, report, visited)
                except OSError as exc:
                    logger.warning("Skipping unreadable directory %s: %s", path, exc)
                    report.failed_directories[path] = str(exc)
                continue
            if not self._should_include(path):
                continue
            self._scan_path(path, force, store, known_paths, report)

    def _scan_path(
        self,
        path: Path,
        force: bool,
        store: "CatalogStore",
        known_paths: set[str],
        report: ScanReport,
    ) -> Optional[Record]:
        key = str(path)
        if not force and key in known_paths:
            report.skipped_known += 1
            return None
        try:
            tags = self.reader.read(path)
        except (TagReadError, OSError) as exc:
            logger.debug("Skipping %s: %s", path, exc)
            report.failed += 1
            return None
        try:
            record = Record.build(path, tags)
        except ValueError as exc:
            logger.warning("Skipping %r: %s", key, exc)
            report.failed += 1
            return None
        evicted = store.put(record)
        if evicted is not None:
            logger.debug("Replaced %s for %s", evicted.token, path)
        known_paths.add(key)
        report.parsed += 1
        return record

    @staticmethod
    def _list_directory(directory: Path) -> list[os.DirEntry]:
        with os.scandir(directory) as it:
            return sorted(it, key=lambda entry: entry.name)

    @staticmethod
    def _is_dir(entry: os.DirEntry) -> bool:
        try:
            return entry.is_dir()
        except OSError:
            return False

    def _should_include(self, path: Path) -> bool:
        if path.suffix.lower() not in self._exts:
            return False
        rel = str(path)
        for pattern in self.settings.exclude_patterns:
            if fnmatch.fnmatch(rel, pattern):
                return False
        return True
