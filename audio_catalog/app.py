from __future__ import annotations

import logging
from dataclasses import dataclass
from pathlib import Path
from typing import Iterable, Optional

from .catalog import CatalogStore
from .config import Settings
from .models import Record
from .persistence import SnapshotFile
from .scanner import LibraryScanner, ScanReport
from .tagging import TagProvider

logger = logging.getLogger(__name__)


@dataclass
class CatalogApp:
    settings: Settings
    store: CatalogStore
    scanner: LibraryScanner
    snapshot: SnapshotFile | None = None

    @classmethod
    def create(cls, settings: Settings, reader: TagProvider | None = None) -> "CatalogApp":
        snapshot = SnapshotFile(settings.snapshot.path) if settings.snapshot.enabled else None
        return cls(
            settings=settings,
            store=CatalogStore(),
            scanner=LibraryScanner(settings.library, reader=reader),
            snapshot=snapshot,
        )

    def startup(self) -> Optional[ScanReport]:
        """Load the snapshot, scan the configured roots, then rewrite the snapshot."""
        self.load()
        targets = self.settings.library.scan_targets()
        if not targets:
            logger.info("No library roots configured; serving %d records from snapshot", len(self.store))
            return None
        report = self.scan(targets)
        self.save()
        return report

    def load(self) -> int:
        if self.snapshot is None:
            return 0
        return self.store.merge(self.snapshot.load())

    def scan(self, targets: Optional[Iterable[tuple[Path, bool]]] = None) -> ScanReport:
        return self.scanner.scan(self.store, targets)

    def save(self) -> bool:
        if self.snapshot is None:
            return False
        return self.snapshot.save(self.store.records())

    def rescan_file(self, path: Path) -> Optional[Record]:
        record = self.scanner.scan_file(self.store, path, force=True)
        if record is not None:
            logger.info("Updated %s", path)
            self.save()
        return record

    def forget_file(self, path: Path) -> Optional[Record]:
        record = self.store.discard_path(path)
        if record is not None:
            logger.info("Removed %s", path)
            self.save()
        return record
