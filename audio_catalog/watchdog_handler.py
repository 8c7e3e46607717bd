from __future__ import annotations

import logging
from pathlib import Path
from typing import TYPE_CHECKING, Iterable

from watchdog.events import FileSystemEvent, FileSystemEventHandler
from watchdog.observers import Observer

if TYPE_CHECKING:
    from .app import CatalogApp

logger = logging.getLogger(__name__)


class WatchHandler(FileSystemEventHandler):
    """Keeps the catalog in step with audio files that change while serving."""

    def __init__(self, catalog: "CatalogApp", exts: Iterable[str]) -> None:
        super().__init__()
        self.catalog = catalog
        self.exts = {ext.lower() for ext in exts}

    def on_created(self, event: FileSystemEvent) -> None:
        self._maybe_refresh(event)

    def on_modified(self, event: FileSystemEvent) -> None:
        self._maybe_refresh(event)

    def on_deleted(self, event: FileSystemEvent) -> None:
        path = self._audio_path(event, event.src_path)
        if path is not None:
            self.catalog.forget_file(path)

    def on_moved(self, event: FileSystemEvent) -> None:
        source = self._audio_path(event, event.src_path)
        if source is not None:
            self.catalog.forget_file(source)
        target = self._audio_path(event, getattr(event, "dest_path", ""))
        if target is not None:
            self.catalog.rescan_file(target)

    def _maybe_refresh(self, event: FileSystemEvent) -> None:
        path = self._audio_path(event, event.src_path)
        if path is None:
            return
        logger.debug("File changed: %s", path)
        self.catalog.rescan_file(path)

    def _audio_path(self, event: FileSystemEvent, src: str | bytes) -> Path | None:
        if event.is_directory or not src:
            return None
        if isinstance(src, bytes):
            src = src.decode("utf-8", errors="replace")
        path = Path(src)
        if path.suffix.lower() not in self.exts:
            return None
        return path


def start_observer(catalog: "CatalogApp", roots: Iterable[Path]) -> Observer:
    handler = WatchHandler(catalog, catalog.settings.library.include_extensions)
    observer = Observer()
    for root in roots:
        if not root.is_dir():
            logger.warning("Not watching missing directory %s", root)
            continue
        observer.schedule(handler, str(root), recursive=True)
        logger.info("Watching %s for changes", root)
    observer.start()
    return observer
