from __future__ import annotations

import argparse
import json
import logging
from pathlib import Path
from typing import Optional, Sequence

from pydantic import ValidationError

from .app import CatalogApp
from .config import LibrarySettings, Settings, find_config
from .query import MAX_LIMIT, SearchTerms, SortKey

LOG_FORMAT = "%(levelname).1s | %(name)s | %(message)s"

C_RESET = "\033[0m"
LEVEL_COLORS = {
    logging.DEBUG: "\033[36m",  # Cyan
    logging.INFO: "\033[37m",  # Light gray
    logging.WARNING: "\033[33m",  # Yellow
    logging.ERROR: "\033[31m",  # Red
    logging.CRITICAL: "\033[35m",  # Magenta
}


class ShortPathFormatter(logging.Formatter):
    def __init__(self, fmt: str, roots: list[Path]) -> None:
        super().__init__(fmt)
        self.roots = [str(root) for root in roots if root]

    def _shorten(self, message: str) -> str:
        for root in self.roots:
            if not message:
                break
            message = message.replace(f"{root}/", "")
        return message

    def format(self, record: logging.LogRecord) -> str:
        message = super().format(record)
        return self._shorten(message)


class ColorFormatter(ShortPathFormatter):
    def format(self, record: logging.LogRecord) -> str:
        message = super().format(record)
        color = LEVEL_COLORS.get(record.levelno)
        if not color:
            return message
        return f"{color}{message}{C_RESET}"


class WarningBufferHandler(logging.Handler):
    def __init__(self) -> None:
        super().__init__(level=logging.WARNING)
        self.records: list[str] = []

    def emit(self, record: logging.LogRecord) -> None:
        try:
            msg = self.format(record)
        except Exception:  # pragma: no cover
            msg = record.getMessage()
        self.records.append(msg)


def configure_logging(level_name: str, roots: list[Path]) -> WarningBufferHandler:
    log_level = getattr(logging, level_name.upper(), logging.INFO)
    root_logger = logging.getLogger()
    root_logger.handlers.clear()
    root_logger.setLevel(log_level)

    color_handler = logging.StreamHandler()
    color_handler.setFormatter(ColorFormatter(LOG_FORMAT, roots))
    root_logger.addHandler(color_handler)

    warn_buffer = WarningBufferHandler()
    warn_buffer.setFormatter(ShortPathFormatter(LOG_FORMAT, roots))
    root_logger.addHandler(warn_buffer)

    logging.getLogger("watchdog").setLevel(logging.WARNING)
    return warn_buffer


def build_parser() -> argparse.ArgumentParser:
    parser = argparse.ArgumentParser(description="Catalog and search audio files")
    parser.add_argument("--config", type=Path, help="Path to config.yaml")
    parser.add_argument("--log-level", default="INFO", help="Python logging level")
    parser.add_argument(
        "--dir",
        dest="dirs",
        action="append",
        type=Path,
        default=[],
        help="Directory to scan; files already in the snapshot are not re-parsed (repeatable)",
    )
    parser.add_argument(
        "--rescan-dir",
        dest="rescan_dirs",
        action="append",
        type=Path,
        default=[],
        help="Directory to scan, re-reading tags of every file (repeatable)",
    )
    parser.add_argument("--library", type=Path, help="Snapshot file to load and rewrite")

    subparsers = parser.add_subparsers(dest="command", required=True)
    subparsers.add_parser("scan", help="Scan directories and rewrite the snapshot")
    serve_parser = subparsers.add_parser("serve", help="Scan, then serve queries over HTTP")
    serve_parser.add_argument("--host", default=None, help="Interface to bind")
    serve_parser.add_argument("--port", type=int, default=None, help="Port to bind")
    serve_parser.add_argument(
        "--watch",
        action="store_true",
        help="Refresh the catalog when audio files under the roots change",
    )
    search_parser = subparsers.add_parser("search", help="Query the catalog and print JSON")
    search_parser.add_argument("--artist", default=None)
    search_parser.add_argument("--album", default=None)
    search_parser.add_argument("--term", default=None, help="Substring of title, artist, album or filename")
    search_parser.add_argument("--limit", type=int, default=None, help=f"Page size (1-{MAX_LIMIT})")
    search_parser.add_argument(
        "--sort-by",
        choices=[key.value for key in SortKey],
        default=None,
    )
    search_parser.add_argument("--after", default=None, help="Id of the last record of the previous page")
    return parser


def load_settings(args: argparse.Namespace) -> Settings:
    config_path = find_config(args.config)
    settings = Settings.load(config_path) if config_path else Settings()
    if args.dirs or args.rescan_dirs:
        library = settings.library.model_dump()
        library["roots"] = [*library["roots"], *args.dirs]
        library["rescan_roots"] = [*library["rescan_roots"], *args.rescan_dirs]
        settings.library = LibrarySettings.model_validate(library)
    if args.library:
        settings.snapshot = settings.snapshot.model_copy(
            update={"path": args.library.expanduser().resolve(), "enabled": True}
        )
    if getattr(args, "host", None):
        settings.server.host = args.host
    if getattr(args, "port", None):
        settings.server.port = args.port
    if getattr(args, "watch", False):
        settings.server.watch = True
    return settings


def main(argv: Optional[Sequence[str]] = None) -> None:
    parser = build_parser()
    args = parser.parse_args(argv)
    settings = load_settings(args)
    roots = [*settings.library.roots, *settings.library.rescan_roots]
    warn_buffer = configure_logging(args.log_level, roots)
    app = CatalogApp.create(settings)

    try:
        match args.command:
            case "scan":
                report = app.startup()
                if report is None:
                    parser.error("Nothing to scan: pass --dir/--rescan-dir or configure library.roots")
                print(
                    f"Catalog holds {len(app.store)} records "
                    f"({report.parsed} parsed, {report.skipped_known} unchanged, {report.failed} unreadable)"
                )
                if not report.ok:
                    raise SystemExit(1)
            case "serve":
                _serve(app)
            case "search":
                app.startup()
                try:
                    terms = SearchTerms(
                        artist=args.artist,
                        album=args.album,
                        term=args.term,
                        limit=args.limit,
                        sort_by=args.sort_by,
                        after=args.after,
                    )
                except ValidationError as exc:
                    parser.error(str(exc))
                print(json.dumps(app.store.query(terms).to_record(), indent=2, ensure_ascii=False))
            case _:
                parser.error("Unknown command")
    finally:
        if warn_buffer.records:
            print("\n\033[33mWarnings/Errors summary:\033[0m")
            for line in warn_buffer.records:
                print(f" - {line}")


def _serve(app: CatalogApp) -> None:
    import uvicorn

    from .web import create_app
    from .watchdog_handler import start_observer

    app.startup()
    server = app.settings.server
    observer = None
    if server.watch:
        observer = start_observer(app, [*app.settings.library.roots, *app.settings.library.rescan_roots])
    try:
        uvicorn.run(create_app(app), host=server.host, port=server.port, log_level="info")
    finally:
        if observer is not None:
            observer.stop()
            observer.join()
