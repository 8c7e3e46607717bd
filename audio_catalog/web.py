"""FastAPI transport exposing catalog queries and file delivery."""

from __future__ import annotations

import logging
from pathlib import Path
from typing import Any, Optional

from fastapi import FastAPI, HTTPException, Query
from fastapi.middleware.cors import CORSMiddleware
from fastapi.responses import FileResponse

from . import __version__
from .app import CatalogApp
from .query import MAX_LIMIT, SearchTerms, SortKey

LOGGER = logging.getLogger(__name__)

CONTENT_TYPES = {
    ".mp3": "audio/mpeg",
    ".flac": "audio/flac",
    ".m4a": "audio/mp4",
    ".ogg": "audio/ogg",
}


def content_type_for(path: Path) -> str:
    return CONTENT_TYPES.get(path.suffix.lower(), "application/octet-stream")


def _blank_to_none(value: Optional[str]) -> Optional[str]:
    if value is None or not value.strip():
        return None
    return value


def create_app(catalog: CatalogApp) -> FastAPI:
    app = FastAPI(title="audio-catalog", version=__version__)
    app.add_middleware(
        CORSMiddleware,
        allow_origins=catalog.settings.server.cors_origins,
        allow_methods=["GET"],
        allow_headers=["*"],
    )
    app.state.catalog = catalog

    @app.get("/")
    def library() -> dict[str, Any]:
        with catalog.store.exclusive():
            count = len(catalog.store)
            results = catalog.store.query(SearchTerms())
        return {"count": count, **results.to_record()}

    @app.get("/search")
    def search(
        artist: Optional[str] = None,
        album: Optional[str] = None,
        term: Optional[str] = None,
        limit: Optional[int] = Query(default=None, ge=1, le=MAX_LIMIT),
        sort_by: Optional[SortKey] = None,
        after: Optional[str] = None,
    ) -> dict[str, Any]:
        terms = SearchTerms(
            artist=_blank_to_none(artist),
            album=_blank_to_none(album),
            term=_blank_to_none(term),
            limit=limit,
            sort_by=sort_by,
            after=_blank_to_none(after),
        )
        return catalog.store.query(terms).to_record()

    @app.get("/listen")
    def listen(id: str) -> FileResponse:
        path = catalog.store.resolve_path(id)
        if path is None:
            raise HTTPException(status_code=404, detail=f"id={id} not found")
        if not path.is_file():
            LOGGER.error("Error with file %s: missing on disk", path)
            raise HTTPException(status_code=404, detail=f"Unable to load file: {id}")
        return FileResponse(path, media_type=content_type_for(path))

    return app
