from __future__ import annotations

from pathlib import Path
from typing import List, Optional

import yaml
from pydantic import BaseModel, Field, field_validator


class LibrarySettings(BaseModel):
    roots: List[Path] = Field(default_factory=list)
    rescan_roots: List[Path] = Field(default_factory=list)
    include_extensions: List[str] = Field(default_factory=lambda: [".mp3", ".flac", ".m4a", ".ogg"])
    exclude_patterns: List[str] = Field(default_factory=list)

    @field_validator("roots", "rescan_roots", mode="before")
    @classmethod
    def _expand_roots(cls, values: Optional[List[str | Path]]) -> List[Path]:
        return [Path(v).expanduser().resolve() for v in values or []]

    @field_validator("include_extensions", mode="after")
    @classmethod
    def _normalize_exts(cls, values: List[str]) -> List[str]:
        return [ext.lower() if ext.startswith(".") else f".{ext.lower()}" for ext in values]

    def scan_targets(self) -> list[tuple[Path, bool]]:
        """(root, force_rescan) pairs; a root listed in both is force-rescanned."""
        forced = set(self.rescan_roots)
        targets = [(root, False) for root in self.roots if root not in forced]
        targets.extend((root, True) for root in self.rescan_roots)
        return targets


class SnapshotSettings(BaseModel):
    enabled: bool = True
    path: Path = Path("./library.json")

    @field_validator("path", mode="before")
    @classmethod
    def _expand_path(cls, value: str | Path) -> Path:
        return Path(value).expanduser().resolve()


class ServerSettings(BaseModel):
    host: str = "127.0.0.1"
    port: int = Field(default=8001, ge=1, le=65535)
    cors_origins: List[str] = Field(default_factory=lambda: ["*"])
    watch: bool = False


class Settings(BaseModel):
    library: LibrarySettings = LibrarySettings()
    snapshot: SnapshotSettings = SnapshotSettings()
    server: ServerSettings = ServerSettings()

    @classmethod
    def load(cls, path: Path) -> "Settings":
        with path.open("r", encoding="utf-8") as fh:
            raw = yaml.safe_load(fh)
        return cls.model_validate(raw or {})


def find_config(explicit_path: Optional[Path]) -> Optional[Path]:
    if explicit_path:
        if not explicit_path.exists():
            raise FileNotFoundError(f"Config file not found: {explicit_path}")
        return explicit_path
    cwd = Path.cwd()
    for candidate in (cwd / "config.yaml", cwd / "config.yml"):
        if candidate.exists():
            return candidate
    return None
