"""Typed models for indexing state."""

from __future__ import annotations

from dataclasses import dataclass


@dataclass(slots=True, frozen=True)
class AssetRecord:
    """Represents a source file tracked by the index."""

    name: str
    mtime: int
    hash: str | None = None

    @property
    def key(self) -> str:
        """Lowercased identity key used by the asset map."""
        return self.name.lower()


@dataclass(slots=True, frozen=True)
class IndexSnapshot:
    """Result of one directory pass, split into sources and compiled outputs."""

    assets: dict[str, AssetRecord]
    compiled: dict[str, list[str]]
