"""On-disk manifest of asset hashes keyed by modification time."""

from __future__ import annotations

import json
from dataclasses import asdict, dataclass, replace
from pathlib import Path

from assetman.index.discovery import hash_file
from assetman.index.models import AssetRecord


@dataclass(slots=True, frozen=True)
class HashRefresh:
    """Outcome of one hashing pass."""

    assets: dict[str, AssetRecord]
    reused: int
    hashed: int
    failures: tuple[tuple[str, str], ...] = ()

    @property
    def outdated(self) -> bool:
        return self.hashed > 0


class HashCache:
    """Persists ``{key: {name, mtime, hash}}`` so unchanged files are never rehashed."""

    def __init__(self, asset_dir: Path, manifest_name: str, algorithm: str) -> None:
        self._asset_dir = asset_dir
        self._manifest_path = asset_dir / manifest_name
        self._algorithm = algorithm

    @property
    def path(self) -> Path:
        """Return on-disk manifest path."""
        return self._manifest_path

    def load(self) -> dict[str, AssetRecord]:
        """Read the manifest; absent or malformed content yields an empty mapping."""
        try:
            with self._manifest_path.open("r", encoding="utf-8") as handle:
                payload = json.load(handle)
        except (OSError, ValueError):
            return {}
        if not isinstance(payload, dict):
            return {}
        output: dict[str, AssetRecord] = {}
        for key, obj in payload.items():
            if not isinstance(obj, dict):
                continue
            name = obj.get("name")
            mtime = obj.get("mtime")
            digest = obj.get("hash")
            if not isinstance(name, str):
                continue
            if isinstance(mtime, bool) or not isinstance(mtime, int):
                continue
            if not isinstance(digest, str):
                continue
            output[key] = AssetRecord(name=name, mtime=mtime, hash=digest)
        return output

    def refresh(self, assets: dict[str, AssetRecord]) -> HashRefresh:
        """Attach hashes to every record, reusing manifest entries with equal mtime.

        Files that cannot be read are dropped from the result and listed in
        ``failures`` as (name, reason).
        """
        previous = self.load()
        output: dict[str, AssetRecord] = {}
        reused = 0
        hashed = 0
        failures: list[tuple[str, str]] = []
        for key, record in assets.items():
            cached = previous.get(key)
            if cached is not None and cached.mtime == record.mtime:
                output[key] = replace(record, hash=cached.hash)
                reused += 1
                continue
            try:
                digest = hash_file(self._asset_dir / record.name, self._algorithm)
            except OSError as error:
                failures.append((record.name, str(error)))
                continue
            output[key] = replace(record, hash=digest)
            hashed += 1
        return HashRefresh(
            assets=output, reused=reused, hashed=hashed, failures=tuple(failures)
        )

    def write(self, assets: dict[str, AssetRecord]) -> None:
        """Atomically persist the full asset map. Raises ``OSError`` on failure."""
        payload = {key: asdict(record) for key, record in sorted(assets.items())}
        tmp = self._manifest_path.with_name(self._manifest_path.name + ".tmp")
        with tmp.open("w", encoding="utf-8") as handle:
            json.dump(payload, handle, sort_keys=True)
            handle.write("\n")
        tmp.replace(self._manifest_path)
