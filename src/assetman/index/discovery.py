"""Deterministic directory walking, hashing and compiled-asset naming."""

from __future__ import annotations

import hashlib
import os
import posixpath
import re
from pathlib import Path

from assetman.config import NamingConfig
from assetman.index.models import AssetRecord, IndexSnapshot

_HASH_CHUNK_BYTES = 1024 * 128


def walk_directory(root: Path) -> list[tuple[str, int]]:
    """List every regular file below root as (relative POSIX path, mtime in ms).

    Raises ``OSError`` when a directory cannot be read.
    """
    files: list[tuple[str, int]] = []
    stack: list[Path] = [root]
    while stack:
        current = stack.pop()
        with os.scandir(current) as entries:
            ordered_entries = sorted(entries, key=lambda item: item.name)
        for entry in reversed(ordered_entries):
            full_path = Path(entry.path)
            if entry.is_dir():
                stack.append(full_path)
                continue
            if not entry.is_file():
                continue
            stat = entry.stat()
            relative = full_path.relative_to(root).as_posix()
            files.append((relative, stat.st_mtime_ns // 1_000_000))
    files.sort(key=lambda item: item[0])
    return files


def compiled_asset_pattern(asset_prefix: str) -> re.Pattern[str]:
    """Pattern matching the basename of a previously compiled output."""
    return re.compile(rf"^{re.escape(asset_prefix)}-[0-9a-f]+-")


def compiled_asset_filename(asset_prefix: str, filename: str, digest: str) -> str:
    """Build ``{prefix}-{hash}-{filename}``."""
    return f"{asset_prefix}-{digest}-{filename}"


def canonical_path(relative_path: str, pattern: re.Pattern[str]) -> str:
    """Strip the prefix-and-hash segment from a compiled asset path."""
    dirname, basename = posixpath.split(relative_path)
    stripped = pattern.sub("", basename, count=1)
    return posixpath.join(dirname, stripped) if dirname else stripped


def is_manifest_file(relative_path: str, manifest_name: str) -> bool:
    """Return True for the manifest or its in-progress temporary copy."""
    return relative_path in (manifest_name, f"{manifest_name}.tmp")


def build_asset_index(
    root: Path,
    naming: NamingConfig,
    excluded_prefix: str | None = None,
) -> IndexSnapshot:
    """Walk root and route each file to the asset map or the compiled registry."""
    pattern = compiled_asset_pattern(naming.asset_prefix)
    assets: dict[str, AssetRecord] = {}
    compiled: dict[str, list[str]] = {}
    for name, mtime in walk_directory(root):
        if excluded_prefix is not None and (
            name == excluded_prefix or name.startswith(f"{excluded_prefix}/")
        ):
            continue
        if pattern.match(posixpath.basename(name)):
            canonical = canonical_path(name, pattern).lower()
            compiled.setdefault(canonical, []).append(name)
            continue
        if is_manifest_file(name, naming.manifest):
            continue
        record = AssetRecord(name=name, mtime=mtime)
        assets[record.key] = record
    return IndexSnapshot(assets=assets, compiled=compiled)


def build_asset_record(root: Path, relative_path: str, algorithm: str) -> AssetRecord:
    """Stat and hash one file into a fresh record."""
    full_path = root / relative_path
    stat = full_path.stat()
    return AssetRecord(
        name=relative_path,
        mtime=stat.st_mtime_ns // 1_000_000,
        hash=hash_file(full_path, algorithm),
    )


def hash_file(path: Path, algorithm: str) -> str:
    """Compute a hex digest of the file contents in chunked reads."""
    digest = hashlib.new(algorithm)
    with path.open("rb") as handle:
        while True:
            chunk = handle.read(_HASH_CHUNK_BYTES)
            if not chunk:
                break
            digest.update(chunk)
    return digest.hexdigest()


def hash_string(value: str, algorithm: str) -> str:
    """Compute a hex digest of a UTF-8 string."""
    return hashlib.new(algorithm, value.encode("utf-8")).hexdigest()
