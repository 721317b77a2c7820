from __future__ import annotations

import os
from pathlib import Path

import pytest

from assetman.config import NamingConfig
from assetman.index import build_asset_index, canonical_path, compiled_asset_pattern, walk_directory

NAMING = NamingConfig(
    asset_prefix="asset", hash_algorithm="md5", hash_length=32, manifest=".asset-manifest"
)


def _touch(root: Path, name: str, text: str = "x") -> None:
    path = root / name
    path.parent.mkdir(parents=True, exist_ok=True)
    path.write_text(text, encoding="utf-8")


def test_walk_directory_lists_files_in_sorted_order_with_ms_mtime(tmp_path: Path) -> None:
    _touch(tmp_path, "b.js")
    _touch(tmp_path, "a/z.css")
    _touch(tmp_path, "a/b/c.txt")
    os.utime(tmp_path / "b.js", ns=(1_700_000_000_123_456_789, 1_700_000_000_123_456_789))

    listed = walk_directory(tmp_path)

    assert [name for name, _ in listed] == ["a/b/c.txt", "a/z.css", "b.js"]
    assert dict(listed)["b.js"] == 1_700_000_000_123


def test_walk_directory_raises_for_missing_root(tmp_path: Path) -> None:
    with pytest.raises(OSError):
        walk_directory(tmp_path / "missing")


def test_index_routes_compiled_outputs_and_skips_manifest(tmp_path: Path) -> None:
    _touch(tmp_path, "App.js")
    _touch(tmp_path, "asset-0a1b2c-app.js")
    _touch(tmp_path, "js/asset-ffff-Vendor.js")
    _touch(tmp_path, "js/asset-0000-vendor.js")
    _touch(tmp_path, ".asset-manifest", "{}")
    _touch(tmp_path, ".asset-manifest.tmp", "{}")

    snapshot = build_asset_index(tmp_path, NAMING)

    assert list(snapshot.assets) == ["app.js"]
    assert snapshot.assets["app.js"].name == "App.js"
    assert snapshot.assets["app.js"].hash is None
    assert snapshot.compiled == {
        "app.js": ["asset-0a1b2c-app.js"],
        "js/vendor.js": ["js/asset-0000-vendor.js", "js/asset-ffff-Vendor.js"],
    }


def test_index_excludes_data_dir_prefix(tmp_path: Path) -> None:
    _touch(tmp_path, "site.css")
    _touch(tmp_path, ".assetman/events.jsonl")

    snapshot = build_asset_index(tmp_path, NAMING, excluded_prefix=".assetman")

    assert list(snapshot.assets) == ["site.css"]


def test_non_hex_fingerprint_is_an_ordinary_asset(tmp_path: Path) -> None:
    _touch(tmp_path, "asset-xyz-app.js")

    snapshot = build_asset_index(tmp_path, NAMING)

    assert "asset-xyz-app.js" in snapshot.assets
    assert snapshot.compiled == {}


def test_canonical_path_strips_prefix_and_hash_only() -> None:
    pattern = compiled_asset_pattern("asset")

    assert canonical_path("css/asset-abc123-site-theme.css", pattern) == "css/site-theme.css"
    assert canonical_path("asset-abc123-app.js", pattern) == "app.js"
