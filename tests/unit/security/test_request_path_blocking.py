from __future__ import annotations

import os
from pathlib import Path

import pytest

from assetman.security import PathBlockedError, resolve_asset_path


def test_plain_request_path_resolves_under_asset_dir(tmp_path: Path) -> None:
    resolved = resolve_asset_path(tmp_path, "css/./site.css")

    assert resolved == tmp_path.resolve() / "css" / "site.css"


def test_backslashes_are_treated_as_separators(tmp_path: Path) -> None:
    assert resolve_asset_path(tmp_path, "css\\site.css") == tmp_path.resolve() / "css" / "site.css"


def test_traversal_is_blocked(tmp_path: Path) -> None:
    with pytest.raises(PathBlockedError) as error:
        resolve_asset_path(tmp_path, "js/../../secret.txt")

    assert error.value.reason == "Path traversal is blocked."
    assert error.value.hint


def test_empty_path_is_blocked(tmp_path: Path) -> None:
    with pytest.raises(PathBlockedError, match="Path is empty."):
        resolve_asset_path(tmp_path, "/./")


def test_drive_qualified_path_is_blocked(tmp_path: Path) -> None:
    with pytest.raises(PathBlockedError, match="Drive-qualified"):
        resolve_asset_path(tmp_path, "C:/Windows/win.ini")


@pytest.mark.skipif(not hasattr(os, "symlink"), reason="symlinks unavailable")
def test_symlink_escape_is_blocked(tmp_path: Path) -> None:
    root = tmp_path / "assets"
    outside = tmp_path / "outside"
    root.mkdir()
    outside.mkdir()
    (outside / "secret.txt").write_text("secret", encoding="utf-8")
    try:
        (root / "link").symlink_to(outside, target_is_directory=True)
    except OSError:
        pytest.skip("symlink creation not permitted")

    with pytest.raises(PathBlockedError, match="escapes asset_dir"):
        resolve_asset_path(root, "link/secret.txt")
