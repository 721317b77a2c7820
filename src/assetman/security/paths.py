"""Map request paths onto files below the asset directory."""

from __future__ import annotations

import re
from pathlib import Path
from typing import Final

WINDOWS_DRIVE_PATTERN: Final[re.Pattern[str]] = re.compile(r"^[a-zA-Z]:")


class PathBlockedError(Exception):
    """Raised when a request path would leave the asset directory."""

    def __init__(self, reason: str, hint: str) -> None:
        super().__init__(reason)
        self.reason = reason
        self.hint = hint


def split_request_path(candidate: str) -> list[str]:
    """Split a request path into non-empty segments, dropping ``.`` entries."""
    normalized = candidate.replace("\\", "/")
    return [part for part in normalized.split("/") if part not in ("", ".")]


def resolve_asset_path(asset_dir: Path, candidate: str) -> Path:
    """Resolve a request path relative to asset_dir, refusing anything outside it."""
    root = asset_dir.resolve()
    parts = split_request_path(candidate)

    if not parts:
        raise PathBlockedError(
            reason="Path is empty.",
            hint="Request a file such as '/asset-0a1b2c-app.js'.",
        )
    if WINDOWS_DRIVE_PATTERN.match(parts[0]):
        raise PathBlockedError(
            reason="Drive-qualified paths are blocked.",
            hint="Request a path relative to the serve prefix.",
        )
    if any(part == ".." for part in parts):
        raise PathBlockedError(
            reason="Path traversal is blocked.",
            hint="Remove '..' segments from the request path.",
        )

    resolved = (root / Path(*parts)).resolve(strict=False)
    if not resolved.is_relative_to(root):
        raise PathBlockedError(
            reason="Resolved path escapes asset_dir.",
            hint="Symlinks below the asset directory must stay inside it.",
        )
    return resolved
