"""Request path safety helpers."""

from .paths import PathBlockedError, resolve_asset_path, split_request_path

__all__ = ["PathBlockedError", "resolve_asset_path", "split_request_path"]
