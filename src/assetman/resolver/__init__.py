"""Identifier resolution package."""

from .engine import AssetResolutionError, AssetResolver, join_url_prefix
from .globs import GlobMatchError, expand_braces, expand_globs, is_glob, match_path
from .models import AssetOptions, PendingAsset, coerce_options

__all__ = [
    "AssetOptions",
    "AssetResolutionError",
    "AssetResolver",
    "GlobMatchError",
    "PendingAsset",
    "coerce_options",
    "expand_braces",
    "expand_globs",
    "is_glob",
    "join_url_prefix",
    "match_path",
]
