"""Directory indexing and hash cache package."""

from .discovery import (
    build_asset_index,
    build_asset_record,
    canonical_path,
    compiled_asset_filename,
    compiled_asset_pattern,
    hash_file,
    hash_string,
    is_manifest_file,
    walk_directory,
)
from .manifest import HashCache, HashRefresh
from .models import AssetRecord, IndexSnapshot

__all__ = [
    "AssetRecord",
    "HashCache",
    "HashRefresh",
    "IndexSnapshot",
    "build_asset_index",
    "build_asset_record",
    "canonical_path",
    "compiled_asset_filename",
    "compiled_asset_pattern",
    "hash_file",
    "hash_string",
    "is_manifest_file",
    "walk_directory",
]
