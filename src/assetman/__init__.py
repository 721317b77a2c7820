"""Content-fingerprinted static asset manager."""

from .config import ConfigOverrides, ManagerConfig, default_config, load_effective_config
from .manager import AssetManager, Resolution
from .pipeline import CompilationError
from .resolver import AssetOptions, AssetResolutionError, PendingAsset

__all__ = [
    "AssetManager",
    "AssetOptions",
    "AssetResolutionError",
    "CompilationError",
    "ConfigOverrides",
    "ManagerConfig",
    "PendingAsset",
    "Resolution",
    "default_config",
    "load_effective_config",
]
