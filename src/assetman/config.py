"""Configuration loading and deterministic merge order."""

from __future__ import annotations

import hashlib
import tomllib
from dataclasses import dataclass
from pathlib import Path

CONFIG_FILENAME = "assetman.toml"
HASH_LENGTH_CAP = 128

DEFAULT_ASSET_PREFIX = "asset"
DEFAULT_HASH_ALGORITHM = "md5"
DEFAULT_HASH_LENGTH = 32
DEFAULT_MANIFEST = ".asset-manifest"
DEFAULT_SERVE_PREFIX = "/"
DEFAULT_JAVASCRIPT_IIFE = "!function(){%s}();"
DEFAULT_DATA_DIR_NAME = ".assetman"


@dataclass(slots=True, frozen=True)
class NamingConfig:
    """Fingerprint and output filename settings."""

    asset_prefix: str
    hash_algorithm: str
    hash_length: int
    manifest: str


@dataclass(slots=True, frozen=True)
class UrlConfig:
    """Where compiled assets are served and linked from."""

    serve_prefix: str
    url_prefix: str


@dataclass(slots=True, frozen=True)
class BuildConfig:
    """Compilation pipeline toggles."""

    compress: bool
    wrap_javascript: bool
    javascript_iife: str
    separate_bundles: bool
    html5: bool


@dataclass(slots=True, frozen=True)
class ManagerConfig:
    """Fully merged asset manager configuration."""

    asset_dir: Path
    data_dir: Path
    naming: NamingConfig
    urls: UrlConfig
    build: BuildConfig
    hot_reload: bool
    event_log: bool

    def to_public_dict(self) -> dict[str, object]:
        """Return serializable config snapshot for tool responses."""
        return {
            "asset_dir": str(self.asset_dir),
            "data_dir": str(self.data_dir),
            "naming": {
                "asset_prefix": self.naming.asset_prefix,
                "hash_algorithm": self.naming.hash_algorithm,
                "hash_length": self.naming.hash_length,
                "manifest": self.naming.manifest,
            },
            "urls": {
                "serve_prefix": self.urls.serve_prefix,
                "url_prefix": self.urls.url_prefix,
            },
            "build": {
                "compress": self.build.compress,
                "wrap_javascript": self.build.wrap_javascript,
                "javascript_iife": self.build.javascript_iife,
                "separate_bundles": self.build.separate_bundles,
                "html5": self.build.html5,
            },
            "hot_reload": self.hot_reload,
            "event_log": self.event_log,
        }


@dataclass(slots=True, frozen=True)
class ConfigOverrides:
    """Optional startup overrides applied at highest precedence."""

    data_dir: Path | None = None
    asset_prefix: str | None = None
    hash_algorithm: str | None = None
    hash_length: int | None = None
    manifest: str | None = None
    serve_prefix: str | None = None
    url_prefix: str | None = None
    compress: bool | None = None
    wrap_javascript: bool | None = None
    javascript_iife: str | None = None
    separate_bundles: bool | None = None
    html5: bool | None = None
    hot_reload: bool | None = None
    event_log: bool | None = None


def default_config(asset_dir: Path) -> ManagerConfig:
    """Build default config for a given asset directory."""
    resolved_dir = asset_dir.resolve()
    return ManagerConfig(
        asset_dir=resolved_dir,
        data_dir=resolved_dir / DEFAULT_DATA_DIR_NAME,
        naming=NamingConfig(
            asset_prefix=DEFAULT_ASSET_PREFIX,
            hash_algorithm=DEFAULT_HASH_ALGORITHM,
            hash_length=DEFAULT_HASH_LENGTH,
            manifest=DEFAULT_MANIFEST,
        ),
        urls=UrlConfig(serve_prefix=DEFAULT_SERVE_PREFIX, url_prefix=""),
        build=BuildConfig(
            compress=False,
            wrap_javascript=False,
            javascript_iife=DEFAULT_JAVASCRIPT_IIFE,
            separate_bundles=False,
            html5=False,
        ),
        hot_reload=False,
        event_log=False,
    )


def load_config_file(asset_dir: Path) -> dict[str, object]:
    """Load optional assetman.toml from the asset directory."""
    config_path = asset_dir / CONFIG_FILENAME
    if not config_path.exists():
        return {}
    with config_path.open("rb") as handle:
        payload = tomllib.load(handle)
    if not isinstance(payload, dict):
        raise ValueError(f"{CONFIG_FILENAME} must contain a top-level table.")
    return payload


def _get_table(payload: dict[str, object], key: str) -> dict[str, object]:
    value = payload.get(key, {})
    if not isinstance(value, dict):
        raise ValueError(f"Config section '{key}' must be a table.")
    return value


def merge_config(
    base: ManagerConfig, file_payload: dict[str, object], overrides: ConfigOverrides
) -> ManagerConfig:
    """Merge defaults, config file, then startup overrides."""
    naming_payload = _get_table(file_payload, "naming")
    urls_payload = _get_table(file_payload, "urls")
    build_payload = _get_table(file_payload, "build")
    watch_payload = _get_table(file_payload, "watch")
    logging_payload = _get_table(file_payload, "logging")

    naming = NamingConfig(
        asset_prefix=_optional_asset_prefix(
            naming_payload.get("asset_prefix"), "naming.asset_prefix", base.naming.asset_prefix
        ),
        hash_algorithm=_optional_hash_algorithm(
            naming_payload.get("hash_algorithm"),
            "naming.hash_algorithm",
            base.naming.hash_algorithm,
        ),
        hash_length=_optional_positive_int_with_cap(
            naming_payload.get("hash_length"),
            "naming.hash_length",
            base.naming.hash_length,
            HASH_LENGTH_CAP,
        ),
        manifest=_optional_filename(
            naming_payload.get("manifest"), "naming.manifest", base.naming.manifest
        ),
    )
    urls = UrlConfig(
        serve_prefix=_optional_serve_prefix(
            urls_payload.get("serve_prefix"), "urls.serve_prefix", base.urls.serve_prefix
        ),
        url_prefix=_optional_string(
            urls_payload.get("url_prefix"), "urls.url_prefix", base.urls.url_prefix
        ),
    )
    build = BuildConfig(
        compress=_optional_bool(
            build_payload.get("compress"), "build.compress", base.build.compress
        ),
        wrap_javascript=_optional_bool(
            build_payload.get("wrap_javascript"),
            "build.wrap_javascript",
            base.build.wrap_javascript,
        ),
        javascript_iife=_optional_iife(
            build_payload.get("javascript_iife"),
            "build.javascript_iife",
            base.build.javascript_iife,
        ),
        separate_bundles=_optional_bool(
            build_payload.get("separate_bundles"),
            "build.separate_bundles",
            base.build.separate_bundles,
        ),
        html5=_optional_bool(build_payload.get("html5"), "build.html5", base.build.html5),
    )
    merged = ManagerConfig(
        asset_dir=base.asset_dir,
        data_dir=base.data_dir,
        naming=naming,
        urls=urls,
        build=build,
        hot_reload=_optional_bool(
            watch_payload.get("hot_reload"), "watch.hot_reload", base.hot_reload
        ),
        event_log=_optional_bool(
            logging_payload.get("event_log"), "logging.event_log", base.event_log
        ),
    )
    return apply_overrides(merged, overrides)


def apply_overrides(config: ManagerConfig, overrides: ConfigOverrides) -> ManagerConfig:
    """Apply startup overrides at highest precedence."""
    naming = NamingConfig(
        asset_prefix=_optional_asset_prefix(
            overrides.asset_prefix, "overrides.asset_prefix", config.naming.asset_prefix
        ),
        hash_algorithm=_optional_hash_algorithm(
            overrides.hash_algorithm, "overrides.hash_algorithm", config.naming.hash_algorithm
        ),
        hash_length=_optional_positive_int_with_cap(
            overrides.hash_length,
            "overrides.hash_length",
            config.naming.hash_length,
            HASH_LENGTH_CAP,
        ),
        manifest=_optional_filename(
            overrides.manifest, "overrides.manifest", config.naming.manifest
        ),
    )
    urls = UrlConfig(
        serve_prefix=_optional_serve_prefix(
            overrides.serve_prefix, "overrides.serve_prefix", config.urls.serve_prefix
        ),
        url_prefix=_optional_string(
            overrides.url_prefix, "overrides.url_prefix", config.urls.url_prefix
        ),
    )
    build = BuildConfig(
        compress=_optional_bool(overrides.compress, "overrides.compress", config.build.compress),
        wrap_javascript=_optional_bool(
            overrides.wrap_javascript, "overrides.wrap_javascript", config.build.wrap_javascript
        ),
        javascript_iife=_optional_iife(
            overrides.javascript_iife, "overrides.javascript_iife", config.build.javascript_iife
        ),
        separate_bundles=_optional_bool(
            overrides.separate_bundles,
            "overrides.separate_bundles",
            config.build.separate_bundles,
        ),
        html5=_optional_bool(overrides.html5, "overrides.html5", config.build.html5),
    )
    data_dir = overrides.data_dir or config.data_dir
    return ManagerConfig(
        asset_dir=config.asset_dir,
        data_dir=data_dir.resolve(),
        naming=naming,
        urls=urls,
        build=build,
        hot_reload=_optional_bool(overrides.hot_reload, "overrides.hot_reload", config.hot_reload),
        event_log=_optional_bool(overrides.event_log, "overrides.event_log", config.event_log),
    )


def load_effective_config(
    asset_dir: Path, overrides: ConfigOverrides | None = None
) -> ManagerConfig:
    """Load effective config using merge order defaults -> config file -> overrides."""
    resolved_dir = asset_dir.resolve()
    base = default_config(resolved_dir)
    payload = load_config_file(resolved_dir)
    return merge_config(base, payload, overrides or ConfigOverrides())


def _optional_positive_int_with_cap(
    value: object,
    name: str,
    default: int,
    cap: int | None,
) -> int:
    if value is None:
        return default
    if isinstance(value, bool) or not isinstance(value, int) or value < 1:
        raise ValueError(f"Config field '{name}' must be a positive integer.")
    if cap is not None and value > cap:
        raise ValueError(f"Config field '{name}' must be <= {cap}.")
    return value


def _optional_bool(value: object, name: str, default: bool) -> bool:
    if value is None:
        return default
    if not isinstance(value, bool):
        raise ValueError(f"Config field '{name}' must be a boolean.")
    return value


def _optional_string(value: object, name: str, default: str) -> str:
    if value is None:
        return default
    if not isinstance(value, str):
        raise ValueError(f"Config field '{name}' must be a string.")
    return value


def _optional_asset_prefix(value: object, name: str, default: str) -> str:
    prefix = _optional_string(value, name, default)
    if not prefix or "/" in prefix:
        raise ValueError(f"Config field '{name}' must be a non-empty string without '/'.")
    return prefix


def _optional_filename(value: object, name: str, default: str) -> str:
    filename = _optional_string(value, name, default)
    if not filename or "/" in filename or "\\" in filename:
        raise ValueError(f"Config field '{name}' must be a bare filename.")
    return filename


def _optional_serve_prefix(value: object, name: str, default: str) -> str:
    prefix = _optional_string(value, name, default)
    if not prefix.startswith("/"):
        raise ValueError(f"Config field '{name}' must start with '/'.")
    return prefix


def _optional_hash_algorithm(value: object, name: str, default: str) -> str:
    algorithm = _optional_string(value, name, default).lower()
    if algorithm not in hashlib.algorithms_available:
        raise ValueError(f"Config field '{name}' names an unsupported hash algorithm.")
    if algorithm.startswith("shake_"):
        raise ValueError(f"Config field '{name}' must be a fixed-length digest.")
    return algorithm


def _optional_iife(value: object, name: str, default: str) -> str:
    template = _optional_string(value, name, default)
    if template.count("%s") != 1:
        raise ValueError(f"Config field '{name}' must contain exactly one '%s'.")
    return template
