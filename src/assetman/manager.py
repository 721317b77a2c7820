"""Asset manager: owns the index, definitions, registries and compile queue."""

from __future__ import annotations

import asyncio
import posixpath
from collections.abc import Callable, Mapping
from dataclasses import dataclass
from pathlib import Path

from assetman.config import ManagerConfig
from assetman.events import EventBus, EventCallback
from assetman.index import (
    AssetRecord,
    HashCache,
    IndexSnapshot,
    build_asset_index,
    canonical_path,
    compiled_asset_filename,
    compiled_asset_pattern,
    is_manifest_file,
)
from assetman.logging import EventRecord, JsonlEventLogger, utc_timestamp
from assetman.pipeline import compile_asset
from assetman.plugins import (
    DEFAULT_TAGS,
    CompileFunction,
    CompilerRegistry,
    CompressFunction,
    ExtensionRegistry,
    TagFormatter,
)
from assetman.resolver import (
    AssetOptions,
    AssetResolutionError,
    AssetResolver,
    GlobMatchError,
    PendingAsset,
    coerce_options,
)
from assetman.security import resolve_asset_path, split_request_path
from assetman.serializer import RequestSerializer
from assetman.watch import WatchReindexer

EVENT_LOG_FILENAME = "events.jsonl"

OptionsInput = AssetOptions | Mapping[str, object] | None


@dataclass(slots=True, frozen=True)
class Resolution:
    """Outcome of resolving one identifier."""

    ok: bool
    value: PendingAsset | None = None
    error: str | None = None


class AssetManager:
    """Single owner of all mutable asset state.

    Every method is expected to run on one thread (normally the event loop
    that calls ``serve``). Filesystem watch callbacks are marshalled onto that
    loop by ``watch_directory``.
    """

    def __init__(
        self,
        config: ManagerConfig,
        event_logger: JsonlEventLogger | None = None,
    ) -> None:
        self._config = config
        self._assets: dict[str, AssetRecord] = {}
        self._compiled: dict[str, list[str]] = {}
        self._compilers = CompilerRegistry()
        self._compressors: ExtensionRegistry[CompressFunction] = ExtensionRegistry()
        self._tags: ExtensionRegistry[TagFormatter] = ExtensionRegistry()
        for extension, formatter in DEFAULT_TAGS.items():
            self._tags.register(extension, formatter)
        self._resolver = AssetResolver(config, self._compilers, self._assets, self._compiled)
        self._hash_cache = HashCache(
            config.asset_dir, config.naming.manifest, config.naming.hash_algorithm
        )
        self._serializer = RequestSerializer()
        self._bus = EventBus()
        if event_logger is None and config.event_log:
            event_logger = JsonlEventLogger(path=config.data_dir / EVENT_LOG_FILENAME)
        self._event_logger = event_logger
        self._compiled_pattern = compiled_asset_pattern(config.naming.asset_prefix)
        self._data_dir_prefix = self._compute_data_dir_prefix()
        self._watcher: WatchReindexer | None = None
        self._initialized = False
        self._indexed = False

    @property
    def config(self) -> ManagerConfig:
        return self._config

    @property
    def assets(self) -> Mapping[str, AssetRecord]:
        """Indexed source files keyed by lowercased relative path."""
        return self._assets

    @property
    def compiled(self) -> Mapping[str, list[str]]:
        """Hashed outputs on disk keyed by lowercased canonical path."""
        return self._compiled

    @property
    def pending(self) -> Mapping[str, PendingAsset]:
        return self._resolver.pending

    @property
    def serializer(self) -> RequestSerializer:
        return self._serializer

    @property
    def initialized(self) -> bool:
        return self._initialized

    def init(self, loop: asyncio.AbstractEventLoop | None = None) -> AssetManager:
        """Index and hash the asset directory, then watch it when hot reload is on."""
        if self._initialized:
            return self
        self.index_assets()
        self.hash_assets()
        if self._config.hot_reload:
            self.watch_directory(loop)
        self._initialized = True
        return self

    def destroy(self) -> None:
        """Stop watching; a later ``init`` starts over from a fresh index."""
        if self._watcher is not None:
            self._watcher.stop()
            self._watcher = None
        self._initialized = False

    def index_assets(self) -> IndexSnapshot:
        """Rebuild the asset map and compiled registry from disk."""
        try:
            snapshot = build_asset_index(
                self._config.asset_dir,
                self._config.naming,
                excluded_prefix=self._data_dir_prefix,
            )
        except OSError as error:
            self._emit_error(f"Failed to locate assets: {error}")
            snapshot = IndexSnapshot(assets={}, compiled={})
        self._assets.clear()
        self._assets.update(snapshot.assets)
        self._compiled.clear()
        self._compiled.update(snapshot.compiled)
        self._indexed = True
        self._record("index", "assets", True, None, {"asset_count": len(self._assets)})
        return snapshot

    def hash_assets(self) -> bool:
        """Attach content hashes, reusing the manifest; returns True when any were recomputed."""
        refresh = self._hash_cache.refresh(dict(self._assets))
        for name, reason in refresh.failures:
            self._emit_error(f'Failed to hash file "{name}": {reason}')
        self._assets.clear()
        self._assets.update(refresh.assets)
        if refresh.outdated:
            self.write_manifest()
        self._record(
            "hash",
            "assets",
            not refresh.failures,
            None,
            {"reused": refresh.reused, "hashed": refresh.hashed},
        )
        return refresh.outdated

    def reindex(self) -> None:
        self.index_assets()
        self.hash_assets()

    def write_manifest(self) -> bool:
        try:
            self._hash_cache.write(self._assets)
        except OSError as error:
            self._emit_error(f"Failed to write the assets manifest: {error}")
            return False
        return True

    def store_asset(self, record: AssetRecord) -> None:
        self._assets[record.key] = record

    def forget_asset(self, relative_path: str) -> int:
        """Drop the record for a file, or every record below a removed directory."""
        key = relative_path.lower()
        doomed = [name for name in self._assets if name == key or name.startswith(f"{key}/")]
        for name in doomed:
            del self._assets[name]
        return len(doomed)

    def resolve(
        self,
        identifier: str,
        options: OptionsInput = None,
        force: bool = False,
    ) -> Resolution:
        """Resolve an identifier, reporting failures through the ``error`` event."""
        self._ensure_index()
        try:
            pending = self._resolver.resolve(identifier, options, force=force)
        except (AssetResolutionError, ValueError) as error:
            message = str(error)
            self._emit_error(message)
            return Resolution(ok=False, error=message)
        return Resolution(ok=True, value=pending)

    def asset_path(self, identifier: str, options: OptionsInput = None, force: bool = False) -> str:
        """Return the served path of an identifier, or ``""`` on failure."""
        resolution = self.resolve(identifier, options, force=force)
        if resolution.value is None:
            return ""
        return resolution.value.path

    def asset_url(self, identifier: str, options: OptionsInput = None, force: bool = False) -> str:
        """Return the served path with the per-call or global URL prefix, or ``""``."""
        resolution = self.resolve(identifier, options, force=force)
        if resolution.value is None:
            return ""
        return self._resolver.url_for(resolution.value)

    def asset(self, identifier: str, options: OptionsInput = None, force: bool = False) -> str:
        """Define an asset and render its HTML tag(s), or ``""`` on failure."""
        try:
            opts = coerce_options(options)
        except ValueError as error:
            self._emit_error(str(error))
            return ""
        self._ensure_index()
        existing = self._resolver.pending.get(self._resolver.normalize_identifier(identifier))
        if existing is not None and not force:
            opts = opts.merged_over(existing.options)
            force = True

        if self._config.build.separate_bundles and opts.include is not None:
            try:
                names = self._resolver.expand(opts.include)
            except GlobMatchError as error:
                self._emit_error(f'{error} when building asset "{identifier}"')
                return ""
            single = opts.without_include()
            return "\n".join(self.asset(name, single) for name in names)

        resolution = self.resolve(identifier, opts, force=force)
        if resolution.value is None:
            return ""
        url = self._resolver.url_for(resolution.value)
        extension = posixpath.splitext(url)[1]
        formatter = self._tags.get(extension) if extension else None
        if formatter is None:
            self._emit_error(f'Unable to create an HTML tag for type "{extension}"')
            return ""
        return formatter(url, self._config, resolution.value.options.attributes or {})

    async def serve(self, request_path: str) -> Path | None:
        """Map a request path to a file, compiling a pending asset on first request.

        Returns ``None`` when the path is outside the serve prefix, names the
        manifest or a file under the data dir, or names neither an existing
        file nor the current fingerprint of a defined asset. Raises
        ``PathBlockedError`` for traversal attempts and ``CompilationError``
        when the build fails.
        """
        relative = self._strip_serve_prefix(request_path)
        if not relative:
            return None
        target = resolve_asset_path(self._config.asset_dir, relative)
        relative = "/".join(split_request_path(relative))
        if self.is_internal_path(relative):
            return None
        self.apply_watched_changes()
        if await asyncio.to_thread(target.is_file):
            return target

        if not self.is_compiled_asset(relative):
            return None
        canonical = self.get_canonical_path(relative).lower()
        pending = self._resolver.pending.get(canonical)
        if pending is None or pending.filename != relative:
            return None
        return await self._serializer.run(canonical, lambda: self._compile(pending))

    def register_compiler(
        self, source_extension: str, output_extension: str, compile: CompileFunction
    ) -> AssetManager:
        self._compilers.register(source_extension, output_extension, compile)
        return self

    def register_compressor(self, extension: str, compressor: CompressFunction) -> AssetManager:
        self._compressors.register(extension, compressor)
        return self

    def register_tag(self, extension: str, formatter: TagFormatter) -> AssetManager:
        self._tags.register(extension, formatter)
        return self

    def subscribe(self, name: str, callback: EventCallback) -> Callable[[], None]:
        """Listen for ``error`` or ``change`` notifications."""
        return self._bus.subscribe(name, callback)

    def publish_change(self, filename: str) -> None:
        self._bus.publish("change", filename)
        self._record("change", filename, True, None, {})

    def get_compiled_asset_filename(self, filename: str, digest: str) -> str:
        return compiled_asset_filename(self._config.naming.asset_prefix, filename, digest)

    def is_compiled_asset(self, path: str) -> bool:
        return self._compiled_pattern.match(posixpath.basename(path)) is not None

    def get_canonical_path(self, path: str) -> str:
        return canonical_path(path, self._compiled_pattern)

    def is_internal_path(self, relative_path: str) -> bool:
        """True for the manifest, its temporary copy and anything under the data dir."""
        if is_manifest_file(relative_path, self._config.naming.manifest):
            return True
        prefix = self._data_dir_prefix
        if prefix is None:
            return False
        return relative_path == prefix or relative_path.startswith(f"{prefix}/")

    def watch_directory(self, loop: asyncio.AbstractEventLoop | None = None) -> WatchReindexer:
        """Start the filesystem watcher, delivering changes on ``loop`` when given."""
        if loop is None:
            try:
                loop = asyncio.get_running_loop()
            except RuntimeError:
                loop = None
        if self._watcher is not None:
            self._watcher.stop()
        self._watcher = WatchReindexer(self, loop=loop)
        self._watcher.start()
        return self._watcher

    def status(self) -> dict[str, object]:
        """Return a serializable snapshot of manager state."""
        self.apply_watched_changes()
        return {
            "asset_dir": str(self._config.asset_dir),
            "initialized": self._initialized,
            "watching": self._watcher is not None and self._watcher.running,
            "indexed_asset_count": len(self._assets),
            "compiled_asset_count": sum(len(names) for names in self._compiled.values()),
            "pending_asset_count": len(self._resolver.pending),
            "in_flight": list(self._serializer.in_flight()),
            "manifest": str(self._hash_cache.path),
            "compilers": list(self._compilers.names()),
            "compressors": list(self._compressors.names()),
            "tags": list(self._tags.names()),
            "config": self._config.to_public_dict(),
        }

    async def _compile(self, pending: PendingAsset) -> Path:
        # an earlier run may have finished after the caller checked the disk
        existing = self._config.asset_dir / pending.filename
        if await asyncio.to_thread(existing.is_file):
            return existing
        try:
            output = await compile_asset(
                pending, self._config, self._compilers, self._compressors
            )
        except Exception as error:
            self._record("compile", pending.filename, False, str(error), {})
            raise
        registered = self._compiled.setdefault(pending.identifier, [])
        if pending.filename not in registered:
            registered.append(pending.filename)
        self._record(
            "compile",
            pending.filename,
            True,
            None,
            {"asset_count": len(pending.assets), "identifier": pending.identifier},
        )
        return output

    def _ensure_index(self) -> None:
        if not self._indexed:
            self.reindex()
        self.apply_watched_changes()

    def apply_watched_changes(self) -> int:
        """Apply changes queued by a watcher that has no event loop to deliver them to."""
        if self._watcher is None:
            return 0
        return self._watcher.drain()

    def _strip_serve_prefix(self, request_path: str) -> str | None:
        prefix = self._config.urls.serve_prefix.rstrip("/")
        if request_path == prefix:
            return ""
        if not request_path.startswith(f"{prefix}/"):
            return None
        return request_path[len(prefix) + 1 :]

    def _compute_data_dir_prefix(self) -> str | None:
        data_dir = self._config.data_dir
        if not data_dir.is_relative_to(self._config.asset_dir):
            return None
        return data_dir.relative_to(self._config.asset_dir).as_posix()

    def _emit_error(self, message: str) -> None:
        self._bus.publish("error", message)
        self._record("error", "manager", False, message, {})

    def _record(
        self,
        kind: str,
        name: str,
        ok: bool,
        message: str | None,
        metadata: dict[str, object],
    ) -> None:
        if self._event_logger is None:
            return
        self._event_logger.append(
            EventRecord(
                timestamp=utc_timestamp(),
                kind=kind,
                name=name,
                ok=ok,
                message=message,
                metadata=metadata,
            )
        )
