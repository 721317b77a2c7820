"""Resolve logical asset identifiers into fingerprinted output paths."""

from __future__ import annotations

import posixpath
from collections.abc import Mapping

from assetman.config import ManagerConfig
from assetman.index.discovery import compiled_asset_filename, hash_string
from assetman.index.models import AssetRecord
from assetman.plugins.registry import CompilerRegistry
from assetman.resolver.globs import GlobMatchError, expand_globs, strip_duplicates
from assetman.resolver.models import AssetOptions, PendingAsset, coerce_options


class AssetResolutionError(Exception):
    """Raised when an identifier cannot be turned into an output path."""

    def __init__(self, message: str) -> None:
        super().__init__(message)
        self.message = message


class AssetResolver:
    """Memoizing identifier resolver over a manager-owned asset index.

    ``assets`` and ``compiled`` are the manager's live mappings; the resolver
    reads them and prunes stale entries from ``compiled`` but never rebinds
    them.
    """

    def __init__(
        self,
        config: ManagerConfig,
        compilers: CompilerRegistry,
        assets: dict[str, AssetRecord],
        compiled: dict[str, list[str]],
    ) -> None:
        self._config = config
        self._compilers = compilers
        self._assets = assets
        self._compiled = compiled
        self._pending: dict[str, PendingAsset] = {}

    @property
    def pending(self) -> Mapping[str, PendingAsset]:
        """Resolved definitions keyed by normalised identifier."""
        return self._pending

    def normalize_identifier(self, identifier: str) -> str:
        """Lowercase and remap a compiler source extension to its output extension."""
        normalized = identifier.lower()
        dirname, basename = posixpath.split(normalized)
        stem, extension = posixpath.splitext(basename)
        compiler = self._compilers.get(extension)
        if compiler is None:
            return normalized
        return posixpath.join(dirname, f"{stem}{compiler.output_extension}")

    def resolve(
        self,
        identifier: str,
        options: AssetOptions | Mapping[str, object] | None = None,
        force: bool = False,
    ) -> PendingAsset:
        """Resolve and memoize one identifier.

        Repeated calls merge the new options over the stored definition, so
        partial option sets are additive. Raises ``AssetResolutionError``.
        """
        identifier = self.normalize_identifier(identifier)
        opts = coerce_options(options)
        existing = self._pending.get(identifier)
        if existing is not None and not force:
            return self.resolve(identifier, opts.merged_over(existing.options), force=True)

        if opts.include is not None:
            try:
                filenames = expand_globs(opts.include, sorted(self._assets))
            except GlobMatchError as error:
                raise AssetResolutionError(
                    f'{error} when building asset "{identifier}"'
                ) from error
        else:
            filenames = [identifier]
        filenames = strip_duplicates(filename.lower() for filename in filenames)
        if not filenames:
            raise AssetResolutionError("No assets were defined")

        records = tuple(
            self._lookup(filename, identifier, bundled=opts.include is not None)
            for filename in filenames
        )
        dependencies = self._resolve_dependencies(identifier, opts)

        fingerprint = self.fingerprint(records + dependencies)
        dirname, basename = posixpath.split(identifier)
        compiled_name = compiled_asset_filename(
            self._config.naming.asset_prefix, basename, fingerprint
        )
        filename = posixpath.join(dirname, compiled_name) if dirname else compiled_name
        pending = PendingAsset(
            identifier=identifier,
            path=posixpath.join(self._config.urls.serve_prefix, filename),
            filename=filename,
            fingerprint=fingerprint,
            assets=records,
            dependencies=dependencies,
            options=opts,
        )
        self._pending[identifier] = pending
        self._remove_stale_outputs(identifier, filename)
        return pending

    def resolve_url(
        self,
        identifier: str,
        options: AssetOptions | Mapping[str, object] | None = None,
        force: bool = False,
    ) -> str:
        """Resolve an identifier and apply the per-call or global URL prefix."""
        return self.url_for(self.resolve(identifier, options, force=force))

    def url_for(self, pending: PendingAsset) -> str:
        prefix = pending.options.prefix or self._config.urls.url_prefix
        return join_url_prefix(prefix, pending.path)

    def fingerprint(self, records: tuple[AssetRecord, ...]) -> str:
        """Hash the ordered constituent hashes and truncate to the configured length."""
        joined = ":".join(record.hash or "" for record in records)
        digest = hash_string(joined, self._config.naming.hash_algorithm)
        return digest[: self._config.naming.hash_length]

    def expand(self, patterns: tuple[str, ...]) -> list[str]:
        """Expand include globs against the current index. Raises ``GlobMatchError``."""
        return strip_duplicates(expand_globs(patterns, sorted(self._assets)))

    def _lookup(self, filename: str, identifier: str, bundled: bool) -> AssetRecord:
        record = self._assets.get(filename)
        if record is not None:
            return record

        # foo.css may only exist on disk as foo.less
        stem, extension = posixpath.splitext(filename)
        tried: list[str] = []
        for compiler in self._compilers.producers_of(extension):
            candidate = f"{stem}{compiler.source_extension}"
            if candidate == filename:
                continue
            record = self._assets.get(candidate)
            if record is not None:
                return record
            tried.append(candidate)

        message = f'Asset "{filename}" could not be found'
        if bundled:
            message += f' when building asset "{identifier}"'
        if tried:
            quoted = '", "'.join(tried)
            message += f' (tried "{quoted}")'
        raise AssetResolutionError(message)

    def _resolve_dependencies(
        self, identifier: str, options: AssetOptions
    ) -> tuple[AssetRecord, ...]:
        if options.dependencies is None:
            return ()
        suffix = f' when finding dependencies for "{identifier}"'
        try:
            names = self.expand(options.dependencies)
        except GlobMatchError as error:
            raise AssetResolutionError(f"{error}{suffix}") from error
        records: list[AssetRecord] = []
        for name in strip_duplicates(name.lower() for name in names):
            record = self._assets.get(name)
            if record is None:
                raise AssetResolutionError(f'Failed to locate "{name}"{suffix}')
            records.append(record)
        return tuple(records)

    def _remove_stale_outputs(self, identifier: str, current: str) -> None:
        existing = self._compiled.get(identifier)
        if not existing:
            return
        kept: list[str] = []
        for name in existing:
            if name.lower() == current:
                kept.append(name)
                continue
            try:
                (self._config.asset_dir / name).unlink()
            except OSError:
                continue
        self._compiled[identifier] = kept


def join_url_prefix(prefix: str, url: str) -> str:
    """Prepend a URL prefix, collapsing a doubled ``/`` at the join."""
    if not prefix:
        return url
    if url.startswith("/") and prefix.endswith("/"):
        prefix = prefix[:-1]
    return f"{prefix}{url}"
