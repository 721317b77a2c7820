"""Typed models for asset definitions and resolved outputs."""

from __future__ import annotations

import posixpath
from collections.abc import Mapping
from dataclasses import dataclass, field, replace

from assetman.index.models import AssetRecord


@dataclass(slots=True, frozen=True)
class AssetOptions:
    """Per-identifier definition options; ``None`` means "not given"."""

    include: tuple[str, ...] | None = None
    dependencies: tuple[str, ...] | None = None
    attributes: Mapping[str, str] | None = None
    prefix: str | None = None

    @classmethod
    def from_mapping(cls, payload: Mapping[str, object]) -> AssetOptions:
        """Build options from a loose mapping, raising ``ValueError`` on bad types."""
        attributes = payload.get("attributes")
        if attributes is not None:
            if not isinstance(attributes, Mapping) or not all(
                isinstance(key, str) and isinstance(value, str)
                for key, value in attributes.items()
            ):
                raise ValueError("Option 'attributes' must map strings to strings.")
            attributes = dict(attributes)
        prefix = payload.get("prefix")
        if prefix is not None and not isinstance(prefix, str):
            raise ValueError("Option 'prefix' must be a string.")
        return cls(
            include=_optional_patterns(payload.get("include"), "include"),
            dependencies=_optional_patterns(payload.get("dependencies"), "dependencies"),
            attributes=attributes,
            prefix=prefix,
        )

    def merged_over(self, existing: AssetOptions) -> AssetOptions:
        """Fill unset fields from ``existing``; values given here win."""
        attributes = self.attributes
        if existing.attributes is not None:
            attributes = {**existing.attributes, **(self.attributes or {})}
        return AssetOptions(
            include=self.include if self.include is not None else existing.include,
            dependencies=(
                self.dependencies if self.dependencies is not None else existing.dependencies
            ),
            attributes=attributes,
            prefix=self.prefix if self.prefix is not None else existing.prefix,
        )

    def without_include(self) -> AssetOptions:
        return replace(self, include=None)


def coerce_options(options: AssetOptions | Mapping[str, object] | None) -> AssetOptions:
    """Accept typed options, a plain mapping, or nothing."""
    if options is None:
        return AssetOptions()
    if isinstance(options, AssetOptions):
        return options
    return AssetOptions.from_mapping(options)


@dataclass(slots=True, frozen=True)
class PendingAsset:
    """A resolved identifier waiting to be compiled on first request."""

    identifier: str
    path: str
    filename: str
    fingerprint: str
    assets: tuple[AssetRecord, ...]
    dependencies: tuple[AssetRecord, ...] = ()
    options: AssetOptions = field(default_factory=AssetOptions)

    @property
    def extension(self) -> str:
        return posixpath.splitext(self.filename)[1]


def _optional_patterns(value: object, name: str) -> tuple[str, ...] | None:
    if value is None:
        return None
    if isinstance(value, str):
        return (value,)
    if isinstance(value, (list, tuple)) and all(isinstance(item, str) for item in value):
        return tuple(value)
    raise ValueError(f"Option '{name}' must be a string or a list of strings.")
