"""Extension-keyed registries for compilers, compressors and tag formatters."""

from __future__ import annotations

from collections.abc import Awaitable, Callable, Mapping
from dataclasses import dataclass, field
from typing import Generic, TypeVar

from assetman.config import ManagerConfig

CompileFunction = Callable[[str, ManagerConfig], "str | Awaitable[str]"]
CompressFunction = Callable[[str, ManagerConfig], "str | bytes | Awaitable[str | bytes]"]
TagFormatter = Callable[[str, ManagerConfig, Mapping[str, str]], str]

T = TypeVar("T")


def to_extname(extension: str) -> str:
    """Normalise ``"TXT"``, ``"txt"`` and ``".txt"`` to ``".txt"``."""
    normalized = extension.strip().lower()
    if not normalized.startswith("."):
        normalized = f".{normalized}"
    return normalized


@dataclass(slots=True, frozen=True)
class Compiler:
    """A registered source-to-output transformation."""

    source_extension: str
    output_extension: str
    compile: CompileFunction


@dataclass(slots=True)
class ExtensionRegistry(Generic[T]):
    """In-memory registry keyed by normalised extension, insertion ordered."""

    _entries: dict[str, T] = field(default_factory=dict)

    def register(self, extension: str, entry: T) -> None:
        """Register (or replace) the entry for an extension."""
        self._entries[to_extname(extension)] = entry

    def get(self, extension: str) -> T | None:
        """Return the entry for an extension."""
        return self._entries.get(to_extname(extension))

    def names(self) -> tuple[str, ...]:
        """Return registered extensions in registration order."""
        return tuple(self._entries.keys())

    def __contains__(self, extension: object) -> bool:
        return isinstance(extension, str) and to_extname(extension) in self._entries


@dataclass(slots=True)
class CompilerRegistry:
    """Compilers by source extension plus a reverse index by output extension."""

    _compilers: dict[str, Compiler] = field(default_factory=dict)
    _by_output: dict[str, list[Compiler]] = field(default_factory=dict)

    def register(
        self,
        source_extension: str,
        output_extension: str,
        compile: CompileFunction,
    ) -> Compiler:
        """Register a compiler, replacing any previous one for the same source extension."""
        source = to_extname(source_extension)
        output = to_extname(output_extension)
        previous = self._compilers.get(source)
        if previous is not None:
            producers = self._by_output.get(previous.output_extension, [])
            self._by_output[previous.output_extension] = [
                item for item in producers if item.source_extension != source
            ]
        compiler = Compiler(source_extension=source, output_extension=output, compile=compile)
        self._compilers[source] = compiler
        self._by_output.setdefault(output, []).append(compiler)
        return compiler

    def get(self, source_extension: str) -> Compiler | None:
        """Return the compiler registered for a source extension."""
        if not source_extension:
            return None
        return self._compilers.get(to_extname(source_extension))

    def producers_of(self, output_extension: str) -> tuple[Compiler, ...]:
        """Return compilers able to produce an output extension, in registration order."""
        if not output_extension:
            return ()
        return tuple(self._by_output.get(to_extname(output_extension), ()))

    def names(self) -> tuple[str, ...]:
        """Return registered source extensions in registration order."""
        return tuple(self._compilers.keys())
