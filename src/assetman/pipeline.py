"""Read, compile, concatenate, wrap, compress and write one pending asset."""

from __future__ import annotations

import asyncio
import inspect
import posixpath
from pathlib import Path

from assetman.config import ManagerConfig
from assetman.plugins.registry import CompilerRegistry, CompressFunction, ExtensionRegistry
from assetman.resolver.models import PendingAsset

JOIN_SEPARATOR = ""


class CompilationError(Exception):
    """Raised when any stage of compiling an asset fails."""

    def __init__(self, message: str) -> None:
        super().__init__(message)
        self.message = message


async def compile_asset(
    pending: PendingAsset,
    config: ManagerConfig,
    compilers: CompilerRegistry,
    compressors: ExtensionRegistry[CompressFunction],
) -> Path:
    """Build ``pending`` and write it below the asset directory.

    Fragments are joined without a separator. The output only appears once
    every stage succeeded; on failure ``CompilationError`` names the file and
    stage and nothing is left at the output path.
    """
    fragments: list[str] = []
    for record in pending.assets:
        source_path = config.asset_dir / record.name
        try:
            text = await asyncio.to_thread(source_path.read_text, encoding="utf-8")
        except (OSError, UnicodeDecodeError) as error:
            raise CompilationError(f'Failed to read file "{record.name}": {error}') from error
        compiler = compilers.get(posixpath.splitext(record.name)[1])
        if compiler is None:
            fragments.append(text)
            continue
        try:
            compiled = _expect_text(await _maybe_await(compiler.compile(text, config)), str)
        except Exception as error:
            raise CompilationError(
                f'Failed to compile file "{record.name}": {error}'
            ) from error
        fragments.append(compiled)

    contents: str | bytes = JOIN_SEPARATOR.join(fragments)
    extension = pending.extension
    if extension == ".js" and config.build.wrap_javascript:
        contents = config.build.javascript_iife.replace("%s", contents, 1)

    compressor = compressors.get(extension) if config.build.compress else None
    if compressor is not None:
        try:
            contents = _expect_text(await _maybe_await(compressor(contents, config)), (str, bytes))
        except Exception as error:
            raise CompilationError(
                f'Failed to compress asset "{pending.path}": {error}'
            ) from error

    output_path = config.asset_dir / pending.filename
    try:
        await asyncio.to_thread(_atomic_write, output_path, contents)
    except OSError as error:
        raise CompilationError(f'Failed to write asset "{pending.path}": {error}') from error
    return output_path


def _atomic_write(path: Path, contents: str | bytes) -> None:
    path.parent.mkdir(parents=True, exist_ok=True)
    tmp = path.with_name(f"{path.name}.tmp")
    payload = contents.encode("utf-8") if isinstance(contents, str) else contents
    try:
        tmp.write_bytes(payload)
        tmp.replace(path)
    except OSError:
        tmp.unlink(missing_ok=True)
        raise


def _expect_text(value, allowed):
    if not isinstance(value, allowed):
        raise TypeError(f"expected text output, got {type(value).__name__}")
    return value


async def _maybe_await(value):
    if inspect.isawaitable(value):
        return await value
    return value
