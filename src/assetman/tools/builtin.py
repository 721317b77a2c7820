"""Built-in asset tools exposed by the JSON-lines server."""

from __future__ import annotations

from collections.abc import Callable
from pathlib import Path

from assetman.manager import AssetManager
from assetman.resolver import AssetOptions, coerce_options
from assetman.tools.registry import ToolDispatchError, ToolHandler, ToolRegistry

DEFAULT_EVENT_LIMIT = 50
MAX_EVENT_LIMIT = 500


def register_builtin_tools(
    registry: ToolRegistry,
    manager: AssetManager,
    serve_path: Callable[[str], Path | None],
    read_events: Callable[[str | None, int, str | None], list[dict[str, object]]],
) -> None:
    """Register the asset tool set in a stable order."""
    registry.register(
        "assets.path",
        _resolve_handler("assets.path", "path", manager, manager.asset_path),
        "Resolve an identifier to its fingerprinted path.",
    )
    registry.register(
        "assets.url",
        _resolve_handler("assets.url", "url", manager, manager.asset_url),
        "Resolve an identifier to its fingerprinted URL.",
    )
    registry.register(
        "assets.tag",
        _resolve_handler("assets.tag", "tag", manager, manager.asset),
        "Render the HTML tag(s) for an identifier.",
    )
    registry.register(
        "assets.serve",
        _serve_handler(manager, serve_path),
        "Map a request path to a file, compiling it when needed.",
    )
    registry.register(
        "assets.reindex", _reindex_handler(manager), "Rebuild the index and hashes."
    )
    registry.register(
        "assets.status", _status_handler(manager), "Report index and registry state."
    )
    registry.register(
        "assets.events", _events_handler(read_events), "Read recent event log entries."
    )


def _resolve_handler(
    tool: str,
    result_key: str,
    manager: AssetManager,
    render: Callable[[str, AssetOptions | None, bool], str],
) -> ToolHandler:
    def handler(arguments: dict[str, object]) -> dict[str, object]:
        identifier = _required_string(tool, arguments, "identifier")
        options = _options_argument(tool, arguments)
        force = arguments.get("force", False)
        if not isinstance(force, bool):
            raise ToolDispatchError(
                code="INVALID_PARAMS", message=f"{tool} force must be a boolean."
            )

        errors: list[str] = []
        unsubscribe = manager.subscribe("error", errors.append)
        try:
            value = render(identifier, options, force)
        finally:
            unsubscribe()
        if not value:
            message = errors[-1] if errors else f'Unable to resolve asset "{identifier}"'
            raise ToolDispatchError(code="ASSET_UNRESOLVED", message=message)
        return {"identifier": identifier, result_key: value}

    return handler


def _serve_handler(
    manager: AssetManager,
    serve_path: Callable[[str], Path | None],
) -> ToolHandler:
    def handler(arguments: dict[str, object]) -> dict[str, object]:
        request_path = _required_string("assets.serve", arguments, "path")
        served = serve_path(request_path)
        if served is None:
            return {"path": request_path, "found": False, "file": None}
        return {
            "path": request_path,
            "found": True,
            "file": served.relative_to(manager.config.asset_dir).as_posix(),
        }

    return handler


def _reindex_handler(manager: AssetManager) -> ToolHandler:
    def handler(_: dict[str, object]) -> dict[str, object]:
        manager.index_assets()
        rehashed = manager.hash_assets()
        return {
            "indexed_asset_count": len(manager.assets),
            "compiled_asset_count": sum(len(names) for names in manager.compiled.values()),
            "manifest_written": rehashed,
        }

    return handler


def _status_handler(manager: AssetManager) -> ToolHandler:
    def handler(_: dict[str, object]) -> dict[str, object]:
        return manager.status()

    return handler


def _events_handler(
    read_events: Callable[[str | None, int, str | None], list[dict[str, object]]],
) -> ToolHandler:
    def handler(arguments: dict[str, object]) -> dict[str, object]:
        since_value = arguments.get("since")
        limit_value = arguments.get("limit", DEFAULT_EVENT_LIMIT)
        kind_value = arguments.get("kind")

        since: str | None = since_value if isinstance(since_value, str) else None
        kind: str | None = kind_value if isinstance(kind_value, str) else None
        limit = limit_value if isinstance(limit_value, int) else DEFAULT_EVENT_LIMIT
        limit = min(max(limit, 1), MAX_EVENT_LIMIT)

        return {"entries": read_events(since, limit, kind)}

    return handler


def _required_string(tool: str, arguments: dict[str, object], key: str) -> str:
    value = arguments.get(key)
    if not isinstance(value, str) or not value:
        raise ToolDispatchError(
            code="INVALID_PARAMS", message=f"{tool} {key} must be a non-empty string."
        )
    return value


def _options_argument(tool: str, arguments: dict[str, object]) -> AssetOptions | None:
    value = arguments.get("options")
    if value is None:
        return None
    if not isinstance(value, dict):
        raise ToolDispatchError(
            code="INVALID_PARAMS", message=f"{tool} options must be an object."
        )
    try:
        return coerce_options(value)
    except ValueError as error:
        raise ToolDispatchError(code="INVALID_PARAMS", message=str(error)) from error
