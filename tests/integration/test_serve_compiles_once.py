from __future__ import annotations

import asyncio
from collections.abc import Callable
from pathlib import Path
from unittest.mock import patch

import pytest

from assetman.config import ManagerConfig
from assetman.manager import AssetManager
from assetman.pipeline import CompilationError
from assetman.security import PathBlockedError


def test_existing_files_are_served_directly(
    make_manager: Callable[..., AssetManager], simple_assets: Path
) -> None:
    manager = make_manager()

    served = asyncio.run(manager.serve("/jquery.js"))

    assert served == simple_assets.resolve() / "jquery.js"


def test_undefined_or_stale_fingerprints_are_not_found(
    make_manager: Callable[..., AssetManager],
) -> None:
    manager = make_manager()

    assert asyncio.run(manager.serve("/asset-82470a-jquery.js")) is None
    manager.asset_path("jquery.js")
    assert asyncio.run(manager.serve("/asset-000000-jquery.js")) is None
    assert asyncio.run(manager.serve("/missing.js")) is None
    assert asyncio.run(manager.serve("/")) is None


def test_first_request_compiles_and_registers_output(
    make_manager: Callable[..., AssetManager], simple_assets: Path
) -> None:
    manager = make_manager()
    path = manager.asset_path("ie8.js", {"include": ["html5shiv.js", "respond.js"]})

    served = asyncio.run(manager.serve(path))

    assert served == simple_assets.resolve() / "asset-563bc1-ie8.js"
    assert served.read_text(encoding="utf-8") == "window.html5 = {};\nwindow.respond = {};\n"
    assert manager.compiled["ie8.js"] == ["asset-563bc1-ie8.js"]


def test_serve_prefix_is_stripped(
    make_manager: Callable[..., AssetManager], simple_assets: Path
) -> None:
    manager = make_manager(serve_prefix="/static/", wrap_javascript=True)
    path = manager.asset_path("jquery.js")

    served = asyncio.run(manager.serve(path))

    assert path == "/static/asset-82470a-jquery.js"
    assert served == simple_assets.resolve() / "asset-82470a-jquery.js"
    assert served.read_text(encoding="utf-8") == "!function(){window.jQuery = {};\n}();"
    assert asyncio.run(manager.serve("/jquery.js")) is None
    assert asyncio.run(manager.serve("/staticfoo/jquery.js")) is None


async def _serve_together(
    manager: AssetManager, path: str, gate: asyncio.Event, count: int
) -> list[object]:
    tasks = [asyncio.create_task(manager.serve(path)) for _ in range(count)]
    canonical = manager.get_canonical_path(path.lstrip("/"))
    while manager.serializer.waiting(canonical) < count - 1:
        await asyncio.sleep(0.001)
    gate.set()
    return await asyncio.gather(*tasks, return_exceptions=True)


def test_concurrent_requests_compile_once(
    make_manager: Callable[..., AssetManager], simple_assets: Path
) -> None:
    manager = make_manager()
    calls: list[str] = []

    async def scenario() -> list[object]:
        gate = asyncio.Event()

        async def less(text: str, config: ManagerConfig) -> str:
            calls.append(text)
            await gate.wait()
            return text.replace("@color", "color")

        manager.register_compiler("less", "css", less)
        path = manager.asset_path("css/theme.less")
        return await _serve_together(manager, path, gate, 10)

    results = asyncio.run(scenario())

    expected = simple_assets.resolve() / "css" / "asset-22cdee-theme.css"
    assert results == [expected] * 10
    assert calls == ["@color: blue;\n"]
    assert expected.read_text(encoding="utf-8") == "color: blue;\n"
    assert manager.serializer.in_flight() == ()


def test_compile_failure_reaches_every_request(
    make_manager: Callable[..., AssetManager], simple_assets: Path
) -> None:
    manager = make_manager()

    async def scenario() -> list[object]:
        gate = asyncio.Event()

        async def broken(text: str, config: ManagerConfig) -> str:
            await gate.wait()
            raise RuntimeError("syntax error")

        manager.register_compiler("less", "css", broken)
        path = manager.asset_path("css/theme.less")
        return await _serve_together(manager, path, gate, 3)

    results = asyncio.run(scenario())

    assert len(results) == 3
    assert all(isinstance(item, CompilationError) for item in results)
    assert str(results[0]) == 'Failed to compile file "css/theme.less": syntax error'
    assert not (simple_assets / "css" / "asset-22cdee-theme.css").exists()
    assert "css/theme.css" not in manager.compiled


def test_traversal_requests_are_blocked(make_manager: Callable[..., AssetManager]) -> None:
    manager = make_manager()

    with pytest.raises(PathBlockedError):
        asyncio.run(manager.serve("/../outside.js"))


def _counting_less(calls: list[str]) -> Callable[[str, ManagerConfig], str]:
    def less(text: str, config: ManagerConfig) -> str:
        calls.append(text)
        return text.replace("@color", "color")

    return less


def test_second_request_reuses_compiled_file(
    make_manager: Callable[..., AssetManager], simple_assets: Path
) -> None:
    manager = make_manager()
    calls: list[str] = []
    manager.register_compiler("less", "css", _counting_less(calls))
    path = manager.asset_path("css/theme.less")

    first = asyncio.run(manager.serve(path))
    second = asyncio.run(manager.serve(path))

    assert first == second == simple_assets.resolve() / "css" / "asset-22cdee-theme.css"
    assert calls == ["@color: blue;\n"]


def test_request_that_missed_a_finished_compile_does_not_rebuild(
    make_manager: Callable[..., AssetManager], simple_assets: Path
) -> None:
    manager = make_manager()
    calls: list[str] = []
    manager.register_compiler("less", "css", _counting_less(calls))
    path = manager.asset_path("css/theme.less")
    expected = asyncio.run(manager.serve(path))
    real_is_file = Path.is_file
    missed: list[Path] = []

    # the first disk check sees no output, as if it ran before the write landed
    def late_is_file(candidate: Path) -> bool:
        if candidate.name == "asset-22cdee-theme.css" and not missed:
            missed.append(candidate)
            return False
        return real_is_file(candidate)

    with patch.object(Path, "is_file", autospec=True, side_effect=late_is_file):
        served = asyncio.run(manager.serve(path))

    assert missed
    assert served == expected
    assert calls == ["@color: blue;\n"]


def test_internal_files_are_never_served(make_manager: Callable[..., AssetManager]) -> None:
    manager = make_manager(event_log=True).init()
    asset_dir = manager.config.asset_dir
    assert (asset_dir / ".asset-manifest").is_file()
    assert (asset_dir / ".assetman" / "events.jsonl").is_file()

    assert asyncio.run(manager.serve("/.asset-manifest")) is None
    assert asyncio.run(manager.serve("/.asset-manifest.tmp")) is None
    assert asyncio.run(manager.serve("/.assetman/events.jsonl")) is None
    assert asyncio.run(manager.serve("/.assetman")) is None
    assert asyncio.run(manager.serve("/.hidden/secret.js")) == asset_dir / ".hidden" / "secret.js"
