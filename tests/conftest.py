from __future__ import annotations

from collections.abc import Callable
from pathlib import Path

import pytest

from assetman.config import ConfigOverrides, load_effective_config
from assetman.manager import AssetManager

SIMPLE_ASSETS = {
    "jquery.js": "window.jQuery = {};\n",
    "html5shiv.js": "window.html5 = {};\n",
    "respond.js": "window.respond = {};\n",
    "style.css": "body { color: red; }\n",
    "robots.txt": "User-agent: *\n",
    "css/theme.less": "@color: blue;\n",
    ".hidden/secret.js": "secret\n",
}


def write_assets(root: Path, files: dict[str, str]) -> Path:
    for name, text in files.items():
        path = root / name
        path.parent.mkdir(parents=True, exist_ok=True)
        path.write_bytes(text.encode("utf-8"))
    return root


@pytest.fixture
def simple_assets(tmp_path: Path) -> Path:
    return write_assets(tmp_path / "assets", SIMPLE_ASSETS)


@pytest.fixture
def make_manager(simple_assets: Path) -> Callable[..., AssetManager]:
    """Build a manager over ``simple_assets`` with six-character fingerprints."""

    def factory(asset_dir: Path | None = None, **overrides: object) -> AssetManager:
        overrides.setdefault("hash_length", 6)
        config = load_effective_config(
            asset_dir or simple_assets, ConfigOverrides(**overrides)
        )
        return AssetManager(config)

    return factory
