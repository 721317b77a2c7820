"""Default HTML tag formatters for script and stylesheet assets."""

from __future__ import annotations

from collections.abc import Mapping
from html import escape

from assetman.config import ManagerConfig


def render_tag(
    element: str,
    url_attribute: str,
    url: str,
    attributes: Mapping[str, str],
    void: bool = False,
) -> str:
    """Render ``<element url_attribute="url" ...>`` with remaining attributes sorted."""
    parts = [f'{url_attribute}="{escape(url, quote=True)}"']
    for key in sorted(attributes):
        if key == url_attribute:
            continue
        parts.append(f'{key}="{escape(str(attributes[key]), quote=True)}"')
    rendered = " ".join(parts)
    if void:
        return f"<{element} {rendered} />"
    return f"<{element} {rendered}></{element}>"


def script_tag(url: str, config: ManagerConfig, attributes: Mapping[str, str]) -> str:
    merged: dict[str, str] = {}
    if not config.build.html5:
        merged["type"] = "text/javascript"
    merged.update(attributes)
    return render_tag("script", "src", url, merged)


def stylesheet_tag(url: str, config: ManagerConfig, attributes: Mapping[str, str]) -> str:
    merged = {"rel": "stylesheet"}
    merged.update(attributes)
    return render_tag("link", "href", url, merged, void=True)


DEFAULT_TAGS = {
    ".js": script_tag,
    ".css": stylesheet_tag,
}
