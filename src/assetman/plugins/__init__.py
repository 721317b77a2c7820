"""Compiler, compressor and tag formatter plugin registries."""

from .registry import (
    CompileFunction,
    Compiler,
    CompilerRegistry,
    CompressFunction,
    ExtensionRegistry,
    TagFormatter,
    to_extname,
)
from .tags import DEFAULT_TAGS, render_tag, script_tag, stylesheet_tag

__all__ = [
    "CompileFunction",
    "Compiler",
    "CompilerRegistry",
    "CompressFunction",
    "DEFAULT_TAGS",
    "ExtensionRegistry",
    "TagFormatter",
    "render_tag",
    "script_tag",
    "stylesheet_tag",
    "to_extname",
]
