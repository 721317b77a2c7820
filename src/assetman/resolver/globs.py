"""Glob expansion against the indexed asset set.

The dialect follows the usual web-asset conventions: ``*`` and ``?`` never
cross a ``/``, ``**`` spans any number of path segments, ``[...]`` is a
character class and ``{a,b}`` expands to alternatives. Wildcards do not match
dot-prefixed segments unless the pattern segment itself starts with a dot.
"""

from __future__ import annotations

import fnmatch
import re
from collections.abc import Iterable

_GLOB_CHARS = re.compile(r"[*?{}]")


class GlobMatchError(Exception):
    """Raised when a glob pattern matches no indexed asset."""

    def __init__(self, pattern: str) -> None:
        super().__init__(f'No assets matched the pattern "{pattern}"')
        self.pattern = pattern


def is_glob(pattern: str) -> bool:
    """Return True when the entry needs expansion rather than pass-through."""
    return _GLOB_CHARS.search(pattern) is not None


def expand_braces(pattern: str) -> list[str]:
    """Expand the first top-level ``{a,b}`` group recursively."""
    depth = 0
    start = -1
    for index, char in enumerate(pattern):
        if char == "{":
            if depth == 0:
                start = index
            depth += 1
            continue
        if char != "}" or depth == 0:
            continue
        depth -= 1
        if depth:
            continue
        alternatives = _split_alternatives(pattern[start + 1 : index])
        if len(alternatives) < 2:
            continue
        prefix = pattern[:start]
        suffix = pattern[index + 1 :]
        expanded: list[str] = []
        for alternative in alternatives:
            expanded.extend(expand_braces(f"{prefix}{alternative}{suffix}"))
        return expanded
    return [pattern]


def match_path(path: str, pattern: str) -> bool:
    """Return True when a relative POSIX path matches one glob pattern."""
    path_parts = tuple(part for part in path.split("/") if part)
    return any(
        _match_segments(path_parts, tuple(part for part in alternative.split("/") if part))
        for alternative in expand_braces(pattern)
    )


def expand_globs(patterns: Iterable[str], candidates: Iterable[str]) -> list[str]:
    """Expand glob entries against candidates; plain entries pass through unchanged.

    Matches for one pattern come back in candidate order. Raises
    ``GlobMatchError`` for a pattern with no match.
    """
    ordered = list(candidates)
    output: list[str] = []
    for pattern in patterns:
        if not is_glob(pattern):
            output.append(pattern)
            continue
        normalized = pattern.lower()
        matched = [candidate for candidate in ordered if match_path(candidate, normalized)]
        if not matched:
            raise GlobMatchError(pattern)
        output.extend(matched)
    return output


def strip_duplicates(items: Iterable[str]) -> list[str]:
    """Drop repeats while keeping first-occurrence order."""
    return list(dict.fromkeys(items))


def _split_alternatives(body: str) -> list[str]:
    alternatives: list[str] = []
    depth = 0
    current: list[str] = []
    for char in body:
        if char == "{":
            depth += 1
        elif char == "}":
            depth -= 1
        elif char == "," and depth == 0:
            alternatives.append("".join(current))
            current = []
            continue
        current.append(char)
    alternatives.append("".join(current))
    return alternatives


def _match_segments(path_parts: tuple[str, ...], pattern_parts: tuple[str, ...]) -> bool:
    if not pattern_parts:
        return not path_parts
    head = pattern_parts[0]
    if head == "**":
        rest = pattern_parts[1:]
        for skip in range(len(path_parts) + 1):
            if skip and path_parts[skip - 1].startswith("."):
                return False
            if _match_segments(path_parts[skip:], rest):
                return True
        return False
    if not path_parts:
        return False
    segment = path_parts[0]
    if segment.startswith(".") and not head.startswith("."):
        return False
    if not fnmatch.fnmatchcase(segment, head):
        return False
    return _match_segments(path_parts[1:], pattern_parts[1:])
