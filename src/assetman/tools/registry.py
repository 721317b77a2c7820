"""Named tool handlers for the JSON-lines server."""

from __future__ import annotations

from collections.abc import Callable
from dataclasses import dataclass, field

ToolHandler = Callable[[dict[str, object]], dict[str, object]]


@dataclass(slots=True, frozen=True)
class ToolDispatchError(Exception):
    """A tool failure that maps onto one error envelope code."""

    code: str
    message: str

    def __str__(self) -> str:
        return self.message


@dataclass(slots=True)
class ToolRegistry:
    """Handlers by name, kept in registration order."""

    _handlers: dict[str, ToolHandler] = field(default_factory=dict)
    _descriptions: dict[str, str] = field(default_factory=dict)

    def register(self, name: str, handler: ToolHandler, description: str = "") -> None:
        self._handlers[name] = handler
        self._descriptions[name] = description

    def get(self, name: str) -> ToolHandler | None:
        return self._handlers.get(name)

    def names(self) -> tuple[str, ...]:
        return tuple(self._handlers.keys())

    def describe(self) -> list[dict[str, str]]:
        """Return ``{name, description}`` for every tool, in registration order."""
        return [
            {"name": name, "description": self._descriptions.get(name, "")}
            for name in self._handlers
        ]

    def dispatch(self, name: str, arguments: dict[str, object]) -> dict[str, object]:
        """Call the handler registered under ``name``."""
        handler = self.get(name)
        if handler is None:
            raise ToolDispatchError(code="UNKNOWN_TOOL", message=f"Unknown tool: {name}")
        return handler(arguments)
