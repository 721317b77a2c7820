"""Structured logging utilities."""

from .events import EventRecord, JsonlEventLogger, summarize_tool_arguments, utc_timestamp

__all__ = ["EventRecord", "JsonlEventLogger", "summarize_tool_arguments", "utc_timestamp"]
