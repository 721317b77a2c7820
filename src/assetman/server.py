"""JSON-lines stdio server exposing the asset manager as tools."""

from __future__ import annotations

import argparse
import asyncio
import json
import sys
from dataclasses import dataclass, replace
from pathlib import Path
from typing import TextIO

from assetman.config import ConfigOverrides, ManagerConfig, load_effective_config
from assetman.logging import EventRecord, JsonlEventLogger, summarize_tool_arguments, utc_timestamp
from assetman.manager import EVENT_LOG_FILENAME, AssetManager
from assetman.pipeline import CompilationError
from assetman.security import PathBlockedError
from assetman.tools.builtin import register_builtin_tools
from assetman.tools.registry import ToolDispatchError, ToolRegistry


@dataclass(slots=True, frozen=True)
class Request:
    """Normalized incoming request."""

    request_id: str
    method: str
    params: dict[str, object]


def build_arg_parser() -> argparse.ArgumentParser:
    """Build argument parser for server startup configuration."""
    parser = argparse.ArgumentParser(prog="assetman")
    parser.add_argument("--asset-dir", required=False, default=".")
    parser.add_argument("--data-dir", required=False, default=None)
    parser.add_argument("--asset-prefix", required=False, default=None)
    parser.add_argument("--hash-algorithm", required=False, default=None)
    parser.add_argument("--hash-length", type=int, required=False, default=None)
    parser.add_argument("--serve-prefix", required=False, default=None)
    parser.add_argument("--url-prefix", required=False, default=None)
    for flag in ("compress", "wrap-javascript", "separate-bundles", "html5"):
        parser.add_argument(f"--{flag}", choices=("true", "false"), required=False, default=None)
    return parser


class StdioServer:
    """Routes one JSON request per line to a registered tool."""

    def __init__(self, config: ManagerConfig) -> None:
        self._config = config
        self._event_logger = JsonlEventLogger(path=config.data_dir / EVENT_LOG_FILENAME)
        self._manager = AssetManager(
            config, event_logger=self._event_logger if config.event_log else None
        )
        self._registry = ToolRegistry()
        register_builtin_tools(
            self._registry,
            manager=self._manager,
            serve_path=self._serve_path,
            read_events=self._event_logger.read,
        )
        self._fallback_request_counter = 0

    @property
    def manager(self) -> AssetManager:
        return self._manager

    @property
    def registry(self) -> ToolRegistry:
        return self._registry

    def serve(self, in_stream: TextIO, out_stream: TextIO) -> None:
        """Process JSON-line requests from in_stream and write JSON-line responses.

        Requests are handled one at a time on the calling thread, so the
        directory is indexed once up front and refreshed by ``assets.reindex``
        rather than watched.
        """
        self._manager.reindex()
        for raw_line in in_stream:
            line = raw_line.strip()
            if not line:
                continue
            response = self.handle_json_line(line)
            out_stream.write(f"{json.dumps(response, sort_keys=True)}\n")
            out_stream.flush()

    def handle_json_line(self, raw_line: str) -> dict[str, object]:
        """Handle a single JSON-line request."""
        try:
            payload = json.loads(raw_line)
        except json.JSONDecodeError:
            request_id = self.next_request_id()
            response = self.error_response(
                request_id=request_id,
                code="INVALID_JSON",
                message="Request must be valid JSON.",
            )
            self.log_request(
                request_id=request_id,
                tool_name="invalid_json",
                arguments={},
                response=response,
                extra={"raw_line_length": len(raw_line)},
            )
            return response
        return self.handle_payload(payload)

    def handle_payload(self, payload: object) -> dict[str, object]:
        """Validate and dispatch a parsed payload."""
        parsed = self.parse_request(payload)
        if isinstance(parsed, dict):
            request_id_value = parsed.get("request_id")
            request_id = (
                request_id_value if isinstance(request_id_value, str) else self.next_request_id()
            )
            self.log_request(
                request_id=request_id,
                tool_name="invalid_request",
                arguments={},
                response=parsed,
            )
            return parsed

        request = parsed
        if request.method == "tools/list":
            return self.success_response(
                request_id=request.request_id, result={"tools": self._registry.describe()}
            )
        if request.method == "tools/call":
            tool_name_value = request.params.get("name")
            arguments_value = request.params.get("arguments", {})
            if not isinstance(tool_name_value, str) or not tool_name_value:
                return self.error_response(
                    request_id=request.request_id,
                    code="INVALID_PARAMS",
                    message="tools/call params.name must be a non-empty string.",
                )
            if not isinstance(arguments_value, dict):
                return self.error_response(
                    request_id=request.request_id,
                    code="INVALID_PARAMS",
                    message="tools/call params.arguments must be an object.",
                )
            tool_name = tool_name_value
            arguments = arguments_value
        else:
            tool_name = request.method
            arguments = request.params

        response = self._dispatch(request.request_id, tool_name, arguments)
        self.log_request(
            request_id=request.request_id,
            tool_name=tool_name,
            arguments=arguments,
            response=response,
        )
        return response

    def _dispatch(
        self, request_id: str, tool_name: str, arguments: dict[str, object]
    ) -> dict[str, object]:
        try:
            result = self._registry.dispatch(name=tool_name, arguments=arguments)
        except PathBlockedError as error:
            return self.blocked_response(
                request_id=request_id, reason=error.reason, hint=error.hint
            )
        except ToolDispatchError as error:
            return self.error_response(
                request_id=request_id, code=error.code, message=error.message
            )
        except CompilationError as error:
            return self.error_response(
                request_id=request_id, code="COMPILE_FAILED", message=error.message
            )
        except Exception:
            return self.error_response(
                request_id=request_id,
                code="INTERNAL_ERROR",
                message="Unhandled server error while executing tool.",
            )
        return self.success_response(request_id=request_id, result=result)

    def parse_request(self, payload: object) -> Request | dict[str, object]:
        """Validate request payload and return normalized Request."""
        if not isinstance(payload, dict):
            return self.error_response(
                request_id=self.next_request_id(),
                code="INVALID_REQUEST",
                message="Request must be an object.",
            )

        request_id = self.extract_request_id(payload.get("id"))
        method = payload.get("method")
        params = payload.get("params", {})

        if not isinstance(method, str) or not method:
            return self.error_response(
                request_id=request_id,
                code="INVALID_REQUEST",
                message="Request method must be a non-empty string.",
            )
        if not isinstance(params, dict):
            return self.error_response(
                request_id=request_id,
                code="INVALID_PARAMS",
                message="Request params must be an object.",
            )

        return Request(request_id=request_id, method=method, params=params)

    def extract_request_id(self, request_id: object) -> str:
        """Extract request ID from payload or synthesize a sequential fallback."""
        if isinstance(request_id, str) and request_id:
            return request_id
        if isinstance(request_id, int) and not isinstance(request_id, bool):
            return str(request_id)
        return self.next_request_id()

    def next_request_id(self) -> str:
        self._fallback_request_counter += 1
        return f"req-{self._fallback_request_counter:06d}"

    @staticmethod
    def success_response(request_id: str, result: dict[str, object]) -> dict[str, object]:
        """Build success envelope."""
        return {
            "request_id": request_id,
            "ok": True,
            "result": result,
            "blocked": False,
        }

    @staticmethod
    def error_response(request_id: str, code: str, message: str) -> dict[str, object]:
        """Build explicit error envelope."""
        return {
            "request_id": request_id,
            "ok": False,
            "result": {},
            "blocked": False,
            "error": {"code": code, "message": message},
        }

    @staticmethod
    def blocked_response(request_id: str, reason: str, hint: str) -> dict[str, object]:
        """Build explicit blocked envelope."""
        return {
            "request_id": request_id,
            "ok": False,
            "result": {"reason": reason, "hint": hint},
            "blocked": True,
            "error": {"code": "PATH_BLOCKED", "message": reason},
        }

    def log_request(
        self,
        request_id: str,
        tool_name: str,
        arguments: dict[str, object],
        response: dict[str, object],
        extra: dict[str, object] | None = None,
    ) -> None:
        """Append one summarized request record to the event log."""
        error_payload = response.get("error")
        message: str | None = None
        metadata = summarize_tool_arguments(arguments)
        metadata.update(extra or {})
        metadata["request_id"] = request_id
        metadata["blocked"] = bool(response.get("blocked", False))
        if isinstance(error_payload, dict):
            code_value = error_payload.get("code")
            if isinstance(code_value, str):
                metadata["error_code"] = code_value
            message_value = error_payload.get("message")
            if isinstance(message_value, str):
                message = message_value
        self._event_logger.append(
            EventRecord(
                timestamp=utc_timestamp(),
                kind="request",
                name=tool_name,
                ok=bool(response.get("ok", False)),
                message=message,
                metadata=metadata,
            )
        )

    def _serve_path(self, request_path: str) -> Path | None:
        return asyncio.run(self._manager.serve(request_path))


def create_server(
    asset_dir: str,
    data_dir: str | None = None,
    overrides: ConfigOverrides | None = None,
) -> StdioServer:
    """Create a configured stdio server instance."""
    if data_dir is not None:
        base = overrides or ConfigOverrides()
        overrides = _with_data_dir(base, Path(data_dir).resolve())
    config = load_effective_config(asset_dir=Path(asset_dir), overrides=overrides)
    return StdioServer(config=config)


def main(argv: list[str] | None = None) -> int:
    """Entrypoint for the assetman server process."""
    parser = build_arg_parser()
    args = parser.parse_args(argv)
    overrides = ConfigOverrides(
        data_dir=Path(args.data_dir).resolve() if args.data_dir is not None else None,
        asset_prefix=args.asset_prefix,
        hash_algorithm=args.hash_algorithm,
        hash_length=args.hash_length,
        serve_prefix=args.serve_prefix,
        url_prefix=args.url_prefix,
        compress=_parse_flag(args.compress),
        wrap_javascript=_parse_flag(args.wrap_javascript),
        separate_bundles=_parse_flag(args.separate_bundles),
        html5=_parse_flag(args.html5),
        event_log=True,
    )
    try:
        server = create_server(asset_dir=args.asset_dir, overrides=overrides)
    except ValueError as error:
        parser.error(str(error))
    server.serve(in_stream=sys.stdin, out_stream=sys.stdout)
    return 0


def _parse_flag(value: str | None) -> bool | None:
    if value is None:
        return None
    return value == "true"


def _with_data_dir(overrides: ConfigOverrides, data_dir: Path) -> ConfigOverrides:
    return replace(overrides, data_dir=data_dir)


if __name__ == "__main__":
    raise SystemExit(main())
