from __future__ import annotations

import io
import json
from pathlib import Path

from assetman.config import ConfigOverrides
from assetman.server import create_server, main


def _request(request_id: str, method: str, params: dict[str, object]) -> str:
    return json.dumps({"id": request_id, "method": method, "params": params})


def test_stdio_server_routes_multiple_requests(simple_assets: Path) -> None:
    server = create_server(
        asset_dir=str(simple_assets), overrides=ConfigOverrides(hash_length=6)
    )
    in_stream = io.StringIO(
        "\n".join(
            [
                _request("req-1", "assets.path", {"identifier": "jquery.js"}),
                _request(
                    "req-2",
                    "tools/call",
                    {"name": "assets.serve", "arguments": {"path": "/asset-82470a-jquery.js"}},
                ),
                "",
                _request("req-3", "assets.status", {}),
            ]
        )
        + "\n"
    )
    out_stream = io.StringIO()

    server.serve(in_stream=in_stream, out_stream=out_stream)
    lines = [json.loads(line) for line in out_stream.getvalue().splitlines() if line]

    assert [line["request_id"] for line in lines] == ["req-1", "req-2", "req-3"]
    assert all(line["ok"] is True for line in lines)
    assert lines[0]["result"] == {"identifier": "jquery.js", "path": "/asset-82470a-jquery.js"}
    assert lines[1]["result"] == {
        "path": "/asset-82470a-jquery.js",
        "found": True,
        "file": "asset-82470a-jquery.js",
    }
    assert lines[2]["result"]["compiled_asset_count"] == 1
    assert (simple_assets / "asset-82470a-jquery.js").exists()


def test_every_request_is_logged(simple_assets: Path) -> None:
    server = create_server(asset_dir=str(simple_assets))
    server.handle_payload({"id": "req-100", "method": "assets.status", "params": {}})
    server.handle_json_line("{nope")

    log_path = simple_assets / ".assetman" / "events.jsonl"
    events = [json.loads(line) for line in log_path.read_text(encoding="utf-8").splitlines()]
    requests = [event for event in events if event["kind"] == "request"]

    assert [event["name"] for event in requests] == ["assets.status", "invalid_json"]
    assert requests[0]["ok"] is True
    assert requests[0]["metadata"]["request_id"] == "req-100"
    assert requests[1]["metadata"]["error_code"] == "INVALID_JSON"


def test_events_tool_reads_the_log(simple_assets: Path) -> None:
    server = create_server(asset_dir=str(simple_assets))
    server.handle_payload({"id": "a", "method": "assets.status"})
    server.handle_payload({"id": "b", "method": "assets.status"})

    response = server.handle_payload(
        {"id": "c", "method": "assets.events", "params": {"limit": 1}}
    )

    assert response["ok"] is True
    assert [entry["metadata"]["request_id"] for entry in response["result"]["entries"]] == ["b"]


def test_main_serves_stdin(simple_assets: Path, monkeypatch) -> None:
    in_stream = io.StringIO(_request("req-1", "assets.url", {"identifier": "respond.js"}) + "\n")
    out_stream = io.StringIO()
    monkeypatch.setattr("sys.stdin", in_stream)
    monkeypatch.setattr("sys.stdout", out_stream)

    exit_code = main(
        ["--asset-dir", str(simple_assets), "--hash-length", "6", "--url-prefix", "//cdn"]
    )

    response = json.loads(out_stream.getvalue())
    assert exit_code == 0
    assert response["result"]["url"] == "//cdn/asset-0ba082-respond.js"
