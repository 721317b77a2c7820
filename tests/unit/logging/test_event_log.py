from __future__ import annotations

import json
from pathlib import Path

from assetman.logging import EventRecord, JsonlEventLogger, summarize_tool_arguments, utc_timestamp


def _record(timestamp: str, name: str = "assets.path") -> EventRecord:
    return EventRecord(
        timestamp=timestamp, kind="request", name=name, ok=True, message=None, metadata={}
    )


def test_append_writes_one_sorted_json_object_per_line(tmp_path: Path) -> None:
    logger = JsonlEventLogger(path=tmp_path / "nested" / "events.jsonl")
    logger.append(_record("2024-01-01T00:00:00.000Z"))

    lines = logger.path.read_text(encoding="utf-8").splitlines()

    assert len(lines) == 1
    assert list(json.loads(lines[0]).keys()) == [
        "kind",
        "message",
        "metadata",
        "name",
        "ok",
        "timestamp",
    ]


def test_read_filters_by_since_and_keeps_latest(tmp_path: Path) -> None:
    logger = JsonlEventLogger(path=tmp_path / "events.jsonl")
    for index in range(5):
        logger.append(_record(f"2024-01-0{index + 1}T00:00:00.000Z", name=f"t{index}"))

    assert [entry["name"] for entry in logger.read(limit=2)] == ["t3", "t4"]
    since = logger.read(since="2024-01-03T00:00:00.000Z")
    assert [entry["name"] for entry in since] == ["t2", "t3", "t4"]
    assert logger.read(limit=0) == []


def test_read_skips_corrupt_lines_and_missing_file(tmp_path: Path) -> None:
    logger = JsonlEventLogger(path=tmp_path / "events.jsonl")
    assert logger.read() == []

    logger.append(_record("2024-01-01T00:00:00.000Z"))
    with logger.path.open("a", encoding="utf-8") as handle:
        handle.write("{broken\n\n")

    assert len(logger.read()) == 1


def test_utc_timestamp_has_millisecond_precision() -> None:
    stamp = utc_timestamp()

    assert stamp.endswith("Z")
    assert len(stamp.split(".")[1]) == 4


def test_read_filters_by_kind(tmp_path: Path) -> None:
    logger = JsonlEventLogger(path=tmp_path / "events.jsonl")
    logger.append(_record("2024-01-01T00:00:00.000Z", name="assets.path"))
    logger.append(
        EventRecord(
            timestamp="2024-01-02T00:00:00.000Z",
            kind="compile",
            name="asset-0ba082-respond.js",
            ok=True,
            message=None,
            metadata={"asset_count": 1},
        )
    )

    compiles = logger.read(kind="compile")

    assert [entry["name"] for entry in compiles] == ["asset-0ba082-respond.js"]
    assert logger.read(kind="hash") == []


def test_read_skips_lines_that_are_not_objects(tmp_path: Path) -> None:
    logger = JsonlEventLogger(path=tmp_path / "events.jsonl")
    logger.path.write_text('[1, 2]\n"text"\n', encoding="utf-8")
    logger.append(_record("2024-01-01T00:00:00.000Z"))

    assert [entry["name"] for entry in logger.read()] == ["assets.path"]


def test_tool_arguments_keep_identifiers_and_reduce_options() -> None:
    summary = summarize_tool_arguments(
        {
            "identifier": "app.js",
            "force": True,
            "options": {"include": ["*.js", "vendor/**"], "attributes": {"nonce": "s3cret"}},
            "payload": "x" * 10,
        }
    )

    assert summary == {
        "force": True,
        "identifier": "app.js",
        "include_count": 2,
        "option_names": ["attributes", "include"],
        "payload_type": "str",
    }


def test_single_include_pattern_counts_once() -> None:
    summary = summarize_tool_arguments({"options": {"include": "*.css"}, "path": "/a.css"})

    assert summary == {"include_count": 1, "option_names": ["include"], "path": "/a.css"}
