"""Test core data structures."""

import dataclasses
import json

import pytest

from buildgraph.models import (
    BuildNode,
    BuildReport,
    ExecutionState,
    FailureEntry,
    FailureReport,
    FileGenerationResult,
    GenerationOutcome,
    GenerationRequest,
    NodeResult,
)
from buildgraph.utils import generate_id


def test_generate_id():
    id1 = generate_id()
    id2 = generate_id()
    assert len(id1) == 12
    assert id1 != id2


def test_build_node_defaults():
    node = BuildNode(id="op:PRD")
    assert node.name == "op:PRD"
    assert node.requires == []
    assert node.config == {}
    assert node.to_dict()["id"] == "op:PRD"


def test_node_result_is_immutable():
    result = NodeResult(success=True, data="x")
    with pytest.raises(dataclasses.FrozenInstanceError):
        result.data = "y"


def test_execution_state_moves():
    state = ExecutionState()
    state.move("a", "waiting")
    state.move("b", "waiting")
    assert not state.finished

    state.move("a", "pending")
    state.move("a", "completed")
    state.move("b", "skipped")

    assert state.status_of("a") == "completed"
    assert state.waiting == set() and state.pending == set()
    assert state.finished
    assert state.to_dict()["skipped"] == ["b"]
    assert state.status_of("ghost") is None

    with pytest.raises(ValueError):
        state.move("a", "running")


def test_generation_request_messages():
    assert GenerationRequest(model="m", prompt="hi").to_messages() == [{"role": "user", "content": "hi"}]
    messages = [{"role": "system", "content": "s"}]
    assert GenerationRequest(model="m", messages=messages).to_messages() == messages


def _entry(path, attempt, layer=0):
    outcome = GenerationOutcome(
        file_path=path,
        attempt=attempt,
        success=False,
        error=RuntimeError("nope"),
        request=GenerationRequest(model="m", prompt=f"write {path}"),
        raw="",
    )
    return FailureEntry.from_outcome(outcome, layer)


def test_failure_entry_from_outcome():
    entry = _entry("a.ts", 2, layer=1)
    assert entry.error == "nope"
    assert entry.error_type == "RuntimeError"
    assert entry.request["prompt"] == "write a.ts"
    assert entry.to_dict()["file"] == "a.ts"


def test_failure_report_write(tmp_path):
    report = FailureReport()
    report.record(_entry("a.ts", 1))
    report.record(_entry("b.ts", 1))
    report.record(_entry("b.ts", 2))
    last = _entry("b.ts", 3)
    report.record(last)
    report.give_up(last)

    assert len(report) == 1
    assert not report.is_empty()
    assert sorted(report.attempts()) == [1, 2, 3]

    written = report.write(tmp_path / "reports")
    assert [p.name for p in written] == [
        "failed-files-attempt-1.json",
        "failed-files-attempt-2.json",
        "failed-files-attempt-3.json",
        "failed-files.json",
    ]
    first = json.loads(written[0].read_text())
    assert [e["file"] for e in first] == ["a.ts", "b.ts"]
    summary = json.loads(written[-1].read_text())
    assert summary[0]["file"] == "b.ts" and summary[0]["attempt"] == 3


def test_build_report_collects_failed_files():
    files = FileGenerationResult(layers=[["a.ts", "b.ts"]], generated=["a.ts"])
    files.report.give_up(_entry("b.ts", 3))

    state = ExecutionState()
    state.move("op:FILE", "completed")
    report = BuildReport(results={"op:FILE": NodeResult(success=True, data=files)}, state=state)

    assert report.success
    assert report.failed_files == ["b.ts"]
    assert not files.success
    assert report.to_dict()["failed_files"] == ["b.ts"]
