"""Test the document and file generation handlers end to end."""

import asyncio
import json

import pytest

from buildgraph.context import BuilderContext
from buildgraph.errors import BuildAbortedError, CycleError, MissingConfigurationError
from buildgraph.events import EventBus
from buildgraph.handlers import DocumentHandler, FileGenerationHandler
from buildgraph.models import BuildNode, FileGenerationResult
from buildgraph.registry import NodeRegistry
from buildgraph.virtual_dir import VirtualDirectory


MANIFEST = {
    "files": {
        "src/main.tsx": {"dependsOn": ["./App", "./index.css"]},
        "src/App.tsx": {"dependsOn": ["./components/Nav"]},
        "src/components/Nav.tsx": {"dependsOn": []},
        "src/index.css": {"dependsOn": []},
    }
}


class FileModel:
    def __init__(self, always_fail=()):
        self.always_fail = set(always_fail)
        self.requests = []

    async def __call__(self, request):
        self.requests.append(request)
        content = request.to_messages()[-1]["content"]
        if "content of " in content:
            path = content.rsplit("content of ", 1)[1].rstrip(".")
            if path in self.always_fail:
                raise RuntimeError(f"cannot write {path}")
            return f"<GENERATE>// {path}</GENERATE>"
        return "```markdown\n# Architecture\nReact + Vite\n```"


def file_registry(manifest=MANIFEST, **files_config):
    registry = NodeRegistry()
    registry.register(BuildNode(id="op:ARCH", output_type=str), DocumentHandler("Design {projectName}", purpose="architecture"))
    registry.register(BuildNode(id="op:MANIFEST", output_type=dict), lambda ctx: manifest)
    registry.register(
        BuildNode(id="op:FILES", requires=["op:ARCH", "op:MANIFEST"], config=files_config, output_type=FileGenerationResult),
        FileGenerationHandler(manifest_node="op:MANIFEST", context_nodes=["op:ARCH"]),
    )
    return registry


def run(context):
    return asyncio.run(context.execute())


def test_document_handler_formats_prompt_and_strips_fences():
    registry = NodeRegistry()
    registry.register(BuildNode(id="op:IDEA"), lambda ctx: "a todo app")
    registry.register(
        BuildNode(id="op:PRD", requires=["op:IDEA"]),
        DocumentHandler("Write a PRD for {projectName}: {op_IDEA}", inputs=["op:IDEA"]),
    )
    prompts = []

    async def model(request):
        prompts.append(request.prompt)
        return "```\n# PRD\n```"

    report = run(BuilderContext(registry, global_context={"projectName": "Todo"}, model=model))

    assert prompts == ["Write a PRD for Todo: a todo app"]
    assert report.results["op:PRD"].data == "# PRD"


def test_document_handler_missing_value():
    registry = NodeRegistry()
    registry.register(BuildNode(id="op:PRD"), DocumentHandler("Write a PRD for {projectName}"))

    context = BuilderContext(registry, model=FileModel())

    with pytest.raises(MissingConfigurationError):
        run(context)
    assert context.state.failed == {"op:PRD"}


def test_file_generation_end_to_end(tmp_path):
    model = FileModel()
    vdir = VirtualDirectory.from_paths(MANIFEST["files"])
    context = BuilderContext(
        file_registry(),
        global_context={"projectName": "Todo", "project_path": str(tmp_path), "retry_delay": 0},
        model=model,
        virtual_directory=vdir,
    )

    report = run(context)

    assert report.success
    assert report.failed_files == []
    result = report.results["op:FILES"].data
    assert result.layers == [
        ["src/components/Nav.tsx", "src/index.css"],
        ["src/App.tsx"],
        ["src/main.tsx"],
    ]
    assert result.invalid_files == []
    assert (tmp_path / "src/main.tsx").read_text() == "// src/main.tsx"
    assert (tmp_path / "src/index.css").read_text() == "// src/index.css"

    nav_request = next(r for r in model.requests if r.messages and "content of src/components/Nav.tsx" in r.messages[-1]["content"])
    assert nav_request.messages[1]["content"].startswith("**op:ARCH**\n# Architecture")


def test_file_generation_writes_failure_report(tmp_path):
    model = FileModel(always_fail={"src/index.css"})
    reports = tmp_path / "reports"
    context = BuilderContext(
        file_registry(max_retries=2, failure_report_dir=str(reports)),
        global_context={"projectName": "Todo", "project_path": str(tmp_path / "out"), "retry_delay": 0},
        model=model,
    )

    report = run(context)

    # the node completes; unresolved files are reported, not raised
    assert report.success
    assert report.failed_files == ["src/index.css"]
    assert (tmp_path / "out/src/main.tsx").exists()
    assert sorted(p.name for p in reports.iterdir()) == [
        "failed-files-attempt-1.json",
        "failed-files-attempt-2.json",
        "failed-files.json",
    ]
    summary = json.loads((reports / "failed-files.json").read_text())
    assert [e["file"] for e in summary] == ["src/index.css"]


def test_file_generation_cycle_aborts_the_build(tmp_path):
    cyclic = {"files": {"x.ts": {"dependsOn": ["y"]}, "y.ts": {"dependsOn": ["x"]}}}
    registry = file_registry(cyclic)
    ran = []
    registry.register(BuildNode(id="op:README"), lambda ctx: ran.append("op:README"))
    bus = EventBus()
    context = BuilderContext(
        registry,
        global_context={"projectName": "Todo", "project_path": str(tmp_path)},
        model=FileModel(),
        event_bus=bus,
    )

    with pytest.raises(CycleError):
        run(context)

    assert ran == []
    assert context.state.failed == {"op:FILES"}
    assert context.state.skipped == {"op:README"}
    assert context.state.completed == {"op:ARCH", "op:MANIFEST"}
    assert isinstance(context.results["op:FILES"].error, CycleError)
    assert isinstance(context.results["op:README"].error, BuildAbortedError)
    assert bus.of_type("build.aborted")[0].data["node"] == "op:FILES"
    assert not bus.of_type("build.finished")
    assert list(tmp_path.iterdir()) == []


def test_file_generation_needs_project_path():
    context = BuilderContext(file_registry(), global_context={"projectName": "Todo"}, model=FileModel())
    with pytest.raises(MissingConfigurationError):
        run(context)
    assert context.state.failed == {"op:FILES"}


def test_ordinary_handler_errors_do_not_abort():
    registry = NodeRegistry()
    registry.register(BuildNode(id="op:FLAKY"), lambda ctx: 1 / 0)
    registry.register(BuildNode(id="op:README"), lambda ctx: "ok")

    report = run(BuilderContext(registry, model=FileModel()))

    assert report.failed_nodes == ["op:FLAKY"]
    assert report.results["op:README"].data == "ok"
