"""Test dependency resolution, graph building and virtual directory validation."""

import pytest

from buildgraph.errors import CycleError, InvalidFilesError
from buildgraph.files.graph import build_dependency_graph, resolve_dependency, validate_against_virtual_directory
from buildgraph.files.manifest import parse_manifest
from buildgraph.files.planner import plan_file_generation
from buildgraph.virtual_dir import VirtualDirectory


def test_resolve_relative_to_dependent_directory():
    assert resolve_dependency("src/pages/Home.tsx", "../components/Card.tsx") == "src/components/Card.tsx"
    assert resolve_dependency("src/App.tsx", "./index.css") == "src/index.css"
    assert resolve_dependency("src\\App.tsx", ".\\utils\\api.ts") == "src/utils/api.ts"


def test_resolve_without_extension_appends_entry_file():
    assert resolve_dependency("src/App.tsx", "./components") == "src/components/index.ts"
    assert resolve_dependency("src/App.tsx", "./components", entry_file="index.tsx") == "src/components/index.tsx"


def test_resolve_without_extension_prefers_known_files():
    candidates = {"src/components/Nav.tsx", "src/utils/api.ts"}
    assert resolve_dependency("src/App.tsx", "./components/Nav", candidates) == "src/components/Nav.tsx"
    assert resolve_dependency("src/App.tsx", "./utils/api", candidates) == "src/utils/api.ts"
    assert resolve_dependency("src/App.tsx", "./hooks", candidates) == "src/hooks/index.ts"


def test_resolution_is_deterministic():
    candidates = {"a.ts", "lib/b.ts"}
    first = resolve_dependency("lib/c.ts", "./b", candidates)
    for _ in range(5):
        assert resolve_dependency("lib/c.ts", "./b", candidates) == first


def test_graph_records_dependencies_and_new_nodes():
    manifest = parse_manifest({
        "files": {
            "src/App.tsx": {"dependsOn": ["./components/Nav", "./lib", "./components/Nav"]},
            "src/components/Nav.tsx": {"dependsOn": []},
        }
    })
    graph = build_dependency_graph(manifest)
    assert graph.depends_on("src/App.tsx") == ["src/components/Nav.tsx", "src/lib/index.ts"]
    assert graph.nodes == {"src/App.tsx", "src/components/Nav.tsx", "src/lib/index.ts"}
    assert ("src/lib/index.ts", "src/App.tsx") in graph.edges
    for dep, dependent in graph.edges:
        assert dep in graph.nodes and dependent in graph.nodes


def test_self_dependency_is_a_one_node_cycle():
    manifest = parse_manifest({"files": {"a.ts": {"dependsOn": ["./a"]}}})
    with pytest.raises(CycleError) as err:
        build_dependency_graph(manifest)
    assert err.value.nodes == ["a.ts"]
    assert err.value.cycle == ["a.ts", "a.ts"]


def test_validate_reports_unknown_files_without_removing_them():
    vdir = VirtualDirectory.from_paths(["src/a.ts", "src/b.ts"])
    invalid = validate_against_virtual_directory({"src/a.ts", "src/b.ts", "src/missing/index.ts"}, vdir)
    assert invalid == ["src/missing/index.ts"]


def test_plan_keeps_invalid_files_unless_strict():
    manifest = {
        "files": {
            "src/a.ts": {"dependsOn": []},
            "src/b.ts": {"dependsOn": ["./a", "./missing"]},
        }
    }
    vdir = VirtualDirectory.from_paths(["src/a.ts", "src/b.ts"])

    plan = plan_file_generation(manifest, vdir)
    assert plan.invalid_files == ["src/missing/index.ts"]
    assert plan.layer_of("src/missing/index.ts") == 0
    assert plan.layer_of("src/b.ts") == 1

    with pytest.raises(InvalidFilesError) as err:
        plan_file_generation(manifest, vdir, strict=True)
    assert err.value.invalid_files == ["src/missing/index.ts"]


def test_plan_resolves_against_virtual_directory_files():
    manifest = {"files": {"src/App.tsx": {"dependsOn": ["./theme"]}}}
    vdir = VirtualDirectory.from_paths(["src/App.tsx", "src/theme.ts"])
    plan = plan_file_generation(manifest, vdir)
    assert plan.graph.depends_on("src/App.tsx") == ["src/theme.ts"]
    assert plan.invalid_files == []
    assert plan.sorted_files == ["src/theme.ts", "src/App.tsx"]
