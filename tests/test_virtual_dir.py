"""Test the virtual directory."""

import pytest

from buildgraph.errors import ConfigurationError
from buildgraph.virtual_dir import VirtualDirectory, normalize_path


def test_normalize_path():
    assert normalize_path("./src/App.tsx") == "src/App.tsx"
    assert normalize_path("/src//pages/../App.tsx") == "src/App.tsx"
    assert normalize_path("src\\App.tsx") == "src/App.tsx"
    assert normalize_path("  ") == ""


def test_from_paths():
    vdir = VirtualDirectory.from_paths(["src/App.tsx", "./src/main.tsx"])
    assert vdir.is_valid_file("src/main.tsx")
    assert "./src/App.tsx" in vdir
    assert "src/Other.tsx" not in vdir
    assert len(vdir) == 2


def test_from_tree():
    vdir = VirtualDirectory.from_tree({"src": {"App.tsx": None, "components": {"Nav.tsx": None}}, "index.html": None})
    assert vdir.all_files() == {"src/App.tsx", "src/components/Nav.tsx", "index.html"}


def test_from_json_shapes():
    assert len(VirtualDirectory.from_json('["a.ts", "b.ts"]')) == 2
    assert len(VirtualDirectory.from_json('{"files": ["a.ts"]}')) == 1
    assert VirtualDirectory.from_json('{"src": {"a.ts": null}}').is_valid_file("src/a.ts")

    with pytest.raises(ConfigurationError):
        VirtualDirectory.from_json("not json")
    with pytest.raises(ConfigurationError):
        VirtualDirectory.from_json("42")
    with pytest.raises(ConfigurationError):
        VirtualDirectory.from_json('{"src": {"a.ts": 1}}')
