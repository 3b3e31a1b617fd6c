"""Test file persistence with retries."""

import asyncio

import pytest

from buildgraph.files import storage
from buildgraph.files.storage import FileStore, with_retries


def test_write_then_read(tmp_path):
    store = FileStore(tmp_path, delay=0)
    asyncio.run(store.write_file("src/components/Nav.tsx", "export {}"))

    assert (tmp_path / "src/components/Nav.tsx").read_text() == "export {}"
    assert store.exists("./src/components/Nav.tsx")
    assert asyncio.run(store.read_file("src/components/Nav.tsx")) == "export {}"


def test_paths_cannot_escape_root(tmp_path):
    store = FileStore(tmp_path / "project", delay=0)
    with pytest.raises(PermissionError):
        store.resolve_path("../outside.ts")


def test_missing_file_fails_after_all_attempts(tmp_path):
    store = FileStore(tmp_path, max_retries=2, delay=0)
    with pytest.raises(FileNotFoundError):
        asyncio.run(store.read_file("nope.ts"))


def test_with_retries_recovers_from_transient_errors():
    attempts = []

    async def flaky():
        attempts.append(1)
        if len(attempts) < 3:
            raise OSError("busy")
        return "ok"

    assert asyncio.run(with_retries(flaky, max_retries=3, delay=0)) == "ok"
    assert len(attempts) == 3


def test_with_retries_does_not_retry_other_errors():
    attempts = []

    async def broken():
        attempts.append(1)
        raise ValueError("bad")

    with pytest.raises(ValueError):
        asyncio.run(with_retries(broken, max_retries=3, delay=0))
    assert len(attempts) == 1


def test_write_retries_transient_failures(tmp_path, monkeypatch):
    calls = []
    real_write = storage._write

    def flaky_write(path, content):
        calls.append(path)
        if len(calls) == 1:
            raise OSError("disk busy")
        real_write(path, content)

    monkeypatch.setattr(storage, "_write", flaky_write)
    asyncio.run(FileStore(tmp_path, delay=0).write_file("a.ts", "x"))

    assert len(calls) == 2
    assert (tmp_path / "a.ts").read_text() == "x"


def test_with_retries_needs_at_least_one_attempt(tmp_path):
    async def never_called():
        raise AssertionError("should not run")

    with pytest.raises(ValueError):
        asyncio.run(with_retries(never_called, max_retries=0))
    with pytest.raises(ValueError):
        asyncio.run(storage.read_file_with_retries(tmp_path / "a.ts", max_retries=0))


def test_write_leaves_no_temp_files(tmp_path):
    store = FileStore(tmp_path, delay=0)
    asyncio.run(store.write_file("src/a.ts", "first"))
    asyncio.run(store.write_file("src/a.ts", "second"))

    assert [p.name for p in (tmp_path / "src").iterdir()] == ["a.ts"]
    assert (tmp_path / "src/a.ts").read_text() == "second"


def test_failed_write_keeps_previous_content(tmp_path, monkeypatch):
    target = tmp_path / "a.ts"
    target.write_text("old")

    def failing_replace(src, dst):
        raise OSError("rename failed")

    monkeypatch.setattr(storage.os, "replace", failing_replace)
    with pytest.raises(OSError):
        asyncio.run(FileStore(tmp_path, max_retries=1, delay=0).write_file("a.ts", "new"))

    assert target.read_text() == "old"
    assert [p.name for p in tmp_path.iterdir()] == ["a.ts"]
