"""File persistence with bounded retry-with-delay."""

from __future__ import annotations

import asyncio
import logging
import os
import uuid
from pathlib import Path
from typing import Awaitable, Callable, TypeVar

from buildgraph.config import MAX_RETRIES, RETRY_DELAY
from buildgraph.virtual_dir import normalize_path

logger = logging.getLogger(__name__)

T = TypeVar("T")


async def with_retries(
    operation: Callable[[], Awaitable[T]],
    max_retries: int = MAX_RETRIES,
    delay: float = RETRY_DELAY,
    description: str = "operation",
) -> T:
    """Await `operation` up to `max_retries` times, sleeping `delay` seconds between attempts.

    Only OSError is retried; the last one is re-raised.
    """
    if max_retries < 1:
        raise ValueError("max_retries must be at least 1")

    attempt = 1
    while True:
        try:
            return await operation()
        except OSError as e:
            logger.debug(f"{description} failed (attempt {attempt}/{max_retries}): {e}")
            if attempt >= max_retries:
                raise
        await asyncio.sleep(delay)
        attempt += 1


async def read_file_with_retries(path: Path, max_retries: int = MAX_RETRIES, delay: float = RETRY_DELAY) -> str:
    return await with_retries(
        lambda: asyncio.to_thread(path.read_text, encoding="utf-8"),
        max_retries,
        delay,
        f"read {path}",
    )


def _write(path: Path, content: str):
    """Write through a temp file in the same directory so readers never see a partial file."""
    path.parent.mkdir(parents=True, exist_ok=True)
    tmp = path.with_name(f".{path.name}.{uuid.uuid4().hex[:8]}.tmp")
    try:
        tmp.write_text(content, encoding="utf-8")
        os.replace(tmp, path)
    finally:
        tmp.unlink(missing_ok=True)


async def write_file_with_retries(
    path: Path, content: str, max_retries: int = MAX_RETRIES, delay: float = RETRY_DELAY
) -> None:
    await with_retries(
        lambda: asyncio.to_thread(_write, path, content),
        max_retries,
        delay,
        f"write {path}",
    )
    logger.debug(f"File created: {path}")


class FileStore:
    """Reads and writes project files under a root directory."""

    def __init__(self, root: Path, max_retries: int = MAX_RETRIES, delay: float = RETRY_DELAY):
        if max_retries < 1:
            raise ValueError("max_retries must be at least 1")
        self.root = Path(root)
        self.max_retries = max_retries
        self.delay = delay

    def resolve_path(self, path: str) -> Path:
        """Resolve a project-relative path against the root."""
        root = self.root.resolve()
        resolved = (root / normalize_path(path)).resolve()
        if resolved != root and root not in resolved.parents:
            raise PermissionError(f"Path escapes project root: {path}")
        return resolved

    async def read_file(self, path: str) -> str:
        return await read_file_with_retries(self.resolve_path(path), self.max_retries, self.delay)

    async def write_file(self, path: str, content: str) -> None:
        await write_file_with_retries(self.resolve_path(path), content, self.max_retries, self.delay)

    def exists(self, path: str) -> bool:
        return self.resolve_path(path).is_file()
