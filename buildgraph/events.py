"""Build event log: append-only, optionally persisted as JSONL, with live subscribers."""

from __future__ import annotations

import asyncio
import json
import logging
from pathlib import Path

from buildgraph.models import Event

logger = logging.getLogger(__name__)


class EventBus:
    def __init__(self, log_file: Path | None = None):
        self._log_file = log_file
        self._subscribers: list[asyncio.Queue] = []
        self._history: list[Event] = []

        if log_file:
            log_file.parent.mkdir(parents=True, exist_ok=True)

    def emit(self, type: str, source: str, **data) -> Event:
        event = Event(type=type, source=source, data=data)
        self._history.append(event)
        if self._log_file:
            with open(self._log_file, "a", encoding="utf-8") as f:
                f.write(json.dumps(event.to_dict(), default=str) + "\n")
        for q in self._subscribers:
            try:
                q.put_nowait(event)
            except asyncio.QueueFull:
                logger.warning(f"Dropping event {event.type} for a slow subscriber")
        logger.debug(f"Event: {event.type} [{source}] {data}")
        return event

    def recent(self, limit: int = 50) -> list[Event]:
        return self._history[-limit:] if limit > 0 else []

    def of_type(self, type: str) -> list[Event]:
        """Events whose type equals `type` or, for a prefix like 'file.', starts with it."""
        if type.endswith("."):
            return [e for e in self._history if e.type.startswith(type)]
        return [e for e in self._history if e.type == type]

    def subscribe(self, maxsize: int = 1000) -> asyncio.Queue:
        q: asyncio.Queue = asyncio.Queue(maxsize=maxsize)
        self._subscribers.append(q)
        return q

    def unsubscribe(self, q: asyncio.Queue):
        if q in self._subscribers:
            self._subscribers.remove(q)

    def __len__(self) -> int:
        return len(self._history)
