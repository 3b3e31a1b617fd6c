"""Layered concurrent file generation with per-file retry."""

from __future__ import annotations

import asyncio
import logging
from typing import Awaitable, Callable, Sequence

from buildgraph.config import DEFAULT_MODEL, MAX_RETRIES, RETRY_DELAY
from buildgraph.errors import EmptyGenerationError, GenerationError, GraphInvariantError
from buildgraph.events import EventBus
from buildgraph.files.storage import FileStore
from buildgraph.models import (
    FailureEntry,
    FailureReport,
    FileGenerationResult,
    FilePlan,
    GenerationOutcome,
    GenerationRequest,
    ResolvedFileGraph,
)
from buildgraph.prompts import format_dependencies, template_for
from buildgraph.utils import format_response

logger = logging.getLogger(__name__)

# The external "generate text from a request" capability
TextGenerator = Callable[[GenerationRequest], Awaitable[str]]


class LayeredFileGenerator:
    """Generates every file of a plan, layer by layer.

    Files of one layer run concurrently; a layer starts only after every file
    of the previous layer succeeded or exhausted its retries. Failed files are
    retried as a subset after `retry_delay` seconds, for at most `max_retries`
    attempts in total, then recorded as unresolved in the failure report.

    `task_timeout` cancels the awaiting attempt, not a write already handed to
    a worker thread, so a timed-out file may still land on disk. Writes are
    atomic renames, so a later layer reads either the whole file or nothing.
    """

    def __init__(
        self,
        generate: TextGenerator,
        store: FileStore,
        model: str = DEFAULT_MODEL,
        max_retries: int = MAX_RETRIES,
        retry_delay: float = RETRY_DELAY,
        max_concurrency: int | None = None,
        task_timeout: float | None = None,
        context_messages: Sequence[dict] = (),
        postprocess: Callable[[str], str] = format_response,
        event_bus: EventBus | None = None,
        source: str = "files",
    ):
        if max_retries < 1:
            raise ValueError("max_retries must be at least 1")
        self.generate = generate
        self.store = store
        self.model = model
        self.max_retries = max_retries
        self.retry_delay = retry_delay
        self.max_concurrency = max_concurrency or None
        self.task_timeout = task_timeout or None
        self.context_messages = list(context_messages)
        self.postprocess = postprocess
        self.event_bus = event_bus
        self.source = source
        self._semaphore: asyncio.Semaphore | None = None

    async def run(self, plan: FilePlan) -> FileGenerationResult:
        result = FileGenerationResult(layers=plan.layers, invalid_files=list(plan.invalid_files))
        self._semaphore = asyncio.Semaphore(self.max_concurrency) if self.max_concurrency else None

        for index, layer in enumerate(plan.layers):
            self._check_layer(layer, plan.graph)
            generated = await self._run_layer(index, layer, plan.graph, result.report)
            result.generated.extend(generated)

        if result.failed_files:
            logger.error(f"{len(result.failed_files)} file(s) could not be generated: {result.failed_files}")
        else:
            logger.info(f"Generated {len(result.generated)} file(s) in {len(plan.layers)} layer(s)")
        return result

    def _check_layer(self, layer: list[str], graph: ResolvedFileGraph):
        members = set(layer)
        for file_path in layer:
            same_layer = members.intersection(graph.depends_on(file_path))
            if same_layer:
                raise GraphInvariantError(
                    f"'{file_path}' depends on {sorted(same_layer)} within the same concurrency layer"
                )

    def _emit(self, event_type: str, **data):
        if self.event_bus:
            self.event_bus.emit(event_type, self.source, **data)

    async def _run_layer(
        self, index: int, layer: list[str], graph: ResolvedFileGraph, report: FailureReport
    ) -> list[str]:
        logger.info(f"==== Concurrency Layer #{index + 1} ==== Files: [{', '.join(layer)}]")
        self._emit("layer.started", layer=index, files=layer)

        generated: list[str] = []
        remaining = list(layer)
        for attempt in range(1, self.max_retries + 1):
            outcomes = await asyncio.gather(*(self._attempt(f, graph, attempt) for f in remaining))

            failed: list[FailureEntry] = []
            for outcome in outcomes:
                if outcome.success:
                    generated.append(outcome.file_path)
                    self._emit("file.generated", file=outcome.file_path, layer=index, attempt=attempt)
                    continue
                entry = FailureEntry.from_outcome(outcome, index)
                report.record(entry)
                failed.append(entry)
                self._emit("file.failed", file=outcome.file_path, layer=index, attempt=attempt, error=entry.error)

            if not failed:
                break

            remaining = [entry.file_path for entry in failed]
            if attempt < self.max_retries:
                logger.warning(f"Retrying failed files: {', '.join(remaining)} (attempt #{attempt})")
                await asyncio.sleep(self.retry_delay)
            else:
                for entry in failed:
                    report.give_up(entry)
                logger.error(
                    f"Giving up on {', '.join(remaining)} after {self.max_retries} attempts (layer #{index + 1})"
                )

        self._emit("layer.finished", layer=index, generated=len(generated))
        logger.info(f"==== Finished concurrency layer #{index + 1} ====")
        return generated

    async def _attempt(self, file_path: str, graph: ResolvedFileGraph, attempt: int) -> GenerationOutcome:
        if self._semaphore is None:
            return await self._guarded(file_path, graph, attempt)
        async with self._semaphore:
            return await self._guarded(file_path, graph, attempt)

    async def _guarded(self, file_path: str, graph: ResolvedFileGraph, attempt: int) -> GenerationOutcome:
        """One attempt for one file. Never raises except on cancellation."""
        outcome = GenerationOutcome(file_path=file_path, attempt=attempt, success=False)
        logger.info(f"Generating {file_path} (attempt {attempt}/{self.max_retries})")
        try:
            if self.task_timeout:
                await asyncio.wait_for(self._generate_file(outcome, graph), self.task_timeout)
            else:
                await self._generate_file(outcome, graph)
            outcome.success = True
        except TimeoutError:
            outcome.error = GenerationError(f"Generation of {file_path} timed out after {self.task_timeout}s")
            logger.warning(str(outcome.error))
        except Exception as e:
            outcome.error = e
            logger.warning(f"Error generating {file_path} (attempt {attempt}/{self.max_retries}): {e}")
        return outcome

    async def _generate_file(self, outcome: GenerationOutcome, graph: ResolvedFileGraph):
        file_path = outcome.file_path
        deps = graph.depends_on(file_path)
        contents = await self._read_dependencies(file_path, deps)

        outcome.request = self.build_request(file_path, deps, contents)
        outcome.raw = await self.generate(outcome.request)
        if not outcome.raw or not outcome.raw.strip():
            raise EmptyGenerationError(file_path)

        content = self.postprocess(outcome.raw)
        if not content.strip():
            raise EmptyGenerationError(file_path)
        outcome.content = content

        await self.store.write_file(file_path, content)

    async def _read_dependencies(self, file_path: str, deps: list[str]) -> dict[str, str]:
        contents: dict[str, str] = {}
        for dep in deps:
            try:
                contents[dep] = await self.store.read_file(dep)
            except OSError as e:
                logger.warning(f"Failed to read dependency '{dep}' for '{file_path}': {e}")
        return contents

    def build_request(self, file_path: str, deps: list[str], contents: dict[str, str]) -> GenerationRequest:
        template = template_for(file_path)
        messages = [{"role": "system", "content": template.render(file_path, deps)}]
        messages.extend(self.context_messages)
        messages.append({
            "role": "user",
            "content": (
                f"Dependencies:\n\n{format_dependencies(contents)}\n\n"
                f"Now provide the content of {file_path}."
            ),
        })
        return GenerationRequest(model=self.model, messages=messages)
