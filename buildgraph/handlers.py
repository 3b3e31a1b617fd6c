"""Build node handlers for the generation steps."""

from __future__ import annotations

import logging
from pathlib import Path
from typing import Any, Sequence

from buildgraph import config
from buildgraph.context import BuilderContext
from buildgraph.errors import EmptyGenerationError, MissingConfigurationError
from buildgraph.files.generator import LayeredFileGenerator
from buildgraph.files.planner import plan_file_generation
from buildgraph.files.storage import FileStore
from buildgraph.models import FileGenerationResult
from buildgraph.utils import remove_code_block_fences

logger = logging.getLogger(__name__)


class DocumentHandler:
    """Generates a text document from a prompt template.

    The template is formatted with the global context plus the data of every
    node listed in `inputs` (keyed by node id with ':' and '-' replaced by '_').
    """

    def __init__(self, prompt_template: str, inputs: Sequence[str] = (), purpose: str = "document"):
        self.prompt_template = prompt_template
        self.inputs = list(inputs)
        self.purpose = purpose

    @staticmethod
    def _key(node_id: str) -> str:
        return node_id.replace(":", "_").replace("-", "_")

    async def __call__(self, context: BuilderContext) -> str:
        values: dict[str, Any] = dict(context.global_context)
        for node_id in self.inputs:
            values[self._key(node_id)] = context.get_node_data(node_id)

        try:
            prompt = self.prompt_template.format(**values)
        except KeyError as e:
            raise MissingConfigurationError(f"Prompt for {self.purpose} needs '{e.args[0]}'") from e

        content = await context.chat(prompt, purpose=self.purpose)
        if not content or not content.strip():
            raise EmptyGenerationError(self.purpose)
        return remove_code_block_fences(content)


class FileGenerationHandler:
    """Generates many interdependent files from a manifest produced by another node.

    Reads, in order of precedence, node config then global context:
    `project_path` (required output root), `model`, `strict` (escalate
    invalid files), `max_retries`, `retry_delay`, `max_concurrency`,
    `task_timeout`, `failure_report_dir`.
    """

    def __init__(self, manifest_node: str, context_nodes: Sequence[str] = ()):
        self.manifest_node = manifest_node
        self.context_nodes = list(context_nodes)

    def _setting(self, context: BuilderContext, key: str, default: Any = None) -> Any:
        value = context.node_config(key)
        if value is None:
            value = context.get_global_context(key, default)
        return value

    def _context_messages(self, context: BuilderContext) -> list[dict]:
        messages = []
        for node_id in self.context_nodes:
            node = context.registry.get(node_id)
            title = node.name if node else node_id
            messages.append({"role": "user", "content": f"**{title}**\n{context.get_node_data(node_id)}"})
        return messages

    async def __call__(self, context: BuilderContext) -> FileGenerationResult:
        project_path = self._setting(context, "project_path")
        if not project_path:
            raise MissingConfigurationError("File generation needs a 'project_path'")

        manifest = context.get_node_data(self.manifest_node)
        plan = plan_file_generation(
            manifest,
            context.virtual_directory,
            strict=bool(self._setting(context, "strict", False)),
        )
        if plan.invalid_files:
            logger.warning(f"Generating despite {len(plan.invalid_files)} file(s) outside the project structure")

        max_retries = int(self._setting(context, "max_retries", config.MAX_RETRIES))
        retry_delay = float(self._setting(context, "retry_delay", config.RETRY_DELAY))
        generator = LayeredFileGenerator(
            generate=context.model,
            store=FileStore(Path(project_path), max_retries=max_retries, delay=retry_delay),
            model=self._setting(context, "model", config.DEFAULT_MODEL),
            max_retries=max_retries,
            retry_delay=retry_delay,
            max_concurrency=self._setting(context, "max_concurrency", config.MAX_CONCURRENCY),
            task_timeout=self._setting(context, "task_timeout", config.TASK_TIMEOUT),
            context_messages=self._context_messages(context),
            event_bus=context.event_bus,
            source=context.current_node.id if context.current_node else "files",
        )
        result = await generator.run(plan)

        report_dir = self._setting(context, "failure_report_dir", config.FAILURE_REPORT_DIR)
        if report_dir and result.report.history:
            result.report.write(Path(report_dir))
        return result
