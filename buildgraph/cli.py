"""Command-line interface: inspect a file manifest's layers or generate the files."""

from __future__ import annotations

import argparse
import asyncio
import logging
from pathlib import Path

from rich.console import Console
from rich.panel import Panel
from rich.table import Table

from buildgraph import config
from buildgraph.context import BuilderContext
from buildgraph.errors import BuildError
from buildgraph.files.planner import plan_file_generation
from buildgraph.handlers import FileGenerationHandler
from buildgraph.models import BuildNode, BuildReport, FilePlan
from buildgraph.registry import NodeRegistry
from buildgraph.virtual_dir import VirtualDirectory

console = Console()
logger = logging.getLogger(__name__)


def load_virtual_directory(path: str | None) -> VirtualDirectory | None:
    if not path:
        return None
    return VirtualDirectory.from_json(Path(path).read_text(encoding="utf-8"))


def print_plan(plan: FilePlan):
    console.print("\n[bold cyan]Concurrency Layers:[/bold cyan]")
    table = Table(show_header=True, header_style="bold magenta")
    table.add_column("Layer", style="cyan")
    table.add_column("File", style="green")
    table.add_column("Depends on", style="blue")

    for index, layer in enumerate(plan.layers):
        for file_path in layer:
            deps = ", ".join(plan.graph.depends_on(file_path)) or "-"
            table.add_row(str(index + 1), file_path, deps)
    console.print(table)

    if plan.invalid_files:
        console.print(
            Panel(
                "\n".join(plan.invalid_files),
                title="[bold]Files outside the project structure[/bold]",
                border_style="yellow",
            )
        )


def print_report(report: BuildReport):
    console.print("\n[bold cyan]Build Status:[/bold cyan]")
    table = Table(show_header=True, header_style="bold magenta")
    table.add_column("Node ID", style="cyan")
    table.add_column("Status", style="green")
    table.add_column("Time", style="yellow")
    table.add_column("Error", style="red")

    for node_id, result in report.results.items():
        status = report.state.status_of(node_id) or "-"
        error = str(result.error)[:80] if result.error else ""
        table.add_row(node_id, status, f"{result.duration:.2f}s", error)
    console.print(table)

    if report.failed_files:
        console.print(
            Panel("\n".join(report.failed_files), title="[bold]Unresolved files[/bold]", border_style="red")
        )


def cmd_plan(args: argparse.Namespace) -> int:
    manifest = Path(args.manifest).read_text(encoding="utf-8")
    plan = plan_file_generation(manifest, load_virtual_directory(args.vdir), strict=args.strict)
    print_plan(plan)
    return 0


def cmd_generate(args: argparse.Namespace) -> int:
    manifest_text = Path(args.manifest).read_text(encoding="utf-8")

    registry = NodeRegistry()
    registry.register(
        BuildNode(id="op:FILE:MANIFEST", name="File manifest", output_type=str),
        lambda context: manifest_text,
    )
    registry.register(
        BuildNode(id="op:FILE:GENERATE", name="File generation", requires=["op:FILE:MANIFEST"]),
        FileGenerationHandler(manifest_node="op:FILE:MANIFEST"),
    )

    global_context = {
        "project_path": args.out,
        "model": args.model,
        "strict": args.strict,
        "max_concurrency": args.max_concurrency,
        "failure_report_dir": args.report_dir,
    }
    context = BuilderContext(
        registry,
        global_context={k: v for k, v in global_context.items() if v is not None},
        virtual_directory=load_virtual_directory(args.vdir),
    )

    console.print(f"[bold yellow]Generating files into {args.out} with {args.model}...[/bold yellow]")
    report = asyncio.run(context.execute())
    print_report(report)
    return 0 if report.success and not report.failed_files else 1


def build_parser() -> argparse.ArgumentParser:
    parser = argparse.ArgumentParser(prog="buildgraph", description=__doc__)
    parser.add_argument("--log-level", default=config.LOG_LEVEL)
    sub = parser.add_subparsers(dest="command", required=True)

    plan = sub.add_parser("plan", help="print the concurrency layers of a manifest")
    plan.add_argument("manifest")
    plan.add_argument("--vdir", help="JSON file listing the project structure")
    plan.add_argument("--strict", action="store_true", help="fail on files outside the project structure")
    plan.set_defaults(func=cmd_plan)

    generate = sub.add_parser("generate", help="generate every file of a manifest")
    generate.add_argument("manifest")
    generate.add_argument("--out", default=str(config.OUTPUT_DIR), help="project root to write files into")
    generate.add_argument("--model", default=config.DEFAULT_MODEL)
    generate.add_argument("--vdir", help="JSON file listing the project structure")
    generate.add_argument("--strict", action="store_true")
    generate.add_argument("--max-concurrency", type=int, default=None)
    generate.add_argument("--report-dir", default=None, help="write failure reports here")
    generate.set_defaults(func=cmd_generate)
    return parser


def main(argv: list[str] | None = None) -> int:
    args = build_parser().parse_args(argv)
    logging.basicConfig(level=args.log_level.upper(), format=config.LOG_FORMAT)

    try:
        return args.func(args)
    except BuildError as e:
        console.print(f"[red]Error: {e}[/red]")
        return 1
    except KeyboardInterrupt:
        console.print("\n[yellow]Interrupted by user.[/yellow]")
        return 130
