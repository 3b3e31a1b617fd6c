"""Generation templates keyed by file kind."""

from __future__ import annotations

import posixpath
from dataclasses import dataclass

STYLESHEET_EXTENSIONS = {".css", ".scss", ".sass", ".less"}


@dataclass(frozen=True)
class FileTemplate:
    kind: str
    system: str

    def render(self, file_path: str, dependency_paths: list[str]) -> str:
        deps = "\n".join(dependency_paths) if dependency_paths else "(none)"
        return self.system.format(file_path=file_path, dependencies=deps)


STYLESHEET_TEMPLATE = FileTemplate(
    kind="stylesheet",
    system=(
        "You are an expert frontend developer writing stylesheets.\n"
        "Write the complete contents of `{file_path}`.\n"
        "Files it relates to:\n{dependencies}\n\n"
        "Return only the stylesheet wrapped in <GENERATE></GENERATE> tags."
    ),
)

SOURCE_TEMPLATE = FileTemplate(
    kind="source",
    system=(
        "You are an expert software engineer.\n"
        "Write the complete, working contents of `{file_path}`.\n"
        "It imports from these already generated files:\n{dependencies}\n\n"
        "Only use exports that exist in the dependency contents you are given.\n"
        "Return only the code wrapped in <GENERATE></GENERATE> tags."
    ),
)


def file_kind(file_path: str) -> str:
    ext = posixpath.splitext(file_path)[1].lower()
    return "stylesheet" if ext in STYLESHEET_EXTENSIONS else "source"


def template_for(file_path: str) -> FileTemplate:
    return STYLESHEET_TEMPLATE if file_kind(file_path) == "stylesheet" else SOURCE_TEMPLATE


def format_dependencies(contents: dict[str, str]) -> str:
    if not contents:
        return "No dependencies."
    blocks = []
    for path, content in contents.items():
        blocks.append(f"<dependency>\nFile path: {path}\n```\n{content}\n```\n</dependency>")
    return "\n\n".join(blocks)
