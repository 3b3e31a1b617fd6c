"""File manifest: the declarative list of files and their dependency references."""

from __future__ import annotations

import json
import logging
from typing import Any, Mapping

from pydantic import BaseModel, ConfigDict, Field, ValidationError, field_validator

from buildgraph.errors import ManifestError, ResponseParsingError
from buildgraph.utils import extract_json_from_markdown
from buildgraph.virtual_dir import normalize_path

logger = logging.getLogger(__name__)


class ManifestEntry(BaseModel):
    """Raw dependency references of one file (not yet resolved)."""

    model_config = ConfigDict(populate_by_name=True, extra="ignore")

    depends_on: list[str] = Field(default_factory=list, alias="dependsOn")

    @field_validator("depends_on")
    @classmethod
    def _no_blank_references(cls, value: list[str]) -> list[str]:
        refs = [ref.strip() for ref in value]
        if any(not ref for ref in refs):
            raise ValueError("dependency references must be non-empty strings")
        return refs


class FileManifest(BaseModel):
    files: dict[str, ManifestEntry]

    @field_validator("files")
    @classmethod
    def _normalize_paths(cls, value: dict[str, ManifestEntry]) -> dict[str, ManifestEntry]:
        normalized: dict[str, ManifestEntry] = {}
        for path, entry in value.items():
            key = normalize_path(path)
            if not key or key == ".":
                raise ValueError(f"invalid file path: {path!r}")
            if key in normalized:
                raise ValueError(f"file listed twice: {key}")
            normalized[key] = entry
        return normalized

    def paths(self) -> list[str]:
        return list(self.files)


def parse_manifest(source: str | Mapping[str, Any] | FileManifest) -> FileManifest:
    """Parse a manifest from a dict, a JSON string, or markdown containing JSON."""
    if isinstance(source, FileManifest):
        return source

    if isinstance(source, str):
        try:
            data = json.loads(source)
        except json.JSONDecodeError:
            try:
                data = extract_json_from_markdown(source)
            except ResponseParsingError as e:
                raise ManifestError(f"Could not read file manifest: {e}") from e
    else:
        data = source

    if not isinstance(data, Mapping) or "files" not in data:
        raise ManifestError("File manifest must be an object with a 'files' mapping")

    try:
        manifest = FileManifest.model_validate(data)
    except ValidationError as e:
        raise ManifestError(f"Malformed file manifest: {e}") from e

    logger.debug(f"Parsed manifest with {len(manifest.files)} files")
    return manifest
