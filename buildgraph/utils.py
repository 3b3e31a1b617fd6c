"""Text helpers for model responses and markdown-embedded JSON."""

from __future__ import annotations

import json
import logging
import re
import uuid
from typing import Any

from buildgraph.errors import ResponseParsingError

logger = logging.getLogger(__name__)

_JSON_FENCE = re.compile(r"```(?:json)?\s*\n(.*?)```", re.DOTALL)
_GENERATE_TAG = re.compile(r"<GENERATE>(.*?)</GENERATE>", re.DOTALL | re.IGNORECASE)
_CODE_FENCE = re.compile(r"^\s*```[\w+.-]*[ \t]*\n(.*?)\n?```\s*$", re.DOTALL)


def generate_id() -> str:
    return uuid.uuid4().hex[:12]


def extract_json_from_markdown(content: str) -> Any:
    """Parse the first JSON document found in a markdown string.

    Tries, in order: the whole string, each ```json fenced block, and the span
    from the first '{' to the last '}'.
    """
    text = content.strip()
    try:
        return json.loads(text)
    except json.JSONDecodeError:
        pass

    for match in _JSON_FENCE.finditer(content):
        try:
            return json.loads(match.group(1))
        except json.JSONDecodeError:
            continue

    start, end = content.find("{"), content.rfind("}")
    if start != -1 and end > start:
        try:
            return json.loads(content[start : end + 1])
        except json.JSONDecodeError as e:
            raise ResponseParsingError(f"Invalid JSON in markdown content: {e}") from e

    raise ResponseParsingError("No JSON object found in markdown content")


def parse_generate_tag(response: str) -> str:
    """Return the text inside <GENERATE>...</GENERATE>, or the response unchanged."""
    match = _GENERATE_TAG.search(response)
    if not match:
        return response
    return match.group(1).strip()


def remove_code_block_fences(text: str) -> str:
    match = _CODE_FENCE.match(text)
    if match:
        return match.group(1)
    return text.strip()


def format_response(response: str) -> str:
    """Normalize a model response into file content."""
    return remove_code_block_fences(parse_generate_tag(response))
