"""Configuration loading and defaults.

Reads from config.toml at the project root, with environment variable overrides.
"""

from __future__ import annotations

import os
import tomllib
from pathlib import Path

from dotenv import load_dotenv

# Look for .env in the package's parent directory (project root)
_project_root = Path(__file__).resolve().parent.parent
load_dotenv(_project_root / ".env")
load_dotenv()  # also check cwd

# ---------------------------------------------------------------------------
# Load config.toml
# ---------------------------------------------------------------------------

_toml_path = Path(os.getenv("BUILDGRAPH_CONFIG", str(_project_root / "config.toml")))
_cfg: dict = {}
if _toml_path.exists():
    with open(_toml_path, "rb") as f:
        _cfg = tomllib.load(f)

_build = _cfg.get("build", {})
_model = _cfg.get("model", {})

# ---------------------------------------------------------------------------
# Paths
# ---------------------------------------------------------------------------

OUTPUT_DIR = Path(os.getenv("BUILDGRAPH_OUTPUT_DIR", _build.get("output_dir", str(Path.cwd() / "generated"))))

# Empty means failure reports are only returned, never written
FAILURE_REPORT_DIR = os.getenv("BUILDGRAPH_FAILURE_REPORT_DIR", _build.get("failure_report_dir", ""))

# ---------------------------------------------------------------------------
# Provider API keys (env-only, never in toml)
# ---------------------------------------------------------------------------

ANTHROPIC_API_KEY = os.getenv("ANTHROPIC_API_KEY", "")
OPENAI_API_KEY = os.getenv("OPENAI_API_KEY", "")

# ---------------------------------------------------------------------------
# Model defaults
# ---------------------------------------------------------------------------

DEFAULT_MODEL = os.getenv("BUILDGRAPH_DEFAULT_MODEL", _model.get("default_model", "openai/gpt-4o"))
DEFAULT_TEMPERATURE = float(os.getenv("BUILDGRAPH_TEMPERATURE", _model.get("temperature", 0.2)))
DEFAULT_MAX_TOKENS = int(os.getenv("BUILDGRAPH_MAX_TOKENS", _model.get("max_tokens", 8192)))

# ---------------------------------------------------------------------------
# File generation
# ---------------------------------------------------------------------------

MAX_RETRIES = int(os.getenv("BUILDGRAPH_MAX_RETRIES", _build.get("max_retries", 3)))
RETRY_DELAY = float(os.getenv("BUILDGRAPH_RETRY_DELAY", _build.get("retry_delay", 0.2)))

# 0 disables the bound / the deadline
MAX_CONCURRENCY = int(os.getenv("BUILDGRAPH_MAX_CONCURRENCY", _build.get("max_concurrency", 0)))
TASK_TIMEOUT = float(os.getenv("BUILDGRAPH_TASK_TIMEOUT", _build.get("task_timeout", 0)))

# Appended to extension-less dependency references
DEFAULT_ENTRY_FILE = os.getenv("BUILDGRAPH_ENTRY_FILE", _build.get("entry_file", "index.ts"))

# ---------------------------------------------------------------------------
# Logging
# ---------------------------------------------------------------------------

LOG_LEVEL = os.getenv("BUILDGRAPH_LOG_LEVEL", _cfg.get("log_level", "INFO")).upper()
LOG_FORMAT = "%(asctime)s [%(name)s] %(levelname)s: %(message)s"
