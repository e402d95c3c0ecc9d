from __future__ import annotations

import os
from pathlib import Path
from typing import TYPE_CHECKING, Any

from dotenv import find_dotenv, load_dotenv
from pydantic import BaseModel, ConfigDict, Field

from coderefs.config import (
    DEFAULT_CONTEXT_LINES,
    DEFAULT_DELIMITERS,
    MAX_FILE_COUNT,
    MAX_HUNK_COUNT,
    MAX_LINE_CHAR_COUNT,
)

if TYPE_CHECKING:
    from collections.abc import Mapping

ENV_FILE = find_dotenv(usecwd=True)
ENV_PREFIX = "CODEREFS_"


class Settings(BaseModel):
    """Configuration settings for a coderefs scan."""

    model_config = ConfigDict(arbitrary_types_allowed=True)

    dir: Path = Field(default_factory=Path.cwd, description="Repository root to scan.")
    output: Path | None = Field(default=None, description="Output file (.json or .md); stdout when unset.")
    format: str = Field(default="", description="Force format (json or md).")
    compact: bool = Field(default=False, description="Drop the blank line between markdown blocks.")
    flags_file: Path | None = Field(default=None, description="YAML or JSON file listing flag keys and aliases.")
    flag: list[str] = Field(default_factory=list, description="Flag keys given on the command line.")
    project_key: str = Field(default="default", description="Project key copied onto every hunk.")
    context_lines: int = Field(
        default=DEFAULT_CONTEXT_LINES,
        description="Context lines around a match; negative disables context.",
    )
    delimiters: str = Field(default=DEFAULT_DELIMITERS, description="Characters allowed around a flag key.")
    no_git: bool = Field(default=False, description="Do not use git ls-files.")
    include_glob: list[str] = Field(default_factory=list, description="Include glob.")
    exclude_glob: list[str] = Field(default_factory=list, description="Exclude glob.")
    exclude_path: list[str] = Field(default_factory=list, description="Exclude path prefix.")

    max_file_count: int = Field(default=MAX_FILE_COUNT, ge=1, description="Max files with references.")
    max_hunk_count: int = Field(default=MAX_HUNK_COUNT, ge=0, description="Max hunks across all files.")
    max_line_char_count: int = Field(default=MAX_LINE_CHAR_COUNT, ge=1, description="Max characters per line.")
    workers: int | None = Field(default=None, ge=1, description="Worker threads; default lets the pool decide.")
    timeout: float | None = Field(default=None, gt=0, description="Deadline in seconds for the search.")

    log_file: str = Field(default="", description="Log file path.")
    debug: bool = Field(default=False, description="Enable debug logging.")

    branch: str = Field(default="", description="Branch the scan was run on.")
    repo_name: str = Field(default="", description="Repository name.")
    repo_type: str = Field(default="", description="Repository host type, e.g. github.")
    repo_url: str = Field(default="", description="Repository URL.")
    default_branch: str = Field(default="", description="Default branch of the repository.")
    update_sequence_id: int | None = Field(default=None, description="Monotonic id of the scanned revision.")


def settings_from_env(environ: Mapping[str, str] | None = None) -> dict[str, Any]:
    """Collect settings overrides from ``CODEREFS_*`` environment variables.

    A ``.env`` file found from the working directory is loaded first when
    reading the process environment; it never overrides variables already set.

    Args:
        environ (Mapping[str, str] | None): the environment to read; the process environment when None

    Returns:
        dict[str, Any]: raw field values keyed by settings field name, left to pydantic to coerce
    """
    if environ is None:
        if ENV_FILE:
            load_dotenv(ENV_FILE, override=False)
        environ = os.environ

    out: dict[str, Any] = {}
    for name in Settings.model_fields:
        value = environ.get(ENV_PREFIX + name.upper())
        if value is None or value == "":
            continue
        if name in {"flag", "include_glob", "exclude_glob", "exclude_path"}:
            out[name] = [v.strip() for v in value.split(",") if v.strip()]
        else:
            out[name] = value
    return out
