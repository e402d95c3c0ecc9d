from __future__ import annotations

from typing import TYPE_CHECKING

from pydantic import BaseModel, ConfigDict, Field, computed_field, field_validator

if TYPE_CHECKING:
    from collections.abc import Mapping

# Defensive limits that bound the size of the outbound payload and protect
# against pathological inputs such as a minified file matching on every line.
MAX_FILE_COUNT = 10_000
MAX_HUNK_COUNT = 25_000
MAX_LINE_CHAR_COUNT = 500

ELLIPSIS = "…"
DEFAULT_DELIMITERS = "\"'`"
DEFAULT_CONTEXT_LINES = 2

DEFAULT_EXCLUDES = {
    ".git",
    ".hg",
    ".svn",
    ".venv",
    "venv",
    "__pycache__",
    ".mypy_cache",
    ".ruff_cache",
    ".pytest_cache",
    ".ipynb_checkpoints",
    "node_modules",
    "dist",
    "build",
    ".DS_Store",
    ".idea",
    ".vscode",
}


class SourceFile(BaseModel):
    """A file handed to the search pipeline.

    Attributes:
        path: Path relative to the scanned repository, with POSIX separators.
        lines: File content split into lines, without line terminators.
    """

    model_config = ConfigDict(frozen=True)

    path: str = Field(..., description="File path relative to repository root")
    lines: tuple[str, ...] = Field(default=(), description="File content, one entry per line")


class SearchTerms(BaseModel):
    """Everything a worker needs to know to search one file.

    Shared read-only by every worker of a run.

    Attributes:
        project_key: Opaque namespace copied onto every hunk.
        aliases: Flag key to the alias strings that also denote it.
        context_lines: Lines kept on each side of a match; negative disables context.
        delimiters: Characters accepted immediately around a flag key.
        max_line_char_count: Per-line truncation limit inside hunks.
    """

    model_config = ConfigDict(frozen=True)

    project_key: str = Field(default="default", description="Project key")
    aliases: dict[str, tuple[str, ...]] = Field(
        default_factory=dict,
        description="Flag key to aliases mapping",
    )
    context_lines: int = Field(default=DEFAULT_CONTEXT_LINES, description="Context lines around a match")
    delimiters: str = Field(default=DEFAULT_DELIMITERS, description="Delimiters around flag keys")
    max_line_char_count: int = Field(default=MAX_LINE_CHAR_COUNT, ge=1, description="Max characters per line")

    @field_validator("aliases", mode="before")
    @classmethod
    def _normalize_aliases(cls, value: Mapping[str, object]) -> dict[str, tuple[str, ...]]:
        out: dict[str, tuple[str, ...]] = {}
        for key, aliases in (value or {}).items():
            out[str(key)] = tuple(dict.fromkeys(str(a) for a in (aliases or ()) if a))
        return out

    @property
    def flag_keys(self) -> list[str]:
        """Flag keys to search for."""
        return list(self.aliases)


class Hunk(BaseModel):
    """A merged excerpt of a file referencing one flag key.

    Hunks are immutable: merging two hunks builds a new one.

    Attributes:
        project_key: Owning project of the flag.
        flag_key: Flag key the excerpt was found for.
        starting_line: 1-based number of the first line of the excerpt.
        lines: Excerpt lines joined by newlines, each one truncated.
        aliases: Aliases observed within the excerpt, deduplicated.
    """

    model_config = ConfigDict(frozen=True, populate_by_name=True)

    project_key: str = Field(..., serialization_alias="projKey")
    flag_key: str = Field(..., serialization_alias="flagKey")
    starting_line: int = Field(..., ge=1, serialization_alias="startingLineNumber")
    lines: str = Field(default="")
    aliases: tuple[str, ...] = Field(default=())

    @computed_field
    @property
    def num_lines(self) -> int:
        """Number of lines covered by the excerpt."""
        return self.lines.count("\n") + 1

    @computed_field
    @property
    def ending_line(self) -> int:
        """1-based number of the last line of the excerpt."""
        return self.starting_line + self.num_lines - 1

    def overlap(self, other: Hunk) -> int:
        """Count the lines of ``other`` already covered by this hunk.

        Assumes this hunk starts no later than ``other``. Zero means the two
        are exactly adjacent, a negative value means there is a gap between
        them.

        Args:
            other: The later hunk.

        Returns:
            int: number of overlapping lines, negative when disjoint.
        """
        return self.starting_line + self.num_lines - other.starting_line


class FileResult(BaseModel):
    """All hunks found in one file."""

    model_config = ConfigDict(frozen=True)

    path: str = Field(..., description="File path relative to repository root")
    hunks: tuple[Hunk, ...] = Field(default=(), description="Hunks across all flag keys")
