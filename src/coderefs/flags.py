"""Load the table of flag keys and aliases to search for."""

from __future__ import annotations

from typing import TYPE_CHECKING

import yaml
from pydantic import BaseModel, ConfigDict, Field, ValidationError, field_validator

from coderefs.config import SearchTerms
from coderefs.exceptions import FlagsFileError
from coderefs.logging import logger

if TYPE_CHECKING:
    from collections.abc import Sequence
    from pathlib import Path

    from coderefs.settings import Settings


class FlagsFile(BaseModel):
    """Content of a flags file.

    Example::

        projKey: my-project
        contextLines: 1
        flags:
          enable-new-checkout: [ENABLE_NEW_CHECKOUT, enableNewCheckout]
          dark-mode: ~
    """

    model_config = ConfigDict(extra="forbid", populate_by_name=True)

    project_key: str | None = Field(default=None, alias="projKey")
    context_lines: int | None = Field(default=None, alias="contextLines")
    delimiters: str | None = Field(default=None)
    flags: dict[str, list[str]] = Field(default_factory=dict)

    @field_validator("flags", mode="before")
    @classmethod
    def _null_aliases(cls, value: object) -> object:
        if isinstance(value, list):
            return {str(k): [] for k in value}
        if isinstance(value, dict):
            return {str(k): v or [] for k, v in value.items()}
        return value


def load_flags_file(path: Path) -> FlagsFile:
    """Read a YAML (or JSON) flags file.

    Args:
        path (Path): the file to read

    Raises:
        FlagsFileError: if the file cannot be read, parsed or validated

    Returns:
        FlagsFile: the validated content
    """
    try:
        data = yaml.safe_load(path.read_text(encoding="utf-8"))
    except (OSError, yaml.YAMLError) as e:
        raise FlagsFileError(path=path, message=str(e)) from e
    try:
        return FlagsFile.model_validate(data or {})
    except ValidationError as e:
        raise FlagsFileError(path=path, message=str(e)) from e


def build_search_terms(
    settings: Settings,
    flags_file: FlagsFile | None = None,
    extra_flags: Sequence[str] = (),
) -> SearchTerms:
    """Combine settings and an optional flags file into search terms.

    Values from the flags file win over the settings defaults for the
    project key, delimiters and context lines.

    Args:
        settings (Settings): the run settings
        flags_file (FlagsFile | None): parsed flags file, if any
        extra_flags (Sequence[str]): flag keys given directly, without aliases

    Returns:
        SearchTerms: the terms shared by every search worker
    """
    aliases: dict[str, list[str]] = {}
    if flags_file is not None:
        aliases.update(flags_file.flags)
    for key in extra_flags:
        aliases.setdefault(key, [])

    ff = flags_file or FlagsFile()
    terms = SearchTerms(
        project_key=ff.project_key or settings.project_key,
        aliases=aliases,
        context_lines=settings.context_lines if ff.context_lines is None else ff.context_lines,
        delimiters=ff.delimiters or settings.delimiters,
        max_line_char_count=settings.max_line_char_count,
    )
    logger.debug("search terms built", flags=len(terms.aliases), project_key=terms.project_key)
    return terms
