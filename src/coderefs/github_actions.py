"""Derive scan settings from a GitHub Actions run."""

from __future__ import annotations

import json
import re
from pathlib import Path
from typing import TYPE_CHECKING, Any

from pydantic import BaseModel, ConfigDict, Field, ValidationError

from coderefs.exceptions import GitHubEnvironmentError

if TYPE_CHECKING:
    from collections.abc import Mapping

_BRANCH_REF = re.compile(r"^refs/heads/(.+)$")


class GitHubRepository(BaseModel):
    model_config = ConfigDict(populate_by_name=True)

    url: str = Field(default="", alias="html_url")
    default_branch: str = Field(default="")
    pushed_at: int = Field(default=0)


class GitHubSender(BaseModel):
    model_config = ConfigDict(populate_by_name=True)

    username: str = Field(default="", alias="login")


class GitHubEvent(BaseModel):
    """The subset of a GitHub webhook payload used to describe a scan."""

    model_config = ConfigDict(populate_by_name=True)

    repo: GitHubRepository = Field(default_factory=GitHubRepository, alias="repository")
    sender: GitHubSender = Field(default_factory=GitHubSender)


def parse_branch(ref: str) -> str:
    """Extract the branch name from a git ref.

    Args:
        ref (str): a ref such as ``refs/heads/main``

    Raises:
        GitHubEnvironmentError: if the ref does not name a branch

    Returns:
        str: the branch name
    """
    m = _BRANCH_REF.match(ref)
    if m is None:
        raise GitHubEnvironmentError(
            variable="GITHUB_REF",
            value=ref,
            message=f"expected branch name starting with refs/heads/, got: {ref}",
        )
    return m.group(1)


def parse_event(path: Path) -> GitHubEvent:
    """Read the event payload GitHub writes for the workflow run.

    Args:
        path (Path): the file named by ``GITHUB_EVENT_PATH``

    Raises:
        GitHubEnvironmentError: if the payload cannot be read or parsed

    Returns:
        GitHubEvent: the parsed payload
    """
    try:
        data = json.loads(path.read_text(encoding="utf-8"))
        return GitHubEvent.model_validate(data)
    except (OSError, ValueError, ValidationError) as e:
        raise GitHubEnvironmentError(variable="GITHUB_EVENT_PATH", value=str(path), message=str(e)) from e


def options_from_github_env(environ: Mapping[str, str]) -> dict[str, Any]:
    """Map the GitHub Actions environment onto settings fields.

    Args:
        environ (Mapping[str, str]): the environment of the workflow step

    Raises:
        GitHubEnvironmentError: if a required variable is missing or malformed

    Returns:
        dict[str, Any]: settings field values describing the repository and revision
    """
    repository = environ.get("GITHUB_REPOSITORY", "")
    owner, _, name = repository.partition("/")
    if not owner or not name:
        raise GitHubEnvironmentError(
            variable="GITHUB_REPOSITORY",
            value=repository,
            message=f"unable to validate GitHub repository name: {repository}",
        )
    branch = parse_branch(environ.get("GITHUB_REF", ""))
    event = parse_event(Path(environ.get("GITHUB_EVENT_PATH", "")))

    options: dict[str, Any] = {
        "branch": branch,
        "repo_type": "github",
        "repo_name": name,
        "repo_url": event.repo.url,
        "default_branch": event.repo.default_branch,
        "update_sequence_id": event.repo.pushed_at * 1000,
    }
    workspace = environ.get("GITHUB_WORKSPACE")
    if workspace:
        options["dir"] = Path(workspace)
    return options
