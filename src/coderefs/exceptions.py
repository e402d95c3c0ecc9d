from dataclasses import dataclass
from pathlib import Path


@dataclass(frozen=True)
class CodeRefsError(Exception):
    """Base exception for errors in the coderefs package."""

    def __str__(self) -> str:
        return getattr(self, "message", "") or self.__class__.__name__


@dataclass(frozen=True)
class NotAGitRepositoryError(CodeRefsError):
    """Raised when the specified directory is not a Git repository."""

    folder: Path
    message: str = "The specified directory is not a Git repository."


@dataclass(frozen=True)
class FlagsFileError(CodeRefsError):
    """Raised when the flags file is missing or cannot be parsed."""

    path: Path
    message: str = "The flags file could not be loaded."


@dataclass(frozen=True)
class GitHubEnvironmentError(CodeRefsError):
    """Raised when the GitHub Actions environment is incomplete or invalid."""

    variable: str
    value: str
    message: str = "Invalid GitHub Actions environment."
