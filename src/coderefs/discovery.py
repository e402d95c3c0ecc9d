"""Locate the text files of a repository and read them for the search pipeline."""

from __future__ import annotations

import fnmatch
import os
import subprocess  # noqa: S404
from pathlib import Path
from typing import TYPE_CHECKING

from coderefs.config import DEFAULT_EXCLUDES, SourceFile
from coderefs.exceptions import NotAGitRepositoryError
from coderefs.logging import logger

if TYPE_CHECKING:
    from collections.abc import Iterable, Iterator, Sequence


def repo_relative(path: Path, repo: Path) -> str | None:
    """POSIX path of ``path`` relative to ``repo``, or None when it lies outside."""
    try:
        return path.relative_to(repo).as_posix()
    except ValueError:
        return None


def sniff_text_utf8(path: Path, nbytes: int = 4096) -> bool:
    """Check if path point to a utf-8 encoded text file.

    A NUL byte marks the file as binary. A multi-byte character cut by the end
    of the sample is tolerated.

    Args:
        path (Path): path to test.
        nbytes (int, optional): number of bytes to read for testing. Defaults to 4096.

    Returns:
        bool: True if the file is utf-8 encoded text, False otherwise.
    """
    if not path.is_file():
        return False
    try:
        with path.open("rb") as f:
            chunk = f.read(nbytes)
    except OSError:
        return False
    if b"\x00" in chunk:
        return False
    try:
        chunk.decode("utf-8")
    except UnicodeDecodeError as e:
        return e.start >= len(chunk) - 3 and len(chunk) == nbytes
    return True


def git_ls_files(repo: Path) -> list[Path]:
    """List the files tracked in the index of the git repository at ``repo``.

    Names are read NUL-terminated, so git never quotes them and paths with
    non-ASCII or control characters come back as they are on disk.

    Args:
        repo (Path): the root of the git repository to query

    Raises:
        NotAGitRepositoryError: if `.git` is missing.

    Returns:
        list[Path]: absolute paths of the tracked files
    """
    if not (repo / ".git").exists():
        raise NotAGitRepositoryError(folder=repo)
    out = subprocess.run(
        ["git", "ls-files", "-z"],  # noqa: S607
        cwd=repo,
        capture_output=True,
        check=True,
    )
    return [(repo / os.fsdecode(name)).resolve() for name in out.stdout.split(b"\0") if name]


def walk_files(repo: Path) -> list[Path]:
    """List every file under ``repo``, pruning directories named in `DEFAULT_EXCLUDES`.

    Args:
        repo (Path): the root directory to walk

    Returns:
        list[Path]: absolute paths of the files found
    """
    found: list[Path] = []
    for root, dirs, names in os.walk(repo):
        dirs[:] = sorted(d for d in dirs if d not in DEFAULT_EXCLUDES)
        base = Path(root)
        found.extend(p.resolve() for p in (base / n for n in names) if p.is_file())
    return found


def clean_patterns(patterns: Iterable[str]) -> list[str]:
    """Strip patterns, use POSIX separators and drop empty ones."""
    return [p.strip().replace("\\", "/") for p in patterns if p and p.strip()]


def is_selected(rel: str, includes: Sequence[str], excludes: Sequence[str], exclude_prefixes: Sequence[str]) -> bool:
    """Decide whether a repository-relative path is scanned.

    Args:
        rel (str): POSIX path relative to the repository root
        includes (Sequence[str]): globs a path must match when any are given
        excludes (Sequence[str]): globs rejecting a path
        exclude_prefixes (Sequence[str]): directories or files rejected with everything below them

    Returns:
        bool: True when the path should be scanned
    """
    if any(part in DEFAULT_EXCLUDES for part in rel.split("/")):
        return False
    if any(rel == p or rel.startswith(p + "/") for p in exclude_prefixes):
        return False
    if includes and not any(fnmatch.fnmatch(rel, g) for g in includes):
        return False
    return not any(fnmatch.fnmatch(rel, g) for g in excludes)


def apply_filters(
    files: Iterable[Path],
    repo: Path,
    includes: Sequence[str],
    excludes: Sequence[str],
    exclude_paths: Sequence[str],
) -> list[Path]:
    """Keep the regular files under ``repo`` selected by the include and exclude rules.

    Args:
        files (Iterable[Path]): absolute paths of candidate files
        repo (Path): the repository root the rules are relative to
        includes (Sequence[str]): include globs
        excludes (Sequence[str]): exclude globs
        exclude_paths (Sequence[str]): excluded path prefixes

    Returns:
        list[Path]: the selected files, deduplicated and sorted case-insensitively by relative path
    """
    inc = clean_patterns(includes)
    exc = clean_patterns(excludes)
    prefixes = [p.strip("/") for p in clean_patterns(exclude_paths)]

    selected: dict[str, Path] = {}
    for f in files:
        rel = repo_relative(f, repo)
        if rel is None or not f.is_file():
            continue
        if is_selected(rel, inc, exc, prefixes):
            selected[rel] = f
    return [selected[rel] for rel in sorted(selected, key=str.lower)]




def read_source_file(path: Path, repo: Path) -> SourceFile | None:
    """Read a text file into a `SourceFile`.

    Args:
        path (Path): the file to read
        repo (Path): the repository root, used for the relative path

    Returns:
        SourceFile | None: the file content, or None for binary or unreadable files
    """
    if not sniff_text_utf8(path):
        logger.debug("skipping binary file", path=str(path))
        return None
    try:
        text = path.read_text(encoding="utf-8", errors="replace")
    except OSError as e:
        logger.warning("skipping unreadable file", path=str(path), reason=str(e))
        return None
    return SourceFile(path=repo_relative(path, repo) or path.as_posix(), lines=split_lines(text))


def split_lines(text: str) -> tuple[str, ...]:
    """Split text on newlines only, dropping carriage returns and the final empty line.

    Unlike `str.splitlines`, form feeds and unicode line separators do not
    start a new line, so numbering agrees with editors and git.

    Args:
        text (str): the file content

    Returns:
        tuple[str, ...]: the lines of the file
    """
    if not text:
        return ()
    lines = text.split("\n")
    if lines[-1] == "":
        lines.pop()
    return tuple(ln.removesuffix("\r") for ln in lines)


def iter_source_files(files: Iterable[Path], repo: Path) -> Iterator[SourceFile]:
    """Lazily read files for the search pipeline, skipping binary and unreadable ones.

    Args:
        files (Iterable[Path]): the files to read
        repo (Path): the repository root

    Yields:
        Iterator[SourceFile]: one entry per readable text file
    """
    for f in files:
        source = read_source_file(f, repo)
        if source is not None:
            yield source
