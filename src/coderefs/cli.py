"""
coderefs: find feature flag references in a project.

Overview
--------
Scans the text files of a repository for a set of flag keys (and their
aliases) and writes the references as merged, context-bounded hunks:

1) **JSON (`--format json`)**: the payload expected by the flag management
   service: one entry per file, one hunk per merged excerpt.

2) **Markdown (`--format md`)**: a readable report of the same hunks.

Files come from `git ls-files` (to honor ignores), falling back to a
filesystem walk when Git is unavailable or disabled (`--no-git`). Flag keys
come from a YAML/JSON flags file (`--flags-file`) and/or `--flag`.

Usage
-----
Run `coderefs --help` for full options. Common examples:
    - Scan the current repository, print JSON:
        coderefs --flags-file flags.yaml

    - Markdown report without context lines:
        coderefs --flag dark-mode --context-lines 0 --output refs.md

    - Inside a GitHub Actions workflow step:
        coderefs github-action --flags-file flags.yaml --output refs.json
"""

from __future__ import annotations

import argparse
import os
import subprocess  # noqa: S404
import sys
from pathlib import Path
from typing import TYPE_CHECKING, Any

from coderefs import __version__
from coderefs.discovery import apply_filters, git_ls_files, iter_source_files, walk_files
from coderefs.exceptions import NotAGitRepositoryError
from coderefs.flags import build_search_terms, load_flags_file
from coderefs.github_actions import options_from_github_env
from coderefs.logging import logger, setup_logging
from coderefs.output_construction import build_json, build_markdown, count_hunks
from coderefs.search import search_for_refs
from coderefs.settings import Settings, settings_from_env

if TYPE_CHECKING:
    from collections.abc import Mapping, Sequence

GITHUB_ACTION_COMMAND = "github-action"


def build_parser() -> argparse.ArgumentParser:
    p = argparse.ArgumentParser(
        prog="coderefs",
        description="Find feature flag references and condense them into hunks (json/md).",
    )
    p.add_argument("--version", action="version", version=f"%(prog)s {__version__}")
    p.add_argument("--dir", type=str, default=None, help="Repository root.")
    p.add_argument("--output", type=str, default=None, help="Output file (.json or .md); stdout if omitted.")
    p.add_argument("--format", type=str, choices=["json", "md"], default=None, help="Force format.")
    p.add_argument("--compact", action="store_true", default=None, help="Omit blank lines between markdown blocks.")
    p.add_argument("--flags-file", type=str, default=None, help="YAML/JSON file of flag keys and aliases.")
    p.add_argument("--flag", action="append", default=None, help="Flag key to search for (repeatable).")
    p.add_argument("--project-key", type=str, default=None, help="Project key copied onto every hunk.")
    p.add_argument(
        "--context-lines",
        type=int,
        default=None,
        help="Lines of context around a match; negative disables context.",
    )
    p.add_argument("--delimiters", type=str, default=None, help="Characters allowed around a flag key.")
    p.add_argument("--no-git", action="store_true", default=None, help="Do not use git ls-files.")
    p.add_argument("--include-glob", action="append", default=None, help="Include glob (repeatable).")
    p.add_argument("--exclude-glob", action="append", default=None, help="Exclude glob (repeatable).")
    p.add_argument("--exclude-path", action="append", default=None, help="Exclude path prefix (repeatable).")
    p.add_argument("--max-file-count", type=int, default=None, help="Max files with references.")
    p.add_argument("--max-hunk-count", type=int, default=None, help="Max hunks across all files.")
    p.add_argument("--max-line-char-count", type=int, default=None, help="Max characters per hunk line.")
    p.add_argument("--workers", type=int, default=None, help="Worker threads.")
    p.add_argument("--timeout", type=float, default=None, help="Deadline in seconds for the search.")
    p.add_argument("--branch", type=str, default=None, help="Branch name recorded in the JSON payload.")
    p.add_argument("--repo-type", type=str, default=None, help="Repository host type, e.g. github.")
    p.add_argument("--log-file", type=str, default=None, help="Log file path.")
    p.add_argument("--debug", action="store_true", default=None, help="Enable debug logging.")
    return p


def parse_args(
    argv: Sequence[str] | None = None,
    *,
    environ: Mapping[str, str] | None = None,
    defaults: Mapping[str, Any] | None = None,
) -> Settings:
    """Build settings from defaults, then the environment, then the command line.

    Args:
        argv (Sequence[str] | None): command line arguments, without the program name
        environ (Mapping[str, str] | None): environment to read ``CODEREFS_*`` values from
        defaults (Mapping[str, Any] | None): values that `CODEREFS_*` variables and options may replace

    Returns:
        Settings: the merged settings
    """
    args = build_parser().parse_args(argv)
    values: dict[str, Any] = dict(defaults or {})
    values.update(settings_from_env(environ))
    values.update({k: v for k, v in vars(args).items() if v is not None})
    return Settings(**values)


def discover_files(repo: Path, settings: Settings) -> list[Path]:
    """List the files to scan, honoring git ignores when possible."""
    try:
        if settings.no_git:
            files = walk_files(repo)
        else:
            files = git_ls_files(repo)
    except (NotAGitRepositoryError, OSError, subprocess.CalledProcessError) as e:
        logger.info("falling back to filesystem walk", reason=str(e))
        files = walk_files(repo)
    return apply_filters(
        files=files,
        repo=repo,
        includes=settings.include_glob,
        excludes=settings.exclude_glob,
        exclude_paths=settings.exclude_path,
    )


def run(settings: Settings) -> int:
    """Scan the repository described by ``settings`` and write the references.

    Args:
        settings (Settings): the run settings

    Returns:
        int: process exit code
    """
    if settings.log_file or settings.debug:
        setup_logging(settings.log_file or None, debug=settings.debug)

    repo = Path(settings.dir).resolve()
    flags_file = load_flags_file(settings.flags_file) if settings.flags_file else None
    terms = build_search_terms(settings, flags_file, settings.flag)
    if not terms.flag_keys:
        logger.warning("no flag keys to search for", repo=str(repo))

    files = discover_files(repo, settings)
    logger.info("scanning files", repo=str(repo), files=len(files), flags=len(terms.flag_keys))

    results = search_for_refs(
        iter_source_files(files, repo),
        terms,
        max_file_count=settings.max_file_count,
        max_hunk_count=settings.max_hunk_count,
        max_workers=settings.workers,
        timeout=settings.timeout,
    )

    out_path = settings.output
    fmt = (settings.format or "").strip().lower()
    if not fmt:
        fmt = "md" if out_path is not None and out_path.suffix.lower() == ".md" else "json"
    if fmt == "json":
        content = build_json(results, settings=settings)
    else:
        content = build_markdown(results, compact=settings.compact)

    if out_path is None:
        sys.stdout.write(content)
    else:
        out_path.write_text(content, encoding="utf-8")
        print(f"Wrote {out_path} format={fmt} files={len(results)} hunks={count_hunks(results)}")
    return 0


def main(argv: Sequence[str] | None = None) -> int:
    argv = list(sys.argv[1:] if argv is None else argv)
    if argv and argv[0] == GITHUB_ACTION_COMMAND:
        settings = parse_args(argv[1:], defaults=options_from_github_env(os.environ))
    else:
        settings = parse_args(argv)
    return run(settings)


if __name__ == "__main__":
    raise SystemExit(main())
