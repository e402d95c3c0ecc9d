from __future__ import annotations

import io
import json
from typing import TYPE_CHECKING, Any

if TYPE_CHECKING:
    from collections.abc import Sequence

    from coderefs.config import FileResult
    from coderefs.settings import Settings

_DERIVED_HUNK_FIELDS = {"num_lines", "ending_line"}


def count_hunks(results: Sequence[FileResult]) -> int:
    return sum(len(r.hunks) for r in results)


def result_to_payload(result: FileResult) -> dict[str, Any]:
    """Convert a file result to the wire representation of its references.

    Args:
        result (FileResult): the result to convert

    Returns:
        dict[str, Any]: ``path`` and ``hunks``, hunks using the remote field names
    """
    return {
        "path": result.path,
        "hunks": [
            {**h.model_dump(by_alias=True, exclude=_DERIVED_HUNK_FIELDS), "aliases": list(h.aliases)}
            for h in result.hunks
        ],
    }


def build_json(results: Sequence[FileResult], *, settings: Settings) -> str:
    """Build the JSON payload describing the references found by a scan.

    Results are sorted by path so the payload is stable across runs.

    Args:
        results (Sequence[FileResult]): the results of the scan
        settings (Settings): run settings, providing the repository and branch metadata

    Returns:
        str: the JSON document
    """
    payload: dict[str, Any] = {
        "repoName": settings.repo_name or settings.dir.name,
        "branch": settings.branch,
        "references": [result_to_payload(r) for r in sorted(results, key=lambda r: r.path)],
    }
    if settings.repo_type:
        payload["repoType"] = settings.repo_type
    if settings.repo_url:
        payload["repoUrl"] = settings.repo_url
    if settings.default_branch:
        payload["defaultBranch"] = settings.default_branch
    if settings.update_sequence_id is not None:
        payload["updateSequenceId"] = settings.update_sequence_id
    return json.dumps(payload, ensure_ascii=False, indent=2) + "\n"


def build_markdown(results: Sequence[FileResult], *, compact: bool = False) -> str:
    """Build a markdown report of the references found by a scan.

    Each file gets a section and each hunk a fenced block headed by its line
    range, flag key and the aliases seen in it.

    Args:
        results (Sequence[FileResult]): the results of the scan
        compact (bool): drop the blank line between blocks

    Returns:
        str: the generated markdown
    """
    out = io.StringIO()
    ordered = sorted(results, key=lambda r: r.path.lower())
    out.write("# Flag references\n")
    out.write(f"files={len(ordered)}\n")
    out.write(f"hunks={count_hunks(ordered)}\n\n")

    for result in ordered:
        out.write(f"## {result.path}\n")
        for hunk in result.hunks:
            header = f"lines {hunk.starting_line}-{hunk.ending_line} flag={hunk.flag_key}"
            if hunk.aliases:
                header += f" aliases={','.join(hunk.aliases)}"
            out.write(f"{header}\n```text\n{hunk.lines}\n```\n")
            if not compact:
                out.write("\n")

    return out.getvalue().rstrip() + "\n"
