from __future__ import annotations

import json
from pathlib import Path

import pytest

from coderefs.config import FileResult, Hunk
from coderefs.output_construction import build_json, build_markdown, count_hunks
from coderefs.settings import Settings


def sample_results() -> list[FileResult]:
    return [
        FileResult(
            path="src/b.py",
            hunks=(Hunk(project_key="p", flag_key="b-flag", starting_line=3, lines="x\n'b-flag'"),),
        ),
        FileResult(
            path="src/a.py",
            hunks=(
                Hunk(project_key="p", flag_key="a-flag", starting_line=1, lines="'a-flag'", aliases=("A_FLAG",)),
                Hunk(project_key="p", flag_key="a-flag", starting_line=10, lines="A_FLAG"),
            ),
        ),
    ]


@pytest.mark.unit
def test_count_hunks() -> None:
    assert count_hunks(sample_results()) == 3
    assert count_hunks([]) == 0


@pytest.mark.unit
def test_build_json_uses_wire_field_names() -> None:
    settings = Settings(dir=Path("/repos/shop"), branch="main", repo_type="github", update_sequence_id=42)

    payload = json.loads(build_json(sample_results(), settings=settings))

    assert payload["repoName"] == "shop"
    assert payload["branch"] == "main"
    assert payload["updateSequenceId"] == 42
    assert payload["repoType"] == "github"
    assert "repoUrl" not in payload
    assert [r["path"] for r in payload["references"]] == ["src/a.py", "src/b.py"]
    assert payload["references"][0]["hunks"][0] == {
        "projKey": "p",
        "flagKey": "a-flag",
        "startingLineNumber": 1,
        "lines": "'a-flag'",
        "aliases": ["A_FLAG"],
    }


@pytest.mark.unit
def test_build_markdown_renders_sections_and_ranges() -> None:
    output = build_markdown(sample_results())

    assert output.startswith("# Flag references\nfiles=2\nhunks=3\n")
    assert output.index("## src/a.py") < output.index("## src/b.py")
    assert "lines 1-1 flag=a-flag aliases=A_FLAG\n```text\n'a-flag'\n```" in output
    assert "lines 3-4 flag=b-flag\n```text\nx\n'b-flag'\n```" in output


@pytest.mark.unit
def test_build_markdown_compact_mode_removes_extra_spacing() -> None:
    compact = build_markdown(sample_results(), compact=True)
    standard = build_markdown(sample_results())

    assert "```\nlines 10-10" in compact
    assert "```\n\nlines 10-10" in standard
