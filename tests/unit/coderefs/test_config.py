from __future__ import annotations

import pytest
from pydantic import ValidationError

from coderefs.config import FileResult, Hunk, SearchTerms, SourceFile


@pytest.mark.unit
def test_hunk_line_range() -> None:
    hunk = Hunk(project_key="p", flag_key="f", starting_line=4, lines="a\nb\nc")

    assert hunk.num_lines == 3
    assert hunk.ending_line == 6


@pytest.mark.unit
def test_hunk_without_text_covers_its_starting_line() -> None:
    hunk = Hunk(project_key="p", flag_key="f", starting_line=7)

    assert hunk.num_lines == 1
    assert hunk.ending_line == 7


@pytest.mark.unit
def test_hunk_overlap() -> None:
    first = Hunk(project_key="p", flag_key="f", starting_line=4, lines="a\nb\nc")
    overlapping = Hunk(project_key="p", flag_key="f", starting_line=6, lines="c\nd")
    adjacent = Hunk(project_key="p", flag_key="f", starting_line=7, lines="d")
    distant = Hunk(project_key="p", flag_key="f", starting_line=9, lines="f")

    assert first.overlap(overlapping) == 1
    assert first.overlap(adjacent) == 0
    assert first.overlap(distant) == -2


@pytest.mark.unit
def test_hunk_is_immutable() -> None:
    hunk = Hunk(project_key="p", flag_key="f", starting_line=1, lines="a")

    with pytest.raises(ValidationError):
        hunk.lines = "b"  # type: ignore[misc]


@pytest.mark.unit
def test_hunk_serializes_with_wire_names() -> None:
    hunk = Hunk(project_key="p", flag_key="f", starting_line=2, lines="x", aliases=("F",))

    data = hunk.model_dump(by_alias=True, exclude={"num_lines", "ending_line"})

    assert data == {"projKey": "p", "flagKey": "f", "startingLineNumber": 2, "lines": "x", "aliases": ("F",)}


@pytest.mark.unit
def test_search_terms_normalizes_aliases() -> None:
    terms = SearchTerms(aliases={"flag": ["A", "A", "", "B"], "other": None})

    assert terms.aliases == {"flag": ("A", "B"), "other": ()}
    assert terms.flag_keys == ["flag", "other"]


@pytest.mark.unit
def test_results_are_hashable() -> None:
    hunk = Hunk(project_key="p", flag_key="f", starting_line=1, lines="a")
    source = SourceFile(path="a.py", lines=("a",))

    assert {FileResult(path="a.py", hunks=(hunk,)), FileResult(path="a.py", hunks=(hunk,))} == {
        FileResult(path="a.py", hunks=(hunk,)),
    }
    assert source.lines == ("a",)
