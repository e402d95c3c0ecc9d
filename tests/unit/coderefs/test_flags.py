from __future__ import annotations

from pathlib import Path

import pytest

from coderefs.exceptions import FlagsFileError
from coderefs.flags import FlagsFile, build_search_terms, load_flags_file
from coderefs.settings import Settings


@pytest.mark.unit
def test_load_flags_file_yaml(tmp_path: Path) -> None:
    path = tmp_path / "flags.yaml"
    path.write_text(
        "projKey: shop\ncontextLines: 0\nflags:\n  new-checkout: [NEW_CHECKOUT, newCheckout]\n  dark-mode: ~\n",
        encoding="utf-8",
    )

    flags = load_flags_file(path)

    assert flags.project_key == "shop"
    assert flags.context_lines == 0
    assert flags.flags == {"new-checkout": ["NEW_CHECKOUT", "newCheckout"], "dark-mode": []}


@pytest.mark.unit
def test_load_flags_file_json_list(tmp_path: Path) -> None:
    path = tmp_path / "flags.json"
    path.write_text('{"flags": ["a", "b"]}', encoding="utf-8")

    assert load_flags_file(path).flags == {"a": [], "b": []}


@pytest.mark.unit
def test_load_flags_file_missing(tmp_path: Path) -> None:
    with pytest.raises(FlagsFileError) as exc_info:
        load_flags_file(tmp_path / "missing.yaml")

    assert exc_info.value.path == tmp_path / "missing.yaml"


@pytest.mark.unit
def test_load_flags_file_rejects_unknown_keys(tmp_path: Path) -> None:
    path = tmp_path / "flags.yaml"
    path.write_text("flagz:\n  a: []\n", encoding="utf-8")

    with pytest.raises(FlagsFileError):
        load_flags_file(path)


@pytest.mark.unit
def test_build_search_terms_prefers_flags_file_values() -> None:
    settings = Settings(project_key="cli", context_lines=3, delimiters="'", max_line_char_count=80)
    flags = FlagsFile(projKey="file", contextLines=1, flags={"a": ["A"]})

    terms = build_search_terms(settings, flags, ["b", "a"])

    assert terms.project_key == "file"
    assert terms.context_lines == 1
    assert terms.delimiters == "'"
    assert terms.max_line_char_count == 80
    assert terms.aliases == {"a": ("A",), "b": ()}


@pytest.mark.unit
def test_build_search_terms_without_file() -> None:
    terms = build_search_terms(Settings(context_lines=-1), None, ["only"])

    assert terms.project_key == "default"
    assert terms.context_lines == -1
    assert terms.flag_keys == ["only"]
