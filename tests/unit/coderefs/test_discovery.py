from __future__ import annotations

import shutil
import subprocess
from typing import TYPE_CHECKING

import pytest

from coderefs.discovery import (
    apply_filters,
    git_ls_files,
    iter_source_files,
    clean_patterns,
    is_selected,
    read_source_file,
    sniff_text_utf8,
    split_lines,
    walk_files,
)
from coderefs.exceptions import NotAGitRepositoryError

if TYPE_CHECKING:
    from pathlib import Path


@pytest.mark.unit
def test_clean_patterns_strips_and_normalizes() -> None:
    globs = ["  src/**/*.py ", "\\tests\\*.py", ""]

    assert clean_patterns(globs) == ["src/**/*.py", "/tests/*.py"]


@pytest.mark.unit
def test_split_lines_only_splits_on_newlines() -> None:
    assert split_lines("") == ()
    assert split_lines("a\r\nb\n") == ("a", "b")
    assert split_lines("a\x0cb\n\nc") == ("a\x0cb", "", "c")


@pytest.mark.unit
def test_sniff_text_utf8_rejects_binary(tmp_path: Path) -> None:
    text = tmp_path / "a.txt"
    binary = tmp_path / "b.bin"
    text.write_text("héllo", encoding="utf-8")
    binary.write_bytes(b"\x00\x01\x02")

    assert sniff_text_utf8(text)
    assert not sniff_text_utf8(binary)
    assert not sniff_text_utf8(tmp_path)


@pytest.mark.unit
def test_walk_files_prunes_default_excludes(tmp_path: Path) -> None:
    kept = tmp_path / "src" / "app.py"
    pruned = tmp_path / "node_modules" / "lib.js"
    kept.parent.mkdir(parents=True)
    pruned.parent.mkdir(parents=True)
    kept.write_text("x", encoding="utf-8")
    pruned.write_text("y", encoding="utf-8")

    assert walk_files(tmp_path) == [kept.resolve()]


@pytest.mark.unit
def test_git_ls_files_requires_git_directory(tmp_path: Path) -> None:
    with pytest.raises(NotAGitRepositoryError) as exc_info:
        git_ls_files(tmp_path)

    assert exc_info.value.folder == tmp_path


@pytest.mark.unit
def test_apply_filters_respects_includes_excludes(tmp_path: Path) -> None:
    keep = tmp_path / "src" / "main.py"
    drop = tmp_path / "src" / "data.bin"
    vendored = tmp_path / "vendor" / "lib.py"
    for f in (keep, drop, vendored):
        f.parent.mkdir(parents=True, exist_ok=True)
        f.write_text("print('ok')", encoding="utf-8")

    selected = apply_filters(
        files=[keep, drop, vendored, keep],
        repo=tmp_path,
        includes=["**/*.py", "src/*"],
        excludes=["**/*.bin"],
        exclude_paths=["vendor/"],
    )

    assert selected == [keep]


@pytest.mark.unit
def test_read_source_file_uses_relative_path(tmp_path: Path) -> None:
    f = tmp_path / "src" / "app.py"
    f.parent.mkdir()
    f.write_text("one\ntwo\n", encoding="utf-8")

    source = read_source_file(f, tmp_path)

    assert source is not None
    assert source.path == "src/app.py"
    assert source.lines == ("one", "two")


@pytest.mark.unit
def test_iter_source_files_skips_binary(tmp_path: Path) -> None:
    text = tmp_path / "a.py"
    binary = tmp_path / "b.png"
    text.write_text("flag", encoding="utf-8")
    binary.write_bytes(b"\x89PNG\x00\x00")

    sources = list(iter_source_files([text, binary], tmp_path))

    assert [s.path for s in sources] == ["a.py"]


@pytest.mark.unit
def test_is_selected_prunes_default_excludes_and_prefixes() -> None:
    assert is_selected("src/app.py", [], [], [])
    assert not is_selected("web/node_modules/lib.js", [], [], [])
    assert not is_selected("vendor/lib.py", [], [], ["vendor"])
    assert is_selected("vendored.py", [], [], ["vendor"])
    assert not is_selected("src/app.py", ["*.js"], [], [])


@pytest.mark.unit
@pytest.mark.skipif(shutil.which("git") is None, reason="git is not installed")
def test_git_ls_files_returns_non_ascii_names_unquoted(tmp_path: Path) -> None:
    accented = tmp_path / "café.py"
    spaced = tmp_path / "docs" / "read me.md"
    spaced.parent.mkdir()
    accented.write_text("flag = 'dark-mode'\n", encoding="utf-8")
    spaced.write_text("dark-mode\n", encoding="utf-8")
    subprocess.run(["git", "init", "-q"], cwd=tmp_path, check=True)  # noqa: S607
    subprocess.run(["git", "add", "."], cwd=tmp_path, check=True)  # noqa: S607

    files = git_ls_files(tmp_path)

    assert sorted(files) == sorted([accented.resolve(), spaced.resolve()])
    selected = apply_filters(files=files, repo=tmp_path.resolve(), includes=[], excludes=[], exclude_paths=[])
    assert [f.name for f in selected] == ["café.py", "read me.md"]
