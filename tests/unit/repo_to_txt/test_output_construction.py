from __future__ import annotations

import os
from pathlib import Path
from typing import TYPE_CHECKING

import pytest

from repo_to_txt.config import Emitted, OutputRecord, Skipped, SkipReason
from repo_to_txt.exceptions import EmptyFileRequestError, OutputFileError, TraversalError
from repo_to_txt.output_construction import (
    ensure_output_dir,
    format_record,
    iter_repo_records,
    write_repo_contents,
    write_selected_files,
)
from repo_to_txt.settings import FilterPolicy

if TYPE_CHECKING:
    from pytest_mock import MockerFixture


def _write(path: Path, data: bytes | str) -> Path:
    path.parent.mkdir(parents=True, exist_ok=True)
    if isinstance(data, str):
        data = data.encode("utf-8")
    path.write_bytes(data)
    return path


@pytest.fixture
def repo(tmp_path: Path) -> Path:
    root = tmp_path / "repo"
    root.mkdir()
    return root


@pytest.fixture
def output(tmp_path: Path) -> Path:
    out_dir = tmp_path / "out"
    out_dir.mkdir()
    return out_dir / "repo.txt"


@pytest.mark.unit
def test_format_record_layout() -> None:
    assert format_record("src/main.go", b"package main") == b"=== src/main.go ===\npackage main\n\n"


@pytest.mark.unit
def test_format_record_keeps_content_verbatim_and_normalizes_separators() -> None:
    content = b"line\r\n=== fake.txt ===\n"

    first = format_record(os.path.join("a", "b.txt"), content)
    second = format_record(os.path.join("a", "b.txt"), content)

    assert first == second
    assert first == b"=== a/b.txt ===\n" + content + b"\n\n"


@pytest.mark.unit
@pytest.mark.skipif(os.sep != "/", reason="backslash is a separator on this platform")
def test_format_record_keeps_backslash_of_posix_names() -> None:
    assert format_record("a\\b.txt", b"x") == b"=== a\\b.txt ===\nx\n\n"


@pytest.mark.unit
def test_single_go_file_exact_output(repo: Path, output: Path) -> None:
    _write(repo / "test.go", "package main\n")

    summary = write_repo_contents(repo, output, FilterPolicy(include_extensions=[".go"]))

    assert output.read_bytes() == b"=== test.go ===\npackage main\n\n\n"
    assert summary.emitted == ["test.go"]
    assert summary.skipped == {}


@pytest.mark.unit
def test_excluded_folder_is_absent(repo: Path, output: Path) -> None:
    _write(repo / "docs" / "README.md", "# README")
    _write(repo / "main.go", "package main\n")

    write_repo_contents(repo, output, FilterPolicy(exclude_folders=["docs"], include_extensions=[".go", ".md"]))

    assert output.read_bytes() == b"=== main.go ===\npackage main\n\n\n"


@pytest.mark.unit
def test_png_skipped_despite_allow_listed_extension(repo: Path, output: Path) -> None:
    _write(repo / "image.png", bytes([0x89, 0x50, 0x4E, 0x47]))
    _write(repo / "main.go", "package main\n")

    summary = write_repo_contents(repo, output, FilterPolicy(include_extensions=[".go", ".png"]))

    assert output.read_bytes() == b"=== main.go ===\npackage main\n\n\n"
    assert summary.skipped == {"image.png": SkipReason.BINARY}


@pytest.mark.unit
def test_notebook_excluded_without_policy(repo: Path, output: Path) -> None:
    _write(repo / "notebook.ipynb", '{"cells": []}')
    _write(repo / "main.go", "package main\n")

    summary = write_repo_contents(repo, output, FilterPolicy())

    assert output.read_bytes() == b"=== main.go ===\npackage main\n\n\n"
    assert summary.outcomes == [Emitted(rel_path="main.go", size=13)]


@pytest.mark.unit
def test_null_byte_file_never_emitted_whatever_the_policy(repo: Path, output: Path) -> None:
    _write(repo / "data.go", b"package data\x00\x01")
    _write(repo / "ok.go", "package ok\n")

    summary = write_repo_contents(repo, output, FilterPolicy(include_extensions=[".go"]))

    assert b"data.go" not in output.read_bytes()
    assert summary.emitted == ["ok.go"]
    assert summary.skipped == {"data.go": SkipReason.BINARY}


@pytest.mark.unit
def test_dot_entries_never_emitted_even_when_allow_listed(repo: Path, output: Path) -> None:
    _write(repo / ".hidden" / "secret.go", "package secret\n")
    _write(repo / ".env.go", "package env\n")
    _write(repo / "pkg" / ".cache" / "x.go", "package x\n")
    _write(repo / "pkg" / "y.go", "package y\n")

    summary = write_repo_contents(repo, output, FilterPolicy(include_extensions=[".go"]))

    assert summary.emitted == ["pkg/y.go"]
    assert output.read_bytes() == b"=== pkg/y.go ===\npackage y\n\n\n"


@pytest.mark.unit
def test_records_follow_depth_first_name_order(repo: Path, output: Path) -> None:
    _write(repo / "b.txt", "b")
    _write(repo / "a" / "z.txt", "z")
    _write(repo / "a.txt", "a")

    summary = write_repo_contents(repo, output, FilterPolicy())

    assert summary.emitted == ["a/z.txt", "a.txt", "b.txt"]
    assert output.read_bytes() == (
        b"=== a/z.txt ===\nz\n\n"
        b"=== a.txt ===\na\n\n"
        b"=== b.txt ===\nb\n\n"
    )


@pytest.mark.unit
def test_empty_file_and_missing_trailing_newline(repo: Path, output: Path) -> None:
    _write(repo / "empty.txt", b"")
    _write(repo / "no_newline.txt", b"tail")

    write_repo_contents(repo, output, FilterPolicy())

    assert output.read_bytes() == b"=== empty.txt ===\n\n\n=== no_newline.txt ===\ntail\n\n"


@pytest.mark.unit
def test_output_inside_root_is_not_emitted(repo: Path) -> None:
    _write(repo / "main.go", "package main\n")
    output = repo / "repo.txt"

    summary = write_repo_contents(repo, output, FilterPolicy())

    assert summary.emitted == ["main.go"]
    assert output.read_bytes() == b"=== main.go ===\npackage main\n\n\n"


@pytest.mark.unit
def test_output_is_truncated(repo: Path, output: Path) -> None:
    output.write_text("stale content that must disappear", encoding="utf-8")
    _write(repo / "a.txt", "a")

    write_repo_contents(repo, output, FilterPolicy())

    assert output.read_bytes() == b"=== a.txt ===\na\n\n"


@pytest.mark.unit
def test_missing_root_is_fatal(tmp_path: Path, output: Path) -> None:
    with pytest.raises(TraversalError) as exc_info:
        write_repo_contents(tmp_path / "missing", output, FilterPolicy())

    assert exc_info.value.path == tmp_path / "missing"
    assert isinstance(exc_info.value.__cause__, FileNotFoundError)


@pytest.mark.unit
def test_text_named_after_binary_formats_is_emitted(repo: Path, output: Path) -> None:
    _write(repo / "notes.md", "RIFF notes\nplain text\n")
    _write(repo / "pdf.md", "%PDF-1.7 notes\n")

    summary = write_repo_contents(repo, output, FilterPolicy())

    assert summary.skipped == {}
    assert output.read_bytes() == (
        b"=== notes.md ===\nRIFF notes\nplain text\n\n\n"
        b"=== pdf.md ===\n%PDF-1.7 notes\n\n\n"
    )


@pytest.mark.unit
def test_output_dir_is_created_or_reported(tmp_path: Path) -> None:
    target = tmp_path / "a" / "b"
    ensure_output_dir(target)
    assert target.is_dir()

    blocker = _write(tmp_path / "blocker", "not a directory")
    with pytest.raises(OutputFileError) as exc_info:
        ensure_output_dir(blocker)

    assert exc_info.value.path == blocker
    assert isinstance(exc_info.value.__cause__, OSError)


@pytest.mark.unit
def test_output_creation_failure_is_fatal(repo: Path, tmp_path: Path) -> None:
    _write(repo / "a.txt", "a")

    with pytest.raises(OutputFileError):
        write_repo_contents(repo, tmp_path / "no_such_dir" / "out.txt", FilterPolicy())


@pytest.mark.unit
def test_unreadable_file_is_skipped(repo: Path, output: Path, mocker: MockerFixture) -> None:
    _write(repo / "a.txt", "a")
    _write(repo / "b.txt", "b")
    real_open = Path.open

    def fake_open(self: Path, *args: object, **kwargs: object) -> object:
        if self.name == "a.txt":
            raise PermissionError("denied")
        return real_open(self, *args, **kwargs)

    mocker.patch.object(Path, "open", fake_open)

    summary = write_repo_contents(repo, output, FilterPolicy())

    assert summary.emitted == ["b.txt"]
    assert summary.skipped == {"a.txt": SkipReason.UNREADABLE}
    assert output.read_bytes() == b"=== b.txt ===\nb\n\n"


@pytest.mark.unit
def test_iter_repo_records_yields_tagged_items(repo: Path) -> None:
    _write(repo / "bin.dat", b"\x00")
    _write(repo / "text.txt", "hello")
    _write(repo / "skip.ipynb", "{}")

    items = list(iter_repo_records(repo, FilterPolicy()))

    assert items == [
        Skipped(rel_path="bin.dat", reason=SkipReason.BINARY),
        OutputRecord(rel_path="text.txt", content=b"hello"),
    ]


@pytest.mark.unit
def test_write_selected_files_in_requested_order(repo: Path, output: Path) -> None:
    _write(repo / "cmd" / "main.go", "package main\n")
    _write(repo / "README.md", "# Title\n")

    summary = write_selected_files(repo, output, ["main.go", "readme.md", "absent.txt"], select=_never)

    assert summary.emitted == ["cmd/main.go", "README.md"]
    assert output.read_bytes() == b"=== cmd/main.go ===\npackage main\n\n\n=== README.md ===\n# Title\n\n\n"


@pytest.mark.unit
def test_write_selected_files_asks_on_multiple_matches(repo: Path, output: Path) -> None:
    _write(repo / "a" / "config.yml", "a: 1\n")
    _write(repo / "b" / "config.yml", "b: 2\n")
    calls: list[tuple[str, list[Path]]] = []

    def pick_last(name: str, matches: list[Path]) -> Path:
        calls.append((name, matches))
        return matches[-1]

    summary = write_selected_files(repo, output, ["config.yml"], select=pick_last)

    assert calls == [("config.yml", [repo / "a" / "config.yml", repo / "b" / "config.yml"])]
    assert summary.emitted == ["b/config.yml"]
    assert output.read_bytes() == b"=== b/config.yml ===\nb: 2\n\n\n"


@pytest.mark.unit
def test_write_selected_files_requires_names(repo: Path, output: Path) -> None:
    with pytest.raises(EmptyFileRequestError):
        write_selected_files(repo, output, [], select=_never)

    assert not output.exists()


def _never(name: str, matches: list[Path]) -> Path:
    msg = f"unexpected selection for {name}"
    raise AssertionError(msg)
