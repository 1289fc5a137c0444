from __future__ import annotations

from pathlib import Path
from typing import TYPE_CHECKING, BinaryIO

from repo_to_txt.config import (
    RECORD_TRAILER,
    SEPARATOR_TEMPLATE,
    Emitted,
    OutputRecord,
    Skipped,
    SkipReason,
    WalkSummary,
)
from repo_to_txt.exceptions import FileSkippedError, OutputFileError, TraversalError
from repo_to_txt.file_manipulation import find_files, iter_entries, read_if_text, should_exclude, to_slash
from repo_to_txt.logging import logger

if TYPE_CHECKING:
    from collections.abc import Callable, Iterator, Sequence

    from repo_to_txt.settings import FilterPolicy

    SelectFn = Callable[[str, list[Path]], Path]


def format_record(rel_path: str, content: bytes) -> bytes:
    """Render one file as a separator line, its raw content and a blank line.

    The content is copied verbatim: no escaping and no newline normalization.

    Args:
        rel_path (str): path relative to the repository root
        content (bytes): raw file content

    Returns:
        bytes: ``=== <rel_path> ===\\n<content>\\n\\n``
    """
    header = SEPARATOR_TEMPLATE.format(rel_path=to_slash(rel_path))
    return header.encode("utf-8", errors="surrogateescape") + content + RECORD_TRAILER


def _raise_traversal_error(path: Path, error: OSError) -> None:
    raise TraversalError(path=path, cause=str(error)) from error


def _same_file(path: Path, other: Path | None) -> bool:
    if other is None:
        return False
    try:
        return path.resolve() == other
    except OSError:
        return False


def iter_repo_records(
    root: Path,
    policy: FilterPolicy,
    *,
    ignore: Path | None = None,
) -> Iterator[OutputRecord | Skipped]:
    """Walk ``root`` and produce one item per file that passes the filter policy.

    Policy-excluded files produce nothing. Binary or unreadable files produce a
    ``Skipped`` item, every other file an ``OutputRecord`` holding its content.
    Only one file's content is held at a time.

    Args:
        root (Path): the repository root
        policy (FilterPolicy): folder exclusions and extension allow-list
        ignore (Path | None, optional): resolved path of a file never to emit,
            typically the output file itself. Defaults to None.

    Raises:
        TraversalError: if any directory of the tree cannot be listed

    Yields:
        Iterator[OutputRecord | Skipped]: items in traversal order
    """
    for entry in iter_entries(root, _raise_traversal_error):
        if entry.is_dir:
            continue
        if should_exclude(entry.rel_path, policy):
            continue
        if ignore is not None and entry.name == ignore.name and _same_file(entry.path, ignore):
            continue
        try:
            content = read_if_text(entry.path)
        except FileSkippedError as e:
            yield Skipped(rel_path=entry.rel_path, reason=e.reason)
            continue
        yield OutputRecord(rel_path=entry.rel_path, content=content)


def ensure_output_dir(directory: Path) -> None:
    """Create ``directory`` and its parents when missing.

    Raises:
        OutputFileError: if the directory cannot be created, for instance when a
            regular file already sits at that path
    """
    try:
        Path(directory).mkdir(parents=True, exist_ok=True)
    except OSError as e:
        raise OutputFileError(path=Path(directory), cause=str(e)) from e


def _open_output(output_path: Path) -> BinaryIO:
    try:
        return output_path.open("wb")
    except OSError as e:
        raise OutputFileError(path=output_path, cause=str(e)) from e


def _write(fh: BinaryIO, output_path: Path, data: bytes) -> None:
    try:
        fh.write(data)
    except OSError as e:
        raise OutputFileError(path=output_path, cause=str(e)) from e


def write_repo_contents(root: Path, output_path: Path, policy: FilterPolicy) -> WalkSummary:
    """Flatten the repository tree under ``root`` into ``output_path``.

    The output file is created (or truncated) first and written through a
    single buffered handle, which is flushed and closed on every exit path.
    Binary and unreadable files are logged and skipped. Errors listing the tree
    and errors writing the output abort the run, and the partially written
    file must then be considered unreliable.

    Args:
        root (Path): the repository root
        output_path (Path): the text artifact to write
        policy (FilterPolicy): folder exclusions and extension allow-list

    Raises:
        OutputFileError: if the output cannot be created or written
        TraversalError: if the tree cannot be walked

    Returns:
        WalkSummary: emitted and skipped files, in traversal order
    """
    root = Path(root)
    output_path = Path(output_path)
    summary = WalkSummary(output=output_path)

    with _open_output(output_path) as fh:
        ignore = output_path.resolve()
        for item in iter_repo_records(root, policy, ignore=ignore):
            if isinstance(item, Skipped):
                logger.warning("Skipping file", path=item.rel_path, reason=str(item.reason))
                summary.outcomes.append(item)
                continue
            _write(fh, output_path, format_record(item.rel_path, item.content))
            summary.outcomes.append(Emitted(rel_path=item.rel_path, size=len(item.content)))

    logger.info(
        "Repository contents written",
        output=str(output_path),
        files=len(summary.emitted),
        skipped=len(summary.skipped),
    )
    return summary


def _record_path(path: Path, root: Path) -> str:
    try:
        return to_slash(str(path.relative_to(root)))
    except ValueError:
        return path.name


def write_selected_files(
    root: Path,
    output_path: Path,
    names: Sequence[str],
    select: SelectFn,
) -> WalkSummary:
    """Write only the files named in ``names`` into ``output_path``.

    Records follow the order of ``names``. A name without a match is logged and
    ignored. When a name matches several files, ``select`` picks one.

    Args:
        root (Path): the repository root
        output_path (Path): the text artifact to write
        names (Sequence[str]): exact, case-insensitive base names
        select (SelectFn): called as ``select(name, matches)`` for ambiguous names

    Raises:
        EmptyFileRequestError: if ``names`` is empty
        OutputFileError: if the output cannot be created or written

    Returns:
        WalkSummary: emitted and skipped files, in output order
    """
    root = Path(root).absolute()
    output_path = Path(output_path)
    file_matches = find_files(root, names)
    summary = WalkSummary(output=output_path)

    with _open_output(output_path) as fh:
        for name in names:
            matches = file_matches.get(name) or []
            if not matches:
                logger.warning("No matches found for file name", file_name=name)
                continue
            if len(matches) == 1:
                selected = matches[0]
                logger.info("Found one match", file_name=name, path=str(selected))
            else:
                selected = Path(select(name, list(matches)))

            rel = _record_path(selected, root)
            try:
                content = selected.read_bytes()
            except OSError as e:
                logger.warning("Failed to read file", path=str(selected), error=str(e))
                summary.outcomes.append(Skipped(rel_path=rel, reason=SkipReason.UNREADABLE))
                continue

            _write(fh, output_path, format_record(rel, content))
            summary.outcomes.append(Emitted(rel_path=rel, size=len(content)))
            logger.info("Added file", path=str(selected), output=str(output_path))

    logger.info("Specified files' contents written", output=str(output_path), files=len(summary.emitted))
    return summary
