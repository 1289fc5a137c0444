from __future__ import annotations

import os
from pathlib import Path
from typing import TYPE_CHECKING

from repo_to_txt.config import (
    BINARY_SIGNATURES,
    DEFAULT_EXCLUDED_EXT,
    SNIFF_BYTES,
    DirectoryEntry,
    SkipReason,
)
from repo_to_txt.exceptions import EmptyFileRequestError, FileSkippedError
from repo_to_txt.logging import logger

if TYPE_CHECKING:
    from collections.abc import Callable, Iterator, Sequence

    from repo_to_txt.settings import FilterPolicy

    OnErrorFn = Callable[[Path, OSError], None]


def relpath(path: Path, root: Path) -> str:
    """Send the relative path of path from root.

    Args:
        path (Path): the path to "relativise"
        root (Path): the root to relativise from

    Returns:
        str: the relative path from root to path, with POSIX separators.
            If path is not under root, returns the original path as a string.
    """
    try:
        return to_slash(str(Path(path).relative_to(root)))
    except ValueError:
        return to_slash(str(path))


def to_slash(path: str) -> str:
    """Replace each separator of the host platform with a forward slash.

    Other characters are kept, so a backslash inside a POSIX file name survives.
    """
    if os.sep == "/":
        return path
    return path.replace(os.sep, "/")


def normalize_prefixes(prefixes: Sequence[str]) -> list[str]:
    """Normalize folder exclusion prefixes.

    Strip whitespace, convert separators to ``/`` and drop trailing slashes
    and empty entries.

    Args:
        prefixes (Sequence[str]): the raw prefixes

    Returns:
        list[str]: the usable prefixes, in the given order
    """
    out: list[str] = []
    for p in prefixes:
        p2 = to_slash((p or "").strip()).rstrip("/")
        if p2:
            out.append(p2)
    return out


def normalize_extension(ext: str) -> str:
    """Lower-case an allow-list entry and make sure it starts with a dot."""
    e = ext.strip().lower()
    if e and not e.startswith("."):
        e = "." + e
    return e


def file_extension(rel_path: str) -> str:
    """Return the lower-cased extension of the last path element, dot included.

    Args:
        rel_path (str): a relative path using forward slashes

    Returns:
        str: e.g. ``".go"``, or ``""`` when the base name has no dot
    """
    name = rel_path.rsplit("/", 1)[-1]
    idx = name.rfind(".")
    return name[idx:].lower() if idx >= 0 else ""


def should_exclude(rel_path: str, policy: FilterPolicy) -> bool:
    """Decide whether an ordinary file candidate is left out of the output.

    Folder prefixes are checked first: ``docs`` excludes ``docs`` and
    ``docs/readme.md`` but not ``documents/readme.md``. A folder match wins
    over any extension rule. Then, if an extension allow-list is configured,
    anything not on it is excluded; otherwise only the built-in default
    (``.ipynb``) is excluded.

    Directories and dot-entries never reach this function, the traversal
    prunes them first.

    Args:
        rel_path (str): path relative to the repository root, any separator style
        policy (FilterPolicy): the exclusion prefixes and extension allow-list

    Returns:
        bool: True if the file must be skipped
    """
    rel = to_slash(rel_path)
    for prefix in normalize_prefixes(policy.exclude_folders):
        if rel == prefix or rel.startswith(prefix + "/"):
            return True

    if policy.include_extensions:
        allowed = {normalize_extension(e) for e in policy.include_extensions}
        allowed.discard("")
        return file_extension(rel) not in allowed

    return rel.lower().endswith(DEFAULT_EXCLUDED_EXT)


def looks_binary(prefix: bytes) -> bool:
    """Classify a content prefix as binary.

    A NUL byte anywhere in the prefix, or a well-known binary magic number at
    its start, marks the file as binary. Binary formats without either are
    reported as text.

    Args:
        prefix (bytes): the first bytes of the file (``SNIFF_BYTES`` at most)

    Returns:
        bool: True if the content is binary
    """
    if b"\x00" in prefix:
        return True
    return prefix.startswith(BINARY_SIGNATURES)


def read_if_text(path: Path, sniff_bytes: int = SNIFF_BYTES) -> bytes:
    """Read a whole file unless it looks binary.

    The prefix and the full content are read from the same handle, which is
    rewound in between. Binary files are never read past their prefix.

    Args:
        path (Path): the file to read
        sniff_bytes (int, optional): size of the prefix handed to ``looks_binary``. Defaults to 512.

    Raises:
        FileSkippedError: with ``SkipReason.BINARY`` for binary content, or
            ``SkipReason.UNREADABLE`` when the file cannot be opened or read.

    Returns:
        bytes: the complete file content
    """
    try:
        with Path(path).open("rb") as f:
            prefix = f.read(sniff_bytes)
            if looks_binary(prefix):
                raise FileSkippedError(path=Path(path), reason=SkipReason.BINARY)
            f.seek(0)
            return f.read()
    except OSError as e:
        raise FileSkippedError(path=Path(path), reason=SkipReason.UNREADABLE) from e


def iter_entries(root: Path, on_error: OnErrorFn) -> Iterator[DirectoryEntry]:
    """Walk the tree under ``root`` depth-first.

    Entries of each directory are visited in name order, and a directory is
    yielded right before its own content. Entries whose name starts with a dot
    are skipped, and dot-directories are never entered. Symbolic links are
    reported as files and never followed.

    Args:
        root (Path): the directory to walk (not yielded itself)
        on_error (OnErrorFn): called with the failing path and error when a
            directory cannot be listed or an entry cannot be inspected. It may
            raise to abort the walk, or return to skip that entry.

    Yields:
        Iterator[DirectoryEntry]: every visited entry, exactly once
    """
    root = Path(root)
    yield from _walk_directory(root, root, on_error)


def _walk_directory(directory: Path, root: Path, on_error: OnErrorFn) -> Iterator[DirectoryEntry]:
    try:
        with os.scandir(directory) as it:
            entries = sorted(it, key=lambda e: e.name)
    except OSError as e:
        on_error(directory, e)
        return

    for entry in entries:
        if entry.name.startswith("."):
            continue
        path = Path(entry.path)
        try:
            is_dir = entry.is_dir(follow_symlinks=False)
        except OSError as e:
            on_error(path, e)
            continue
        yield DirectoryEntry(path=path, rel_path=relpath(path, root), is_dir=is_dir, name=entry.name)
        if is_dir:
            yield from _walk_directory(path, root, on_error)


def _log_and_skip(path: Path, error: OSError) -> None:
    logger.warning("Error accessing path", path=str(path), error=str(error))


def find_files(root: Path, names: Sequence[str]) -> dict[str, list[Path]]:
    """Locate every file whose base name equals one of ``names``.

    Matching is exact but case-insensitive. No filter policy applies, only
    dot-entries are skipped. Access errors are logged and the entry is
    skipped, so a partial result is still returned.

    Args:
        root (Path): the directory to search
        names (Sequence[str]): the requested file names

    Raises:
        EmptyFileRequestError: if ``names`` is empty

    Returns:
        dict[str, list[Path]]: requested name -> absolute paths in discovery
            order. Names without any match have no key.
    """
    wanted = [(n, n.casefold()) for n in names if n]
    if not wanted:
        raise EmptyFileRequestError

    root = Path(root).absolute()
    matches: dict[str, list[Path]] = {}
    for entry in iter_entries(root, _log_and_skip):
        if entry.is_dir:
            continue
        folded = entry.name.casefold()
        for name, key in wanted:
            if folded == key:
                bucket = matches.setdefault(name, [])
                if entry.path not in bucket:
                    bucket.append(entry.path)
    return matches
