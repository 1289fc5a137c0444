"""
repo-to-txt: flatten a Git repository into a single text file.

Overview
--------
The tool clones (or pulls) a remote repository, or takes an existing local
checkout, and writes every text file of its working tree into one artifact:

    === relative/path/one.ext ===
    <raw content of file one>

    === relative/path/two.ext ===
    <raw content of file two>

Dot-files and dot-directories (``.git`` included) are never exported, binary
files are detected and skipped, and the export can be narrowed with folder
exclusions (``--exclude``), an extension allow-list (``--include-ext``) or a
list of exact file names (``--files``). Without an allow-list, Jupyter
notebooks are left out. The result can be copied to the clipboard.

Missing inputs are asked for interactively unless ``--non-interactive`` is
given.

Usage
-----
    repo-to-txt --repo https://github.com/user/repo --auth none --output-dir out
    repo-to-txt --repo git@github.com:user/repo.git --auth ssh --ssh-key ~/.ssh/id_ed25519
    repo-to-txt --local-path . --output-dir /tmp --exclude docs,tests --include-ext .py,.md --non-interactive
    repo-to-txt --repo https://github.com/user/repo --files main.go,README.md --copy-clipboard
"""

from __future__ import annotations

import argparse
import tempfile
from pathlib import Path
from typing import TYPE_CHECKING, Any

from repo_to_txt import __version__
from repo_to_txt.clipboard import copy_file_to_clipboard
from repo_to_txt.config import DEFAULT_CLONE_DIR, DEFAULT_OUTPUT_EXT
from repo_to_txt.exceptions import InvalidRepoURLError, RepoToTxtError
from repo_to_txt.git_ops import clone_or_pull, extract_repo_name, setup_auth
from repo_to_txt.logging import logger, setup_logging
from repo_to_txt.output_construction import ensure_output_dir, write_repo_contents, write_selected_files
from repo_to_txt.prompt import prompt_for_missing_inputs, select_file
from repo_to_txt.settings import AuthMethod, Settings

if TYPE_CHECKING:
    from collections.abc import Callable, Sequence

    from repo_to_txt.config import WalkSummary

    SelectFn = Callable[[str, list[Path]], Path]


def parse_args(argv: Sequence[str] | None = None) -> Settings:
    p = argparse.ArgumentParser(
        prog="repo-to-txt",
        description="Clone a Git repository and write its contents to a single text file.",
    )
    p.add_argument("--repo", dest="repo_url", type=str, default="", help="Repository URL (HTTPS or SSH).")
    p.add_argument(
        "--local-path",
        type=Path,
        default=None,
        help="Flatten an existing local directory instead of cloning.",
    )
    p.add_argument(
        "--auth",
        dest="auth_method",
        choices=[m.value for m in AuthMethod],
        default=None,
        help="Authentication method: none, https or ssh.",
    )
    p.add_argument("--username", type=str, default=None, help="GitHub username (for HTTPS).")
    p.add_argument("--pat", type=str, default=None, help="GitHub Personal Access Token (for HTTPS).")
    p.add_argument("--ssh-key", type=Path, default=None, help="Path to SSH private key (for SSH).")
    p.add_argument("--output-dir", type=Path, default=None, help="Output directory for the text file.")
    p.add_argument(
        "--exclude",
        dest="exclude_folders",
        action="append",
        default=[],
        help="Comma list of folders to exclude (repeatable).",
    )
    p.add_argument(
        "--include-ext",
        dest="include_extensions",
        action="append",
        default=[],
        help="Comma list of extensions to include, e.g. .go,.md (repeatable). "
        "Without it, .ipynb files are excluded.",
    )
    p.add_argument(
        "--files",
        dest="file_names",
        action="append",
        default=[],
        help="Comma list of exact file names to copy (repeatable).",
    )
    p.add_argument(
        "--copy-clipboard",
        dest="copy_to_clipboard",
        action=argparse.BooleanOptionalAction,
        default=None,
        help="Copy the output to the clipboard.",
    )
    p.add_argument("--non-interactive", action="store_true", help="Never prompt for missing inputs.")
    p.add_argument("--log-file", type=str, default="", help="Log file path.")
    p.add_argument("--version", action="version", version=f"%(prog)s {__version__}")
    args = p.parse_args(argv)

    values: dict[str, Any] = {k: v for k, v in vars(args).items() if v is not None or k not in {"username", "pat"}}
    return Settings(**values)


def output_file_for(settings: Settings, repo_name: str) -> Path:
    """Return ``<output_dir>/<repo_name>.txt``, using the current directory by default."""
    output_dir = Path(settings.output_dir) if settings.output_dir is not None else Path.cwd()
    return output_dir / f"{repo_name}{DEFAULT_OUTPUT_EXT}"


def export(source: Path, output_file: Path, settings: Settings, select: SelectFn = select_file) -> WalkSummary:
    """Write ``source`` to ``output_file`` in bulk or selected-files mode, then copy it if asked.

    Args:
        source (Path): the materialized repository root
        output_file (Path): the artifact to write
        settings (Settings): the resolved run settings
        select (SelectFn, optional): picks one path when a file name matches
            several files. Defaults to an interactive prompt.

    Returns:
        WalkSummary: what was written and skipped
    """
    ensure_output_dir(output_file.parent)
    if settings.file_names:
        summary = write_selected_files(source, output_file, settings.file_names, select)
    else:
        summary = write_repo_contents(source, output_file, settings.filter_policy)

    if settings.copy_to_clipboard:
        copy_file_to_clipboard(output_file)
    else:
        logger.info("Output was not copied to the clipboard", output=str(output_file))
    return summary


def run(settings: Settings, select: SelectFn = select_file) -> WalkSummary:
    """Resolve the source directory and export it according to ``settings``.

    Raises:
        RepoToTxtError: on any fatal error (bad URL, auth, git, traversal, output)

    Returns:
        WalkSummary: what was written and skipped
    """
    if not settings.non_interactive:
        settings = prompt_for_missing_inputs(settings)

    if settings.local_path is not None:
        source = Path(settings.local_path).resolve()
        return export(source, output_file_for(settings, source.name), settings, select)

    if not settings.repo_url:
        raise InvalidRepoURLError(url="", message="A repository URL or --local-path is required.")

    repo_name = extract_repo_name(settings.repo_url)
    auth = setup_auth(settings)
    output_file = output_file_for(settings, repo_name)
    logger.info("Welcome to repo-to-txt!", repo=settings.repo_url, output=str(output_file))

    with tempfile.TemporaryDirectory(prefix=DEFAULT_CLONE_DIR, ignore_cleanup_errors=True) as tmp:
        clone_dir = Path(tmp)
        clone_or_pull(settings.repo_url, clone_dir, auth)
        return export(clone_dir, output_file, settings, select)


def main(argv: Sequence[str] | None = None) -> int:
    settings = parse_args(argv)
    if settings.log_file:
        setup_logging(settings.log_file)

    try:
        summary = run(settings, select=select_file)
    except RepoToTxtError as e:
        logger.error("repo-to-txt failed", error=str(e), error_type=type(e).__name__)
        return 1

    print(f"Wrote {summary.output} files={len(summary.emitted)} skipped={len(summary.skipped)}")
    return 0


if __name__ == "__main__":
    raise SystemExit(main())
