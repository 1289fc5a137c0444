"""Interactive prompts for inputs that were not given on the command line."""

from __future__ import annotations

import os
import sys
from pathlib import Path
from typing import Any

from pydantic import SecretStr
from rich.console import Console
from rich.prompt import Confirm, IntPrompt, Prompt

from repo_to_txt.exceptions import FileSelectionError, InvalidRepoURLError
from repo_to_txt.git_ops import default_ssh_key_path
from repo_to_txt.output_construction import ensure_output_dir
from repo_to_txt.settings import AuthMethod, Settings, parse_comma_separated

console = Console(stderr=True)

HTTPS_PREFIX = "https://github.com/"
SSH_PREFIX = "git@github.com:"


def is_https_url(url: str) -> bool:
    """Return True for ``https://github.com/...`` repository URLs."""
    return url.startswith(HTTPS_PREFIX)


def is_ssh_url(url: str) -> bool:
    """Return True for ``git@github.com:...`` repository URLs."""
    return url.startswith(SSH_PREFIX)


def validate_repo_url(repo_url: str) -> str:
    """Check that a repository URL is a GitHub HTTPS or SSH URL.

    Args:
        repo_url (str): the URL typed by the user

    Returns:
        str: an error message, empty when the URL is valid
    """
    if not repo_url.strip():
        return "repository URL cannot be empty"
    if is_https_url(repo_url) or is_ssh_url(repo_url):
        return ""
    return (
        "URL must be either HTTPS (https://github.com/user/repo) "
        "or SSH (git@github.com:user/repo) format"
    )


def default_downloads_path() -> Path:
    """Best guess of the user's Downloads directory, falling back to home."""
    home = Path.home()
    downloads = home / "Downloads"
    if sys.platform != "win32":
        xdg = os.environ.get("XDG_DOWNLOAD_DIR", "")
        if xdg and xdg != "$HOME/Downloads":
            downloads = Path(os.path.expandvars(xdg)).expanduser()
    if not downloads.exists():
        return home
    return downloads


def is_ssh_key_passphrase_protected(key_path: Path) -> bool:
    """Check whether a private key file looks encrypted.

    Only the first 100 bytes are inspected for the ``ENCRYPTED`` marker of
    PEM keys. Unreadable files are reported as not protected.
    """
    try:
        with Path(key_path).open("rb") as f:
            head = f.read(100)
    except OSError:
        return False
    return b"ENCRYPTED" in head


def _ask_non_empty(label: str, *, password: bool = False) -> str:
    while True:
        value = Prompt.ask(label, password=password, console=console).strip()
        if value:
            return value
        console.print(f"[red]{label} cannot be empty[/red]")


def _ask_repo_url() -> str:
    while True:
        value = Prompt.ask("GitHub repository URL (HTTPS or SSH)", console=console).strip()
        error = validate_repo_url(value)
        if not error:
            return value
        console.print(f"[red]{error}[/red]")


def _ask_ssh_key() -> Path:
    default_key = default_ssh_key_path()
    while True:
        value = Prompt.ask("Path to SSH private key", default=str(default_key), console=console).strip()
        key = Path(value).expanduser() if value else default_key
        if key.exists():
            return key
        console.print(f"[red]SSH key file does not exist at path: {key}[/red]")


def _ask_auth_method(repo_url: str) -> AuthMethod:
    if repo_url.startswith("git@"):
        console.print("Authentication: SSH")
        return AuthMethod.SSH
    if not repo_url.startswith(("https://", "http://")):
        raise InvalidRepoURLError(
            url=repo_url,
            message="Unsupported repository URL format for authentication options.",
        )
    choice = Prompt.ask(
        "Select authentication method",
        choices=[AuthMethod.NONE.value, AuthMethod.HTTPS.value],
        default=AuthMethod.NONE.value,
        console=console,
    )
    return AuthMethod(choice)


def prompt_for_missing_inputs(settings: Settings) -> Settings:
    """Ask the user for every setting that was not given on the command line.

    The output directory is created once it is known.

    Args:
        settings (Settings): the settings parsed from the command line

    Raises:
        OutputFileError: if the output directory cannot be created

    Returns:
        Settings: a completed copy of ``settings``
    """
    update: dict[str, Any] = {}

    repo_url = settings.repo_url
    if not repo_url and settings.local_path is None:
        repo_url = _ask_repo_url()
        update["repo_url"] = repo_url

    auth_method = settings.auth_method
    if auth_method is None and settings.local_path is None:
        auth_method = _ask_auth_method(repo_url)
        update["auth_method"] = auth_method

    if auth_method == AuthMethod.HTTPS:
        if not settings.username:
            update["username"] = _ask_non_empty("GitHub username")
        if not settings.pat.get_secret_value():
            update["pat"] = SecretStr(_ask_non_empty("GitHub Personal Access Token", password=True))
    elif auth_method == AuthMethod.SSH:
        ssh_key = settings.ssh_key
        if ssh_key is None:
            ssh_key = _ask_ssh_key()
            update["ssh_key"] = ssh_key
        if is_ssh_key_passphrase_protected(ssh_key) and not settings.ssh_passphrase.get_secret_value():
            passphrase = Prompt.ask(
                "SSH key passphrase (leave empty if none)",
                password=True,
                default="",
                show_default=False,
                console=console,
            )
            update["ssh_passphrase"] = SecretStr(passphrase)

    output_dir = settings.output_dir
    if output_dir is None:
        default_dir = default_downloads_path()
        value = Prompt.ask("Output directory", default=str(default_dir), console=console).strip()
        output_dir = Path(value).expanduser() if value else default_dir
        update["output_dir"] = output_dir
        if not settings.exclude_folders:
            update["exclude_folders"] = parse_comma_separated(
                Prompt.ask(
                    "Folders to exclude (comma-separated, leave empty to include all)",
                    default="",
                    show_default=False,
                    console=console,
                ),
            )
        if not settings.include_extensions:
            update["include_extensions"] = parse_comma_separated(
                Prompt.ask(
                    "File extensions to include (comma-separated, leave empty to include all)",
                    default="",
                    show_default=False,
                    console=console,
                ),
            )

    if not settings.file_names:
        update["file_names"] = parse_comma_separated(
            Prompt.ask(
                "Exact file names to copy (comma-separated, leave empty to copy all files)",
                default="",
                show_default=False,
                console=console,
            ),
        )

    if settings.copy_to_clipboard is None:
        update["copy_to_clipboard"] = Confirm.ask("Copy output to clipboard?", default=False, console=console)

    ensure_output_dir(Path(output_dir))
    return settings.model_copy(update=update)


def select_file(file_name: str, matches: list[Path]) -> Path:
    """Let the user pick one of several files sharing the same name.

    Args:
        file_name (str): the requested name
        matches (list[Path]): candidate paths, in discovery order

    Raises:
        FileSelectionError: if the choice is out of range

    Returns:
        Path: the chosen path
    """
    console.print(f"Multiple matches found for file '{file_name}':")
    for i, match in enumerate(matches, start=1):
        console.print(f"  {i}) {match}")
    choice = IntPrompt.ask(
        f"Select the number of the file you want to include (1-{len(matches)})",
        console=console,
    )
    if choice < 1 or choice > len(matches):
        raise FileSelectionError(file_name=file_name, message="Choice out of range.")
    return matches[choice - 1]
