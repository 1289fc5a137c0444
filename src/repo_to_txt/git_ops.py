"""Clone or update the remote repository that gets flattened."""

from __future__ import annotations

import os
import shlex
import subprocess  # noqa: S404
import tempfile
from pathlib import Path, PurePosixPath
from typing import TYPE_CHECKING
from urllib.parse import quote, urlparse

from repo_to_txt.exceptions import AuthConfigurationError, GitCommandError, InvalidRepoURLError
from repo_to_txt.logging import logger
from repo_to_txt.settings import AuthMethod, BasicAuth, KeyAuth, NoAuth

if TYPE_CHECKING:
    from collections.abc import Sequence

    from repo_to_txt.settings import AuthCredentials, Settings

ASKPASS_ENV = "REPO_TO_TXT_SSH_PASSPHRASE"
_ASKPASS_SCRIPT = f'#!/bin/sh\nprintf \'%s\\n\' "${ASKPASS_ENV}"\n'


def extract_repo_name(repo_url: str) -> str:
    """Extract the repository name from an SSH or HTTP(S) URL.

    Args:
        repo_url (str): e.g. ``git@github.com:owner/name.git`` or
            ``https://github.com/owner/name``

    Raises:
        InvalidRepoURLError: if the URL format is not supported or has no name

    Returns:
        str: the repository name, without any ``.git`` suffix
    """
    url = repo_url.strip()
    if url.startswith("git@"):
        _, sep, path = url.partition(":")
        if not sep or not path:
            raise InvalidRepoURLError(url=repo_url, message="Invalid SSH repository URL format.")
    elif url.startswith(("https://", "http://")):
        path = urlparse(url).path
    else:
        raise InvalidRepoURLError(url=repo_url, message="Invalid repository URL format.")

    name = PurePosixPath(path.rstrip("/").removesuffix(".git")).name
    if not name:
        raise InvalidRepoURLError(url=repo_url, message="Could not determine repository name from URL.")
    return name


def default_ssh_key_path() -> Path:
    """Return the conventional private key location, ``~/.ssh/id_rsa``."""
    return Path.home() / ".ssh" / "id_rsa"


def setup_auth(settings: Settings) -> AuthCredentials:
    """Build the credentials matching the chosen authentication method.

    Args:
        settings (Settings): the resolved run settings

    Raises:
        AuthConfigurationError: if HTTPS is chosen without username or token

    Returns:
        AuthCredentials: the credentials for the clone step
    """
    method = settings.auth_method or AuthMethod.NONE
    if method == AuthMethod.HTTPS:
        if not settings.username or not settings.pat.get_secret_value():
            raise AuthConfigurationError(
                message="Username and personal access token must be provided for HTTPS authentication.",
            )
        return BasicAuth(username=settings.username, token=settings.pat)
    if method == AuthMethod.SSH:
        passphrase = settings.ssh_passphrase if settings.ssh_passphrase.get_secret_value() else None
        return KeyAuth(key_path=settings.ssh_key or default_ssh_key_path(), passphrase=passphrase)
    return NoAuth()


def authenticated_url(repo_url: str, auth: AuthCredentials) -> str:
    """Embed basic-auth credentials into an HTTP(S) URL; other URLs are returned as is."""
    if not isinstance(auth, BasicAuth) or not repo_url.startswith(("https://", "http://")):
        return repo_url
    parsed = urlparse(repo_url)
    user = quote(auth.username, safe="")
    token = quote(auth.token.get_secret_value(), safe="")
    host = parsed.netloc.rsplit("@", 1)[-1]
    return parsed._replace(netloc=f"{user}:{token}@{host}").geturl()


class GitEnvironment:
    """Environment for git subprocesses using ``auth``, as a context manager.

    Terminal prompts are disabled. Key authentication goes through
    ``GIT_SSH_COMMAND``; a passphrase is handed to ssh by a temporary askpass
    helper that only lives until the block exits.
    """

    def __init__(self, auth: AuthCredentials) -> None:
        self.auth = auth
        self._askpass_dir: tempfile.TemporaryDirectory[str] | None = None

    def __enter__(self) -> dict[str, str]:
        env = dict(os.environ)
        env["GIT_TERMINAL_PROMPT"] = "0"
        auth = self.auth
        if not isinstance(auth, KeyAuth):
            return env

        env["GIT_SSH_COMMAND"] = f"ssh -i {shlex.quote(str(auth.key_path))} -o IdentitiesOnly=yes"
        if auth.passphrase is None:
            return env

        self._askpass_dir = tempfile.TemporaryDirectory(prefix="repo-to-txt-askpass")
        helper = Path(self._askpass_dir.name) / "askpass.sh"
        helper.write_text(_ASKPASS_SCRIPT, encoding="utf-8")
        helper.chmod(0o700)
        env[ASKPASS_ENV] = auth.passphrase.get_secret_value()
        env["SSH_ASKPASS"] = str(helper)
        env["SSH_ASKPASS_REQUIRE"] = "force"
        env.setdefault("DISPLAY", ":0")
        return env

    def __exit__(self, *exc_info: object) -> None:
        if self._askpass_dir is not None:
            self._askpass_dir.cleanup()
            self._askpass_dir = None


def _redact(text: str, secrets: Sequence[str]) -> str:
    for secret in secrets:
        if secret:
            text = text.replace(secret, "***")
    return text


def run_git(args: Sequence[str], *, env: dict[str, str], secrets: Sequence[str] = ()) -> str:
    """Run ``git`` with ``args`` and return its standard output.

    Args:
        args (Sequence[str]): arguments after ``git``
        env (dict[str, str]): subprocess environment
        secrets (Sequence[str], optional): strings to mask in error reports. Defaults to ().

    Raises:
        GitCommandError: if git is missing or exits with a non-zero status

    Returns:
        str: captured standard output
    """
    cmd = ["git", *args]
    shown = _redact(" ".join(cmd), secrets)
    try:
        out = subprocess.run(  # noqa: S603
            cmd,
            text=True,
            capture_output=True,
            check=False,
            env=env,
        )
    except OSError as e:
        raise GitCommandError(command=shown, returncode=127, stdout="", stderr=str(e)) from e
    if out.returncode != 0:
        raise GitCommandError(
            command=shown,
            returncode=out.returncode,
            stdout=_redact(out.stdout, secrets),
            stderr=_redact(out.stderr, secrets),
        )
    return out.stdout


def clone_or_pull(repo_url: str, dest: Path, auth: AuthCredentials) -> None:
    """Clone ``repo_url`` into ``dest``, or pull when ``dest`` is already a checkout.

    Args:
        repo_url (str): the remote repository
        dest (Path): local directory, empty or an existing clone
        auth (AuthCredentials): credentials for the transport

    Raises:
        GitCommandError: if the clone or pull fails
    """
    dest = Path(dest)
    secrets: list[str] = []
    if isinstance(auth, BasicAuth):
        token = auth.token.get_secret_value()
        secrets = [token, quote(token, safe="")]

    with GitEnvironment(auth) as env:
        if (dest / ".git").is_dir():
            logger.info("Repository already exists. Attempting to pull latest changes.", path=str(dest))
            run_git(["-C", str(dest), "pull", "origin"], env=env, secrets=secrets)
            return
        logger.info("Cloning repository", url=repo_url, dest=str(dest))
        run_git(["clone", authenticated_url(repo_url, auth), str(dest)], env=env, secrets=secrets)
