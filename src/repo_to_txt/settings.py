from __future__ import annotations

import os
from enum import StrEnum
from pathlib import Path
from typing import Annotated, Literal

from dotenv import find_dotenv, load_dotenv
from pydantic import BaseModel, ConfigDict, Field, SecretStr, field_validator

ENV_FILE = find_dotenv(usecwd=True)
if ENV_FILE:
    load_dotenv(ENV_FILE, override=False)


def parse_comma_separated(value: str | list[str] | tuple[str, ...] | None) -> tuple[str, ...]:
    """Split a comma-separated string into trimmed, non-empty items.

    Sequences are flattened the same way, so repeated flags may also carry
    comma lists.

    Args:
        value (str | list[str] | tuple[str, ...] | None): raw value from the CLI or a prompt

    Returns:
        tuple[str, ...]: the trimmed items, empty when nothing was given
    """
    if not value:
        return ()
    raw = [value] if isinstance(value, str) else list(value)
    out: list[str] = []
    for item in raw:
        out.extend(part.strip() for part in str(item).split(",") if part.strip())
    return tuple(out)


class AuthMethod(StrEnum):
    """Transport authentication chosen for the clone step."""

    NONE = "none"
    HTTPS = "https"
    SSH = "ssh"


class NoAuth(BaseModel):
    """Anonymous access."""

    model_config = ConfigDict(frozen=True)

    kind: Literal["none"] = "none"


class BasicAuth(BaseModel):
    """HTTPS access with a username and a personal access token."""

    model_config = ConfigDict(frozen=True)

    kind: Literal["basic"] = "basic"
    username: str
    token: SecretStr


class KeyAuth(BaseModel):
    """SSH access with a private key file."""

    model_config = ConfigDict(frozen=True)

    kind: Literal["key"] = "key"
    key_path: Path
    passphrase: SecretStr | None = None


AuthCredentials = Annotated[NoAuth | BasicAuth | KeyAuth, Field(discriminator="kind")]


class FilterPolicy(BaseModel):
    """Inclusion and exclusion rules applied to ordinary file candidates.

    When ``include_extensions`` is non-empty it is the sole inclusion criterion.
    ``exclude_folders`` is always evaluated first.
    """

    model_config = ConfigDict(frozen=True)

    exclude_folders: tuple[str, ...] = Field(default=(), description="Relative folder prefixes to skip.")
    include_extensions: tuple[str, ...] = Field(default=(), description="Extension allow-list.")

    @field_validator("exclude_folders", "include_extensions", mode="before")
    @classmethod
    def _split(cls, value: str | list[str] | tuple[str, ...] | None) -> tuple[str, ...]:
        return parse_comma_separated(value)


class Settings(BaseModel):
    """Configuration for one repo-to-txt run.

    Built once from the command line, then completed by the interactive prompts
    through ``model_copy(update=...)``. Instances are immutable.
    """

    model_config = ConfigDict(arbitrary_types_allowed=True, frozen=True)

    repo_url: str = Field(default="", description="Repository URL (HTTPS or SSH).")
    local_path: Path | None = Field(default=None, description="Existing checkout to flatten instead of cloning.")
    auth_method: AuthMethod | None = Field(default=None, description="None means not chosen yet.")
    username: str = Field(
        default_factory=lambda: os.environ.get("GITHUB_USERNAME", ""),
        description="Username for HTTPS.",
    )
    pat: SecretStr = Field(
        default_factory=lambda: SecretStr(os.environ.get("GITHUB_TOKEN", "")),
        description="Personal access token for HTTPS.",
    )
    ssh_key: Path | None = Field(default=None, description="Private key for SSH.")
    ssh_passphrase: SecretStr = Field(
        default_factory=lambda: SecretStr(os.environ.get("SSH_PASSPHRASE", "")),
        description="Passphrase of the SSH key.",
    )
    output_dir: Path | None = Field(default=None, description="Directory receiving the output file.")
    exclude_folders: tuple[str, ...] = Field(default=(), description="Folder prefixes to exclude.")
    include_extensions: tuple[str, ...] = Field(default=(), description="Extensions to include.")
    file_names: tuple[str, ...] = Field(default=(), description="Exact file names to copy.")
    copy_to_clipboard: bool | None = Field(default=None, description="None means not chosen yet.")
    non_interactive: bool = Field(default=False, description="Never prompt.")
    log_file: str = Field(default="", description="Log file path.")

    @field_validator("exclude_folders", "include_extensions", "file_names", mode="before")
    @classmethod
    def _split(cls, value: str | list[str] | tuple[str, ...] | None) -> tuple[str, ...]:
        return parse_comma_separated(value)

    @field_validator("pat", "ssh_passphrase", mode="before")
    @classmethod
    def _secret(cls, value: str | SecretStr | None) -> SecretStr:
        if value is None:
            return SecretStr("")
        return value if isinstance(value, SecretStr) else SecretStr(value)

    @property
    def filter_policy(self) -> FilterPolicy:
        """Filter policy derived from the exclusion and inclusion settings."""
        return FilterPolicy(
            exclude_folders=self.exclude_folders,
            include_extensions=self.include_extensions,
        )
