from __future__ import annotations

from dataclasses import dataclass, fields
from pathlib import Path

from repo_to_txt.config import SkipReason


@dataclass(frozen=True)
class RepoToTxtError(Exception):
    """Base exception for errors in the repo_to_txt package."""

    def __str__(self) -> str:
        parts = [f"{f.name}={getattr(self, f.name)}" for f in fields(self) if f.name != "message"]
        message = getattr(self, "message", "") or type(self).__name__
        return f"{message} ({', '.join(parts)})" if parts else message


@dataclass(frozen=True)
class FileSkippedError(RepoToTxtError):
    """Raised when a file is not emitted because it is binary or unreadable."""

    path: Path
    reason: SkipReason
    message: str = "File skipped."


@dataclass(frozen=True)
class TraversalError(RepoToTxtError):
    """Raised when the repository tree itself cannot be walked."""

    path: Path
    cause: str
    message: str = "Error walking the repository tree."


@dataclass(frozen=True)
class OutputFileError(RepoToTxtError):
    """Raised when the output file cannot be created or written."""

    path: Path
    cause: str
    message: str = "Unable to write the output file."


@dataclass(frozen=True)
class EmptyFileRequestError(RepoToTxtError, ValueError):
    """Raised when the file finder is called without any file name."""

    message: str = "No file names provided to search for."


@dataclass(frozen=True)
class InvalidRepoURLError(RepoToTxtError):
    """Raised when a repository URL cannot be understood."""

    url: str
    message: str = "Invalid repository URL."


@dataclass(frozen=True)
class AuthConfigurationError(RepoToTxtError):
    """Raised when the selected authentication method is missing details."""

    message: str = "Authentication is not configured correctly."


@dataclass(frozen=True)
class GitCommandError(RepoToTxtError):
    """Raised when a git command fails."""

    command: str
    returncode: int
    stdout: str
    stderr: str


@dataclass(frozen=True)
class FileSelectionError(RepoToTxtError):
    """Raised when the user picks an invalid entry among several matches."""

    file_name: str
    message: str = "Invalid file selection."


@dataclass(frozen=True)
class ClipboardError(RepoToTxtError):
    """Raised when the output cannot be copied to the clipboard."""

    cause: str
    message: str = "Error copying to clipboard."
