from __future__ import annotations

from enum import StrEnum, auto
from pathlib import Path

from pydantic import BaseModel, ConfigDict, Field

DEFAULT_CLONE_DIR = "repo-to-txt-clone"
DEFAULT_OUTPUT_EXT = ".txt"

# Jupyter notebooks are large JSON blobs with embedded outputs.
DEFAULT_EXCLUDED_EXT = ".ipynb"

SNIFF_BYTES = 512

# Each signature holds a control or non-ASCII byte, so no plain text starts with one.
BINARY_SIGNATURES: tuple[bytes, ...] = (
    b"\x89PNG",
    b"\xff\xd8\xff",  # jpeg
    b"PK\x03\x04",  # zip, jar, docx, whl
    b"\x1f\x8b",  # gzip
    b"\xfd7zXZ\x00",
    b"7z\xbc\xaf\x27\x1c",
    b"\x7fELF",
    b"\xca\xfe\xba\xbe",
    b"\xcf\xfa\xed\xfe",
    b"\x00asm",
    b"SQLite format 3\x00",
)

SEPARATOR_TEMPLATE = "=== {rel_path} ===\n"
RECORD_TRAILER = b"\n\n"


class SkipReason(StrEnum):
    """Why a visited file produced no output record."""

    BINARY = auto()
    UNREADABLE = auto()


class DirectoryEntry(BaseModel):
    """A filesystem node produced by the tree traversal.

    Attributes:
        path: Absolute path of the entry.
        rel_path: Path relative to the traversal root, with POSIX separators.
        is_dir: Whether the entry is a directory (symlinks are never followed).
        name: Base name of the entry.
    """

    model_config = ConfigDict(arbitrary_types_allowed=True, frozen=True)

    path: Path = Field(..., description="Absolute path")
    rel_path: str = Field(..., description="Path relative to the traversal root")
    is_dir: bool = Field(default=False, description="Directory flag")
    name: str = Field(..., description="Base name")


class OutputRecord(BaseModel):
    """The unit the formatter turns into bytes."""

    model_config = ConfigDict(frozen=True)

    rel_path: str = Field(..., description="Path relative to the repository root")
    content: bytes = Field(..., description="Raw file content")


class Emitted(BaseModel):
    """A file whose record was appended to the output."""

    model_config = ConfigDict(frozen=True)

    rel_path: str
    size: int = Field(default=0, ge=0)


class Skipped(BaseModel):
    """A file that was visited but not written."""

    model_config = ConfigDict(frozen=True)

    rel_path: str
    reason: SkipReason


WalkOutcome = Emitted | Skipped


class WalkSummary(BaseModel):
    """Per-file outcomes of one write call, in emission order."""

    output: Path
    outcomes: list[WalkOutcome] = Field(default_factory=list)

    @property
    def emitted(self) -> list[str]:
        """Relative paths written to the output, in order."""
        return [o.rel_path for o in self.outcomes if isinstance(o, Emitted)]

    @property
    def skipped(self) -> dict[str, SkipReason]:
        """Relative paths that were skipped, with the reason."""
        return {o.rel_path: o.reason for o in self.outcomes if isinstance(o, Skipped)}
