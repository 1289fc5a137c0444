from __future__ import annotations

from pathlib import Path

import pyperclip

from repo_to_txt.exceptions import ClipboardError
from repo_to_txt.logging import logger


def copy_file_to_clipboard(path: Path) -> int:
    """Copy the text of ``path`` to the system clipboard.

    Invalid UTF-8 sequences are replaced rather than rejected.

    Args:
        path (Path): the output artifact

    Raises:
        ClipboardError: if the file cannot be read or the clipboard is unavailable

    Returns:
        int: number of characters copied
    """
    try:
        text = Path(path).read_text(encoding="utf-8", errors="replace")
    except OSError as e:
        raise ClipboardError(cause=f"error reading output file for clipboard: {e}") from e
    try:
        pyperclip.copy(text)
    except pyperclip.PyperclipException as e:
        raise ClipboardError(cause=str(e)) from e
    logger.info("Output copied to the clipboard", path=str(path), chars=len(text))
    return len(text)
