"""
Module: device.dumpsys

Purpose:
    Obtain the compilation status dump, live or from a saved file.

Key Functions:
    - fetch_dexopt_dump(): Run `dumpsys package dexopt`
    - read_dump_file(): Read a saved dump ("-" for stdin)

Used By:
    - cli.main
"""

from __future__ import annotations

import logging
import sys
from pathlib import Path
from typing import Union

from dexopt_analyzer.core.errors import BoundaryInputUnavailable

from .commands import run_command

logger = logging.getLogger(__name__)

DUMPSYS_COMMAND = ("dumpsys", "package", "dexopt")


def fetch_dexopt_dump(timeout: float = 120.0) -> str:
    """
    Capture `dumpsys package dexopt` output.

    Raises:
        CommandFailed: If dumpsys cannot be run
    """
    text = run_command(DUMPSYS_COMMAND, timeout=timeout)
    logger.debug(f"dumpsys returned {len(text)} characters")
    return text


def read_dump_file(path: Union[str, Path]) -> str:
    """
    Read a saved dump.

    Raises:
        BoundaryInputUnavailable: If the file cannot be read
    """
    if str(path) == "-":
        return sys.stdin.read()
    try:
        return Path(path).read_text(encoding="utf-8", errors="replace")
    except OSError as e:
        raise BoundaryInputUnavailable("status dump", f"{path}: {e.strerror or e}") from e
