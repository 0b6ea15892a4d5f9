"""
Module: device.commands

Purpose:
    Run a device command (pm, dumpsys, getprop) and return its stdout.

Key Functions:
    - run_command(): subprocess wrapper raising CommandFailed
    - is_root(): Whether the current process runs as uid 0

Dependencies:
    - subprocess (std)

Used By:
    - device.packages, device.dumpsys, device.host
"""

from __future__ import annotations

import logging
import os
import subprocess
from typing import List, Sequence

from dexopt_analyzer.core.errors import CommandFailed

logger = logging.getLogger(__name__)

DEFAULT_TIMEOUT = 60.0


def run_command(cmd: Sequence[str], timeout: float = DEFAULT_TIMEOUT) -> str:
    """
    Run a command and return its output as text.

    Output is decoded as UTF-8 with replacement so a stray byte never stops
    a run.

    Raises:
        CommandFailed: If the executable is missing, times out or exits
            non-zero
    """
    args: List[str] = list(cmd)
    command = " ".join(args)
    logger.debug(f"Running: {command}")
    try:
        result = subprocess.run(
            args,
            stdout=subprocess.PIPE,
            stderr=subprocess.PIPE,
            timeout=timeout,
        )
    except FileNotFoundError as e:
        raise CommandFailed(command, f"{args[0]} not found") from e
    except subprocess.TimeoutExpired as e:
        raise CommandFailed(command, f"timed out after {timeout:.0f}s") from e
    except OSError as e:
        raise CommandFailed(command, str(e)) from e

    if result.returncode != 0:
        stderr = result.stderr.decode("utf-8", errors="replace").strip()
        raise CommandFailed(command, f"exit code {result.returncode}: {stderr}")
    return result.stdout.decode("utf-8", errors="replace")


def is_root() -> bool:
    geteuid = getattr(os, "geteuid", None)
    return geteuid is not None and geteuid() == 0
