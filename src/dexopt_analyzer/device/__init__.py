"""
Device collectors: package enumeration, status dump capture and host
configuration discovery. Thin wrappers around `pm`, `dumpsys` and `getprop`.
"""

from .commands import is_root, run_command
from .dumpsys import fetch_dexopt_dump, read_dump_file
from .host import detect_host_configuration
from .packages import discover_splits, fetch_packages, parse_package_list, read_package_file

__all__ = [
    "detect_host_configuration",
    "discover_splits",
    "fetch_dexopt_dump",
    "fetch_packages",
    "is_root",
    "parse_package_list",
    "read_dump_file",
    "read_package_file",
    "run_command",
]
