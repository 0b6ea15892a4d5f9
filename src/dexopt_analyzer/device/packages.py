"""
Module: device.packages

Purpose:
    Enumerate installed packages with `pm list packages -f` (or a saved
    listing) and turn them into PackageIdentity objects, including the
    split containers installed next to each base container.

Key Functions:
    - fetch_packages(): Live enumeration for a scope filter
    - parse_package_list(): Parse `package:<path>=<name>` lines
    - discover_splits(): Split containers beside a base container

Dependencies:
    - device.commands: run_command
    - core.models: PackageIdentity, Scope, ScopeFilter

Used By:
    - cli.main: Builds the package list for analyze()
"""

from __future__ import annotations

import logging
from pathlib import Path
from typing import Callable, Iterable, List, Optional, Tuple, Union

from dexopt_analyzer.core.errors import InvalidPackageIdentity
from dexopt_analyzer.core.models import PackageIdentity, Scope, ScopeFilter

from .commands import run_command

logger = logging.getLogger(__name__)

PACKAGE_PREFIX = "package:"

PM_SCOPE_FLAGS = {
    Scope.USER: "-3",
    Scope.SYSTEM: "-s",
}

SplitFinder = Callable[[str], Tuple[str, ...]]


def discover_splits(base_path: str) -> Tuple[str, ...]:
    """
    Split containers (split_*.apk) in the base container's directory.

    Returns an empty tuple when the directory cannot be listed.
    """
    directory = Path(base_path).parent
    try:
        splits = sorted(
            str(p) for p in directory.glob("split_*.apk")
            if p.is_file() and str(p) != base_path
        )
    except OSError as e:
        logger.debug(f"Cannot list {directory}: {e}")
        return ()
    return tuple(splits)


def parse_package_line(line: str) -> Optional[Tuple[str, str]]:
    """
    Parse one `pm list packages -f` line into (name, path).

    The path may itself contain "=", so the split is on the last one.

    Example:
        >>> parse_package_line("package:/data/app/~~a==/com.x-b==/base.apk=com.x")
        ('com.x', '/data/app/~~a==/com.x-b==/base.apk')
    """
    text = line.strip()
    if not text.startswith(PACKAGE_PREFIX):
        return None
    body = text[len(PACKAGE_PREFIX):]
    path, sep, name = body.rpartition("=")
    if not sep:
        return None
    return name.strip(), path.strip()


def parse_package_list(
    text: Union[str, Iterable[str]],
    scope: Union[Scope, str] = Scope.USER,
    *,
    split_finder: Optional[SplitFinder] = discover_splits,
) -> List[PackageIdentity]:
    """
    Parse `pm list packages -f` output into identities sorted by name.

    Lines without the `package:` prefix are ignored; entries with an empty
    name or path are skipped with a warning.

    Args:
        text: Command output or an iterable of lines
        scope: Scope to tag every identity with
        split_finder: Returns split paths for a base path (None disables)
    """
    lines = text.splitlines() if isinstance(text, str) else text
    identities: List[PackageIdentity] = []
    for line in lines:
        parsed = parse_package_line(line)
        if parsed is None:
            continue
        name, path = parsed
        splits = split_finder(path) if (split_finder and path) else ()
        try:
            identities.append(PackageIdentity(name, path, splits, scope))  # type: ignore[arg-type]
        except InvalidPackageIdentity as e:
            logger.warning(f"Skipping package line {line.strip()!r}: {e}")
    identities.sort(key=lambda identity: identity.name)
    return identities


def fetch_packages(scope_filter: ScopeFilter = ScopeFilter.USER) -> List[PackageIdentity]:
    """
    Enumerate installed packages on the device.

    "all" runs the user and system listings separately so each identity
    carries its scope.

    Raises:
        CommandFailed: If `pm` cannot be run
    """
    scopes = [Scope.USER, Scope.SYSTEM] if scope_filter is ScopeFilter.ALL else [Scope(scope_filter.value)]
    identities: List[PackageIdentity] = []
    for scope in scopes:
        output = run_command(["pm", "list", "packages", "-f", PM_SCOPE_FLAGS[scope]])
        found = parse_package_list(output, scope)
        logger.debug(f"pm listed {len(found)} {scope.value} packages")
        identities.extend(found)
    identities.sort(key=lambda identity: identity.name)
    return identities


def read_package_file(path: Union[str, Path], scope_filter: ScopeFilter = ScopeFilter.USER) -> List[PackageIdentity]:
    """
    Read a saved `pm list packages -f` listing.

    A saved listing does not say which scope a package belongs to; every
    entry is tagged "system" when the filter is system and "user" otherwise.
    """
    scope = Scope.SYSTEM if scope_filter is ScopeFilter.SYSTEM else Scope.USER
    text = Path(path).read_text(encoding="utf-8", errors="replace")
    return parse_package_list(text, scope)
