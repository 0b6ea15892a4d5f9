"""
Module: packages

Purpose:
    Provides the PackageIdentity dataclass - one installed package as
    reported by the package manager. Created by the enumeration collector,
    consumed read-only by label resolution and correlation.

Key Classes:
    - Scope: Where the package is installed (user or system)
    - ScopeFilter: Which scopes an analysis run covers
    - PackageIdentity: Name, container paths and scope of a package

Dependencies:
    - dataclasses (std)
    - enum (std)
    - core.errors: InvalidPackageIdentity

Used By:
    - device.packages: Builds identities from `pm list packages`
    - apk.labels: Reads container paths
    - analysis.correlation: Joins on name, filters on scope
"""

from __future__ import annotations

from dataclasses import dataclass
from enum import Enum
from typing import Any, Dict, Sequence, Tuple

from ..errors import InvalidPackageIdentity


class Scope(str, Enum):
    """Install scope of a package."""
    USER = "user"
    SYSTEM = "system"


class ScopeFilter(str, Enum):
    """Scope selection for an analysis run."""
    USER = "user"
    SYSTEM = "system"
    ALL = "all"

    def accepts(self, scope: Scope) -> bool:
        """Check whether a package with the given scope is included."""
        if self is ScopeFilter.ALL:
            return True
        return self.value == scope.value

    def __str__(self) -> str:
        return self.value.capitalize()


@dataclass(frozen=True)
class PackageIdentity:
    """
    One installed package (immutable).

    Attributes:
        name: Package name, the unique join key (e.g. "com.example.app")
        base_path: Path of the base container (base.apk)
        split_paths: Paths of configuration/feature split containers
        scope: USER or SYSTEM

    Invariants:
        - name, base_path and every split path are non-empty
        - split_paths never contains base_path

    Example:
        >>> pkg = PackageIdentity("com.example.app", "/data/app/x/base.apk")
        >>> pkg.container_paths
        ('/data/app/x/base.apk',)
    """

    name: str
    base_path: str
    split_paths: Tuple[str, ...] = ()
    scope: Scope = Scope.USER

    def __post_init__(self) -> None:
        """Validate identity on construction."""
        if not self.name or not self.name.strip():
            raise InvalidPackageIdentity(f"package name must be non-empty (path={self.base_path!r})")
        if not self.base_path or not self.base_path.strip():
            raise InvalidPackageIdentity(f"container path must be non-empty for {self.name}")
        if any(not p or not p.strip() for p in self.split_paths):
            raise InvalidPackageIdentity(f"split paths must be non-empty for {self.name}")
        if not isinstance(self.scope, Scope):
            try:
                object.__setattr__(self, "scope", Scope(self.scope))
            except ValueError:
                raise InvalidPackageIdentity(f"unknown scope {self.scope!r} for {self.name}") from None
        # Normalize list input and drop accidental duplicates of the base
        splits = tuple(p for p in self.split_paths if p != self.base_path)
        object.__setattr__(self, "split_paths", splits)

    @classmethod
    def from_fields(
        cls,
        name: str,
        paths: Sequence[str],
        scope: Scope | str = Scope.USER,
    ) -> PackageIdentity:
        """
        Build an identity from an enumeration triple.

        Args:
            name: Package name
            paths: Base container path followed by split paths
            scope: Scope enum or its string value

        Raises:
            InvalidPackageIdentity: If any required field is empty
        """
        if not paths:
            raise InvalidPackageIdentity(f"no container path for {name!r}")
        return cls(
            name=(name or "").strip(),
            base_path=(paths[0] or "").strip(),
            split_paths=tuple((p or "").strip() for p in paths[1:]),
            scope=scope,  # type: ignore[arg-type]
        )

    @property
    def container_paths(self) -> Tuple[str, ...]:
        """Base path followed by split paths."""
        return (self.base_path,) + self.split_paths

    def to_dict(self) -> Dict[str, Any]:
        return {
            "package": self.name,
            "path": self.base_path,
            "split_paths": list(self.split_paths),
            "scope": self.scope.value,
        }
