"""
Module: analysis.config

Purpose:
    Configuration dataclass for an analysis run: worker pool sizing, host
    configuration for label selection, and the parser budgets that bound
    every decode loop.

Key Classes:
    - AnalysisConfig: Immutable settings for analyze()

Key Functions:
    - load_config(): Read settings from a JSON file

Dependencies:
    - dataclasses: For frozen dataclass support
    - json (std)

Used By:
    - analysis.pipeline: Reads settings for each stage
    - analysis.scheduler: Pool size and executor kind
    - cli.main: Builds the config from a file and flags
"""

from __future__ import annotations

import json
import logging
import os
from dataclasses import dataclass, fields, replace
from pathlib import Path
from typing import Any, Dict, Optional, Tuple, Union

from dexopt_analyzer.apk.arsc import DEFAULT_MAX_REFERENCE_DEPTH
from dexopt_analyzer.apk.axml import DEFAULT_MAX_CHUNKS
from dexopt_analyzer.apk.container import DEFAULT_MAX_ENTRY_BYTES

logger = logging.getLogger(__name__)

EXECUTOR_PROCESS = "process"
EXECUTOR_THREAD = "thread"
EXECUTOR_KINDS = (EXECUTOR_PROCESS, EXECUTOR_THREAD)

# JSON types accepted per config key (None allowed where listed)
_CONFIG_TYPES: Dict[str, Tuple[type, ...]] = {
    "max_workers": (int, type(None)),
    "executor": (str,),
    "host_locale": (str, type(None)),
    "host_density": (int,),
    "max_entry_bytes": (int,),
    "max_chunks": (int,),
    "max_reference_depth": (int,),
    "resolve_labels": (bool,),
}


def default_worker_count() -> int:
    """Worker count used when none is configured (CPU count, at least 1)."""
    return os.cpu_count() or 1


@dataclass(frozen=True)
class AnalysisConfig:
    """
    Configuration for one analysis run.

    Attributes:
        max_workers: Label resolution pool size (None = CPU count)
        executor: "process" (default) or "thread"
        host_locale: Locale to pick labels for (None = detect/default)
        host_density: Screen density in dpi, 0 if unknown
        max_entry_bytes: Largest container entry that will be decompressed
        max_chunks: Chunk budget per binary document
        max_reference_depth: Longest resource reference chain followed
        resolve_labels: False skips container decoding entirely
    """
    max_workers: Optional[int] = None
    executor: str = EXECUTOR_PROCESS
    host_locale: Optional[str] = None
    host_density: int = 0
    max_entry_bytes: int = DEFAULT_MAX_ENTRY_BYTES
    max_chunks: int = DEFAULT_MAX_CHUNKS
    max_reference_depth: int = DEFAULT_MAX_REFERENCE_DEPTH
    resolve_labels: bool = True

    def __post_init__(self) -> None:
        """Validate settings on construction."""
        if self.max_workers is not None and self.max_workers < 1:
            raise ValueError(f"max_workers must be >= 1, got {self.max_workers}")
        if self.executor not in EXECUTOR_KINDS:
            raise ValueError(
                f"executor must be one of {', '.join(EXECUTOR_KINDS)}, got {self.executor!r}"
            )
        if self.host_density < 0:
            raise ValueError(f"host_density must be >= 0, got {self.host_density}")
        if self.max_entry_bytes < 1:
            raise ValueError(f"max_entry_bytes must be >= 1, got {self.max_entry_bytes}")
        if self.max_chunks < 1:
            raise ValueError(f"max_chunks must be >= 1, got {self.max_chunks}")
        if self.max_reference_depth < 0:
            raise ValueError(
                f"max_reference_depth must be >= 0, got {self.max_reference_depth}"
            )

    @property
    def worker_count(self) -> int:
        return self.max_workers or default_worker_count()

    def with_overrides(self, **overrides: Any) -> AnalysisConfig:
        """Copy with the given fields replaced; None values are ignored."""
        changes = {k: v for k, v in overrides.items() if v is not None}
        return replace(self, **changes) if changes else self

    def to_dict(self) -> Dict[str, Any]:
        return {f.name: getattr(self, f.name) for f in fields(self)}


def load_config(path: Union[str, Path]) -> AnalysisConfig:
    """
    Load an AnalysisConfig from a JSON object file.

    Raises:
        ValueError: If the file is not a JSON object, has unknown keys, or
            holds invalid values
        OSError: If the file cannot be read
    """
    path = Path(path)
    try:
        payload = json.loads(path.read_text(encoding="utf-8"))
    except json.JSONDecodeError as e:
        raise ValueError(f"{path}: invalid JSON ({e})") from e
    if not isinstance(payload, dict):
        raise ValueError(f"{path}: expected a JSON object, got {type(payload).__name__}")

    known = {f.name for f in fields(AnalysisConfig)}
    unknown = sorted(set(payload) - known)
    if unknown:
        raise ValueError(f"{path}: unknown config keys: {', '.join(unknown)}")

    for key, value in payload.items():
        expected = _CONFIG_TYPES[key]
        # bool is an int subclass; only resolve_labels takes booleans
        if not isinstance(value, expected) or (isinstance(value, bool) and bool not in expected):
            names = " or ".join("null" if t is type(None) else t.__name__ for t in expected)
            raise ValueError(f"{path}: {key} must be {names}, got {type(value).__name__} {value!r}")

    config = AnalysisConfig(**payload)
    logger.debug(f"Loaded config from {path}: {config}")
    return config
