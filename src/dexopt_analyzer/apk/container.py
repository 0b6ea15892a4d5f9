"""
Module: apk.container

Purpose:
    Read named entries out of an application container (a ZIP archive).
    Read-only: nothing is extracted to disk.

Key Classes:
    - ContainerReader: Opens a container and returns entry bytes

Dependencies:
    - zipfile (std): Archive access
    - core.errors: ContainerUnreadable, EntryMissing

Used By:
    - apk.labels: Manifest and resource table access
"""

from __future__ import annotations

import logging
import zipfile
import zlib
from pathlib import Path
from typing import Dict, Iterable, Optional, Union

from dexopt_analyzer.core.errors import ContainerUnreadable, EntryMissing

logger = logging.getLogger(__name__)

MANIFEST_ENTRY = "AndroidManifest.xml"
RESOURCES_ENTRY = "resources.arsc"

DEFAULT_MAX_ENTRY_BYTES = 64 * 1024 * 1024

# Everything zipfile and zlib raise for a damaged or unreadable archive
_READ_ERRORS = (OSError, zipfile.BadZipFile, zlib.error, EOFError, RuntimeError, NotImplementedError)


class ContainerReader:
    """
    Entry reader for one container file.

    Use as a context manager, or call read_entries() which opens and
    closes the archive itself.

    Example:
        >>> with ContainerReader("/data/app/com.example-1/base.apk") as reader:
        ...     manifest = reader.read_entry(MANIFEST_ENTRY)
    """

    def __init__(self, path: Union[str, Path], *, max_entry_bytes: int = DEFAULT_MAX_ENTRY_BYTES):
        self.path = str(path)
        self.max_entry_bytes = max_entry_bytes
        self._zip: Optional[zipfile.ZipFile] = None

    def __enter__(self) -> ContainerReader:
        self.open()
        return self

    def __exit__(self, exc_type, exc, tb) -> None:
        self.close()

    def open(self) -> None:
        if self._zip is not None:
            return
        try:
            self._zip = zipfile.ZipFile(self.path, "r")
        except _READ_ERRORS as e:
            raise ContainerUnreadable(self.path, _describe(e)) from e

    def close(self) -> None:
        if self._zip is not None:
            self._zip.close()
            self._zip = None

    def read_entries(self, names: Iterable[str]) -> Dict[str, Optional[bytes]]:
        """
        Read several entries in one pass.

        Returns:
            Mapping of each requested name to its bytes, or None when the
            container has no such entry

        Raises:
            ContainerUnreadable: If the archive or an entry cannot be read
        """
        opened_here = self._zip is None
        self.open()
        try:
            return {name: self._read(name) for name in names}
        finally:
            if opened_here:
                self.close()

    def read_entry(self, name: str) -> bytes:
        """
        Read a single entry.

        Raises:
            ContainerUnreadable: If the archive or entry cannot be read
            EntryMissing: If the entry does not exist
        """
        data = self.read_entries([name])[name]
        if data is None:
            raise EntryMissing(self.path, name)
        return data

    def _read(self, name: str) -> Optional[bytes]:
        assert self._zip is not None
        try:
            info = self._zip.getinfo(name)
        except KeyError:
            return None
        if info.file_size > self.max_entry_bytes:
            raise ContainerUnreadable(
                self.path,
                f"{name} is {info.file_size} bytes, limit is {self.max_entry_bytes}",
            )
        try:
            with self._zip.open(info) as handle:
                data = handle.read(self.max_entry_bytes + 1)
        except _READ_ERRORS as e:
            raise ContainerUnreadable(self.path, f"{name}: {_describe(e)}") from e
        if len(data) > self.max_entry_bytes:
            raise ContainerUnreadable(self.path, f"{name} exceeds {self.max_entry_bytes} bytes")
        logger.debug(f"Read {name} ({len(data)} bytes) from {self.path}")
        return data


def _describe(error: BaseException) -> str:
    if isinstance(error, FileNotFoundError):
        return "file not found"
    if isinstance(error, PermissionError):
        return "permission denied"
    if isinstance(error, zipfile.BadZipFile):
        return f"not a valid ZIP archive ({error})"
    return f"{type(error).__name__}: {error}"
