"""Device registry backed by a CSV file.

Columns are ``name,address,username,secret``; the first row is a header.
The file is re-read only when it changes on disk, so edits show up without a
restart, and callers always work on an immutable snapshot.
"""

from __future__ import annotations

import csv
import os
import threading
from pathlib import Path
from types import MappingProxyType
from typing import Callable, Generic, Mapping, Optional, TypeVar

from switchfleet.config import Settings, settings
from switchfleet.errors import DeviceNotFoundError, RegistryError
from switchfleet.models.devices import DeviceRecord, split_address
from switchfleet.utils.logging import get_logger

log = get_logger(__name__)

T = TypeVar("T")


class WatchedFile(Generic[T]):
    """Caches ``loader(path)`` until the file's mtime or size changes."""

    def __init__(self, path: str, loader: Callable[[Path], T]) -> None:
        self.path = Path(path)
        self._loader = loader
        self._lock = threading.Lock()
        self._stamp: Optional[tuple[int, int]] = None
        self._value: Optional[T] = None

    def _current_stamp(self) -> Optional[tuple[int, int]]:
        try:
            st = os.stat(self.path)
        except OSError:
            return None
        return (st.st_mtime_ns, st.st_size)

    def get(self) -> T:
        with self._lock:
            stamp = self._current_stamp()
            if self._value is None or stamp is None or stamp != self._stamp:
                self._value = self._loader(self.path)
                self._stamp = stamp
            return self._value


def load_registry(path: Path) -> Mapping[str, DeviceRecord]:
    """Parse the registry CSV into a read-only ``name -> DeviceRecord`` map."""
    try:
        with open(path, newline="", encoding="utf-8") as fh:
            rows = list(csv.reader(fh))
    except OSError as exc:
        raise RegistryError(f"cannot open {path}: {exc.strerror}") from exc
    except csv.Error as exc:
        raise RegistryError(f"cannot parse {path}: {exc}") from exc

    devices: dict[str, DeviceRecord] = {}
    for lineno, row in enumerate(rows[1:], start=2):
        if not row or not any(cell.strip() for cell in row):
            continue
        if len(row) < 4:
            raise RegistryError(f"{path}:{lineno}: expected 4 columns, got {len(row)}")
        name, address, username, secret = (cell.strip() for cell in row[:4])
        try:
            split_address(address)
        except ValueError as exc:
            raise RegistryError(f"{path}:{lineno}: {exc}") from exc
        if name in devices:
            log.warning("registry.duplicate_device", device=name, line=lineno)
        devices[name] = DeviceRecord(
            name=name, address=address, username=username, secret=secret,
        )
    log.info("registry.loaded", path=str(path), devices=len(devices))
    return MappingProxyType(devices)


class DeviceRegistry:
    """Read-only access to the registered devices."""

    def __init__(self, cfg: Settings | None = None, path: str | None = None) -> None:
        self._cfg = cfg or settings
        self._file = WatchedFile(path or self._cfg.switchfleet_device_list_file, load_registry)

    def snapshot(self) -> Mapping[str, DeviceRecord]:
        return self._file.get()

    def names(self) -> list[str]:
        return list(self.snapshot())

    def get(self, name: str) -> DeviceRecord:
        try:
            return self.snapshot()[name]
        except KeyError:
            log.info("registry.device_not_found", device=name, path=str(self._file.path))
            raise DeviceNotFoundError(name) from None


device_registry = DeviceRegistry()
