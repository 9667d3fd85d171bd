"""MountRegistry and MountConfig."""

from __future__ import annotations

import logging
from dataclasses import dataclass, field
from typing import TYPE_CHECKING

from .exceptions import MountNotFoundError
from .protocol import SupportsBatchRead, SupportsBatchWrite
from .types import MountInfo
from .utils import normalize_path

if TYPE_CHECKING:
    from .protocol import StorageBackend

logger = logging.getLogger(__name__)


def normalize_mount_path(path: str) -> str:
    """Canonical mount path: normalized, always ending in ``/``.

    Examples:
        normalize_mount_path("/docs") -> "/docs/"
        normalize_mount_path("docs//") -> "/docs/"
        normalize_mount_path("/") -> "/"
    """
    path = normalize_path(path)
    return path if path == "/" else path + "/"


def backend_name(backend: object) -> str:
    """The backend's ``name``, falling back to its class name."""
    return getattr(backend, "name", None) or type(backend).__name__


@dataclass
class MountConfig:
    """Configuration for a single mount point."""

    mount_path: str
    """Virtual path prefix with trailing slash, e.g. "/docs/"."""

    backend: StorageBackend
    """Storage backend implementing the StorageBackend protocol."""

    batch_read: bool = field(init=False)
    """True when the backend has a native ``read_binary_batch``."""

    batch_write: bool = field(init=False)
    """True when the backend has a native ``write_binary_batch``."""

    def __post_init__(self) -> None:
        self.mount_path = normalize_mount_path(self.mount_path)
        self.batch_read = isinstance(self.backend, SupportsBatchRead)
        self.batch_write = isinstance(self.backend, SupportsBatchWrite)

    @property
    def root(self) -> str:
        """Mount path without the trailing slash ("" for the root mount)."""
        return self.mount_path[:-1]

    def matches(self, virtual_path: str) -> bool:
        """Whether canonical *virtual_path* lies at or below this mount."""
        candidate = virtual_path if virtual_path.endswith("/") else virtual_path + "/"
        return candidate.startswith(self.mount_path)

    def relative(self, virtual_path: str) -> str:
        """Strip the mount prefix from a matching canonical path."""
        candidate = virtual_path if virtual_path.endswith("/") else virtual_path + "/"
        return normalize_path(candidate[len(self.mount_path) :])


class MountRegistry:
    """Registry of active mount points.

    Mounts are kept sorted by mount path length, longest first, so the
    first structural match during resolution is the most specific one.
    """

    def __init__(self) -> None:
        self._mounts: list[MountConfig] = []

    def add_mount(self, config: MountConfig) -> None:
        """Add or replace a mount point."""
        self._mounts = [m for m in self._mounts if m.mount_path != config.mount_path]
        self._mounts.append(config)
        self._mounts.sort(key=lambda m: len(m.mount_path), reverse=True)
        logger.debug("Mounted %s at %s", backend_name(config.backend), config.mount_path)

    def remove_mount(self, mount_path: str) -> MountConfig | None:
        """Remove a mount point.  Returns the removed config, if any."""
        mount_path = normalize_mount_path(mount_path)
        for config in self._mounts:
            if config.mount_path == mount_path:
                self._mounts.remove(config)
                return config
        return None

    def find(self, virtual_path: str) -> MountConfig | None:
        """Most specific mount containing *virtual_path*, or None."""
        virtual_path = normalize_path(virtual_path)
        for config in self._mounts:
            if config.matches(virtual_path):
                return config
        return None

    def resolve(self, virtual_path: str) -> tuple[MountConfig, str]:
        """Resolve a virtual path to its mount and relative path."""
        virtual_path = normalize_path(virtual_path)
        config = self.find(virtual_path)
        if config is None:
            raise MountNotFoundError(f"No filesystem mounted for path: {virtual_path}")
        return config, config.relative(virtual_path)

    def list_mounts(self) -> list[MountConfig]:
        """All registered mounts, most specific first."""
        return list(self._mounts)

    def mount_infos(self) -> list[MountInfo]:
        return [MountInfo(path=m.mount_path, backend=backend_name(m.backend)) for m in self._mounts]

    def has_mount(self, mount_path: str) -> bool:
        """Check if a mount exists at exactly the given path."""
        mount_path = normalize_mount_path(mount_path)
        return any(m.mount_path == mount_path for m in self._mounts)
