"""Custom exception hierarchy for the mountfs filesystem layer."""


class MountFSError(Exception):
    """Base exception for all mountfs filesystem errors."""


class PathNotFoundError(MountFSError):
    """Raised when a file or directory path does not exist."""


class MountNotFoundError(MountFSError):
    """Raised when no mount matches the given virtual path."""


class InvalidOperationError(MountFSError):
    """Raised when an operation is not valid for the target path.

    Renaming a directory through the single-entry rename primitive, writing
    a file over a directory, or addressing the parent of the root.
    """


class StorageError(MountFSError):
    """Raised on storage backend selection or availability failures."""
