"""Path utilities: normalization, splitting, ancestor chains."""

from __future__ import annotations

import re

from sqlalchemy.engine import make_url

_SLASH_RUN = re.compile(r"/+")

# Highest code point; upper bound for prefix range scans over path keys.
HIGH_SENTINEL = "\U0010ffff"


# =============================================================================
# Path Utilities
# =============================================================================


def normalize_path(path: str) -> str:
    """Normalize a virtual file system path.

    - Ensures leading /
    - Collapses runs of slashes into one
    - Removes trailing slash (except for root)

    ``.`` and ``..`` segments are kept as literal names.

    Examples:
        normalize_path("foo.txt") -> "/foo.txt"
        normalize_path("/foo//bar.txt") -> "/foo/bar.txt"
        normalize_path("/foo/") -> "/foo"
        normalize_path("") -> "/"
    """
    if not path.startswith("/"):
        path = "/" + path

    path = _SLASH_RUN.sub("/", path)

    if path != "/" and path.endswith("/"):
        path = path[:-1]

    return path


def split_path(path: str) -> tuple[str, str]:
    """Split path into (parent_dir, name).

    Examples:
        split_path("/foo/bar.txt") -> ("/foo", "bar.txt")
        split_path("/foo.txt") -> ("/", "foo.txt")
        split_path("/") -> ("/", "")
    """
    path = normalize_path(path)
    if path == "/":
        return "/", ""
    parent, _, name = path.rpartition("/")
    return parent or "/", name


def parent_path(path: str) -> str:
    """Return the parent directory of *path* (root is its own parent)."""
    return split_path(path)[0]


def ancestor_chain(path: str) -> list[str]:
    """Every prefix directory of *path*, shallowest first, including *path*.

    Examples:
        ancestor_chain("/a/b/c") -> ["/a", "/a/b", "/a/b/c"]
        ancestor_chain("/") -> []
    """
    path = normalize_path(path)
    if path == "/":
        return []
    chain: list[str] = []
    current = ""
    for part in path[1:].split("/"):
        current = f"{current}/{part}"
        chain.append(current)
    return chain


def child_prefix(path: str) -> str:
    """Key prefix shared by every descendant of directory *path*."""
    path = normalize_path(path)
    return "/" if path == "/" else path + "/"


def join_virtual(mount_root: str, relative: str) -> str:
    """Re-apply a mount prefix to a backend-relative path.

    *mount_root* is the mount path without its trailing slash ("" for the
    root mount).
    """
    relative = normalize_path(relative)
    if relative == "/":
        return mount_root or "/"
    return mount_root + relative


def is_in_memory_url(url: str) -> bool:
    """True for SQLite URLs that point at a private in-memory database."""
    parsed = make_url(url)
    return parsed.get_backend_name() == "sqlite" and parsed.database in (None, "", ":memory:")
