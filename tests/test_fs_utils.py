"""Tests for path utilities."""

from __future__ import annotations

import pytest

from mountfs.fs.utils import (
    ancestor_chain,
    child_prefix,
    is_in_memory_url,
    join_virtual,
    normalize_path,
    parent_path,
    split_path,
)

# ---------------------------------------------------------------------------
# normalize_path
# ---------------------------------------------------------------------------


class TestNormalizePath:
    @pytest.mark.parametrize(
        ("raw", "expected"),
        [
            ("", "/"),
            ("/", "/"),
            ("///", "/"),
            ("foo.txt", "/foo.txt"),
            ("/foo//bar.txt", "/foo/bar.txt"),
            ("/foo/", "/foo"),
            ("a//b///c/", "/a/b/c"),
        ],
    )
    def test_normalize(self, raw, expected):
        assert normalize_path(raw) == expected

    def test_dot_segments_are_literal(self):
        assert normalize_path("/a/../b") == "/a/../b"
        assert normalize_path("/./x") == "/./x"

    def test_idempotent(self):
        for raw in ["", "a", "/a//b/", "x/y/z"]:
            once = normalize_path(raw)
            assert normalize_path(once) == once


# ---------------------------------------------------------------------------
# Splitting and ancestors
# ---------------------------------------------------------------------------


class TestSplitPath:
    def test_nested(self):
        assert split_path("/foo/bar.txt") == ("/foo", "bar.txt")

    def test_top_level(self):
        assert split_path("/foo.txt") == ("/", "foo.txt")

    def test_root(self):
        assert split_path("/") == ("/", "")

    def test_parent_path(self):
        assert parent_path("/a/b/c") == "/a/b"
        assert parent_path("/a") == "/"
        assert parent_path("/") == "/"


class TestAncestorChain:
    def test_chain(self):
        assert ancestor_chain("/a/b/c") == ["/a", "/a/b", "/a/b/c"]

    def test_single(self):
        assert ancestor_chain("/a") == ["/a"]

    def test_root_is_empty(self):
        assert ancestor_chain("/") == []

    def test_unnormalized_input(self):
        assert ancestor_chain("a//b/") == ["/a", "/a/b"]


class TestChildPrefix:
    def test_root(self):
        assert child_prefix("/") == "/"

    def test_nested(self):
        assert child_prefix("/a/b") == "/a/b/"


class TestJoinVirtual:
    def test_root_mount(self):
        assert join_virtual("", "/x.txt") == "/x.txt"
        assert join_virtual("", "/") == "/"

    def test_nested_mount(self):
        assert join_virtual("/data", "/x.txt") == "/data/x.txt"
        assert join_virtual("/data", "/") == "/data"


class TestInMemoryUrl:
    def test_memory_urls(self):
        assert is_in_memory_url("sqlite+aiosqlite://")
        assert is_in_memory_url("sqlite+aiosqlite:///:memory:")

    def test_file_url(self):
        assert not is_in_memory_url("sqlite+aiosqlite:///tmp/x.db")

    def test_postgres_url(self):
        assert not is_in_memory_url("postgresql+asyncpg://localhost/db")
