"""Tests for path helpers and tree rebuilding."""

import stat

import pytest
from dulwich.object_store import MemoryObjectStore

from notestore.tree import (
    create_blob,
    drop_target_path,
    entry_at_path,
    is_nested_under,
    is_root_path,
    join_path,
    leaf_name,
    list_tree,
    normalize_dir,
    normalize_path,
    parent_directory,
    rebuild_tree,
    validate_name,
)


class TestPaths:
    def test_normalize_strips_slashes(self):
        assert normalize_path("/notes/todo.md/") == "notes/todo.md"

    def test_normalize_backslashes(self):
        assert normalize_path("notes\\todo.md") == "notes/todo.md"

    @pytest.mark.parametrize("bad", ["", "/", "a//b", "../x", "a/./b"])
    def test_normalize_rejects(self, bad):
        with pytest.raises(ValueError):
            normalize_path(bad)

    def test_normalize_dir_root(self):
        assert normalize_dir(None) == ""
        assert normalize_dir("/") == ""
        assert normalize_dir("docs/") == "docs"
        assert is_root_path("")

    def test_validate_name(self):
        assert validate_name("todo.md") == "todo.md"
        for bad in ("", "  ", "a/b", "..", "."):
            with pytest.raises(ValueError):
                validate_name(bad)

    def test_join_and_split(self):
        assert join_path("", "a.md") == "a.md"
        assert join_path("notes", "a.md") == "notes/a.md"
        assert parent_directory("notes/sub/a.md") == "notes/sub"
        assert parent_directory("a.md") == ""
        assert leaf_name("notes/sub/a.md") == "a.md"

    def test_nested_under_uses_separator_boundary(self):
        assert is_nested_under("docs/a.md", "docs")
        assert is_nested_under("docs/sub/a.md", "docs")
        assert not is_nested_under("docs", "docs")
        assert not is_nested_under("docsx/a.md", "docs")

    def test_drop_target_path(self):
        assert drop_target_path("", "a.png") == "a.png"
        assert drop_target_path("assets", "a.png") == "assets/a.png"
        assert drop_target_path("", "\\img\\a.png") == "img/a.png"


class TestRebuildTree:
    def test_write_creates_intermediate_trees(self):
        store = MemoryObjectStore()
        blob = create_blob(store, b"hello")
        root = rebuild_tree(store, None, {"a/b/c.txt": blob, "top.txt": blob}, set())
        names = sorted(name for name, _, _ in list_tree(store, root))
        assert names == ["a", "top.txt"]
        mode, sha = entry_at_path(store, root, "a/b/c.txt")
        assert sha == blob
        assert not stat.S_ISDIR(mode)
        assert stat.S_ISDIR(entry_at_path(store, root, "a/b")[0])

    def test_remove_prunes_empty_directories(self):
        store = MemoryObjectStore()
        blob = create_blob(store, b"x")
        root = rebuild_tree(store, None, {"a/b/c.txt": blob, "keep.txt": blob}, set())
        root = rebuild_tree(store, root, {}, {"a/b/c.txt"})
        assert entry_at_path(store, root, "a") is None
        assert [name for name, _, _ in list_tree(store, root)] == ["keep.txt"]

    def test_siblings_are_shared(self):
        store = MemoryObjectStore()
        blob = create_blob(store, b"x")
        first = rebuild_tree(store, None, {"a/x.txt": blob, "b/y.txt": blob}, set())
        second = rebuild_tree(store, first, {"a/z.txt": blob}, set())
        assert entry_at_path(store, first, "b") == entry_at_path(store, second, "b")
        assert entry_at_path(store, first, "a") != entry_at_path(store, second, "a")

    def test_write_under_file_rejected(self):
        store = MemoryObjectStore()
        blob = create_blob(store, b"x")
        root = rebuild_tree(store, None, {"a.txt": blob}, set())
        with pytest.raises(ValueError):
            rebuild_tree(store, root, {"a.txt/b.txt": blob}, set())

    def test_list_tree_on_file_or_missing(self):
        store = MemoryObjectStore()
        blob = create_blob(store, b"x")
        root = rebuild_tree(store, None, {"a.txt": blob}, set())
        assert list_tree(store, root, "a.txt") is None
        assert list_tree(store, root, "missing") is None
        assert entry_at_path(store, root, "a.txt/deeper") is None
