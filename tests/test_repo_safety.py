import logging
import os

from conftest import write_tree
from utils.errors import ErrorKind
from utils.repo_safety import directory_size, discard_partial, force_remove


def _lock(root):
    for dirpath, dirnames, filenames in os.walk(root, topdown=False):
        for name in filenames:
            os.chmod(os.path.join(dirpath, name), 0o444)
        os.chmod(dirpath, 0o555)


def test_directory_size_counts_regular_files(tmp_path):
    write_tree(tmp_path, {"a.js": "12345", "nested/b.js": "123"})

    assert directory_size(tmp_path) == 8


def test_force_remove_clears_read_only_tree(tmp_path):
    tree = write_tree(tmp_path / "checkout", {".git/objects/ab/cdef": "blob", "src/a.js": "1;\n"})
    _lock(tree / ".git")
    _lock(tree / "src")

    force_remove(tree)

    assert not tree.exists()


def test_discard_partial_removes_tree(tmp_path):
    tree = write_tree(tmp_path / "partial", {"src/a.js": "1;\n"})
    _lock(tree / "src")

    assert discard_partial(tree) is True
    assert not tree.exists()


def test_discard_partial_missing_path(tmp_path):
    assert discard_partial(tmp_path / "never-created") is True


def test_discard_partial_logs_leftovers(tmp_path, monkeypatch, caplog):
    tree = write_tree(tmp_path / "stuck", {"a.js": "1;\n"})

    def refuse(path):
        raise PermissionError(f"cannot remove {path}")

    monkeypatch.setattr("utils.repo_safety.force_remove", refuse)

    with caplog.at_level(logging.WARNING, logger="utils.repo_safety"):
        assert discard_partial(tree) is False

    assert tree.exists()
    assert ErrorKind.CLEANUP_FAILURE.value in caplog.text
    assert "cannot remove" in caplog.text
