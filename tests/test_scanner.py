import os
import sys

import pytest

from bricksync.scanner import enumerate_artifacts


def test_enumerates_nested_recognized_files(make_tree):
    root = make_tree(
        {
            "a/b/x.py": "print(1)",
            "a/readme.md": "# docs",
            "c.scala": "object C",
            "deep/er/still/q.sql": "select 1",
            "r/model.R": "x <- 1",
        }
    )

    entries = enumerate_artifacts(root)

    rel = [entry.local_file.relative_to(root).as_posix() for entry in entries]
    assert rel == ["a/b/x.py", "c.scala", "deep/er/still/q.sql", "r/model.R"]
    for entry in entries:
        assert entry.directory == entry.local_file.parent


def test_extension_match_is_case_insensitive(make_tree):
    root = make_tree({"LOAD.SQL": "select 1", "Job.Py": "pass"})
    names = sorted(entry.local_file.name for entry in enumerate_artifacts(root))
    assert names == ["Job.Py", "LOAD.SQL"]


def test_hidden_files_and_directories_are_skipped(make_tree):
    root = make_tree(
        {
            ".hidden.py": "pass",
            ".git/hooks/pre.py": "pass",
            "pkg/.ipynb_checkpoints/nb.py": "pass",
            "pkg/visible.py": "pass",
        }
    )
    rel = [entry.local_file.relative_to(root).as_posix() for entry in enumerate_artifacts(root)]
    assert rel == ["pkg/visible.py"]


def test_missing_root_gives_nothing(tmp_path):
    assert enumerate_artifacts(tmp_path / "does-not-exist") == []


def test_custom_extensions(make_tree):
    root = make_tree({"nb.ipynb": "{}", "job.py": "pass"})
    entries = enumerate_artifacts(root, [".IPYNB"])
    assert [entry.local_file.name for entry in entries] == ["nb.ipynb"]


def test_directories_named_like_sources_are_ignored(make_tree):
    root = make_tree({"tricky.py/inner.sql": "select 1"})
    entries = enumerate_artifacts(root)
    assert [entry.local_file.name for entry in entries] == ["inner.sql"]


@pytest.mark.skipif(
    sys.platform == "win32" or (hasattr(os, "geteuid") and os.geteuid() == 0),
    reason="directory permissions are not enforced",
)
def test_unreadable_directory_is_skipped(make_tree):
    root = make_tree({"ok/a.py": "pass", "locked/b.py": "pass"})
    locked = root / "locked"
    locked.chmod(0o000)
    try:
        entries = enumerate_artifacts(root)
    finally:
        locked.chmod(0o755)
    assert [entry.local_file.name for entry in entries] == ["a.py"]
