# SPDX-License-Identifier: MIT
# Copyright (c) 2025 Blackcat Informatics® Inc.

"""Tests for change markers, project ids, git metadata and the project cache."""

from __future__ import annotations

from pathlib import Path

from contractgen.cache import ProjectCache
from contractgen.console import get_console_manager
from contractgen.git import normalize_branch_name, normalize_remote_url, read_git_info
from contractgen.marker import compute_marker, encode_base58, project_id
from contractgen.model import GitInfo, Project


def test_marker_tracks_sources_and_manifest(write_tree) -> None:
    root = write_tree({"pyproject.toml": "[project]\nname = 'a'\n", "a/core.py": "X = 1\n"})
    first = compute_marker(root)

    (root / "a" / "core.py").write_text("X = 2\n", encoding="utf-8")
    second = compute_marker(root)
    (root / "a" / "test_core.py").write_text("def test_x(): ...\n", encoding="utf-8")
    (root / ".venv").mkdir()
    (root / ".venv" / "ignored.py").write_text("", encoding="utf-8")

    assert first != second
    assert compute_marker(root) == second


def test_project_id_is_stable() -> None:
    local = project_id("shop")

    assert local == project_id("shop")
    assert project_id("shop", "git@github.com:acme/shop.git") == project_id("shop", "https://github.com/acme/shop")
    assert project_id("shop", "https://github.com/acme/shop") != local
    assert encode_base58(b"\x00\x01") == "12"


def test_remote_and_branch_normalisation() -> None:
    assert normalize_remote_url("git@github.com:acme/api.git") == "github.com/acme/api"
    assert normalize_remote_url("ssh://git@host:2222/team/api.git") == "host:2222/team/api"
    assert normalize_remote_url("") == ""
    assert normalize_branch_name("feature/new thing") == "feature-new-thing"
    assert normalize_branch_name("//") == "default"


def test_read_git_info_from_git_directory(write_tree) -> None:
    root = write_tree(
        {
            ".git/HEAD": "ref: refs/heads/main\n",
            ".git/refs/heads/main": "abc123\n",
            ".git/config": '[remote "origin"]\n\turl = git@github.com:acme/shop.git\n[user]\n\tname = Dev\n',
        }
    )

    nested = root / "pkg" / "sub"
    nested.mkdir(parents=True)

    info = read_git_info(nested)

    assert info is not None
    assert info.branch == "main"
    assert info.commit == "abc123"
    assert info.remote == "git@github.com:acme/shop.git"
    assert info.user == "Dev"


def test_project_cache_round_trip(tmp_path: Path) -> None:
    cache = ProjectCache(tmp_path / "cache")
    project = Project(module_path="shop", project_id="pid", marker="m1", git_info=GitInfo(branch="feat/x"))

    path = cache.store(project)

    assert path == tmp_path / "cache" / "pid" / "feat-x.json.gz"
    assert cache.load("pid", "m1", branch="feat/x") == project
    assert cache.load("pid", "m2", branch="feat/x") is None
    assert cache.load("pid", "m1") is None


def test_corrupt_cache_entry_is_removed(tmp_path: Path) -> None:
    cache = ProjectCache(tmp_path)
    entry = cache.entry_path("pid")
    entry.parent.mkdir(parents=True)
    entry.write_bytes(b"not gzip")

    assert cache.load("pid", "marker") is None
    assert not entry.exists()


def test_console_manager_is_shared() -> None:
    manager = get_console_manager()

    assert get_console_manager() is manager
    assert manager.get(color=False, emoji=False) is manager.get(color=False, emoji=False)
