"""Tests for VaultDiscoveryEngine."""

from __future__ import annotations

import os

import pytest

from vaultkeeper.db.models import VaultFile
from vaultkeeper.vault.discovery import VaultDiscoveryEngine, normalize_vault_path


def _write(root, rel, text="x", mtime=None):
    path = root / rel
    path.parent.mkdir(parents=True, exist_ok=True)
    path.write_text(text, encoding="utf-8")
    if mtime is not None:
        os.utime(path, (mtime, mtime))
    return path


def test_first_scan_reports_everything(discovery, vault_root, files):
    _write(vault_root, "a.md")
    _write(vault_root, "notes/b.md")

    changed = discovery.reindex_all(0.0)

    assert {f.path for f in changed} == {"a.md", "notes", "notes/b.md"}
    assert files.get("notes").kind == "dir"
    assert files.get("notes/b.md").is_dirty


def test_skips_hidden_and_vcs_entries(discovery, vault_root, files):
    _write(vault_root, ".git/config")
    _write(vault_root, ".obsidian/app.json")
    _write(vault_root, ".DS_Store")
    _write(vault_root, "a.md")

    discovery.reindex_all()

    assert files.list_paths() == {"a.md"}


def test_delta_scan_reports_only_newer_files(discovery, vault_root):
    _write(vault_root, "old.md", mtime=1_000)
    discovery.reindex_all()
    _write(vault_root, "new.md", mtime=3_000)

    changed = discovery.reindex_all(since=2_000)

    assert [f.path for f in changed] == ["new.md"]


def test_modified_file_is_reported_again(discovery, vault_root):
    _write(vault_root, "a.md", mtime=1_000)
    discovery.reindex_all()
    _write(vault_root, "a.md", "changed", mtime=5_000)

    assert [f.path for f in discovery.reindex_all(since=2_000)] == ["a.md"]


def test_deleted_files_are_pruned(discovery, vault_root, files):
    path = _write(vault_root, "gone.md")
    discovery.reindex_all()
    path.unlink()

    discovery.reindex_all()

    assert not files.exists("gone.md")


def test_remote_only_rows_survive_scan(discovery, files):
    files.upsert(VaultFile(path="remote.md", name="remote.md", remote_hash="abc"))

    discovery.reindex_all()

    assert files.exists("remote.md")


def test_file_synced_after_mtime_is_clean(discovery, vault_root, files):
    _write(vault_root, "a.md", mtime=1_000)
    files.upsert(
        VaultFile(path="a.md", name="a.md", remote_hash="h", last_synced_at=2_000, local_modified_at=1_000)
    )

    discovery.reindex_all()

    assert not files.get("a.md").is_dirty


def test_edit_after_sync_marks_dirty(discovery, vault_root, files):
    files.upsert(VaultFile(path="a.md", name="a.md", remote_hash="h", last_synced_at=1_000))
    _write(vault_root, "a.md", mtime=2_000)

    discovery.reindex_all()

    row = files.get("a.md")
    assert row.is_dirty
    assert row.remote_hash == "h"


def test_frontmatter_tags_are_indexed(discovery, vault_root, files):
    _write(vault_root, "a.md", "---\ntags: [x, y]\nmood_score: 3\n---\nbody")

    discovery.reindex_all()

    row = files.get("a.md")
    assert row.tags == ["x", "y"]
    assert row.metadata == {"mood_score": 3}


def test_broken_frontmatter_does_not_block_scan(discovery, vault_root, files):
    _write(vault_root, "bad.md", "---\ntags: [oops\n---\n")

    discovery.reindex_all()

    assert files.get("bad.md").tags == []


def test_scan_single_file_upserts_and_deletes(discovery, vault_root, files):
    path = _write(vault_root, "one.md")
    assert discovery.scan_single_file("one.md").path == "one.md"
    assert files.exists("one.md")

    path.unlink()
    assert discovery.scan_single_file("one.md") is None
    assert not files.exists("one.md")


@pytest.mark.parametrize("raw,expected", [("a/b.md", "a/b.md"), ("/a/b.md/", "a/b.md"), ("a\\b.md", "a/b.md")])
def test_normalize_vault_path(raw, expected):
    assert normalize_vault_path(raw) == expected


@pytest.mark.parametrize("raw", ["", "/", "../x.md", "a/../../x.md"])
def test_normalize_rejects_invalid_paths(raw):
    with pytest.raises(ValueError):
        normalize_vault_path(raw)


def test_ignored_paths_are_never_indexed(vault_root, files):
    _write(vault_root, "vaultkeeper.yaml", "vault: {}")
    _write(vault_root, "sub/vaultkeeper.yaml", "kept")

    VaultDiscoveryEngine(vault_root, files, ignore=["vaultkeeper.yaml"]).reindex_all()

    assert files.list_paths() == {"sub", "sub/vaultkeeper.yaml"}
