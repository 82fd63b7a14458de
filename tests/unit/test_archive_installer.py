"""Unit tests for the archive installer."""

import errno
import os
from pathlib import Path
from typing import Callable

import pytest

from github_branch_sync.archive.installer import ArchiveInstaller, find_root_folder, replace_directory
from github_branch_sync.synchronize.exceptions import CorruptArchiveError, InstallError, UnexpectedArchiveLayoutError

ZipFactory = Callable[[dict[str, str]], bytes]


def snapshot_tree(root: Path) -> dict[str, bytes]:
    """Return every file under root keyed by its relative path."""
    return {str(path.relative_to(root)): path.read_bytes() for path in sorted(root.rglob("*")) if path.is_file()}


@pytest.fixture
def cache_root(tmp_path: Path) -> Path:
    """Return the cache directory used for temporary archives."""
    path = tmp_path / "cache"
    path.mkdir()
    return path


@pytest.fixture
def destination(tmp_path: Path) -> Path:
    """Return a destination directory holding an older snapshot."""
    path = tmp_path / "content" / "site"
    (path / "old").mkdir(parents=True)
    (path / "stale.txt").write_text("stale")
    (path / "old" / "page.html").write_text("<p>old</p>")
    return path


def test_install_replaces_destination_contents(cache_root: Path, destination: Path, make_zip: ZipFactory) -> None:
    """Test that the root folder's contents replace everything in the destination."""
    raw = make_zip({"b-main/index.html": "<h1>hi</h1>", "b-main/docs/guide.md": "# Guide"})
    result = ArchiveInstaller(cache_root).install(raw, destination)

    assert result.ok
    assert result.unwrap() == destination
    assert snapshot_tree(destination) == {"index.html": b"<h1>hi</h1>", "docs/guide.md": b"# Guide"}
    assert not (destination / "stale.txt").exists()


def test_install_leaves_no_scratch_files(cache_root: Path, destination: Path, make_zip: ZipFactory) -> None:
    """Test that the temporary archive and extraction directory are removed after a successful install."""
    raw = make_zip({"b-main/index.html": "hi"})
    ArchiveInstaller(cache_root).install(raw, destination)

    assert list(cache_root.iterdir()) == []
    assert sorted(p.name for p in destination.parent.iterdir()) == ["site"]


def test_install_creates_missing_cache_root(tmp_path: Path, destination: Path, make_zip: ZipFactory) -> None:
    """Test that the cache directory is created on first use."""
    cache_root = tmp_path / "not" / "yet" / "there"
    result = ArchiveInstaller(cache_root).install(make_zip({"b-main/index.html": "hi"}), destination)

    assert result.ok
    assert cache_root.is_dir()


def test_install_corrupt_archive(cache_root: Path, destination: Path) -> None:
    """Test that bytes that are not a zip file are rejected before the destination is touched."""
    before = snapshot_tree(destination)
    result = ArchiveInstaller(cache_root).install(b"this is not a zip file", destination)

    assert isinstance(result.error, CorruptArchiveError)
    assert snapshot_tree(destination) == before
    assert list(cache_root.iterdir()) == []


def test_install_truncated_archive(cache_root: Path, destination: Path, make_zip: ZipFactory) -> None:
    """Test that a truncated download is reported as a corrupt archive."""
    raw = make_zip({"b-main/index.html": "hi" * 1000})
    before = snapshot_tree(destination)
    result = ArchiveInstaller(cache_root).install(raw[: len(raw) // 2], destination)

    assert isinstance(result.error, CorruptArchiveError)
    assert snapshot_tree(destination) == before
    assert list(cache_root.iterdir()) == []


@pytest.mark.parametrize(
    "members",
    [
        {},
        {"index.html": "loose file"},
        {"b-main/index.html": "hi", "other-main/index.html": "hi"},
        {"b-main/index.html": "hi", "README": "stray"},
    ],
    ids=["empty", "single-file", "two-folders", "folder-and-file"],
)
def test_install_unexpected_layout(cache_root: Path, destination: Path, make_zip: ZipFactory, members: dict[str, str]) -> None:
    """Test that archives without exactly one root folder leave the destination unchanged."""
    before = snapshot_tree(destination)
    result = ArchiveInstaller(cache_root).install(make_zip(members), destination)

    assert isinstance(result.error, UnexpectedArchiveLayoutError)
    assert snapshot_tree(destination) == before
    assert list(cache_root.iterdir()) == []


def test_find_root_folder_requires_directory(tmp_path: Path) -> None:
    """Test that a single regular file is not accepted as the root folder."""
    (tmp_path / "file.txt").write_text("x")
    assert find_root_folder(tmp_path) is None


def test_find_root_folder_returns_single_directory(tmp_path: Path) -> None:
    """Test that a single directory entry is returned as the root folder."""
    (tmp_path / "repo-main").mkdir()
    assert find_root_folder(tmp_path) == tmp_path / "repo-main"


def test_replace_directory_restores_previous_tree_on_failure(tmp_path: Path, monkeypatch: pytest.MonkeyPatch) -> None:
    """Test that the old tree is put back when the new tree cannot be renamed into place."""
    source = tmp_path / "scratch" / "repo-main"
    source.mkdir(parents=True)
    (source / "new.txt").write_text("new")
    destination = tmp_path / "site"
    destination.mkdir()
    (destination / "old.txt").write_text("old")

    real_rename = os.rename

    def flaky_rename(src: Path, dst: Path) -> None:
        if Path(src).name.startswith(".site.githubsync-new-"):
            raise OSError("rename failed")
        real_rename(src, dst)

    monkeypatch.setattr("github_branch_sync.archive.installer.os.rename", flaky_rename)
    with pytest.raises(OSError):
        replace_directory(source, destination)

    assert snapshot_tree(destination) == {"old.txt": b"old"}
    assert sorted(p.name for p in tmp_path.iterdir()) == ["scratch", "site"]


@pytest.mark.parametrize("failing", ["mkdtemp", "extractall"])
def test_install_local_disk_failure_is_install_error(
    cache_root: Path, destination: Path, make_zip: ZipFactory, monkeypatch: pytest.MonkeyPatch, failing: str
) -> None:
    """Test that a local filesystem failure during extraction is not blamed on the archive."""

    def no_space(*args: object, **kwargs: object) -> None:
        raise OSError(errno.ENOSPC, "No space left on device")

    if failing == "mkdtemp":
        monkeypatch.setattr("github_branch_sync.archive.installer.tempfile.mkdtemp", no_space)
    else:
        monkeypatch.setattr("github_branch_sync.archive.installer.zipfile.ZipFile.extractall", no_space)
    before = snapshot_tree(destination)

    result = ArchiveInstaller(cache_root).install(make_zip({"b-main/index.html": "hi"}), destination)

    assert isinstance(result.error, InstallError)
    assert not isinstance(result.error, CorruptArchiveError)
    assert snapshot_tree(destination) == before
    assert list(cache_root.iterdir()) == []
