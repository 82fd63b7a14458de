"""Installs a downloaded branch snapshot into the destination directory.

The destination is only touched once the archive has been extracted and its
layout checked. The replacement itself is a pair of renames inside the
destination's parent directory, so readers see either the old tree or the
new one, apart from the short window between the two renames.
"""

import os
import shutil
import tempfile
import uuid
import zipfile
import zlib
from pathlib import Path

import structlog

from github_branch_sync.synchronize.exceptions import CorruptArchiveError, InstallError, UnexpectedArchiveLayoutError
from github_branch_sync.synchronize.results import Result

logger = structlog.get_logger(__name__)

ARCHIVE_PREFIX = "githubsync_"
EXTRACT_PREFIX = "githubsync_extract_"


def write_temp_archive(raw_bytes: bytes, cache_root: Path) -> Path:
    """Write the archive bytes to a fresh temporary zip file in the cache root."""
    cache_root.mkdir(parents=True, exist_ok=True)
    fd, tmp_name = tempfile.mkstemp(prefix=ARCHIVE_PREFIX, suffix=".zip", dir=cache_root)
    with os.fdopen(fd, "wb") as f:
        f.write(raw_bytes)
    return Path(tmp_name)


def find_root_folder(scratch_dir: Path) -> Path | None:
    """Return the single top-level directory of an extracted archive, if that is its only entry."""
    entries = list(scratch_dir.iterdir())
    if len(entries) != 1:
        return None
    root = entries[0]
    if root.is_symlink() or not root.is_dir():
        return None
    return root


def replace_directory(source: Path, destination: Path) -> None:
    """Replace `destination` with the directory tree at `source`.

    The new tree is first moved next to the destination, then swapped in with
    two renames. If the second rename fails the previous tree is put back.
    """
    parent = destination.parent
    token = uuid.uuid4().hex
    staging = parent / f".{destination.name}.githubsync-new-{token}"
    previous = parent / f".{destination.name}.githubsync-old-{token}"

    # Crosses volumes when the cache root is elsewhere; degrades to a copy.
    shutil.move(str(source), str(staging))
    try:
        os.rename(destination, previous)
    except OSError:
        shutil.rmtree(staging, ignore_errors=True)
        raise
    try:
        os.rename(staging, destination)
    except OSError:
        os.rename(previous, destination)
        shutil.rmtree(staging, ignore_errors=True)
        raise
    shutil.rmtree(previous, ignore_errors=True)


class ArchiveInstaller:
    """Validates, extracts and installs zip snapshots produced by GitHub's archive endpoint."""

    def __init__(self, cache_root: Path) -> None:
        """Initialize the installer with the directory used for temporary files."""
        self.cache_root = cache_root

    def install(self, raw_bytes: bytes, destination: Path) -> Result[Path]:
        """Replace the contents of `destination` with the archive's root folder.

        The temporary zip file and the scratch extraction directory are removed
        before returning, whatever the outcome.
        """
        try:
            archive_path = write_temp_archive(raw_bytes, self.cache_root)
        except OSError as e:
            return Result.failure(InstallError(f"Failed to write temporary archive in {self.cache_root}: {e}"))

        scratch_dir: Path | None = None
        try:
            try:
                with zipfile.ZipFile(archive_path) as archive:
                    bad_member = archive.testzip()
                    if bad_member is not None:
                        return Result.failure(CorruptArchiveError(f"Archive member failed CRC check: {bad_member}"))
                    scratch_dir = Path(tempfile.mkdtemp(prefix=EXTRACT_PREFIX, dir=self.cache_root))
                    archive.extractall(scratch_dir)
            except (zipfile.BadZipFile, zipfile.LargeZipFile, zlib.error, EOFError) as e:
                return Result.failure(CorruptArchiveError(f"Failed to open archive: {e}"))
            except OSError as e:
                return Result.failure(InstallError(f"Failed to extract archive into {self.cache_root}: {e}"))
            finally:
                archive_path.unlink(missing_ok=True)

            root_folder = find_root_folder(scratch_dir)
            if root_folder is None:
                entries = sorted(entry.name for entry in scratch_dir.iterdir())
                logger.warning("Archive does not contain a single root folder", entries=entries)
                return Result.failure(
                    UnexpectedArchiveLayoutError(f"Expected exactly one root folder in archive, found {len(entries)} entries: {entries}")
                )

            try:
                replace_directory(root_folder, destination)
            except OSError as e:
                return Result.failure(InstallError(f"Failed to replace {destination}: {e}"))
            logger.info("Installed archive", destination=str(destination), root_folder=root_folder.name)
            return Result.success(destination)
        finally:
            if scratch_dir is not None:
                shutil.rmtree(scratch_dir, ignore_errors=True)
