"""Staged, traversal-safe extraction of package tarballs.

Entries are written into a staging directory beside the target and only
moved into place once every entry has been checked and written. Any
failure removes the staging directory, so a target is either the previous
complete install or the new complete install, never a partial one.
"""

from __future__ import annotations

import io
import json
import logging
import os
import shutil
import tarfile
import tempfile
import threading
import uuid
from pathlib import Path, PurePosixPath
from typing import Optional

from constants import Constants
from common.errors import InstallCancelled, InstallError, UnsafeArchiveEntry

logger = logging.getLogger(__name__)

_COPY_CHUNK = 1024 * 64


def read_marker(target: Path) -> Optional[dict]:
    """Return the install marker stored in ``target``, if readable."""
    try:
        data = json.loads((target / Constants.INSTALL_MARKER_FILE).read_text(encoding="utf-8"))
    except (OSError, ValueError):
        return None
    return data if isinstance(data, dict) else None


def is_installed(target: Path, integrity: str) -> bool:
    """True when ``target`` holds a complete install verified against ``integrity``."""
    marker = read_marker(target)
    return bool(marker) and bool(integrity) and marker.get("integrity") == integrity


def _relative_path(name: str, strip_components: int) -> Optional[PurePosixPath]:
    path = PurePosixPath(name.replace("\\", "/"))
    if path.is_absolute() or (path.parts and path.parts[0].endswith(":")):
        raise UnsafeArchiveEntry(f"Absolute path in archive: {name!r}")
    parts = [p for p in path.parts if p not in ("", ".")]
    if ".." in parts:
        raise UnsafeArchiveEntry(f"Path traversal in archive: {name!r}")
    parts = parts[strip_components:]
    return PurePosixPath(*parts) if parts else None


def _inside(base: Path, candidate: Path) -> bool:
    try:
        candidate.resolve().relative_to(base)
    except ValueError:
        return False
    return True


def _extract_members(
    archive: tarfile.TarFile,
    staging: Path,
    strip_components: int,
    cancel_event: Optional[threading.Event],
    package: str,
) -> int:
    base = staging.resolve()
    written = 0
    for member in archive:
        if cancel_event is not None and cancel_event.is_set():
            raise InstallCancelled(f"Extraction of {package} cancelled", package=package)
        rel = _relative_path(member.name, strip_components)
        if rel is None:
            continue
        dest = staging.joinpath(*rel.parts)
        if not _inside(base, dest):
            raise UnsafeArchiveEntry(f"Entry escapes target directory: {member.name!r}", package=package)

        if member.isdir():
            dest.mkdir(parents=True, exist_ok=True)
            continue

        dest.parent.mkdir(parents=True, exist_ok=True)
        if not _inside(base, dest.parent):
            raise UnsafeArchiveEntry(f"Entry escapes target directory: {member.name!r}", package=package)

        if member.isreg():
            source = archive.extractfile(member)
            if source is None:
                raise InstallError(f"Unreadable archive entry {member.name!r}", package=package)
            with source, open(dest, "wb") as out:
                shutil.copyfileobj(source, out, _COPY_CHUNK)
            os.chmod(dest, 0o755 if member.mode & 0o111 else 0o644)
        elif member.issym():
            link = PurePosixPath(member.linkname.replace("\\", "/"))
            if link.is_absolute() or not _inside(base, dest.parent.joinpath(*link.parts)):
                raise UnsafeArchiveEntry(
                    f"Symlink {member.name!r} -> {member.linkname!r} escapes target directory",
                    package=package,
                )
            os.symlink(str(link), dest)
        elif member.islnk():
            link_rel = _relative_path(member.linkname, strip_components)
            source_path = staging.joinpath(*link_rel.parts) if link_rel else None
            if source_path is None or not _inside(base, source_path) or not source_path.is_file():
                raise UnsafeArchiveEntry(
                    f"Hard link {member.name!r} -> {member.linkname!r} escapes target directory",
                    package=package,
                )
            shutil.copy2(source_path, dest)
        else:
            raise UnsafeArchiveEntry(
                f"Unsupported archive entry type for {member.name!r}", package=package
            )
        written += 1
    return written


def _verify_links(staging: Path, package: str) -> None:
    """Re-check every symlink against the finished staging tree.

    A link that was inside the tree when created can be redirected by a
    later entry that adds a symlink along its path.
    """
    base = staging.resolve()
    for dirpath, dirnames, filenames in os.walk(staging):
        for name in dirnames + filenames:
            path = Path(dirpath) / name
            if path.is_symlink() and not _inside(base, path):
                raise UnsafeArchiveEntry(
                    f"Symlink {path.relative_to(staging)} -> {os.readlink(path)} "
                    f"escapes target directory",
                    package=package,
                )


def _swap_into_place(staging: Path, target: Path) -> None:
    """Replace ``target`` with ``staging``, keeping nested installs of the old copy."""
    if not target.exists() and not target.is_symlink():
        os.replace(staging, target)
        return

    nested_old = target / Constants.NESTED_MODULES_DIR
    nested_new = staging / Constants.NESTED_MODULES_DIR
    carried = nested_old.is_dir() and not nested_new.exists()
    if carried:
        os.replace(nested_old, nested_new)

    backup = target.with_name(f".{target.name}.old-{uuid.uuid4().hex[:8]}")
    try:
        os.replace(target, backup)
        try:
            os.replace(staging, target)
        except OSError:
            os.replace(backup, target)
            raise
    except OSError:
        if carried:
            os.replace(nested_new, nested_old)
        raise
    if backup.is_dir() and not backup.is_symlink():
        shutil.rmtree(backup, ignore_errors=True)
    else:
        backup.unlink()


def extract_package(
    data: bytes,
    target: Path,
    marker: dict,
    *,
    cancel_event: Optional[threading.Event] = None,
    strip_components: int = 1,
) -> int:
    """Extract tarball ``data`` into ``target`` atomically.

    npm tarballs wrap their content in a single top-level directory
    (normally ``package/``), which ``strip_components`` removes.

    Returns:
        Number of files and links written.

    Raises:
        UnsafeArchiveEntry: an entry would land outside ``target``.
        InstallCancelled: ``cancel_event`` was set mid-extraction.
        InstallError: the archive is corrupt or the filesystem failed.
    """
    package = f"{marker.get('name', '')}@{marker.get('version', '')}"
    target = Path(target)
    target.parent.mkdir(parents=True, exist_ok=True)
    staging = Path(tempfile.mkdtemp(prefix=f".{target.name}.staging-", dir=str(target.parent)))
    try:
        try:
            with tarfile.open(fileobj=io.BytesIO(data), mode="r:*") as archive:
                written = _extract_members(archive, staging, strip_components, cancel_event, package)
        except tarfile.TarError as exc:
            raise InstallError(f"Corrupt archive for {package}: {exc}", package=package) from exc
        _verify_links(staging, package)
        (staging / Constants.INSTALL_MARKER_FILE).write_text(
            json.dumps(marker, indent=2, sort_keys=True) + "\n", encoding="utf-8"
        )
        try:
            _swap_into_place(staging, target)
        except OSError as exc:
            raise InstallError(f"Could not move {package} into {target}: {exc}", package=package) from exc
    except BaseException:
        shutil.rmtree(staging, ignore_errors=True)
        logger.debug("Rolled back staging directory %s", staging)
        raise
    logger.debug("Extracted %d entries for %s into %s", written, package, target)
    return written
