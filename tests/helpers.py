"""Shared test helpers: an in-memory registry and tarball builders."""

import io
import tarfile
import threading
from typing import Dict, Iterable, List, Optional, Tuple

from common.errors import PackageNotFound, RegistryUnavailable
from install.integrity import compute_sri
from registry.base import PackageMetadata, RegistryClient, VersionRecord

REGISTRY = "https://registry.test"


def make_tarball(files: Dict[str, str], prefix: str = "package") -> bytes:
    """Build a gzip tarball whose entries sit under ``prefix/``."""
    buf = io.BytesIO()
    with tarfile.open(fileobj=buf, mode="w:gz") as tf:
        root = tarfile.TarInfo(prefix)
        root.type = tarfile.DIRTYPE
        root.mode = 0o755
        tf.addfile(root)
        for path, content in sorted(files.items()):
            data = content.encode("utf-8")
            info = tarfile.TarInfo(f"{prefix}/{path}")
            info.size = len(data)
            info.mode = 0o644
            tf.addfile(info, io.BytesIO(data))
    return buf.getvalue()


def make_raw_tarball(entries: Iterable[Tuple[str, str, Optional[str]]]) -> bytes:
    """Build a tarball from (name, kind, payload) triples.

    kind is "file" (payload is the content), "dir", "symlink" or "hardlink"
    (payload is the link target) or "fifo".
    """
    buf = io.BytesIO()
    with tarfile.open(fileobj=buf, mode="w:gz") as tf:
        for name, kind, payload in entries:
            info = tarfile.TarInfo(name)
            if kind == "file":
                data = (payload or "").encode("utf-8")
                info.size = len(data)
                tf.addfile(info, io.BytesIO(data))
                continue
            if kind == "dir":
                info.type = tarfile.DIRTYPE
            elif kind == "symlink":
                info.type = tarfile.SYMTYPE
                info.linkname = payload
            elif kind == "hardlink":
                info.type = tarfile.LNKTYPE
                info.linkname = payload
            elif kind == "fifo":
                info.type = tarfile.FIFOTYPE
            tf.addfile(info)
    return buf.getvalue()


class FakeRegistry(RegistryClient):
    """In-memory RegistryClient that records every call."""

    def __init__(self):
        self._records: Dict[str, List[VersionRecord]] = {}
        self._tarballs: Dict[str, bytes] = {}
        self.dist_tags: Dict[str, Dict[str, str]] = {}
        self.unavailable = set()
        self.metadata_calls: List[str] = []
        self.tarball_calls: List[str] = []
        self._lock = threading.Lock()

    def publish(
        self,
        name: str,
        version: str,
        dependencies: Optional[Dict[str, str]] = None,
        files: Optional[Dict[str, str]] = None,
        tarball: Optional[bytes] = None,
        integrity: Optional[str] = None,
    ) -> VersionRecord:
        """Publish a version; by default its tarball holds a package.json."""
        if tarball is None:
            files = files or {"package.json": f'{{"name": "{name}", "version": "{version}"}}'}
            tarball = make_tarball(files)
        base = name.split("/")[-1]
        url = f"{REGISTRY}/{name}/-/{base}-{version}.tgz"
        record = VersionRecord.create(
            name=name,
            version=version,
            tarball_url=url,
            integrity=integrity or compute_sri(tarball),
            dependencies=dependencies,
        )
        self._records.setdefault(name, []).append(record)
        self._tarballs[url] = tarball
        return record

    def replace_tarball(self, url: str, data: bytes) -> None:
        self._tarballs[url] = data

    def metadata(self, name: str) -> PackageMetadata:
        with self._lock:
            self.metadata_calls.append(name)
        if name in self.unavailable:
            raise RegistryUnavailable(f"registry down for {name}")
        if name not in self._records:
            raise PackageNotFound(f"{name} not found")
        return PackageMetadata(
            name=name,
            versions=list(self._records[name]),
            dist_tags=dict(self.dist_tags.get(name, {})),
        )

    def fetch_tarball(self, url: str) -> bytes:
        with self._lock:
            self.tarball_calls.append(url)
        try:
            return self._tarballs[url]
        except KeyError:
            raise RegistryUnavailable(f"no tarball at {url}") from None

    def reset_calls(self) -> None:
        self.metadata_calls.clear()
        self.tarball_calls.clear()
