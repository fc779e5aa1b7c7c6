"""Registry client contract consumed by the resolver and the install pipeline."""

from __future__ import annotations

from abc import ABC, abstractmethod
from dataclasses import dataclass, field
from typing import Dict, List, Mapping, Optional, Tuple


@dataclass(frozen=True)
class VersionRecord:
    """Metadata for one published version of a package."""

    name: str
    version: str
    tarball_url: str
    integrity: str
    dependencies: Tuple[Tuple[str, str], ...] = ()

    @classmethod
    def create(
        cls,
        name: str,
        version: str,
        tarball_url: str,
        integrity: str,
        dependencies: Optional[Mapping[str, str]] = None,
    ) -> "VersionRecord":
        """Build a record, freezing the dependency mapping in name order."""
        deps = tuple(sorted((dependencies or {}).items()))
        return cls(name, version, tarball_url, integrity, deps)

    @property
    def dependency_map(self) -> Dict[str, str]:
        """Dependencies as a plain name -> range dict."""
        return dict(self.dependencies)


@dataclass
class PackageMetadata:
    """Registry answer for ``metadata(name)``."""

    name: str
    versions: List[VersionRecord] = field(default_factory=list)
    dist_tags: Dict[str, str] = field(default_factory=dict)

    def get(self, version: str) -> Optional[VersionRecord]:
        """Return the record for an exact version string, if published."""
        for record in self.versions:
            if record.version == version:
                return record
        return None


class RegistryClient(ABC):
    """Abstract registry capability: package metadata and tarball bytes.

    Implementations raise ``RegistryUnavailable`` on transport failure and
    ``PackageNotFound`` when the registry does not know the package.
    """

    @abstractmethod
    def metadata(self, name: str) -> PackageMetadata:
        """Return every published version of ``name``."""

    @abstractmethod
    def fetch_tarball(self, url: str) -> bytes:
        """Return the raw archive bytes served at ``url``."""
