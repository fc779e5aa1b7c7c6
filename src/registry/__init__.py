"""Registry clients."""

from .base import PackageMetadata, RegistryClient, VersionRecord

__all__ = ["PackageMetadata", "RegistryClient", "VersionRecord"]
