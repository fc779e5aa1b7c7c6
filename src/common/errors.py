"""Exception taxonomy shared by the resolver, lockfile and install stages."""

from __future__ import annotations

from typing import Any, Optional


class DepNestError(Exception):
    """Base exception for all DepNest errors."""

    kind = "DepNestError"

    def __init__(self, message: str = "") -> None:
        self.message = message
        super().__init__(message)


class ConfigError(DepNestError):
    """Raised when configuration values cannot be loaded or validated."""

    kind = "ConfigError"


class ManifestError(DepNestError):
    """Raised when package.json cannot be read or has an invalid shape."""

    kind = "ManifestError"


class ResolutionError(DepNestError):
    """A requirement could not be turned into a resolved node."""

    kind = "ResolutionError"

    def __init__(self, message: str = "", requirement: Optional[Any] = None) -> None:
        super().__init__(message)
        self.requirement = requirement


class UnsatisfiableRange(ResolutionError):
    """No published version matches a requirement's range."""

    kind = "UnsatisfiableRange"


class PackageNotFound(UnsatisfiableRange):
    """The registry does not know the package at all."""

    kind = "PackageNotFound"


class RegistryUnavailable(ResolutionError):
    """Transport or metadata retrieval failure."""

    kind = "RegistryUnavailable"


class InvalidRequirement(ResolutionError):
    """Package name or range expression cannot be parsed."""

    kind = "InvalidRequirement"


class InstallError(DepNestError):
    """A resolved node could not be installed."""

    kind = "InstallError"

    def __init__(self, message: str = "", package: Optional[str] = None) -> None:
        super().__init__(message)
        self.package = package


class IntegrityMismatch(InstallError):
    """Downloaded bytes do not match the advertised integrity hash."""

    kind = "IntegrityMismatch"


class UnsafeArchiveEntry(InstallError):
    """Archive entry would be written outside the target directory."""

    kind = "UnsafeArchiveEntry"


class InstallCancelled(InstallError):
    """Extraction was interrupted by cancellation and rolled back."""

    kind = "InstallCancelled"


class LockfileError(DepNestError):
    """Raised when the lock file cannot be parsed."""

    kind = "LockfileError"


class LockPersistenceFailure(LockfileError):
    """Atomic replace of the lock file could not complete."""

    kind = "LockPersistenceFailure"
