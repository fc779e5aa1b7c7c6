"""NPM version matching using semantic versioning."""

import re
import threading
from typing import Dict, Iterable, List, Optional, Tuple

import semantic_version

from common.errors import InvalidRequirement, UnsatisfiableRange
from registry.base import PackageMetadata, VersionRecord
from ..models import ResolutionMode, VersionSpec

_V_PREFIX_RE = re.compile(r"(?<![0-9A-Za-z.])[vV](?=\d)")


def parse_version(value: str) -> Optional[semantic_version.Version]:
    """Parse a strict semver string; a leading 'v' is tolerated."""
    try:
        return semantic_version.Version(value[1:] if value[:1] in ("v", "V") else value)
    except ValueError:
        return None


def _prerelease_key(prerelease: Tuple[str, ...]) -> tuple:
    # A release sorts above any pre-release of the same triple; numeric
    # identifiers sort below alphanumeric ones and compare numerically.
    if not prerelease:
        return (1,)
    return (0,) + tuple((0, int(p), "") if p.isdigit() else (1, 0, p) for p in prerelease)


def precedence_key(version: semantic_version.Version) -> tuple:
    """Total order: major, minor, patch, pre-release, then the full string.

    The trailing string breaks ties between versions that differ only in
    build metadata, which semver precedence leaves equal.
    """
    return (
        version.major,
        version.minor,
        version.patch,
        _prerelease_key(tuple(version.prerelease)),
        str(version),
    )


class NpmVersionResolver:
    """Resolver for NPM packages using semantic versioning."""

    def __init__(self) -> None:
        self._specs: Dict[str, semantic_version.NpmSpec] = {}
        self._lock = threading.Lock()

    def _compile(self, raw: str) -> semantic_version.NpmSpec:
        with self._lock:
            cached = self._specs.get(raw)
        if cached is not None:
            return cached
        try:
            compiled = semantic_version.NpmSpec(_V_PREFIX_RE.sub("", raw))
        except ValueError as e:
            raise InvalidRequirement(f"Invalid semver range '{raw}': {e}") from e
        with self._lock:
            self._specs[raw] = compiled
        return compiled

    def validate(self, spec: VersionSpec) -> None:
        """Raise InvalidRequirement when a non-tag range cannot be parsed."""
        if spec.mode != ResolutionMode.TAG:
            self._compile(spec.raw)

    def satisfies(self, spec: VersionSpec, version: str) -> bool:
        """Range containment check; dist-tags never match by containment."""
        if spec.mode == ResolutionMode.TAG:
            return False
        ver = parse_version(version)
        if ver is None:
            return False
        if ver.prerelease and not spec.include_prerelease:
            return False
        return self._compile(spec.raw).match(ver)

    def matching(self, spec: VersionSpec, versions: Iterable[str]) -> List[str]:
        """Return the versions satisfying ``spec``, highest first."""
        parsed = []
        for v in versions:
            ver = parse_version(v)
            if ver is not None and self.satisfies(spec, v):
                parsed.append((precedence_key(ver), v))
        parsed.sort(reverse=True)
        return [v for _, v in parsed]

    def pick(self, spec: VersionSpec, metadata: PackageMetadata) -> VersionRecord:
        """Select the highest published version satisfying ``spec``.

        Raises:
            UnsatisfiableRange: when nothing matches.
            InvalidRequirement: when the range cannot be parsed.
        """
        if spec.mode == ResolutionMode.TAG:
            tagged = metadata.dist_tags.get(spec.raw)
            record = metadata.get(tagged) if tagged else None
            if record is None:
                raise UnsatisfiableRange(
                    f"No dist-tag '{spec.raw}' for {metadata.name}"
                )
            return record

        self.validate(spec)
        by_version = {record.version: record for record in metadata.versions}
        ranked = self.matching(spec, by_version)
        if not ranked:
            raise UnsatisfiableRange(
                f"No versions of {metadata.name} match spec '{spec.raw}' "
                f"({len(by_version)} candidate(s))"
            )
        return by_version[ranked[0]]
