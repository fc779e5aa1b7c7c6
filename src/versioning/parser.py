"""Range expression parsing and manifest loading."""

import json
import logging
import re
from pathlib import Path
from typing import Any, Dict, List, Union

from common.errors import InvalidRequirement, ManifestError
from .models import Requirement, ResolutionMode, VersionSpec

logger = logging.getLogger(__name__)

# npm package names: optional @scope/, then url-safe characters.
_NAME_RE = re.compile(r"^(?:@[a-z0-9][a-z0-9._~-]*/)?[a-z0-9._~][a-z0-9._~-]*$", re.IGNORECASE)
_TAG_RE = re.compile(r"^[A-Za-z][A-Za-z0-9._-]*$")
_EXACT_RE = re.compile(r"^v?\d+\.\d+\.\d+(?:-[0-9A-Za-z.-]+)?(?:\+[0-9A-Za-z.-]+)?$")
_PRERELEASE_RE = re.compile(r"\d+\.\d+\.\d+-[0-9A-Za-z]")


def normalize_range(raw: str) -> str:
    """Collapse whitespace; an empty range means any version."""
    spec = " ".join(str(raw).split())
    return spec or "*"


def validate_name(name: str) -> None:
    """Reject names that cannot safely become a directory under the install root."""
    if not isinstance(name, str) or not _NAME_RE.match(name) or ".." in name.split("/"):
        raise InvalidRequirement(f"Invalid package name: {name!r}")


def _determine_resolution_mode(spec: str) -> ResolutionMode:
    """Determine resolution mode from spec string."""
    if _EXACT_RE.match(spec):
        return ResolutionMode.EXACT
    if _TAG_RE.match(spec) and spec.lower() not in ("x", "*"):
        return ResolutionMode.TAG
    return ResolutionMode.RANGE


def _determine_include_prerelease(spec: str) -> bool:
    """Pre-releases are only candidates when the range names one explicitly."""
    return bool(_PRERELEASE_RE.search(spec))


def parse_range(raw: str) -> VersionSpec:
    """Build a VersionSpec from a raw range expression."""
    spec = normalize_range(raw)
    return VersionSpec(
        raw=spec,
        mode=_determine_resolution_mode(spec),
        include_prerelease=_determine_include_prerelease(spec),
    )


def parse_manifest_entries(entries: Dict[str, Any], *, dev: bool = False) -> List[Requirement]:
    """Turn a name -> range mapping into root requirements, sorted by name."""
    requirements = []
    for name in sorted(entries):
        raw = entries[name]
        if not isinstance(raw, str):
            raise ManifestError(f"Range for {name!r} must be a string, got {type(raw).__name__}")
        requirements.append(Requirement(name=name, range_expr=normalize_range(raw), dev=dev))
    return requirements


def load_manifest(path: Union[str, Path], include_dev: bool = True) -> List[Requirement]:
    """Read package.json and return its root requirements.

    ``dependencies`` always contribute; ``devDependencies`` only when
    ``include_dev``. A name listed in both keeps the ``dependencies`` range.

    Raises:
        ManifestError: if the file is missing, not JSON, or badly shaped.
    """
    try:
        with open(path, "r", encoding="utf-8") as fh:
            data = json.load(fh)
    except FileNotFoundError as exc:
        raise ManifestError(f"Manifest not found: {path}") from exc
    except (OSError, json.JSONDecodeError) as exc:
        raise ManifestError(f"Could not read manifest {path}: {exc}") from exc

    if not isinstance(data, dict):
        raise ManifestError(f"Manifest {path} must contain a JSON object")

    deps = data.get("dependencies") or {}
    dev_deps = data.get("devDependencies") or {}
    if not isinstance(deps, dict) or not isinstance(dev_deps, dict):
        raise ManifestError(f"Manifest {path}: dependency sections must be objects")

    requirements = parse_manifest_entries(deps)
    if include_dev:
        requirements.extend(
            parse_manifest_entries({k: v for k, v in dev_deps.items() if k not in deps}, dev=True)
        )
        requirements.sort(key=lambda r: r.name)
    logger.info("Loaded %d root requirement(s) from %s", len(requirements), path)
    return requirements
