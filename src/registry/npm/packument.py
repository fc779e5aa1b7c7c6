"""Parsing of npm packuments into registry-neutral metadata."""

from __future__ import annotations

import base64
import binascii
import logging
from typing import Any, Dict, Optional

from registry.base import PackageMetadata, VersionRecord

logger = logging.getLogger(__name__)


def shasum_to_integrity(shasum: Optional[str]) -> str:
    """Convert a legacy hex ``dist.shasum`` into an SRI ``sha1-`` string.

    Returns an empty string when the value is missing or not valid hex.
    """
    if not shasum:
        return ""
    try:
        raw = binascii.unhexlify(shasum.strip())
    except (binascii.Error, ValueError):
        return ""
    return "sha1-" + base64.b64encode(raw).decode("ascii")


def _dependencies(info: Dict[str, Any]) -> Dict[str, str]:
    deps = info.get("dependencies") or {}
    if not isinstance(deps, dict):
        return {}
    return {str(k): str(v) for k, v in deps.items()}


def parse_packument(name: str, data: Dict[str, Any]) -> PackageMetadata:
    """Build PackageMetadata from a full or abbreviated npm packument.

    Versions without a tarball URL are dropped. ``dist.integrity`` wins over
    ``dist.shasum``.
    """
    versions = data.get("versions") or {}
    records = []
    for version, info in versions.items():
        if not isinstance(info, dict):
            continue
        dist = info.get("dist") or {}
        tarball = dist.get("tarball")
        if not tarball:
            logger.debug("Skipping %s@%s: no tarball in dist", name, version)
            continue
        integrity = dist.get("integrity") or shasum_to_integrity(dist.get("shasum"))
        records.append(
            VersionRecord.create(
                name=name,
                version=str(info.get("version") or version),
                tarball_url=str(tarball),
                integrity=str(integrity),
                dependencies=_dependencies(info),
            )
        )
    tags = data.get("dist-tags") or {}
    dist_tags = {str(k): str(v) for k, v in tags.items()} if isinstance(tags, dict) else {}
    return PackageMetadata(name=name, versions=records, dist_tags=dist_tags)
