"""Subresource Integrity (SRI) parsing and verification.

Integrity strings look like ``sha512-<base64 digest>``; several may be
listed separated by whitespace, in which case the strongest supported
algorithm is checked.
"""

from __future__ import annotations

import base64
import binascii
import hashlib
import hmac
from typing import List, Tuple

from common.errors import IntegrityMismatch

# Strongest first.
SUPPORTED_ALGORITHMS = ("sha512", "sha384", "sha256", "sha1")


def parse_sri(integrity: str) -> List[Tuple[str, bytes]]:
    """Return (algorithm, digest) pairs for supported entries, strongest first."""
    parsed = []
    for token in (integrity or "").split():
        alg, sep, value = token.partition("-")
        alg = alg.lower()
        if not sep or alg not in SUPPORTED_ALGORITHMS:
            continue
        value = value.split("?", 1)[0]  # SRI options are ignored
        try:
            digest = base64.b64decode(value, validate=True)
        except (binascii.Error, ValueError):
            continue
        parsed.append((alg, digest))
    parsed.sort(key=lambda item: SUPPORTED_ALGORITHMS.index(item[0]))
    return parsed


def compute_sri(data: bytes, algorithm: str = "sha512") -> str:
    """Return the SRI string for ``data``."""
    digest = hashlib.new(algorithm, data).digest()
    return f"{algorithm}-{base64.b64encode(digest).decode('ascii')}"


def verify(data: bytes, integrity: str, package: str = "") -> str:
    """Check ``data`` against ``integrity`` and return the algorithm used.

    Raises:
        IntegrityMismatch: no usable hash was advertised, or the digest differs.
    """
    candidates = parse_sri(integrity)
    if not candidates:
        raise IntegrityMismatch(
            f"No supported integrity hash for {package or 'package'}: {integrity!r}",
            package=package,
        )
    algorithm, expected = candidates[0]
    actual = hashlib.new(algorithm, data).digest()
    if not hmac.compare_digest(actual, expected):
        raise IntegrityMismatch(
            f"Integrity check failed for {package or 'package'}: expected "
            f"{algorithm}-{base64.b64encode(expected).decode('ascii')}, got "
            f"{algorithm}-{base64.b64encode(actual).decode('ascii')}",
            package=package,
        )
    return algorithm
