"""Tests for SRI parsing and verification."""

import hashlib

import pytest

from common.errors import IntegrityMismatch
from install.integrity import compute_sri, parse_sri, verify
from registry.npm.packument import shasum_to_integrity


def test_verify_sha512():
    data = b"tarball bytes"
    assert verify(data, compute_sri(data), "a@1.0.0") == "sha512"


def test_mismatch_raises():
    with pytest.raises(IntegrityMismatch) as excinfo:
        verify(b"tampered", compute_sri(b"original"), "a@1.0.0")
    assert excinfo.value.package == "a@1.0.0"
    assert "a@1.0.0" in excinfo.value.message


def test_strongest_algorithm_wins():
    data = b"payload"
    # A wrong sha1 alongside a correct sha512: only the sha512 is checked.
    integrity = f"sha1-AAAAAAAAAAAAAAAAAAAAAAAAAAA= {compute_sri(data)}"
    assert verify(data, integrity) == "sha512"


def test_unsupported_or_missing_integrity_is_rejected():
    with pytest.raises(IntegrityMismatch):
        verify(b"x", "md5-abcdef")
    with pytest.raises(IntegrityMismatch):
        verify(b"x", "")


def test_parse_sri_orders_and_filters():
    parsed = parse_sri("sha1-AAAA sha256-AAAA md5-AAAA sha512-not*base64")
    assert [alg for alg, _ in parsed] == ["sha256", "sha1"]


def test_legacy_shasum_converts_to_sha1_sri():
    data = b"legacy"
    integrity = shasum_to_integrity(hashlib.sha1(data).hexdigest())
    assert integrity == compute_sri(data, "sha1")
    assert verify(data, integrity) == "sha1"
    assert shasum_to_integrity("zz-not-hex") == ""
    assert shasum_to_integrity(None) == ""
