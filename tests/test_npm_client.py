"""Tests for the npm registry client and the shared HTTP helpers."""

import json
from unittest.mock import MagicMock, patch

import pytest
import requests

from common.errors import PackageNotFound, RegistryUnavailable
from common.http_client import robust_get
from common.logging_utils import extra_context, safe_url
from registry.npm.client import NpmRegistryClient, package_url

PACKUMENT = {
    "name": "left-pad",
    "dist-tags": {"latest": "1.3.0"},
    "versions": {
        "1.3.0": {
            "version": "1.3.0",
            "dependencies": {"b": "^1.0.0"},
            "dist": {
                "tarball": "https://registry.npmjs.org/left-pad/-/left-pad-1.3.0.tgz",
                "integrity": "sha512-abc",
                "shasum": "00",
            },
        },
        "1.0.0": {
            "version": "1.0.0",
            "dist": {
                "tarball": "https://registry.npmjs.org/left-pad/-/left-pad-1.0.0.tgz",
                "shasum": "da39a3ee5e6b4b0d3255bfef95601890afd80709",
            },
        },
        "0.0.1": {"version": "0.0.1", "dist": {}},
    },
}


def response(status, payload=None, content=b""):
    resp = MagicMock()
    resp.status_code = status
    resp.text = json.dumps(payload) if payload is not None else ""
    resp.content = content
    resp.headers = {}
    return resp


def client_with(*responses):
    session = MagicMock()
    session.headers = {}
    session.get.side_effect = list(responses)
    return NpmRegistryClient("https://registry.npmjs.org/", session=session), session


class TestPackageUrl:
    """Packument URL construction."""

    def test_plain_and_scoped(self):
        assert package_url("https://r.test", "left-pad") == "https://r.test/left-pad"
        assert package_url("https://r.test/", "@types/node") == "https://r.test/@types%2Fnode"


class TestMetadata:
    """Packument retrieval and parsing."""

    def test_parses_versions_tags_and_integrity(self):
        client, session = client_with(response(200, PACKUMENT))

        meta = client.metadata("left-pad")

        assert sorted(r.version for r in meta.versions) == ["1.0.0", "1.3.0"]
        assert meta.dist_tags == {"latest": "1.3.0"}
        assert meta.get("1.3.0").integrity == "sha512-abc"
        assert meta.get("1.3.0").dependency_map == {"b": "^1.0.0"}
        assert meta.get("1.0.0").integrity == "sha1-2jmj7l5rSw0yVb/vlWAYkK/YBwk="
        headers = session.get.call_args.kwargs["headers"]
        assert headers["Accept"].startswith("application/vnd.npm.install-v1+json")

    def test_not_found(self):
        client, _ = client_with(response(404))
        with pytest.raises(PackageNotFound):
            client.metadata("nope")

    def test_unexpected_status_or_body(self):
        client, _ = client_with(response(403), response(200, ["not", "a", "dict"]))
        with pytest.raises(RegistryUnavailable):
            client.metadata("a")
        with pytest.raises(RegistryUnavailable):
            client.metadata("a")

    @patch("common.http_client.time.sleep")
    def test_server_errors_are_retried(self, mock_sleep):
        client, session = client_with(response(503), response(502), response(200, PACKUMENT))

        meta = client.metadata("left-pad")

        assert len(meta.versions) == 2
        assert session.get.call_count == 3
        assert mock_sleep.call_count == 2

    @patch("common.http_client.time.sleep")
    def test_gives_up_after_retries(self, _mock_sleep):
        client, session = client_with(
            requests.ConnectionError("refused"),
            requests.Timeout("slow"),
            response(500),
        )
        with pytest.raises(RegistryUnavailable):
            client.metadata("left-pad")
        assert session.get.call_count == 3


class TestTarball:
    """Tarball downloads."""

    def test_returns_bytes(self):
        client, _ = client_with(response(200, content=b"\x1f\x8b..."))
        assert client.fetch_tarball("https://registry.npmjs.org/a/-/a-1.0.0.tgz") == b"\x1f\x8b..."

    def test_non_200_is_unavailable(self):
        client, _ = client_with(response(404))
        with pytest.raises(RegistryUnavailable):
            client.fetch_tarball("https://registry.npmjs.org/a/-/a-1.0.0.tgz")


class TestHttpHelpers:
    """Shared helpers."""

    def test_robust_get_returns_client_errors_without_retry(self):
        session = MagicMock()
        session.get.return_value = response(404)
        assert robust_get("https://r.test/x", session=session, retries=3).status_code == 404
        assert session.get.call_count == 1

    def test_safe_url_redacts_credentials(self):
        assert safe_url("https://user:pw@r.test/a?token=s3cret&x=1") == (
            "https://[REDACTED]@r.test/a?token=[REDACTED]&x=1"
        )

    def test_extra_context_drops_none_and_renames_reserved(self):
        assert extra_context(event="x", outcome=None, name="pkg") == {"event": "x", "ctx_name": "pkg"}
