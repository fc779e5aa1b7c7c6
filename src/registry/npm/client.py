"""NPM registry client: packuments and tarballs."""

from __future__ import annotations

import logging
import urllib.parse
from typing import Optional

import requests

from constants import Constants
from common.errors import PackageNotFound, RegistryUnavailable
from common.http_client import get_bytes, get_json
from common.logging_utils import extra_context, is_debug_enabled, Timer, safe_url
from registry.base import PackageMetadata, RegistryClient

from .packument import parse_packument

logger = logging.getLogger(__name__)


def package_url(base_url: str, name: str) -> str:
    """Return the packument URL for ``name``; scoped names keep a literal '@'."""
    base = base_url if base_url.endswith("/") else base_url + "/"
    return base + urllib.parse.quote(name, safe="@")


class NpmRegistryClient(RegistryClient):
    """RegistryClient backed by an npm-compatible HTTP registry."""

    def __init__(
        self,
        base_url: str = Constants.REGISTRY_URL_NPM,
        timeout: float = Constants.REQUEST_TIMEOUT,
        retries: int = Constants.HTTP_RETRY_MAX,
        session: Optional[requests.Session] = None,
    ):
        self.base_url = base_url
        self.timeout = timeout
        self.retries = retries
        self._session = session or requests.Session()
        self._session.headers.setdefault("User-Agent", Constants.USER_AGENT)

    def close(self) -> None:
        """Release pooled connections."""
        self._session.close()

    def metadata(self, name: str) -> PackageMetadata:
        """Fetch and parse the abbreviated packument for ``name``."""
        url = package_url(self.base_url, name)
        headers = {"Accept": Constants.NPM_ACCEPT_HEADER}
        with Timer() as timer:
            status, _, data = get_json(
                url,
                session=self._session,
                headers=headers,
                timeout=self.timeout,
                retries=self.retries,
            )

        if status == 404:
            logger.warning(
                "Package not found in registry",
                extra=extra_context(
                    event="http_response",
                    outcome="not_found",
                    status_code=404,
                    target=safe_url(url),
                    package_manager="npm"
                )
            )
            raise PackageNotFound(f"{name} is not published in {safe_url(self.base_url)}")
        if status != 200 or not isinstance(data, dict):
            raise RegistryUnavailable(
                f"Unexpected response for {name} (HTTP {status}) from {safe_url(url)}"
            )

        metadata = parse_packument(name, data)
        if is_debug_enabled(logger):
            logger.debug(
                "Packument parsed",
                extra=extra_context(
                    event="parse",
                    component="client",
                    action="metadata",
                    outcome="success",
                    duration_ms=timer.duration_ms(),
                    version_count=len(metadata.versions),
                    package_manager="npm"
                )
            )
        return metadata

    def fetch_tarball(self, url: str) -> bytes:
        """Download tarball bytes from ``url``."""
        with Timer() as timer:
            payload = get_bytes(
                url,
                session=self._session,
                timeout=self.timeout,
                retries=self.retries,
            )
        if is_debug_enabled(logger):
            logger.debug(
                "Tarball downloaded",
                extra=extra_context(
                    event="http_response",
                    component="client",
                    action="fetch_tarball",
                    outcome="success",
                    size_bytes=len(payload),
                    duration_ms=timer.duration_ms(),
                    target=safe_url(url)
                )
            )
        return payload
