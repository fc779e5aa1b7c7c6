"""Shared fixtures."""

import json

import pytest

from cli_config import InstallConfig
from helpers import FakeRegistry


@pytest.fixture
def registry():
    """Fresh in-memory registry for each test."""
    return FakeRegistry()


@pytest.fixture
def project(tmp_path):
    """Write a package.json into tmp_path and return a config pointing at it."""
    def _make(dependencies, dev_dependencies=None, **overrides):
        manifest = {"name": "app", "version": "1.0.0", "dependencies": dependencies}
        if dev_dependencies:
            manifest["devDependencies"] = dev_dependencies
        (tmp_path / "package.json").write_text(json.dumps(manifest), encoding="utf-8")
        settings = {"project_dir": str(tmp_path), "jobs": 4}
        settings.update(overrides)
        return InstallConfig(**settings)
    return _make
