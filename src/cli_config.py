"""Runtime configuration for an install run.

Values are layered with increasing precedence: built-in ``Constants``
defaults, a YAML or JSON config file (``-c`` or the first default file found
in the working directory), ``DEPNEST_*`` environment variables, then CLI
flags.
"""

from __future__ import annotations

import json
import logging
import os
from dataclasses import dataclass, fields, replace
from pathlib import Path
from typing import Any, Dict, Mapping, Optional

import yaml

from constants import Constants
from common.errors import ConfigError

logger = logging.getLogger(__name__)

_BOOL_TRUE = {"1", "true", "yes", "on"}
_BOOL_FALSE = {"0", "false", "no", "off", ""}


@dataclass(frozen=True)
class InstallConfig:
    """Settings for one install invocation."""

    registry_url: str = Constants.REGISTRY_URL_NPM
    project_dir: str = "."
    install_root: Optional[str] = None
    manifest_path: Optional[str] = None
    lockfile_path: Optional[str] = None
    jobs: int = Constants.DEFAULT_JOBS
    timeout: float = float(Constants.REQUEST_TIMEOUT)
    retries: int = Constants.HTTP_RETRY_MAX
    omit_dev: bool = False
    frozen_lockfile: bool = False

    @property
    def manifest(self) -> Path:
        return Path(self.manifest_path or Path(self.project_dir) / Constants.PACKAGE_JSON_FILE)

    @property
    def lockfile(self) -> Path:
        return Path(self.lockfile_path or self.manifest.parent / Constants.LOCK_FILE)

    @property
    def root(self) -> Path:
        return Path(self.install_root or Path(self.project_dir) / Constants.INSTALL_ROOT)

    def validate(self) -> "InstallConfig":
        if self.jobs < 1:
            raise ConfigError(f"jobs must be at least 1, got {self.jobs}")
        if self.timeout <= 0:
            raise ConfigError(f"timeout must be positive, got {self.timeout}")
        if self.retries < 1:
            raise ConfigError(f"retries must be at least 1, got {self.retries}")
        if not self.registry_url.startswith(("http://", "https://")):
            raise ConfigError(f"registry must be an http(s) URL, got {self.registry_url!r}")
        return self


def _coerce(name: str, value: Any, default: Any) -> Any:
    """Convert a raw file/env value to the type of the field default."""
    if value is None:
        return None
    target = type(default) if default is not None else str
    try:
        if target is bool:
            if isinstance(value, bool):
                return value
            text = str(value).strip().lower()
            if text in _BOOL_TRUE:
                return True
            if text in _BOOL_FALSE:
                return False
            raise ValueError(text)
        if target is int:
            return int(value)
        if target is float:
            return float(value)
        return str(value)
    except (TypeError, ValueError) as exc:
        raise ConfigError(f"Invalid value for {name}: {value!r}") from exc


def _apply(config: InstallConfig, values: Mapping[str, Any], source: str) -> InstallConfig:
    known = {f.name: f.default for f in fields(InstallConfig)}
    changes = {}
    for key, value in values.items():
        name = key.replace("-", "_")
        if name == "registry":
            name = "registry_url"
        if name not in known:
            logger.warning("Ignoring unknown setting %r from %s", key, source)
            continue
        if value is None:
            continue
        changes[name] = _coerce(name, value, known[name])
    return replace(config, **changes) if changes else config


def load_config_file(path: Optional[str]) -> Dict[str, Any]:
    """Read a YAML or JSON config file; with no path, try the default names.

    Raises:
        ConfigError: when an explicitly named file is missing or unreadable.
    """
    if not path:
        for candidate in Constants.CONFIG_FILES:
            if os.path.isfile(candidate):
                path = candidate
                break
        else:
            return {}
    elif not os.path.isfile(path):
        raise ConfigError(f"Config file not found: {path}")

    try:
        with open(path, "r", encoding="utf-8") as fh:
            if path.lower().endswith(".json"):
                data = json.load(fh)
            else:
                data = yaml.safe_load(fh)
    except (OSError, ValueError, yaml.YAMLError) as exc:
        raise ConfigError(f"Failed to load config {path}: {exc}") from exc

    if data is None:
        return {}
    if not isinstance(data, dict):
        raise ConfigError(f"Config file {path} must contain a mapping")
    logger.info("Loaded configuration from %s", path)
    # Settings may sit at the top level or under an "install" section.
    section = data.get("install", data)
    return section if isinstance(section, dict) else {}


def env_overrides(environ: Optional[Mapping[str, str]] = None) -> Dict[str, str]:
    """Collect DEPNEST_<FIELD> variables (e.g. DEPNEST_JOBS=4)."""
    environ = os.environ if environ is None else environ
    out = {}
    for f in fields(InstallConfig):
        key = f"{Constants.ENV_PREFIX}{f.name.upper()}"
        if key in environ:
            out[f.name] = environ[key]
    return out


def build_config(args: Any = None, environ: Optional[Mapping[str, str]] = None) -> InstallConfig:
    """Build the effective InstallConfig from file, environment and CLI args."""
    config = InstallConfig()
    config = _apply(config, load_config_file(getattr(args, "CONFIG", None)), "config file")
    config = _apply(config, env_overrides(environ), "environment")
    if args is not None:
        cli = {
            "registry_url": getattr(args, "REGISTRY", None),
            "project_dir": getattr(args, "PROJECT_DIR", None),
            "install_root": getattr(args, "INSTALL_ROOT", None),
            "manifest_path": getattr(args, "MANIFEST", None),
            "lockfile_path": getattr(args, "LOCKFILE", None),
            "jobs": getattr(args, "JOBS", None),
            "timeout": getattr(args, "TIMEOUT", None),
            "omit_dev": True if getattr(args, "OMIT_DEV", False) else None,
            "frozen_lockfile": True if getattr(args, "FROZEN_LOCKFILE", False) else None,
        }
        config = _apply(config, cli, "command line")
    return config.validate()
