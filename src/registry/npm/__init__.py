"""NPM registry support."""

from .client import NpmRegistryClient
from .packument import parse_packument

__all__ = ["NpmRegistryClient", "parse_packument"]
