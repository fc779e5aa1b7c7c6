"""Version resolvers."""

from .npm import NpmVersionResolver, parse_version, precedence_key

__all__ = [
    "NpmVersionResolver",
    "parse_version",
    "precedence_key",
]
