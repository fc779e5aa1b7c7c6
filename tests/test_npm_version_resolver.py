"""Tests for NPM version matching and highest-match selection."""

import pytest

from common.errors import InvalidRequirement, UnsatisfiableRange
from registry.base import PackageMetadata, VersionRecord
from versioning.models import ResolutionMode
from versioning.parser import parse_range
from versioning.resolvers.npm import NpmVersionResolver, parse_version, precedence_key


def metadata(name, versions, tags=None):
    return PackageMetadata(
        name=name,
        versions=[VersionRecord.create(name, v, f"https://r/{name}-{v}.tgz", "sha512-x") for v in versions],
        dist_tags=tags or {},
    )


@pytest.fixture
def resolver():
    return NpmVersionResolver()


class TestParseRange:
    """Range expression classification."""

    def test_modes(self):
        assert parse_range("1.2.3").mode == ResolutionMode.EXACT
        assert parse_range("^1.2.3").mode == ResolutionMode.RANGE
        assert parse_range(">=1.0.0 <2.0.0").mode == ResolutionMode.RANGE
        assert parse_range("latest").mode == ResolutionMode.TAG
        assert parse_range("x").mode == ResolutionMode.RANGE

    def test_empty_range_means_any(self):
        assert parse_range("").raw == "*"
        assert parse_range("   ").raw == "*"

    def test_prerelease_only_when_named(self):
        assert parse_range("^1.0.0-beta.1").include_prerelease is True
        assert parse_range("^1.0.0").include_prerelease is False


class TestPick:
    """Highest-match selection."""

    def test_caret_picks_highest_in_major(self, resolver):
        meta = metadata("a", ["1.0.0", "1.4.2", "1.10.0", "2.0.0"])
        assert resolver.pick(parse_range("^1.0.0"), meta).version == "1.10.0"

    def test_tilde_and_x_ranges(self, resolver):
        meta = metadata("a", ["1.2.0", "1.2.9", "1.3.0"])
        assert resolver.pick(parse_range("~1.2.0"), meta).version == "1.2.9"
        assert resolver.pick(parse_range("1.x"), meta).version == "1.3.0"

    def test_exact_version(self, resolver):
        meta = metadata("a", ["1.0.0", "1.1.0"])
        assert resolver.pick(parse_range("1.0.0"), meta).version == "1.0.0"

    def test_prerelease_excluded_by_default(self, resolver):
        meta = metadata("a", ["1.0.0", "1.1.0-beta.1"])
        assert resolver.pick(parse_range("^1.0.0"), meta).version == "1.0.0"

    def test_prerelease_included_when_requested(self, resolver):
        meta = metadata("a", ["1.0.0-beta.1", "1.0.0-beta.2", "0.9.0"])
        assert resolver.pick(parse_range(">=1.0.0-beta.1"), meta).version == "1.0.0-beta.2"

    def test_unsatisfiable(self, resolver):
        meta = metadata("a", ["1.0.0"])
        with pytest.raises(UnsatisfiableRange):
            resolver.pick(parse_range("^2.0.0"), meta)

    def test_invalid_range(self, resolver):
        meta = metadata("a", ["1.0.0"])
        with pytest.raises(InvalidRequirement):
            resolver.pick(parse_range(">>>nope<<<"), meta)

    def test_dist_tag(self, resolver):
        meta = metadata("a", ["1.0.0", "2.0.0-rc.1"], tags={"latest": "1.0.0", "next": "2.0.0-rc.1"})
        assert resolver.pick(parse_range("next"), meta).version == "2.0.0-rc.1"
        with pytest.raises(UnsatisfiableRange):
            resolver.pick(parse_range("canary"), meta)

    def test_invalid_versions_are_ignored(self, resolver):
        meta = metadata("a", ["not-a-version", "1.0.0"])
        assert resolver.pick(parse_range("*"), meta).version == "1.0.0"


class TestPrecedence:
    """Total order used for tie-breaking."""

    def test_release_above_prerelease(self):
        assert precedence_key(parse_version("1.0.0")) > precedence_key(parse_version("1.0.0-rc.1"))

    def test_numeric_prerelease_identifiers(self):
        assert precedence_key(parse_version("1.0.0-beta.11")) > precedence_key(parse_version("1.0.0-beta.2"))
        assert precedence_key(parse_version("1.0.0-alpha.1")) < precedence_key(parse_version("1.0.0-alpha.beta"))

    def test_build_metadata_tie_break_is_deterministic(self, resolver):
        meta = metadata("a", ["1.0.0+build.2", "1.0.0+build.10", "0.9.0"])
        first = resolver.pick(parse_range("^1.0.0"), meta).version
        again = resolver.pick(parse_range("^1.0.0"), metadata("a", ["1.0.0+build.10", "0.9.0", "1.0.0+build.2"])).version
        assert first == again == "1.0.0+build.2"

    def test_satisfies_tag_is_false(self, resolver):
        assert resolver.satisfies(parse_range("latest"), "1.0.0") is False
