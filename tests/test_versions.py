"""
Tests for the per-ecosystem version and requirement schemes.
"""

import pytest

from dep_updater.comparison import MAX_DISPLAY_SEGMENT, predecessor_segments
from dep_updater.ecosystem import Ecosystem
from dep_updater.errors import InvalidRequirement, InvalidVersion
from dep_updater.go_version import GoRequirement, GoVersion
from dep_updater.maven_version import MavenRequirement, MavenVersion
from dep_updater.schemes import compare_versions, get_requirement_scheme, get_version_scheme, versions_equal


class TestGoVersion:
    """Test Go module version parsing and ordering."""

    def test_v_prefix_is_optional(self):
        """Test that v1.4.0 and 1.4.0 are the same version."""
        assert GoVersion("v1.4.0") == GoVersion("1.4.0")
        assert str(GoVersion("v1.4.0")) == "1.4.0"
        assert GoVersion("1.4.0").go_string() == "v1.4.0"

    def test_ordering(self):
        """Test semantic version ordering including pre-releases."""
        assert GoVersion("v1.10.0") > GoVersion("v1.9.9")
        assert GoVersion("v1.5.0-rc.1") < GoVersion("v1.5.0")

    def test_malformed_version(self):
        """Test that malformed versions raise InvalidVersion."""
        for version in ["1.4", "latest", "v1.4.0.1", ""]:
            with pytest.raises(InvalidVersion):
                GoVersion(version)
            assert not GoVersion.correct(version)

    def test_pseudo_version(self):
        """Test pseudo-version detection and commit extraction."""
        version = GoVersion("v0.0.0-20180617042118-027cca12c2d6")
        assert version.is_pseudo_version
        assert version.pseudo_version_sha == "027cca12c2d6"
        assert not version.is_prerelease

    def test_incompatible_shares_path_major(self):
        """Test that +incompatible versions live under the unsuffixed path."""
        assert GoVersion("v2.3.1+incompatible").is_incompatible
        assert GoVersion("v2.3.1+incompatible").path_major == 1
        assert GoVersion("v0.9.0").path_major == 1
        assert GoVersion("v3.0.0").path_major == 3


class TestGoRequirement:
    """Test Go requirement semantics."""

    def test_bare_version_is_minimum_within_major(self):
        """Test that a go.mod version accepts later versions of the same major only."""
        requirement = GoRequirement("v1.4.0")
        assert requirement.satisfied_by("1.4.0")
        assert requirement.satisfied_by("1.9.2")
        assert not requirement.satisfied_by("1.3.9")
        assert not requirement.satisfied_by("2.0.0")

    def test_clauses(self):
        """Test comma-separated operator clauses."""
        requirement = GoRequirement(">= v1.2.0, < v1.5.0")
        assert requirement.satisfied_by("1.4.9")
        assert not requirement.satisfied_by("1.5.0")

    def test_invalid_requirement(self):
        """Test that garbage requirements raise InvalidRequirement."""
        with pytest.raises(InvalidRequirement):
            GoRequirement(">= banana")

    def test_upper_bound_display(self):
        """Test the display ceiling of a minimum requirement."""
        assert GoRequirement("v1.4.0").upper_bound_display() == f"v1.{MAX_DISPLAY_SEGMENT}.{MAX_DISPLAY_SEGMENT}"
        assert GoRequirement(">= v1.0.0, < v1.5.0").upper_bound_display() == f"v1.4.{MAX_DISPLAY_SEGMENT}"


class TestMavenVersion:
    """Test Maven version ordering."""

    def test_trailing_zeros_and_release_qualifiers_are_ignored(self):
        """Test that 1.0, 1.0.0, 1.0-ga and 1.0.RELEASE are equal."""
        assert MavenVersion("1.0") == MavenVersion("1.0.0")
        assert MavenVersion("1.0") == MavenVersion("1.0-ga")
        assert MavenVersion("1.0") == MavenVersion("1.0.RELEASE")

    def test_qualifier_order(self):
        """Test alpha < beta < milestone < rc < snapshot < release < sp."""
        ordered = ["1.0-alpha1", "1.0-beta", "1.0-M1", "1.0-rc1", "1.0-SNAPSHOT", "1.0", "1.0-sp1"]
        versions = [MavenVersion(v) for v in ordered]
        assert versions == sorted(versions)
        assert MavenVersion("1.0-cr1") == MavenVersion("1.0-rc1")

    def test_numbers_outrank_qualifiers(self):
        """Test that 1.0.1 is newer than 1.0-sp."""
        assert MavenVersion("1.0.1") > MavenVersion("1.0-sp")
        assert MavenVersion("23.6-jre") > MavenVersion("23.3-jre")

    def test_hyphen_opens_a_sub_list(self):
        """Test that 1-1 sorts before 1.1 and 1.0-rc1 equals 1-rc1."""
        assert MavenVersion("1-1") < MavenVersion("1.1")
        assert MavenVersion("1-1") != MavenVersion("1.1")
        assert MavenVersion("1.0-rc1") == MavenVersion("1-rc1")
        assert MavenVersion("1-1") > MavenVersion("1")
        assert MavenVersion("1.0-m") < MavenVersion("1.0-m1")

    def test_prerelease_detection(self):
        """Test known pre-release qualifiers."""
        assert MavenVersion("2.0.0-beta1").is_prerelease
        assert MavenVersion("5.0.0-SNAPSHOT").is_prerelease
        assert not MavenVersion("23.6-jre").is_prerelease
        assert not MavenVersion("4.3.12.RELEASE").is_prerelease

    def test_malformed_version(self):
        """Test that versions must start with a digit."""
        with pytest.raises(InvalidVersion):
            MavenVersion("${project.version}")


class TestMavenRequirement:
    """Test Maven requirement grammar."""

    def test_bracket_range(self):
        """Test half-open ranges."""
        requirement = MavenRequirement("[1.7,2.0)")
        assert requirement.satisfied_by("1.7")
        assert requirement.satisfied_by("1.9.9")
        assert not requirement.satisfied_by("2.0")

    def test_union_of_ranges(self):
        """Test a union of two ranges."""
        requirement = MavenRequirement("[1,2),[3,4)")
        assert requirement.satisfied_by("1.5")
        assert requirement.satisfied_by("3.1")
        assert not requirement.satisfied_by("2.5")

    def test_exact_and_open_lower_bound(self):
        """Test [1.0] and (,1.0] forms."""
        assert MavenRequirement("[1.0]").satisfied_by("1.0.0")
        assert not MavenRequirement("[1.0]").satisfied_by("1.0.1")
        assert MavenRequirement("(,1.0]").satisfied_by("0.9")

    def test_bare_version_matches_exactly(self):
        """Test that a soft version only matches itself."""
        requirement = MavenRequirement("4.12")
        assert requirement.satisfied_by("4.12")
        assert not requirement.satisfied_by("4.13")

    def test_malformed_range(self):
        """Test that an unterminated range raises InvalidRequirement."""
        with pytest.raises(InvalidRequirement):
            MavenRequirement("[1.0,2.0")

    def test_upper_bound_display(self):
        """Test the display sentinel for an exclusive upper bound."""
        assert MavenRequirement("[1.0,2.0)").upper_bound_display() == f"1.{MAX_DISPLAY_SEGMENT}"
        assert MavenRequirement("[1.0,2.1)").upper_bound_display() == f"2.0.{MAX_DISPLAY_SEGMENT}"
        assert MavenRequirement("[1.0,2.0]").upper_bound_display() is None


class TestSchemes:
    """Test the static scheme registry and comparison helpers."""

    def test_compare_versions(self):
        """Test -1/0/1 results and None for malformed input."""
        assert compare_versions(Ecosystem.GO_MODULES, "1.2.0", "1.10.0") == -1
        assert compare_versions("maven", "1.0", "1.0.0") == 0
        assert compare_versions(Ecosystem.GO_MODULES, "banana", "1.0.0") is None

    def test_versions_equal_falls_back_to_string_equality(self):
        """Test raw string equality when versions cannot be ordered."""
        assert versions_equal(Ecosystem.GO_MODULES, "master", "master")
        assert not versions_equal(Ecosystem.GO_MODULES, "master", "main")
        assert versions_equal(Ecosystem.MAVEN, "1.0", "1.0.0")

    def test_render(self):
        assert get_requirement_scheme(Ecosystem.GO_MODULES).render("1.5.2") == "v1.5.2"
        assert get_requirement_scheme(Ecosystem.MAVEN).render("1.0-RC1") == "1.0-RC1"

    def test_unknown_ecosystem(self):
        """Test that unknown ecosystems fail loudly."""
        with pytest.raises(ValueError, match="Unsupported ecosystem"):
            get_version_scheme("bundler")

    def test_predecessor_segments(self):
        """Test the largest-version-below computation."""
        assert predecessor_segments([2, 0, 0], extend=False) == [1, MAX_DISPLAY_SEGMENT, MAX_DISPLAY_SEGMENT]
        assert predecessor_segments([0, 0, 0], extend=False) is None
