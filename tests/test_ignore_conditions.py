"""
Tests for user ignore conditions.
"""

import pytest

from dep_updater.ecosystem import Ecosystem
from dep_updater.error_handling import get_error_handler
from dep_updater.ignore_conditions import MAJOR, MINOR, PATCH, IgnoreCondition, update_type


class TestUpdateType:
    """Test semver update classification."""

    def test_go_update_types(self):
        assert update_type(Ecosystem.GO_MODULES, "1.4.0", "2.0.0") == MAJOR
        assert update_type(Ecosystem.GO_MODULES, "1.4.0", "1.5.0") == MINOR
        assert update_type(Ecosystem.GO_MODULES, "1.4.0", "1.4.1") == PATCH
        assert update_type(Ecosystem.GO_MODULES, "1.4.0", "1.4.0") is None

    def test_maven_short_versions_are_padded(self):
        """Test that 4.12 -> 4.13 is a minor update."""
        assert update_type(Ecosystem.MAVEN, "4.12", "4.13") == MINOR
        assert update_type(Ecosystem.MAVEN, "23.3-jre", "24.0-jre") == MAJOR


class TestIgnoreCondition:
    """Test matching of ignore rules."""

    def test_wildcard_dependency_name(self):
        condition = IgnoreCondition(dependency_name="org.springframework:*")
        assert condition.applies_to("org.springframework:spring-web")
        assert not condition.applies_to("com.google.guava:guava")

    def test_bare_condition_ignores_everything(self):
        """Test that a condition without versions or types ignores all versions."""
        condition = IgnoreCondition(dependency_name="rsc.io/quote")
        assert condition.ignores(Ecosystem.GO_MODULES, "1.4.0", "1.5.2")

    def test_version_requirements(self):
        """Test requirement strings in the ecosystem's grammar."""
        condition = IgnoreCondition(dependency_name="rsc.io/quote", versions=[">= v1.5.0"])
        assert condition.ignores(Ecosystem.GO_MODULES, "1.4.0", "1.5.2")
        assert not condition.ignores(Ecosystem.GO_MODULES, "1.4.0", "1.4.1")

    def test_update_types(self):
        """Test semver-major ignores only major bumps."""
        condition = IgnoreCondition(dependency_name="junit:junit", update_types=[MAJOR])
        assert condition.ignores(Ecosystem.MAVEN, "4.12", "5.0")
        assert not condition.ignores(Ecosystem.MAVEN, "4.12", "4.13")

    def test_unknown_update_type(self):
        with pytest.raises(ValueError, match="Unknown update types"):
            IgnoreCondition(dependency_name="a", update_types=["version-update:semver-huge"])

    def test_unusable_requirement_is_warned_and_skipped(self):
        """Test that a malformed requirement does not ignore anything."""
        condition = IgnoreCondition(dependency_name="junit:junit", versions=["[1.0,"])
        assert not condition.ignores(Ecosystem.MAVEN, "4.12", "4.13")
        assert get_error_handler().get_error_stats()["CONFIGURATION_WARNING"] == 1
