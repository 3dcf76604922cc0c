"""
Tests for requirement string updates.
"""

from dep_updater.dependency import GitSource, PathSource, RegistrySource, Requirement
from dep_updater.requirements_updater import GoRequirementsUpdater, MavenRequirementsUpdater

from conftest import MAVEN_CENTRAL


class TestGoRequirementsUpdater:
    """Test go.mod requirement updates."""

    def test_version_keeps_v_prefix(self):
        """Test that the updated requirement is written in go.mod form."""
        requirement = Requirement(requirement="v1.4.0", file="go.mod")
        updated = GoRequirementsUpdater([requirement], "1.5.2").updated_requirements()
        assert updated[0].requirement == "v1.5.2"
        assert updated[0].file == "go.mod"

    def test_no_target_returns_requirements_unchanged(self):
        """Test that a None target is a no-op."""
        requirements = [Requirement(requirement="v1.4.0", file="go.mod")]
        assert GoRequirementsUpdater(requirements, None).updated_requirements() == requirements

    def test_git_and_path_sources_are_left_alone(self):
        """Test that non-registry sources are never rewritten."""
        git = Requirement(requirement="v1.0.0", file="go.mod", source=GitSource(url="https://github.com/a/b"))
        path = Requirement(requirement="v1.0.0", file="lib/go.mod", source=PathSource(path="./lib"))
        updated = GoRequirementsUpdater([git, path], "1.1.0").updated_requirements()
        assert updated == [git, path]

    def test_missing_requirement_is_left_alone(self):
        """Test that requirements without a version string pass through."""
        requirement = Requirement(requirement=None, file="go.mod")
        assert GoRequirementsUpdater([requirement], "1.1.0").updated_requirements() == [requirement]


class TestMavenRequirementsUpdater:
    """Test pom.xml requirement updates."""

    def test_soft_version(self):
        """Test a plain version and the registry provenance of the new one."""
        requirement = Requirement(requirement="23.3-jre", file="pom.xml", groups=["compile"])
        updated = MavenRequirementsUpdater([requirement], "23.6-jre", source_url=MAVEN_CENTRAL).updated_requirements()[0]
        assert updated.requirement == "23.6-jre"
        assert updated.groups == frozenset(["compile"])
        assert updated.source == RegistrySource(url=MAVEN_CENTRAL)

    def test_exact_version_brackets_are_preserved(self):
        """Test that only the version token changes."""
        requirement = Requirement(requirement="[1.2.3]", file="pom.xml")
        assert MavenRequirementsUpdater([requirement], "1.3.0").updated_requirements()[0].requirement == "[1.3.0]"

    def test_ranges_are_preserved(self):
        """Test that a range requirement is not collapsed to one version."""
        requirement = Requirement(requirement="[1.7,2.0)", file="pom.xml")
        assert MavenRequirementsUpdater([requirement], "1.7.30").updated_requirements() == [requirement]

    def test_property_metadata_is_kept(self):
        """Test that property name and source survive the update."""
        requirement = Requirement(
            requirement="4.3.12.RELEASE",
            file="api/pom.xml",
            property_name="springframework.version",
            property_source="pom.xml",
        )
        updated = MavenRequirementsUpdater([requirement], "5.0.0.RELEASE").updated_requirements()[0]
        assert updated.requirement == "5.0.0.RELEASE"
        assert updated.property_name == "springframework.version"
        assert updated.property_source == "pom.xml"

    def test_every_requirement_is_updated(self):
        """Test one update per declaring file."""
        requirements = [
            Requirement(requirement="4.12", file="pom.xml"),
            Requirement(requirement="4.12", file="core/pom.xml"),
        ]
        updated = MavenRequirementsUpdater(requirements, "4.13.2").updated_requirements()
        assert [r.requirement for r in updated] == ["4.13.2", "4.13.2"]
        assert [r.file for r in updated] == ["pom.xml", "core/pom.xml"]
