"""
Tests for writing updated dependencies back into go.mod and pom.xml.
"""

import pytest

from dep_updater.dependency import DependencyFile
from dep_updater.errors import ContentUnchangedError
from dep_updater.file_updater import GoModFileUpdater, MavenFileUpdater, apply_edits
from dep_updater.parsers import GoModFileParser, MavenFileParser
from dep_updater.requirements_updater import GoRequirementsUpdater, MavenRequirementsUpdater

from conftest import StubResolver


def updated(dependencies, name, version, updater_class):
    dependency = {dep.name: dep for dep in dependencies}[name]
    requirements = updater_class(dependency.requirements, version).updated_requirements()
    return dependency.with_update(version, requirements)


class TestApplyEdits:
    """Test span replacement."""

    def test_edits_apply_from_the_end(self):
        assert apply_edits("a1b2c", [(1, 2, "10"), (3, 4, "20")]) == "a10b20c"

    def test_identical_edits_apply_once(self):
        assert apply_edits("x=1", [(2, 3, "2"), (2, 3, "2")]) == "x=2"


class TestGoModFileUpdater:
    """Test go.mod rewrites."""

    def test_only_the_version_token_changes(self, go_files, go_mod_content):
        """Test that every other byte of go.mod is preserved."""
        dependency = updated(GoModFileParser(go_files).parse(), "rsc.io/quote", "1.5.2", GoRequirementsUpdater)
        files = GoModFileUpdater(go_files, [dependency]).updated_dependency_files()

        assert files[0].content == go_mod_content.replace("rsc.io/quote v1.4.0", "rsc.io/quote v1.5.2")
        assert files[0].name == "go.mod"
        assert files[1] is go_files[1]

    def test_other_directives_are_untouched(self):
        """Test that replace lines and other modules at the same version are left alone."""
        content = (
            "module m\n\n"
            "require (\n"
            "\trsc.io/quote v1.4.0\n"
            "\texample.com/other v1.4.0\n"
            ")\n\n"
            "replace rsc.io/quote v1.4.0 => example.com/fork/quote v1.4.0\n"
        )
        files = [DependencyFile(name="go.mod", content=content)]
        dependency = updated(GoModFileParser(files).parse(), "rsc.io/quote", "1.5.0", GoRequirementsUpdater)
        new_content = GoModFileUpdater(files, [dependency]).updated_dependency_files()[0].content

        assert "\trsc.io/quote v1.5.0\n" in new_content
        assert "\texample.com/other v1.4.0\n" in new_content
        assert "replace rsc.io/quote v1.4.0 => example.com/fork/quote v1.4.0\n" in new_content

    def test_unchanged_dependencies_return_the_same_files(self, go_files):
        """Test that nothing is rewritten when no version moved."""
        dependencies = GoModFileParser(go_files).parse()
        files = GoModFileUpdater(go_files, dependencies).updated_dependency_files()
        assert all(new is old for new, old in zip(files, go_files))

    def test_missing_declaration_raises(self, go_files):
        """Test that a previous version absent from go.mod is a hard error."""
        dependency = updated(GoModFileParser(go_files).parse(), "rsc.io/quote", "1.5.2", GoRequirementsUpdater)
        stale = dependency.__class__(
            name=dependency.name,
            package_manager=dependency.package_manager,
            requirements=dependency.requirements,
            version="1.5.2",
            previous_version="1.3.0",
            previous_requirements=dependency.previous_requirements,
        )
        with pytest.raises(ContentUnchangedError, match="/go.mod"):
            GoModFileUpdater(go_files, [stale]).updated_dependency_files()

    def test_go_sum_is_refreshed_through_the_resolver(self, go_files):
        """Test the optional go.sum refresh after go.mod changed."""
        dependency = updated(GoModFileParser(go_files).parse(), "rsc.io/quote", "1.5.2", GoRequirementsUpdater)
        resolver = StubResolver(["1.5.2"], lockfile_content="rsc.io/quote v1.5.2 h1:def=\n")
        files = GoModFileUpdater(go_files, [dependency], resolver=resolver).updated_dependency_files()

        assert files[1].name == "go.sum"
        assert files[1].content == "rsc.io/quote v1.5.2 h1:def=\n"
        assert resolver.calls == [("rsc.io/quote", "1.5.2")]


class TestMavenFileUpdater:
    """Test pom.xml rewrites."""

    def test_literal_version(self, simple_pom):
        """Test that only the changed version element is rewritten."""
        files = [DependencyFile(name="pom.xml", content=simple_pom)]
        guava = updated(MavenFileParser(files).parse(), "com.google.guava:guava", "24.0-jre", MavenRequirementsUpdater)
        new_content = MavenFileUpdater(files, [guava]).updated_dependency_files()[0].content

        assert new_content == simple_pom.replace("<version>23.3-jre</version>", "<version>24.0-jre</version>")

    def test_property_is_updated_where_it_is_defined(self, maven_files, property_pom):
        """Test that a shared property changes once, in the parent POM only."""
        dependencies = MavenFileParser(maven_files).parse()
        spring = [
            updated(dependencies, name, "5.0.0.RELEASE", MavenRequirementsUpdater)
            for name in (
                "org.springframework:spring-beans",
                "org.springframework:spring-context",
                "org.springframework:spring-web",
            )
        ]
        files = MavenFileUpdater(maven_files, spring).updated_dependency_files()

        assert files[0].content == property_pom.replace(
            "<springframework.version>4.3.12.RELEASE</springframework.version>",
            "<springframework.version>5.0.0.RELEASE</springframework.version>",
        )
        assert files[0].content.count("${springframework.version}") == 2
        assert files[1] is maven_files[1]

    def test_declaration_in_child_module(self, maven_files, child_pom):
        """Test a literal version declared in a child POM."""
        content = child_pom.replace(
            "</dependencies>",
            "    <dependency>\n            <groupId>junit</groupId>\n            <artifactId>junit</artifactId>\n"
            "            <version>4.12</version>\n        </dependency>\n    </dependencies>",
        )
        files = [maven_files[0], DependencyFile(name="api/pom.xml", content=content)]
        junit = updated(MavenFileParser(files).parse(), "junit:junit", "4.13.2", MavenRequirementsUpdater)
        new_files = MavenFileUpdater(files, [junit]).updated_dependency_files()

        assert new_files[0] is files[0]
        assert "<version>4.13.2</version>" in new_files[1].content
        assert new_files[1].content.replace("4.13.2", "4.12") == content

    def test_missing_declaration_raises(self, simple_pom):
        """Test that a previous requirement absent from the POM is a hard error."""
        files = [DependencyFile(name="pom.xml", content=simple_pom)]
        guava = updated(MavenFileParser(files).parse(), "com.google.guava:guava", "24.0-jre", MavenRequirementsUpdater)
        other = DependencyFile(name="pom.xml", content=simple_pom.replace("23.3-jre", "22.0"))
        with pytest.raises(ContentUnchangedError):
            MavenFileUpdater([other], [guava]).updated_dependency_files()


class TestUpdateToCurrentVersion:
    """Test that moving every dependency to the version it already has changes nothing."""

    def test_go_mod(self, go_files):
        dependencies = GoModFileParser(go_files).parse()
        same = [updated(dependencies, d.name, d.version, GoRequirementsUpdater) for d in dependencies]

        assert all(d.previous_requirements is not None for d in same)
        files = GoModFileUpdater(go_files, same).updated_dependency_files()
        assert all(new is old for new, old in zip(files, go_files))

    @pytest.mark.parametrize("pom_files", ["simple", "multi_module"])
    def test_pom(self, pom_files, simple_pom, maven_files):
        """Test literal, property and child-module declarations alike."""
        files = [DependencyFile(name="pom.xml", content=simple_pom)] if pom_files == "simple" else maven_files
        dependencies = MavenFileParser(files).parse()
        same = [
            dependency.with_update(
                dependency.version,
                MavenRequirementsUpdater(
                    dependency.requirements, dependency.version, source_url="https://repo.maven.apache.org/maven2"
                ).updated_requirements(),
            )
            for dependency in dependencies
            if dependency.version is not None
        ]

        assert same
        new_files = MavenFileUpdater(files, same).updated_dependency_files()
        assert all(new is old for new, old in zip(new_files, files))
