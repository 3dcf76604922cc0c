"""
File updaters: write updated dependencies back into the dependency files.

Only the version text of the declarations that changed is replaced; every
other byte of every file is preserved, and files without a changed
declaration are returned as the very same objects.
"""

from abc import ABC, abstractmethod
from typing import Dict, List, Optional, Sequence, Tuple
from xml.sax.saxutils import escape

from .credentials import Credential
from .dependency import Dependency, DependencyFile, Requirement
from .ecosystem import Ecosystem
from .errors import ContentUnchangedError, DependencyFileNotParseable
from .go_mod import GoModSyntaxError, parse_go_mod
from .go_version import GoVersion
from .pom import PomDocument, node_text_edit
from .property_resolver import MavenPropertyResolver, is_pom
from .resolvers import GoModulesResolver
from .structured_logging import get_file_updater_logger, log_files_updated

# (start offset, end offset, replacement text)
Edit = Tuple[int, int, str]


def apply_edits(content: str, edits: Sequence[Edit]) -> str:
    """Apply non-overlapping span replacements, last span first so offsets stay valid."""
    for start, end, text in sorted(set(edits), key=lambda edit: edit[0], reverse=True):
        content = content[:start] + text + content[end:]
    return content


class FileUpdater(ABC):
    """
    Base class for ecosystem file updaters.

    Args:
        dependency_files: The file set the dependencies were parsed from
        dependencies: Updated dependencies (with ``previous_*`` filled in)
        credentials: Explicit credentials for private sources
    """

    ecosystem: Ecosystem

    def __init__(
        self,
        dependency_files: Sequence[DependencyFile],
        dependencies: Sequence[Dependency],
        credentials: Optional[Sequence[Credential]] = None,
    ):
        self.dependency_files = list(dependency_files)
        self.dependencies = list(dependencies)
        self.credentials = list(credentials or [])

    @staticmethod
    def changed_requirement(dependency: Dependency, file_name: str) -> Optional[Tuple[Requirement, Requirement]]:
        """The (previous, new) requirement pair for ``file_name`` if it changed."""
        new = dependency.requirement_for_file(file_name)
        if new is None or dependency.previous_requirements is None:
            return None
        previous = next((r for r in dependency.previous_requirements if r.file == file_name), None)
        if previous is None or previous.requirement == new.requirement:
            return None
        return previous, new

    def updated_dependency_files(self) -> List[DependencyFile]:
        """
        Every input file, in input order, with the changed ones replaced.

        Raises:
            ContentUnchangedError: If a file with a changed declaration came out unchanged
        """
        updated_files = []
        changed_paths = []
        for dependency_file in self.dependency_files:
            if dependency_file.support_file or not self.expects_change(dependency_file):
                updated_files.append(dependency_file)
                continue

            new_content = self.updated_file_content(dependency_file)
            if new_content == dependency_file.content:
                raise ContentUnchangedError(dependency_file.path)
            updated_files.append(dependency_file.with_content(new_content))
            changed_paths.append(dependency_file.path)

        updated_files = self.post_process(updated_files, changed_paths)
        log_files_updated([d.name for d in self.dependencies], changed_paths)
        return updated_files

    def post_process(self, files: List[DependencyFile], changed_paths: List[str]) -> List[DependencyFile]:
        """Hook for follow-up changes such as refreshing a lockfile."""
        return files

    @abstractmethod
    def expects_change(self, dependency_file: DependencyFile) -> bool:
        """True if any dependency changed a declaration in this file."""

    @abstractmethod
    def updated_file_content(self, dependency_file: DependencyFile) -> str:
        """New content for a file that ``expects_change``."""


class GoModFileUpdater(FileUpdater):
    """
    Rewrites require lines in go.mod.

    A require line holds the selected version, so edits follow the version
    change. The line is located through the go.mod tokenizer and only its
    version token is replaced. If a resolver is given and the file set has a
    go.sum, it is refreshed by the native tool after go.mod changed.
    """

    ecosystem = Ecosystem.GO_MODULES

    def __init__(self, dependency_files, dependencies, credentials=None, resolver: Optional[GoModulesResolver] = None):
        super().__init__(dependency_files, dependencies, credentials)
        self.resolver = resolver

    def _version_changed(self, dependency: Dependency) -> bool:
        if dependency.previous_version is None or dependency.version is None:
            return False
        return GoVersion(dependency.previous_version) != GoVersion(dependency.version)

    def expects_change(self, dependency_file: DependencyFile) -> bool:
        if dependency_file.name != "go.mod":
            return False
        return any(self._version_changed(d) for d in self.dependencies)

    def updated_file_content(self, dependency_file: DependencyFile) -> str:
        try:
            gomod = parse_go_mod(dependency_file.content)
        except GoModSyntaxError as e:
            raise DependencyFileNotParseable(dependency_file.path, f"{dependency_file.path}:{e}") from e

        edits: List[Edit] = []
        for dependency in self.dependencies:
            if not self._version_changed(dependency):
                continue
            previous = GoVersion(dependency.previous_version)
            requires = [
                require
                for require in gomod.find_requires(dependency.name)
                if GoVersion.correct(require.version) and GoVersion(require.version) == previous
            ]
            if not requires:
                raise ContentUnchangedError(dependency_file.path)
            new_version = GoVersion(dependency.version).go_string()
            for require in requires:
                edits.append((require.version_token.start, require.version_token.end, new_version))
        return apply_edits(dependency_file.content, edits)

    def post_process(self, files, changed_paths):
        if self.resolver is None or not changed_paths:
            return files
        if not any(f.name == "go.sum" for f in files):
            return files

        for dependency in self.dependencies:
            if not self._version_changed(dependency):
                continue
            result = self.resolver.resolve(
                files, dependency.name, dependency.previous_version, dependency.version, self.credentials
            )
            if result.lockfile_content is None:
                continue
            files = [
                f.with_content(result.lockfile_content)
                if f.name == "go.sum" and f.content != result.lockfile_content
                else f
                for f in files
            ]
        return files


class MavenFileUpdater(FileUpdater):
    """
    Rewrites version elements in pom.xml files.

    Literal versions are replaced on every declaration of the dependency
    whose version text equals the previous requirement. Property-defined
    versions are replaced once, on the property element of the POM that
    defines the property.
    """

    ecosystem = Ecosystem.MAVEN

    def __init__(self, dependency_files, dependencies, credentials=None):
        super().__init__(dependency_files, dependencies, credentials)
        self.property_resolver = MavenPropertyResolver(self.dependency_files)

    def _changes(self) -> List[Tuple[Requirement, Requirement, Dependency]]:
        changes = []
        for dependency in self.dependencies:
            for requirement in dependency.requirements:
                pair = self.changed_requirement(dependency, requirement.file)
                if pair is not None:
                    changes.append((pair[0], pair[1], dependency))
        return changes

    def _edits_for(self, dependency_file: DependencyFile) -> Dict[str, List[Tuple[Requirement, Requirement, Dependency]]]:
        property_changes = []
        declaration_changes = []
        for previous, new, dependency in self._changes():
            if new.property_name:
                if new.property_source == dependency_file.name:
                    property_changes.append((previous, new, dependency))
            elif new.file == dependency_file.name:
                declaration_changes.append((previous, new, dependency))
        return {"property": property_changes, "declaration": declaration_changes}

    def expects_change(self, dependency_file: DependencyFile) -> bool:
        if not is_pom(dependency_file):
            return False
        changes = self._edits_for(dependency_file)
        return bool(changes["property"] or changes["declaration"])

    def _declared_name(self, document: PomDocument, declaration) -> Optional[str]:
        group_id = self.property_resolver.evaluate(declaration.group_id, document.file)
        artifact_id = self.property_resolver.evaluate(declaration.artifact_id, document.file)
        if not group_id or not artifact_id:
            return None
        return f"{group_id}:{artifact_id}"

    def updated_file_content(self, dependency_file: DependencyFile) -> str:
        document = self.property_resolver.document_for(dependency_file)
        changes = self._edits_for(dependency_file)
        edits: List[Edit] = []

        for previous, new, dependency in changes["property"]:
            node = document.property_node(new.property_name)
            if node is None:
                raise ContentUnchangedError(dependency_file.path)
            # Dependencies sharing a property yield identical edits, applied once
            edits.append(node_text_edit(dependency_file.content, node, escape(new.requirement)))

        for previous, new, dependency in changes["declaration"]:
            located = False
            for declaration in document.declarations():
                if declaration.version != previous.requirement or declaration.version_node is None:
                    continue
                if self._declared_name(document, declaration) != dependency.name:
                    continue
                edits.append(node_text_edit(dependency_file.content, declaration.version_node, escape(new.requirement)))
                located = True
            if not located:
                get_file_updater_logger().error(
                    "declaration_not_found",
                    file=dependency_file.path,
                    dependency=dependency.name,
                    requirement=previous.requirement,
                )
                raise ContentUnchangedError(dependency_file.path)

        return apply_edits(dependency_file.content, edits)
