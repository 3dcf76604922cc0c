"""
File parsers: raw dependency files to the normalized dependency model.

One parser per ecosystem. Each checks that its mandatory files are present,
reports structural problems as ``DependencyFileNotParseable`` naming the
exact file, and merges declarations from several files into one dependency
per name.
"""

import posixpath
import re
from abc import ABC, abstractmethod
from typing import ClassVar, List, Optional, Sequence, Tuple

from .config import get_config
from .credentials import Credential
from .dependency import (
    Dependency,
    DependencyFile,
    DependencySet,
    GitSource,
    PathSource,
    Requirement,
)
from .ecosystem import Ecosystem
from .error_handling import log_parsing_error
from .errors import (
    DependencyFileNotFound,
    DependencyFileNotParseable,
    InvalidVersion,
    PathDependenciesNotReachable,
)
from .go_mod import GoModFile, GoModReplace, GoModRequire, GoModSyntaxError, parse_go_mod
from .go_version import GoVersion
from .maven_version import MavenVersion
from .pom import PROPERTY_PATTERN, PomDeclaration, PomDocument, property_name_of
from .property_resolver import MavenPropertyResolver, is_pom
from .structured_logging import get_parser_logger, log_dependencies_parsed

MAJOR_SUFFIX_PATTERN = re.compile(r"/v(?P<major>\d+)$")
GOPKG_SUFFIX_PATTERN = re.compile(r"^gopkg\.in/.+\.v(?P<major>\d+)(?:-unstable)?$")
GIT_HOSTS = ("github.com", "gitlab.com", "bitbucket.org")


class FileParser(ABC):
    """
    Base class for ecosystem file parsers.

    Args:
        dependency_files: The materialized file set
        credentials: Explicit credentials for private sources

    Raises:
        DependencyFileNotFound: If a mandatory file is missing
    """

    ecosystem: ClassVar[Ecosystem]
    REQUIRED_FILES: ClassVar[Tuple[str, ...]] = ()

    def __init__(
        self,
        dependency_files: Sequence[DependencyFile],
        credentials: Optional[Sequence[Credential]] = None,
    ):
        self.dependency_files = list(dependency_files)
        self.credentials = list(credentials or [])
        self._check_required_files()

    def _check_required_files(self) -> None:
        for name in self.REQUIRED_FILES:
            if self.get_original_file(name) is None:
                raise DependencyFileNotFound(name)

    def get_original_file(self, name: str) -> Optional[DependencyFile]:
        for dependency_file in self.dependency_files:
            if dependency_file.name == name:
                return dependency_file
        return None

    def _check_file_size(self, dependency_file: DependencyFile) -> None:
        max_bytes = get_config().security.max_file_size_bytes
        if len(dependency_file.content.encode("utf-8")) > max_bytes:
            raise DependencyFileNotParseable(
                dependency_file.path, f"{dependency_file.path} is larger than {max_bytes} bytes"
            )

    def _log_parsed(self, dependencies: List[Dependency]) -> None:
        log_dependencies_parsed(
            self.ecosystem.value,
            [f.name for f in self.dependency_files],
            len(dependencies),
            sum(1 for d in dependencies if d.top_level),
        )

    @abstractmethod
    def parse(self) -> List[Dependency]:
        """Parse the file set into dependencies."""


def git_url_for_module(module_path: str) -> str:
    """Repository URL for a module path, used for pseudo-version sources."""
    parts = module_path.split("/")
    if parts[0] in GIT_HOSTS and len(parts) >= 3:
        return f"https://{parts[0]}/{parts[1]}/{parts[2]}"
    if parts[0] == "golang.org" and len(parts) >= 3 and parts[1] == "x":
        return f"https://github.com/golang/{parts[2]}"
    return f"https://{module_path}"


def check_major_version(module_path: str, version: GoVersion) -> Optional[str]:
    """
    Check that a version is allowed under a module path.

    Returns:
        Optional[str]: An explanation when the path's major suffix and the
        version's major disagree, otherwise None
    """
    gopkg = GOPKG_SUFFIX_PATTERN.match(module_path)
    suffix = MAJOR_SUFFIX_PATTERN.search(module_path)

    if gopkg:
        expected = int(gopkg.group("major"))
        if version.major != expected and not (expected == 0 and version.major == 1):
            return f"should be v{expected}, not v{version.major}"
        return None
    if suffix and int(suffix.group("major")) >= 2:
        expected = int(suffix.group("major"))
        if version.major != expected:
            return f"should be v{expected}, not v{version.major}"
        return None
    if version.major >= 2 and not version.is_incompatible:
        return f"should be v0 or v1, not v{version.major}"
    return None


class GoModFileParser(FileParser):
    """Parser for go.mod (go.sum is optional and only used for resolution)."""

    ecosystem = Ecosystem.GO_MODULES
    REQUIRED_FILES = ("go.mod",)

    def parse(self) -> List[Dependency]:
        go_mod = self.get_original_file("go.mod")
        gomod = self.parse_manifest(go_mod)

        dependency_set = DependencySet()
        unreachable: List[str] = []
        for require in gomod.requires:
            replace = gomod.replacement_for(require.path, require.version)
            if replace is not None and replace.is_local and not self._local_module_present(go_mod, replace):
                unreachable.append(require.path)
                continue
            dependency_set.add(self._build_dependency(go_mod, require, replace))

        if unreachable:
            raise PathDependenciesNotReachable(unreachable)

        dependencies = dependency_set.dependencies
        self._log_parsed(dependencies)
        return dependencies

    def parse_manifest(self, go_mod: DependencyFile) -> GoModFile:
        """
        Tokenize go.mod and validate every requirement's version.

        Raises:
            DependencyFileNotParseable: On syntax errors, invalid versions or
                a version whose major does not match the module path
        """
        self._check_file_size(go_mod)
        try:
            gomod = parse_go_mod(go_mod.content)
        except GoModSyntaxError as e:
            log_parsing_error(
                "Invalid go.mod syntax", "parsers", "parse_manifest", file_path=go_mod.path, exception=e
            )
            raise DependencyFileNotParseable(go_mod.path, f"{go_mod.path}:{e}") from e

        for require in gomod.requires:
            try:
                version = GoVersion(require.version)
            except InvalidVersion as e:
                raise DependencyFileNotParseable(
                    go_mod.path,
                    f"{go_mod.path}:{require.line_number}: require {require.path}: invalid version {require.version!r}",
                ) from e
            problem = check_major_version(require.path, version)
            if problem:
                raise DependencyFileNotParseable(
                    go_mod.path,
                    f"{go_mod.path}:{require.line_number}: require {require.path}: "
                    f"version \"{require.version}\" invalid: {problem}",
                )
        return gomod

    def _local_module_present(self, go_mod: DependencyFile, replace: GoModReplace) -> bool:
        target = posixpath.normpath(
            posixpath.join(posixpath.dirname(go_mod.path), replace.new_path, "go.mod")
        )
        return any(f.path == target for f in self.dependency_files)

    def _build_dependency(
        self, go_mod: DependencyFile, require: GoModRequire, replace: Optional[GoModReplace]
    ) -> Dependency:
        version = GoVersion(require.version)
        requirement: Optional[str] = require.version
        source = None

        if replace is not None and replace.is_local:
            source = PathSource(path=replace.new_path)
        elif version.is_pseudo_version:
            source = GitSource(url=git_url_for_module(require.path), ref=version.pseudo_version_sha)
            requirement = None

        return Dependency(
            name=require.path,
            package_manager=self.ecosystem,
            version=str(version),
            requirements=(
                Requirement(
                    requirement=requirement,
                    file=go_mod.name,
                    groups=frozenset(["indirect"]) if require.indirect else frozenset(),
                    source=source,
                ),
            ),
            top_level=not require.indirect,
        )


def version_from_requirement(requirement: Optional[str]) -> Optional[str]:
    """The version a Maven requirement pins, if it pins exactly one."""
    if not requirement:
        return None
    if requirement.startswith("[") and requirement.endswith("]") and "," not in requirement:
        requirement = requirement[1:-1].strip()
    if "," in requirement or requirement[:1] in "[(":
        return None
    return requirement if MavenVersion.correct(requirement) else None


class MavenFileParser(FileParser):
    """
    Parser for Maven builds.

    Every pom.xml in the file set is read, so dependencies declared by child
    modules are merged with the root's. Artifacts built by the file set
    itself are not reported.

    Args:
        registry_client: Optional opened ``MavenRepositoryClient`` for parent
            POMs that are not in the file set
    """

    ecosystem = Ecosystem.MAVEN
    REQUIRED_FILES = ("pom.xml",)

    def __init__(
        self,
        dependency_files: Sequence[DependencyFile],
        credentials: Optional[Sequence[Credential]] = None,
        registry_client=None,
    ):
        super().__init__(dependency_files, credentials)
        for pom in self.pom_files:
            self._check_file_size(pom)
        self.property_resolver = MavenPropertyResolver(self.dependency_files, registry_client)

    @property
    def pom_files(self) -> List[DependencyFile]:
        return [f for f in self.dependency_files if is_pom(f)]

    def parse(self) -> List[Dependency]:
        documents = [(pom, self.property_resolver.document_for(pom)) for pom in self.pom_files]
        internal = {document.identity for _, document in documents if document.identity}

        dependency_set = DependencySet()
        for pom, document in documents:
            for declaration in document.declarations():
                dependency = self._build_dependency(pom, declaration)
                if dependency is None or dependency.name in internal:
                    continue
                dependency_set.add(dependency)

        dependencies = dependency_set.dependencies
        self._log_parsed(dependencies)
        return dependencies

    def _build_dependency(self, pom: DependencyFile, declaration: PomDeclaration) -> Optional[Dependency]:
        group_id = self.property_resolver.evaluate(declaration.group_id, pom)
        artifact_id = self.property_resolver.evaluate(declaration.artifact_id, pom)
        if not group_id or not artifact_id:
            get_parser_logger().debug(
                "declaration_skipped", file=pom.name, reason="unresolved coordinates"
            )
            return None
        if declaration.version is None:
            return None

        raw_version = declaration.version
        property_name = property_name_of(raw_version)
        property_source = None
        requirement: Optional[str] = raw_version

        if property_name is not None:
            if PROPERTY_PATTERN.fullmatch(raw_version):
                details = self.property_resolver.property_details(property_name, pom)
                requirement = (details.value or None) if details else None
                property_source = details.file if details else None
                if requirement is not None and "${" in requirement:
                    requirement = self.property_resolver.evaluate(requirement, pom)
            else:
                # "${guava.version}-jre": not a single property, not a literal
                property_name = None
                requirement = None

        return Dependency(
            name=f"{group_id}:{artifact_id}",
            package_manager=self.ecosystem,
            version=version_from_requirement(requirement),
            requirements=(
                Requirement(
                    requirement=requirement,
                    file=pom.name,
                    groups=declaration.groups,
                    property_name=property_name,
                    property_source=property_source,
                ),
            ),
        )
