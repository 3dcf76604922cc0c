"""
Atomic updates of Maven properties shared by several dependencies.

When ``<version>${springframework.version}</version>`` appears on several
declarations, moving the property moves all of them. The update is only
possible if every dependency that uses the property publishes the target
version in its own repository; otherwise none of them is updated.
"""

from typing import Any, Dict, List, Optional, Sequence, Set, Tuple

from .credentials import Credential
from .dependency import Dependency, DependencyFile
from .ecosystem import Ecosystem
from .errors import UpdateNotPossible
from .parsers import MavenFileParser
from .requirements_updater import MavenRequirementsUpdater
from .schemes import versions_equal
from .structured_logging import get_checker_logger


class PropertyUpdater:
    """
    Decide and build the update of a property-defined version.

    Args:
        dependency: The dependency being checked (its requirements carry
            ``property_name`` and ``property_source``)
        dependency_files: The full file set, re-parsed to find sharing dependencies
        target_version: Version the property should move to
        registry_client: Opened ``MavenRepositoryClient``
        credentials: Explicit credentials for private sources
    """

    def __init__(
        self,
        dependency: Dependency,
        dependency_files: Sequence[DependencyFile],
        target_version: Optional[str],
        registry_client,
        credentials: Optional[Sequence[Credential]] = None,
    ):
        self.dependency = dependency
        self.dependency_files = list(dependency_files)
        self.target_version = target_version
        self.registry_client = registry_client
        self.credentials = list(credentials or [])
        self._cache: Dict[str, Any] = {}

    @property
    def _property_keys(self) -> Set[Tuple[str, Optional[str]]]:
        return {
            (req.property_name, req.property_source)
            for req in self.dependency.requirements
            if req.property_name
        }

    def dependencies_using_property(self) -> List[Dependency]:
        """Every dependency whose version is defined by the same property in the same file."""
        if "dependencies" not in self._cache:
            parser = MavenFileParser(self.dependency_files, self.credentials, registry_client=self.registry_client)
            keys = self._property_keys
            self._cache["dependencies"] = [
                dependency
                for dependency in parser.parse()
                if any((req.property_name, req.property_source) in keys for req in dependency.requirements)
            ]
        return self._cache["dependencies"]

    def _source_url(self, dependency_name: str) -> Optional[str]:
        for detail in self.registry_client.version_details(dependency_name):
            if versions_equal(Ecosystem.MAVEN, detail["version"], self.target_version):
                return detail["source_url"]
        return None

    def update_possible(self) -> bool:
        if self.target_version is None:
            return False
        # Defined in a parent POM outside the file set
        if any(source is None for _, source in self._property_keys):
            return False

        for dependency in self.dependencies_using_property():
            if self._source_url(dependency.name) is None:
                get_checker_logger().info(
                    "property_update_blocked",
                    dependency=dependency.name,
                    properties=self.dependency.property_names,
                    target_version=self.target_version,
                )
                return False
        return True

    def updated_dependencies(self) -> List[Dependency]:
        """
        Every sharing dependency moved to the target version.

        Raises:
            UpdateNotPossible: If any sharing dependency does not publish the target
        """
        if not self.update_possible():
            raise UpdateNotPossible(
                f"Not every dependency using {', '.join(self.dependency.property_names)} "
                f"is available at {self.target_version}"
            )

        updated = []
        for dependency in self.dependencies_using_property():
            requirements = MavenRequirementsUpdater(
                dependency.requirements,
                self.target_version,
                source_url=self._source_url(dependency.name),
            ).updated_requirements()
            updated.append(dependency.with_update(self.target_version, requirements))
        return updated
