"""
Static wiring of every supported ecosystem, and the pipeline entry points.

Adding an ecosystem means adding an ``Ecosystem`` member and an entry in
``ECOSYSTEMS``; nothing is discovered at runtime.
"""

from dataclasses import dataclass
from typing import Dict, List, Optional, Sequence, Type

from .credentials import Credential
from .dependency import Dependency, DependencyFile
from .ecosystem import Ecosystem
from .file_updater import FileUpdater, GoModFileUpdater, MavenFileUpdater
from .parsers import FileParser, GoModFileParser, MavenFileParser
from .requirements_updater import GoRequirementsUpdater, MavenRequirementsUpdater, RequirementsUpdater
from .update_checker import GoModulesUpdateChecker, MavenUpdateChecker, UpdateChecker


@dataclass(frozen=True)
class EcosystemComponents:
    """Implementation classes for one ecosystem."""

    file_parser: Type[FileParser]
    update_checker: Type[UpdateChecker]
    file_updater: Type[FileUpdater]
    requirements_updater: Type[RequirementsUpdater]


ECOSYSTEMS: Dict[Ecosystem, EcosystemComponents] = {
    Ecosystem.GO_MODULES: EcosystemComponents(
        file_parser=GoModFileParser,
        update_checker=GoModulesUpdateChecker,
        file_updater=GoModFileUpdater,
        requirements_updater=GoRequirementsUpdater,
    ),
    Ecosystem.MAVEN: EcosystemComponents(
        file_parser=MavenFileParser,
        update_checker=MavenUpdateChecker,
        file_updater=MavenFileUpdater,
        requirements_updater=MavenRequirementsUpdater,
    ),
}


def get_components(ecosystem) -> EcosystemComponents:
    """
    Look up the components for an ecosystem.

    Raises:
        ValueError: If the ecosystem is unknown
    """
    return ECOSYSTEMS[Ecosystem.from_value(ecosystem)]


def parse_dependency_files(
    ecosystem,
    dependency_files: Sequence[DependencyFile],
    credentials: Optional[Sequence[Credential]] = None,
    **kwargs,
) -> List[Dependency]:
    """Parse a file set with the ecosystem's file parser."""
    parser = get_components(ecosystem).file_parser(dependency_files, credentials, **kwargs)
    return parser.parse()


def get_update_checker(
    ecosystem,
    dependency: Dependency,
    dependency_files: Sequence[DependencyFile],
    credentials: Optional[Sequence[Credential]] = None,
    **kwargs,
) -> UpdateChecker:
    """Create an update checker; use it as a context manager so its registry client is closed."""
    return get_components(ecosystem).update_checker(dependency, dependency_files, credentials, **kwargs)


def update_dependency_files(
    ecosystem,
    dependency_files: Sequence[DependencyFile],
    updated_dependencies: Sequence[Dependency],
    credentials: Optional[Sequence[Credential]] = None,
    **kwargs,
) -> List[DependencyFile]:
    """Write updated dependencies back into the file set."""
    updater = get_components(ecosystem).file_updater(dependency_files, updated_dependencies, credentials, **kwargs)
    return updater.updated_dependency_files()
