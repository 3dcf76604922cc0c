"""
Update checker: decides whether, and to what, a dependency can be updated.

The check is a staged pipeline where each stage only runs if the previous
one produced a value:

1. ``latest_version`` - newest registry version passing the filters
2. ``latest_resolvable_version`` - newest candidate the native resolver accepts
3. ``latest_resolvable_version_with_no_unlock`` - same, within the current requirements
4. ``updated_requirements`` - requirement strings rewritten for the chosen version

Every stage result is memoized on the checker instance; a new checker is
created for every run, so nothing is cached across runs.
"""

from abc import ABC, abstractmethod
from dataclasses import dataclass
from enum import Enum
from functools import cmp_to_key
from typing import Any, Callable, ClassVar, Dict, List, Optional, Sequence, Type

from .cache_manager import RegistryCacheManager
from .config import UpdaterConfig, get_config
from .conflicting_dependency_resolver import (
    ConflictingDependency,
    ConflictingDependencyResolver,
    GoModulesConflictingDependencyResolver,
)
from .credentials import Credential
from .dependency import Dependency, DependencyFile
from .ecosystem import Ecosystem
from .error_handling import ErrorCategory, get_error_handler
from .errors import (
    DependencyFileNotResolvable,
    InvalidRequirement,
    InvalidVersion,
    PrivateSourceNotReachable,
    ResolutionFailed,
    SourceUnreachable,
    UpdateNotPossible,
)
from .go_mod import parse_go_mod
from .go_version import GoRequirement, GoVersion
from .ignore_conditions import IgnoreCondition
from .maven_version import MavenRequirement, MavenVersion
from .pom import PomDocument
from .property_resolver import is_pom
from .property_updater import PropertyUpdater
from .registry_clients import BaseRegistryClient, GoProxyClient, MavenRepositoryClient
from .requirements_updater import GoRequirementsUpdater, MavenRequirementsUpdater, RequirementsUpdater
from .resolvers import GoModulesResolver, MavenResolver, Resolver
from .schemes import get_requirement_scheme, get_version_scheme, versions_equal
from .structured_logging import get_checker_logger, log_resolution_attempt, log_update_check, run_context

# Maven artifacts that once used dates as versions (e.g. 20030203.000550)
DATE_LIKE_MAJOR = 1900
DATE_LIKE_CURRENT_MAJOR = 100


class RequirementsToUnlock(Enum):
    """How far an update may move away from the declared requirements."""

    NONE = "none"  # Stay within every current requirement
    OWN = "own"  # Rewrite this dependency's requirements
    ALL = "all"  # Also allow other dependencies' requirements to move


class UpdateStatus(Enum):
    """Caller-visible outcome of an update check."""

    UP_TO_DATE = "up_to_date"
    UPDATE_AVAILABLE = "update_available"
    UPDATE_NOT_POSSIBLE = "update_not_possible"
    BLOCKED_UNREACHABLE = "blocked_unreachable"


@dataclass(frozen=True)
class UpdateCheckResult:
    """Outcome of ``UpdateChecker.check`` for one dependency."""

    dependency_name: str
    status: UpdateStatus
    current_version: Optional[str]
    latest_version: Optional[str] = None
    latest_resolvable_version: Optional[str] = None
    updated_dependencies: Optional[List[Dependency]] = None
    conflicts: Optional[List[ConflictingDependency]] = None
    error: Optional[str] = None
    inconclusive: bool = False

    def __post_init__(self):
        if self.updated_dependencies is None:
            object.__setattr__(self, "updated_dependencies", [])
        if self.conflicts is None:
            object.__setattr__(self, "conflicts", [])

    @property
    def update_available(self) -> bool:
        return self.status == UpdateStatus.UPDATE_AVAILABLE

    def to_dict(self) -> Dict[str, Any]:
        return {
            "dependency_name": self.dependency_name,
            "status": self.status.value,
            "current_version": self.current_version,
            "latest_version": self.latest_version,
            "latest_resolvable_version": self.latest_resolvable_version,
            "updated_dependencies": [d.to_dict() for d in self.updated_dependencies],
            "conflicts": [c.to_dict() for c in self.conflicts],
            "error": self.error,
            "inconclusive": self.inconclusive,
        }


class UpdateChecker(ABC):
    """
    Base class for ecosystem update checkers.

    The registry client is opened lazily on first use and closed by
    ``close()``; use the checker as a context manager to get that for free.
    Clients, resolvers and conflict detectors passed in are used as-is
    (an injected registry client must already be opened).

    Args:
        dependency: The dependency to check, as produced by the file parser
        dependency_files: The file set the dependency was parsed from
        credentials: Explicit credentials for private sources
        ignored_versions: Requirement strings whose matching versions are skipped
        ignore_conditions: User ignore rules, matched by dependency name
        registry_client: Version source (defaults to the ecosystem's registry)
        resolver: Native resolver (defaults to the ecosystem's)
        conflicting_dependency_resolver: Conflict detector, if the ecosystem has one
        target_version: Check this exact version instead of the newest one
        registry_cache: Cache shared by the checkers of one run (a fresh one
            per default registry client when omitted)
    """

    ecosystem: ClassVar[Ecosystem]
    requirements_updater_class: ClassVar[Type[RequirementsUpdater]]

    def __init__(
        self,
        dependency: Dependency,
        dependency_files: Sequence[DependencyFile],
        credentials: Optional[Sequence[Credential]] = None,
        ignored_versions: Optional[Sequence[str]] = None,
        ignore_conditions: Optional[Sequence[IgnoreCondition]] = None,
        registry_client: Optional[BaseRegistryClient] = None,
        resolver: Optional[Resolver] = None,
        conflicting_dependency_resolver: Optional[ConflictingDependencyResolver] = None,
        target_version: Optional[str] = None,
        config: Optional[UpdaterConfig] = None,
        registry_cache: Optional[RegistryCacheManager] = None,
    ):
        self.dependency = dependency
        self.dependency_files = list(dependency_files)
        self.credentials = list(credentials or [])
        self.ignored_versions = list(ignored_versions or [])
        self.ignore_conditions = [c for c in (ignore_conditions or []) if c.applies_to(dependency.name)]
        self.config = config or get_config()
        self.registry_cache = registry_cache
        self.registry_client = registry_client
        self._owns_registry_client = registry_client is None
        self.resolver = resolver or self.build_resolver()
        self.conflicting_dependency_resolver = (
            conflicting_dependency_resolver
            if conflicting_dependency_resolver is not None
            else self.build_conflicting_dependency_resolver()
        )
        self.target_version = target_version
        self._cache: Dict[str, Any] = {}

    def __enter__(self):
        return self

    def __exit__(self, exc_type, exc_val, exc_tb):
        self.close()

    def close(self) -> None:
        if self._owns_registry_client and self.registry_client is not None:
            self.registry_client.__exit__(None, None, None)
            self.registry_client = None

    def _cached(self, key: str, compute: Callable[[], Any]) -> Any:
        if key not in self._cache:
            self._cache[key] = compute()
        return self._cache[key]

    def _registry(self) -> BaseRegistryClient:
        if self.registry_client is None:
            self.registry_client = self.build_registry_client()
            self.registry_client.__enter__()
            self._owns_registry_client = True
        return self.registry_client

    @abstractmethod
    def build_registry_client(self) -> BaseRegistryClient:
        """Create the default (unopened) registry client."""

    @abstractmethod
    def build_resolver(self) -> Resolver:
        """Create the default native resolver."""

    def build_conflicting_dependency_resolver(self) -> Optional[ConflictingDependencyResolver]:
        return None

    def ecosystem_filter(self, version: str) -> bool:
        """Ecosystem-specific version filter; True keeps the version."""
        return True

    def source_url_for(self, version: str) -> Optional[str]:
        """Registry URL a version was found in, for requirement provenance."""
        return None

    def available_versions(self) -> List[str]:
        return self._cached("available_versions", lambda: self._registry().list_versions(self.dependency.name))

    # Stage 1

    def _is_ignored(self, version: str) -> bool:
        requirement_scheme = get_requirement_scheme(self.ecosystem)
        for requirement in self.ignored_versions:
            try:
                if requirement_scheme.satisfied_by(requirement, version):
                    return True
            except (InvalidRequirement, InvalidVersion) as e:
                get_error_handler().warning(
                    ErrorCategory.CONFIGURATION,
                    f"Ignoring unusable ignored version {requirement!r} for {self.dependency.name}",
                    "update_checker",
                    "_is_ignored",
                    exception=e,
                )
        return any(
            condition.ignores(self.ecosystem, self.dependency.version, version)
            for condition in self.ignore_conditions
        )

    def filtered_versions(self) -> List[str]:
        """Registry versions that pass every filter, oldest first."""

        def compute() -> List[str]:
            scheme = get_version_scheme(self.ecosystem)
            current = self.dependency.version
            allow_prereleases = current is not None and scheme.is_prerelease(current)

            versions = []
            for version in self.available_versions():
                if not scheme.is_valid(version):
                    continue
                if scheme.is_prerelease(version) and not allow_prereleases:
                    continue
                if self._is_ignored(version) or not self.ecosystem_filter(version):
                    continue
                versions.append(version)
            return sorted(versions, key=cmp_to_key(scheme.compare))

        return self._cached("filtered_versions", compute)

    def latest_version(self) -> Optional[str]:
        versions = self.filtered_versions()
        return versions[-1] if versions else None

    # Stages 2 and 3

    def _is_newer(self, version: str) -> bool:
        current = self.dependency.version
        if current is None:
            return False
        return get_version_scheme(self.ecosystem).compare(version, current) > 0

    def _satisfies_requirements(self, version: str) -> bool:
        requirement_scheme = get_requirement_scheme(self.ecosystem)
        for requirement in self.dependency.requirements:
            if requirement.requirement is None:
                return False
            try:
                if not requirement_scheme.satisfied_by(requirement.requirement, version):
                    return False
            except (InvalidRequirement, InvalidVersion):
                return False
        return True

    def _candidates(self, within_requirements: bool) -> List[str]:
        if self.target_version is not None:
            published = [v for v in self.available_versions() if versions_equal(self.ecosystem, v, self.target_version)]
            if not published:
                raise DependencyFileNotResolvable(
                    f"{self.dependency.name} {self.target_version} was not found in the registry"
                )
            candidates = [published[0]]
        else:
            candidates = [v for v in reversed(self.filtered_versions()) if self._is_newer(v)]

        if within_requirements:
            candidates = [v for v in candidates if self._satisfies_requirements(v)]
        return candidates[: self.config.resolver.max_resolution_attempts]

    def _first_resolvable(self, candidates: List[str], unlock: bool) -> Optional[str]:
        """
        Ask the resolver for each candidate, newest first.

        Raises:
            DependencyFileNotResolvable: If every candidate was rejected
        """
        if not candidates:
            return None

        failures = []
        for candidate in candidates:
            try:
                self.resolver.resolve(
                    self.dependency_files,
                    self.dependency.name,
                    self.dependency.version,
                    candidate,
                    self.credentials,
                )
            except ResolutionFailed as e:
                log_resolution_attempt(self.dependency.name, candidate, False, unlock)
                failures.append(f"{candidate}: {e}")
                continue
            log_resolution_attempt(self.dependency.name, candidate, True, unlock)
            return candidate

        raise DependencyFileNotResolvable(
            f"No version of {self.dependency.name} could be resolved; tried " + "; ".join(failures)
        )

    def latest_resolvable_version(self) -> Optional[str]:
        return self._cached(
            "latest_resolvable_version", lambda: self._first_resolvable(self._candidates(False), True)
        )

    def latest_resolvable_version_with_no_unlock(self) -> Optional[str]:
        def compute() -> Optional[str]:
            ceiling = self.requirement_ceiling()
            if ceiling is not None:
                get_checker_logger().debug(
                    "no_unlock_ceiling", dependency=self.dependency.name, ceiling=ceiling
                )
            return self._first_resolvable(self._candidates(True), False)

        return self._cached("latest_resolvable_version_with_no_unlock", compute)

    def requirement_ceiling(self) -> Optional[str]:
        """Highest version the current requirements allow, for display."""
        return None

    # Stage 4

    def updated_requirements(self, target_version: Optional[str] = None):
        target = target_version if target_version is not None else self.latest_resolvable_version()
        updater = self.requirements_updater_class(
            self.dependency.requirements,
            target,
            source_url=self.source_url_for(target) if target else None,
        )
        return updater.updated_requirements()

    def _target_for(self, requirements_to_unlock: RequirementsToUnlock) -> Optional[str]:
        if requirements_to_unlock == RequirementsToUnlock.NONE:
            return self.latest_resolvable_version_with_no_unlock()
        return self.latest_resolvable_version()

    def can_update(self, requirements_to_unlock: RequirementsToUnlock) -> bool:
        target = self._target_for(requirements_to_unlock)
        return target is not None and self._is_newer(target)

    def updated_dependencies(self, requirements_to_unlock: RequirementsToUnlock) -> List[Dependency]:
        """
        Dependencies as they look after the update.

        Raises:
            UpdateNotPossible: If ``can_update`` is False for this unlock level
        """
        if not self.can_update(requirements_to_unlock):
            raise UpdateNotPossible(
                f"{self.dependency.name} cannot be updated with requirements_to_unlock="
                f"{requirements_to_unlock.value}"
            )
        target = self._target_for(requirements_to_unlock)
        return [self.dependency.with_update(target, self.updated_requirements(target))]

    def conflicting_dependencies(self, target_version: Optional[str] = None) -> List[ConflictingDependency]:
        if self.conflicting_dependency_resolver is None:
            return []
        target = target_version or self.latest_resolvable_version()
        if target is None:
            return []
        return self.conflicting_dependency_resolver.conflicting_dependencies(self.dependency, target)

    @property
    def conflicts_inconclusive(self) -> bool:
        return bool(self.conflicting_dependency_resolver and self.conflicting_dependency_resolver.inconclusive)

    def check(self) -> UpdateCheckResult:
        """
        Run every stage and classify the outcome.

        ``DependencyFileNotResolvable`` and ``UpdateNotPossible`` become
        ``update_not_possible``; unreachable or private sources become
        ``blocked_unreachable``. Any other error propagates.
        """
        with run_context(self.ecosystem.value, self.dependency.name):
            result = self._check()
            log_update_check(
                self.dependency.name,
                result.status.value,
                result.current_version,
                latest_version=result.latest_version,
                resolvable_version=result.latest_resolvable_version,
                conflicts=len(result.conflicts),
                inconclusive=result.inconclusive,
            )
        return result

    def _check(self) -> UpdateCheckResult:
        name = self.dependency.name
        current = self.dependency.version
        latest = None
        resolvable = None
        try:
            latest = self.latest_version()
            if current is None:
                return UpdateCheckResult(
                    name, UpdateStatus.UPDATE_NOT_POSSIBLE, current, latest,
                    error="The current version is unknown",
                )
            if self.target_version is None and (latest is None or not self._is_newer(latest)):
                return UpdateCheckResult(name, UpdateStatus.UP_TO_DATE, current, latest)

            resolvable = self.latest_resolvable_version()
            if resolvable is None:
                return UpdateCheckResult(name, UpdateStatus.UP_TO_DATE, current, latest)

            conflicts = self.conflicting_dependencies(resolvable)
            if conflicts:
                return UpdateCheckResult(
                    name, UpdateStatus.UPDATE_NOT_POSSIBLE, current, latest, resolvable,
                    conflicts=conflicts,
                    error="; ".join(c.explanation for c in conflicts),
                )

            updated = self.updated_dependencies(RequirementsToUnlock.OWN)
            return UpdateCheckResult(
                name, UpdateStatus.UPDATE_AVAILABLE, current, latest, resolvable,
                updated_dependencies=updated,
                inconclusive=self.conflicts_inconclusive,
            )
        except (DependencyFileNotResolvable, UpdateNotPossible) as e:
            return UpdateCheckResult(
                name, UpdateStatus.UPDATE_NOT_POSSIBLE, current, latest, resolvable, error=str(e)
            )
        except (PrivateSourceNotReachable, SourceUnreachable) as e:
            return UpdateCheckResult(
                name, UpdateStatus.BLOCKED_UNREACHABLE, current, latest, resolvable, error=str(e)
            )


class GoModulesUpdateChecker(UpdateChecker):
    """
    Update checker for Go modules.

    Updates never cross a major version boundary, since a new major is a
    different module path. ``+incompatible`` versions are only candidates
    when the current version is one, and versions excluded in go.mod are
    skipped.
    """

    ecosystem = Ecosystem.GO_MODULES
    requirements_updater_class = GoRequirementsUpdater

    def build_registry_client(self) -> GoProxyClient:
        return GoProxyClient(
            base_url=self.config.network.goproxy_url, credentials=self.credentials, cache=self.registry_cache
        )

    def build_resolver(self) -> GoModulesResolver:
        return GoModulesResolver(self.credentials, self.config.resolver)

    def build_conflicting_dependency_resolver(self) -> GoModulesConflictingDependencyResolver:
        return GoModulesConflictingDependencyResolver(self.dependency_files, self.credentials, self.config.resolver)

    def _excluded_versions(self) -> List[GoVersion]:
        def compute() -> List[GoVersion]:
            go_mod = next((f for f in self.dependency_files if f.name == "go.mod"), None)
            if go_mod is None:
                return []
            return [
                GoVersion(version)
                for path, version in parse_go_mod(go_mod.content).excludes
                if path == self.dependency.name and GoVersion.correct(version)
            ]

        return self._cached("excluded_versions", compute)

    def ecosystem_filter(self, version: str) -> bool:
        candidate = GoVersion(version)
        if self.dependency.version is not None:
            current = GoVersion(self.dependency.version)
            if candidate.path_major != current.path_major:
                return False
            if candidate.is_incompatible and not current.is_incompatible:
                return False
        return candidate not in self._excluded_versions()

    def source_url_for(self, version: str) -> Optional[str]:
        return getattr(self._registry(), "base_url", None)

    def requirement_ceiling(self) -> Optional[str]:
        for requirement in self.dependency.requirements:
            if requirement.requirement is not None:
                return GoRequirement(requirement.requirement).upper_bound_display()
        return None


class MavenUpdateChecker(UpdateChecker):
    """
    Update checker for Maven.

    Maven has no lockfile, so no conflicts are reported. Dependencies whose
    version comes from a property are routed through ``PropertyUpdater``:
    the property can only move if every dependency sharing it accepts the
    target version.
    """

    ecosystem = Ecosystem.MAVEN
    requirements_updater_class = MavenRequirementsUpdater

    def _pom_repository_urls(self) -> List[str]:
        urls: List[str] = []
        for dependency_file in self.dependency_files:
            if not is_pom(dependency_file):
                continue
            for url in PomDocument(dependency_file).repository_urls():
                if url not in urls:
                    urls.append(url)
        return urls

    def build_registry_client(self) -> MavenRepositoryClient:
        return MavenRepositoryClient(
            repository_urls=self._pom_repository_urls(), credentials=self.credentials, cache=self.registry_cache
        )

    def build_resolver(self) -> MavenResolver:
        return MavenResolver(self.credentials, self.config.resolver)

    def _version_details(self) -> List[Dict[str, str]]:
        return self._cached("version_details", lambda: self._registry().version_details(self.dependency.name))

    def available_versions(self) -> List[str]:
        return [detail["version"] for detail in self._version_details()]

    def ecosystem_filter(self, version: str) -> bool:
        if self.dependency.version is None:
            return True
        if MavenVersion(self.dependency.version).major >= DATE_LIKE_CURRENT_MAJOR:
            return True
        return MavenVersion(version).major < DATE_LIKE_MAJOR

    def source_url_for(self, version: str) -> Optional[str]:
        for detail in self._version_details():
            if versions_equal(self.ecosystem, detail["version"], version):
                return detail["source_url"]
        return None

    def requirement_ceiling(self) -> Optional[str]:
        for requirement in self.dependency.requirements:
            if requirement.requirement is not None:
                try:
                    return MavenRequirement(requirement.requirement).upper_bound_display()
                except InvalidRequirement:
                    return None
        return None

    @property
    def uses_property(self) -> bool:
        return bool(self.dependency.property_names)

    def property_updater(self) -> PropertyUpdater:
        return self._cached(
            "property_updater",
            lambda: PropertyUpdater(
                dependency=self.dependency,
                dependency_files=self.dependency_files,
                target_version=self.target_version or self.latest_resolvable_version(),
                registry_client=self._registry(),
                credentials=self.credentials,
            ),
        )

    def latest_resolvable_version_with_no_unlock(self) -> Optional[str]:
        if self.uses_property:
            return None
        return super().latest_resolvable_version_with_no_unlock()

    def can_update(self, requirements_to_unlock: RequirementsToUnlock) -> bool:
        if not self.uses_property:
            return super().can_update(requirements_to_unlock)
        if requirements_to_unlock == RequirementsToUnlock.NONE:
            return False
        target = self.latest_resolvable_version()
        return target is not None and self._is_newer(target) and self.property_updater().update_possible()

    def updated_dependencies(self, requirements_to_unlock: RequirementsToUnlock) -> List[Dependency]:
        if not self.uses_property:
            return super().updated_dependencies(requirements_to_unlock)
        if not self.can_update(requirements_to_unlock):
            raise UpdateNotPossible(
                f"Property {', '.join(self.dependency.property_names)} cannot be updated for "
                f"every dependency that shares it"
            )
        return self.property_updater().updated_dependencies()
