"""
Detection of locked dependencies that would block an update.

The native tool lists the dependency graph of a temporary copy of the files;
every edge whose constraint on the updated dependency excludes the target
version is a conflict. When the graph cannot be obtained the detector fails
open: it returns no conflicts, marks the result inconclusive and reports the
failure through the error handler.
"""

import posixpath
from abc import ABC, abstractmethod
from dataclasses import dataclass
from pathlib import Path
from typing import Any, Dict, Iterable, List, Optional, Sequence, Tuple

from .config import ResolverConfig, get_config
from .credentials import Credential
from .dependency import Dependency, DependencyFile
from .ecosystem import Ecosystem
from .error_handling import ErrorCategory, get_error_handler
from .errors import (
    InvalidRequirement,
    InvalidVersion,
    PrivateSourceNotReachable,
    ResolutionFailed,
    SourceUnreachable,
)
from .go_version import GoVersion
from .native_helpers import in_a_temporary_directory, run_subprocess
from .resolvers import go_environment
from .schemes import get_requirement_scheme

# (parent name, parent version, child name, constraint on child)
Edge = Tuple[str, Optional[str], str, str]


@dataclass(frozen=True)
class ConflictingDependency:
    """A locked dependency whose constraint excludes the target version."""

    name: str
    version: Optional[str]
    requirement: str

    @property
    def explanation(self) -> str:
        owner = f"{self.name}@{self.version}" if self.version else self.name
        return f"{owner} requires {self.requirement}"

    def to_dict(self) -> Dict[str, Any]:
        return {"name": self.name, "version": self.version, "requirement": self.requirement}


class ConflictingDependencyResolver(ABC):
    """
    Base class for conflict detection.

    Attributes:
        inconclusive: True when the last call could not inspect the graph
    """

    ecosystem: Ecosystem

    def __init__(
        self,
        dependency_files: Sequence[DependencyFile],
        credentials: Optional[Sequence[Credential]] = None,
        config: Optional[ResolverConfig] = None,
    ):
        self.dependency_files = list(dependency_files)
        self.credentials = list(credentials or [])
        self.config = config or get_config().resolver
        self.inconclusive = False

    def conflicting_dependencies(self, dependency: Dependency, target_version: str) -> List[ConflictingDependency]:
        self.inconclusive = False
        try:
            with in_a_temporary_directory(self.dependency_files) as workdir:
                edges = list(self.dependency_edges(workdir))
        except (ResolutionFailed, SourceUnreachable, PrivateSourceNotReachable, OSError) as e:
            self.inconclusive = True
            get_error_handler().warning(
                ErrorCategory.RESOLUTION,
                f"Conflict detection for {dependency.name} was inconclusive; assuming no conflicts",
                "conflicting_dependency_resolver",
                "conflicting_dependencies",
                exception=e,
                details={"dependency": dependency.name, "target_version": target_version},
            )
            return []

        scheme = get_requirement_scheme(self.ecosystem)
        conflicts = []
        for parent_name, parent_version, child_name, constraint in edges:
            if child_name != dependency.name:
                continue
            try:
                satisfied = scheme.satisfied_by(constraint, target_version)
            except (InvalidRequirement, InvalidVersion):
                continue
            if not satisfied:
                conflicts.append(ConflictingDependency(parent_name, parent_version, constraint))
        return conflicts

    @abstractmethod
    def dependency_edges(self, workdir: Path) -> Iterable[Edge]:
        """List the dependency graph of the files written to ``workdir``."""


def _split_module(node: str) -> Tuple[str, Optional[str]]:
    if "@" not in node:
        return node, None
    path, version = node.rsplit("@", 1)
    return path, version


class GoModulesConflictingDependencyResolver(ConflictingDependencyResolver):
    """Reads ``go mod graph``; each edge is a minimum version requirement."""

    ecosystem = Ecosystem.GO_MODULES

    def dependency_edges(self, workdir: Path) -> Iterable[Edge]:
        go_mod = next((f for f in self.dependency_files if f.name == "go.mod"), None)
        cwd = workdir / posixpath.dirname(go_mod.path).lstrip("/") if go_mod else workdir
        result = run_subprocess(
            [self.config.go_binary, "mod", "graph"],
            cwd,
            go_environment(workdir, self.credentials, self.config),
            self.config.timeout_seconds,
        )
        for line in result.stdout.splitlines():
            parts = line.split()
            if len(parts) != 2:
                continue
            parent, parent_version = _split_module(parts[0])
            child, child_version = _split_module(parts[1])
            if child_version is None or not GoVersion.correct(child_version):
                continue
            yield (
                parent,
                str(GoVersion(parent_version)) if GoVersion.correct(parent_version) else parent_version,
                child,
                child_version,
            )
