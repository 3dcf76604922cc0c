"""
Normalized dependency model shared by every ecosystem.

All records are frozen: a parser creates them once per run, the update
checker reads them, and an update produces new instances with the previous
version and requirements carried along for diffing.
"""

import dataclasses
import posixpath
from dataclasses import dataclass, field
from typing import Any, ClassVar, Dict, FrozenSet, Iterator, List, Optional, Tuple, Union

from .ecosystem import Ecosystem
from .schemes import get_version_scheme


@dataclass(frozen=True)
class DefaultSource:
    """The ecosystem's default public registry."""

    type: ClassVar[str] = "default"
    registry: Optional[str] = None

    def to_dict(self) -> Dict[str, Any]:
        return {"type": self.type, "registry": self.registry}


@dataclass(frozen=True)
class GitSource:
    """A git repository, optionally pinned to a ref or branch."""

    type: ClassVar[str] = "git"
    url: str
    ref: Optional[str] = None
    branch: Optional[str] = None

    def to_dict(self) -> Dict[str, Any]:
        return {"type": self.type, "url": self.url, "ref": self.ref, "branch": self.branch}


@dataclass(frozen=True)
class PathSource:
    """A local path inside the repository."""

    type: ClassVar[str] = "path"
    path: str

    def to_dict(self) -> Dict[str, Any]:
        return {"type": self.type, "path": self.path}


@dataclass(frozen=True)
class RegistrySource:
    """An explicit registry URL, used for provenance after an update."""

    type: ClassVar[str] = "registry"
    url: str

    def to_dict(self) -> Dict[str, Any]:
        return {"type": self.type, "url": self.url}


Source = Union[DefaultSource, GitSource, PathSource, RegistrySource]


@dataclass(frozen=True)
class DependencyFile:
    """
    A dependency file as fetched from the repository.

    Attributes:
        name: File name, relative to ``directory`` (e.g. ``go.mod``, ``api/pom.xml``)
        content: Full text of the file
        directory: Directory the update run is rooted at
        support_file: True for files needed for resolution but never updated
    """

    name: str
    content: str
    directory: str = "/"
    support_file: bool = False

    @property
    def path(self) -> str:
        joined = posixpath.normpath(posixpath.join("/", self.directory, self.name))
        return joined if joined.startswith("/") else f"/{joined}"

    def with_content(self, content: str) -> "DependencyFile":
        return dataclasses.replace(self, content=content)


@dataclass(frozen=True)
class Requirement:
    """
    One declaration of a dependency in one file.

    ``requirement`` is the literal constraint string. When ``property_name``
    is set, the version is defined through that property and
    ``property_source`` names the file defining it (None when it lives
    outside the local file set).
    """

    requirement: Optional[str]
    file: str
    groups: FrozenSet[str] = field(default_factory=frozenset)
    source: Optional[Source] = None
    property_name: Optional[str] = None
    property_source: Optional[str] = None

    def __post_init__(self):
        if not isinstance(self.groups, frozenset):
            object.__setattr__(self, "groups", frozenset(self.groups))

    def with_requirement(self, requirement: Optional[str], source: Optional[Source] = None) -> "Requirement":
        return dataclasses.replace(
            self, requirement=requirement, source=source if source is not None else self.source
        )

    def to_dict(self) -> Dict[str, Any]:
        return {
            "requirement": self.requirement,
            "file": self.file,
            "groups": sorted(self.groups),
            "source": self.source.to_dict() if self.source else None,
            "property_name": self.property_name,
            "property_source": self.property_source,
        }


@dataclass(frozen=True)
class Dependency:
    """A dependency with every declaration of it across the file set."""

    name: str
    package_manager: Ecosystem
    requirements: Tuple[Requirement, ...]
    version: Optional[str] = None
    previous_version: Optional[str] = None
    previous_requirements: Optional[Tuple[Requirement, ...]] = None
    top_level: bool = True

    def __post_init__(self):
        object.__setattr__(self, "package_manager", Ecosystem.from_value(self.package_manager))
        object.__setattr__(self, "requirements", tuple(self.requirements))
        if self.previous_requirements is not None:
            object.__setattr__(self, "previous_requirements", tuple(self.previous_requirements))

        if not self.requirements:
            raise ValueError(f"Dependency {self.name} must have at least one requirement")

        files = [req.file for req in self.requirements]
        if len(files) != len(set(files)):
            raise ValueError(f"Dependency {self.name} has more than one requirement per file")

        if self.version is not None and not get_version_scheme(self.package_manager).is_valid(self.version):
            raise ValueError(f"Invalid {self.package_manager.value} version for {self.name}: {self.version!r}")

    @property
    def numeric_version(self):
        if self.version is None:
            return None
        return get_version_scheme(self.package_manager).parse(self.version)

    @property
    def property_names(self) -> List[str]:
        return sorted({req.property_name for req in self.requirements if req.property_name})

    def requirement_for_file(self, file: str) -> Optional[Requirement]:
        for req in self.requirements:
            if req.file == file:
                return req
        return None

    def with_update(self, version: Optional[str], requirements) -> "Dependency":
        """Return the updated copy, keeping this dependency's state as the previous one."""
        return dataclasses.replace(
            self,
            version=version,
            requirements=tuple(requirements),
            previous_version=self.version,
            previous_requirements=self.requirements,
        )

    def to_dict(self) -> Dict[str, Any]:
        return {
            "name": self.name,
            "package_manager": self.package_manager.value,
            "version": self.version,
            "previous_version": self.previous_version,
            "requirements": [req.to_dict() for req in self.requirements],
            "previous_requirements": (
                [req.to_dict() for req in self.previous_requirements]
                if self.previous_requirements is not None
                else None
            ),
            "top_level": self.top_level,
        }


class DependencySet:
    """
    Ordered collection merging same-named dependencies across files.

    Requirements are concatenated in first-seen order. A second declaration in
    a file that already has one is folded into it (groups are combined). A
    dependency is top-level if any contribution is, and the first known
    version wins.
    """

    def __init__(self):
        self._dependencies: Dict[str, Dependency] = {}

    def add(self, dependency: Dependency) -> None:
        existing = self._dependencies.get(dependency.name)
        if existing is None:
            self._dependencies[dependency.name] = dependency
            return

        requirements = list(existing.requirements)
        for req in dependency.requirements:
            index = next((i for i, r in enumerate(requirements) if r.file == req.file), None)
            if index is None:
                requirements.append(req)
            elif requirements[index] != req:
                requirements[index] = dataclasses.replace(
                    requirements[index], groups=requirements[index].groups | req.groups
                )

        self._dependencies[dependency.name] = dataclasses.replace(
            existing,
            requirements=tuple(requirements),
            version=existing.version or dependency.version,
            top_level=existing.top_level or dependency.top_level,
        )

    def __iter__(self) -> Iterator[Dependency]:
        return iter(self._dependencies.values())

    def __len__(self) -> int:
        return len(self._dependencies)

    def __contains__(self, name: str) -> bool:
        return name in self._dependencies

    @property
    def dependencies(self) -> List[Dependency]:
        return list(self._dependencies.values())
