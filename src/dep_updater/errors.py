"""
Domain exceptions for the dependency update engine.

Callers of the update checker use these types to tell apart "the files are
broken", "no resolvable version exists" and "a source could not be reached",
since each calls for a different remediation.
"""

from typing import Iterable, List, Optional


class DependencyUpdateError(Exception):
    """Base class for every error surfaced by the update engine."""


class DependencyFileNotFound(DependencyUpdateError):
    """A mandatory dependency file (manifest or lockfile) is missing."""

    def __init__(self, file_name: str, message: Optional[str] = None):
        self.file_name = file_name
        super().__init__(message or f"Required dependency file not found: {file_name}")


class DependencyFileNotParseable(DependencyUpdateError):
    """A dependency file's content could not be structurally parsed."""

    def __init__(self, file_path: str, message: Optional[str] = None):
        self.file_path = file_path
        super().__init__(message or f"{file_path} not parseable")


class DependencyFileNotResolvable(DependencyUpdateError):
    """No candidate version was accepted by the ecosystem's native resolver."""


class PrivateSourceNotReachable(DependencyUpdateError):
    """A private registry or repository could not be authenticated or reached."""

    def __init__(self, source: Optional[str]):
        self.source = source
        super().__init__(f"The following source could not be reached: {source}")


class PathDependenciesNotReachable(DependencyUpdateError):
    """Path-referenced sub-manifests are missing from the file set."""

    def __init__(self, dependencies: Iterable[str]):
        self.dependencies: List[str] = list(dependencies)
        names = ", ".join(self.dependencies)
        super().__init__(
            f"The following path based dependencies could not be retrieved: {names}"
        )


class SourceUnreachable(DependencyUpdateError):
    """
    A network or subprocess boundary timed out or failed to connect.

    This is an inconclusive outcome: it never means "no such version".
    """

    def __init__(self, source: str, reason: Optional[str] = None):
        self.source = source
        self.reason = reason
        detail = f": {reason}" if reason else ""
        super().__init__(f"Could not reach {source}{detail}")


class ResolutionFailed(DependencyUpdateError):
    """The native resolver (or another helper subprocess) exited unsuccessfully."""

    def __init__(self, message: str, command: Optional[List[str]] = None):
        self.command = command or []
        super().__init__(message)


class UpdateNotPossible(DependencyUpdateError):
    """An update was requested that the checker already judged impossible."""


class InvalidVersion(ValueError):
    """A version string is not valid for the ecosystem's version scheme."""


class InvalidRequirement(ValueError):
    """A requirement string is not valid for the ecosystem's requirement grammar."""


class ContentUnchangedError(RuntimeError):
    """
    A computed replacement left a file's content unchanged.

    This signals that the located declaration was wrong. It is a programming
    error and must never be caught and ignored.
    """

    def __init__(self, file_path: str):
        self.file_path = file_path
        super().__init__(f"Expected content to change! ({file_path})")
