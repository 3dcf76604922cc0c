"""
Native resolver ports.

Each resolver asks the ecosystem's own package manager whether a candidate
version can be installed, working on a temporary copy of the dependency
files. Credentials are handed over explicitly; the subprocess only sees an
allow-listed slice of the ambient environment.
"""

import posixpath
from abc import ABC, abstractmethod
from dataclasses import dataclass
from pathlib import Path
from typing import Dict, List, Optional, Sequence
from xml.sax.saxutils import escape

from .config import ResolverConfig, get_config
from .credentials import Credential, git_config_environment, private_hosts
from .dependency import DependencyFile
from .ecosystem import Ecosystem
from .error_handling import log_resolution_error
from .errors import DependencyFileNotFound, ResolutionFailed
from .go_version import GoVersion
from .native_helpers import build_environment, in_a_temporary_directory, raise_for_private_source, run_subprocess
from .pom import PomDocument


@dataclass(frozen=True)
class ResolutionResult:
    """Files as the native tool left them after a successful resolution."""

    manifest_content: str
    lockfile_content: Optional[str] = None


class Resolver(ABC):
    """
    Base class for native resolvers.

    Args:
        credentials: Explicit credentials for private sources
        config: Resolver settings (defaults to the global configuration)
    """

    ecosystem: Ecosystem
    MANIFEST_NAME: str

    def __init__(
        self,
        credentials: Optional[Sequence[Credential]] = None,
        config: Optional[ResolverConfig] = None,
    ):
        self.credentials = list(credentials or [])
        self.config = config or get_config().resolver

    def _manifest(self, files: Sequence[DependencyFile]) -> DependencyFile:
        for dependency_file in files:
            if dependency_file.name == self.MANIFEST_NAME:
                return dependency_file
        raise DependencyFileNotFound(self.MANIFEST_NAME)

    def resolve(
        self,
        files: Sequence[DependencyFile],
        dependency_name: str,
        previous_version: Optional[str],
        candidate_version: str,
        credentials: Optional[Sequence[Credential]] = None,
    ) -> ResolutionResult:
        """
        Resolve the file set with ``dependency_name`` pinned at ``candidate_version``.

        Raises:
            ResolutionFailed: If the native tool rejects the candidate
            PrivateSourceNotReachable: If a private source refused our credentials
            SourceUnreachable: If the tool timed out
        """
        credentials = list(credentials) if credentials is not None else self.credentials
        manifest = self._manifest(files)
        with in_a_temporary_directory(files) as workdir:
            cwd = workdir / posixpath.dirname(manifest.path).lstrip("/")
            command = self.command(dependency_name, candidate_version, workdir, credentials)
            try:
                run_subprocess(command, cwd, self.environment(workdir, credentials), self.config.timeout_seconds)
            except ResolutionFailed as e:
                raise_for_private_source(e)
                log_resolution_error(
                    f"Native resolution of {dependency_name} at {candidate_version} failed",
                    "resolvers", "resolve", dependency_name=dependency_name, command=command, exception=e,
                )
                raise
            return self.collect(cwd, manifest)

    @abstractmethod
    def command(
        self, dependency_name: str, candidate_version: str, workdir: Path, credentials: List[Credential]
    ) -> List[str]:
        """Build the native command line."""

    @abstractmethod
    def environment(self, workdir: Path, credentials: List[Credential]) -> Dict[str, str]:
        """Build the subprocess environment."""

    @abstractmethod
    def collect(self, cwd: Path, manifest: DependencyFile) -> ResolutionResult:
        """Read the resolved files back."""


def go_environment(workdir: Path, credentials: Sequence[Credential], config: ResolverConfig) -> Dict[str, str]:
    """Environment for the go tool, scoped to ``workdir``."""
    hosts = ",".join(private_hosts(credentials))
    extra = {
        "GOPATH": str(workdir / ".gopath"),
        "GOCACHE": str(workdir / ".gocache"),
        "GOFLAGS": "-mod=mod",
        "GOPROXY": config.goproxy,
        "GOTOOLCHAIN": "local",
        "GIT_TERMINAL_PROMPT": "0",
        "HOME": str(workdir),
    }
    if hosts:
        extra["GOPRIVATE"] = hosts
    extra.update(git_config_environment(credentials))
    return build_environment(extra)


class GoModulesResolver(Resolver):
    """Runs ``go get module@version`` and returns the rewritten go.mod and go.sum."""

    ecosystem = Ecosystem.GO_MODULES
    MANIFEST_NAME = "go.mod"

    def command(self, dependency_name, candidate_version, workdir, credentials):
        return [self.config.go_binary, "get", f"{dependency_name}@{GoVersion(candidate_version).go_string()}"]

    def environment(self, workdir, credentials):
        return go_environment(workdir, credentials, self.config)

    def collect(self, cwd, manifest):
        go_sum = cwd / "go.sum"
        return ResolutionResult(
            manifest_content=(cwd / "go.mod").read_text(encoding="utf-8"),
            lockfile_content=go_sum.read_text(encoding="utf-8") if go_sum.exists() else None,
        )


SETTINGS_TEMPLATE = """<settings>
  <servers>
{servers}
  </servers>
</settings>
"""
SERVER_TEMPLATE = """    <server>
      <id>{id}</id>
      <username>{username}</username>
      <password>{password}</password>
    </server>"""


class MavenResolver(Resolver):
    """
    Runs ``mvn dependency:get`` for the candidate artifact.

    Maven has no lockfile, so the POM is returned unchanged and a success
    only means the artifact and its transitive dependencies are available.
    """

    ecosystem = Ecosystem.MAVEN
    MANIFEST_NAME = "pom.xml"

    def __init__(self, *args, **kwargs):
        super().__init__(*args, **kwargs)
        self._repositories: List[str] = []

    def resolve(self, files, dependency_name, previous_version, candidate_version, credentials=None):
        self._repositories = PomDocument(self._manifest(files)).repository_urls()
        return super().resolve(files, dependency_name, previous_version, candidate_version, credentials)

    def _write_settings(self, workdir: Path, credentials: List[Credential]) -> Path:
        servers = []
        for index, url in enumerate(self._repositories):
            credential = next(
                (c for c in credentials if c.type == "maven_repository" and c.matches(url)), None
            )
            if credential is None or not credential.secret():
                continue
            servers.append(
                SERVER_TEMPLATE.format(
                    id=f"repository-{index}",
                    username=escape(credential.username or ""),
                    password=escape(credential.secret()),
                )
            )
        settings = workdir / ".m2" / "settings.xml"
        settings.parent.mkdir(parents=True, exist_ok=True)
        settings.write_text(SETTINGS_TEMPLATE.format(servers="\n".join(servers)), encoding="utf-8")
        return settings

    def command(self, dependency_name, candidate_version, workdir, credentials):
        settings = self._write_settings(workdir, credentials)
        command = [
            self.config.maven_binary,
            "-B",
            "-q",
            "-s",
            str(settings),
            "dependency:get",
            f"-Dartifact={dependency_name}:{candidate_version}",
            f"-Dmaven.repo.local={workdir / '.m2' / 'repository'}",
        ]
        if self._repositories:
            remotes = ",".join(
                f"repository-{index}::default::{url}" for index, url in enumerate(self._repositories)
            )
            command.append(f"-DremoteRepositories={remotes}")
        return command

    def environment(self, workdir, credentials):
        return build_environment({"HOME": str(workdir), "MAVEN_OPTS": "-Djava.awt.headless=true"})

    def collect(self, cwd, manifest):
        return ResolutionResult(manifest_content=manifest.content, lockfile_content=None)
