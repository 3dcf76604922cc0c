"""
Shared fixtures for dep-updater tests.

Registry access is stubbed either with ``httpx.MockTransport`` or with the
in-memory ``StubRegistry`` below; native tools are never invoked.
"""

from typing import Dict, Iterable, List, Optional, Tuple

import httpx
import pytest

from dep_updater.config import UpdaterConfig, reset_config, set_config
from dep_updater.dependency import DependencyFile
from dep_updater.error_handling import setup_error_handling
from dep_updater.errors import ResolutionFailed
from dep_updater.resolvers import ResolutionResult

MAVEN_CENTRAL = "https://repo.maven.apache.org/maven2"


@pytest.fixture(autouse=True)
def isolated_state():
    """Fresh configuration and error handler for every test."""
    setup_error_handling()
    set_config(UpdaterConfig())
    yield
    reset_config()


class StubRegistry:
    """In-memory stand-in for an opened registry client."""

    def __init__(self, versions: Dict[str, Iterable[str]], source_url: str = MAVEN_CENTRAL, base_url: str = "https://proxy.golang.org"):
        self.versions = {name: list(v) for name, v in versions.items()}
        self.source_url = source_url
        self.base_url = base_url
        self.lookups: List[str] = []

    def list_versions(self, name: str) -> List[str]:
        self.lookups.append(name)
        return list(self.versions.get(name, []))

    def version_details(self, name: str) -> List[Dict[str, str]]:
        return [{"version": v, "source_url": self.source_url} for v in self.list_versions(name)]

    def fetch_pom(self, group_id: str, artifact_id: str, version: str) -> Optional[str]:
        return None


class StubResolver:
    """Native resolver stand-in accepting a fixed set of versions."""

    def __init__(self, accepted: Iterable[str] = (), lockfile_content: Optional[str] = None):
        self.accepted = set(accepted)
        self.lockfile_content = lockfile_content
        self.calls: List[Tuple[str, str]] = []

    def resolve(self, files, dependency_name, previous_version, candidate_version, credentials=None):
        self.calls.append((dependency_name, candidate_version))
        if candidate_version not in self.accepted:
            raise ResolutionFailed(f"{dependency_name}@{candidate_version}: no matching versions")
        manifest = next(f for f in files if f.name in ("go.mod", "pom.xml"))
        return ResolutionResult(manifest_content=manifest.content, lockfile_content=self.lockfile_content)


class StubConflicts:
    """Conflict detector returning a fixed answer."""

    def __init__(self, conflicts=(), inconclusive=False):
        self.conflicts = list(conflicts)
        self.inconclusive = inconclusive
        self.calls: List[Tuple[str, str]] = []

    def conflicting_dependencies(self, dependency, target_version):
        self.calls.append((dependency.name, target_version))
        return list(self.conflicts)


def mock_transport(routes: Dict[str, Tuple[int, str]]) -> httpx.MockTransport:
    """Transport answering exact URLs; anything else is a 404."""

    def handler(request: httpx.Request) -> httpx.Response:
        status, body = routes.get(str(request.url), (404, ""))
        return httpx.Response(status, text=body)

    return httpx.MockTransport(handler)


@pytest.fixture
def go_mod_content():
    return """module example.com/app

go 1.21

require (
\trsc.io/quote v1.4.0
\tgithub.com/pkg/errors v0.8.1 // indirect
)

require golang.org/x/text v0.3.0
"""


@pytest.fixture
def go_files(go_mod_content):
    return [
        DependencyFile(name="go.mod", content=go_mod_content),
        DependencyFile(name="go.sum", content="rsc.io/quote v1.4.0 h1:abc=\n", support_file=True),
    ]


@pytest.fixture
def simple_pom():
    return """<?xml version="1.0" encoding="UTF-8"?>
<project xmlns="http://maven.apache.org/POM/4.0.0">
    <modelVersion>4.0.0</modelVersion>
    <groupId>com.example</groupId>
    <artifactId>app</artifactId>
    <version>1.0.0</version>

    <dependencies>
        <dependency>
            <groupId>com.google.guava</groupId>
            <artifactId>guava</artifactId>
            <version>23.3-jre</version>
        </dependency>
        <dependency>
            <groupId>junit</groupId>
            <artifactId>junit</artifactId>
            <version>4.12</version>
            <scope>test</scope>
        </dependency>
        <dependency>
            <groupId>org.slf4j</groupId>
            <artifactId>slf4j-api</artifactId>
            <version>[1.7,2.0)</version>
        </dependency>
    </dependencies>

    <build>
        <plugins>
            <plugin>
                <artifactId>maven-compiler-plugin</artifactId>
                <version>3.8.1</version>
            </plugin>
        </plugins>
    </build>
</project>
"""


@pytest.fixture
def property_pom():
    return """<?xml version="1.0" encoding="UTF-8"?>
<project xmlns="http://maven.apache.org/POM/4.0.0">
    <modelVersion>4.0.0</modelVersion>
    <groupId>com.example</groupId>
    <artifactId>parent</artifactId>
    <version>1.0.0</version>
    <packaging>pom</packaging>

    <modules>
        <module>api</module>
    </modules>

    <properties>
        <springframework.version>4.3.12.RELEASE</springframework.version>
    </properties>

    <dependencies>
        <dependency>
            <groupId>org.springframework</groupId>
            <artifactId>spring-beans</artifactId>
            <version>${springframework.version}</version>
        </dependency>
        <dependency>
            <groupId>org.springframework</groupId>
            <artifactId>spring-context</artifactId>
            <version>${springframework.version}</version>
        </dependency>
    </dependencies>
</project>
"""


@pytest.fixture
def child_pom():
    return """<?xml version="1.0" encoding="UTF-8"?>
<project xmlns="http://maven.apache.org/POM/4.0.0">
    <modelVersion>4.0.0</modelVersion>
    <parent>
        <groupId>com.example</groupId>
        <artifactId>parent</artifactId>
        <version>1.0.0</version>
    </parent>
    <artifactId>api</artifactId>

    <dependencies>
        <dependency>
            <groupId>org.springframework</groupId>
            <artifactId>spring-web</artifactId>
            <version>${springframework.version}</version>
        </dependency>
        <dependency>
            <groupId>com.example</groupId>
            <artifactId>parent</artifactId>
            <version>1.0.0</version>
        </dependency>
    </dependencies>
</project>
"""


@pytest.fixture
def maven_files(property_pom, child_pom):
    return [
        DependencyFile(name="pom.xml", content=property_pom),
        DependencyFile(name="api/pom.xml", content=child_pom),
    ]
