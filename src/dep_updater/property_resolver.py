"""
Resolution of Maven property references.

A declaration such as ``<version>${springframework.version}</version>`` is
resolved by looking the property up in the declaring POM, then walking the
parent chain by ``groupId:artifactId`` identity: first among the POMs in the
file set, then, as a last resort, in POMs fetched from the Maven repository.
"""

from dataclasses import dataclass
from typing import Dict, List, Optional, Sequence, Tuple

from .config import get_config
from .dependency import DependencyFile
from .error_handling import log_network_error, log_parsing_error
from .errors import DependencyFileNotParseable, PrivateSourceNotReachable, SourceUnreachable
from .pom import PROPERTY_PATTERN, PomDocument


@dataclass(frozen=True)
class PropertyDetails:
    """Where a property was found and what it evaluates to."""

    name: str
    value: str
    file: Optional[str]
    remote: bool = False


def is_pom(dependency_file: DependencyFile) -> bool:
    return dependency_file.name.endswith("pom.xml")


class MavenPropertyResolver:
    """
    Resolve property values across a multi-module build.

    Args:
        files: The dependency file set; every ``pom.xml`` in it is indexed
        registry_client: Optional ``MavenRepositoryClient`` (already opened)
            used to fetch parents missing from the file set
        max_depth: Maximum parent chain length before giving up
    """

    def __init__(
        self,
        files: Sequence[DependencyFile],
        registry_client=None,
        max_depth: Optional[int] = None,
    ):
        self.registry_client = registry_client
        self.max_depth = max_depth if max_depth is not None else get_config().security.max_parent_depth
        self.documents: Dict[str, PomDocument] = {f.path: PomDocument(f) for f in files if is_pom(f)}
        self._by_identity: Dict[str, PomDocument] = {}
        for document in self.documents.values():
            if document.identity and document.identity not in self._by_identity:
                self._by_identity[document.identity] = document
        self._remote_documents: Dict[str, Optional[PomDocument]] = {}

    def document_for(self, pom: DependencyFile) -> PomDocument:
        return self.documents.get(pom.path) or PomDocument(pom)

    def property_details(self, property_name: str, callsite_pom: DependencyFile) -> Optional[PropertyDetails]:
        """
        Find the definition of ``property_name`` as seen from ``callsite_pom``.

        Returns:
            Optional[PropertyDetails]: None when no POM in the chain defines it

        Raises:
            DependencyFileNotParseable: If the parent chain loops or exceeds ``max_depth``
        """
        for document, remote in self._ancestry(callsite_pom):
            node = document.property_node(property_name)
            if node is None:
                continue
            if node.children:
                return None
            return PropertyDetails(
                name=property_name,
                value=document.text(node) or "",
                file=None if remote else document.file.name,
                remote=remote,
            )
        return None

    def evaluate(self, value: Optional[str], callsite_pom: DependencyFile) -> Optional[str]:
        """
        Substitute every ``${...}`` token in ``value``.

        Returns None if any referenced property cannot be resolved.
        """
        if value is None:
            return None

        result = value
        for _ in range(self.max_depth + 1):
            match = PROPERTY_PATTERN.search(result)
            if match is None:
                return result
            details = self.property_details(match.group("name"), callsite_pom)
            if details is None:
                return None
            result = result[: match.start()] + details.value + result[match.end():]
        raise DependencyFileNotParseable(
            callsite_pom.path, f"Property references in {value!r} nest deeper than {self.max_depth}"
        )

    def _ancestry(self, callsite_pom: DependencyFile):
        """Yield (document, remote) for the POM and each ancestor, guarding against cycles."""
        document: Optional[PomDocument] = self.document_for(callsite_pom)
        remote = False
        visited: List[str] = []

        while document is not None:
            key = document.identity or document.file.path
            if key in visited:
                chain = " -> ".join(visited + [key])
                raise DependencyFileNotParseable(callsite_pom.path, f"Parent POM cycle detected: {chain}")
            if len(visited) > self.max_depth:
                raise DependencyFileNotParseable(
                    callsite_pom.path, f"Parent POM chain is deeper than {self.max_depth}"
                )
            visited.append(key)

            yield document, remote
            document, remote = self._parent_of(document, remote)

    def _parent_of(self, document: PomDocument, remote: bool) -> Tuple[Optional[PomDocument], bool]:
        coordinates = document.parent_coordinates
        if coordinates is None:
            return None, remote

        group_id, artifact_id, version = coordinates
        local = self._by_identity.get(f"{group_id}:{artifact_id}")
        if local is not None:
            return local, False
        if self.registry_client is None or not version or "${" in version:
            return None, remote
        return self._fetch_remote(group_id, artifact_id, version), True

    def _fetch_remote(self, group_id: str, artifact_id: str, version: str) -> Optional[PomDocument]:
        key = f"{group_id}:{artifact_id}:{version}"
        if key in self._remote_documents:
            return self._remote_documents[key]

        document = None
        try:
            content = self.registry_client.fetch_pom(group_id, artifact_id, version)
        except (SourceUnreachable, PrivateSourceNotReachable) as e:
            log_network_error(
                f"Could not fetch parent POM {key}", "property_resolver", "_fetch_remote", exception=e
            )
            content = None

        if content:
            remote_file = DependencyFile(
                name="pom.xml", content=content, directory=f"/.remote/{group_id}/{artifact_id}/{version}"
            )
            try:
                document = PomDocument(remote_file)
            except DependencyFileNotParseable as e:
                log_parsing_error(
                    f"Remote parent POM {key} is not parseable", "property_resolver", "_fetch_remote",
                    file_path=remote_file.path, exception=e,
                )

        self._remote_documents[key] = document
        return document
