"""
Structural access to pom.xml files.

``PomDocument`` checks well-formedness with ElementTree and builds a light
element index that keeps the character span of every element, so values can
be read and the exact original fragment can be rewritten in place. The same
declaration search is used by the Maven parser and file updater.
"""

import re
import xml.etree.ElementTree as ET
from dataclasses import dataclass, field
from typing import FrozenSet, List, Optional, Tuple
from xml.sax.saxutils import unescape

from .dependency import DependencyFile
from .errors import DependencyFileNotParseable

MASKED_PATTERN = re.compile(r"<!--.*?-->|<!\[CDATA\[.*?\]\]>|<\?.*?\?>|<!DOCTYPE[^>]*>", re.DOTALL)
TAG_PATTERN = re.compile(
    r"<(?P<close>/)?(?P<name>[A-Za-z_][\w.:-]*)(?P<attrs>(?:[^>\"']|\"[^\"]*\"|'[^']*')*?)(?P<selfclose>/)?>"
)
PROPERTY_PATTERN = re.compile(r"\$\{(?P<name>[^}]+)\}")

DEFAULT_PLUGIN_GROUP_ID = "org.apache.maven.plugins"
PROPERTY_PREFIXES = ("project.", "pom.", "env.")

# Element name -> required parent element name
DECLARATION_PARENTS = {
    "dependency": "dependencies",
    "plugin": "plugins",
    "extension": "extensions",
    "parent": "project",
}


@dataclass(eq=False)
class XmlNode:
    name: str
    start: int
    end: int = -1
    content_start: int = -1
    content_end: int = -1
    parent: Optional["XmlNode"] = None
    children: List["XmlNode"] = field(default_factory=list)

    def child(self, name: str) -> Optional["XmlNode"]:
        for node in self.children:
            if node.name == name:
                return node
        return None

    def find(self, path: str) -> Optional["XmlNode"]:
        node: Optional[XmlNode] = self
        for part in path.split("/"):
            if node is None:
                return None
            node = node.child(part)
        return node

    def iter(self):
        yield self
        for node in self.children:
            yield from node.iter()


def _local_name(name: str) -> str:
    return name.rsplit(":", 1)[-1]


def index_xml(content: str) -> XmlNode:
    """
    Build an element tree with character spans.

    Raises:
        ValueError: On mismatched tags
    """
    masked = MASKED_PATTERN.sub(lambda m: " " * len(m.group(0)), content)
    document = XmlNode(name="#document", start=0, content_start=0)
    stack = [document]

    for match in TAG_PATTERN.finditer(masked):
        name = _local_name(match.group("name"))
        if match.group("close"):
            node = stack.pop()
            if node is document or node.name != name:
                raise ValueError(f"mismatched closing tag </{name}> at offset {match.start()}")
            node.content_end = match.start()
            node.end = match.end()
            continue

        node = XmlNode(name=name, start=match.start(), parent=stack[-1])
        stack[-1].children.append(node)
        if match.group("selfclose"):
            node.content_start = node.content_end = node.end = match.end()
        else:
            node.content_start = match.end()
            stack.append(node)

    if len(stack) != 1:
        raise ValueError(f"unclosed tag <{stack[-1].name}>")
    document.end = document.content_end = len(content)
    return document


@dataclass(frozen=True)
class PomDeclaration:
    """One dependency, plugin, extension or parent declaration in a POM."""

    kind: str
    group_id: Optional[str]
    artifact_id: Optional[str]
    version: Optional[str]
    scope: Optional[str]
    node: XmlNode = field(compare=False, repr=False)

    @property
    def name(self) -> str:
        return f"{self.group_id}:{self.artifact_id}"

    @property
    def version_node(self) -> Optional[XmlNode]:
        return self.node.child("version")

    @property
    def groups(self) -> FrozenSet[str]:
        if self.kind == "dependency":
            return frozenset([self.scope or "compile"])
        if self.kind == "parent":
            return frozenset(["parent"])
        return frozenset(["plugins"])


class PomDocument:
    """
    A parsed pom.xml.

    Raises:
        DependencyFileNotParseable: If the content is not well-formed XML or
            has no ``<project>`` root
    """

    def __init__(self, dependency_file: DependencyFile):
        self.file = dependency_file
        self.content = dependency_file.content
        try:
            ET.fromstring(self.content)
            document = index_xml(self.content)
        except (ET.ParseError, ValueError) as e:
            raise DependencyFileNotParseable(dependency_file.path, f"{dependency_file.path} is not valid XML: {e}") from e

        project = document.child("project")
        if project is None:
            raise DependencyFileNotParseable(dependency_file.path, f"{dependency_file.path} has no <project> element")
        self.project = project

    def text(self, node: Optional[XmlNode]) -> Optional[str]:
        if node is None or node.children:
            return None
        value = unescape(self.content[node.content_start:node.content_end]).strip()
        return value or None

    def value(self, path: str) -> Optional[str]:
        return self.text(self.project.find(path))

    @property
    def parent_coordinates(self) -> Optional[Tuple[str, str, Optional[str]]]:
        parent = self.project.child("parent")
        if parent is None:
            return None
        group_id = self.text(parent.child("groupId"))
        artifact_id = self.text(parent.child("artifactId"))
        if not group_id or not artifact_id:
            return None
        return group_id, artifact_id, self.text(parent.child("version"))

    @property
    def group_id(self) -> Optional[str]:
        return self.value("groupId") or self.value("parent/groupId")

    @property
    def artifact_id(self) -> Optional[str]:
        return self.value("artifactId")

    @property
    def version(self) -> Optional[str]:
        return self.value("version") or self.value("parent/version")

    @property
    def identity(self) -> Optional[str]:
        if not self.group_id or not self.artifact_id:
            return None
        return f"{self.group_id}:{self.artifact_id}"

    def repository_urls(self) -> List[str]:
        urls = []
        for node in self.project.iter():
            if node.name == "url" and node.parent and node.parent.name in ("repository", "pluginRepository"):
                url = self.text(node)
                if url and url.startswith(("http://", "https://")) and url not in urls:
                    urls.append(url.rstrip("/"))
        return urls

    def declarations(self) -> List[PomDeclaration]:
        """Every declaration in document order."""
        found = []
        for node in self.project.iter():
            required_parent = DECLARATION_PARENTS.get(node.name)
            if required_parent is None or node.parent is None or node.parent.name != required_parent:
                continue
            if node.name == "parent" and node.parent is not self.project:
                continue

            group_id = self.text(node.child("groupId"))
            if group_id is None and node.name == "plugin":
                group_id = DEFAULT_PLUGIN_GROUP_ID
            found.append(
                PomDeclaration(
                    kind=node.name,
                    group_id=group_id,
                    artifact_id=self.text(node.child("artifactId")),
                    version=self.text(node.child("version")),
                    scope=self.text(node.child("scope")),
                    node=node,
                )
            )
        return found

    def property_node(self, property_name: str) -> Optional[XmlNode]:
        """
        Locate the element defining ``property_name`` in this POM.

        Tries the name as a location under ``<project>``, then under
        ``<properties>``, replacing one more ``.`` with a path separator
        after each miss.
        """
        name = property_name
        for prefix in PROPERTY_PREFIXES:
            if name.startswith(prefix):
                name = name[len(prefix):]
                break

        while True:
            for base in (self.project, self.project.child("properties")):
                if base is None:
                    continue
                node = base.find(name)
                if node is not None and not node.children:
                    return node
            if "." not in name:
                return None
            name = name.replace(".", "/", 1)


def node_text_edit(content: str, node: XmlNode, new_text: str) -> Tuple[int, int, str]:
    """
    Span replacement for an element's text content.

    Returns:
        Tuple[int, int, str]: (start, end, text); surrounding whitespace is kept
    """
    original = content[node.content_start:node.content_end]
    leading = original[: len(original) - len(original.lstrip())]
    trailing = original[len(original.rstrip()):]
    return node.content_start, node.content_end, leading + new_text + trailing


def property_name_of(value: Optional[str]) -> Optional[str]:
    """The property referenced by a ``${...}`` token, if the value contains one."""
    if not value:
        return None
    match = PROPERTY_PATTERN.search(value)
    return match.group("name") if match else None
