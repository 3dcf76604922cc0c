"""
Structural tokenizer for go.mod files.

Reads the directive grammar (single-line and parenthesized block forms,
quoted tokens, ``//`` comments) and records the character span of every
token, so the file updater can replace one version token and leave the rest
of the file byte-identical.
"""

import re
from dataclasses import dataclass, field
from typing import List, Optional, Tuple

KNOWN_DIRECTIVES = {"module", "go", "toolchain", "require", "exclude", "replace", "retract", "godebug"}
BLOCK_DIRECTIVES = KNOWN_DIRECTIVES - {"module", "go", "toolchain"}

TOKEN_PATTERN = re.compile(r'"(?:[^"\\\n]|\\.)*"|`[^`\n]*`|//.*|[^\s"`]+')


class GoModSyntaxError(ValueError):
    """A go.mod line that does not follow the directive grammar."""

    def __init__(self, line_number: int, message: str):
        self.line_number = line_number
        super().__init__(f"{line_number}: {message}")


@dataclass(frozen=True)
class Token:
    text: str
    start: int
    end: int

    @property
    def value(self) -> str:
        if len(self.text) >= 2 and self.text[0] == self.text[-1] and self.text[0] in "\"`":
            return self.text[1:-1].replace('\\"', '"')
        return self.text


@dataclass(frozen=True)
class GoModRequire:
    path: str
    version: str
    indirect: bool
    version_token: Token
    line_number: int


@dataclass(frozen=True)
class GoModReplace:
    old_path: str
    old_version: Optional[str]
    new_path: str
    new_version: Optional[str]
    line_number: int

    @property
    def is_local(self) -> bool:
        return self.new_path.startswith(("./", "../", "/")) or self.new_path in (".", "..")


@dataclass
class GoModFile:
    module: Optional[str] = None
    go_version: Optional[str] = None
    toolchain: Optional[str] = None
    requires: List[GoModRequire] = field(default_factory=list)
    replaces: List[GoModReplace] = field(default_factory=list)
    excludes: List[Tuple[str, str]] = field(default_factory=list)
    retracts: List[List[str]] = field(default_factory=list)
    godebugs: List[str] = field(default_factory=list)

    def find_requires(self, path: str) -> List[GoModRequire]:
        return [require for require in self.requires if require.path == path]

    def replacement_for(self, path: str, version: Optional[str]) -> Optional[GoModReplace]:
        """The replace directive applying to ``path@version``, versioned ones first."""
        matches = [r for r in self.replaces if r.old_path == path]
        for replace in matches:
            if replace.old_version is not None and replace.old_version == version:
                return replace
        for replace in matches:
            if replace.old_version is None:
                return replace
        return None


def _tokenize_line(line: str, offset: int) -> Tuple[List[Token], Optional[str]]:
    tokens = []
    comment = None
    for match in TOKEN_PATTERN.finditer(line):
        text = match.group(0)
        if text.startswith("//"):
            comment = text[2:].strip()
            break
        tokens.append(Token(text, offset + match.start(), offset + match.end()))
    return tokens, comment


def _is_indirect(comment: Optional[str]) -> bool:
    if not comment:
        return False
    return comment == "indirect" or comment.startswith("indirect;")


def _handle(gomod: GoModFile, directive: str, args: List[Token], comment: Optional[str], line_number: int) -> None:
    values = [token.value for token in args]

    if directive == "module":
        if len(values) != 1:
            raise GoModSyntaxError(line_number, "usage: module module/path")
        gomod.module = values[0]
    elif directive == "go":
        if len(values) != 1:
            raise GoModSyntaxError(line_number, "usage: go 1.23")
        gomod.go_version = values[0]
    elif directive == "toolchain":
        if len(values) != 1:
            raise GoModSyntaxError(line_number, "usage: toolchain go1.23.1")
        gomod.toolchain = values[0]
    elif directive == "require":
        if len(values) != 2:
            raise GoModSyntaxError(line_number, "usage: require module/path v1.2.3")
        if not values[1].startswith("v"):
            raise GoModSyntaxError(line_number, f"invalid version {values[1]!r}: must be of the form v1.2.3")
        gomod.requires.append(
            GoModRequire(values[0], values[1], _is_indirect(comment), args[1], line_number)
        )
    elif directive == "exclude":
        if len(values) != 2:
            raise GoModSyntaxError(line_number, "usage: exclude module/path v1.2.3")
        gomod.excludes.append((values[0], values[1]))
    elif directive == "replace":
        if "=>" not in values:
            raise GoModSyntaxError(line_number, "usage: replace module/path [v1.2.3] => other/module v1.4")
        arrow = values.index("=>")
        old, new = values[:arrow], values[arrow + 1:]
        if len(old) not in (1, 2) or len(new) not in (1, 2):
            raise GoModSyntaxError(line_number, "usage: replace module/path [v1.2.3] => other/module v1.4")
        gomod.replaces.append(
            GoModReplace(
                old_path=old[0],
                old_version=old[1] if len(old) == 2 else None,
                new_path=new[0],
                new_version=new[1] if len(new) == 2 else None,
                line_number=line_number,
            )
        )
    elif directive == "retract":
        if not values:
            raise GoModSyntaxError(line_number, "usage: retract version or retract [low, high]")
        gomod.retracts.append(values)
    elif directive == "godebug":
        if len(values) != 1 or "=" not in values[0]:
            raise GoModSyntaxError(line_number, "usage: godebug key=value")
        gomod.godebugs.append(values[0])


def parse_go_mod(content: str) -> GoModFile:
    """
    Tokenize and parse a go.mod file.

    Raises:
        GoModSyntaxError: On unknown directives, malformed lines or an unterminated block
    """
    gomod = GoModFile()
    block: Optional[str] = None
    offset = 0

    for line_number, line in enumerate(content.splitlines(keepends=True), start=1):
        tokens, comment = _tokenize_line(line, offset)
        offset += len(line)
        if not tokens:
            continue

        if block is not None:
            if len(tokens) == 1 and tokens[0].text == ")":
                block = None
                continue
            _handle(gomod, block, tokens, comment, line_number)
            continue

        directive = tokens[0].text
        if directive not in KNOWN_DIRECTIVES:
            raise GoModSyntaxError(line_number, f"unknown directive: {directive}")
        if len(tokens) == 2 and tokens[1].text == "(":
            if directive not in BLOCK_DIRECTIVES:
                raise GoModSyntaxError(line_number, f"{directive} does not accept a block")
            block = directive
            continue
        if len(tokens) == 3 and tokens[1].text == "(" and tokens[2].text == ")":
            continue
        _handle(gomod, directive, tokens[1:], comment, line_number)

    if block is not None:
        raise GoModSyntaxError(content.count("\n") + 1, f"unterminated {block} block")
    return gomod
