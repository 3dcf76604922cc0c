"""
Explicit credentials for private sources.

Credentials are always passed in by the caller as a list; nothing here reads
tokens from the ambient environment. They are validated on construction and
turned into HTTP auth headers for registry clients or git configuration for
native resolver subprocesses.
"""

import base64
import re
from dataclasses import dataclass
from typing import Any, Dict, List, Optional, Sequence, Tuple
from urllib.parse import urlparse

from .config import get_config

CREDENTIAL_PATTERN = re.compile(r"^[a-zA-Z0-9_\-+=/.:@]+$")
CREDENTIAL_TYPES = {"git_source", "maven_repository", "goproxy_server"}


def _validate_credential(credential: str, credential_type: str = "token") -> str:
    """
    Validate and sanitize a secret.

    Args:
        credential: The secret to validate
        credential_type: Description used in error messages

    Returns:
        str: The stripped secret

    Raises:
        ValueError: If the secret is empty, too long, too short or contains unsafe characters
    """
    if not credential or not isinstance(credential, str):
        raise ValueError(f"Invalid {credential_type}: must be a non-empty string")

    credential = credential.strip()
    security = get_config().security

    if len(credential) > security.max_credential_length:
        raise ValueError(
            f"{credential_type} too long: {len(credential)} chars (max: {security.max_credential_length})"
        )
    if not CREDENTIAL_PATTERN.match(credential):
        raise ValueError(f"Invalid {credential_type}: contains unsafe characters")
    if len(credential) < security.min_credential_length:
        raise ValueError(
            f"{credential_type} too short (minimum {security.min_credential_length} characters)"
        )

    return credential


DEFAULT_PORTS = {"http": 80, "https": 443}


def _split_url(url: str) -> Optional[Tuple[str, str, Optional[int], str]]:
    """(scheme, host, port, path) of ``url``, or None when it cannot be parsed."""
    try:
        parsed = urlparse(url)
        port = parsed.port
    except ValueError:
        return None
    if not parsed.hostname:
        return None
    scheme = parsed.scheme.lower()
    return scheme, parsed.hostname, port or DEFAULT_PORTS.get(scheme), parsed.path


@dataclass(frozen=True)
class Credential:
    """
    One credential for a private source.

    Attributes:
        type: ``git_source``, ``maven_repository`` or ``goproxy_server``
        host: Host the credential applies to (git sources)
        url: Base URL the credential applies to (repositories, proxies)
        username: Optional user name for basic auth
        password: Password or token used with ``username``
        token: Bearer token, used when no username is given
    """

    type: str
    host: Optional[str] = None
    url: Optional[str] = None
    username: Optional[str] = None
    password: Optional[str] = None
    token: Optional[str] = None

    def __post_init__(self):
        if self.type not in CREDENTIAL_TYPES:
            raise ValueError(f"Credential type must be one of: {sorted(CREDENTIAL_TYPES)}")
        if not self.host and not self.url:
            raise ValueError("Credential needs a host or a url")

        if self.password:
            object.__setattr__(self, "password", _validate_credential(self.password, "password"))
        if self.token:
            object.__setattr__(self, "token", _validate_credential(self.token, "token"))

    @property
    def target_host(self) -> str:
        if self.host:
            return self.host
        return urlparse(self.url).hostname or ""

    def matches(self, url: str) -> bool:
        """
        True when this credential applies to ``url``.

        A ``url`` credential needs the same scheme, host and port as ``url``
        and a path that is a prefix of it on a ``/`` boundary. A ``host``
        credential needs the same host name.
        """
        target = _split_url(url)
        if target is None:
            return False
        if not self.url:
            return target[1] == self.host.lower()

        base = _split_url(self.url)
        if base is None or base[:3] != target[:3]:
            return False
        base_path = base[3].rstrip("/")
        return target[3] == base_path or target[3].startswith(base_path + "/")

    def get_auth_headers(self) -> Dict[str, str]:
        if self.username and self.password:
            pair = f"{self.username}:{self.password}".encode()
            return {"Authorization": f"Basic {base64.b64encode(pair).decode()}"}
        if self.token:
            return {"Authorization": f"Bearer {self.token}"}
        return {}

    def secret(self) -> Optional[str]:
        return self.password or self.token

    def get_sanitized_config(self) -> Dict[str, Any]:
        return {
            "type": self.type,
            "host": self.target_host,
            "has_username": bool(self.username),
            "has_secret": bool(self.secret()),
        }


def credentials_for_url(credentials: Sequence[Credential], url: str) -> Optional[Credential]:
    for credential in credentials:
        if credential.matches(url):
            return credential
    return None


def git_config_environment(credentials: Sequence[Credential]) -> Dict[str, str]:
    """
    Build ``GIT_CONFIG_*`` variables rewriting git URLs to authenticated ones.

    Each git source credential becomes an ``url.<authed>.insteadOf`` entry so
    the native tools fetch private modules without a credential helper.
    """
    entries: List[tuple] = []
    for credential in credentials:
        if credential.type != "git_source" or not credential.secret():
            continue
        host = credential.target_host
        user = credential.username or "x-access-token"
        entries.append(
            (f"url.https://{user}:{credential.secret()}@{host}/.insteadOf", f"https://{host}/")
        )

    env = {"GIT_CONFIG_COUNT": str(len(entries))} if entries else {}
    for index, (key, value) in enumerate(entries):
        env[f"GIT_CONFIG_KEY_{index}"] = key
        env[f"GIT_CONFIG_VALUE_{index}"] = value
    return env


def private_hosts(credentials: Sequence[Credential]) -> List[str]:
    """Hosts that must bypass public proxies and checksum databases."""
    return sorted({c.target_host for c in credentials if c.type == "git_source" and c.target_host})
