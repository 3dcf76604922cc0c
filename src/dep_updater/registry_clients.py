"""
Registry clients for listing published versions.

Implements rate-limited, synchronous clients for the Go module proxy and for
Maven repositories. A missing package is a definitive answer (an empty list
or None); authentication failures and unreachable hosts are raised as
distinct errors so callers never mistake "could not check" for "absent".
"""

import re
import time
import xml.etree.ElementTree as ET
from abc import ABC, abstractmethod
from typing import Any, Dict, List, Optional, Sequence
from urllib.parse import quote

import httpx

from .cache_manager import RegistryCacheManager, create_cache_manager
from .config import get_config
from .credentials import Credential, credentials_for_url
from .error_handling import log_network_error, log_parsing_error, sanitize_url
from .errors import PrivateSourceNotReachable, SourceUnreachable
from .go_version import GoVersion
from .maven_version import MavenVersion
from .structured_logging import log_registry_lookup

NOT_FOUND_STATUSES = {404, 410}
AUTH_FAILURE_STATUSES = {401, 403}


class RateLimiter:
    """Simple rate limiter to prevent overwhelming registries."""

    def __init__(self, requests_per_second: float = 10.0):
        self.requests_per_second = requests_per_second
        self.min_interval = 1.0 / requests_per_second
        self.last_request_time = 0.0

    def acquire(self) -> None:
        """Wait if necessary to respect rate limits."""
        time_since_last = time.time() - self.last_request_time
        if time_since_last < self.min_interval:
            time.sleep(self.min_interval - time_since_last)
        self.last_request_time = time.time()


class BaseRegistryClient(ABC):
    """
    Base class for registry clients.

    Uses the context manager pattern for ``httpx.Client`` resource
    management: the HTTP client is created on entry and closed on exit.

    Args:
        credentials: Explicit credentials for private registries
        rate_limit_rps: Requests per second (defaults to configuration)
        transport: Optional httpx transport, used to stub the network in tests
        cache: Cache shared by the clients of one run; a private one is
            created when omitted
    """

    def __init__(
        self,
        credentials: Optional[Sequence[Credential]] = None,
        rate_limit_rps: Optional[float] = None,
        transport: Optional[httpx.BaseTransport] = None,
        cache: Optional[RegistryCacheManager] = None,
    ):
        network = get_config().network
        self.cache = cache if cache is not None else create_cache_manager()
        self.credentials = list(credentials or [])
        self.rate_limiter = RateLimiter(rate_limit_rps or network.rate_limit)
        self.timeout = httpx.Timeout(network.read_timeout, connect=network.connect_timeout)
        self._transport = transport
        self._headers = {"User-Agent": network.user_agent}
        self.client: Optional[httpx.Client] = None

    def __enter__(self):
        self.client = httpx.Client(
            timeout=self.timeout,
            headers=self._headers,
            transport=self._transport,
            follow_redirects=True,
        )
        return self

    def __exit__(self, exc_type, exc_val, exc_tb):
        if self.client:
            self.client.close()
            self.client = None

    @abstractmethod
    def get_registry_type(self) -> str:
        """Get the registry type identifier."""

    @abstractmethod
    def list_versions(self, name: str) -> List[str]:
        """List every published version of ``name``."""

    def _get(self, url: str) -> Optional[httpx.Response]:
        """
        GET ``url`` and translate transport failures into domain errors.

        Returns:
            The response, or None when the resource definitively does not exist

        Raises:
            PrivateSourceNotReachable: On 401/403
            SourceUnreachable: On timeouts, connection failures and server errors
        """
        if self.client is None:
            raise RuntimeError("HTTP client not initialized - use within context manager")

        credential = credentials_for_url(self.credentials, url)
        headers = credential.get_auth_headers() if credential else {}

        self.rate_limiter.acquire()
        try:
            response = self.client.get(url, headers=headers)
        except httpx.TimeoutException as e:
            log_network_error("Registry request timed out", "registry_clients", "_get", url=url, exception=e)
            raise SourceUnreachable(sanitize_url(url), "timed out") from e
        except httpx.RequestError as e:
            log_network_error("Registry request failed", "registry_clients", "_get", url=url, exception=e)
            raise SourceUnreachable(sanitize_url(url), str(e)) from e

        if response.status_code in NOT_FOUND_STATUSES:
            return None
        if response.status_code in AUTH_FAILURE_STATUSES:
            log_network_error(
                "Registry rejected credentials", "registry_clients", "_get",
                url=url, status_code=response.status_code,
            )
            raise PrivateSourceNotReachable(sanitize_url(url))
        if response.is_error:
            log_network_error(
                "Registry returned an error", "registry_clients", "_get",
                url=url, status_code=response.status_code,
            )
            raise SourceUnreachable(sanitize_url(url), f"HTTP {response.status_code}")
        return response

    def _cached(self, key: str, cache_scope: str, fetch) -> Any:
        registry_key = f"{self.get_registry_type()}:{cache_scope}"
        cached = self.cache.get(key, registry_key)
        if cached is not None:
            return cached

        result = fetch()
        ttl = None if result else get_config().performance.not_found_ttl_seconds
        self.cache.put(key, registry_key, result, ttl_seconds=ttl)
        return result


def escape_module_path(module_path: str) -> str:
    """Escape upper-case letters the way the module proxy protocol requires."""
    return re.sub(r"[A-Z]", lambda m: "!" + m.group(0).lower(), module_path)


class GoProxyClient(BaseRegistryClient):
    """Client for a Go module proxy (``GOPROXY`` protocol)."""

    def __init__(self, base_url: Optional[str] = None, **kwargs):
        super().__init__(**kwargs)
        self.base_url = (base_url or get_config().network.goproxy_url).rstrip("/")

    def get_registry_type(self) -> str:
        return "goproxy"

    def list_versions(self, name: str) -> List[str]:
        """
        List tagged versions of a module.

        Args:
            name: Module path (e.g. ``rsc.io/quote``)

        Returns:
            List[str]: Versions without the ``v`` prefix; empty if the module is unknown
        """
        start_time = time.time()
        cache_hit = True

        def fetch() -> List[str]:
            nonlocal cache_hit
            cache_hit = False
            url = f"{self.base_url}/{quote(escape_module_path(name), safe='/!')}/@v/list"
            response = self._get(url)
            if response is None:
                return []
            versions = []
            for line in response.text.splitlines():
                line = line.strip()
                if line and GoVersion.correct(line):
                    versions.append(str(GoVersion(line)))
            return versions

        versions = self._cached(name, self.base_url, fetch)
        log_registry_lookup(
            name, self.get_registry_type(), len(versions),
            response_time_ms=round((time.time() - start_time) * 1000, 2), cached=cache_hit,
        )
        return list(versions)


def _maven_path(group_id: str, artifact_id: str) -> str:
    return f"{group_id.replace('.', '/')}/{artifact_id}"


class MavenRepositoryClient(BaseRegistryClient):
    """
    Client for Maven repositories.

    Versions are read from ``maven-metadata.xml`` in every configured
    repository plus any the POM itself declares; the first repository that
    lists a version is recorded as its source.
    """

    def __init__(self, repository_urls: Optional[Sequence[str]] = None, **kwargs):
        super().__init__(**kwargs)
        urls = list(get_config().network.maven_repository_urls)
        for url in repository_urls or []:
            if url.rstrip("/") not in urls:
                urls.append(url.rstrip("/"))
        self.repository_urls = [url.rstrip("/") for url in urls]

    def get_registry_type(self) -> str:
        return "maven"

    def _metadata_versions(self, repository_url: str, name: str) -> List[str]:
        group_id, artifact_id = name.split(":", 1)
        url = f"{repository_url}/{_maven_path(group_id, artifact_id)}/maven-metadata.xml"
        response = self._get(url)
        if response is None:
            return []
        try:
            root = ET.fromstring(response.text)
        except ET.ParseError as e:
            log_parsing_error(
                "Unparseable maven-metadata.xml", "registry_clients", "_metadata_versions",
                file_path=sanitize_url(url), exception=e,
            )
            return []
        return [
            element.text.strip()
            for element in root.iter("version")
            if element.text and MavenVersion.correct(element.text.strip())
        ]

    def version_details(self, name: str) -> List[Dict[str, str]]:
        """
        List versions of ``groupId:artifactId`` with the repository each came from.

        Returns:
            List[Dict[str, str]]: ``{"version", "source_url"}`` entries
        """
        start_time = time.time()
        cache_hit = True

        def fetch() -> List[Dict[str, str]]:
            nonlocal cache_hit
            cache_hit = False
            seen = set()
            details = []
            for repository_url in self.repository_urls:
                for version in self._metadata_versions(repository_url, name):
                    if version not in seen:
                        seen.add(version)
                        details.append({"version": version, "source_url": repository_url})
            return details

        details = self._cached(name, ",".join(self.repository_urls), fetch)
        log_registry_lookup(
            name, self.get_registry_type(), len(details),
            response_time_ms=round((time.time() - start_time) * 1000, 2), cached=cache_hit,
        )
        return list(details)

    def list_versions(self, name: str) -> List[str]:
        return [detail["version"] for detail in self.version_details(name)]

    def fetch_pom(self, group_id: str, artifact_id: str, version: str) -> Optional[str]:
        """
        Fetch a published POM, e.g. a parent that is not part of the file set.

        Returns:
            Optional[str]: POM content, or None if no repository has it
        """
        path = f"{_maven_path(group_id, artifact_id)}/{version}/{artifact_id}-{version}.pom"

        def fetch() -> str:
            for repository_url in self.repository_urls:
                response = self._get(f"{repository_url}/{path}")
                if response is not None:
                    return response.text
            return ""

        content = self._cached(f"{group_id}:{artifact_id}:{version}", "pom", fetch)
        return content or None
