"""Registry clients: has this artifact version been published on a channel?

One client per channel kind, all answering the same question through
``exists(package_name, version)``. A client returns True or False only when
the registry actually answered; timeouts, connection failures and unexpected
statuses raise RegistryUnavailable so that the caller never mistakes "could
not check" for an answer.

Credentials are read from the environment in ``build_registry_clients`` and
nowhere else:

    LAZY_PUBLISH_PYPI_TOKEN          bearer token for a private index
    LAZY_PUBLISH_DOCKER_USERNAME     container registry credentials
    LAZY_PUBLISH_DOCKER_PASSWORD
    LAZY_PUBLISH_NPM_TOKEN           npm registry token
    LAZY_PUBLISH_BINARY_TOKEN        bearer token for the blob store
    LAZY_PUBLISH_BINARY_SAS          query string appended to blob URLs
"""

from __future__ import annotations

import os
import re
from collections.abc import Mapping
from typing import Protocol
from urllib.parse import quote

import httpx

from .config import RegistrySettings
from .errors import RegistryUnavailable
from .models import Channel

USER_AGENT = "lazy-publish"

OCI_MANIFEST_TYPES = ", ".join(
    [
        "application/vnd.oci.image.index.v1+json",
        "application/vnd.oci.image.manifest.v1+json",
        "application/vnd.docker.distribution.manifest.list.v2+json",
        "application/vnd.docker.distribution.manifest.v2+json",
    ]
)


class RegistryClient(Protocol):
    def exists(self, package_name: str, version: str) -> bool:
        """Whether ``version`` of ``package_name`` is already published."""
        ...


class HttpRegistry:
    """Shared plumbing for registries spoken to over HTTP."""

    channel: Channel

    def __init__(
        self,
        base_url: str,
        *,
        token: str | None = None,
        timeout: float = 10.0,
        transport: httpx.BaseTransport | None = None,
    ) -> None:
        headers = {"User-Agent": USER_AGENT}
        if token:
            headers["Authorization"] = f"Bearer {token}"
        self.base_url = base_url.rstrip("/")
        self.client = httpx.Client(
            headers=headers,
            timeout=timeout,
            transport=transport,
            follow_redirects=True,
        )

    def close(self) -> None:
        self.client.close()

    def _request(self, method: str, url: str, **kwargs) -> httpx.Response:
        try:
            return self.client.request(method, url, **kwargs)
        except httpx.TimeoutException as exc:
            raise RegistryUnavailable(self.channel.value, f"{method} {url}: timed out") from exc
        except httpx.HTTPError as exc:
            raise RegistryUnavailable(self.channel.value, f"{method} {url}: {exc}") from exc

    def _unexpected(self, response: httpx.Response) -> RegistryUnavailable:
        request = response.request
        return RegistryUnavailable(
            self.channel.value,
            f"{request.method} {request.url}: unexpected HTTP {response.status_code}",
        )

    def _found(self, response: httpx.Response) -> bool:
        """Map 2xx to True and 404 to False; anything else is unavailable."""
        if response.status_code == 404:
            return False
        if response.is_success:
            return True
        raise self._unexpected(response)


class PyPIRegistry(HttpRegistry):
    """Source-package registry speaking the PyPI JSON API."""

    channel = Channel.PYPI

    def exists(self, package_name: str, version: str) -> bool:
        url = f"{self.base_url}/pypi/{quote(package_name)}/{quote(version)}/json"
        return self._found(self._request("GET", url))


class NpmRegistry(HttpRegistry):
    """Language registry speaking the npm registry API."""

    channel = Channel.NPM

    def exists(self, package_name: str, version: str) -> bool:
        # Scoped packages keep their "@" but escape the slash: @scope%2fname
        url = f"{self.base_url}/{quote(package_name, safe='@')}"
        response = self._request(
            "GET", url, headers={"Accept": "application/vnd.npm.install-v1+json"}
        )
        if response.status_code == 404:
            return False
        if not response.is_success:
            raise self._unexpected(response)
        try:
            body = response.json()
        except ValueError as exc:
            raise RegistryUnavailable(self.channel.value, f"GET {url}: invalid JSON") from exc
        if not isinstance(body, dict):
            raise RegistryUnavailable(self.channel.value, f"GET {url}: unexpected JSON body")
        return version in body.get("versions", {})


class BlobStore(HttpRegistry):
    """Binary store: an object per artifact version, checked with HEAD.

    ``object_template`` is formatted with ``name`` and ``version`` to build
    the object key under ``base_url``. ``query`` (e.g. a SAS token) is
    appended to every URL.
    """

    channel = Channel.BINARY

    def __init__(
        self,
        base_url: str,
        *,
        object_template: str = "{name}/{name}-{version}.tar.gz",
        query: str | None = None,
        **kwargs,
    ) -> None:
        super().__init__(base_url, **kwargs)
        self.object_template = object_template
        self.query = query.lstrip("?") if query else None

    def object_url(self, package_name: str, version: str) -> str:
        key = self.object_template.format(name=package_name, version=version)
        url = f"{self.base_url}/{quote(key)}"
        return f"{url}?{self.query}" if self.query else url

    def exists(self, package_name: str, version: str) -> bool:
        return self._found(self._request("HEAD", self.object_url(package_name, version)))


_CHALLENGE_PARAM = re.compile(r'(\w+)="([^"]*)"')
DOCKER_HUB_HOSTS = frozenset({"registry-1.docker.io", "index.docker.io", "docker.io"})


class DockerRegistry(HttpRegistry):
    """Container registry speaking the OCI distribution API.

    Registries that answer 401 with a ``Bearer`` challenge get a token from
    the advertised realm (with basic credentials when configured) and the
    manifest request is retried once.
    """

    channel = Channel.DOCKER

    def __init__(
        self,
        base_url: str,
        *,
        username: str | None = None,
        password: str | None = None,
        **kwargs,
    ) -> None:
        super().__init__(base_url, **kwargs)
        self.auth = httpx.BasicAuth(username, password) if username and password else None

    def repository_for(self, image: str) -> str:
        # Docker Hub keeps official single-name images under "library/".
        if "/" not in image and httpx.URL(self.base_url).host in DOCKER_HUB_HOSTS:
            return f"library/{image}"
        return image

    @staticmethod
    def tag_for(version: str) -> str:
        # Image tags may not contain "+", so build metadata uses "_" instead.
        return version.replace("+", "_")

    def exists(self, package_name: str, version: str) -> bool:
        repository = self.repository_for(package_name)
        url = f"{self.base_url}/v2/{repository}/manifests/{self.tag_for(version)}"
        headers = {"Accept": OCI_MANIFEST_TYPES}
        response = self._request("HEAD", url, headers=headers, auth=self.auth)
        if response.status_code == 401:
            token = self._bearer_token(response)
            if token is not None:
                headers["Authorization"] = f"Bearer {token}"
                response = self._request("HEAD", url, headers=headers)
        return self._found(response)

    def _bearer_token(self, challenge: httpx.Response) -> str | None:
        header = challenge.headers.get("WWW-Authenticate", "")
        if not header.lower().startswith("bearer "):
            return None
        params = dict(_CHALLENGE_PARAM.findall(header))
        realm = params.pop("realm", None)
        if realm is None:
            return None
        response = self._request("GET", realm, params=params, auth=self.auth)
        if not response.is_success:
            raise self._unexpected(response)
        try:
            body = response.json()
        except ValueError as exc:
            raise RegistryUnavailable(self.channel.value, f"GET {realm}: invalid JSON") from exc
        if not isinstance(body, dict):
            raise RegistryUnavailable(self.channel.value, f"GET {realm}: unexpected JSON body")
        return body.get("token") or body.get("access_token")


def build_registry_clients(
    registries: RegistrySettings,
    *,
    timeout: float = 10.0,
    env: Mapping[str, str] | None = None,
) -> dict[Channel, HttpRegistry]:
    """Create one client per configured channel.

    The binary channel only gets a client when a blob store base URL is
    configured; decisions for channels without a client are reported as
    undetermined.
    """
    env = os.environ if env is None else env
    clients: dict[Channel, HttpRegistry] = {
        Channel.PYPI: PyPIRegistry(
            registries.pypi, token=env.get("LAZY_PUBLISH_PYPI_TOKEN"), timeout=timeout
        ),
        Channel.DOCKER: DockerRegistry(
            registries.docker,
            username=env.get("LAZY_PUBLISH_DOCKER_USERNAME"),
            password=env.get("LAZY_PUBLISH_DOCKER_PASSWORD"),
            timeout=timeout,
        ),
        Channel.NPM: NpmRegistry(
            registries.npm, token=env.get("LAZY_PUBLISH_NPM_TOKEN"), timeout=timeout
        ),
    }
    if registries.binary:
        clients[Channel.BINARY] = BlobStore(
            registries.binary,
            object_template=registries.binary_object,
            query=env.get("LAZY_PUBLISH_BINARY_SAS"),
            token=env.get("LAZY_PUBLISH_BINARY_TOKEN"),
            timeout=timeout,
        )
    return clients
