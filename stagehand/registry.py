"""
Image registry client.

Answers a single question: does this image reference exist? The probe is a
`HEAD /v2/<repository>/manifests/<tag>` against the Docker Registry HTTP API
v2, following the bearer token challenge most registries (Docker Hub,
Harbor, GHCR) answer with.

Outcomes:
- 200 -> True
- 404 -> False
- anything else, including connection failures -> RegistryProbeError

A probe that could not be answered is never read as "image absent".
"""

import logging
import re
from typing import Optional

import requests

from stagehand.errors import RegistryProbeError
from stagehand.schemas import Credential

logger = logging.getLogger(__name__)

DOCKER_HUB = "docker.io"
DOCKER_HUB_API = "registry-1.docker.io"
DOCKER_HUB_ALIASES = (DOCKER_HUB, "index.docker.io", DOCKER_HUB_API)

MANIFEST_TYPES = ", ".join([
    "application/vnd.oci.image.index.v1+json",
    "application/vnd.oci.image.manifest.v1+json",
    "application/vnd.docker.distribution.manifest.list.v2+json",
    "application/vnd.docker.distribution.manifest.v2+json",
])

_CHALLENGE_PARAM = re.compile(r'(\w+)="([^"]*)"')


def parse_image_reference(reference: str) -> tuple[str, str, str]:
    """
    Split an image reference into (registry, repository, tag).

    Follows the docker conventions: a first path component containing a
    dot or a port (or "localhost") is a registry host, otherwise the image
    lives on Docker Hub, where single-component names are under "library/".
    Digests are returned in place of the tag.

    Raises:
        ValueError: If the reference is empty
    """
    reference = (reference or "").strip()
    if not reference:
        raise ValueError("Empty image reference")

    name, tag = reference, "latest"
    if "@" in name:
        name, tag = name.split("@", 1)
    else:
        last = name.rsplit("/", 1)[-1]
        if ":" in last:
            name, tag = name.rsplit(":", 1)

    first, sep, rest = name.partition("/")
    if sep and ("." in first or ":" in first or first == "localhost"):
        registry, repository = first, rest
    else:
        registry, repository = DOCKER_HUB, name

    if registry in DOCKER_HUB_ALIASES and "/" not in repository:
        repository = f"library/{repository}"
    return registry, repository, tag


def normalize_host(host: str) -> str:
    """Reduce a docker config key ("https://index.docker.io/v1/") to a host."""
    host = host.strip()
    for prefix in ("https://", "http://"):
        if host.startswith(prefix):
            host = host[len(prefix):]
    host = host.split("/", 1)[0]
    return DOCKER_HUB if host in DOCKER_HUB_ALIASES else host


def parse_challenge(header: str) -> tuple[str, dict[str, str]]:
    """Parse a WWW-Authenticate header into (scheme, params)."""
    scheme, _, rest = header.strip().partition(" ")
    return scheme.lower(), dict(_CHALLENGE_PARAM.findall(rest))


class RegistryClient:
    """
    Minimal Docker Registry HTTP API v2 client.

    Usage:
        client = RegistryClient(timeout=10.0)
        client.exists("harbor.local/library/web:abc1234", credential)
    """

    def __init__(
        self,
        timeout: float = 10.0,
        insecure_registries: tuple[str, ...] = (),
        session: Optional[requests.Session] = None,
    ):
        self.timeout = timeout
        self.insecure_registries = set(insecure_registries)
        self.session = session or requests.Session()
        self.session.headers.update({"User-Agent": "stagehand"})

    def _base_url(self, registry: str) -> str:
        host = DOCKER_HUB_API if registry in DOCKER_HUB_ALIASES else registry
        scheme = "http" if registry in self.insecure_registries else "https"
        return f"{scheme}://{host}"

    def _token(self, challenge: dict[str, str], credential: Optional[Credential]) -> Optional[str]:
        realm = challenge.get("realm")
        if not realm:
            return None
        params = {k: v for k, v in challenge.items() if k in ("service", "scope")}
        auth = credential.basic_auth() if credential else None
        response = self.session.get(realm, params=params, auth=auth, timeout=self.timeout)
        if response.status_code != 200:
            raise RegistryProbeError(f"Token endpoint {realm} answered {response.status_code}")
        body = response.json()
        return body.get("token") or body.get("access_token")

    def exists(self, image: str, credential: Optional[Credential] = None) -> bool:
        """
        Return True if the image manifest exists.

        Raises:
            RegistryProbeError: If the registry could not answer
        """
        try:
            registry, repository, tag = parse_image_reference(image)
        except ValueError as e:
            raise RegistryProbeError(str(e)) from e

        url = f"{self._base_url(registry)}/v2/{repository}/manifests/{tag}"
        headers = {"Accept": MANIFEST_TYPES}
        if credential is not None and credential.token:
            headers["Authorization"] = credential.auth_header()

        try:
            response = self.session.head(url, headers=headers, timeout=self.timeout)

            if response.status_code == 401:
                scheme, challenge = parse_challenge(response.headers.get("WWW-Authenticate", ""))
                if scheme == "bearer":
                    token = self._token(challenge, credential)
                    if token:
                        headers["Authorization"] = f"Bearer {token}"
                elif scheme == "basic" and credential is not None and credential.is_basic:
                    headers["Authorization"] = credential.auth_header()
                if "Authorization" in headers:
                    response = self.session.head(url, headers=headers, timeout=self.timeout)
        except requests.RequestException as e:
            raise RegistryProbeError(f"Registry {registry} unreachable: {e}") from e

        if response.status_code == 200:
            logger.debug(f"Image {image} exists")
            return True
        if response.status_code == 404:
            logger.debug(f"Image {image} not found")
            return False
        raise RegistryProbeError(f"Registry {registry} answered {response.status_code} for {image}")
