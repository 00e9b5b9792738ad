"""
Credential store shared by every reconciler.

Credentials are read on every build check and replaced wholesale by the
periodic refresh, so access goes through a reader/writer lock: any number
of reconcilers read concurrently, a refresh waits for them and blocks new
readers while it swaps the map.

The store is created once at operator startup and injected into each
reconcile context; there is no module-level instance.
"""

import base64
import json
import logging
import threading
from contextlib import contextmanager
from pathlib import Path
from typing import Iterable, Iterator, Optional

from stagehand.config import StagehandConfig
from stagehand.registry import RegistryClient, normalize_host, parse_image_reference
from stagehand.schemas import Credential, CredentialKind

logger = logging.getLogger(__name__)


class ReadWriteLock:
    """Writer-preferring reader/writer lock."""

    def __init__(self):
        self._cond = threading.Condition(threading.Lock())
        self._readers = 0
        self._writer = False
        self._waiting_writers = 0

    def acquire_read(self) -> None:
        with self._cond:
            while self._writer or self._waiting_writers:
                self._cond.wait()
            self._readers += 1

    def release_read(self) -> None:
        with self._cond:
            self._readers -= 1
            if self._readers == 0:
                self._cond.notify_all()

    def acquire_write(self) -> None:
        with self._cond:
            self._waiting_writers += 1
            try:
                while self._writer or self._readers:
                    self._cond.wait()
            finally:
                self._waiting_writers -= 1
            self._writer = True

    def release_write(self) -> None:
        with self._cond:
            self._writer = False
            self._cond.notify_all()

    @contextmanager
    def read(self) -> Iterator[None]:
        self.acquire_read()
        try:
            yield
        finally:
            self.release_read()

    @contextmanager
    def write(self) -> Iterator[None]:
        self.acquire_write()
        try:
            yield
        finally:
            self.release_write()


def load_docker_config(path: Path) -> list[Credential]:
    """
    Read image registry credentials from a docker config.json.

    Entries that carry no usable secret are skipped with a warning.

    Raises:
        OSError: If the file cannot be read
        ValueError: If the file is not valid JSON
    """
    with open(path, "r") as f:
        data = json.load(f)

    credentials = []
    for key, entry in (data.get("auths") or {}).items():
        host = normalize_host(key)
        username, password = entry.get("username"), entry.get("password")
        if entry.get("auth") and not (username and password):
            try:
                decoded = base64.b64decode(entry["auth"]).decode()
            except (ValueError, UnicodeDecodeError):
                logger.warning(f"Skipping malformed auth entry for {host} in {path}")
                continue
            username, _, password = decoded.partition(":")

        token = entry.get("registrytoken") or entry.get("identitytoken")
        if username and password:
            credentials.append(Credential.basic(CredentialKind.IMAGE, host, username, password))
        elif token:
            credentials.append(Credential.bearer(CredentialKind.IMAGE, host, token))
        else:
            logger.warning(f"Skipping credential for {host} in {path}: no secret")
    return credentials


class CredentialStore:
    """
    Registry credentials keyed by host.

    Usage:
        credentials = CredentialStore(config)
        credentials.refresh()
        credentials.image_exists("harbor.local/library/web:abc1234")
    """

    def __init__(self, config: StagehandConfig, client: Optional[RegistryClient] = None):
        self.config = config
        self.client = client or RegistryClient(
            timeout=config.registry_timeout,
            insecure_registries=(config.registry_host,) if config.registry_insecure else (),
        )
        self.lock = ReadWriteLock()
        self.registries: dict[str, Credential] = {}

    @contextmanager
    def read(self) -> Iterator[dict[str, Credential]]:
        """Hold the read lock and expose the credential map."""
        with self.lock.read():
            yield self.registries

    def replace(self, credentials: Iterable[Credential]) -> None:
        """Swap in a new set of credentials."""
        registries = {normalize_host(c.host): c for c in credentials}
        with self.lock.write():
            self.registries = registries

    def configured_credential(self) -> Optional[Credential]:
        """Credential for the configured registry, if a username/password is set."""
        if self.config.registry_username and self.config.registry_password:
            return Credential.basic(
                CredentialKind.IMAGE,
                self.config.registry_host,
                self.config.registry_username,
                self.config.registry_password,
            )
        return None

    def refresh(self) -> int:
        """
        Reload credentials from the docker config file and the configuration.

        The configured registry credential wins over a docker config entry
        for the same host.

        Returns:
            Number of credentials loaded
        """
        credentials: list[Credential] = []
        if self.config.docker_config:
            path = Path(self.config.docker_config).expanduser()
            if path.exists():
                credentials.extend(load_docker_config(path))
            else:
                logger.warning(f"Docker config {path} not found")

        configured = self.configured_credential()
        if configured is not None:
            credentials.append(configured)

        self.replace(credentials)
        logger.debug(f"Loaded {len(credentials)} registry credential(s)")
        return len(credentials)

    def get(self, host: str) -> Optional[Credential]:
        with self.read() as registries:
            return registries.get(normalize_host(host))

    def resolve(self, image: str) -> Optional[Credential]:
        """
        Find the credential for the registry hosting `image`.

        Raises:
            ValueError: If the image reference cannot be parsed
        """
        registry, _, _ = parse_image_reference(image)
        return self.get(registry)

    def probe_exists(self, image: str, credential: Optional[Credential] = None) -> bool:
        return self.client.exists(image, credential)

    def image_exists(self, image: str) -> bool:
        """
        Probe the registry for `image` using whatever credential applies.

        A credential lookup failure degrades to an anonymous probe.

        Raises:
            RegistryProbeError: If the registry could not answer
        """
        try:
            credential = self.resolve(image)
        except ValueError as e:
            logger.error(f"Error resolving registry credential for {image}: {e}")
            credential = None
        return self.probe_exists(image, credential)


class CredentialRefresher(threading.Thread):
    """Background thread calling CredentialStore.refresh() every `interval` seconds."""

    def __init__(self, credentials: CredentialStore, interval: float):
        super().__init__(name="stagehand-credential-refresher", daemon=True)
        self.credentials = credentials
        self.interval = interval
        self._stopped = threading.Event()

    def run(self) -> None:
        while not self._stopped.wait(self.interval):
            try:
                self.credentials.refresh()
            except (OSError, ValueError) as e:
                logger.error(f"Credential refresh failed: {e}")

    def stop(self, timeout: Optional[float] = None) -> None:
        self._stopped.set()
        if self.is_alive():
            self.join(timeout)
