"""
Dependency resolver - grows a Playbook's actor list to its partner closure.

Each Solving pass computes

    fetches = union(partners of every actor) - existing actors

where identity is the normalized source url (see schemas.source_url). Every
fetched partner is read into an ActorSpec and appended to the playbook. The
pass that finds nothing left to fetch declares the playbook converged.
Because the existing set only grows, the closure terminates even when
partners form a cycle.
"""

import logging
from abc import ABC, abstractmethod
from typing import Any, Iterable, Optional

import requests
import yaml

from stagehand.constants import MANIFEST_FILENAME
from stagehand.errors import ResolveError
from stagehand.resources import playbook as playbook_resource
from stagehand.resources.event import EventRecorder
from stagehand.resources.store import ObjectStore
from stagehand.schemas import ActorSpec, Partner, Playbook

logger = logging.getLogger(__name__)


def compute_fetches(actors: Iterable[ActorSpec]) -> set[Partner]:
    """Partners referenced by `actors` that are not actors themselves."""
    actors = list(actors)
    existing = {actor.url() for actor in actors}
    fetches: set[Partner] = set()
    for actor in actors:
        for partner in actor.partners or []:
            if partner.url() not in existing:
                fetches.add(partner)
    return fetches


def detect_cycles(actors: Iterable[ActorSpec]) -> list[tuple[str, str]]:
    """
    Find partner edges pointing back to an ancestor.

    Returns:
        (from_url, to_url) for every back edge, in discovery order
    """
    edges: dict[str, list[str]] = {}
    for actor in actors:
        edges.setdefault(actor.url(), []).extend(p.url() for p in actor.partners or [])

    back_edges: list[tuple[str, str]] = []
    visited: set[str] = set()

    def visit(node: str, path: list[str]) -> None:
        visited.add(node)
        path.append(node)
        for target in edges.get(node, []):
            if target in path:
                back_edges.append((node, target))
            elif target not in visited:
                visit(target, path)
        path.pop()

    for node in sorted(edges):
        if node not in visited:
            visit(node, [])
    return back_edges


# =============================================================================
# MANIFEST SOURCES
# =============================================================================


class ManifestSource(ABC):
    """Reads the actor definition a partner points at."""

    @abstractmethod
    def fetch(self, partner: Partner) -> ActorSpec:
        """
        Build the ActorSpec for a partner.

        The returned spec carries the partner's identity (name, repository,
        reference, path, commit) so that it matches the partner by url().

        Raises:
            ResolveError: If the partner could not be read
        """
        pass


def apply_partner_identity(data: dict[str, Any], partner: Partner) -> ActorSpec:
    """Overlay a partner's identity on manifest data and build the spec."""
    data = dict(data)
    data.update({
        "name": partner.name,
        "repository": partner.repository,
        "reference": partner.reference,
        "path": partner.path,
        "commit": partner.commit,
    })
    try:
        return ActorSpec.from_dict(data)
    except (KeyError, TypeError, ValueError) as e:
        raise ResolveError(f"Invalid actor manifest for partner {partner.name}: {e}") from e


class HttpManifestSource(ManifestSource):
    """
    Fetches `.stagehand.yaml` manifests over HTTP.

    The URL is rendered from a template with `{repository}`, `{revision}`
    and `{path}` placeholders, e.g. "{repository}/raw/{revision}/{path}".
    """

    def __init__(
        self,
        url_template: str,
        timeout: float = 10.0,
        session: Optional[requests.Session] = None,
    ):
        self.url_template = url_template
        self.timeout = timeout
        self.session = session or requests.Session()

    def manifest_url(self, partner: Partner) -> str:
        repository = partner.repository.rstrip("/")
        if repository.endswith(".git"):
            repository = repository[:-4]
        subpath = (partner.path or "").strip("/")
        path = f"{subpath}/{MANIFEST_FILENAME}" if subpath and subpath != "." else MANIFEST_FILENAME
        return self.url_template.format(
            repository=repository,
            revision=partner.revision or "HEAD",
            path=path,
        )

    def fetch(self, partner: Partner) -> ActorSpec:
        url = self.manifest_url(partner)
        logger.debug(f"Fetching manifest for partner {partner.name} from {url}")
        try:
            response = self.session.get(url, timeout=self.timeout)
            response.raise_for_status()
        except requests.RequestException as e:
            raise ResolveError(f"Failed to fetch manifest for partner {partner.name}: {e}") from e

        try:
            data = yaml.safe_load(response.text) or {}
        except yaml.YAMLError as e:
            raise ResolveError(f"Invalid YAML in manifest for partner {partner.name}: {e}") from e
        if not isinstance(data, dict):
            raise ResolveError(f"Manifest for partner {partner.name} must be a mapping")

        return apply_partner_identity(data, partner)


class PlaceholderManifestSource(ManifestSource):
    """Fills every partner with fixed metadata; for tests and dry runs."""

    def __init__(self, description: str = "Placeholder actor", image: str = ""):
        self.description = description
        self.image = image

    def fetch(self, partner: Partner) -> ActorSpec:
        data = {"description": self.description, "image": self.image or partner.name}
        return apply_partner_identity(data, partner)


# =============================================================================
# RESOLVER
# =============================================================================


class Resolver:
    """
    Computes and applies the partner closure of a playbook.

    Usage:
        resolver = Resolver(HttpManifestSource(config.manifest_url))
        converged = resolver.solve(store, playbook, recorder)
    """

    def __init__(self, source: ManifestSource):
        self.source = source

    def read_partner(self, partner: Partner) -> ActorSpec:
        spec = self.source.fetch(partner)
        if spec.url() != partner.url():
            raise ResolveError(
                f"Manifest for partner {partner.name} resolved to {spec.url()}, expected {partner.url()}"
            )
        return spec

    def solve(self, store: ObjectStore, playbook: Playbook, recorder: Optional[EventRecorder] = None) -> bool:
        """
        Append every missing partner to the playbook.

        Returns:
            True if nothing was left to fetch (the closure is complete)

        Raises:
            ResolveError: If a partner could not be read
            StoreError: If appending to the playbook failed
            PreconditionError: If a partner name is already taken by another actor
        """
        for source, target in detect_cycles(playbook.spec.actors):
            logger.warning(f"Playbook {playbook.name}: partner cycle {source} -> {target}")

        fetches = compute_fetches(playbook.spec.actors)
        logger.debug(f"Playbook {playbook.name}: {len(fetches)} partner(s) to fetch")
        if not fetches:
            return True

        for partner in sorted(fetches, key=lambda p: p.url()):
            logger.info(f"Playbook {playbook.name}: fetching partner {partner.url()}")
            spec = self.read_partner(partner)
            playbook_resource.add(store, playbook, spec)
            if recorder is not None:
                recorder.normal(playbook.reference(), "PartnerAdded", f"Added actor {spec.name} from {spec.url()}")
        return False
