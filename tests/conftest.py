import os

import pytest

from stagehand.builders import BuilderRegistry, BuildOrchestrator
from stagehand.config import StagehandConfig
from stagehand.controllers import ActorController, PlaybookController
from stagehand.credentials import CredentialStore
from stagehand.resolver import PlaceholderManifestSource, Resolver
from stagehand.resources import EventRecorder, InMemoryObjectStore, Kind
from stagehand.schemas import ActorSpec, Partner, Playbook


class FakeRegistryClient:
    """Stands in for RegistryClient; answers from a set of known images."""

    def __init__(self, images=(), error=None):
        self.images = set(images)
        self.error = error
        self.probes = []

    def exists(self, image, credential=None):
        self.probes.append((image, credential))
        if self.error is not None:
            raise self.error
        return image in self.images


@pytest.fixture(autouse=True)
def isolated_home(monkeypatch, tmp_path):
    """Point STAGEHAND_HOME at a temp dir and drop STAGEHAND_* overrides."""
    for name in list(os.environ):
        if name.startswith("STAGEHAND_"):
            monkeypatch.delenv(name, raising=False)
    home = tmp_path / "stagehand_home"
    monkeypatch.setenv("STAGEHAND_HOME", str(home))
    return home


@pytest.fixture
def test_config():
    return StagehandConfig(
        registry_host="registry.test",
        registry_project="library",
        requeue_interval=120.0,
        error_backoff=60.0,
        max_backoff=900.0,
    )


@pytest.fixture
def store():
    return InMemoryObjectStore()


@pytest.fixture
def registry_client():
    return FakeRegistryClient()


@pytest.fixture
def credentials(test_config, registry_client):
    return CredentialStore(test_config, client=registry_client)


@pytest.fixture
def recorder(store):
    return EventRecorder(store)


@pytest.fixture
def resolver():
    return Resolver(PlaceholderManifestSource())


@pytest.fixture
def orchestrator(store, test_config, credentials):
    builders = BuilderRegistry.create_default(store, test_config, credentials)
    return BuildOrchestrator(builders, credentials, test_config)


@pytest.fixture
def playbook_controller(store, test_config, recorder, credentials, resolver):
    return PlaybookController(
        store, test_config, recorder=recorder, credentials=credentials, resolver=resolver,
    )


@pytest.fixture
def actor_controller(store, test_config, recorder, credentials, orchestrator):
    return ActorController(
        store, test_config, recorder=recorder, credentials=credentials, orchestrator=orchestrator,
    )


def actor_spec(name, repository=None, partners=None, **kwargs):
    return ActorSpec(
        name=name,
        repository=repository or f"https://git.test/{name}",
        reference="main",
        partners=partners,
        **kwargs,
    )


def partner(name, repository=None):
    return Partner(name=name, repository=repository or f"https://git.test/{name}", reference="main")


@pytest.fixture
def make_playbook(store):
    """Create a Playbook in the store and return its stored body."""

    def _make(name="demo", actors=None):
        actors = actors if actors is not None else [actor_spec("web")]
        playbook = Playbook.new(name=name, title=name.title(), actors=actors)
        return store.create(Kind.PLAYBOOK, playbook.to_body())

    return _make


@pytest.fixture
def make_actor(store):
    """Create an Actor in the store and return its stored body."""

    def _make(name="web", namespace="amp-demo", playbook="demo", **kwargs):
        spec = actor_spec(name, **kwargs)
        body = {
            "apiVersion": "stagehand.dev/v1",
            "kind": "Actor",
            "metadata": {
                "name": name,
                "namespace": namespace,
                "labels": {"stagehand.dev/playbook": playbook},
            },
            "spec": spec.to_dict(),
        }
        return store.create(Kind.ACTOR, body)

    return _make
