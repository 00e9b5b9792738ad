"""Tests for stagehand.schemas.

Covers source identity normalization, partner equality, image references,
status records and playbook preconditions.
"""

import base64

import pytest

from stagehand.errors import PreconditionError
from stagehand.schemas import (
    Actor,
    ActorSpec,
    Credential,
    CredentialKind,
    ObjectMeta,
    Partner,
    Playbook,
    PlaybookSpec,
    Status,
    playbook_namespace,
    source_url,
)


class TestSourceUrl:
    """Tests for source_url normalization."""

    def test_plain_repository(self):
        assert source_url("https://git.test/web") == "https://git.test/web"

    def test_strips_git_suffix_and_slashes(self):
        assert source_url("https://git.test/web.git/", "main", "/svc/") == "https://git.test/web#main:svc"

    def test_dot_path_is_root(self):
        assert source_url("https://git.test/web", "main", ".") == "https://git.test/web#main"

    def test_revision_distinguishes(self):
        assert source_url("https://git.test/web", "main") != source_url("https://git.test/web", "dev")


class TestPartner:
    """Partner identity is its url(), not its name."""

    def test_equal_by_url(self):
        a = Partner(name="api", repository="https://git.test/api", reference="main")
        b = Partner(name="backend", repository="https://git.test/api.git", reference="main")
        assert a == b
        assert len({a, b}) == 1

    def test_different_path_not_equal(self):
        a = Partner(name="api", repository="https://git.test/mono", path="api")
        b = Partner(name="api", repository="https://git.test/mono", path="web")
        assert a != b

    def test_commit_used_without_reference(self):
        p = Partner(name="api", repository="https://git.test/api", commit="abc123")
        assert p.revision == "abc123"
        assert p.url() == "https://git.test/api#abc123"

    def test_repository_required(self):
        with pytest.raises(ValueError, match="repository"):
            Partner(name="api", repository="")

    def test_matches_actor_with_same_source(self):
        p = Partner(name="api", repository="https://git.test/api", reference="main", path="svc")
        spec = ActorSpec(name="api", repository="https://git.test/api", reference="main", path="svc")
        assert spec.url() == p.url()


class TestActorSpec:
    """Tests for ActorSpec."""

    def test_name_required(self):
        with pytest.raises(ValueError):
            ActorSpec(name="")

    def test_bare_image_gets_registry_project_and_commit(self):
        spec = ActorSpec(name="web", commit="abc1234")
        assert spec.image_reference("registry.test") == "registry.test/library/web:abc1234"

    def test_namespaced_image(self):
        spec = ActorSpec(name="web", image="team/web", commit="abc1234")
        assert spec.image_reference("registry.test") == "registry.test/team/web:abc1234"

    def test_latest_without_commit(self):
        spec = ActorSpec(name="web")
        assert spec.image_reference("registry.test", "apps") == "registry.test/apps/web:latest"

    def test_full_reference_kept(self):
        spec = ActorSpec(name="web", image="ghcr.io/org/web:1.0", commit="abc1234")
        assert spec.image_reference("registry.test") == "ghcr.io/org/web:1.0"

    def test_registry_with_port(self):
        spec = ActorSpec(name="web", image="localhost:5000/web", commit="abc1234")
        assert spec.image_reference("registry.test") == "localhost:5000/web:abc1234"

    def test_from_dict(self):
        spec = ActorSpec.from_dict({
            "name": "web",
            "repository": "https://git.test/web",
            "live": True,
            "partners": [{"name": "api", "repository": "https://git.test/api"}],
            "environment": {"PORT": 8080},
        })
        assert spec.live is True
        assert spec.partners == [Partner(name="api", repository="https://git.test/api")]
        assert spec.environment == {"PORT": "8080"}

    def test_to_dict_omits_unset_optionals(self):
        data = ActorSpec(name="web", repository="https://git.test/web").to_dict()
        assert "reference" not in data
        assert "partners" not in data
        assert "environment" not in data


class TestStatus:
    """Tests for the status record."""

    def test_running_to_dict(self):
        assert Status.running(True, "AutoRun").to_dict() == {
            "state": "Running",
            "ready": True,
            "reason": "AutoRun",
            "message": None,
        }

    def test_observed_generation(self):
        status = Status.pending().observed(3)
        assert status.observed_generation == 3
        assert status.to_dict()["observedGeneration"] == 3
        assert Status.from_dict(status.to_dict()) == status

    def test_missing_status(self):
        assert Status.from_dict(None) is None
        assert Status.from_dict({}) is None

    def test_predicates(self):
        assert Status.pending().is_pending()
        assert Status.building().is_building()
        assert Status.deploying().is_deploying()
        assert Status.solving().is_solving()
        assert Status.running(False, "Waiting").is_running()
        assert not Status.pending().is_running()


class TestPlaybook:
    """Tests for Playbook and PlaybookSpec."""

    def test_namespace_derived_from_name(self):
        playbook = Playbook.new("demo", "Demo", [ActorSpec(name="web")])
        assert playbook.spec.namespace == "amp-demo"
        assert playbook_namespace("demo", "x-") == "x-demo"

    def test_validate_empty_actors(self):
        spec = PlaybookSpec(title="Demo", namespace="amp-demo", actors=[])
        with pytest.raises(PreconditionError, match="no actors"):
            spec.validate()

    def test_validate_duplicate_names(self):
        spec = PlaybookSpec(
            title="Demo",
            namespace="amp-demo",
            actors=[ActorSpec(name="web"), ActorSpec(name="web")],
        )
        with pytest.raises(PreconditionError, match="Duplicate"):
            spec.validate()

    def test_body_round_trip(self):
        playbook = Playbook.new("demo", "Demo", [ActorSpec(name="web", repository="https://git.test/web")])
        playbook.status = Status.solving()
        body = playbook.to_body()
        assert body["apiVersion"] == "stagehand.dev/v1"
        assert body["kind"] == "Playbook"

        parsed = Playbook.from_body(body)
        assert parsed.spec.namespace == "amp-demo"
        assert parsed.spec.get_actor("web").repository == "https://git.test/web"
        assert parsed.status.is_solving()

    def test_reference_points_at_playbook_namespace(self):
        playbook = Playbook.new("demo", "Demo", [ActorSpec(name="web")])
        assert playbook.reference()["namespace"] == "amp-demo"

    def test_reference_before_namespace_is_assigned(self):
        playbook = Playbook.from_body({"metadata": {"name": "demo"}, "spec": {"title": "Demo"}})
        assert playbook.spec.namespace == ""
        assert playbook.reference()["namespace"] == "default"

    def test_owner_reference(self):
        playbook = Playbook.new("demo", "Demo", [ActorSpec(name="web")])
        playbook.metadata.uid = "uid-1"
        owner = playbook.owner_reference()
        assert owner["uid"] == "uid-1"
        assert owner["controller"] is True


class TestActor:
    """Tests for the Actor resource wrapper."""

    def test_from_body(self):
        actor = Actor.from_body({
            "metadata": {
                "name": "web",
                "namespace": "amp-demo",
                "generation": 2,
                "labels": {"stagehand.dev/playbook": "demo"},
            },
            "spec": {"name": "web", "repository": "https://git.test/web"},
        })
        assert actor.key == "amp-demo/web"
        assert actor.playbook == "demo"
        assert actor.status is None
        assert actor.metadata.generation == 2

    def test_metadata_name_required(self):
        with pytest.raises(ValueError):
            ObjectMeta.from_dict({})


class TestCredential:
    """Tests for Credential."""

    def test_repr_hides_secret(self):
        credential = Credential.basic(CredentialKind.IMAGE, "registry.test", "admin", "s3cret")
        assert "s3cret" not in repr(credential)

    def test_docker_config_entry(self):
        credential = Credential.basic(CredentialKind.IMAGE, "registry.test", "admin", "s3cret")
        entry = credential.docker_config_entry()
        assert base64.b64decode(entry["auth"]).decode() == "admin:s3cret"
        assert credential.basic_auth() == ("admin", "s3cret")

    def test_bearer_header(self):
        credential = Credential.bearer(CredentialKind.IMAGE, "registry.test", "tok")
        assert credential.auth_header() == "Bearer tok"
        assert credential.basic_auth() is None
