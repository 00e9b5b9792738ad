"""Tests for resource documents and the per-kind sync helpers."""

import base64
import json
from unittest.mock import MagicMock

import pytest

from conftest import actor_spec
from stagehand.errors import PreconditionError, SerializationError, StoreError
from stagehand.resources import EventRecorder, Kind
from stagehand.resources import (
    actor as actor_resources,
    deployment,
    documents,
    finalizers,
    image,
    job,
    namespace,
    playbook as playbook_resources,
    secret,
    service_account,
)
from stagehand.schemas import Actor, Credential, CredentialKind, Playbook, Status

CREDENTIAL = Credential.basic(CredentialKind.IMAGE, "registry.test", "robot", "s3cret")


@pytest.fixture
def playbook(make_playbook):
    return Playbook.from_body(make_playbook())


@pytest.fixture
def actor(make_actor):
    return Actor.from_body(make_actor(commit="abcdef1234567"))


# =============================================================================
# DOCUMENTS
# =============================================================================


class TestDocuments:
    """Pure constructors for every document we write."""

    def test_names(self):
        assert documents.secret_name(CREDENTIAL) == "image-registry-test"
        spec = actor_spec("Web_App", commit="abcdef1234567")
        assert documents.build_name(spec) == "web-app-abcdef1-builder"
        assert documents.image_resource_name(spec) == "web-app-abcdef1"
        assert documents.build_name(actor_spec("web")) == "web-builder"

    def test_namespace_labels(self):
        body = documents.namespace("amp-demo", "demo")
        assert body["metadata"]["labels"]["stagehand.dev/playbook"] == "demo"
        assert body["metadata"]["labels"]["app.kubernetes.io/managed-by"] == "stagehand"

    def test_is_owned(self):
        body = documents.namespace("amp-demo", "demo")
        assert documents.is_owned(body)
        assert documents.is_owned(body, "demo")
        assert not documents.is_owned(body, "other")
        assert not documents.is_owned({"metadata": {"name": "shared"}})
        assert not documents.is_owned(None)

    def test_namespace_requires_name(self):
        with pytest.raises(SerializationError):
            documents.namespace("", "demo")

    def test_registry_secret_encodes_docker_config(self):
        body = documents.registry_secret("amp-demo", CREDENTIAL)
        assert body["type"] == "kubernetes.io/dockerconfigjson"
        config = json.loads(base64.b64decode(body["data"][".dockerconfigjson"]))
        entry = config["auths"]["registry.test"]
        assert entry["username"] == "robot"
        assert base64.b64decode(entry["auth"]).decode() == "robot:s3cret"

    def test_registry_secret_requires_a_secret(self):
        empty = Credential(kind=CredentialKind.IMAGE, host="registry.test")
        with pytest.raises(SerializationError):
            documents.registry_secret("amp-demo", empty)

    def test_service_account_patch_skips_attached_secret(self):
        account = {"secrets": [{"name": "s"}], "imagePullSecrets": [{"name": "s"}]}
        assert documents.service_account_patch(account, "s") is None
        assert documents.service_account_patch({}, "s") == {
            "secrets": [{"name": "s"}],
            "imagePullSecrets": [{"name": "s"}],
        }

    def test_service_account_unpatch(self):
        account = {"secrets": [{"name": "s"}, {"name": "t"}]}
        assert documents.service_account_unpatch(account, "s") == {"secrets": [{"name": "t"}]}
        assert documents.service_account_unpatch(account, "x") is None

    def test_actor_resource_owned_by_playbook(self, playbook):
        body = documents.actor_resource(playbook, playbook.spec.actors[0])
        meta = body["metadata"]
        assert meta["namespace"] == "amp-demo"
        assert meta["ownerReferences"][0]["uid"] == playbook.metadata.uid
        assert meta["labels"]["stagehand.dev/actor"] == "web"
        assert body["spec"]["repository"] == "https://git.test/web"

    def test_actor_resource_requires_owner_uid(self):
        playbook = Playbook.new(name="demo", title="Demo", actors=[actor_spec("web")])
        with pytest.raises(SerializationError):
            documents.actor_resource(playbook, playbook.spec.actors[0])

    def test_build_job(self, actor):
        body = documents.build_job(
            actor, "registry.test/library/web:abcdef1234567", "builder:latest", "git:latest",
            registry_secret="image-registry-test",
        )
        pod = body["spec"]["template"]["spec"]
        assert body["metadata"]["name"] == "web-abcdef1-builder"
        assert "checkout abcdef1234567" in pod["initContainers"][0]["command"][2]
        creator = pod["containers"][0]
        assert creator["args"] == ["-app=/workspace/source", "registry.test/library/web:abcdef1234567"]
        assert {"name": "DOCKER_CONFIG", "value": "/home/cnb/.docker"} in creator["env"]
        assert pod["volumes"][1]["secret"]["secretName"] == "image-registry-test"

    def test_build_job_without_secret_or_image(self, actor):
        body = documents.build_job(actor, "img", "builder:latest", "git:latest")
        assert len(body["spec"]["template"]["spec"]["volumes"]) == 1
        with pytest.raises(SerializationError):
            documents.build_job(actor, "", "builder:latest", "git:latest")

    def test_kpack_image_sub_path(self, make_actor):
        actor = Actor.from_body(make_actor(path="/services/web/"))
        body = documents.kpack_image(actor, "img", "cluster-builder")
        assert body["spec"]["source"]["subPath"] == "services/web"
        assert body["spec"]["source"]["git"]["revision"] == "main"
        assert body["spec"]["builder"] == {"name": "cluster-builder", "kind": "ClusterBuilder"}

    def test_deployment(self, make_actor):
        actor = Actor.from_body(make_actor(environment={"B": "2", "A": "1"}, live=True))
        body = documents.deployment(actor, "img")
        container = body["spec"]["template"]["spec"]["containers"][0]
        assert container["env"] == [{"name": "A", "value": "1"}, {"name": "B", "value": "2"}]
        assert container["imagePullPolicy"] == "Always"
        assert body["spec"]["selector"]["matchLabels"] == {"stagehand.dev/actor": "web"}

    def test_event_requires_namespace(self):
        with pytest.raises(SerializationError):
            documents.event({"name": "demo"}, "Reason", "message")


# =============================================================================
# SYNC HELPERS
# =============================================================================


class TestNamespace:
    def test_create_once(self, store, playbook):
        assert namespace.create(store, playbook) is True
        assert namespace.create(store, playbook) is False
        assert len(store.mutations(Kind.NAMESPACE, "create")) == 1

    def test_delete(self, store, playbook):
        namespace.create(store, playbook)
        assert namespace.delete(store, playbook) is True
        assert not namespace.exists(store, playbook)

    def test_delete_keeps_foreign_namespace(self, store, playbook):
        store.create(Kind.NAMESPACE, {"metadata": {"name": "amp-demo"}})

        assert namespace.create(store, playbook) is False
        assert namespace.delete(store, playbook) is False
        assert namespace.exists(store, playbook)

    def test_delete_keeps_namespace_of_another_playbook(self, store, playbook):
        store.create(Kind.NAMESPACE, documents.namespace("amp-demo", "other"))

        assert namespace.delete(store, playbook) is False
        assert namespace.exists(store, playbook)

    def test_owned(self, store, playbook):
        namespace.create(store, playbook)
        store.create(Kind.NAMESPACE, {"metadata": {"name": "shared"}})

        assert namespace.owned(store, "demo") == ["amp-demo"]
        assert namespace.owned(store, "other") == []


class TestSecret:
    def test_create_refresh_noop(self, store):
        assert secret.create(store, "amp-demo", CREDENTIAL) is True
        assert secret.create(store, "amp-demo", CREDENTIAL) is False

        rotated = Credential.basic(CredentialKind.IMAGE, "registry.test", "robot", "rotated")
        assert secret.create(store, "amp-demo", rotated) is True
        assert len(store.mutations(Kind.SECRET, "patch")) == 1

    def test_delete_only_managed_secret(self, store):
        secret.create(store, "amp-demo", CREDENTIAL)
        assert secret.owned(store, "amp-demo", CREDENTIAL)
        assert secret.delete(store, "amp-demo", CREDENTIAL) is True
        assert not secret.exists(store, "amp-demo", CREDENTIAL)

        store.create(Kind.SECRET, {"metadata": {"name": "image-registry-test", "namespace": "amp-demo"}})
        assert not secret.owned(store, "amp-demo", CREDENTIAL)
        assert secret.delete(store, "amp-demo", CREDENTIAL) is False
        assert secret.exists(store, "amp-demo", CREDENTIAL)


class TestServiceAccount:
    def test_missing_account_is_transient(self, store):
        with pytest.raises(StoreError):
            service_account.patch(store, "amp-demo", "default", CREDENTIAL)

    def test_patch_once_then_unpatch(self, store):
        store.create(Kind.SERVICE_ACCOUNT, {"metadata": {"name": "default", "namespace": "amp-demo"}})

        assert service_account.patch(store, "amp-demo", "default", CREDENTIAL) is True
        assert service_account.patch(store, "amp-demo", "default", CREDENTIAL) is False
        account = store.get(Kind.SERVICE_ACCOUNT, "default", "amp-demo")
        assert account["imagePullSecrets"] == [{"name": "image-registry-test"}]

        assert service_account.unpatch(store, "amp-demo", "default", CREDENTIAL) is True
        assert service_account.unpatch(store, "amp-demo", "default", CREDENTIAL) is False


class TestJob:
    def test_update_only_on_drift(self, store, actor):
        body = documents.build_job(actor, "img", "builder:latest", "git:latest")
        job.create(store, actor, body)
        assert job.update(store, actor, body) is False

        body["metadata"]["annotations"]["stagehand.dev/revision"] = "other"
        assert job.update(store, actor, body) is True

    def test_update_missing(self, store, actor):
        body = documents.build_job(actor, "img", "builder:latest", "git:latest")
        with pytest.raises(StoreError):
            job.update(store, actor, body)

    @pytest.mark.parametrize("status,expected", [
        ({}, None),
        ({"conditions": [{"type": "Complete", "status": "True"}]}, True),
        ({"conditions": [{"type": "Failed", "status": "True"}]}, False),
        ({"conditions": [{"type": "Complete", "status": "False"}]}, None),
        ({"succeeded": 1}, True),
        ({"failed": 1}, False),
    ])
    def test_completed(self, status, expected):
        assert job.completed({"spec": {"backoffLimit": 0}, "status": status}) is expected

    def test_delete_all(self, store, make_actor):
        first = Actor.from_body(make_actor(commit="1111111aaaa"))
        job.create(store, first, documents.build_job(first, "img", "b", "g"))
        second = Actor.from_body(store.get(Kind.ACTOR, "web", "amp-demo"))
        second.spec.commit = "2222222bbbb"
        job.create(store, second, documents.build_job(second, "img", "b", "g"))

        assert job.delete_all(store, first) == 2
        assert store.list(Kind.JOB, "amp-demo") == []


class TestImage:
    def test_update_only_on_drift(self, store, actor):
        body = documents.kpack_image(actor, "img", "cluster-builder")
        image.create(store, actor, body)
        assert image.update(store, actor, body) is False

        body["spec"]["tag"] = "img2"
        assert image.update(store, actor, body) is True
        assert image.get(store, actor)["spec"]["tag"] == "img2"

    def test_completed(self):
        ready = {"status": {"conditions": [{"type": "Ready", "status": "True"}]}}
        failed = {"status": {"conditions": [{"type": "Ready", "status": "False"}]}}
        unknown = {"status": {"conditions": [{"type": "Ready", "status": "Unknown"}]}}
        assert image.completed(ready) is True
        assert image.completed(failed) is False
        assert image.completed(unknown) is None

    def test_delete_all_without_kpack(self, actor):
        store = MagicMock()
        store.list.side_effect = StoreError("no such resource", status=404)
        assert image.delete_all(store, actor) == 0

    def test_delete_all_reraises_other_errors(self, actor):
        store = MagicMock()
        store.list.side_effect = StoreError("boom", status=500)
        with pytest.raises(StoreError):
            image.delete_all(store, actor)


class TestDeployment:
    def test_create_then_update(self, store, actor):
        body = documents.deployment(actor, "img:1")
        deployment.create(store, actor, body)
        assert deployment.update(store, actor, body) is False

        assert deployment.update(store, actor, documents.deployment(actor, "img:2")) is True
        assert deployment.exists(store, actor)
        assert deployment.delete(store, actor) is True


class TestActorResource:
    def test_update_noop_and_field_removal(self, store, playbook):
        body = documents.actor_resource(playbook, actor_spec("web", path="svc"))
        actor_resources.create(store, body)
        assert actor_resources.update(store, body) is False

        desired = documents.actor_resource(playbook, actor_spec("web"))
        assert actor_resources.update(store, desired) is True
        stored = actor_resources.get(store, "amp-demo", "web")
        assert stored.spec.path is None

    def test_patch_status_stamps_generation(self, store, actor):
        updated = actor_resources.patch_status(store, actor, Status.building())
        assert updated.status.is_building()
        assert updated.status.observed_generation == actor.metadata.generation


class TestPlaybookResource:
    def test_add(self, store, playbook):
        updated = playbook_resources.add(store, playbook, actor_spec("db"))
        assert [a.name for a in updated.spec.actors] == ["web", "db"]
        assert updated.metadata.generation == 2

    def test_add_duplicate(self, store, playbook):
        with pytest.raises(PreconditionError):
            playbook_resources.add(store, playbook, actor_spec("web"))

    def test_add_to_missing_playbook(self, store, playbook):
        store.clear()
        with pytest.raises(PreconditionError):
            playbook_resources.add(store, playbook, actor_spec("db"))


class TestFinalizers:
    def test_add_and_remove(self, store, make_actor):
        body = make_actor()
        body = finalizers.add_finalizer(store, Kind.ACTOR, body, "x/finalizer")
        assert finalizers.has_finalizer(body, "x/finalizer")
        assert finalizers.add_finalizer(store, Kind.ACTOR, body, "x/finalizer") is body

        body = finalizers.remove_finalizer(store, Kind.ACTOR, body, "x/finalizer")
        assert not finalizers.has_finalizer(body, "x/finalizer")

    def test_stale_body_conflicts(self, store, make_actor):
        stale = make_actor()
        store.patch(Kind.ACTOR, "web", {"metadata": {"labels": {"a": "b"}}}, "amp-demo")
        with pytest.raises(StoreError) as exc:
            finalizers.add_finalizer(store, Kind.ACTOR, stale, "x/finalizer")
        assert exc.value.status == 409


class TestEventRecorder:
    def test_records_event(self, store, actor):
        recorder = EventRecorder(store)
        assert recorder.warning(actor.reference(), "BuildFailed", "oops") is True
        (event,) = store.list(Kind.EVENT, "amp-demo")
        assert event["type"] == "Warning"
        assert event["involvedObject"]["kind"] == "Actor"

    def test_failure_is_swallowed(self, store, actor):
        store.inject_failure("create", Kind.EVENT)
        assert EventRecorder(store).normal(actor.reference(), "Built", "ok") is False
