"""
Typed constructors for every resource document the synchronizer writes.

Each constructor validates its required inputs up front and raises
SerializationError instead of handing a half-formed document to the API
server. They are pure functions and never talk to the store.
"""

import base64
import json
import shlex
from typing import Any, Optional

from stagehand.constants import (
    ANNOTATION_REVISION,
    KPACK_GROUP,
    KPACK_VERSION,
    LABEL_ACTOR,
    LABEL_MANAGED_BY,
    LABEL_PLAYBOOK,
    MANAGER_NAME,
)
from stagehand.errors import SerializationError
from stagehand.schemas import Actor, ActorSpec, Credential, Playbook
from stagehand.utils import dns_label, short_revision, utcnow_iso

WORKSPACE = "/workspace"
SOURCE_DIR = f"{WORKSPACE}/source"
DOCKER_CONFIG_DIR = "/home/cnb/.docker"
CNB_PLATFORM_API = "0.12"


def _require(value: Any, field: str, what: str) -> Any:
    if value is None or value == "" or value == []:
        raise SerializationError(f"{what}: missing required field '{field}'")
    return value


def _labels(playbook: Optional[str] = None, actor: Optional[str] = None) -> dict[str, str]:
    labels = {LABEL_MANAGED_BY: MANAGER_NAME}
    if playbook:
        labels[LABEL_PLAYBOOK] = playbook
    if actor:
        labels[LABEL_ACTOR] = actor
    return labels


def is_owned(body: Optional[dict[str, Any]], playbook: Optional[str] = None) -> bool:
    """Whether a document carries our ownership labels (for `playbook`, if given)."""
    if body is None:
        return False
    labels = (body.get("metadata") or {}).get("labels") or {}
    if labels.get(LABEL_MANAGED_BY) != MANAGER_NAME:
        return False
    return playbook is None or labels.get(LABEL_PLAYBOOK) == playbook


# =============================================================================
# NAMES
# =============================================================================


def secret_name(credential: Credential) -> str:
    """Name of the secret holding a credential, derived from kind and host."""
    _require(credential.host, "host", "Credential")
    return dns_label(f"{credential.kind.value}-{credential.host}", max_length=253)


def build_name(spec: ActorSpec) -> str:
    """Name of the build Job / Image for an actor revision."""
    short = short_revision(spec.commit)
    if short:
        return dns_label(f"{spec.name}-{short}-builder")
    return dns_label(f"{spec.name}-builder")


def image_resource_name(spec: ActorSpec) -> str:
    """Name of the kpack Image for an actor revision."""
    short = short_revision(spec.commit)
    return dns_label(f"{spec.name}-{short}" if short else spec.name)


# =============================================================================
# PLAYBOOK SUB-RESOURCES
# =============================================================================


def namespace(name: str, playbook: str) -> dict[str, Any]:
    """Namespace owned by a playbook."""
    _require(name, "name", "Namespace")
    return {
        "apiVersion": "v1",
        "kind": "Namespace",
        "metadata": {"name": name, "labels": _labels(playbook=playbook)},
    }


def registry_secret(namespace: str, credential: Credential) -> dict[str, Any]:
    """kubernetes.io/dockerconfigjson secret for an image registry credential."""
    _require(namespace, "namespace", "Secret")
    _require(credential.host, "host", "Secret")
    entry = credential.docker_config_entry()
    if not entry:
        raise SerializationError(f"Secret: credential for {credential.host} carries no secret")

    config = {"auths": {credential.host: entry}}
    encoded = base64.b64encode(json.dumps(config, sort_keys=True).encode()).decode()
    return {
        "apiVersion": "v1",
        "kind": "Secret",
        "type": "kubernetes.io/dockerconfigjson",
        "metadata": {
            "name": secret_name(credential),
            "namespace": namespace,
            "labels": _labels(),
            # kpack discovers registry secrets through this annotation
            "annotations": {"kpack.io/docker": credential.host},
        },
        "data": {".dockerconfigjson": encoded},
    }


def service_account_patch(
    account: dict[str, Any],
    secret: str,
    secrets: bool = True,
    image_pull_secrets: bool = True,
) -> Optional[dict[str, Any]]:
    """
    Merge patch attaching a secret to a service account.

    Returns None when the account already references the secret, so that
    callers can skip the write entirely.
    """
    _require(secret, "secret", "ServiceAccount patch")
    patch: dict[str, Any] = {}

    if secrets:
        current = list(account.get("secrets") or [])
        if not any(s.get("name") == secret for s in current):
            patch["secrets"] = current + [{"name": secret}]

    if image_pull_secrets:
        current = list(account.get("imagePullSecrets") or [])
        if not any(s.get("name") == secret for s in current):
            patch["imagePullSecrets"] = current + [{"name": secret}]

    return patch or None


def service_account_unpatch(account: dict[str, Any], secret: str) -> Optional[dict[str, Any]]:
    """Merge patch detaching a secret from a service account (None if absent)."""
    patch: dict[str, Any] = {}
    for field in ("secrets", "imagePullSecrets"):
        current = list(account.get(field) or [])
        kept = [s for s in current if s.get("name") != secret]
        if len(kept) != len(current):
            patch[field] = kept
    return patch or None


def actor_resource(playbook: Playbook, spec: ActorSpec) -> dict[str, Any]:
    """Actor custom resource materialized from a playbook's actor spec."""
    _require(playbook.spec.namespace, "namespace", f"Actor {spec.name}")
    _require(spec.repository, "repository", f"Actor {spec.name}")
    owner = playbook.owner_reference()
    _require(owner.get("uid"), "uid", f"Actor {spec.name} owner")

    actor = Actor.from_body({
        "metadata": {
            "name": spec.name,
            "namespace": playbook.spec.namespace,
            "labels": _labels(playbook=playbook.name, actor=spec.name),
            "ownerReferences": [owner],
        },
        "spec": spec.to_dict(),
    })
    return actor.to_body()


# =============================================================================
# BUILD RESOURCES
# =============================================================================


def _checkout_script(spec: ActorSpec) -> str:
    repo = shlex.quote(spec.repository)
    script = f"git clone {repo} {SOURCE_DIR}"
    revision = spec.commit or spec.reference
    if revision:
        script += f" && git -C {SOURCE_DIR} checkout {shlex.quote(revision)}"
    return script


def build_job(
    actor: Actor,
    image: str,
    builder_image: str,
    git_image: str,
    service_account: str = "default",
    registry_secret: Optional[str] = None,
) -> dict[str, Any]:
    """
    Job running the buildpacks lifecycle against an actor's source.

    An init container checks the source out into a shared workspace; the
    builder container runs `/cnb/lifecycle/creator` and pushes `image`.
    """
    spec = actor.spec
    what = f"Build job for {spec.name}"
    _require(actor.namespace, "namespace", what)
    _require(spec.repository, "repository", what)
    _require(image, "image", what)
    _require(builder_image, "builder_image", what)

    app_dir = SOURCE_DIR
    if spec.path and spec.path.strip("/") not in ("", "."):
        app_dir = f"{SOURCE_DIR}/{spec.path.strip('/')}"

    volumes: list[dict[str, Any]] = [{"name": "workspace", "emptyDir": {}}]
    mounts: list[dict[str, Any]] = [{"name": "workspace", "mountPath": WORKSPACE}]
    env = [{"name": "CNB_PLATFORM_API", "value": CNB_PLATFORM_API}]

    if registry_secret:
        volumes.append({
            "name": "registry-auth",
            "secret": {
                "secretName": registry_secret,
                "items": [{"key": ".dockerconfigjson", "path": "config.json"}],
            },
        })
        mounts.append({"name": "registry-auth", "mountPath": DOCKER_CONFIG_DIR, "readOnly": True})
        env.append({"name": "DOCKER_CONFIG", "value": DOCKER_CONFIG_DIR})

    return {
        "apiVersion": "batch/v1",
        "kind": "Job",
        "metadata": {
            "name": build_name(spec),
            "namespace": actor.namespace,
            "labels": _labels(playbook=actor.playbook, actor=spec.name),
            "annotations": {ANNOTATION_REVISION: spec.commit or spec.reference or ""},
        },
        "spec": {
            "backoffLimit": 0,
            "template": {
                "metadata": {"labels": _labels(playbook=actor.playbook, actor=spec.name)},
                "spec": {
                    "restartPolicy": "Never",
                    "serviceAccountName": service_account,
                    "initContainers": [{
                        "name": "checkout",
                        "image": git_image,
                        "command": ["sh", "-c", _checkout_script(spec)],
                        "volumeMounts": [{"name": "workspace", "mountPath": WORKSPACE}],
                    }],
                    "containers": [{
                        "name": "creator",
                        "image": builder_image,
                        "command": ["/cnb/lifecycle/creator"],
                        "args": [f"-app={app_dir}", image],
                        "env": env,
                        "volumeMounts": mounts,
                    }],
                    "volumes": volumes,
                },
            },
        },
    }


def kpack_image(
    actor: Actor,
    image: str,
    cluster_builder: str,
    service_account: str = "default",
) -> dict[str, Any]:
    """kpack Image resource consumed by the kpack image-building operator."""
    spec = actor.spec
    what = f"Image for {spec.name}"
    _require(actor.namespace, "namespace", what)
    _require(spec.repository, "repository", what)
    _require(image, "tag", what)
    _require(cluster_builder, "cluster_builder", what)

    source: dict[str, Any] = {
        "git": {
            "url": spec.repository,
            "revision": spec.commit or spec.reference or "main",
        },
    }
    if spec.path and spec.path.strip("/") not in ("", "."):
        source["subPath"] = spec.path.strip("/")

    return {
        "apiVersion": f"{KPACK_GROUP}/{KPACK_VERSION}",
        "kind": "Image",
        "metadata": {
            "name": image_resource_name(spec),
            "namespace": actor.namespace,
            "labels": _labels(playbook=actor.playbook, actor=spec.name),
            "annotations": {ANNOTATION_REVISION: spec.commit or spec.reference or ""},
        },
        "spec": {
            "tag": image,
            "serviceAccountName": service_account,
            "builder": {"name": cluster_builder, "kind": "ClusterBuilder"},
            "source": source,
        },
    }


# =============================================================================
# WORKLOADS AND EVENTS
# =============================================================================


def deployment(actor: Actor, image: str) -> dict[str, Any]:
    """Deployment running an actor's image in the playbook namespace."""
    spec = actor.spec
    what = f"Deployment for {spec.name}"
    _require(actor.namespace, "namespace", what)
    _require(image, "image", what)

    selector = {LABEL_ACTOR: spec.name}
    container: dict[str, Any] = {
        "name": dns_label(spec.name),
        "image": image,
        "imagePullPolicy": "Always" if spec.live else "IfNotPresent",
    }
    if spec.environment:
        container["env"] = [{"name": k, "value": v} for k, v in sorted(spec.environment.items())]

    return {
        "apiVersion": "apps/v1",
        "kind": "Deployment",
        "metadata": {
            "name": dns_label(spec.name),
            "namespace": actor.namespace,
            "labels": _labels(playbook=actor.playbook, actor=spec.name),
            "annotations": {ANNOTATION_REVISION: spec.commit or spec.reference or ""},
        },
        "spec": {
            "replicas": 1,
            "selector": {"matchLabels": selector},
            "template": {
                "metadata": {"labels": {**_labels(playbook=actor.playbook), **selector}},
                "spec": {"containers": [container]},
            },
        },
    }


def event(
    reference: dict[str, Any],
    reason: str,
    message: str,
    type: str = "Normal",
    component: str = MANAGER_NAME,
) -> dict[str, Any]:
    """core/v1 Event about an object."""
    _require(reference.get("name"), "name", "Event involvedObject")
    _require(reference.get("namespace"), "namespace", "Event involvedObject")
    now = utcnow_iso()
    return {
        "apiVersion": "v1",
        "kind": "Event",
        "metadata": {
            "generateName": f"{reference['name']}.",
            "namespace": reference["namespace"],
        },
        "involvedObject": {k: v for k, v in reference.items() if v is not None},
        "reason": reason,
        "message": message,
        "type": type,
        "source": {"component": component},
        "reportingComponent": component,
        "firstTimestamp": now,
        "lastTimestamp": now,
        "count": 1,
    }
