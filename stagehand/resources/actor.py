"""
Actor custom resources materialized from a Playbook's actor list.
"""

import logging
from typing import Any, Optional

from stagehand.resources.store import Kind, ObjectStore, is_subset, replacement_patch
from stagehand.errors import StoreError
from stagehand.schemas import Actor, Status

logger = logging.getLogger(__name__)


def exists(store: ObjectStore, namespace: str, name: str) -> bool:
    return store.exists(Kind.ACTOR, name, namespace)


def get(store: ObjectStore, namespace: str, name: str) -> Optional[Actor]:
    body = store.get(Kind.ACTOR, name, namespace)
    return Actor.from_body(body) if body is not None else None


def create(store: ObjectStore, body: dict[str, Any]) -> Actor:
    created = store.create(Kind.ACTOR, body)
    actor = Actor.from_body(created)
    logger.info(f"Created actor {actor.key}")
    return actor


def update(store: ObjectStore, body: dict[str, Any]) -> bool:
    """
    Replace an existing actor's spec (and our labels) when they drifted.

    Fields dropped from the desired spec are removed from the stored one.

    Returns:
        True if a patch was issued, False if the actor was already current
    """
    meta = body["metadata"]
    name, namespace = meta["name"], meta["namespace"]
    current = store.get(Kind.ACTOR, name, namespace)
    if current is None:
        raise StoreError(f"Actor {namespace}/{name} not found", kind=Kind.ACTOR.value, name=name, status=404)

    current_spec = current.get("spec") or {}
    labels = meta.get("labels") or {}
    if current_spec == body["spec"] and is_subset(labels, (current.get("metadata") or {}).get("labels") or {}):
        return False

    patch = {
        "metadata": {"labels": labels},
        "spec": replacement_patch(current_spec, body["spec"]),
    }
    store.patch(Kind.ACTOR, name, patch, namespace)
    logger.info(f"Updated actor {namespace}/{name}")
    return True


def patch_status(store: ObjectStore, actor: Actor, status: Status) -> Actor:
    """Write an actor's status, stamped with the generation it was computed for."""
    stamped = status.observed(actor.metadata.generation)
    body = store.patch_status(Kind.ACTOR, actor.name, stamped.to_dict(), actor.namespace)
    logger.debug(f"Actor {actor.key} -> {stamped.state} ({stamped.reason})")
    return Actor.from_body(body)


def delete(store: ObjectStore, namespace: str, name: str) -> bool:
    return store.delete(Kind.ACTOR, name, namespace)
