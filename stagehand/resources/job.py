"""
Build Jobs for the lifecycle builder.

A Job's pod template is immutable, so an "update" only refreshes the
metadata we own. A new revision gets a new Job name instead.
"""

import logging
from typing import Any, Optional

from stagehand.resources import documents
from stagehand.resources.store import Kind, ObjectStore, is_subset
from stagehand.constants import LABEL_ACTOR
from stagehand.errors import StoreError
from stagehand.schemas import Actor

logger = logging.getLogger(__name__)


def exists(store: ObjectStore, actor: Actor) -> bool:
    return store.exists(Kind.JOB, documents.build_name(actor.spec), actor.namespace)


def get(store: ObjectStore, actor: Actor) -> Optional[dict[str, Any]]:
    return store.get(Kind.JOB, documents.build_name(actor.spec), actor.namespace)


def create(store: ObjectStore, actor: Actor, body: dict[str, Any]) -> dict[str, Any]:
    created = store.create(Kind.JOB, body)
    logger.info(f"Created build job {actor.namespace}/{body['metadata']['name']}")
    return created


def update(store: ObjectStore, actor: Actor, body: dict[str, Any]) -> bool:
    """
    Refresh labels and annotations of an existing build job.

    Returns:
        True if a patch was issued, False if the job was already current
    """
    name = body["metadata"]["name"]
    current = store.get(Kind.JOB, name, actor.namespace)
    if current is None:
        raise StoreError(f"Job {actor.namespace}/{name} not found", kind=Kind.JOB.value, name=name, status=404)

    wanted = {
        "labels": body["metadata"].get("labels") or {},
        "annotations": body["metadata"].get("annotations") or {},
    }
    if is_subset(wanted, current.get("metadata") or {}):
        return False

    store.patch(Kind.JOB, name, {"metadata": wanted}, actor.namespace)
    logger.info(f"Refreshed build job {actor.namespace}/{name}")
    return True


def completed(body: dict[str, Any]) -> Optional[bool]:
    """
    Return True if the job succeeded, False if it failed, None while running.
    """
    status = body.get("status") or {}
    for condition in status.get("conditions") or []:
        if condition.get("status") != "True":
            continue
        if condition.get("type") == "Complete":
            return True
        if condition.get("type") == "Failed":
            return False

    if (status.get("succeeded") or 0) > 0:
        return True
    backoff_limit = (body.get("spec") or {}).get("backoffLimit", 6)
    if (status.get("failed") or 0) > backoff_limit:
        return False
    return None


def delete_all(store: ObjectStore, actor: Actor) -> int:
    """Delete every build job of an actor, across revisions."""
    deleted = 0
    for body in store.list(Kind.JOB, actor.namespace, f"{LABEL_ACTOR}={actor.name}"):
        if store.delete(Kind.JOB, body["metadata"]["name"], actor.namespace):
            deleted += 1
    return deleted
