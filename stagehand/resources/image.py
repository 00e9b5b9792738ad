"""
kpack Image resources for the image builder.
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
    return store.exists(Kind.IMAGE, documents.image_resource_name(actor.spec), actor.namespace)


def get(store: ObjectStore, actor: Actor) -> Optional[dict[str, Any]]:
    return store.get(Kind.IMAGE, documents.image_resource_name(actor.spec), actor.namespace)


def create(store: ObjectStore, actor: Actor, body: dict[str, Any]) -> dict[str, Any]:
    created = store.create(Kind.IMAGE, body)
    logger.info(f"Created image resource {actor.namespace}/{body['metadata']['name']}")
    return created


def update(store: ObjectStore, actor: Actor, body: dict[str, Any]) -> bool:
    """
    Bring an existing Image's spec in line with the desired one.

    Returns:
        True if a patch was issued, False if the Image was already current
    """
    name = body["metadata"]["name"]
    current = store.get(Kind.IMAGE, name, actor.namespace)
    if current is None:
        raise StoreError(f"Image {actor.namespace}/{name} not found", kind=Kind.IMAGE.value, name=name, status=404)

    if is_subset(body["spec"], current.get("spec") or {}):
        return False

    store.patch(Kind.IMAGE, name, {"spec": body["spec"]}, actor.namespace)
    logger.info(f"Updated image resource {actor.namespace}/{name}")
    return True


def completed(body: dict[str, Any]) -> Optional[bool]:
    """
    Return the Image's Ready condition: True, False, or None while unknown.
    """
    for condition in (body.get("status") or {}).get("conditions") or []:
        if condition.get("type") == "Ready":
            if condition.get("status") == "True":
                return True
            if condition.get("status") == "False":
                return False
    return None


def delete_all(store: ObjectStore, actor: Actor) -> int:
    """Delete every Image resource of an actor, across revisions."""
    try:
        bodies = store.list(Kind.IMAGE, actor.namespace, f"{LABEL_ACTOR}={actor.name}")
    except StoreError as e:
        # kpack not installed
        if e.status == 404:
            return 0
        raise

    deleted = 0
    for body in bodies:
        if store.delete(Kind.IMAGE, body["metadata"]["name"], actor.namespace):
            deleted += 1
    return deleted
