"""
Workloads running deployed actors.
"""

import logging
from typing import Any

from stagehand.resources.store import Kind, ObjectStore, is_subset
from stagehand.errors import StoreError
from stagehand.schemas import Actor
from stagehand.utils import dns_label

logger = logging.getLogger(__name__)


def exists(store: ObjectStore, actor: Actor) -> bool:
    return store.exists(Kind.DEPLOYMENT, dns_label(actor.name), actor.namespace)


def create(store: ObjectStore, actor: Actor, body: dict[str, Any]) -> dict[str, Any]:
    created = store.create(Kind.DEPLOYMENT, body)
    logger.info(f"Created deployment {actor.namespace}/{body['metadata']['name']}")
    return created


def update(store: ObjectStore, actor: Actor, body: dict[str, Any]) -> bool:
    """
    Patch the deployment when any field we own drifted.

    Returns:
        True if a patch was issued
    """
    name = body["metadata"]["name"]
    current = store.get(Kind.DEPLOYMENT, name, actor.namespace)
    if current is None:
        raise StoreError(
            f"Deployment {actor.namespace}/{name} not found",
            kind=Kind.DEPLOYMENT.value, name=name, status=404,
        )

    wanted = {"metadata": {k: body["metadata"][k] for k in ("labels", "annotations")}, "spec": body["spec"]}
    if is_subset(wanted, current):
        return False

    store.patch(Kind.DEPLOYMENT, name, wanted, actor.namespace)
    logger.info(f"Updated deployment {actor.namespace}/{name}")
    return True


def delete(store: ObjectStore, actor: Actor) -> bool:
    return store.delete(Kind.DEPLOYMENT, dns_label(actor.name), actor.namespace)
