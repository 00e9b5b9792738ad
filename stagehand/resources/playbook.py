"""
Playbook custom resources.

The actor list of a Playbook is only ever extended through add(), which
re-reads the object and writes conditionally on its resourceVersion. A
concurrent edit makes the write fail with a conflict instead of silently
dropping either side's change.
"""

import logging
from typing import Optional

from stagehand.resources.store import Kind, ObjectStore
from stagehand.errors import PreconditionError
from stagehand.schemas import ActorSpec, Playbook, Status

logger = logging.getLogger(__name__)


def get(store: ObjectStore, name: str) -> Optional[Playbook]:
    body = store.get(Kind.PLAYBOOK, name)
    return Playbook.from_body(body) if body is not None else None


def create(store: ObjectStore, playbook: Playbook) -> Playbook:
    created = store.create(Kind.PLAYBOOK, playbook.to_body())
    logger.info(f"Created playbook {playbook.name}")
    return Playbook.from_body(created)


def add(store: ObjectStore, playbook: Playbook, actor: ActorSpec) -> Playbook:
    """
    Append an actor spec to a playbook.

    Raises:
        PreconditionError: If the playbook is gone or already has an actor
            of that name
        StoreError: On a resourceVersion conflict
    """
    current = get(store, playbook.name)
    if current is None:
        raise PreconditionError(f"Playbook {playbook.name} no longer exists")
    if current.spec.get_actor(actor.name) is not None:
        raise PreconditionError(f"Playbook {playbook.name} already has an actor named {actor.name}")

    actors = [a.to_dict() for a in current.spec.actors] + [actor.to_dict()]
    patch = {
        "metadata": {"resourceVersion": current.metadata.resource_version},
        "spec": {"actors": actors},
    }
    body = store.patch(Kind.PLAYBOOK, playbook.name, patch)
    logger.info(f"Added actor {actor.name} to playbook {playbook.name}")
    return Playbook.from_body(body)


def patch_status(store: ObjectStore, playbook: Playbook, status: Status) -> Playbook:
    """Write a playbook's status, stamped with the generation it was computed for."""
    stamped = status.observed(playbook.metadata.generation)
    body = store.patch_status(Kind.PLAYBOOK, playbook.name, stamped.to_dict())
    logger.debug(f"Playbook {playbook.name} -> {stamped.state} ({stamped.reason})")
    return Playbook.from_body(body)
