"""
Finalizer bookkeeping on Playbooks and Actors.

Both writes carry the resourceVersion they were computed from, so a
concurrent change to the finalizer list turns into a retryable conflict.
"""

import logging
from typing import Any

from stagehand.resources.store import Kind, ObjectStore

logger = logging.getLogger(__name__)


def has_finalizer(body: dict[str, Any], finalizer: str) -> bool:
    return finalizer in ((body.get("metadata") or {}).get("finalizers") or [])


def _write(
    store: ObjectStore,
    kind: Kind,
    body: dict[str, Any],
    finalizers: list[str],
) -> dict[str, Any]:
    meta = body["metadata"]
    patch = {"metadata": {"resourceVersion": meta.get("resourceVersion"), "finalizers": finalizers}}
    return store.patch(kind, meta["name"], patch, meta.get("namespace"))


def add_finalizer(store: ObjectStore, kind: Kind, body: dict[str, Any], finalizer: str) -> dict[str, Any]:
    """Add `finalizer` to the object; returns the updated body."""
    if has_finalizer(body, finalizer):
        return body
    finalizers = list(body["metadata"].get("finalizers") or []) + [finalizer]
    logger.debug(f"Adding finalizer {finalizer} to {kind.value} {body['metadata']['name']}")
    return _write(store, kind, body, finalizers)


def remove_finalizer(
    store: ObjectStore,
    kind: Kind,
    body: dict[str, Any],
    finalizer: str,
) -> dict[str, Any]:
    """
    Remove `finalizer` from the object; returns the updated body.

    Removing the last finalizer of a deleting object lets the API server
    finish the deletion.
    """
    if not has_finalizer(body, finalizer):
        return body
    finalizers = [f for f in body["metadata"]["finalizers"] if f != finalizer]
    logger.debug(f"Removing finalizer {finalizer} from {kind.value} {body['metadata']['name']}")
    return _write(store, kind, body, finalizers)
