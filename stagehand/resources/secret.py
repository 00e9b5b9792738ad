"""
Registry credential secrets.
"""

import logging

from stagehand.resources import documents
from stagehand.resources.store import Kind, ObjectStore
from stagehand.schemas import Credential

logger = logging.getLogger(__name__)


def exists(store: ObjectStore, namespace: str, credential: Credential) -> bool:
    return store.exists(Kind.SECRET, documents.secret_name(credential), namespace)


def create(store: ObjectStore, namespace: str, credential: Credential) -> bool:
    """
    Create the credential's secret, or refresh it if its data changed.

    Returns:
        True if a write was issued
    """
    desired = documents.registry_secret(namespace, credential)
    name = desired["metadata"]["name"]
    current = store.get(Kind.SECRET, name, namespace)

    if current is None:
        store.create(Kind.SECRET, desired)
        logger.info(f"Created secret {namespace}/{name}")
        return True

    if current.get("data") == desired["data"]:
        return False

    store.patch(Kind.SECRET, name, {"data": desired["data"]}, namespace)
    logger.info(f"Refreshed secret {namespace}/{name}")
    return True


def owned(store: ObjectStore, namespace: str, credential: Credential) -> bool:
    """Whether the credential's secret in `namespace` was written by us."""
    return documents.is_owned(store.get(Kind.SECRET, documents.secret_name(credential), namespace))


def delete(store: ObjectStore, namespace: str, credential: Credential) -> bool:
    """Delete the credential's secret unless someone else put it there."""
    name = documents.secret_name(credential)
    if not owned(store, namespace, credential):
        logger.info(f"Secret {namespace}/{name} is not managed by us, keeping it")
        return False
    return store.delete(Kind.SECRET, name, namespace)
