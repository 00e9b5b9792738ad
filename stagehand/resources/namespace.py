"""
Namespace synchronization for playbooks.

Only namespaces carrying the playbook's ownership labels are ever deleted; a
namespace that already existed when the playbook claimed it is left alone.
"""

import logging

from stagehand.constants import LABEL_MANAGED_BY, LABEL_PLAYBOOK, MANAGER_NAME
from stagehand.resources import documents
from stagehand.resources.store import Kind, ObjectStore
from stagehand.schemas import Playbook

logger = logging.getLogger(__name__)


def exists(store: ObjectStore, playbook: Playbook) -> bool:
    return store.exists(Kind.NAMESPACE, playbook.spec.namespace)


def create(store: ObjectStore, playbook: Playbook) -> bool:
    """
    Create the playbook's namespace if it is absent.

    Returns:
        True if the namespace was created, False if it already existed
    """
    if exists(store, playbook):
        logger.debug(f"Namespace {playbook.spec.namespace} already exists")
        return False

    store.create(Kind.NAMESPACE, documents.namespace(playbook.spec.namespace, playbook.name))
    logger.info(f"Created namespace {playbook.spec.namespace} for playbook {playbook.name}")
    return True


def owned(store: ObjectStore, playbook_name: str) -> list[str]:
    """Names of the namespaces created for a playbook."""
    selector = f"{LABEL_MANAGED_BY}={MANAGER_NAME},{LABEL_PLAYBOOK}={playbook_name}"
    return sorted(body["metadata"]["name"] for body in store.list(Kind.NAMESPACE, label_selector=selector))


def delete(store: ObjectStore, playbook: Playbook) -> bool:
    """
    Delete the playbook's namespace if the playbook created it.

    Returns:
        True if a namespace was deleted
    """
    ns = playbook.spec.namespace
    if not documents.is_owned(store.get(Kind.NAMESPACE, ns), playbook.name):
        logger.info(f"Namespace {ns} was not created for playbook {playbook.name}, keeping it")
        return False

    deleted = store.delete(Kind.NAMESPACE, ns)
    if deleted:
        logger.info(f"Deleted namespace {ns}")
    return deleted
