"""
Attach registry credentials to service accounts.
"""

import logging

from stagehand.resources import documents
from stagehand.resources.store import Kind, ObjectStore
from stagehand.errors import StoreError
from stagehand.schemas import Credential

logger = logging.getLogger(__name__)


def patch(
    store: ObjectStore,
    namespace: str,
    name: str,
    credential: Credential,
    secrets: bool = True,
    image_pull_secrets: bool = True,
) -> bool:
    """
    Reference the credential's secret from a service account.

    The default service account is created asynchronously after its
    namespace, so a missing account is a transient condition.

    Returns:
        True if the account was patched, False if it already referenced the secret

    Raises:
        StoreError: If the service account does not exist (yet)
    """
    account = store.get(Kind.SERVICE_ACCOUNT, name, namespace)
    if account is None:
        raise StoreError(
            f"ServiceAccount {namespace}/{name} not found",
            kind=Kind.SERVICE_ACCOUNT.value, name=name, status=404,
        )

    secret = documents.secret_name(credential)
    body = documents.service_account_patch(account, secret, secrets, image_pull_secrets)
    if body is None:
        return False

    store.patch(Kind.SERVICE_ACCOUNT, name, body, namespace)
    logger.info(f"Attached secret {secret} to service account {namespace}/{name}")
    return True


def unpatch(store: ObjectStore, namespace: str, name: str, credential: Credential) -> bool:
    """Remove the credential's secret from a service account, if referenced."""
    account = store.get(Kind.SERVICE_ACCOUNT, name, namespace)
    if account is None:
        return False

    body = documents.service_account_unpatch(account, documents.secret_name(credential))
    if body is None:
        return False

    store.patch(Kind.SERVICE_ACCOUNT, name, body, namespace)
    logger.info(f"Detached credential from service account {namespace}/{name}")
    return True
