"""
Playbook controller.
"""

import logging
from typing import Any

from stagehand.constants import LABEL_PLAYBOOK, PLAYBOOK_FINALIZER
from stagehand.controllers.base import Controller
from stagehand.errors import PreconditionError
from stagehand.resources import actor as actor_resource
from stagehand.resources import namespace, secret, service_account
from stagehand.resources import playbook as playbook_resource
from stagehand.resources.store import Kind
from stagehand.schemas import Playbook, Status, playbook_namespace
from stagehand.workflow import create_playbook_machine

logger = logging.getLogger(__name__)


class PlaybookController(Controller[Playbook]):
    """
    Reconciles cluster-scoped Playbooks.

    Usage:
        controller = PlaybookController(store, config, credentials=credentials, resolver=resolver)
        action = controller.run(body)
    """

    kind = Kind.PLAYBOOK
    finalizer = PLAYBOOK_FINALIZER

    def __init__(self, store, config, **kwargs: Any):
        super().__init__(store, config, create_playbook_machine(), **kwargs)

    def from_body(self, body: dict[str, Any]) -> Playbook:
        return Playbook.from_body(body)

    def initialize(self, playbook: Playbook) -> None:
        if not playbook.spec.namespace:
            ns = playbook_namespace(playbook.name, self.config.namespace_prefix)
            body = self.store.patch(Kind.PLAYBOOK, playbook.name, {"spec": {"namespace": ns}})
            playbook = Playbook.from_body(body)
            logger.info(f"Assigned namespace {ns} to playbook {playbook.name}")
        playbook_resource.patch_status(self.store, playbook, Status.pending())

    def check(self, playbook: Playbook) -> None:
        playbook.spec.validate()
        if playbook.status is None:
            return

        ns = playbook.spec.namespace
        if not ns:
            raise PreconditionError(f"Playbook {playbook.name} has no namespace")
        claimed = [name for name in namespace.owned(self.store, playbook.name) if name != ns]
        if claimed:
            raise PreconditionError(
                f"Playbook {playbook.name} owns namespace {claimed[0]}, it cannot be moved to {ns}"
            )

    def cleanup(self, playbook: Playbook) -> None:
        """
        Reverse everything the playbook created.

        Actors go first (their own controller removes builds and workloads),
        then the registry credential, and the namespace last. Namespaces and
        secrets that were not created by us are left in place.
        """
        ns = playbook.spec.namespace
        if not ns:
            logger.warning(f"Playbook {playbook.name} has no namespace, nothing to clean up")
            return

        names = {spec.name for spec in playbook.spec.actors}
        for body in self.store.list(Kind.ACTOR, ns, f"{LABEL_PLAYBOOK}={playbook.name}"):
            names.add(body["metadata"]["name"])
        for name in sorted(names):
            if actor_resource.delete(self.store, ns, name):
                logger.info(f"Deleted actor {ns}/{name}")

        credential = self.credentials.get(self.config.registry_host) if self.credentials else None
        if credential is not None and secret.owned(self.store, ns, credential):
            service_account.unpatch(self.store, ns, self.config.service_account, credential)
            secret.delete(self.store, ns, credential)

        if namespace.delete(self.store, playbook):
            self.recorder.normal(playbook.reference(), "CleanedUp", f"Released namespace {ns}")
        else:
            self.recorder.normal(playbook.reference(), "CleanedUp", f"Released actors in namespace {ns}")
