"""
Kubernetes Events about Playbooks and Actors.

Recording an event is best-effort: a failure is logged and never fails the
reconcile pass that triggered it.
"""

import logging
from typing import Any

from stagehand.resources import documents
from stagehand.resources.store import Kind, ObjectStore
from stagehand.constants import MANAGER_NAME
from stagehand.errors import StagehandError

logger = logging.getLogger(__name__)

NORMAL = "Normal"
WARNING = "Warning"


class EventRecorder:
    """
    Publishes core/v1 Events through an ObjectStore.

    Usage:
        recorder = EventRecorder(store)
        recorder.normal(actor.reference(), "Built", "Image pushed")
        recorder.warning(playbook.reference(), "ReconcileError", str(error))
    """

    def __init__(self, store: ObjectStore, component: str = MANAGER_NAME):
        self.store = store
        self.component = component

    def record(self, reference: dict[str, Any], reason: str, message: str, type: str = NORMAL) -> bool:
        """
        Publish an event.

        Returns:
            True if the event was written
        """
        try:
            body = documents.event(reference, reason, message, type=type, component=self.component)
            self.store.create(Kind.EVENT, body)
        except StagehandError as e:
            logger.warning(f"Could not record event {reason} for {reference.get('name')}: {e}")
            return False
        return True

    def normal(self, reference: dict[str, Any], reason: str, message: str) -> bool:
        return self.record(reference, reason, message, NORMAL)

    def warning(self, reference: dict[str, Any], reason: str, message: str) -> bool:
        return self.record(reference, reason, message, WARNING)
