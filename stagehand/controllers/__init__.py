"""Stagehand controllers package.

- Controller / Action: framework independent reconcile loop with the
  finalizer wrapper and error policy
- PlaybookController, ActorController: per-kind hooks
- operator: kopf bindings (imported on demand by the CLI)
"""

from stagehand.controllers.base import Action, Controller
from stagehand.controllers.actor import ActorController
from stagehand.controllers.playbook import PlaybookController

__all__ = [
    "Action",
    "ActorController",
    "Controller",
    "PlaybookController",
]
