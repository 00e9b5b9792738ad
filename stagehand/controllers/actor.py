"""
Actor controller.
"""

import logging
from typing import Any

from stagehand.constants import ACTOR_FINALIZER
from stagehand.controllers.base import Controller
from stagehand.resources import actor as actor_resource
from stagehand.resources import deployment
from stagehand.resources.store import Kind
from stagehand.schemas import Actor, Status
from stagehand.workflow import create_actor_machine

logger = logging.getLogger(__name__)


class ActorController(Controller[Actor]):
    """Reconciles namespaced Actors."""

    kind = Kind.ACTOR
    finalizer = ACTOR_FINALIZER

    def __init__(self, store, config, **kwargs: Any):
        super().__init__(store, config, create_actor_machine(), **kwargs)

    def from_body(self, body: dict[str, Any]) -> Actor:
        return Actor.from_body(body)

    def initialize(self, actor: Actor) -> None:
        actor_resource.patch_status(self.store, actor, Status.pending())

    def cleanup(self, actor: Actor) -> None:
        """Delete the actor's build resources and its workload."""
        if self.orchestrator is not None:
            removed = self.orchestrator.cleanup(actor)
            if removed:
                logger.info(f"Deleted {removed} build resource(s) of actor {actor.key}")
        if deployment.delete(self.store, actor):
            logger.info(f"Deleted deployment of actor {actor.key}")
