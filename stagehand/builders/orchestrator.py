"""
Build orchestrator - decides whether an actor needs a build and drives it.

An actor needs a build when it is marked live, or when its image is not
in the registry yet. A registry that cannot answer is an error, never an
"image absent".
"""

import logging
from typing import TYPE_CHECKING, Optional

from stagehand.builders.base import Builder
from stagehand.builders.registry import BuilderRegistry
from stagehand.config import StagehandConfig
from stagehand.schemas import Actor

if TYPE_CHECKING:
    from stagehand.credentials import CredentialStore

logger = logging.getLogger(__name__)


class BuildOrchestrator:
    """
    Dispatches builds to the configured builder.

    Usage:
        orchestrator = BuildOrchestrator(registry, credentials, config)
        if orchestrator.needs_build(actor):
            orchestrator.build(actor)
    """

    def __init__(
        self,
        registry: BuilderRegistry,
        credentials: "CredentialStore",
        config: StagehandConfig,
    ):
        self.registry = registry
        self.credentials = credentials
        self.config = config

    @property
    def builder(self) -> Builder:
        return self.registry.get(self.config.builder)

    def image(self, actor: Actor) -> str:
        return self.builder.image(actor)

    def needs_build(self, actor: Actor) -> bool:
        """
        Raises:
            RegistryProbeError: If the registry could not be asked
        """
        if actor.spec.live:
            logger.debug(f"Actor {actor.key} is live, building")
            return True

        image = self.image(actor)
        if self.credentials.image_exists(image):
            logger.info(f"Image {image} already exists, skipping build")
            return False
        return True

    def build(self, actor: Actor) -> None:
        self.builder.build(actor)

    def completed(self, actor: Actor) -> Optional[bool]:
        return self.builder.completed(actor)

    def reset(self, actor: Actor) -> int:
        """Drop finished build resources so a live actor builds again."""
        return self.builder.delete(actor)

    def cleanup(self, actor: Actor) -> int:
        """Delete build resources of every builder kind."""
        return sum(self.registry.get(kind).delete(actor) for kind in self.registry.list_kinds())
