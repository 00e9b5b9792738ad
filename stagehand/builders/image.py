"""
Image builder - delegates builds to kpack through Image resources.
"""

import logging
from typing import Optional

from stagehand.builders.base import Builder
from stagehand.resources import documents, image
from stagehand.schemas import Actor

logger = logging.getLogger(__name__)


class ImageBuilder(Builder):
    """Builds images with a kpack `Image` named `<actor>-<commit>`."""

    kind = "image"

    def exists(self, actor: Actor) -> bool:
        return image.exists(self.store, actor)

    def build(self, actor: Actor) -> None:
        body = documents.kpack_image(
            actor,
            image=self.image(actor),
            cluster_builder=self.config.cluster_builder,
            service_account=self.config.service_account,
        )
        name = body["metadata"]["name"]

        if image.exists(self.store, actor):
            logger.info(f"Try to refresh an existing image resource {name}")
            image.update(self.store, actor, body)
        else:
            logger.info(f"Create new image resource: {name}")
            image.create(self.store, actor, body)

    def completed(self, actor: Actor) -> Optional[bool]:
        body = image.get(self.store, actor)
        if body is None:
            return None
        return image.completed(body)

    def delete(self, actor: Actor) -> int:
        return image.delete_all(self.store, actor)
