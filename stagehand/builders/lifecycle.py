"""
Lifecycle builder - runs the buildpacks lifecycle in a Job.
"""

import logging
from typing import Optional

from stagehand.builders.base import Builder
from stagehand.resources import documents, job
from stagehand.schemas import Actor, Credential, CredentialKind

logger = logging.getLogger(__name__)


class LifecycleBuilder(Builder):
    """Builds images with a `<actor>-<commit>-builder` Job."""

    kind = "lifecycle"

    def _registry_secret(self) -> Optional[str]:
        if self.credentials is None or self.credentials.get(self.config.registry_host) is None:
            return None
        return documents.secret_name(Credential(kind=CredentialKind.IMAGE, host=self.config.registry_host))

    def exists(self, actor: Actor) -> bool:
        return job.exists(self.store, actor)

    def build(self, actor: Actor) -> None:
        body = documents.build_job(
            actor,
            image=self.image(actor),
            builder_image=self.config.lifecycle_image,
            git_image=self.config.git_image,
            service_account=self.config.service_account,
            registry_secret=self._registry_secret(),
        )
        name = body["metadata"]["name"]

        if job.exists(self.store, actor):
            logger.info(f"Try to refresh an existing build job {name}")
            job.update(self.store, actor, body)
        else:
            logger.info(f"Create new build job: {name}")
            job.create(self.store, actor, body)

    def completed(self, actor: Actor) -> Optional[bool]:
        body = job.get(self.store, actor)
        if body is None:
            return None
        return job.completed(body)

    def delete(self, actor: Actor) -> int:
        return job.delete_all(self.store, actor)
