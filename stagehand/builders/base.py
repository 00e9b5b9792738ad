"""
Base builder interface.

A builder turns an actor's source into the image its Deployment runs. Each
builder owns one kind of build resource in the playbook namespace:
- lifecycle: a Job running the buildpacks lifecycle directly
- image: a kpack Image reconciled by the kpack operator
"""

from abc import ABC, abstractmethod
from typing import TYPE_CHECKING, Optional

from stagehand.config import StagehandConfig
from stagehand.resources.store import ObjectStore
from stagehand.schemas import Actor

if TYPE_CHECKING:
    from stagehand.credentials import CredentialStore


class Builder(ABC):
    """
    Abstract base class for image builders.

    build() is idempotent: it creates the build resource for the actor's
    current revision, or refreshes it when it already exists.
    """

    kind: str = ""

    def __init__(
        self,
        store: ObjectStore,
        config: StagehandConfig,
        credentials: Optional["CredentialStore"] = None,
    ):
        self.store = store
        self.config = config
        self.credentials = credentials

    def image(self, actor: Actor) -> str:
        """Fully-qualified image reference the build pushes."""
        return actor.spec.image_reference(self.config.registry_host, self.config.registry_project)

    @abstractmethod
    def exists(self, actor: Actor) -> bool:
        """Return True if a build resource exists for the actor's revision."""
        pass

    @abstractmethod
    def build(self, actor: Actor) -> None:
        """
        Create or refresh the build resource for an actor.

        Raises:
            SerializationError: If the build resource cannot be constructed
            StoreError: If the store rejects the write
        """
        pass

    @abstractmethod
    def completed(self, actor: Actor) -> Optional[bool]:
        """
        Report the build outcome.

        Returns:
            True once the image was pushed, False if the build failed,
            None while it is still running (or not started)
        """
        pass

    @abstractmethod
    def delete(self, actor: Actor) -> int:
        """Delete the actor's build resources across revisions; returns the count."""
        pass
