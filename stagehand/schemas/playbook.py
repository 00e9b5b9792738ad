"""
Playbook schemas - the aggregate root driving a set of Actors.

The Playbook's namespace is derived from its name when it is created and is
never changed afterwards. The actor list only grows (or is replaced
wholesale) through the synchronizer's merge-patch path.
"""

from dataclasses import dataclass, field
from typing import Any, Optional

from stagehand.schemas.actor import ActorSpec
from stagehand.schemas.meta import ObjectMeta
from stagehand.schemas.status import Status
from stagehand.constants import API_GROUP_VERSION, KIND_PLAYBOOK
from stagehand.errors import PreconditionError


def playbook_namespace(playbook_id: str, prefix: str = "amp-") -> str:
    """Derive the namespace owned by a Playbook from its identifier."""
    return f"{prefix}{playbook_id}"


@dataclass(frozen=True)
class SyncConfig:
    """Source synchronization settings (carried, not acted on)."""
    enabled: bool = False
    interval: int = 0

    def to_dict(self) -> dict[str, Any]:
        return {"enabled": self.enabled, "interval": self.interval}

    @classmethod
    def from_dict(cls, data: dict[str, Any]) -> "SyncConfig":
        return cls(enabled=bool(data.get("enabled", False)), interval=int(data.get("interval", 0)))


@dataclass
class PlaybookSpec:
    """
    Desired state of a Playbook.

    Attributes:
        title: Display title
        description: Free-form description
        namespace: Namespace holding the playbook's actors and sub-resources
        actors: Ordered list of actor specs
        sync: Optional sync configuration
    """
    title: str
    namespace: str
    description: str = ""
    actors: list[ActorSpec] = field(default_factory=list)
    sync: Optional[SyncConfig] = None

    def validate(self) -> None:
        """
        Check the preconditions the reconciler relies on.

        Raises:
            PreconditionError: If the actor list is empty or names collide
        """
        if not self.actors:
            raise PreconditionError("Playbook has no actors")

        seen: set[str] = set()
        for actor in self.actors:
            if actor.name in seen:
                raise PreconditionError(f"Duplicate actor name in playbook: {actor.name}")
            seen.add(actor.name)

    def get_actor(self, name: str) -> Optional[ActorSpec]:
        for actor in self.actors:
            if actor.name == name:
                return actor
        return None

    def to_dict(self) -> dict[str, Any]:
        result: dict[str, Any] = {
            "title": self.title,
            "description": self.description,
            "namespace": self.namespace,
            "actors": [a.to_dict() for a in self.actors],
        }
        if self.sync is not None:
            result["sync"] = self.sync.to_dict()
        return result

    @classmethod
    def from_dict(cls, data: dict[str, Any]) -> "PlaybookSpec":
        sync = data.get("sync")
        return cls(
            title=data.get("title") or "",
            description=data.get("description") or "",
            namespace=data.get("namespace") or "",
            actors=[ActorSpec.from_dict(a) for a in data.get("actors") or []],
            sync=SyncConfig.from_dict(sync) if sync else None,
        )


@dataclass
class Playbook:
    """The (cluster-scoped) Playbook custom resource."""
    metadata: ObjectMeta
    spec: PlaybookSpec
    status: Optional[Status] = None

    @property
    def name(self) -> str:
        return self.metadata.name

    @property
    def key(self) -> str:
        return self.metadata.key

    def reference(self) -> dict[str, Any]:
        """ObjectReference for the event recorder, placed in the playbook namespace (or "default")."""
        return {
            "apiVersion": API_GROUP_VERSION,
            "kind": KIND_PLAYBOOK,
            "name": self.metadata.name,
            "namespace": self.spec.namespace or "default",
            "uid": self.metadata.uid,
        }

    def owner_reference(self) -> dict[str, Any]:
        """OwnerReference stamped on the actors this playbook creates."""
        return {
            "apiVersion": API_GROUP_VERSION,
            "kind": KIND_PLAYBOOK,
            "name": self.metadata.name,
            "uid": self.metadata.uid,
            "controller": True,
            "blockOwnerDeletion": True,
        }

    def to_body(self) -> dict[str, Any]:
        body: dict[str, Any] = {
            "apiVersion": API_GROUP_VERSION,
            "kind": KIND_PLAYBOOK,
            "metadata": self.metadata.to_dict(),
            "spec": self.spec.to_dict(),
        }
        if self.status is not None:
            body["status"] = self.status.to_dict()
        return body

    @classmethod
    def from_body(cls, body: dict[str, Any]) -> "Playbook":
        """Build from a raw Kubernetes object."""
        return cls(
            metadata=ObjectMeta.from_dict(body.get("metadata") or {}),
            spec=PlaybookSpec.from_dict(body.get("spec") or {}),
            status=Status.from_dict(body.get("status")),
        )

    @classmethod
    def new(
        cls,
        name: str,
        title: str,
        actors: list[ActorSpec],
        description: str = "",
        namespace_prefix: str = "amp-",
        sync: Optional[SyncConfig] = None,
    ) -> "Playbook":
        """Create a fresh Playbook with its namespace derived from the name."""
        return cls(
            metadata=ObjectMeta(name=name),
            spec=PlaybookSpec(
                title=title,
                description=description,
                namespace=playbook_namespace(name, namespace_prefix),
                actors=list(actors),
                sync=sync,
            ),
        )
