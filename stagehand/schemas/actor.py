"""
Actor schemas - one buildable/deployable unit of a Playbook.

ActorSpec is the desired state (source + image + partners); Actor is the
custom resource carrying it together with metadata and status.
"""

from dataclasses import dataclass, field
from typing import Any, Optional

from stagehand.schemas.meta import ObjectMeta
from stagehand.schemas.partner import Partner, source_url
from stagehand.schemas.status import Status
from stagehand.constants import API_GROUP_VERSION, KIND_ACTOR, LABEL_PLAYBOOK


@dataclass
class ActorSpec:
    """
    Desired state of an Actor.

    Attributes:
        name: Actor name, unique within the owning Playbook
        description: Free-form description
        image: Image name (or full reference) the actor runs
        repository: Source repository URL
        reference: Branch or tag
        commit: Pinned commit, used as the image tag
        path: Sub-path inside the repository
        live: Always rebuild, regardless of the registry cache
        partners: Actors this one depends on
        environment: Environment variables for the running workload
    """
    name: str
    description: str = ""
    image: str = ""
    repository: str = ""
    reference: Optional[str] = None
    commit: Optional[str] = None
    path: Optional[str] = None
    live: bool = False
    partners: Optional[list[Partner]] = None
    environment: dict[str, str] = field(default_factory=dict)

    def __post_init__(self):
        if not self.name:
            raise ValueError("Actor name is required")

    @property
    def revision(self) -> Optional[str]:
        return self.reference or self.commit

    def url(self) -> str:
        """Normalized source identity, comparable with Partner.url()."""
        return source_url(self.repository, self.revision, self.path)

    def image_reference(self, registry: str, project: str = "library") -> str:
        """
        Return the fully-qualified image reference for this actor.

        Bare image names are placed under ``<registry>/<project>/`` and
        tagged with the commit (or ``latest`` when no commit is pinned).
        References that already carry a registry host or a tag are kept.
        """
        image = self.image or self.name
        first, _, rest = image.partition("/")
        has_registry = bool(rest) and ("." in first or ":" in first or first == "localhost")
        last = image.rsplit("/", 1)[-1]
        has_tag = ":" in last or "@" in image

        if not has_registry:
            if "/" in image:
                image = f"{registry}/{image}"
            else:
                image = f"{registry}/{project}/{image}"
        if not has_tag:
            image = f"{image}:{self.commit or 'latest'}"
        return image

    def to_dict(self) -> dict[str, Any]:
        result: dict[str, Any] = {
            "name": self.name,
            "description": self.description,
            "image": self.image,
            "repository": self.repository,
            "live": self.live,
        }
        if self.reference is not None:
            result["reference"] = self.reference
        if self.commit is not None:
            result["commit"] = self.commit
        if self.path is not None:
            result["path"] = self.path
        if self.partners is not None:
            result["partners"] = [p.to_dict() for p in self.partners]
        if self.environment:
            result["environment"] = dict(self.environment)
        return result

    @classmethod
    def from_dict(cls, data: dict[str, Any]) -> "ActorSpec":
        partners = data.get("partners")
        return cls(
            name=data["name"],
            description=data.get("description") or "",
            image=data.get("image") or "",
            repository=data.get("repository") or "",
            reference=data.get("reference"),
            commit=data.get("commit"),
            path=data.get("path"),
            live=bool(data.get("live", False)),
            partners=[Partner.from_dict(p) for p in partners] if partners is not None else None,
            environment={k: str(v) for k, v in (data.get("environment") or {}).items()},
        )


@dataclass
class Actor:
    """The Actor custom resource."""
    metadata: ObjectMeta
    spec: ActorSpec
    status: Optional[Status] = None

    @property
    def name(self) -> str:
        return self.metadata.name

    @property
    def namespace(self) -> Optional[str]:
        return self.metadata.namespace

    @property
    def key(self) -> str:
        return self.metadata.key

    @property
    def playbook(self) -> Optional[str]:
        """Name of the owning Playbook, from the ownership label."""
        return self.metadata.labels.get(LABEL_PLAYBOOK)

    def reference(self) -> dict[str, Any]:
        """ObjectReference for the event recorder."""
        return {
            "apiVersion": API_GROUP_VERSION,
            "kind": KIND_ACTOR,
            "name": self.metadata.name,
            "namespace": self.metadata.namespace,
            "uid": self.metadata.uid,
        }

    def to_body(self) -> dict[str, Any]:
        body: dict[str, Any] = {
            "apiVersion": API_GROUP_VERSION,
            "kind": KIND_ACTOR,
            "metadata": self.metadata.to_dict(),
            "spec": self.spec.to_dict(),
        }
        if self.status is not None:
            body["status"] = self.status.to_dict()
        return body

    @classmethod
    def from_body(cls, body: dict[str, Any]) -> "Actor":
        """Build from a raw Kubernetes object."""
        return cls(
            metadata=ObjectMeta.from_dict(body.get("metadata") or {}),
            spec=ActorSpec.from_dict(body.get("spec") or {}),
            status=Status.from_dict(body.get("status")),
        )
