"""
Object metadata shared by the Playbook and Actor custom resources.
"""

from dataclasses import dataclass, field
from typing import Any, Optional


@dataclass
class ObjectMeta:
    """The subset of metadata the reconcilers look at."""
    name: str
    namespace: Optional[str] = None
    uid: Optional[str] = None
    generation: Optional[int] = None
    resource_version: Optional[str] = None
    deletion_timestamp: Optional[str] = None
    finalizers: list[str] = field(default_factory=list)
    labels: dict[str, str] = field(default_factory=dict)
    owner_references: list[dict[str, Any]] = field(default_factory=list)

    @property
    def key(self) -> str:
        """Stable per-object key: '<namespace>/<name>' or just the name."""
        if self.namespace:
            return f"{self.namespace}/{self.name}"
        return self.name

    @property
    def deleting(self) -> bool:
        return self.deletion_timestamp is not None

    def to_dict(self) -> dict[str, Any]:
        result: dict[str, Any] = {"name": self.name}
        if self.namespace:
            result["namespace"] = self.namespace
        if self.uid:
            result["uid"] = self.uid
        if self.labels:
            result["labels"] = dict(self.labels)
        if self.finalizers:
            result["finalizers"] = list(self.finalizers)
        if self.owner_references:
            result["ownerReferences"] = list(self.owner_references)
        if self.resource_version:
            result["resourceVersion"] = self.resource_version
        return result

    @classmethod
    def from_dict(cls, data: dict[str, Any]) -> "ObjectMeta":
        if not data.get("name"):
            raise ValueError("metadata.name is required")
        return cls(
            name=data["name"],
            namespace=data.get("namespace"),
            uid=data.get("uid"),
            generation=data.get("generation"),
            resource_version=data.get("resourceVersion"),
            deletion_timestamp=data.get("deletionTimestamp"),
            finalizers=list(data.get("finalizers") or []),
            labels=dict(data.get("labels") or {}),
            owner_references=list(data.get("ownerReferences") or []),
        )
