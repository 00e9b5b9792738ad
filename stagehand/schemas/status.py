"""
Status schemas - the externally visible lifecycle of Playbooks and Actors.

Status is the only representation of lifecycle: there is no hidden internal
state duplicating it. Its shape mirrors a condition record:

    {state, ready, reason, message, observedGeneration}
"""

from dataclasses import dataclass, replace
from enum import Enum
from typing import Any, Optional


class ActorState(str, Enum):
    """Lifecycle states of an Actor."""
    PENDING = "Pending"
    BUILDING = "Building"
    DEPLOYING = "Deploying"
    RUNNING = "Running"


class PlaybookState(str, Enum):
    """Lifecycle states of a Playbook."""
    PENDING = "Pending"
    SOLVING = "Solving"
    RUNNING = "Running"


@dataclass(frozen=True)
class Status:
    """
    Lifecycle status of a Playbook or Actor.

    Attributes:
        state: Current state name (an ActorState or PlaybookState value)
        ready: Whether the object is ready
        reason: Machine-readable reason (CamelCase, e.g. "AutoRun")
        message: Optional human-readable message
        observed_generation: metadata.generation the status was written for
    """
    state: str
    ready: bool = False
    reason: str = ""
    message: Optional[str] = None
    observed_generation: Optional[int] = None

    # -- factories ----------------------------------------------------------

    @classmethod
    def pending(cls) -> "Status":
        return cls(state=ActorState.PENDING.value, reason="Pending")

    @classmethod
    def building(cls, reason: str = "Building", message: Optional[str] = None) -> "Status":
        return cls(state=ActorState.BUILDING.value, reason=reason, message=message)

    @classmethod
    def deploying(cls) -> "Status":
        return cls(state=ActorState.DEPLOYING.value, reason="Deploying")

    @classmethod
    def solving(cls) -> "Status":
        return cls(state=PlaybookState.SOLVING.value, reason="Solving")

    @classmethod
    def running(cls, ready: bool, reason: str, message: Optional[str] = None) -> "Status":
        return cls(
            state=ActorState.RUNNING.value,
            ready=ready,
            reason=reason,
            message=message,
        )

    def observed(self, generation: Optional[int]) -> "Status":
        """Return a copy stamped with the generation it was computed for."""
        return replace(self, observed_generation=generation)

    # -- predicates ---------------------------------------------------------

    def is_pending(self) -> bool:
        return self.state == ActorState.PENDING.value

    def is_building(self) -> bool:
        return self.state == ActorState.BUILDING.value

    def is_deploying(self) -> bool:
        return self.state == ActorState.DEPLOYING.value

    def is_solving(self) -> bool:
        return self.state == PlaybookState.SOLVING.value

    def is_running(self) -> bool:
        return self.state == ActorState.RUNNING.value

    # -- serialization ------------------------------------------------------

    def to_dict(self) -> dict[str, Any]:
        """Serialize to the status sub-resource shape."""
        result: dict[str, Any] = {
            "state": self.state,
            "ready": self.ready,
            "reason": self.reason,
            "message": self.message,
        }
        if self.observed_generation is not None:
            result["observedGeneration"] = self.observed_generation
        return result

    @classmethod
    def from_dict(cls, data: Optional[dict[str, Any]]) -> Optional["Status"]:
        """Deserialize; returns None when the object has no status yet."""
        if not data or not data.get("state"):
            return None
        return cls(
            state=data["state"],
            ready=bool(data.get("ready", False)),
            reason=data.get("reason") or "",
            message=data.get("message"),
            observed_generation=data.get("observedGeneration"),
        )
