"""
Error classes for stagehand reconciliation.

These error types drive retry classification at the controller boundary:
- TransientError: Safe to retry after the fixed backoff (store hiccups,
  registry outages, partner manifests that could not be fetched)
- PermanentError: Will not fix itself until a user edits the object
  (malformed resource documents, violated preconditions)

Tasks raise these errors; they never return them as values.
The controller catches at the boundary, logs, records an event where useful,
and converts every error into "no transition, requeue after backoff".
No error marks an object as failed: status only ever reflects forward
progress.
"""

from typing import Optional


class StagehandError(Exception):
    """Base exception for stagehand."""
    pass


class TransientError(StagehandError):
    """
    Transient error - safe to retry.

    Examples:
    - Conflict or timeout while talking to the object store
    - Registry unreachable during the build check
    - Partner manifest temporarily unavailable

    The controller requeues after the fixed error backoff.
    """
    pass


class PermanentError(StagehandError):
    """
    Permanent error - retrying will not help until the spec changes.

    Examples:
    - Playbook with an empty actor list
    - Resource document missing a required field

    The controller still requeues (an edit may fix it) but backs off
    exponentially and records a Warning event on the object.
    """
    pass


class StoreError(TransientError):
    """Raised when a call to the object store fails."""

    def __init__(
        self,
        message: str,
        kind: Optional[str] = None,
        name: Optional[str] = None,
        status: Optional[int] = None,
    ):
        self.kind = kind
        self.name = name
        self.status = status
        super().__init__(message)


class ResolveError(TransientError):
    """Raised when a partner could not be resolved into an actor spec."""
    pass


class RegistryProbeError(TransientError):
    """
    Raised when the image registry could not answer the existence probe.

    This is never interpreted as "image does not exist".
    """
    pass


class SerializationError(PermanentError):
    """Raised when a typed resource builder rejects its inputs."""
    pass


class PreconditionError(PermanentError):
    """Raised when an object violates a precondition of its reconciler."""
    pass


def is_permanent(error: BaseException) -> bool:
    """Return True if the error will not go away by retrying alone."""
    return isinstance(error, PermanentError)
