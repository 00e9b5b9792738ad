"""Resource synchronizer package.

Typed, idempotent operations on the objects the reconcilers own:
- store: ObjectStore interface plus the in-memory implementation
- kubernetes_store: ObjectStore backed by the Kubernetes API
- documents: pure constructors for every resource document
- namespace, secret, service_account, actor, playbook, job, image,
  deployment: per-kind exists/create/update/delete helpers
- finalizers: finalizer bookkeeping
- event: best-effort EventRecorder
"""

from stagehand.resources.event import EventRecorder
from stagehand.resources.store import (
    InMemoryObjectStore,
    Kind,
    ObjectStore,
    is_subset,
    merge_patch,
    replacement_patch,
)

__all__ = [
    "EventRecorder",
    "InMemoryObjectStore",
    "Kind",
    "ObjectStore",
    "is_subset",
    "merge_patch",
    "replacement_patch",
]
