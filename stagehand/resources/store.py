"""
ObjectStore - the declarative object store the reconcilers talk to.

The store provides:
- Typed kinds (custom resources and the built-ins we create)
- get / exists / list reads
- create / replace / merge-patch / status-patch / delete writes

All writes use server-side mergeable semantics (JSON merge patch) so that
concurrent writers to disjoint fields do not clobber each other; status
patches only touch the status sub-resource. The store does NOT enforce
idempotence: callers check exists() and branch to create or update.

Storage backends:
- In-memory (for testing), records every mutating call
- Kubernetes (see kubernetes_store.py)
"""

import copy
import threading
import uuid
from abc import ABC, abstractmethod
from enum import Enum
from typing import Any, Optional

from stagehand.errors import StoreError
from stagehand.utils import utcnow_iso


class Kind(str, Enum):
    """Kinds of objects the reconcilers read or write."""
    PLAYBOOK = "Playbook"
    ACTOR = "Actor"
    NAMESPACE = "Namespace"
    SECRET = "Secret"
    SERVICE_ACCOUNT = "ServiceAccount"
    JOB = "Job"
    IMAGE = "Image"
    DEPLOYMENT = "Deployment"
    EVENT = "Event"

    @property
    def cluster_scoped(self) -> bool:
        return self in (Kind.PLAYBOOK, Kind.NAMESPACE)

    @property
    def has_generation(self) -> bool:
        """Whether spec changes bump metadata.generation."""
        return self in (Kind.PLAYBOOK, Kind.ACTOR, Kind.IMAGE, Kind.DEPLOYMENT, Kind.JOB)


def merge_patch(target: Any, patch: Any) -> Any:
    """
    Apply an RFC 7386 JSON merge patch.

    Mappings merge recursively, None deletes a key, everything else
    (including lists) replaces the target value.
    """
    if not isinstance(patch, dict):
        return copy.deepcopy(patch)
    result = copy.deepcopy(target) if isinstance(target, dict) else {}
    for key, value in patch.items():
        if value is None:
            result.pop(key, None)
        else:
            result[key] = merge_patch(result.get(key), value)
    return result


def is_subset(desired: Any, current: Any) -> bool:
    """
    Return True if every field of `desired` is present and equal in `current`.

    Fields the server defaults (present only in `current`) are ignored, so
    an unchanged object never looks like it needs an update.
    """
    if isinstance(desired, dict):
        if not isinstance(current, dict):
            return False
        return all(k in current and is_subset(v, current[k]) for k, v in desired.items())
    if isinstance(desired, list):
        if not isinstance(current, list) or len(desired) != len(current):
            return False
        return all(is_subset(d, c) for d, c in zip(desired, current))
    return desired == current


def replacement_patch(current: Any, desired: Any) -> Any:
    """
    Merge patch turning `current` into exactly `desired`.

    Keys missing from `desired` are nulled out, which a plain merge patch of
    `desired` would leave behind.
    """
    if not isinstance(desired, dict) or not isinstance(current, dict):
        return copy.deepcopy(desired)
    patch: dict[str, Any] = {k: None for k in current if k not in desired}
    for key, value in desired.items():
        patch[key] = replacement_patch(current.get(key), value)
    return patch


def parse_label_selector(selector: Optional[str]) -> dict[str, str]:
    """Parse an equality-based label selector ("a=b,c=d")."""
    if not selector:
        return {}
    labels: dict[str, str] = {}
    for term in selector.split(","):
        key, sep, value = term.partition("=")
        if not sep:
            raise ValueError(f"Unsupported label selector term: {term}")
        labels[key.strip()] = value.strip()
    return labels


class ObjectStore(ABC):
    """
    Abstract base class for object store access.

    Implementations must provide reads (get, list) and writes (create,
    replace, patch, patch_status, delete). Missing objects are reported as
    None/False; every other failure raises StoreError.
    """

    @abstractmethod
    def get(self, kind: Kind, name: str, namespace: Optional[str] = None) -> Optional[dict[str, Any]]:
        """
        Read an object.

        Args:
            kind: Object kind
            name: Object name
            namespace: Namespace (ignored for cluster-scoped kinds)

        Returns:
            The object body if found, None otherwise
        """
        pass

    def exists(self, kind: Kind, name: str, namespace: Optional[str] = None) -> bool:
        """Return True if the object exists."""
        return self.get(kind, name, namespace) is not None

    @abstractmethod
    def list(
        self,
        kind: Kind,
        namespace: Optional[str] = None,
        label_selector: Optional[str] = None,
    ) -> list[dict[str, Any]]:
        """
        List objects of a kind.

        Args:
            kind: Object kind
            namespace: Restrict to a namespace (None lists all namespaces)
            label_selector: Equality-based label selector

        Returns:
            Matching object bodies
        """
        pass

    @abstractmethod
    def create(self, kind: Kind, body: dict[str, Any]) -> dict[str, Any]:
        """
        Create an object.

        Args:
            kind: Object kind
            body: Full object document (namespace taken from metadata)

        Returns:
            The created object as stored
        """
        pass

    @abstractmethod
    def replace(self, kind: Kind, body: dict[str, Any]) -> dict[str, Any]:
        """Replace an existing object with a full document."""
        pass

    @abstractmethod
    def patch(
        self,
        kind: Kind,
        name: str,
        patch: dict[str, Any],
        namespace: Optional[str] = None,
    ) -> dict[str, Any]:
        """
        Apply a JSON merge patch to an object.

        A metadata.resourceVersion in the patch makes the write conditional.
        """
        pass

    @abstractmethod
    def patch_status(
        self,
        kind: Kind,
        name: str,
        status: dict[str, Any],
        namespace: Optional[str] = None,
    ) -> dict[str, Any]:
        """Merge-patch the status sub-resource only."""
        pass

    @abstractmethod
    def delete(self, kind: Kind, name: str, namespace: Optional[str] = None) -> bool:
        """
        Request deletion of an object.

        Returns:
            True if a deletion was issued, False if the object was absent
        """
        pass


class InMemoryObjectStore(ObjectStore):
    """
    In-memory implementation of ObjectStore for testing.

    Behaves like the API server where it matters to the reconcilers:
    resourceVersion conflicts, generation bumps on spec changes, and
    finalizers deferring deletion. Every mutating call is appended to
    `calls` as (operation, kind, key).
    """

    def __init__(self):
        self._objects: dict[tuple[Kind, str, str], dict[str, Any]] = {}
        self._version = 0
        self._lock = threading.RLock()
        self._failures: list[tuple[str, Kind, Exception]] = []
        self.calls: list[tuple[str, Kind, str]] = []

    # -- helpers ------------------------------------------------------------

    @staticmethod
    def _key(kind: Kind, name: str, namespace: Optional[str]) -> tuple[Kind, str, str]:
        return (kind, "" if kind.cluster_scoped else (namespace or ""), name)

    def _next_version(self) -> str:
        self._version += 1
        return str(self._version)

    def _record(self, op: str, kind: Kind, name: str, namespace: Optional[str]) -> None:
        for i, (f_op, f_kind, error) in enumerate(self._failures):
            if f_op == op and f_kind == kind:
                del self._failures[i]
                raise error
        key = name if kind.cluster_scoped or not namespace else f"{namespace}/{name}"
        self.calls.append((op, kind, key))

    def _require(self, kind: Kind, name: str, namespace: Optional[str]) -> dict[str, Any]:
        obj = self._objects.get(self._key(kind, name, namespace))
        if obj is None:
            raise StoreError(f"{kind.value} {name} not found", kind=kind.value, name=name, status=404)
        return obj

    def _check_version(self, current: dict[str, Any], requested: Optional[str], kind: Kind, name: str) -> None:
        if requested is not None and requested != current["metadata"].get("resourceVersion"):
            raise StoreError(
                f"Conflict writing {kind.value} {name}: resourceVersion {requested} is stale",
                kind=kind.value, name=name, status=409,
            )

    def _commit(self, kind: Kind, old: dict[str, Any], new: dict[str, Any]) -> dict[str, Any]:
        meta = new["metadata"]
        if kind.has_generation and old.get("spec") != new.get("spec"):
            meta["generation"] = int(old["metadata"].get("generation") or 1) + 1
        meta["resourceVersion"] = self._next_version()
        key = self._key(kind, meta["name"], meta.get("namespace"))
        if meta.get("deletionTimestamp") and not meta.get("finalizers"):
            self._objects.pop(key, None)
        else:
            self._objects[key] = new
        return copy.deepcopy(new)

    def inject_failure(self, op: str, kind: Kind, error: Optional[Exception] = None) -> None:
        """Make the next `op` on `kind` raise `error` (default: a StoreError)."""
        error = error or StoreError(f"injected {op} failure for {kind.value}", kind=kind.value, status=500)
        self._failures.append((op, kind, error))

    def mutations(self, kind: Optional[Kind] = None, op: Optional[str] = None) -> list[tuple[str, Kind, str]]:
        """Recorded mutating calls, optionally filtered."""
        return [
            c for c in self.calls
            if (kind is None or c[1] == kind) and (op is None or c[0] == op)
        ]

    # -- reads --------------------------------------------------------------

    def get(self, kind: Kind, name: str, namespace: Optional[str] = None) -> Optional[dict[str, Any]]:
        with self._lock:
            obj = self._objects.get(self._key(kind, name, namespace))
            return copy.deepcopy(obj) if obj is not None else None

    def list(
        self,
        kind: Kind,
        namespace: Optional[str] = None,
        label_selector: Optional[str] = None,
    ) -> list[dict[str, Any]]:
        wanted = parse_label_selector(label_selector)
        with self._lock:
            result = []
            for (k, ns, _), obj in self._objects.items():
                if k != kind:
                    continue
                if namespace is not None and not kind.cluster_scoped and ns != namespace:
                    continue
                labels = obj["metadata"].get("labels") or {}
                if all(labels.get(lk) == lv for lk, lv in wanted.items()):
                    result.append(copy.deepcopy(obj))
            return result

    # -- writes -------------------------------------------------------------

    def create(self, kind: Kind, body: dict[str, Any]) -> dict[str, Any]:
        meta = body.get("metadata") or {}
        name = meta.get("name")
        if not name and meta.get("generateName"):
            name = f"{meta['generateName']}{uuid.uuid4().hex[:5]}"
        if not name:
            raise StoreError(f"{kind.value} without metadata.name", kind=kind.value, status=422)
        namespace = meta.get("namespace")

        with self._lock:
            self._record("create", kind, name, namespace)
            key = self._key(kind, name, namespace)
            if key in self._objects:
                raise StoreError(f"{kind.value} {name} already exists", kind=kind.value, name=name, status=409)

            obj = copy.deepcopy(body)
            obj.setdefault("kind", kind.value)
            obj["metadata"] = dict(obj.get("metadata") or {})
            obj["metadata"]["name"] = name
            obj["metadata"]["uid"] = str(uuid.uuid4())
            obj["metadata"]["resourceVersion"] = self._next_version()
            obj["metadata"]["creationTimestamp"] = utcnow_iso()
            if kind.has_generation:
                obj["metadata"]["generation"] = 1
            self._objects[key] = obj
            return copy.deepcopy(obj)

    def replace(self, kind: Kind, body: dict[str, Any]) -> dict[str, Any]:
        meta = body.get("metadata") or {}
        name, namespace = meta.get("name"), meta.get("namespace")
        with self._lock:
            self._record("replace", kind, name, namespace)
            current = self._require(kind, name, namespace)
            self._check_version(current, meta.get("resourceVersion"), kind, name)
            new = copy.deepcopy(body)
            new.setdefault("kind", kind.value)
            # Server-owned fields survive a replace
            for field in ("uid", "creationTimestamp", "generation", "deletionTimestamp", "finalizers"):
                if field in current["metadata"] and field not in new["metadata"]:
                    new["metadata"][field] = current["metadata"][field]
            if "status" in current:
                new["status"] = current["status"]
            return self._commit(kind, current, new)

    def patch(
        self,
        kind: Kind,
        name: str,
        patch: dict[str, Any],
        namespace: Optional[str] = None,
    ) -> dict[str, Any]:
        with self._lock:
            self._record("patch", kind, name, namespace)
            current = self._require(kind, name, namespace)
            requested = (patch.get("metadata") or {}).get("resourceVersion")
            self._check_version(current, requested, kind, name)
            patch = {k: v for k, v in patch.items() if k != "status"}
            new = merge_patch(current, patch)
            return self._commit(kind, current, new)

    def patch_status(
        self,
        kind: Kind,
        name: str,
        status: dict[str, Any],
        namespace: Optional[str] = None,
    ) -> dict[str, Any]:
        with self._lock:
            self._record("patch_status", kind, name, namespace)
            current = self._require(kind, name, namespace)
            new = copy.deepcopy(current)
            new["status"] = merge_patch(current.get("status") or {}, status)
            new["metadata"]["resourceVersion"] = self._next_version()
            self._objects[self._key(kind, name, namespace)] = new
            return copy.deepcopy(new)

    def delete(self, kind: Kind, name: str, namespace: Optional[str] = None) -> bool:
        with self._lock:
            key = self._key(kind, name, namespace)
            if key not in self._objects:
                return False
            self._record("delete", kind, name, namespace)
            obj = self._objects[key]
            if obj["metadata"].get("finalizers"):
                obj["metadata"].setdefault("deletionTimestamp", utcnow_iso())
                obj["metadata"]["resourceVersion"] = self._next_version()
            else:
                del self._objects[key]
            return True

    def clear(self) -> None:
        """Clear all stored objects and recorded calls (for testing)."""
        with self._lock:
            self._objects.clear()
            self.calls.clear()
            self._failures.clear()
