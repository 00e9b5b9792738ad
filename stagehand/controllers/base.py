"""
Reconciliation controller shared by Playbooks and Actors.

Framework independent: the kopf bindings in operator.py hand raw object
bodies to Controller.run() and translate the returned Action.

One pass:
1. Take the per-object lock (at most one pass per object at a time) and
   re-read the object
2. Deleting and our finalizer present -> cleanup(), then drop the finalizer
3. Preconditions (check()) before anything is written
4. Finalizer absent -> add it, then continue
5. No status yet -> initialize(), requeue immediately
6. Otherwise hand the object to its state machine
   - transition -> requeue immediately
   - stay -> requeue after requeue_interval (the missed-event safety net)
7. Any StagehandError -> error_policy(): no transition, requeue after backoff

Every pass leaves a deadline for the object's next pass; due() tells the
periodic timer whether that deadline has passed, whichever path ran the pass.
"""

import logging
import threading
import time
from abc import ABC, abstractmethod
from dataclasses import dataclass
from typing import TYPE_CHECKING, Any, Generic, Optional, TypeVar

from stagehand.config import StagehandConfig
from stagehand.errors import SerializationError, StagehandError, is_permanent
from stagehand.resources.event import EventRecorder
from stagehand.resources.finalizers import add_finalizer, has_finalizer, remove_finalizer
from stagehand.resources.store import Kind, ObjectStore
from stagehand.schemas import Status
from stagehand.workflow import Context, StateMachine

if TYPE_CHECKING:
    from stagehand.builders import BuildOrchestrator
    from stagehand.credentials import CredentialStore
    from stagehand.resolver import Resolver

logger = logging.getLogger(__name__)

T = TypeVar("T")

# Transitions chained within one delivery of an object
MAX_IMMEDIATE_PASSES = 8


@dataclass(frozen=True)
class Action:
    """
    What the runtime should do after a pass.

    Attributes:
        requeue_after: Seconds until the object is reconciled again
            (None waits for the next change)
        error: The error that ended the pass, if any
    """
    requeue_after: Optional[float] = None
    error: Optional[StagehandError] = None

    @classmethod
    def requeue(cls, seconds: float, error: Optional[StagehandError] = None) -> "Action":
        return cls(requeue_after=float(seconds), error=error)

    @classmethod
    def await_change(cls) -> "Action":
        return cls()

    @property
    def failed(self) -> bool:
        return self.error is not None


class Controller(ABC, Generic[T]):
    """
    Base class for the per-kind controllers.

    Subclasses provide the kind, its finalizer, how to parse a body, how to
    initialize status and how to clean up; the state machine does the rest.
    """

    kind: Kind
    finalizer: str

    def __init__(
        self,
        store: ObjectStore,
        config: StagehandConfig,
        machine: StateMachine[T],
        recorder: Optional[EventRecorder] = None,
        credentials: Optional["CredentialStore"] = None,
        orchestrator: Optional["BuildOrchestrator"] = None,
        resolver: Optional["Resolver"] = None,
    ):
        self.store = store
        self.config = config
        self.machine = machine
        self.recorder = recorder or EventRecorder(store)
        self.credentials = credentials
        self.orchestrator = orchestrator
        self.resolver = resolver

        self._guard = threading.Lock()
        self._locks: dict[str, threading.Lock] = {}
        self._failures: dict[str, int] = {}
        self._deadlines: dict[str, float] = {}
        self.clock = time.monotonic

    # -- per-kind hooks -----------------------------------------------------

    @abstractmethod
    def from_body(self, body: dict[str, Any]) -> T:
        pass

    @abstractmethod
    def initialize(self, obj: T) -> None:
        """Write the initial Pending status."""
        pass

    @abstractmethod
    def cleanup(self, obj: T) -> None:
        """Release every sub-resource created for the object."""
        pass

    def check(self, obj: T) -> None:
        """
        Verify preconditions before dispatching to the state machine.

        Raises:
            PreconditionError: If the object cannot be reconciled as is
        """
        pass

    # -- helpers ------------------------------------------------------------

    @staticmethod
    def key_of(body: dict[str, Any]) -> str:
        meta = body.get("metadata") or {}
        if meta.get("namespace"):
            return f"{meta['namespace']}/{meta.get('name')}"
        return str(meta.get("name"))

    def _lock_for(self, key: str) -> threading.Lock:
        with self._guard:
            return self._locks.setdefault(key, threading.Lock())

    def parse(self, body: dict[str, Any]) -> T:
        try:
            return self.from_body(body)
        except (KeyError, TypeError, ValueError) as e:
            raise SerializationError(f"Malformed {self.kind.value} {self.key_of(body)}: {e}") from e

    def context(self, obj: T) -> Context[T]:
        return Context(
            object=obj,
            store=self.store,
            config=self.config,
            recorder=self.recorder,
            credentials=self.credentials,
            orchestrator=self.orchestrator,
            resolver=self.resolver,
        )

    def failures(self, key: str) -> int:
        """Consecutive failed passes for an object."""
        return self._failures.get(key, 0)

    def forget(self, key: str) -> None:
        """Drop the bookkeeping of an object that is gone."""
        with self._guard:
            self._locks.pop(key, None)
            self._failures.pop(key, None)
            self._deadlines.pop(key, None)

    def due(self, key: str) -> bool:
        """Whether the next pass of an object is due (always, for an unseen object)."""
        deadline = self._deadlines.get(key)
        return deadline is None or self.clock() >= deadline

    def _schedule(self, key: str, action: Action) -> Action:
        delay = action.requeue_after if action.requeue_after is not None else self.config.requeue_interval
        self._deadlines[key] = self.clock() + delay
        return action

    # -- reconciliation -----------------------------------------------------

    def run(self, body: dict[str, Any]) -> Action:
        """Run one reconciliation pass over a raw object body."""
        key = self.key_of(body)
        with self._lock_for(key):
            try:
                action = self._apply(body)
            except StagehandError as e:
                return self._schedule(key, self.error_policy(body, e))
            self._failures.pop(key, None)
            return self._schedule(key, action)

    def drive(self, body: dict[str, Any], max_passes: int = MAX_IMMEDIATE_PASSES) -> Action:
        """Run passes back to back for as long as they ask for an immediate requeue."""
        action = self.run(body)
        for _ in range(max_passes - 1):
            if action.failed or action.requeue_after != 0:
                break
            action = self.run(body)
        return action

    def _apply(self, body: dict[str, Any]) -> Action:
        # Work on the latest revision, not the snapshot the event carried
        meta = body.get("metadata") or {}
        current = self.store.get(self.kind, meta.get("name"), meta.get("namespace"))
        if current is None:
            logger.debug(f"{self.kind.value} {self.key_of(body)} is gone")
            return Action.await_change()
        body = current

        obj = self.parse(body)
        meta = obj.metadata

        if meta.deleting:
            if has_finalizer(body, self.finalizer):
                logger.info(f"Cleaning up {self.kind.value} {meta.key}")
                self.cleanup(obj)
                remove_finalizer(self.store, self.kind, body, self.finalizer)
                logger.info(f"Cleaned up {self.kind.value} {meta.key}")
            return Action.await_change()

        # Nothing is written for an object that cannot be reconciled
        self.check(obj)

        if not has_finalizer(body, self.finalizer):
            body = add_finalizer(self.store, self.kind, body, self.finalizer)
            obj = self.parse(body)

        if obj.status is None:
            logger.info(f"Initializing {self.kind.value} {meta.key}")
            self.initialize(obj)
            return Action.requeue(0)

        return self.reconcile(obj)

    def reconcile(self, obj: T) -> Action:
        intent = self.machine.handle(self.context(obj))
        if intent.is_transition:
            logger.info(f"{self.kind.value} {obj.metadata.key} -> {intent.state}")
            return Action.requeue(0)
        return Action.requeue(self.config.requeue_interval)

    def error_policy(self, body: dict[str, Any], error: StagehandError) -> Action:
        """
        Turn a failed pass into a requeue.

        Transient errors retry after the fixed error_backoff. Permanent ones
        back off exponentially up to max_backoff and leave a Warning event
        on the object, since status never records failures.
        """
        key = self.key_of(body)
        failures = self._failures.get(key, 0) + 1
        self._failures[key] = failures

        if not is_permanent(error):
            logger.error(f"Reconcile of {self.kind.value} {key} failed: {error}")
            return Action.requeue(self.config.error_backoff, error=error)

        delay = min(self.config.error_backoff * 2 ** (failures - 1), self.config.max_backoff)
        logger.error(f"Reconcile of {self.kind.value} {key} failed permanently, retrying in {delay:.0f}s: {error}")
        try:
            reference = self.parse(body).reference()
        except SerializationError:
            reference = None
        if reference is not None:
            self.recorder.warning(reference, type(error).__name__, str(error))
        return Action.requeue(delay, error=error)
