"""
Workflow engine shared by the Playbook and Actor state machines.

A StateMachine maps a state id (the `state` field of the object's status)
to a State. Each State owns an ordered list of Tasks; handling a state runs
the first Task whose precondition holds and returns its Intent:

- Intent.stay(): nothing more to do until the next reconciliation
- Intent.transition(state): status was patched to `state`, reconcile again

Errors are not an Intent. A Task raises, the State logs and re-raises, and
the controller turns the error into "no transition, requeue after backoff".
"""

import logging
from abc import ABC, abstractmethod
from dataclasses import dataclass
from enum import Enum
from typing import TYPE_CHECKING, Callable, Generic, Optional, TypeVar

from stagehand.config import StagehandConfig
from stagehand.errors import StagehandError
from stagehand.resources.event import EventRecorder
from stagehand.resources.store import ObjectStore

if TYPE_CHECKING:
    from stagehand.builders import BuildOrchestrator
    from stagehand.credentials import CredentialStore
    from stagehand.resolver import Resolver

logger = logging.getLogger(__name__)

T = TypeVar("T")


class IntentKind(str, Enum):
    STAY = "stay"
    TRANSITION = "transition"


@dataclass(frozen=True)
class Intent:
    """Outcome of handling a state."""
    kind: IntentKind
    state: Optional[str] = None

    @classmethod
    def stay(cls) -> "Intent":
        return cls(kind=IntentKind.STAY)

    @classmethod
    def transition(cls, state: str) -> "Intent":
        if not state:
            raise ValueError("Transition requires a target state")
        return cls(kind=IntentKind.TRANSITION, state=state)

    @property
    def is_transition(self) -> bool:
        return self.kind == IntentKind.TRANSITION

    def __str__(self) -> str:
        return f"transition({self.state})" if self.is_transition else "stay"


@dataclass
class Context(Generic[T]):
    """
    Everything a Task may use during one reconciliation pass.

    Attributes:
        object: The Playbook or Actor being reconciled, as last read
        store: Object store for every read and write
        config: Operator configuration
        recorder: Event recorder
        credentials: Shared registry credentials
        orchestrator: Build orchestrator (actor tasks)
        resolver: Dependency resolver (playbook tasks)
    """
    object: T
    store: ObjectStore
    config: StagehandConfig
    recorder: EventRecorder
    credentials: Optional["CredentialStore"] = None
    orchestrator: Optional["BuildOrchestrator"] = None
    resolver: Optional["Resolver"] = None


class Task(ABC, Generic[T]):
    """
    One unit of work within a State.

    matches() is a pure precondition on the object's status; a task whose
    precondition is false is skipped without side effects.
    """

    @property
    def name(self) -> str:
        return type(self).__name__

    @abstractmethod
    def matches(self, ctx: Context[T]) -> bool:
        pass

    @abstractmethod
    def execute(self, ctx: Context[T]) -> Intent:
        """
        Perform the task's side effects.

        Returns:
            The Intent for the controller

        Raises:
            StagehandError: On any failure; the pass makes no transition
        """
        pass


class State(Generic[T]):
    """A named state and the tasks that may run in it."""

    def __init__(self, id: str, tasks: list[Task[T]]):
        self.id = id
        self.tasks = list(tasks)

    def handle(self, ctx: Context[T]) -> Intent:
        for task in self.tasks:
            if not task.matches(ctx):
                continue
            logger.debug(f"State {self.id}: running {task.name}")
            try:
                return task.execute(ctx)
            except StagehandError as e:
                logger.error(f"Error during {task.name} execution: {e}")
                raise
        return Intent.stay()

    def __repr__(self) -> str:
        return f"State({self.id}, tasks={[t.name for t in self.tasks]})"


class StateMachine(Generic[T]):
    """
    Table of states for one object kind.

    Args:
        states: The closed set of states
        state_of: Returns the state id of an object (None without a status)
    """

    def __init__(self, states: list[State[T]], state_of: Callable[[T], Optional[str]]):
        self.states = {state.id: state for state in states}
        self._state_of = state_of

    def state_of(self, obj: T) -> Optional[str]:
        return self._state_of(obj)

    def get(self, state_id: str) -> Optional[State[T]]:
        return self.states.get(state_id)

    def handle(self, ctx: Context[T]) -> Intent:
        state_id = self.state_of(ctx.object)
        state = self.states.get(state_id) if state_id else None
        if state is None:
            logger.warning(f"No state handles '{state_id}', staying")
            return Intent.stay()
        return state.handle(ctx)
