"""Stagehand workflow package.

Per-kind state machines driving Playbooks and Actors through their
lifecycles, on top of a small State/Task/Intent engine.
"""

from stagehand.workflow.base import Context, Intent, IntentKind, State, StateMachine, Task
from stagehand.workflow.actor import create_actor_machine
from stagehand.workflow.playbook import create_playbook_machine

__all__ = [
    "Context",
    "Intent",
    "IntentKind",
    "State",
    "StateMachine",
    "Task",
    "create_actor_machine",
    "create_playbook_machine",
]
