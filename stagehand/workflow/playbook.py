"""
Playbook state machine: Pending -> Solving -> Running.

- Pending: create the playbook namespace and wire the registry credential
  into it.
- Solving: grow the actor list to its partner closure.
- Running: materialize every actor spec as an Actor resource. A spec edit
  that introduces new partners sends the playbook back to Solving.
"""

import logging

from stagehand.resolver import compute_fetches
from stagehand.resources import actor as actor_resource
from stagehand.resources import documents, namespace, secret, service_account
from stagehand.resources import playbook as playbook_resource
from stagehand.schemas import Playbook, PlaybookState, Status
from stagehand.workflow.base import Context, Intent, State, StateMachine, Task

logger = logging.getLogger(__name__)


class InitTask(Task[Playbook]):
    """Create the namespace, registry secret and service account wiring."""

    def matches(self, ctx: Context[Playbook]) -> bool:
        return ctx.object.status is not None and ctx.object.status.is_pending()

    def execute(self, ctx: Context[Playbook]) -> Intent:
        playbook = ctx.object
        ns = playbook.spec.namespace
        reference = playbook.reference()

        if namespace.create(ctx.store, playbook):
            ctx.recorder.normal(reference, "NamespaceCreated", f"Created namespace {ns}")

        credential = ctx.credentials.get(ctx.config.registry_host) if ctx.credentials else None
        if credential is not None:
            secret.create(ctx.store, ns, credential)
            service_account.patch(ctx.store, ns, ctx.config.service_account, credential)
            ctx.recorder.normal(
                reference, "CredentialsConfigured",
                f"Attached registry credential for {credential.host} to {ctx.config.service_account}",
            )
        else:
            logger.info(f"No credential for registry {ctx.config.registry_host}, skipping secret")

        playbook_resource.patch_status(ctx.store, playbook, Status.solving())
        ctx.recorder.normal(reference, "Solving", "Init successfully, solving partners")
        return Intent.transition(PlaybookState.SOLVING.value)


class SolveTask(Task[Playbook]):
    """Fetch missing partners; declare the playbook running once none are left."""

    def matches(self, ctx: Context[Playbook]) -> bool:
        return ctx.object.status is not None and ctx.object.status.is_solving()

    def execute(self, ctx: Context[Playbook]) -> Intent:
        playbook = ctx.object
        if not ctx.resolver.solve(ctx.store, playbook, ctx.recorder):
            return Intent.stay()

        playbook_resource.patch_status(ctx.store, playbook, Status.running(True, "AutoRun"))
        ctx.recorder.normal(playbook.reference(), "Solved", "Solved successfully, running")
        return Intent.transition(PlaybookState.RUNNING.value)


class ResolveChangesTask(Task[Playbook]):
    """Go back to Solving when an edit added partners nobody fetched yet."""

    def matches(self, ctx: Context[Playbook]) -> bool:
        playbook = ctx.object
        status = playbook.status
        if status is None or not status.is_running():
            return False
        if status.observed_generation == playbook.metadata.generation:
            return False
        return bool(compute_fetches(playbook.spec.actors))

    def execute(self, ctx: Context[Playbook]) -> Intent:
        logger.info(f"Playbook {ctx.object.name} gained new partners, solving again")
        playbook_resource.patch_status(ctx.store, ctx.object, Status.solving())
        return Intent.transition(PlaybookState.SOLVING.value)


class PerformTask(Task[Playbook]):
    """Create or update an Actor resource for every actor spec."""

    def matches(self, ctx: Context[Playbook]) -> bool:
        return ctx.object.status is not None and ctx.object.status.is_running()

    def execute(self, ctx: Context[Playbook]) -> Intent:
        playbook = ctx.object
        ns = playbook.spec.namespace

        for spec in playbook.spec.actors:
            body = documents.actor_resource(playbook, spec)
            if actor_resource.exists(ctx.store, ns, spec.name):
                if actor_resource.update(ctx.store, body):
                    ctx.recorder.normal(playbook.reference(), "ActorUpdated", f"Updated actor {spec.name}")
            else:
                logger.info(f"Create new actor: {spec.name}")
                actor_resource.create(ctx.store, body)
                ctx.recorder.normal(playbook.reference(), "ActorCreated", f"Created actor {spec.name}")
        return Intent.stay()


def _state_of(playbook: Playbook):
    return playbook.status.state if playbook.status is not None else None


def create_playbook_machine() -> StateMachine[Playbook]:
    return StateMachine(
        [
            State(PlaybookState.PENDING.value, [InitTask()]),
            State(PlaybookState.SOLVING.value, [SolveTask()]),
            State(PlaybookState.RUNNING.value, [ResolveChangesTask(), PerformTask()]),
        ],
        state_of=_state_of,
    )
