"""
Actor state machine: Pending -> Building -> Deploying -> Running.

- Pending: decide whether a build is needed. Live actors and actors whose
  image is missing from the registry go to Building; the others skip
  straight to Deploying.
- Building: create or refresh the build resource and wait for it.
- Deploying: create or update the actor's Deployment.
- Running: re-enter Pending when the spec changed since the status was
  written.
"""

import logging

from stagehand.resources import actor as actor_resource
from stagehand.resources import deployment, documents
from stagehand.schemas import Actor, ActorState, Status
from stagehand.workflow.base import Context, Intent, State, StateMachine, Task

logger = logging.getLogger(__name__)

BUILD_FAILED = "BuildFailed"


def _build_failure_recorded(actor: Actor) -> bool:
    """Whether the failed build of the current generation was already reported."""
    status = actor.status
    return status.reason == BUILD_FAILED and status.observed_generation == actor.metadata.generation


class InitTask(Task[Actor]):
    """Check the registry cache and pick the next stage."""

    def matches(self, ctx: Context[Actor]) -> bool:
        return ctx.object.status is not None and ctx.object.status.is_pending()

    def execute(self, ctx: Context[Actor]) -> Intent:
        actor = ctx.object

        if ctx.orchestrator.needs_build(actor):
            if actor.spec.live:
                ctx.orchestrator.reset(actor)
            actor_resource.patch_status(ctx.store, actor, Status.building())
            ctx.recorder.normal(actor.reference(), "Building", f"Building image {ctx.orchestrator.image(actor)}")
            return Intent.transition(ActorState.BUILDING.value)

        actor_resource.patch_status(ctx.store, actor, Status.deploying())
        ctx.recorder.normal(actor.reference(), "BuildSkipped", f"Image {ctx.orchestrator.image(actor)} already exists")
        return Intent.transition(ActorState.DEPLOYING.value)


class BuildTask(Task[Actor]):
    """Dispatch the build and poll its outcome."""

    def matches(self, ctx: Context[Actor]) -> bool:
        return ctx.object.status is not None and ctx.object.status.is_building()

    def execute(self, ctx: Context[Actor]) -> Intent:
        actor = ctx.object
        ctx.orchestrator.build(actor)

        outcome = ctx.orchestrator.completed(actor)
        if outcome is None:
            logger.debug(f"Build of actor {actor.key} still running")
            return Intent.stay()
        if outcome is False:
            if _build_failure_recorded(actor):
                logger.debug(f"Build of actor {actor.key} already reported as failed")
                return Intent.stay()
            logger.warning(f"Build of actor {actor.key} failed")
            actor_resource.patch_status(ctx.store, actor, Status.building(BUILD_FAILED, "Waiting for a spec change"))
            ctx.recorder.warning(actor.reference(), BUILD_FAILED, "Build failed, waiting for a spec change")
            return Intent.stay()

        actor_resource.patch_status(ctx.store, actor, Status.deploying())
        ctx.recorder.normal(actor.reference(), "Built", f"Built image {ctx.orchestrator.image(actor)}")
        return Intent.transition(ActorState.DEPLOYING.value)


class DeployTask(Task[Actor]):
    """Create or update the workload running the actor."""

    def matches(self, ctx: Context[Actor]) -> bool:
        return ctx.object.status is not None and ctx.object.status.is_deploying()

    def execute(self, ctx: Context[Actor]) -> Intent:
        actor = ctx.object
        body = documents.deployment(actor, ctx.orchestrator.image(actor))

        if deployment.exists(ctx.store, actor):
            logger.info(f"Try to refresh an existing deployment for actor {actor.key}")
            deployment.update(ctx.store, actor, body)
        else:
            logger.info(f"Create new deployment for actor {actor.key}")
            deployment.create(ctx.store, actor, body)

        actor_resource.patch_status(ctx.store, actor, Status.running(True, "Deployed"))
        ctx.recorder.normal(actor.reference(), "Deployed", f"Deployed {body['metadata']['name']}")
        return Intent.transition(ActorState.RUNNING.value)


class RunTask(Task[Actor]):
    """Restart the lifecycle after a spec change."""

    def matches(self, ctx: Context[Actor]) -> bool:
        status = ctx.object.status
        return (
            status is not None
            and status.is_running()
            and status.observed_generation != ctx.object.metadata.generation
        )

    def execute(self, ctx: Context[Actor]) -> Intent:
        actor = ctx.object
        logger.info(
            f"Actor {actor.key} changed (generation {actor.metadata.generation}, "
            f"observed {actor.status.observed_generation}), restarting"
        )
        actor_resource.patch_status(ctx.store, actor, Status.pending())
        return Intent.transition(ActorState.PENDING.value)


def _state_of(actor: Actor):
    return actor.status.state if actor.status is not None else None


def create_actor_machine() -> StateMachine[Actor]:
    return StateMachine(
        [
            State(ActorState.PENDING.value, [InitTask()]),
            State(ActorState.BUILDING.value, [BuildTask()]),
            State(ActorState.DEPLOYING.value, [DeployTask()]),
            State(ActorState.RUNNING.value, [RunTask()]),
        ],
        state_of=_state_of,
    )
