"""
kopf bindings.

register() wires the controllers into a kopf registry:
- startup: Kubernetes client, object store, credentials and their refresher,
  builders, resolver and both controllers (kept in the operator memo)
- cleanup: stops the credential refresher
- on.event for Playbooks and Actors: one drive per delivered change. kopf
  never retries event handlers, so a failed drive is left to the timer
  through the deadline the controller recorded for the object
- timer for Playbooks and Actors: ticks every timer_interval and drives the
  objects whose deadline has passed (backoff after a failure, requeue_interval
  after a quiet pass); a failed pass raises kopf.TemporaryError with the
  controller's backoff
"""

import logging
from collections.abc import Mapping
from typing import Any, Optional

import kopf

from stagehand.builders import BuilderRegistry, BuildOrchestrator
from stagehand.config import StagehandConfig
from stagehand.constants import API_GROUP, API_VERSION, PLURAL_ACTORS, PLURAL_PLAYBOOKS
from stagehand.controllers.actor import ActorController
from stagehand.controllers.base import Action, Controller
from stagehand.controllers.playbook import PlaybookController
from stagehand.credentials import CredentialRefresher, CredentialStore
from stagehand.resolver import HttpManifestSource, Resolver
from stagehand.resources.event import EventRecorder
from stagehand.resources.kubernetes_store import KubernetesObjectStore, load_client_config

logger = logging.getLogger(__name__)


def plain(value: Any) -> Any:
    """Copy a kopf Body (or any nested mapping) into plain dicts and lists."""
    if isinstance(value, Mapping):
        return {k: plain(v) for k, v in value.items()}
    if isinstance(value, (list, tuple)):
        return [plain(v) for v in value]
    return value


def handle_event(controller: Controller, event: Mapping[str, Any]) -> Optional[Action]:
    body = plain(event.get("object") or {})
    if not body.get("metadata"):
        return None
    if event.get("type") == "DELETED":
        controller.forget(controller.key_of(body))
        return None
    action = controller.drive(body)
    if action.failed:
        logger.warning(f"Retrying {controller.key_of(body)} in {action.requeue_after:.0f}s: {action.error}")
    return action


def handle_timer(controller: Controller, body: Mapping[str, Any]) -> Optional[Action]:
    body = plain(body)
    if not controller.due(controller.key_of(body)):
        return None
    action = controller.drive(body)
    if action.failed:
        raise kopf.TemporaryError(str(action.error), delay=action.requeue_after)
    return action


def build_controllers(store, config: StagehandConfig, credentials: CredentialStore) -> dict[str, Controller]:
    recorder = EventRecorder(store)
    builders = BuilderRegistry.create_default(store, config, credentials)
    orchestrator = BuildOrchestrator(builders, credentials, config)
    resolver = Resolver(HttpManifestSource(config.manifest_url, timeout=config.manifest_timeout))
    return {
        "playbooks": PlaybookController(
            store, config, recorder=recorder, credentials=credentials, resolver=resolver,
        ),
        "actors": ActorController(
            store, config, recorder=recorder, credentials=credentials, orchestrator=orchestrator,
        ),
    }


def register(registry: kopf.OperatorRegistry, config: StagehandConfig) -> kopf.OperatorRegistry:
    """Register every stagehand handler on `registry`."""

    @kopf.on.startup(registry=registry)
    def startup(settings: kopf.OperatorSettings, memo: kopf.Memo, **_: Any) -> None:
        settings.posting.level = logging.WARNING
        settings.execution.max_workers = 8
        # Re-list periodically so deleting objects get another cleanup attempt
        settings.watching.server_timeout = config.requeue_interval

        load_client_config()
        store = KubernetesObjectStore(field_manager=config.field_manager)
        credentials = CredentialStore(config)
        credentials.refresh()

        refresher = CredentialRefresher(credentials, config.credential_refresh_interval)
        refresher.start()

        memo.refresher = refresher
        memo.controllers = build_controllers(store, config, credentials)
        logger.info(f"stagehand started (builder={config.builder}, registry={config.registry_host})")

    @kopf.on.cleanup(registry=registry)
    def cleanup(memo: kopf.Memo, **_: Any) -> None:
        refresher = getattr(memo, "refresher", None)
        if refresher is not None:
            refresher.stop(timeout=5.0)
        logger.info("stagehand stopped")

    @kopf.on.event(API_GROUP, API_VERSION, PLURAL_PLAYBOOKS, registry=registry)
    def playbook_event(event: Mapping[str, Any], memo: kopf.Memo, **_: Any) -> None:
        handle_event(memo.controllers["playbooks"], event)

    @kopf.on.event(API_GROUP, API_VERSION, PLURAL_ACTORS, registry=registry)
    def actor_event(event: Mapping[str, Any], memo: kopf.Memo, **_: Any) -> None:
        handle_event(memo.controllers["actors"], event)

    @kopf.timer(API_GROUP, API_VERSION, PLURAL_PLAYBOOKS, interval=config.timer_interval, registry=registry)
    def playbook_timer(body: kopf.Body, memo: kopf.Memo, **_: Any) -> None:
        handle_timer(memo.controllers["playbooks"], body)

    @kopf.timer(API_GROUP, API_VERSION, PLURAL_ACTORS, interval=config.timer_interval, registry=registry)
    def actor_timer(body: kopf.Body, memo: kopf.Memo, **_: Any) -> None:
        handle_timer(memo.controllers["actors"], body)

    return registry
