"""
Kubernetes implementation of ObjectStore.

Maps each Kind onto the matching `kubernetes` client API:
- Playbook, Actor, Image -> CustomObjectsApi
- Namespace, Secret, ServiceAccount, Event -> CoreV1Api
- Job -> BatchV1Api
- Deployment -> AppsV1Api

404 responses become None/False; every other ApiException is re-raised as
StoreError so the controller classifies it as transient. Patches are sent as
application/merge-patch+json.
"""

import logging
from typing import Any, Callable, Optional

from kubernetes import client, config as kube_config
from kubernetes.client.rest import ApiException

from stagehand.resources.store import Kind, ObjectStore
from stagehand.constants import (
    API_GROUP,
    API_VERSION,
    KPACK_GROUP,
    KPACK_VERSION,
    PLURAL_ACTORS,
    PLURAL_IMAGES,
    PLURAL_PLAYBOOKS,
)
from stagehand.errors import StoreError

logger = logging.getLogger(__name__)

MERGE_PATCH = "application/merge-patch+json"

# kind -> (group, version, plural) for custom resources
CUSTOM_KINDS: dict[Kind, tuple[str, str, str]] = {
    Kind.PLAYBOOK: (API_GROUP, API_VERSION, PLURAL_PLAYBOOKS),
    Kind.ACTOR: (API_GROUP, API_VERSION, PLURAL_ACTORS),
    Kind.IMAGE: (KPACK_GROUP, KPACK_VERSION, PLURAL_IMAGES),
}

# kind -> (api attribute, method suffix) for built-in resources
BUILTIN_KINDS: dict[Kind, tuple[str, str]] = {
    Kind.NAMESPACE: ("core", "namespace"),
    Kind.SECRET: ("core", "namespaced_secret"),
    Kind.SERVICE_ACCOUNT: ("core", "namespaced_service_account"),
    Kind.EVENT: ("core", "namespaced_event"),
    Kind.JOB: ("batch", "namespaced_job"),
    Kind.DEPLOYMENT: ("apps", "namespaced_deployment"),
}


def load_client_config() -> None:
    """Load in-cluster config, falling back to the local kubeconfig."""
    try:
        kube_config.load_incluster_config()
    except kube_config.ConfigException:
        kube_config.load_kube_config()


class KubernetesObjectStore(ObjectStore):
    """
    ObjectStore backed by the Kubernetes API server.

    Usage:
        load_client_config()
        store = KubernetesObjectStore()
        store.get(Kind.NAMESPACE, "amp-demo")
    """

    def __init__(self, api_client: Optional[client.ApiClient] = None, field_manager: str = "stagehand"):
        self._api_client = api_client or client.ApiClient()
        self._field_manager = field_manager
        self.core = client.CoreV1Api(self._api_client)
        self.batch = client.BatchV1Api(self._api_client)
        self.apps = client.AppsV1Api(self._api_client)
        self.custom = client.CustomObjectsApi(self._api_client)

    # -- helpers ------------------------------------------------------------

    def _to_dict(self, obj: Any) -> dict[str, Any]:
        if isinstance(obj, dict):
            return obj
        return self._api_client.sanitize_for_serialization(obj)

    def _call(self, kind: Kind, name: Optional[str], action: str, fn: Callable[[], Any]) -> Any:
        try:
            return fn()
        except ApiException as e:
            raise StoreError(
                f"Failed to {action} {kind.value} {name or ''}: {e.status} {e.reason}",
                kind=kind.value, name=name, status=e.status,
            ) from e

    def _builtin(self, kind: Kind, verb: str) -> Callable[..., Any]:
        api_name, suffix = BUILTIN_KINDS[kind]
        return getattr(getattr(self, api_name), f"{verb}_{suffix}")

    @staticmethod
    def _namespace_of(body: dict[str, Any]) -> Optional[str]:
        return (body.get("metadata") or {}).get("namespace")

    # -- reads --------------------------------------------------------------

    def get(self, kind: Kind, name: str, namespace: Optional[str] = None) -> Optional[dict[str, Any]]:
        try:
            if kind in CUSTOM_KINDS:
                group, version, plural = CUSTOM_KINDS[kind]
                if kind.cluster_scoped:
                    obj = self.custom.get_cluster_custom_object(group, version, plural, name)
                else:
                    obj = self.custom.get_namespaced_custom_object(group, version, namespace, plural, name)
            elif kind.cluster_scoped:
                obj = self._builtin(kind, "read")(name)
            else:
                obj = self._builtin(kind, "read")(name, namespace)
        except ApiException as e:
            if e.status == 404:
                return None
            raise StoreError(
                f"Failed to get {kind.value} {name}: {e.status} {e.reason}",
                kind=kind.value, name=name, status=e.status,
            ) from e
        return self._to_dict(obj)

    def list(
        self,
        kind: Kind,
        namespace: Optional[str] = None,
        label_selector: Optional[str] = None,
    ) -> list[dict[str, Any]]:
        kwargs = {"label_selector": label_selector} if label_selector else {}

        def _list() -> Any:
            if kind in CUSTOM_KINDS:
                group, version, plural = CUSTOM_KINDS[kind]
                if kind.cluster_scoped or namespace is None:
                    return self.custom.list_cluster_custom_object(group, version, plural, **kwargs)
                return self.custom.list_namespaced_custom_object(group, version, namespace, plural, **kwargs)
            api_name, suffix = BUILTIN_KINDS[kind]
            api = getattr(self, api_name)
            if kind.cluster_scoped:
                return api.list_namespace(**kwargs)
            if namespace is None:
                plain = suffix.replace("namespaced_", "")
                return getattr(api, f"list_{plain}_for_all_namespaces")(**kwargs)
            return getattr(api, f"list_{suffix}")(namespace, **kwargs)

        result = self._to_dict(self._call(kind, None, "list", _list))
        return list(result.get("items") or [])

    # -- writes -------------------------------------------------------------

    def create(self, kind: Kind, body: dict[str, Any]) -> dict[str, Any]:
        name = (body.get("metadata") or {}).get("name")
        namespace = self._namespace_of(body)
        logger.debug(f"Creating {kind.value} {namespace or ''}/{name}")

        def _create() -> Any:
            if kind in CUSTOM_KINDS:
                group, version, plural = CUSTOM_KINDS[kind]
                if kind.cluster_scoped:
                    return self.custom.create_cluster_custom_object(group, version, plural, body)
                return self.custom.create_namespaced_custom_object(group, version, namespace, plural, body)
            if kind.cluster_scoped:
                return self._builtin(kind, "create")(body)
            return self._builtin(kind, "create")(namespace, body)

        return self._to_dict(self._call(kind, name, "create", _create))

    def replace(self, kind: Kind, body: dict[str, Any]) -> dict[str, Any]:
        name = body["metadata"]["name"]
        namespace = self._namespace_of(body)

        def _replace() -> Any:
            if kind in CUSTOM_KINDS:
                group, version, plural = CUSTOM_KINDS[kind]
                if kind.cluster_scoped:
                    return self.custom.replace_cluster_custom_object(group, version, plural, name, body)
                return self.custom.replace_namespaced_custom_object(group, version, namespace, plural, name, body)
            if kind.cluster_scoped:
                return self._builtin(kind, "replace")(name, body)
            return self._builtin(kind, "replace")(name, namespace, body)

        return self._to_dict(self._call(kind, name, "replace", _replace))

    def patch(
        self,
        kind: Kind,
        name: str,
        patch: dict[str, Any],
        namespace: Optional[str] = None,
    ) -> dict[str, Any]:
        opts = {"_content_type": MERGE_PATCH, "field_manager": self._field_manager}

        def _patch() -> Any:
            if kind in CUSTOM_KINDS:
                group, version, plural = CUSTOM_KINDS[kind]
                if kind.cluster_scoped:
                    return self.custom.patch_cluster_custom_object(group, version, plural, name, patch, **opts)
                return self.custom.patch_namespaced_custom_object(
                    group, version, namespace, plural, name, patch, **opts
                )
            if kind.cluster_scoped:
                return self._builtin(kind, "patch")(name, patch, **opts)
            return self._builtin(kind, "patch")(name, namespace, patch, **opts)

        return self._to_dict(self._call(kind, name, "patch", _patch))

    def patch_status(
        self,
        kind: Kind,
        name: str,
        status: dict[str, Any],
        namespace: Optional[str] = None,
    ) -> dict[str, Any]:
        if kind not in CUSTOM_KINDS:
            raise StoreError(f"Status patches are only supported for custom resources, not {kind.value}")
        group, version, plural = CUSTOM_KINDS[kind]
        body = {"status": status}
        opts = {"_content_type": MERGE_PATCH, "field_manager": self._field_manager}

        def _patch_status() -> Any:
            if kind.cluster_scoped:
                return self.custom.patch_cluster_custom_object_status(group, version, plural, name, body, **opts)
            return self.custom.patch_namespaced_custom_object_status(
                group, version, namespace, plural, name, body, **opts
            )

        return self._to_dict(self._call(kind, name, "patch status of", _patch_status))

    def delete(self, kind: Kind, name: str, namespace: Optional[str] = None) -> bool:
        try:
            if kind in CUSTOM_KINDS:
                group, version, plural = CUSTOM_KINDS[kind]
                if kind.cluster_scoped:
                    self.custom.delete_cluster_custom_object(group, version, plural, name)
                else:
                    self.custom.delete_namespaced_custom_object(group, version, namespace, plural, name)
            else:
                options = client.V1DeleteOptions(propagation_policy="Background")
                if kind.cluster_scoped:
                    self._builtin(kind, "delete")(name, body=options)
                else:
                    self._builtin(kind, "delete")(name, namespace, body=options)
        except ApiException as e:
            if e.status == 404:
                return False
            raise StoreError(
                f"Failed to delete {kind.value} {name}: {e.status} {e.reason}",
                kind=kind.value, name=name, status=e.status,
            ) from e
        return True
