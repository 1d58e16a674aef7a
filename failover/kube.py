from __future__ import annotations

import logging
from typing import Any, Callable, TypeVar

import urllib3
from kubernetes import client, config
from kubernetes.client.rest import ApiException
from kubernetes.config.config_exception import ConfigException

from .errors import NotFoundError, StoreError
from .models import Condition, Node, OwnerReference, Pod, WorkloadTemplate

logger = logging.getLogger(__name__)

SERVICE_ACCOUNT_NAMESPACE = "/var/run/secrets/kubernetes.io/serviceaccount/namespace"

T = TypeVar("T")


def load_config() -> None:
    """In-cluster config when running in a pod, else the local kubeconfig."""
    try:
        config.load_incluster_config()
        logger.debug("Loaded in-cluster kubernetes config")
    except ConfigException:
        try:
            config.load_kube_config()
        except ConfigException as e:
            raise StoreError(f"No usable kubernetes config: {e}") from e
        logger.debug("Loaded kubeconfig")


def _api_call(what: str, fn: Callable[..., T], *args: Any, **kwargs: Any) -> T:
    try:
        return fn(*args, **kwargs)
    except ApiException as e:
        if e.status == 404:
            raise NotFoundError(f"{what}: not found") from e
        raise StoreError(f"{what}: {e.status} {e.reason}") from e
    except urllib3.exceptions.HTTPError as e:
        raise StoreError(f"{what}: {type(e).__name__}: {e}") from e


def _conditions(status: Any) -> list[Condition]:
    if status is None:
        return []
    return [Condition(type=c.type, status=c.status) for c in (status.conditions or [])]


def _affinity_keys(spec: Any) -> frozenset[str]:
    affinity = getattr(spec, "affinity", None)
    node_affinity = getattr(affinity, "node_affinity", None)
    required = getattr(node_affinity, "required_during_scheduling_ignored_during_execution", None)
    if required is None:
        return frozenset()
    keys: set[str] = set()
    for term in required.node_selector_terms or []:
        for expr in term.match_expressions or []:
            keys.add(expr.key)
    return frozenset(keys)


def node_from_api(obj: client.V1Node) -> Node:
    meta = obj.metadata
    return Node(
        name=meta.name,
        labels=dict(meta.labels or {}),
        conditions=_conditions(obj.status),
        resource_version=meta.resource_version,
    )


def pod_from_api(obj: client.V1Pod) -> Pod:
    meta = obj.metadata
    spec = obj.spec
    return Pod(
        name=meta.name,
        namespace=meta.namespace,
        node_name=getattr(spec, "node_name", None),
        labels=dict(meta.labels or {}),
        conditions=_conditions(obj.status),
        owner_references=[OwnerReference(kind=o.kind, name=o.name) for o in (meta.owner_references or [])],
        deletion_timestamp=meta.deletion_timestamp,
        node_selector=dict(getattr(spec, "node_selector", None) or {}),
        affinity_keys=_affinity_keys(spec),
    )


def deployment_from_api(obj: client.V1Deployment) -> WorkloadTemplate:
    template_meta = obj.spec.template.metadata
    annotations = (template_meta.annotations if template_meta is not None else None) or {}
    return WorkloadTemplate(
        name=obj.metadata.name,
        namespace=obj.metadata.namespace,
        template_annotations=dict(annotations),
    )


class KubernetesStore:
    """Cluster state store backed by the Kubernetes API."""

    def __init__(
        self,
        core: client.CoreV1Api | None = None,
        apps: client.AppsV1Api | None = None,
        namespace: str | None = None,
        namespace_file: str = SERVICE_ACCOUNT_NAMESPACE,
    ):
        self.core = core or client.CoreV1Api()
        self.apps = apps or client.AppsV1Api()
        self._namespace = namespace
        self._namespace_file = namespace_file

    @classmethod
    def connect(cls, namespace: str | None = None) -> "KubernetesStore":
        load_config()
        return cls(namespace=namespace)

    def current_namespace(self) -> str:
        if self._namespace:
            return self._namespace
        try:
            with open(self._namespace_file, encoding="utf-8") as f:
                ns = f.read().strip()
        except OSError as e:
            raise StoreError(f"Failed to get current namespace: {e}") from e
        if not ns:
            raise StoreError(f"Failed to get current namespace: {self._namespace_file} is empty")
        return ns

    def list_nodes(self, label_selector: str = "") -> list[Node]:
        resp = _api_call("list nodes", self.core.list_node, label_selector=label_selector)
        return [node_from_api(n) for n in resp.items]

    def list_pods(
        self,
        namespace: str,
        field_selector: str | None = None,
        label_selector: str | None = None,
    ) -> list[Pod]:
        kwargs: dict[str, str] = {}
        if field_selector:
            kwargs["field_selector"] = field_selector
        if label_selector:
            kwargs["label_selector"] = label_selector
        resp = _api_call(f"list pods in {namespace}", self.core.list_namespaced_pod, namespace, **kwargs)
        return [pod_from_api(p) for p in resp.items]

    def get_workload_template(self, namespace: str, name: str) -> WorkloadTemplate:
        obj = _api_call(f"get deployment {namespace}/{name}", self.apps.read_namespaced_deployment, name, namespace)
        return deployment_from_api(obj)

    def update_node(self, node: Node) -> None:
        """Write the node's labels back, removing keys that were dropped locally.

        The patch carries the snapshot's resourceVersion, so a node changed by
        someone else since it was listed is rejected with a conflict.
        """
        current = _api_call(f"read node {node.name}", self.core.read_node, node.name)
        labels: dict[str, str | None] = {k: None for k in (current.metadata.labels or {}) if k not in node.labels}
        labels.update(node.labels)
        metadata: dict[str, Any] = {"labels": labels}
        if node.resource_version:
            metadata["resourceVersion"] = node.resource_version
        _api_call(f"update node {node.name}", self.core.patch_node, node.name, {"metadata": metadata})

    def update_workload_template(self, template: WorkloadTemplate) -> None:
        body = {"spec": {"template": {"metadata": {"annotations": dict(template.template_annotations)}}}}
        _api_call(
            f"update deployment {template.namespace}/{template.name}",
            self.apps.patch_namespaced_deployment,
            template.name,
            template.namespace,
            body,
        )
