from __future__ import annotations

import logging

from .errors import NotFoundError
from .models import POD_TEMPLATE_HASH_LABEL, Node, Pod, WorkloadTemplate
from .selectors import ResourceSelector
from .store import ClusterStateStore

logger = logging.getLogger(__name__)

REPLICA_SET_KIND = "ReplicaSet"


def _first_by_name(pods: list[Pod]) -> Pod | None:
    # Stable tie-break: the list order returned by the API server is not a contract.
    if not pods:
        return None
    return min(pods, key=lambda p: p.name)


def find_master_pod(
    store: ClusterStateStore, node: Node, selector: ResourceSelector, namespace: str
) -> Pod | None:
    """The master pod scheduled on `node`, searched in our own namespace.

    No match is a valid state and returns None; store errors propagate.
    """
    pods = selector.pods(store, namespace, node_name=node.name)
    if len(pods) > 1:
        logger.debug("node=%s has %d master pods, using %s", node.name, len(pods), _first_by_name(pods).name)
    return _first_by_name(pods)


def find_slave_pod(
    store: ClusterStateStore, node: Node, namespace: str, selector: ResourceSelector, pool_label_key: str
) -> Pod | None:
    """The slave pod on `node` that is itself pinned to failover pool nodes.

    Slave pods that do not reference the pool label in their node selector or
    required node affinity are not ours to move.
    """
    pods = selector.pods(store, namespace, node_name=node.name)
    eligible = [p for p in pods if p.targets_node_label(pool_label_key)]
    return _first_by_name(eligible)


def derive_workload_name(owner_name: str, pod_template_hash: str) -> str:
    """Deployment name from its ReplicaSet name (`<deployment>-<pod-template-hash>`)."""
    suffix = f"-{pod_template_hash}"
    if not pod_template_hash or not owner_name.endswith(suffix) or len(owner_name) == len(suffix):
        raise NotFoundError(
            f"Cannot derive deployment from replica set {owner_name!r} with pod-template-hash {pod_template_hash!r}"
        )
    return owner_name[: -len(suffix)]


def resolve_owning_workload(store: ClusterStateStore, pod: Pod, namespace: str) -> WorkloadTemplate | None:
    """The deployment that owns `pod`, or None for pods without a ReplicaSet owner.

    Raises NotFoundError when the derived deployment does not exist.
    """
    for ref in pod.owner_references:
        if ref.kind != REPLICA_SET_KIND:
            continue
        name = derive_workload_name(ref.name, pod.labels.get(POD_TEMPLATE_HASH_LABEL, ""))
        return store.get_workload_template(namespace, name)
    return None
