from __future__ import annotations

from .models import Condition, Node, Pod


def _has_true_ready(conditions: list[Condition]) -> bool:
    return any(c.type == "Ready" and c.status == "True" for c in conditions)


def is_node_ready(node: Node) -> bool:
    """True iff the kubelet reports Ready=True.

    Pressure conditions (disk, memory, PID) are not failures here.
    """
    return _has_true_ready(node.conditions)


def is_pod_ready(pod: Pod) -> bool:
    """True iff the pod is not terminating and reports Ready=True."""
    if pod.deletion_timestamp is not None:
        return False
    return _has_true_ready(pod.conditions)
