from __future__ import annotations

from typing import Protocol

from .models import Node, Pod, WorkloadTemplate


class ClusterStateStore(Protocol):
    """What the reconciler needs from the cluster.

    Every method raises `StoreError` on failure; `get_workload_template`
    raises `NotFoundError` when the deployment does not exist.
    """

    def current_namespace(self) -> str: ...

    def list_nodes(self, label_selector: str = "") -> list[Node]: ...

    def list_pods(
        self,
        namespace: str,
        field_selector: str | None = None,
        label_selector: str | None = None,
    ) -> list[Pod]: ...

    def get_workload_template(self, namespace: str, name: str) -> WorkloadTemplate: ...

    def update_node(self, node: Node) -> None: ...

    def update_workload_template(self, template: WorkloadTemplate) -> None: ...
