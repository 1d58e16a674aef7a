from __future__ import annotations

from dataclasses import dataclass, field
from datetime import datetime


POD_TEMPLATE_HASH_LABEL = "pod-template-hash"
RESTARTED_AT_ANNOTATION = "kubectl.kubernetes.io/restartedAt"


@dataclass(frozen=True)
class Condition:
    type: str
    status: str  # "True" | "False" | "Unknown"


@dataclass(frozen=True)
class OwnerReference:
    kind: str
    name: str


@dataclass
class Node:
    name: str
    labels: dict[str, str] = field(default_factory=dict)
    conditions: list[Condition] = field(default_factory=list)
    resource_version: str | None = None


@dataclass
class Pod:
    name: str
    namespace: str
    node_name: str | None = None
    labels: dict[str, str] = field(default_factory=dict)
    conditions: list[Condition] = field(default_factory=list)
    owner_references: list[OwnerReference] = field(default_factory=list)
    deletion_timestamp: datetime | None = None
    node_selector: dict[str, str] = field(default_factory=dict)
    # Label keys referenced by requiredDuringSchedulingIgnoredDuringExecution terms.
    affinity_keys: frozenset[str] = frozenset()

    def targets_node_label(self, key: str) -> bool:
        return key in self.node_selector or key in self.affinity_keys


@dataclass
class WorkloadTemplate:
    """A deployment, reduced to what a rollout restart touches."""

    name: str
    namespace: str
    template_annotations: dict[str, str] = field(default_factory=dict)
