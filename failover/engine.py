from __future__ import annotations

from dataclasses import dataclass
from datetime import datetime, timezone
from enum import Enum

from .health import is_node_ready, is_pod_ready
from .models import RESTARTED_AT_ANNOTATION, Node, Pod, WorkloadTemplate


class PoolState(str, Enum):
    IN_POOL = "in_pool"
    NOT_IN_POOL = "not_in_pool"


class Action(str, Enum):
    NOOP = "noop"
    JOIN_POOL = "join_pool"
    LEAVE_POOL = "leave_pool"


def pool_state(node: Node, pool_label_key: str) -> PoolState:
    """Membership is the presence of the pool label key, whatever its value."""
    return PoolState.IN_POOL if pool_label_key in node.labels else PoolState.NOT_IN_POOL


@dataclass(frozen=True)
class Snapshot:
    node: Node
    master_pod: Pod | None
    slave_pod: Pod | None
    state: PoolState

    @property
    def in_pool(self) -> bool:
        return self.state is PoolState.IN_POOL

    @property
    def master_healthy(self) -> bool:
        return self.master_pod is not None and is_pod_ready(self.master_pod) and is_node_ready(self.node)


@dataclass(frozen=True)
class Decision:
    action: Action
    # Only set on LEAVE_POOL with a slave pod present.
    restart_slave: bool = False


def decide(snap: Snapshot) -> Decision:
    """Membership transition for one node.

    Edge-triggered on the current state, so a steady node produces NOOP and
    the slave restart fires once per unhealthy episode.
    """
    healthy = snap.master_healthy
    if not healthy and snap.in_pool:
        return Decision(Action.LEAVE_POOL, restart_slave=snap.slave_pod is not None)
    if healthy and not snap.in_pool:
        return Decision(Action.JOIN_POOL)
    return Decision(Action.NOOP)


def next_state(state: PoolState, action: Action) -> PoolState:
    if action is Action.JOIN_POOL:
        return PoolState.IN_POOL
    if action is Action.LEAVE_POOL:
        return PoolState.NOT_IN_POOL
    return state


def add_pool_label(node: Node, key: str, value: str) -> None:
    node.labels[key] = value


def remove_pool_label(node: Node, key: str) -> None:
    node.labels.pop(key, None)


def restart_timestamp(now: datetime | None = None) -> str:
    now = now or datetime.now(timezone.utc)
    return now.astimezone(timezone.utc).strftime("%Y-%m-%dT%H:%M:%SZ")


def mark_restarted(template: WorkloadTemplate, now: datetime | None = None) -> str:
    """Upsert the rollout restart annotation, as `kubectl rollout restart` does."""
    ts = restart_timestamp(now)
    template.template_annotations[RESTARTED_AT_ANNOTATION] = ts
    return ts
