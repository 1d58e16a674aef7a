from __future__ import annotations

import logging
from datetime import datetime, timezone
from threading import Event, Thread
from typing import Callable

from .engine import Action, Decision, Snapshot, add_pool_label, decide, mark_restarted, pool_state, remove_pool_label
from .errors import ConfigError, PassAborted, StoreError
from .events import EventLog, utc_now
from .models import Node, Pod
from .runtime import NodeResult, PassReport, RuntimeState
from .selectors import ResourceKind, ResourceSelector
from .settings import Settings, split_pool_label
from .store import ClusterStateStore
from .topology import find_master_pod, find_slave_pod, resolve_owning_workload

logger = logging.getLogger(__name__)


def _utcnow() -> datetime:
    return datetime.now(timezone.utc)


class Reconciler:
    """Keeps the failover pool label in line with master pod health.

    One pass lists the selected nodes and, node by node, joins healthy ones to
    the pool and evicts unhealthy ones, restarting the slave deployment that
    was running there. Failing to observe the cluster aborts the pass; failing
    to change it is logged and the pass moves on.
    """

    def __init__(
        self,
        store: ClusterStateStore,
        settings: Settings,
        events: EventLog | None = None,
        runtime: RuntimeState | None = None,
        clock: Callable[[], datetime] = _utcnow,
    ):
        self.store = store
        self.settings = settings
        self.events = events or EventLog("")
        self.runtime = runtime or RuntimeState()
        self.clock = clock
        self._stop = Event()
        self._thr: Thread | None = None

    # -- loop -------------------------------------------------------------

    def run_forever(self) -> None:
        """Pass, sleep, repeat. A fatal pass error propagates to the caller."""
        s = self.settings
        logger.info(
            "Starting failover: nodes=%r master pods=%r slave pods=%s/%r pool label=%r",
            s.node_selector,
            s.master_pod_selector,
            s.slave_pod_namespace,
            s.slave_pod_selector,
            s.failover_pool_label,
        )
        self.events.record("INFO", "Reconciler started")
        while not self._stop.is_set():
            self.run_pass()
            self._stop.wait(s.poll_interval_s)

    def start(self) -> None:
        if self._thr and self._thr.is_alive():
            return
        self._stop.clear()
        self._thr = Thread(target=self._loop, name="failover-reconciler", daemon=True)
        self._thr.start()

    def stop(self) -> None:
        self._stop.set()

    def is_alive(self) -> bool:
        return bool(self._thr and self._thr.is_alive())

    def _loop(self) -> None:
        try:
            self.run_forever()
        except PassAborted:
            # already logged and recorded by run_pass
            return
        except Exception as e:
            logger.exception("Reconciler crashed")
            self.runtime.record_fatal(f"{type(e).__name__}: {e}")
            self.events.record("ERROR", f"Reconciler crashed: {type(e).__name__}: {e}")

    # -- pass -------------------------------------------------------------

    def _fatal(self, message: str, node: str | None = None) -> PassAborted:
        logger.error(message)
        self.events.record("ERROR", message, node=node)
        self.runtime.record_fatal(message)
        return PassAborted(message)

    def run_pass(self) -> PassReport:
        s = self.settings
        report = PassReport()

        try:
            node_sel = ResourceSelector(ResourceKind.NODE, s.node_selector)
            master_sel = ResourceSelector(ResourceKind.POD, s.master_pod_selector)
            slave_sel = ResourceSelector(ResourceKind.POD, s.slave_pod_selector)
            pool_key, pool_value = split_pool_label(s.failover_pool_label)
        except ConfigError as e:
            raise self._fatal(f"Invalid configuration: {e}") from e

        try:
            nodes = node_sel.nodes(self.store)
        except StoreError as e:
            raise self._fatal(f"Failed to get nodes: {e}") from e
        if not nodes:
            raise self._fatal(f"No nodes found with selector {s.node_selector!r}")

        try:
            own_namespace = self.store.current_namespace()
        except StoreError as e:
            raise self._fatal(f"Failed to get current namespace: {e}") from e

        for node in sorted(nodes, key=lambda n: n.name):
            try:
                master = find_master_pod(self.store, node, master_sel, own_namespace)
                slave = find_slave_pod(self.store, node, s.slave_pod_namespace, slave_sel, pool_key)
            except StoreError as e:
                raise self._fatal(f"Failed to get pods on node {node.name}: {e}", node=node.name) from e
            report.nodes.append(self._reconcile_node(node, master, slave, pool_key, pool_value))

        report.finished_at = utc_now()
        self.runtime.record_pass(report)
        return report

    def _reconcile_node(self, node: Node, master: Pod | None, slave: Pod | None, key: str, value: str) -> NodeResult:
        snap = Snapshot(node=node, master_pod=master, slave_pod=slave, state=pool_state(node, key))
        decision = decide(snap)
        result = NodeResult(
            node=node.name,
            master_pod=master.name if master else None,
            slave_pod=slave.name if slave else None,
            ready=snap.master_healthy,
            action=decision.action,
        )

        if decision.action is Action.LEAVE_POOL:
            self._leave_pool(snap, decision, key, result)
        elif decision.action is Action.JOIN_POOL:
            self._join_pool(node, key, value, result)

        if self.settings.log_every_run:
            logger.info(result.log_line())
        return result

    def _mutation_failed(self, result: NodeResult, message: str, pod: str | None = None) -> None:
        logger.error(message)
        result.errors.append(message)
        self.events.record("ERROR", message, node=result.node, pod=pod)

    def _join_pool(self, node: Node, key: str, value: str, result: NodeResult) -> None:
        add_pool_label(node, key, value)
        try:
            self.store.update_node(node)
        except StoreError as e:
            self._mutation_failed(result, f"Failed to add node {node.name} to failover pool: {e}")
            return
        logger.info("Added node %s to failover pool", node.name)
        self.events.record("INFO", "Added to failover pool", node=node.name)

    def _leave_pool(self, snap: Snapshot, decision: Decision, key: str, result: NodeResult) -> None:
        node = snap.node
        remove_pool_label(node, key)
        try:
            self.store.update_node(node)
        except StoreError as e:
            self._mutation_failed(result, f"Failed to remove node {node.name} from failover pool: {e}")
        else:
            logger.info("Removed node %s from failover pool", node.name)
            self.events.record("WARNING", "Removed from failover pool", node=node.name)

        if decision.restart_slave:
            self._restart_slave(snap.slave_pod, result)

    def _restart_slave(self, pod: Pod, result: NodeResult) -> None:
        namespace = self.settings.slave_pod_namespace
        try:
            workload = resolve_owning_workload(self.store, pod, namespace)
        except StoreError as e:
            self._mutation_failed(result, f"Failed to get deployment of pod {pod.name}: {e}", pod=pod.name)
            return
        if workload is None:
            logger.info("Pod %s/%s has no owning deployment, not restarting", namespace, pod.name)
            return

        ref = f"{workload.namespace}/{workload.name}"
        logger.info("Restarting deployment %s", ref)
        mark_restarted(workload, self.clock())
        try:
            self.store.update_workload_template(workload)
        except StoreError as e:
            self._mutation_failed(result, f"Failed to restart deployment {ref}: {e}", pod=pod.name)
            return
        result.restarted = ref
        self.events.record("WARNING", f"Restarted deployment {ref}", node=result.node, pod=pod.name)
