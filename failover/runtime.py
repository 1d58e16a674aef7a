from __future__ import annotations

from dataclasses import dataclass, field
from threading import Lock

from .engine import Action
from .events import utc_now


@dataclass
class NodeResult:
    node: str
    master_pod: str | None
    slave_pod: str | None
    ready: bool
    action: Action
    restarted: str | None = None  # namespace/name of the restarted deployment
    errors: list[str] = field(default_factory=list)

    def log_line(self) -> str:
        return (
            f"node={self.node} masterPod={self.master_pod or ''} "
            f"ready={str(self.ready).lower()} slavePod={self.slave_pod or ''}"
        )


@dataclass
class PassReport:
    started_at: str = field(default_factory=utc_now)
    finished_at: str | None = None
    nodes: list[NodeResult] = field(default_factory=list)

    @property
    def mutation_errors(self) -> int:
        return sum(len(n.errors) for n in self.nodes)


class RuntimeState:
    """What the status API can see of the running loop."""

    def __init__(self) -> None:
        self.lock = Lock()
        self.passes = 0
        self.last_report: PassReport | None = None
        self.fatal_error: str | None = None

    def record_pass(self, report: PassReport) -> None:
        with self.lock:
            self.passes += 1
            self.last_report = report

    def record_fatal(self, message: str) -> None:
        with self.lock:
            self.fatal_error = message

    def snapshot(self) -> tuple[int, PassReport | None, str | None]:
        with self.lock:
            return self.passes, self.last_report, self.fatal_error
