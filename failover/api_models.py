from __future__ import annotations

from pydantic import BaseModel, Field


class NodeResultModel(BaseModel):
    node: str
    master_pod: str | None = None
    slave_pod: str | None = None
    ready: bool
    action: str = Field(..., description="noop|join_pool|leave_pool")
    restarted: str | None = Field(None, description="namespace/name of the restarted deployment")
    errors: list[str] = []


class PassReportModel(BaseModel):
    started_at: str
    finished_at: str | None = None
    nodes: list[NodeResultModel] = []


class SettingsModel(BaseModel):
    node_selector: str
    master_pod_selector: str
    slave_pod_selector: str
    slave_pod_namespace: str
    failover_pool_label: str
    poll_interval_s: float


class StatusResponse(BaseModel):
    alive: bool
    passes: int = Field(..., ge=0)
    fatal_error: str | None = None
    settings: SettingsModel
    last_pass: PassReportModel | None = None


class EventModel(BaseModel):
    id: int
    ts: str
    level: str
    node: str | None = None
    pod: str | None = None
    message: str
