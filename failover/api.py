from __future__ import annotations

from fastapi import FastAPI, HTTPException, Query

from .api_models import EventModel, NodeResultModel, PassReportModel, SettingsModel, StatusResponse
from .reconciler import Reconciler
from .runtime import PassReport


def _report_model(report: PassReport) -> PassReportModel:
    return PassReportModel(
        started_at=report.started_at,
        finished_at=report.finished_at,
        nodes=[
            NodeResultModel(
                node=n.node,
                master_pod=n.master_pod,
                slave_pod=n.slave_pod,
                ready=n.ready,
                action=n.action.value,
                restarted=n.restarted,
                errors=list(n.errors),
            )
            for n in report.nodes
        ],
    )


def create_app(reconciler: Reconciler, start_loop: bool = True) -> FastAPI:
    """Status surface for a running reconciler.

    /healthz turns 503 once a pass has failed fatally, so the container's
    liveness probe restarts the process.
    """
    app = FastAPI(title="Failover pool reconciler")

    @app.on_event("startup")
    def startup() -> None:
        if start_loop:
            reconciler.start()

    @app.on_event("shutdown")
    def shutdown() -> None:
        reconciler.stop()

    @app.get("/healthz")
    def healthz() -> dict[str, str]:
        _, _, fatal = reconciler.runtime.snapshot()
        if fatal is not None:
            raise HTTPException(status_code=503, detail=fatal)
        return {"status": "healthy"}

    @app.get("/status", response_model=StatusResponse)
    def status() -> StatusResponse:
        passes, report, fatal = reconciler.runtime.snapshot()
        s = reconciler.settings
        return StatusResponse(
            alive=reconciler.is_alive(),
            passes=passes,
            fatal_error=fatal,
            settings=SettingsModel(
                node_selector=s.node_selector,
                master_pod_selector=s.master_pod_selector,
                slave_pod_selector=s.slave_pod_selector,
                slave_pod_namespace=s.slave_pod_namespace,
                failover_pool_label=s.failover_pool_label,
                poll_interval_s=s.poll_interval_s,
            ),
            last_pass=_report_model(report) if report else None,
        )

    @app.get("/events", response_model=list[EventModel])
    def events(limit: int = Query(50, ge=1, le=1000)) -> list[dict]:
        return reconciler.events.latest(limit)

    return app
