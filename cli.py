from __future__ import annotations

import argparse
import json
import logging
import sys
from dataclasses import asdict

import requests

from failover.errors import ConfigError, PassAborted, StoreError
from failover.events import EventLog
from failover.settings import Settings, settings as env_settings

logger = logging.getLogger("failover")


def _print(obj) -> None:
    print(json.dumps(obj, indent=2, ensure_ascii=False, default=str))


def _add_reconciler_flags(p: argparse.ArgumentParser) -> None:
    p.add_argument("--node-selector", help="watched nodes labelSelector")
    p.add_argument("--master-pod-selector", help="master pods labelSelector")
    p.add_argument("--slave-pod-selector", help="slave pod labelSelector")
    p.add_argument("--slave-pod-namespace", help="namespace of slave pod")
    p.add_argument("--failover-pool-label", help="key=value label marking nodes in the failover pool")
    p.add_argument("--sleep-interval", type=float, help="seconds between passes")
    p.add_argument(
        "--log-every-run",
        action="store_true",
        default=None,
        help="log one line per node on every pass",
    )
    p.add_argument("--events-db", help="event journal path (empty string disables it)")


def _settings_from_args(args: argparse.Namespace) -> Settings:
    return env_settings.with_overrides(
        node_selector=args.node_selector,
        master_pod_selector=args.master_pod_selector,
        slave_pod_selector=args.slave_pod_selector,
        slave_pod_namespace=args.slave_pod_namespace,
        failover_pool_label=args.failover_pool_label,
        poll_interval_s=args.sleep_interval,
        log_every_run=args.log_every_run,
        events_db_path=args.events_db,
    )


def _build_reconciler(s: Settings):
    # Imported here so `events` and `status` work without cluster access.
    from failover.kube import KubernetesStore
    from failover.reconciler import Reconciler

    store = KubernetesStore.connect(namespace=s.namespace)
    return Reconciler(store, s, events=EventLog(s.events_db_path))


def main(argv: list[str] | None = None) -> int:
    p = argparse.ArgumentParser(description="Failover pool reconciler")
    sub = p.add_subparsers(dest="cmd", required=True)

    s_once = sub.add_parser("once", help="Run a single reconciliation pass and print its report")
    _add_reconciler_flags(s_once)

    s_run = sub.add_parser("run", help="Reconcile forever; exit non-zero on a fatal pass error")
    _add_reconciler_flags(s_run)

    s_serve = sub.add_parser("serve", help="Reconcile in the background and serve /healthz, /status, /events")
    _add_reconciler_flags(s_serve)
    s_serve.add_argument("--host", default="0.0.0.0")
    s_serve.add_argument("--port", type=int, default=8080)

    s_ev = sub.add_parser("events", help="Show the event journal")
    s_ev.add_argument("--events-db", default=env_settings.events_db_path)
    s_ev.add_argument("--limit", type=int, default=20)

    s_st = sub.add_parser("status", help="Ask a running `serve` instance for its status")
    s_st.add_argument("--api", default="http://localhost:8080", help="API base URL")

    args = p.parse_args(argv)

    logging.basicConfig(
        level=getattr(logging, env_settings.log_level.upper(), logging.INFO),
        format="%(asctime)s %(levelname)s %(name)s: %(message)s",
    )

    if args.cmd == "events":
        _print(EventLog(args.events_db).latest(args.limit))
        return 0

    if args.cmd == "status":
        r = requests.get(f"{args.api.rstrip('/')}/status", timeout=10)
        _print(r.json())
        return 0 if r.ok else 1

    s = _settings_from_args(args)
    try:
        s.validate()
    except ConfigError as e:
        logger.error("Invalid configuration: %s", e)
        return 2

    try:
        reconciler = _build_reconciler(s)
    except StoreError as e:
        logger.error("%s", e)
        return 1

    if args.cmd == "once":
        try:
            report = reconciler.run_pass()
        except PassAborted:
            return 1
        _print(asdict(report))
        return 1 if report.mutation_errors else 0

    if args.cmd == "run":
        try:
            reconciler.run_forever()
        except PassAborted:
            return 1
        except KeyboardInterrupt:
            reconciler.stop()
        return 0

    if args.cmd == "serve":
        import uvicorn

        from failover.api import create_app

        uvicorn.run(create_app(reconciler), host=args.host, port=args.port)
        return 0

    return 2


if __name__ == "__main__":
    raise SystemExit(main(sys.argv[1:]))
