import pytest
from fastapi.testclient import TestClient

from failover.api import create_app
from failover.errors import PassAborted
from failover.events import EventLog
from failover.reconciler import Reconciler

from fakes import make_master, make_node


def _client(store, cfg, tmp_path):
    r = Reconciler(store, cfg, events=EventLog(str(tmp_path / "events.db")))
    return r, TestClient(create_app(r, start_loop=False))


def test_status_and_healthz_after_a_pass(store, cfg, tmp_path):
    store.add_node(make_node("N1"))
    store.add_pod(make_master("N1"))
    r, client = _client(store, cfg, tmp_path)

    with client:
        r.run_pass()

        resp = client.get("/healthz")
        assert resp.status_code == 200
        assert resp.json()["status"] == "healthy"

        body = client.get("/status").json()
        assert body["passes"] == 1
        assert body["alive"] is False
        assert body["fatal_error"] is None
        assert body["settings"]["failover_pool_label"] == "pool=true"
        node = body["last_pass"]["nodes"][0]
        assert node["node"] == "N1"
        assert node["action"] == "join_pool"
        assert node["ready"] is True

        events = client.get("/events", params={"limit": 5}).json()
        assert events[0]["message"] == "Added to failover pool"
        assert events[0]["node"] == "N1"


def test_healthz_fails_after_fatal_pass(store, cfg, tmp_path):
    r, client = _client(store, cfg, tmp_path)

    with client:
        with pytest.raises(PassAborted):
            r.run_pass()

        resp = client.get("/healthz")
        assert resp.status_code == 503
        assert "No nodes found" in resp.json()["detail"]
        assert client.get("/status").json()["last_pass"] is None


def test_events_limit_is_validated(store, cfg, tmp_path):
    _, client = _client(store, cfg, tmp_path)
    with client:
        assert client.get("/events", params={"limit": 0}).status_code == 422
