import json

import cli
from failover.events import EventLog
from failover.reconciler import Reconciler

from fakes import FakeStore, make_master, make_node

FLAGS = [
    "--node-selector",
    "role=db",
    "--master-pod-selector",
    "app=master",
    "--slave-pod-selector",
    "app=slave",
    "--slave-pod-namespace",
    "apps",
    "--failover-pool-label",
    "pool=true",
    "--events-db",
    "",
]


def _fake_build(store):
    def build(s):
        assert s.node_selector == "role=db"
        assert s.events_db_path == ""
        return Reconciler(store, s)

    return build


def test_once_prints_report(monkeypatch, capsys):
    store = FakeStore()
    store.add_node(make_node("N1"))
    store.add_pod(make_master("N1"))
    monkeypatch.setattr(cli, "_build_reconciler", _fake_build(store))

    assert cli.main(["once", *FLAGS]) == 0

    report = json.loads(capsys.readouterr().out)
    assert report["nodes"][0]["node"] == "N1"
    assert report["nodes"][0]["action"] == "join_pool"


def test_once_fatal_pass_exits_1(monkeypatch):
    monkeypatch.setattr(cli, "_build_reconciler", _fake_build(FakeStore()))
    assert cli.main(["once", *FLAGS]) == 1


def test_run_exits_1_on_fatal(monkeypatch):
    monkeypatch.setattr(cli, "_build_reconciler", _fake_build(FakeStore()))
    assert cli.main(["run", *FLAGS, "--sleep-interval", "0.01"]) == 1


def test_invalid_configuration_exits_2(monkeypatch):
    monkeypatch.setattr(cli, "_build_reconciler", _fake_build(FakeStore()))
    args = ["once", *FLAGS]
    args[args.index("pool=true")] = "=true"
    assert cli.main(args) == 2


def test_events_command_reads_journal(tmp_path, capsys):
    path = str(tmp_path / "events.db")
    EventLog(path).record("WARNING", "Removed from failover pool", node="N2")

    assert cli.main(["events", "--events-db", path, "--limit", "5"]) == 0

    rows = json.loads(capsys.readouterr().out)
    assert rows[0]["node"] == "N2"
    assert rows[0]["level"] == "WARNING"
