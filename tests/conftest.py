import os
import sys

import pytest

# Ensure project root is importable (so `import failover` and `import cli` work without installing)
_project_root = os.path.dirname(os.path.dirname(__file__))
if _project_root not in sys.path:
    sys.path.insert(0, _project_root)

from failover.models import WorkloadTemplate  # noqa: E402
from failover.settings import Settings  # noqa: E402

from fakes import POOL_KEY, SLAVE_NS, FakeStore  # noqa: E402


@pytest.fixture
def store() -> FakeStore:
    return FakeStore(namespace="failover")


@pytest.fixture
def cfg() -> Settings:
    return Settings(
        node_selector="role=db",
        master_pod_selector="app=master",
        slave_pod_selector="app=slave",
        slave_pod_namespace=SLAVE_NS,
        failover_pool_label=f"{POOL_KEY}=true",
        poll_interval_s=0.01,
        log_every_run=True,
        namespace=None,
        events_db_path="",
    )


@pytest.fixture
def slave_deployment(store) -> WorkloadTemplate:
    return store.add_deployment(WorkloadTemplate(name="slave", namespace=SLAVE_NS))
