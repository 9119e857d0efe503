import os
import tempfile

if not os.environ.get("MINIMESOS_STATE_DIR"):
    os.environ["MINIMESOS_STATE_DIR"] = tempfile.mkdtemp(prefix="minimesos-tests-")

import common  # noqa: E402
import pytest  # noqa: E402

from minimesos.cluster_management import cluster_config  # noqa: E402
from minimesos.cluster_management import lifecycle  # noqa: E402
from minimesos.cluster_management import orchestrator  # noqa: E402
from minimesos.cluster_management import readiness  # noqa: E402
from minimesos.cluster_management import state_store  # noqa: E402

LEADER_STATE = {"leader": "master@172.17.0.3:5050", "activated_slaves": 3}


@pytest.fixture
def runtime() -> common.FakeRuntime:
    return common.FakeRuntime()


@pytest.fixture
def store(tmp_path) -> state_store.ClusterStateStore:
    return state_store.ClusterStateStore(tmp_path / "state")


@pytest.fixture
def fast_probe() -> readiness.ReadinessProbe:
    return readiness.ReadinessProbe(timeout=0.2, poll_interval=0.01)


@pytest.fixture
def lifecycle_manager(
    runtime: common.FakeRuntime, fast_probe: readiness.ReadinessProbe
) -> lifecycle.ContainerLifecycleManager:
    return lifecycle.ContainerLifecycleManager(runtime, probe=fast_probe, register_cleanup=False)


@pytest.fixture
def config(runtime: common.FakeRuntime) -> cluster_config.ClusterConfig:
    return cluster_config.build(
        runtime=runtime,
        num_workers=3,
        readiness_timeout=0.2,
        readiness_interval=0.01,
        cluster_timeout=0.2,
        cluster_interval=0.01,
    )


@pytest.fixture
def orch(
    runtime: common.FakeRuntime,
    store: state_store.ClusterStateStore,
    lifecycle_manager: lifecycle.ContainerLifecycleManager,
) -> orchestrator.ClusterOrchestrator:
    return orchestrator.ClusterOrchestrator(
        runtime,
        store=store,
        lifecycle_manager=lifecycle_manager,
        state_fetcher=lambda url: LEADER_STATE,
    )
