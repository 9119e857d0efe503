import common
import hypothesis
import hypothesis.strategies as st
import pytest

from minimesos.cluster_management import cluster_config
from minimesos.cluster_management import common as mm_common
from minimesos.cluster_management import errors
from minimesos.utils import configuration
from minimesos.utils import docker_runtime


@pytest.fixture
def no_daemon(monkeypatch: pytest.MonkeyPatch) -> None:
    """Fail the test if the runtime would be resolved from environment."""

    def _from_env() -> docker_runtime.DockerRuntimeClient:
        msg = "The runtime must not be resolved"
        raise AssertionError(msg)

    monkeypatch.setattr(docker_runtime, "from_env", _from_env)


def test_defaults(runtime: common.FakeRuntime):
    config = cluster_config.build(runtime=runtime)

    assert config.runtime is runtime
    assert config.num_workers == configuration.NUM_WORKERS
    assert config.worker_resources == (
        mm_common.DEFAULT_WORKER_RESOURCES,
    ) * configuration.NUM_WORKERS
    assert config.master_port == 5050
    assert config.zk_path == "mesos"
    assert config.pull_images
    assert not config.map_ports_to_host
    assert config.master_image_ref == "mesosphere/mesos-master:0.22.1-1.0.ubuntu1404"
    assert config.readiness_timeout == configuration.READINESS_TIMEOUT


def test_default_resources_per_worker(runtime: common.FakeRuntime):
    config = cluster_config.build(runtime=runtime, num_workers=3)
    assert len(config.worker_resources) == 3
    assert config.worker_count == 3


def test_resources_keep_order(runtime: common.FakeRuntime):
    resources = ["cpus(*):1", "cpus(*):2"]
    config = cluster_config.build(runtime=runtime, num_workers=2, worker_resources=resources)
    assert config.worker_resources == ("cpus(*):1", "cpus(*):2")


def test_config_is_immutable(runtime: common.FakeRuntime):
    config = cluster_config.build(runtime=runtime)
    with pytest.raises(AttributeError):
        config.num_workers = 5  # type: ignore[misc]


@hypothesis.given(
    num_workers=st.integers(min_value=1, max_value=10),
    num_descriptors=st.integers(min_value=0, max_value=10),
)
@common.hypothesis_settings(max_examples=100)
def test_resources_count_mismatch(no_daemon: None, num_workers: int, num_descriptors: int):
    """Check that the number of descriptors must match the number of workers."""
    hypothesis.assume(num_workers != num_descriptors)

    with pytest.raises(errors.ConfigurationError) as excinfo:
        cluster_config.build(
            num_workers=num_workers, worker_resources=["cpus(*):1"] * num_descriptors
        )
    assert "one resources descriptor for each worker" in str(excinfo.value)


@pytest.mark.parametrize("num_workers", (0, -1))
def test_no_workers(no_daemon: None, num_workers: int):
    with pytest.raises(errors.ConfigurationError):
        cluster_config.build(num_workers=num_workers)


@pytest.mark.parametrize("port", (0, -5, 65536))
def test_invalid_port(no_daemon: None, port: int):
    with pytest.raises(errors.ConfigurationError):
        cluster_config.build(master_port=port)


@pytest.mark.parametrize("name", ("1VAR", "MY-VAR", ""))
def test_invalid_env_name(no_daemon: None, name: str):
    with pytest.raises(errors.ConfigurationError):
        cluster_config.build(extra_env={name: "value"})


def test_empty_image(no_daemon: None):
    with pytest.raises(errors.ConfigurationError):
        cluster_config.build(master_image="")


@pytest.mark.parametrize(
    "option", ("readiness_timeout", "readiness_interval", "cluster_timeout", "cluster_interval")
)
def test_non_positive_timing(no_daemon: None, option: str):
    with pytest.raises(errors.ConfigurationError):
        cluster_config.build(**{option: 0})


def test_runtime_from_env(monkeypatch: pytest.MonkeyPatch, runtime: common.FakeRuntime):
    monkeypatch.setattr(docker_runtime, "from_env", lambda: runtime)
    config = cluster_config.build()
    assert config.runtime is runtime


def test_extra_env_read_only(runtime: common.FakeRuntime):
    config = cluster_config.build(runtime=runtime, extra_env={"GOOD": "1"})

    with pytest.raises(TypeError):
        config.extra_env["1 BAD NAME"] = "x"  # type: ignore[index]
    assert dict(config.extra_env) == {"GOOD": "1"}


def test_extra_env_copied(runtime: common.FakeRuntime):
    extra_env = {"GOOD": "1"}
    config = cluster_config.build(runtime=runtime, extra_env=extra_env)

    extra_env["1 BAD NAME"] = "x"
    assert "1 BAD NAME" not in config.extra_env


def test_resources_as_string(no_daemon: None):
    with pytest.raises(errors.ConfigurationError, match="sequence of descriptors"):
        cluster_config.build(num_workers=6, worker_resources="cpus:1")
