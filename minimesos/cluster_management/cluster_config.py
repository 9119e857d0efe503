"""Validated description of the cluster to build.

Use `build` to get a `ClusterConfig`. Every option has a default; defaults are applied first and
the resulting values are validated as a whole, so a `ClusterConfig` instance is always valid.
"""

import dataclasses
import logging
import re
import types
import typing as tp

from minimesos.cluster_management import common
from minimesos.cluster_management import errors
from minimesos.utils import configuration
from minimesos.utils import docker_runtime

LOGGER = logging.getLogger(__name__)

_ENV_NAME_RE = re.compile(r"^[A-Za-z_][A-Za-z0-9_]*$")


@dataclasses.dataclass(frozen=True)
class ClusterConfig:
    runtime: docker_runtime.RuntimeClient
    num_workers: int
    worker_resources: tuple[str, ...]
    master_port: int
    zk_path: str
    zookeeper_image: str
    zookeeper_tag: str
    master_image: str
    master_tag: str
    worker_image: str
    worker_tag: str
    extra_env: tp.Mapping[str, str]
    map_ports_to_host: bool
    pull_images: bool
    readiness_timeout: float
    readiness_interval: float
    cluster_timeout: float
    cluster_interval: float

    @property
    def worker_count(self) -> int:
        return self.num_workers

    @property
    def zookeeper_image_ref(self) -> str:
        return common.image_ref(self.zookeeper_image, self.zookeeper_tag)

    @property
    def master_image_ref(self) -> str:
        return common.image_ref(self.master_image, self.master_tag)

    @property
    def worker_image_ref(self) -> str:
        return common.image_ref(self.worker_image, self.worker_tag)


def _check_positive(**values: float) -> None:
    for name, value in values.items():
        if value <= 0:
            msg = f"The '{name}' must be > 0, got {value}."
            raise errors.ConfigurationError(msg)


def _check_env(extra_env: tp.Mapping[str, str]) -> tp.Mapping[str, str]:
    checked = {}
    for name, value in extra_env.items():
        if not isinstance(name, str) or not _ENV_NAME_RE.match(name):
            msg = f"Invalid environment variable name: {name!r}"
            raise errors.ConfigurationError(msg)
        checked[name] = str(value)
    # Read-only view, the validated names can't be changed afterwards
    return types.MappingProxyType(checked)


def _resolve_runtime(
    runtime: docker_runtime.RuntimeClient | None,
) -> docker_runtime.RuntimeClient:
    if runtime is not None:
        return runtime

    LOGGER.debug("No runtime client specified, using the Docker daemon from environment.")
    # Raises `ConfigurationError` when no daemon is reachable
    return docker_runtime.from_env()


def build(  # noqa: PLR0913
    *,
    runtime: docker_runtime.RuntimeClient | None = None,
    num_workers: int = configuration.NUM_WORKERS,
    worker_resources: tp.Sequence[str] | None = None,
    master_port: int = common.MASTER_PORT,
    zk_path: str | None = None,
    zookeeper_image: str = common.ZOOKEEPER_IMAGE,
    zookeeper_tag: str = common.ZOOKEEPER_TAG,
    master_image: str = common.MASTER_IMAGE,
    master_tag: str = common.MASTER_TAG,
    worker_image: str = common.WORKER_IMAGE,
    worker_tag: str = common.WORKER_TAG,
    extra_env: tp.Mapping[str, str] | None = None,
    map_ports_to_host: bool = False,
    pull_images: bool = True,
    readiness_timeout: float = configuration.READINESS_TIMEOUT,
    readiness_interval: float = configuration.READINESS_INTERVAL,
    cluster_timeout: float = configuration.CLUSTER_TIMEOUT,
    cluster_interval: float = configuration.CLUSTER_INTERVAL,
) -> ClusterConfig:
    """Validate the options and return cluster configuration.

    Args:
        runtime: Container runtime client. Resolved from environment when not specified.
        num_workers: Number of worker containers (at least one).
        worker_resources: Resources descriptor for each worker, in the order of workers. When not
            specified, every worker gets the default descriptor.
        master_port: Port the master listens on.
        zk_path: Path of the cluster in the coordination service.
        extra_env: Additional environment variables for master and worker containers.
        map_ports_to_host: Publish the master port on the host.
        pull_images: Pull images before creating containers.

    Raises:
        ConfigurationError: When any of the options is not valid, or no runtime is available.
    """
    if worker_resources is None:
        worker_resources = [common.DEFAULT_WORKER_RESOURCES] * max(num_workers, 0)
    zk_path = zk_path or common.ZK_PATH
    extra_env = extra_env or {}

    if isinstance(worker_resources, str):
        msg = "The 'worker_resources' must be a sequence of descriptors, one for each worker."
        raise errors.ConfigurationError(msg)

    if num_workers <= 0:
        msg = f"At least one worker is required to run a cluster, got {num_workers}."
        raise errors.ConfigurationError(msg)

    if len(worker_resources) != num_workers:
        msg = (
            "Please provide one resources descriptor for each worker: "
            f"{num_workers} workers, {len(worker_resources)} descriptors."
        )
        raise errors.ConfigurationError(msg)

    if not 0 < master_port < 65536:
        msg = f"Invalid master port: {master_port}"
        raise errors.ConfigurationError(msg)

    for name, image in (
        ("zookeeper_image", zookeeper_image),
        ("master_image", master_image),
        ("worker_image", worker_image),
    ):
        if not image:
            msg = f"The '{name}' must not be empty."
            raise errors.ConfigurationError(msg)

    checked_env = _check_env(extra_env)
    _check_positive(
        readiness_timeout=readiness_timeout,
        readiness_interval=readiness_interval,
        cluster_timeout=cluster_timeout,
        cluster_interval=cluster_interval,
    )

    return ClusterConfig(
        runtime=_resolve_runtime(runtime),
        num_workers=num_workers,
        worker_resources=tuple(worker_resources),
        master_port=master_port,
        zk_path=zk_path,
        zookeeper_image=zookeeper_image,
        zookeeper_tag=zookeeper_tag,
        master_image=master_image,
        master_tag=master_tag,
        worker_image=worker_image,
        worker_tag=worker_tag,
        extra_env=checked_env,
        map_ports_to_host=map_ports_to_host,
        pull_images=pull_images,
        readiness_timeout=readiness_timeout,
        readiness_interval=readiness_interval,
        cluster_timeout=cluster_timeout,
        cluster_interval=cluster_interval,
    )
