"""Top-level management of the cluster lifecycle.

The cluster goes through the states `ABSENT -> CREATED -> RUNNING -> DESTROYED`. The `ABSENT`
state is not stored anywhere, it is the absence of the persisted cluster identity.

Containers are created in the order of their dependencies: the coordination service (ZooKeeper)
first, then the master that needs its address, then the workers that find the master through
the coordination service. The cluster identity is persisted before any container is created and
every container is added to it as soon as its ID is known, so even a partially created cluster
can be destroyed by a later invocation.
"""

import dataclasses
import enum
import logging
import threading
import typing as tp

import requests

from minimesos.cluster_management import cluster_config
from minimesos.cluster_management import common
from minimesos.cluster_management import errors
from minimesos.cluster_management import lifecycle
from minimesos.cluster_management import readiness
from minimesos.cluster_management import state_store
from minimesos.utils import configuration
from minimesos.utils import docker_runtime
from minimesos.utils import framework_log
from minimesos.utils import helpers
from minimesos.utils import http_client

LOGGER = logging.getLogger(__name__)

StateFetcherType = tp.Callable[[str], dict | None]


class ClusterState(enum.Enum):
    ABSENT = "absent"
    CREATED = "created"
    RUNNING = "running"
    DESTROYED = "destroyed"


@dataclasses.dataclass(frozen=True, order=True)
class MemberInfo:
    role: str
    container_id: str
    ip: str | None


def master_has_leader(state: dict | None) -> bool:
    """Check that master state reports an elected leader."""
    return bool(state and state.get("leader"))


def fetch_master_state(master_url: str) -> dict | None:
    """Return decoded master state, or `None` when the master is not answering (yet)."""
    url = f"{master_url}{common.MASTER_STATE_ENDPOINT}"
    try:
        state = http_client.get_json(url, timeout=5)
    except (requests.RequestException, ValueError) as exc:
        LOGGER.debug(f"Master state not available at '{url}': {exc}")
        return None
    return state if isinstance(state, dict) else None


class ClusterOrchestrator:
    """Create, start, wait for, and destroy a cluster."""

    def __init__(
        self,
        runtime: docker_runtime.RuntimeClient,
        *,
        store: state_store.ClusterStateStore | None = None,
        lifecycle_manager: lifecycle.ContainerLifecycleManager | None = None,
        state_fetcher: StateFetcherType | None = None,
    ) -> None:
        self.runtime = runtime
        self.store = store or state_store.ClusterStateStore()
        self.lifecycle = lifecycle_manager or lifecycle.ContainerLifecycleManager(runtime)
        self.state_fetcher = state_fetcher or fetch_master_state

        self.config: cluster_config.ClusterConfig | None = None
        self.master_url = ""
        self._state: ClusterState | None = None

    @property
    def state(self) -> ClusterState:
        if self._state is not None:
            return self._state
        # Not changed by this instance, derive from the persisted identity
        return ClusterState.CREATED if self.is_active() else ClusterState.ABSENT

    def is_active(self) -> bool:
        """Check if a cluster is currently active, i.e. its identity is persisted."""
        return self.store.load() is not None

    def get_identity(self) -> state_store.ClusterIdentity:
        """Return identity of the active cluster."""
        identity = self.store.load()
        if identity is None:
            msg = "No active cluster found."
            raise errors.NotFoundError(msg)
        return identity

    def _log_event(self, msg: str) -> None:
        LOGGER.debug(msg)
        framework_log.events_logger(self.store.state_dir).info(msg)

    def _get_probe(self, config: cluster_config.ClusterConfig) -> readiness.ReadinessProbe:
        return readiness.ReadinessProbe(
            timeout=config.readiness_timeout, poll_interval=config.readiness_interval
        )

    def _create_member(
        self,
        *,
        cluster_id: str,
        spec: docker_runtime.ContainerSpec,
        probe: readiness.ReadinessProbe,
        cancel_event: threading.Event | None,
    ) -> lifecycle.Container:
        def _on_created(container: lifecycle.Container) -> None:
            self.store.add_member(role=container.role, container_id=container.id)
            self._log_event(
                f"cluster {cluster_id}: added {container.role} container {container.id}"
            )

        return self.lifecycle.create_and_start(
            spec, on_created=_on_created, probe=probe, cancel_event=cancel_event
        )

    def _gen_spec(
        self,
        *,
        cluster_id: str,
        role: common.Role,
        image: str,
        env: dict[str, str],
        num: int | None = None,
        port_bindings: dict[int, int | None] | None = None,
    ) -> docker_runtime.ContainerSpec:
        return docker_runtime.ContainerSpec(
            image=image,
            name=common.get_container_name(cluster_id, role, num),
            role=str(role),
            env=env,
            port_bindings=port_bindings or {},
            labels={common.LABEL_CLUSTER: cluster_id, common.LABEL_ROLE: str(role)},
        )

    def _pull(self, config: cluster_config.ClusterConfig, name: str, tag: str) -> None:
        if config.pull_images:
            self.lifecycle.pull_image(name, tag)

    def create(
        self,
        config: cluster_config.ClusterConfig,
        *,
        cancel_event: threading.Event | None = None,
    ) -> state_store.ClusterIdentity:
        """Create all cluster containers and return the cluster identity.

        Raises:
            ClusterExistsError: A cluster is already active in this environment.
        """
        existing = self.store.load()
        if existing is not None:
            raise errors.ClusterExistsError(existing.cluster_id)
        if config.runtime is not self.runtime:
            msg = "The cluster configuration is bound to a different container runtime."
            raise errors.ConfigurationError(msg)

        self.config = config
        cluster_id = helpers.get_timestamped_rand_str()
        # Save cluster ID first, so it is available for `destroy` even if part of it fails to start
        self.store.save(state_store.ClusterIdentity(cluster_id=cluster_id))
        self._state = ClusterState.CREATED
        self._log_event(f"cluster {cluster_id}: created")
        LOGGER.info(f"Creating cluster {cluster_id} with {config.num_workers} workers.")

        probe = self._get_probe(config)

        # Coordination service
        self._pull(config, config.zookeeper_image, config.zookeeper_tag)
        zookeeper = self._create_member(
            cluster_id=cluster_id,
            spec=self._gen_spec(
                cluster_id=cluster_id,
                role=common.Role.ZOOKEEPER,
                image=config.zookeeper_image_ref,
                env={},
            ),
            probe=probe,
            cancel_event=cancel_event,
        )
        zk_url = common.get_zk_url(self.lifecycle.inspect_ip(zookeeper.id), config.zk_path)

        # Master
        self._pull(config, config.master_image, config.master_tag)
        master_env = {
            "MESOS_ZK": zk_url,
            "MESOS_QUORUM": "1",
            "MESOS_PORT": str(config.master_port),
            "MESOS_CLUSTER": cluster_id,
            "MESOS_REGISTRY": "in_memory",
            "MESOS_LOG_DIR": "/var/log/mesos",
            "MESOS_WORK_DIR": "/var/lib/mesos",
            **config.extra_env,
        }
        master = self._create_member(
            cluster_id=cluster_id,
            spec=self._gen_spec(
                cluster_id=cluster_id,
                role=common.Role.MASTER,
                image=config.master_image_ref,
                env=master_env,
                port_bindings=(
                    {config.master_port: config.master_port} if config.map_ports_to_host else None
                ),
            ),
            probe=probe,
            cancel_event=cancel_event,
        )
        master_ip = self.lifecycle.inspect_ip(master.id)
        master_host = "127.0.0.1" if config.map_ports_to_host else master_ip
        self.master_url = f"http://{master_host}:{config.master_port}"
        self.store.set_master_url(self.master_url)

        # Workers
        self._pull(config, config.worker_image, config.worker_tag)
        for num, resources in enumerate(config.worker_resources, start=1):
            worker_env = {
                "MESOS_MASTER": zk_url,
                "MESOS_RESOURCES": resources,
                "MESOS_PORT": str(common.WORKER_PORT),
                "MESOS_LOG_DIR": "/var/log/mesos",
                "MESOS_WORK_DIR": "/tmp/mesos",
                "MESOS_CONTAINERIZERS": "mesos",
                "MESOS_LAUNCHER": "posix",
                "MESOS_SWITCH_USER": "false",
                **config.extra_env,
            }
            self._create_member(
                cluster_id=cluster_id,
                spec=self._gen_spec(
                    cluster_id=cluster_id,
                    role=common.Role.WORKER,
                    image=config.worker_image_ref,
                    env=worker_env,
                    num=num,
                ),
                probe=probe,
                cancel_event=cancel_event,
            )

        identity = self.get_identity()
        LOGGER.info(f"Cluster {cluster_id} created with {len(identity.members)} containers.")
        return identity

    def start(self) -> None:
        """Start members that were created but not started. No-op if the cluster is running."""
        state = self.state
        if state == ClusterState.RUNNING:
            return
        if state != ClusterState.CREATED:
            msg = f"Cannot start cluster in state '{state.value}'."
            raise errors.ClusterStateError(msg)

        identity = self.get_identity()
        for member in identity.members:
            info = self.runtime.inspect_container(member.container_id)
            if info.status == "created":
                LOGGER.info(f"Starting {member.role} container {member.container_id}.")
                self.runtime.start_container(member.container_id)

        self._state = ClusterState.RUNNING

    def _get_master_url(self) -> str:
        if self.master_url:
            return self.master_url

        # Cluster created by another invocation
        identity = self.get_identity()
        if identity.master_url:
            self.master_url = identity.master_url
            return self.master_url

        # Master URL not recorded yet, the master listens on its default port
        masters = [m for m in identity.members if m.role == common.Role.MASTER]
        if not masters:
            msg = f"Cluster {identity.cluster_id} has no master."
            raise errors.NotFoundError(msg)
        master_ip = self.lifecycle.inspect_ip(masters[0].container_id)
        port = self.config.master_port if self.config else common.MASTER_PORT
        self.master_url = f"http://{master_ip}:{port}"
        return self.master_url

    def wait_for_state(
        self,
        predicate: tp.Callable[[dict | None], bool] = master_has_leader,
        *,
        timeout: float | None = None,
        poll_interval: float | None = None,
        cancel_event: threading.Event | None = None,
    ) -> dict | None:
        """Wait until the master state satisfies the `predicate` and return the state.

        The predicate gets `None` while the master state is not available.

        Raises:
            ProbeTimeoutError: The predicate wasn't satisfied within the timeout.
        """
        if timeout is None:
            timeout = self.config.cluster_timeout if self.config else configuration.CLUSTER_TIMEOUT
        if poll_interval is None:
            poll_interval = (
                self.config.cluster_interval if self.config else configuration.CLUSTER_INTERVAL
            )

        master_url = self._get_master_url()
        last_state: dict | None = None

        def _check(url: str) -> bool:
            nonlocal last_state
            last_state = self.state_fetcher(url)
            return predicate(last_state)

        probe = readiness.ReadinessProbe(timeout=timeout, poll_interval=poll_interval)
        probe.wait(
            _check, master_url, description=f"master at {master_url}", cancel_event=cancel_event
        )
        return last_state

    def describe(self) -> list[MemberInfo]:
        """Return role, container ID and IP address of every member of the active cluster."""
        identity = self.get_identity()
        members_info = []
        for member in identity.members:
            try:
                ip: str | None = self.lifecycle.inspect_ip(member.container_id)
            except (errors.NotFoundError, errors.NetworkError):
                ip = None
            members_info.append(
                MemberInfo(role=member.role, container_id=member.container_id, ip=ip)
            )
        return members_info

    def detach(self) -> None:
        """Hand ownership of the containers over to the persisted identity.

        After this the containers are not removed when the process exits, only by `destroy`.
        """
        released = self.lifecycle.release()
        LOGGER.debug(f"Released {len(released)} containers to the persisted cluster identity.")

    def destroy(self) -> str | None:
        """Remove all containers of the cluster and clear its identity.

        Return ID of the destroyed cluster, or `None` when there was nothing to destroy.
        """
        identity = self.store.load()
        if identity is None:
            LOGGER.info("No active cluster, nothing to destroy.")
            self.lifecycle.stop_all()
            self._state = ClusterState.DESTROYED
            return None

        LOGGER.info(f"Destroying cluster {identity.cluster_id}.")
        tracked = set(self.lifecycle.container_ids)
        # Tracked containers are removed in reverse order of creation, workers first
        failed = self.lifecycle.stop_all()
        # Containers created by another invocation
        untracked = [c for c in reversed(identity.container_ids) if c not in tracked]
        failed.extend(self.lifecycle.remove_containers(untracked))
        if failed:
            LOGGER.warning(f"Failed to remove containers: {', '.join(failed)}")

        self.store.clear()
        self._state = ClusterState.DESTROYED
        self.master_url = ""
        self._log_event(f"cluster {identity.cluster_id}: destroyed")
        return identity.cluster_id
