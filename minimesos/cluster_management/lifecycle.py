"""Creation, readiness probing and guaranteed removal of containers.

The `ContainerLifecycleManager` owns every container it creates. All tracked containers are
force-removed by `stop_all`, which is also registered to run when the process exits, whether
the exit is normal or caused by an interrupt or termination signal. Ownership can be handed over
with `release`, e.g. when the containers should outlive the process.
"""

import atexit
import collections
import dataclasses
import datetime
import logging
import pathlib as pl
import signal
import threading
import typing as tp

from minimesos.cluster_management import common
from minimesos.cluster_management import errors
from minimesos.cluster_management import readiness
from minimesos.utils import configuration
from minimesos.utils import docker_runtime
from minimesos.utils import helpers

LOGGER = logging.getLogger(__name__)

PULL_SUCCESS_MARKERS = (
    "Download complete",
    "Already exists",
    "Downloaded newer image",
    "Image is up to date",
)
BUILD_SUCCESS_MARKERS = ("Successfully built", "Successfully tagged")


@dataclasses.dataclass
class Container:
    id: str
    role: str
    name: str
    created: datetime.datetime = dataclasses.field(
        default_factory=lambda: datetime.datetime.now(tz=datetime.UTC)
    )
    ip: str | None = None


def _sigterm_handler(signum: int, frame: tp.Any) -> None:
    """Turn SIGTERM into a normal interpreter exit, so the `atexit` hooks run."""
    raise SystemExit(128 + signum)


def _install_sigterm_handler() -> None:
    try:
        if signal.getsignal(signal.SIGTERM) == signal.SIG_DFL:
            signal.signal(signal.SIGTERM, _sigterm_handler)
    except ValueError as exc:
        if "signal only works in main thread" not in str(exc):
            raise
        LOGGER.debug("Not in main thread, SIGTERM handler was not installed.")


class ContainerLifecycleManager:
    """Create, start, probe and track containers; remove all of them at the end."""

    def __init__(
        self,
        runtime: docker_runtime.RuntimeClient,
        *,
        probe: readiness.ReadinessProbe | None = None,
        register_cleanup: bool = True,
    ) -> None:
        self.runtime = runtime
        self.probe = probe or readiness.ReadinessProbe()
        self._containers: dict[str, Container] = {}
        self._lock = threading.RLock()

        if register_cleanup:
            atexit.register(self._cleanup_hook)
            _install_sigterm_handler()

    @property
    def containers(self) -> list[Container]:
        """Return tracked containers in the order of creation."""
        with self._lock:
            return list(self._containers.values())

    @property
    def container_ids(self) -> list[str]:
        with self._lock:
            return list(self._containers)

    def _cleanup_hook(self) -> None:
        if not self.container_ids:
            return
        LOGGER.info("Running cleanup hook.")
        self.stop_all()

    def _consume_output(
        self, lines: tp.Iterable[str], *, markers: tp.Iterable[str]
    ) -> tuple[bool, str]:
        """Log the output lines and look for any of the success `markers`.

        Return whether a marker was found, and the last lines of the output.
        """
        markers = tuple(markers)
        found_marker = False
        tail: collections.deque[str] = collections.deque(maxlen=configuration.LOG_TAIL_LINES)
        for line in lines:
            LOGGER.debug(line)
            tail.append(line)
            if not found_marker and any(m in line for m in markers):
                found_marker = True
        return found_marker, helpers.get_log_tail(tail, num=configuration.LOG_TAIL_LINES)

    def pull_image(self, name: str, tag: str) -> None:
        """Pull image and check the output for indication of success."""
        image = common.image_ref(name, tag)
        LOGGER.info(f"Pulling image '{image}'.")
        found_marker, log_tail = self._consume_output(
            self.runtime.pull_image(name, tag), markers=PULL_SUCCESS_MARKERS
        )
        if not found_marker:
            msg = f"Failed to pull image '{image}'."
            raise errors.ImagePullError(msg, log_tail=log_tail)

    def build_image(self, build_dir: pl.Path | str, tag: str) -> None:
        """Build image from the `build_dir` context and check the output for success."""
        build_path = pl.Path(build_dir)
        if not build_path.is_dir():
            msg = f"Build context '{build_dir}' is not a directory."
            raise errors.ImageBuildError(msg)

        LOGGER.info(f"Building image '{tag}' from '{build_path}'.")
        found_marker, log_tail = self._consume_output(
            self.runtime.build_image(build_path, tag), markers=BUILD_SUCCESS_MARKERS
        )
        if not found_marker:
            msg = f"Failed to build image '{tag}'."
            raise errors.ImageBuildError(msg, log_tail=log_tail)

    def is_alive(self, container_id: str) -> bool:
        """Check that process inside the container answers a trivial command."""
        try:
            result = self.runtime.exec_in_container(container_id, common.LIVENESS_COMMAND)
        except errors.RuntimeApiError as exc:
            LOGGER.debug(f"Container {container_id} is not answering yet: {exc}")
            return False
        return result.exit_code == 0 and common.LIVENESS_COMMAND[-1] in result.output

    def create_and_start(
        self,
        spec: docker_runtime.ContainerSpec,
        *,
        on_created: tp.Callable[[Container], None] | None = None,
        probe: readiness.ReadinessProbe | None = None,
        cancel_event: threading.Event | None = None,
    ) -> Container:
        """Create and start a container, then wait until it is alive.

        The container is tracked for cleanup as soon as it is created, regardless of the outcome of
        the rest of the operation. The `on_created` callback is called right after the container
        was created, before it is started. The `probe` overrides the default readiness policy of the
        manager.

        Raises:
            ReadinessError: The container was started but didn't answer in time. It is left
                running and stays tracked.
        """
        LOGGER.debug(f"Creating container '{spec.name}' from image '{spec.image}'.")
        container_id = self.runtime.create_container(spec)
        container = Container(id=container_id, role=spec.role, name=spec.name)
        with self._lock:
            self._containers[container_id] = container

        if on_created:
            on_created(container)

        self.runtime.start_container(container_id)

        try:
            (probe or self.probe).wait(
                self.is_alive,
                container_id,
                description=f"container '{spec.name}'",
                cancel_event=cancel_event,
            )
        except errors.ProbeTimeoutError as exc:
            msg = f"Container '{spec.name}' ({container_id}) is not ready: {exc}"
            raise errors.ReadinessError(msg, container_id=container_id) from exc

        LOGGER.info(f"Container '{spec.name}' ({container_id[:12]}) is up.")
        return container

    def inspect_ip(self, container_id: str) -> str:
        """Return IP address of the container."""
        info = self.runtime.inspect_container(container_id)
        if not info.ip:
            msg = f"Container {container_id} has no IP address assigned (status '{info.status}')."
            raise errors.NetworkError(msg)

        with self._lock:
            if container_id in self._containers:
                self._containers[container_id].ip = info.ip

        return info.ip

    def remove_containers(self, container_ids: tp.Iterable[str]) -> list[str]:
        """Force-remove the containers, best-effort.

        Failure to remove a container doesn't stop removal of the rest. Return IDs of containers
        that failed to be removed.
        """
        failed = []
        for container_id in container_ids:
            LOGGER.info(f"Removing container {container_id}")
            try:
                self.runtime.remove_container(container_id)
            except errors.MinimesosError as exc:
                LOGGER.warning(f"Failed to remove container {container_id}: {exc}")
                failed.append(container_id)
        return failed

    def stop_all(self) -> list[str]:
        """Force-remove all tracked containers.

        Can be called repeatedly and concurrently (e.g. from the cleanup hook while the cluster is
        being destroyed). Return IDs of containers that failed to be removed.
        """
        with self._lock:
            to_remove = list(self._containers)

        failed = self.remove_containers(reversed(to_remove))

        with self._lock:
            for container_id in to_remove:
                self._containers.pop(container_id, None)

        return failed

    def release(self) -> list[Container]:
        """Stop tracking all containers without removing them and return them."""
        with self._lock:
            released = list(self._containers.values())
            self._containers.clear()
        return released
