"""Common test utilities and the in-memory container runtime."""

import itertools
import pathlib as pl
import typing as tp

from minimesos.cluster_management import errors
from minimesos.utils import docker_runtime


def hypothesis_settings(max_examples: int = 100) -> tp.Any:
    import hypothesis

    return hypothesis.settings(
        max_examples=max_examples,
        deadline=None,
        suppress_health_check=(
            hypothesis.HealthCheck.too_slow,
            hypothesis.HealthCheck.function_scoped_fixture,
        ),
    )


class FakeRuntime(docker_runtime.RuntimeClient):
    """Container runtime that keeps containers in memory and records all calls.

    Failures can be injected per container role:
    * `fail_create_roles` - creating a container of the role fails
    * `dead_roles` - containers of the role never answer commands
    * `fail_remove` - removing the container with given ID fails
    """

    def __init__(self) -> None:
        self.containers: dict[str, dict] = {}
        self.calls: list[tuple[str, str]] = []
        self.created: list[docker_runtime.ContainerSpec] = []
        self.removed: list[str] = []

        self.fail_create_roles: set[str] = set()
        self.dead_roles: set[str] = set()
        self.fail_remove: set[str] = set()

        self.pull_output = ["latest: Pulling from library/image", "abc123: Download complete"]
        self.build_output = ["Step 1/1 : FROM busybox", "Successfully built 4f2e1d"]

        self._counter = itertools.count(1)

    def get_calls(self, name: str) -> list[str]:
        return [arg for call, arg in self.calls if call == name]

    def _get(self, container_id: str) -> dict:
        if container_id not in self.containers:
            msg = f"Container {container_id} not found."
            raise errors.NotFoundError(msg)
        return self.containers[container_id]

    def create_container(self, spec: docker_runtime.ContainerSpec) -> str:
        self.calls.append(("create", spec.name))
        if spec.role in self.fail_create_roles:
            msg = f"Failed to create container '{spec.name}': injected failure"
            raise errors.RuntimeApiError(msg)

        num = next(self._counter)
        container_id = f"{num:012x}{'f' * 52}"
        self.containers[container_id] = {
            "spec": spec,
            "status": "created",
            "ip": f"172.17.0.{num + 1}",
        }
        self.created.append(spec)
        return container_id

    def start_container(self, container_id: str) -> None:
        self.calls.append(("start", container_id))
        self._get(container_id)["status"] = "running"

    def inspect_container(self, container_id: str) -> docker_runtime.ContainerInfo:
        self.calls.append(("inspect", container_id))
        container = self._get(container_id)
        ip = container["ip"] if container["status"] == "running" else None
        return docker_runtime.ContainerInfo(
            container_id=container_id, status=container["status"], ip=ip
        )

    def exec_in_container(
        self, container_id: str, command: tp.Sequence[str]
    ) -> docker_runtime.ExecOutput:
        self.calls.append(("exec", container_id))
        container = self._get(container_id)
        if container["status"] != "running" or container["spec"].role in self.dead_roles:
            msg = f"Container {container_id} is not running"
            raise errors.RuntimeApiError(msg)
        return docker_runtime.ExecOutput(exit_code=0, output=f"{' '.join(command[1:])}\n")

    def pull_image(self, name: str, tag: str) -> tp.Iterator[str]:
        self.calls.append(("pull", f"{name}:{tag}"))
        yield from self.pull_output

    def build_image(self, build_dir: pl.Path | str, tag: str) -> tp.Iterator[str]:
        self.calls.append(("build", tag))
        yield from self.build_output

    def remove_container(self, container_id: str) -> None:
        self.calls.append(("remove", container_id))
        if container_id in self.fail_remove:
            msg = f"Failed to remove container {container_id}: injected failure"
            raise errors.RuntimeApiError(msg)
        if self.containers.pop(container_id, None) is not None:
            self.removed.append(container_id)
