"""Container runtime client.

The cluster management core talks to the container runtime only through the `RuntimeClient`
interface. `DockerRuntimeClient` implements it on top of the Docker SDK.
"""

import dataclasses
import logging
import pathlib as pl
import typing as tp

import docker
import docker.errors
import requests

import minimesos.utils.types as ttypes
from minimesos.cluster_management import errors

LOGGER = logging.getLogger(__name__)

# Connection problems surface as `requests` exceptions, not as Docker SDK ones
API_ERRORS = (docker.errors.DockerException, requests.RequestException)


@dataclasses.dataclass(frozen=True)
class ContainerSpec:
    image: str
    name: str
    role: str
    env: ttypes.EnvType = dataclasses.field(default_factory=dict)
    port_bindings: ttypes.PortBindingsType = dataclasses.field(default_factory=dict)
    labels: dict[str, str] = dataclasses.field(default_factory=dict)
    command: tuple[str, ...] = ()


@dataclasses.dataclass(frozen=True, order=True)
class ContainerInfo:
    container_id: str
    status: str
    ip: str | None


@dataclasses.dataclass(frozen=True, order=True)
class ExecOutput:
    exit_code: int
    output: str


class RuntimeClient:
    """Capabilities of a container runtime needed by the cluster management core."""

    def create_container(self, spec: ContainerSpec) -> str:
        """Create (but don't start) a container and return its ID."""
        raise NotImplementedError

    def start_container(self, container_id: str) -> None:
        raise NotImplementedError

    def inspect_container(self, container_id: str) -> ContainerInfo:
        """Return status and network address of the container.

        Raises `NotFoundError` when the container doesn't exist.
        """
        raise NotImplementedError

    def exec_in_container(self, container_id: str, command: tp.Sequence[str]) -> ExecOutput:
        """Execute a short-lived command inside a running container."""
        raise NotImplementedError

    def pull_image(self, name: str, tag: str) -> tp.Iterator[str]:
        """Pull image and yield lines of the pull output."""
        raise NotImplementedError

    def build_image(self, build_dir: ttypes.FileType, tag: str) -> tp.Iterator[str]:
        """Build image and yield lines of the build output."""
        raise NotImplementedError

    def remove_container(self, container_id: str) -> None:
        """Force-remove the container.

        Removing a stopped or already removed container is not an error.
        """
        raise NotImplementedError


def _get_ip(attrs: dict) -> str | None:
    network_settings = attrs.get("NetworkSettings") or {}
    ip = network_settings.get("IPAddress")
    if ip:
        return str(ip)

    # User-defined networks don't fill the top-level address
    for network in (network_settings.get("Networks") or {}).values():
        if network and network.get("IPAddress"):
            return str(network["IPAddress"])

    return None


def _format_progress(record: dict) -> str:
    """Format a single decoded record of a pull/build stream."""
    if record.get("error"):
        return f"ERROR: {record['error']}"
    if "stream" in record:
        return str(record["stream"]).rstrip("\n")
    parts = [str(record[k]) for k in ("id", "status") if record.get(k)]
    return ": ".join(parts)


class DockerRuntimeClient(RuntimeClient):
    """Runtime client backed by the Docker Engine API."""

    def __init__(self, client: docker.DockerClient) -> None:
        self.client = client

    def __repr__(self) -> str:
        return f"<{self.__class__.__name__} {self.client.api.base_url}>"

    def create_container(self, spec: ContainerSpec) -> str:
        ports = {f"{c}/tcp": h for c, h in spec.port_bindings.items()}
        try:
            container = self.client.containers.create(
                spec.image,
                command=list(spec.command) or None,
                name=spec.name,
                environment=dict(spec.env),
                ports=ports or None,
                labels=dict(spec.labels),
                detach=True,
            )
        except docker.errors.ImageNotFound as exc:
            msg = f"Image '{spec.image}' not found, pull or build it first."
            raise errors.NotFoundError(msg) from exc
        except API_ERRORS as exc:
            msg = f"Failed to create container '{spec.name}': {exc}"
            raise errors.RuntimeApiError(msg) from exc
        return str(container.id)

    def start_container(self, container_id: str) -> None:
        try:
            self.client.api.start(container_id)
        except docker.errors.NotFound as exc:
            msg = f"Container {container_id} not found."
            raise errors.NotFoundError(msg) from exc
        except API_ERRORS as exc:
            msg = f"Failed to start container {container_id}: {exc}"
            raise errors.RuntimeApiError(msg) from exc

    def inspect_container(self, container_id: str) -> ContainerInfo:
        try:
            attrs = self.client.api.inspect_container(container_id)
        except docker.errors.NotFound as exc:
            msg = f"Container {container_id} not found."
            raise errors.NotFoundError(msg) from exc
        except API_ERRORS as exc:
            msg = f"Failed to inspect container {container_id}: {exc}"
            raise errors.RuntimeApiError(msg) from exc

        status = (attrs.get("State") or {}).get("Status") or "unknown"
        return ContainerInfo(container_id=container_id, status=str(status), ip=_get_ip(attrs))

    def exec_in_container(self, container_id: str, command: tp.Sequence[str]) -> ExecOutput:
        try:
            container = self.client.containers.get(container_id)
            result = container.exec_run(list(command))
        except docker.errors.NotFound as exc:
            msg = f"Container {container_id} not found."
            raise errors.NotFoundError(msg) from exc
        except API_ERRORS as exc:
            msg = f"Failed to execute `{' '.join(command)}` in container {container_id}: {exc}"
            raise errors.RuntimeApiError(msg) from exc

        output = result.output or b""
        return ExecOutput(
            exit_code=int(result.exit_code or 0),
            output=output.decode("utf-8", errors="replace"),
        )

    def pull_image(self, name: str, tag: str) -> tp.Iterator[str]:
        try:
            for record in self.client.api.pull(name, tag=tag or None, stream=True, decode=True):
                yield _format_progress(record)
        except API_ERRORS as exc:
            # The error message is part of the output, the caller decides about the failure
            yield f"ERROR: {exc}"

    def build_image(self, build_dir: ttypes.FileType, tag: str) -> tp.Iterator[str]:
        try:
            for record in self.client.api.build(
                path=str(pl.Path(build_dir)), tag=tag, rm=True, decode=True
            ):
                line = _format_progress(record)
                yield from line.splitlines() or [line]
        except API_ERRORS as exc:
            yield f"ERROR: {exc}"

    def remove_container(self, container_id: str) -> None:
        try:
            self.client.api.remove_container(container_id, force=True, v=True)
        except docker.errors.NotFound:
            LOGGER.debug(f"Container {container_id} is already gone.")
        except docker.errors.APIError as exc:
            if exc.status_code == 409 and "already in progress" in str(exc):
                LOGGER.debug(f"Removal of container {container_id} is already in progress.")
                return
            msg = f"Failed to remove container {container_id}: {exc}"
            raise errors.RuntimeApiError(msg) from exc
        except API_ERRORS as exc:
            msg = f"Failed to remove container {container_id}: {exc}"
            raise errors.RuntimeApiError(msg) from exc


def from_env() -> DockerRuntimeClient:
    """Return runtime client for the Docker daemon configured by environment (`DOCKER_HOST`...)."""
    try:
        client = docker.from_env()
        client.ping()
    except API_ERRORS as exc:
        msg = f"Cannot connect to the Docker daemon, specify a runtime client explicitly: {exc}"
        raise errors.ConfigurationError(msg) from exc
    return DockerRuntimeClient(client)
