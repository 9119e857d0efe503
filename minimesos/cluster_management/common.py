import enum
import typing as tp


class Role(enum.StrEnum):
    """Role of a container in the cluster, in the order of creation."""

    ZOOKEEPER = "zookeeper"
    MASTER = "master"
    WORKER = "worker"


CONTAINER_PREFIX = "minimesos"
LABEL_CLUSTER = "minimesos.cluster"
LABEL_ROLE = "minimesos.role"

ZOOKEEPER_IMAGE = "jplock/zookeeper"
ZOOKEEPER_TAG = "3.4.6"
ZOOKEEPER_PORT = 2181
MASTER_IMAGE = "mesosphere/mesos-master"
MASTER_TAG = "0.22.1-1.0.ubuntu1404"
MASTER_PORT = 5050
WORKER_IMAGE = "mesosphere/mesos-slave"
WORKER_TAG = "0.22.1-1.0.ubuntu1404"
WORKER_PORT = 5051

ZK_PATH = "mesos"
DEFAULT_WORKER_RESOURCES = "ports(*):[31000-32000]; cpus(*):0.2; mem(*):256; disk(*):200"

MASTER_STATE_ENDPOINT = "/master/state.json"

# Trivial command answered by any running container with a shell
LIVENESS_COMMAND: tp.Final[tuple[str, ...]] = ("echo", "minimesos-alive")


def image_ref(name: str, tag: str) -> str:
    """Return full image reference `name:tag`."""
    return f"{name}:{tag}" if tag else name


def get_container_name(cluster_id: str, role: Role, num: int | None = None) -> str:
    """Return container name for a cluster member.

    >>> get_container_name("abc", Role.WORKER, 2)
    'minimesos-worker-2-abc'
    """
    num_str = f"-{num}" if num is not None else ""
    return f"{CONTAINER_PREFIX}-{role}{num_str}-{cluster_id}"


def get_zk_url(zk_ip: str, zk_path: str) -> str:
    """Return coordination service connection string.

    >>> get_zk_url("172.17.0.2", "mesos")
    'zk://172.17.0.2:2181/mesos'
    """
    return f"zk://{zk_ip}:{ZOOKEEPER_PORT}/{zk_path.strip('/')}"
