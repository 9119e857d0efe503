"""Exceptions raised by the cluster management core."""


class MinimesosError(Exception):
    pass


class ConfigurationError(MinimesosError):
    """Bad or missing cluster configuration."""


class ImagePullError(MinimesosError):
    def __init__(self, msg: str, *, log_tail: str = "") -> None:
        if log_tail:
            msg = f"{msg}\nLast lines of the output:\n{log_tail}"
        super().__init__(msg)
        self.log_tail = log_tail


class ImageBuildError(MinimesosError):
    def __init__(self, msg: str, *, log_tail: str = "") -> None:
        if log_tail:
            msg = f"{msg}\nLast lines of the output:\n{log_tail}"
        super().__init__(msg)
        self.log_tail = log_tail


class ProbeTimeoutError(MinimesosError, TimeoutError):
    """A bounded wait did not succeed in time."""

    def __init__(self, msg: str, *, elapsed: float, attempts: int) -> None:
        super().__init__(f"{msg} (waited {elapsed:.1f}s, {attempts} attempts)")
        self.elapsed = elapsed
        self.attempts = attempts


class ProbeCancelledError(MinimesosError):
    """A bounded wait was aborted by the caller."""


class ReadinessError(MinimesosError):
    """A container was started but did not become ready in time."""

    def __init__(self, msg: str, *, container_id: str) -> None:
        super().__init__(msg)
        self.container_id = container_id


class NotFoundError(MinimesosError):
    """Referenced container or persisted cluster identity doesn't exist."""


class NetworkError(MinimesosError):
    pass


class StorageError(MinimesosError):
    """The cluster state file cannot be read or written."""


class RuntimeApiError(MinimesosError):
    """The container runtime refused or failed a request."""


class ClusterExistsError(MinimesosError):
    def __init__(self, cluster_id: str) -> None:
        super().__init__(f"Cluster {cluster_id} is already running")
        self.cluster_id = cluster_id


class ClusterStateError(MinimesosError):
    """Operation is not valid in the current cluster state."""
