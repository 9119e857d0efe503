"""Module for exposing useful components of cluster management.

A cluster is a set of containers running a small Mesos installation: one coordination service
(ZooKeeper) instance, one master and one or more workers.

Key concepts:
    - **Configuration**: `cluster_config.build` validates all options up front and returns an
      immutable `ClusterConfig`. Nothing touches the container runtime until the configuration
      is valid.
    - **Readiness**: Every container is considered ready only after it answers a trivial command.
      The whole cluster is considered ready once the master reports an elected leader.
      Both waits are bounded by `ReadinessProbe`.
    - **Guaranteed cleanup**: `ContainerLifecycleManager` tracks every container it creates and
      removes all of them when the process exits, unless the ownership was handed over to the
      persisted cluster identity.
    - **Persisted identity**: `ClusterStateStore` keeps the cluster ID and its containers in a state
      file, so a separate invocation can find out that a cluster is running and destroy it.
    - **`ClusterOrchestrator`**: The main class, it creates the containers in the order of their
      dependencies, starts them, waits for the cluster to become operational and destroys it.
"""

# flake8: noqa
from minimesos.cluster_management.cluster_config import ClusterConfig
from minimesos.cluster_management.cluster_config import build as build_config
from minimesos.cluster_management.errors import MinimesosError
from minimesos.cluster_management.lifecycle import ContainerLifecycleManager
from minimesos.cluster_management.orchestrator import ClusterOrchestrator
from minimesos.cluster_management.orchestrator import ClusterState
from minimesos.cluster_management.readiness import ReadinessProbe
from minimesos.cluster_management.state_store import ClusterStateStore
