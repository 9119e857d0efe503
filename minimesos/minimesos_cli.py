#!/usr/bin/env python3
"""Run a small Mesos cluster (ZooKeeper, master, workers) in containers.

* `up` - create and start the cluster, wait until the master elects a leader
* `destroy` - remove all containers of the running cluster
* `info` - show the running cluster
"""

import argparse
import logging
import sys

from minimesos.cluster_management import cluster_config
from minimesos.cluster_management import common
from minimesos.cluster_management import errors
from minimesos.cluster_management import orchestrator
from minimesos.utils import configuration
from minimesos.utils import docker_runtime
from minimesos.utils import helpers

LOGGER = logging.getLogger(__name__)


def get_args(argv: list[str] | None = None) -> argparse.Namespace:
    """Get command line arguments."""
    parser = argparse.ArgumentParser(description=(__doc__ or "").split("\n", maxsplit=1)[0])
    parser.add_argument(
        "-v",
        "--verbose",
        action="store_true",
        help="Log debug messages.",
    )
    subparsers = parser.add_subparsers(dest="command", required=True)

    parser_up = subparsers.add_parser("up", help="Create and start the cluster.")
    parser_up.add_argument(
        "-n",
        "--num-workers",
        type=helpers.check_positive_int_arg,
        default=configuration.NUM_WORKERS,
        help="Number of workers (default: %(default)s).",
    )
    parser_up.add_argument(
        "-r",
        "--worker-resources",
        action="append",
        help=(
            "Resources descriptor of a worker, repeat once per worker "
            "(default: the same default descriptor for every worker)."
        ),
    )
    parser_up.add_argument(
        "-p",
        "--master-port",
        type=int,
        default=common.MASTER_PORT,
        help="Port the master listens on (default: %(default)s).",
    )
    parser_up.add_argument(
        "--map-ports-to-host",
        action="store_true",
        help="Publish the master port on the host.",
    )
    parser_up.add_argument(
        "--no-pull",
        action="store_true",
        help="Don't pull images, use the locally available ones.",
    )

    subparsers.add_parser("destroy", help="Remove all containers of the running cluster.")
    subparsers.add_parser("info", help="Show the running cluster.")

    return parser.parse_args(argv)


def _format_error(exc: BaseException) -> str:
    """Return the error message followed by messages of its causes."""
    messages = [str(exc)]
    cause = exc.__cause__
    while cause is not None:
        messages.append(f"caused by {cause.__class__.__name__}: {cause}")
        cause = cause.__cause__
    return "\n  ".join(messages)


def print_info(orch: orchestrator.ClusterOrchestrator) -> None:
    identity = orch.get_identity()
    print(f"Minimesos cluster {identity.cluster_id} is running")
    master_url = orch.master_url or identity.master_url
    if master_url:
        print(f"Master: {master_url}")
    for member in orch.describe():
        print(f"  {member.role:<10} {member.container_id[:12]:<12} {member.ip or '-'}")


def cmd_up(args: argparse.Namespace) -> int:
    runtime = docker_runtime.from_env()
    orch = orchestrator.ClusterOrchestrator(runtime)

    identity = orch.store.load()
    if identity is not None:
        print(f"Cluster {identity.cluster_id} is already running")
        return 0

    config = cluster_config.build(
        runtime=runtime,
        num_workers=args.num_workers,
        worker_resources=args.worker_resources,
        master_port=args.master_port,
        map_ports_to_host=args.map_ports_to_host,
        pull_images=not args.no_pull,
    )

    # On failure the containers are removed on exit, the identity stays for `destroy`
    orch.create(config)
    orch.start()
    orch.wait_for_state()
    orch.detach()

    print_info(orch)
    return 0


def cmd_destroy(args: argparse.Namespace) -> int:  # noqa: ARG001
    runtime = docker_runtime.from_env()
    orch = orchestrator.ClusterOrchestrator(runtime)

    with helpers.ignore_interrupt():
        cluster_id = orch.destroy()

    if cluster_id:
        print(f"Destroyed minimesos cluster with ID {cluster_id}")
    else:
        print("Minimesos cluster is not running")
    return 0


def cmd_info(args: argparse.Namespace) -> int:  # noqa: ARG001
    runtime = docker_runtime.from_env()
    orch = orchestrator.ClusterOrchestrator(runtime)

    if not orch.is_active():
        print("Minimesos cluster is not running")
        return 0

    print_info(orch)
    return 0


COMMANDS = {
    "up": cmd_up,
    "destroy": cmd_destroy,
    "info": cmd_info,
}


def main(argv: list[str] | None = None) -> int:
    args = get_args(argv)
    logging.basicConfig(
        format="%(levelname)s:%(message)s",
        level=logging.DEBUG if args.verbose else logging.INFO,
    )

    try:
        return COMMANDS[args.command](args)
    except errors.MinimesosError as exc:
        LOGGER.error(_format_error(exc))  # noqa: TRY400
        return 1


if __name__ == "__main__":
    sys.exit(main())
