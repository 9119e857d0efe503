"""Cluster and environment configuration."""

import os
import pathlib as pl

LAUNCH_PATH = pl.Path.cwd()

# The state dir is scoped to the working environment, i.e. to the directory the commands are
# executed from, unless explicitly overridden.
STATE_DIR = (
    pl.Path(os.environ.get("MINIMESOS_STATE_DIR") or LAUNCH_PATH / ".minimesos")
    .expanduser()
    .resolve()
)
STATE_FILE_NAME = "minimesos.state"
EVENTS_LOG_NAME = "minimesos.log"

# Per-container liveness probe
READINESS_TIMEOUT = float(os.environ.get("MINIMESOS_READINESS_TIMEOUT") or 10)
READINESS_INTERVAL = float(os.environ.get("MINIMESOS_READINESS_INTERVAL") or 1)
if READINESS_TIMEOUT <= 0 or READINESS_INTERVAL <= 0:
    msg = (
        f"Invalid readiness policy: timeout={READINESS_TIMEOUT}, "
        f"interval={READINESS_INTERVAL}; both must be > 0"
    )
    raise RuntimeError(msg)

# Cluster-level readiness (the master elected a leader)
CLUSTER_TIMEOUT = float(os.environ.get("MINIMESOS_CLUSTER_TIMEOUT") or 60)
CLUSTER_INTERVAL = float(os.environ.get("MINIMESOS_CLUSTER_INTERVAL") or 1)

NUM_WORKERS = int(os.environ.get("MINIMESOS_NUM_WORKERS") or 1)

# Lines of image pull/build output kept for error reports
LOG_TAIL_LINES = int(os.environ.get("MINIMESOS_LOG_TAIL_LINES") or 20)
