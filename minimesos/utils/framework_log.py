import functools
import logging
import pathlib as pl
import time

from minimesos.utils import configuration


def get_events_log_path(log_dir: pl.Path) -> pl.Path:
    return pl.Path(log_dir) / configuration.EVENTS_LOG_NAME


@functools.cache
def events_logger(log_dir: pl.Path) -> logging.Logger:
    """Get logger for the `minimesos.log` file in `log_dir`.

    The file lives next to the state file and records cluster lifecycle events (cluster created,
    member added, cluster destroyed), so the history of the environment survives the commands that
    produced it. There is one logger per directory.
    """

    class UTCFormatter(logging.Formatter):
        converter = time.gmtime  # type: ignore[assignment]

    log_path = get_events_log_path(log_dir)
    log_path.parent.mkdir(parents=True, exist_ok=True)

    formatter = UTCFormatter("%(asctime)s %(levelname)s %(message)s")
    handler = logging.FileHandler(log_path)
    handler.setFormatter(formatter)

    # Not registered with the logging hierarchy, the events go only to the file
    logger = logging.Logger(f"minimesos.events:{log_path}")
    logger.setLevel(logging.INFO)
    logger.addHandler(handler)

    return logger
