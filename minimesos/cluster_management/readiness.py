"""Bounded polling of a resource until it becomes usable."""

import dataclasses
import logging
import threading
import time
import typing as tp

from minimesos.cluster_management import errors
from minimesos.utils import configuration

LOGGER = logging.getLogger(__name__)

T = tp.TypeVar("T")


@dataclasses.dataclass(frozen=True, order=True)
class ProbeResult:
    attempts: int
    elapsed: float


@dataclasses.dataclass(frozen=True)
class ReadinessProbe:
    """Repeatedly evaluate a predicate until it is true or the timeout elapses.

    The first evaluation happens immediately. Between evaluations the probe sleeps for
    `poll_interval` seconds, so the total time spent is at most `timeout + poll_interval` plus the
    time spent evaluating the predicate. The probe keeps no state between `wait` calls.
    """

    timeout: float = configuration.READINESS_TIMEOUT
    poll_interval: float = configuration.READINESS_INTERVAL

    def __post_init__(self) -> None:
        if self.timeout <= 0 or self.poll_interval <= 0:
            msg = (
                f"Invalid probe policy: timeout={self.timeout}, poll_interval={self.poll_interval}"
            )
            raise ValueError(msg)

    def wait(
        self,
        predicate: tp.Callable[[T], bool],
        resource: T,
        *,
        description: str = "",
        cancel_event: threading.Event | None = None,
    ) -> ProbeResult:
        """Wait until `predicate(resource)` is true.

        Raises `ProbeTimeoutError` when the timeout elapses, and `ProbeCancelledError` as soon as
        `cancel_event` is set.
        """
        description = description or f"{resource}"
        # The event is used only for interruptible sleeping
        sleeper = cancel_event or threading.Event()

        start = time.monotonic()
        attempts = 0
        while True:
            if cancel_event is not None and cancel_event.is_set():
                msg = f"Waiting for {description} was cancelled after {attempts} attempts."
                raise errors.ProbeCancelledError(msg)

            attempts += 1
            if predicate(resource):
                elapsed = time.monotonic() - start
                LOGGER.debug(f"{description} is ready after {attempts} attempts.")
                return ProbeResult(attempts=attempts, elapsed=elapsed)

            elapsed = time.monotonic() - start
            if elapsed >= self.timeout:
                msg = f"Timed out waiting for {description}"
                raise errors.ProbeTimeoutError(msg, elapsed=elapsed, attempts=attempts)

            if sleeper.wait(self.poll_interval):
                msg = f"Waiting for {description} was cancelled after {attempts} attempts."
                raise errors.ProbeCancelledError(msg)
