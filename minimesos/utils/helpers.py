import argparse
import contextlib
import datetime
import json
import logging
import os
import pathlib as pl
import random
import signal
import string
import tempfile
import typing as tp

import minimesos.utils.types as ttypes

LOGGER = logging.getLogger(__name__)


@contextlib.contextmanager
def ignore_interrupt() -> tp.Iterator[None]:
    """Ignore the KeyboardInterrupt signal."""
    orig_handler = None
    try:
        orig_handler = signal.signal(signal.SIGINT, signal.SIG_IGN)
    except ValueError as exc:
        if "signal only works in main thread" not in str(exc):
            raise

    if orig_handler is None:
        yield
        return

    try:
        yield
    finally:
        signal.signal(signal.SIGINT, orig_handler)


def get_rand_str(length: int = 8) -> str:
    """Return random string."""
    if length < 1:
        return ""
    return "".join(random.choice(string.ascii_lowercase) for i in range(length))


def get_timestamped_rand_str(rand_str_length: int = 4) -> str:
    """Return random string prefixed with timestamp.

    >>> len(get_timestamped_rand_str()) == len("200801-002401314-cinf")
    True
    """
    timestamp = datetime.datetime.now(tz=datetime.UTC).strftime("%y%m%d-%H%M%S%f")[:-3]
    rand_str_component = get_rand_str(length=rand_str_length)
    rand_str_component = rand_str_component and f"-{rand_str_component}"
    return f"{timestamp}{rand_str_component}"


def write_json(*, out_file: ttypes.FileType, content: dict) -> ttypes.FileType:
    """Write dictionary content to JSON file.

    The content is written to a temporary file first and then moved in place, so readers never
    see a partially written file.
    """
    out_path = pl.Path(out_file).expanduser()
    fd, tmp_name = tempfile.mkstemp(dir=out_path.parent, prefix=f".{out_path.name}.")
    try:
        with os.fdopen(fd, "w", encoding="utf-8") as out_fp:
            out_fp.write(json.dumps(content, indent=4))
        os.replace(tmp_name, out_path)
    except BaseException:
        pl.Path(tmp_name).unlink(missing_ok=True)
        raise
    return out_file


def get_log_tail(lines: tp.Iterable[str], *, num: int) -> str:
    """Return the last `num` lines joined into a single string."""
    tail = list(lines)[-num:] if num > 0 else []
    return "\n".join(tail)


def check_positive_int_arg(value: str) -> int:
    """Check that the value passed as argparse parameter is a positive integer."""
    try:
        num = int(value)
    except ValueError:
        num = 0
    if num <= 0:
        msg = f"check_positive_int_arg: '{value}' is not a positive integer"
        raise argparse.ArgumentTypeError(msg)
    return num
