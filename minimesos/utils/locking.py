import logging

import filelock

import minimesos.utils.types as ttypes

# Suppress messages from filelock
logging.getLogger("filelock").setLevel(logging.WARNING)

LOCK_TIMEOUT = 30


def state_lock(state_file: ttypes.FileType) -> filelock.FileLock:
    """Return the lock guarding read-modify-write of the given state file."""
    return filelock.FileLock(f"{state_file}.lock", timeout=LOCK_TIMEOUT)
